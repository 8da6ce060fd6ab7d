"""Supervised fire-and-forget task runner.

Request handlers never await background work. Every task spawned here is
kept alive by a strong reference until it finishes, and its outcome
(success, failure with traceback, cancellation) is logged through the same
structured logger as the request path.
"""

import asyncio
import time
from collections.abc import Coroutine
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class BackgroundTaskRunner:
    """Spawn and supervise background coroutines.

    Example:
        ```python
        runner = BackgroundTaskRunner()
        runner.spawn(expander.expand(entry), name="semantic_expansion")
        runner.spawn(warm(prompt), name="predictive_warm", delay=index * 2.0)

        await runner.drain()  # tests / graceful shutdown
        ```
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._failures = 0
        self._completed = 0

    def spawn(
        self,
        coro: Coroutine[Any, Any, Any],
        name: str,
        request_id: str | None = None,
        delay: float = 0.0,
    ) -> asyncio.Task[Any]:
        """Schedule a coroutine without awaiting it.

        Must be called from inside a running event loop.

        Args:
            coro: The work to run
            name: Label used in log lines
            request_id: Correlation id of the originating request
            delay: Seconds to wait before starting the work

        Returns:
            The created task
        """
        task = asyncio.create_task(self._supervise(coro, name, request_id, delay), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _supervise(
        self,
        coro: Coroutine[Any, Any, Any],
        name: str,
        request_id: str | None,
        delay: float,
    ) -> Any:
        log = logger.bind(task=name, request_id=request_id)
        try:
            if delay > 0:
                await asyncio.sleep(delay)
            start_time = time.time()
            result = await coro
        except asyncio.CancelledError:
            log.warning("background_task_cancelled")
            raise
        except Exception:
            self._failures += 1
            log.exception("background_task_failed")
            return None
        finally:
            # a coroutine cancelled during its start delay was never awaited
            coro.close()

        self._completed += 1
        log.info("background_task_completed", duration_ms=round((time.time() - start_time) * 1000, 1))
        return result

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for outstanding tasks, including ones spawned while waiting.

        Args:
            timeout: Give up after this many seconds (None = wait forever)

        Returns:
            True if every task finished, False on timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while self._tasks:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            _, pending = await asyncio.wait(set(self._tasks), timeout=remaining)
            if pending and deadline is not None and time.monotonic() >= deadline:
                return False
        return True

    async def shutdown(self, timeout: float) -> None:
        """Drain with a timeout, then cancel whatever is left."""
        if await self.drain(timeout):
            return
        stragglers = list(self._tasks)
        logger.warning("background_tasks_cancelled_on_shutdown", count=len(stragglers))
        for task in stragglers:
            task.cancel()
        await asyncio.gather(*stragglers, return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def stats(self) -> dict[str, int]:
        return {"pending": self.pending, "completed": self._completed, "failed": self._failures}
