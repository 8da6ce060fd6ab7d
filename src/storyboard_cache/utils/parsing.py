"""Parsers for language model output.

The language model is asked for bare JSON arrays but is never trusted to
produce them. Every helper here degrades to an empty result instead of
raising.
"""

import json
import re
from typing import Any

import structlog

from storyboard_cache.errors import ParseError

logger = structlog.get_logger(__name__)

_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_QUOTED = re.compile(r'"([^"]+)"')


def parse_json_array(text: str) -> list[Any]:
    """Parse model output as a JSON array.

    Markdown code fences around the array are tolerated.

    Args:
        text: Raw model output

    Returns:
        The decoded list

    Raises:
        ParseError: If the text is not a JSON array
    """
    cleaned = _CODE_FENCE.sub("", text.strip())
    try:
        value = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ParseError(f"not valid JSON: {e}") from e

    if not isinstance(value, list):
        raise ParseError(f"expected a JSON array, got {type(value).__name__}")
    return value


def parse_string_array(text: str, limit: int | None = None) -> list[str]:
    """Extract a list of strings from model output.

    Tries a JSON array first, then falls back to every double-quoted
    substring. Blank strings are dropped.

    Args:
        text: Raw model output
        limit: Maximum number of strings to return

    Returns:
        Parsed strings, possibly empty
    """
    try:
        items = [item.strip() for item in parse_json_array(text) if isinstance(item, str)]
    except ParseError as e:
        logger.warning("llm_json_parse_failed", error=str(e), text=text[:200])
        items = [match.strip() for match in _QUOTED.findall(text)]

    items = [item for item in items if item]
    return items[:limit] if limit is not None else items


def parse_index_groups(text: str, upper_bound: int) -> list[list[int]]:
    """Extract groups of 1-based indices from model output.

    Out-of-range, non-integer and repeated indices are dropped; groups left
    with fewer than two distinct indices are discarded. Indices are returned
    0-based.

    Args:
        text: Raw model output, expected like ``[[1, 3], [2, 5]]``
        upper_bound: Number of items that were numbered in the prompt

    Returns:
        Groups of valid 0-based indices, possibly empty
    """
    try:
        raw_groups = parse_json_array(text)
    except ParseError as e:
        logger.warning("llm_index_groups_parse_failed", error=str(e), text=text[:200])
        return []

    groups: list[list[int]] = []
    for raw_group in raw_groups:
        if not isinstance(raw_group, list):
            continue

        seen: list[int] = []
        for index in raw_group:
            # bool is an int subclass; reject it explicitly
            if isinstance(index, bool) or not isinstance(index, int):
                continue
            if 1 <= index <= upper_bound and index - 1 not in seen:
                seen.append(index - 1)

        if len(seen) >= 2:
            groups.append(seen)

    return groups
