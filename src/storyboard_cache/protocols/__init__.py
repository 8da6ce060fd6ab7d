"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (Redis → in-memory, Gemini → another LLM, etc.)
- Unit testing with fake implementations
- Clear separation of concerns

Usage:
    ```python
    from storyboard_cache.protocols import KeyValueStore, LanguageModel

    store: KeyValueStore = RedisKeyValueStore.create()
    llm: LanguageModel = GeminiLanguageModel.create()
    ```
"""

from .key_value_store import KeyValueStore
from .providers import ImageGenerator, ImageUploader, LanguageModel

__all__ = [
    "ImageGenerator",
    "ImageUploader",
    "KeyValueStore",
    "LanguageModel",
]
