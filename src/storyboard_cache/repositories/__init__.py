"""Repository layer for data access.

This layer abstracts external dependencies (Redis, the image model, the
object store, the language model) behind protocol-based interfaces. This
enables:
- Easy swapping of implementations (Redis → in-memory, Gemini → another LLM, etc.)
- Unit testing with fake implementations
- Clear separation of concerns

The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.
"""

from storyboard_cache.protocols import ImageGenerator, ImageUploader, KeyValueStore, LanguageModel

from .cloudflare_uploader import CloudflareImageUploader
from .fal_image_generator import FalImageGenerator
from .gemini_language_model import GeminiLanguageModel
from .memory_repository import InMemoryKeyValueStore
from .redis_repository import RedisKeyValueStore

__all__ = [
    "CloudflareImageUploader",
    "FalImageGenerator",
    "GeminiLanguageModel",
    "ImageGenerator",
    "ImageUploader",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "LanguageModel",
    "RedisKeyValueStore",
]
