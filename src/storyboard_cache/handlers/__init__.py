"""Handler layer for HTTP endpoints.

This layer contains the HTTP request/response handlers.
Handlers depend on services (business logic), not directly on repositories.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)
"""

from .admin_handler import AdminHandler
from .analytics_handler import AnalyticsHandler
from .generation_handler import GenerationHandler

__all__ = [
    "AdminHandler",
    "AnalyticsHandler",
    "GenerationHandler",
]
