from core.logging_middleware import LoggingMiddleware
from core.settings import Settings, get_settings, settings

__all__ = [
    "settings",
    "LoggingMiddleware",
    "get_settings",
    "Settings",
]
