"""KNUE Portal Bridge
Session-bridged scraping and caching engine for the KNUE university portal
"""

__version__ = "1.0.0"

from .api_client import PortalClient
from .exceptions import (
    AuthenticationError,
    MalformedInputError,
    PortalError,
    RefreshExpiredError,
    RefreshNotFoundError,
    TokenExpiredError,
    TokenInvalidError,
    TokenRevokedError,
    UpstreamUnavailableError,
    ValidationError,
)
from .menu_cache import MenuCacheEngine, is_incomplete
from .models import Cookie, Meals, MenuSnapshot, RetryState, TokenPair, TripItem
from .parser import MenuParser, format_dormitory_menu, format_staff_menu
from .retry import RetryScheduler
from .session import SessionBridge
from .storage import JsonFileStore, MemoryStore
from .trips import TripService

__all__ = [
    "__version__",
    "PortalClient",
    "MenuParser",
    "MenuCacheEngine",
    "RetryScheduler",
    "SessionBridge",
    "TripService",
    "MemoryStore",
    "JsonFileStore",
    "PortalError",
    "AuthenticationError",
    "MalformedInputError",
    "RefreshExpiredError",
    "RefreshNotFoundError",
    "TokenExpiredError",
    "TokenInvalidError",
    "TokenRevokedError",
    "UpstreamUnavailableError",
    "ValidationError",
    "Cookie",
    "Meals",
    "MenuSnapshot",
    "RetryState",
    "TokenPair",
    "TripItem",
    "format_dormitory_menu",
    "format_staff_menu",
    "is_incomplete",
]
