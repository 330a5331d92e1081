"""Security core for tarsit."""

from .auth import AuthManager
from .config import AppConfig
from .crypto import CryptoUtils
from .csrf import CSRFProtection
from .rate_limit import RateLimitExceeded, RateLimiter, RateLimitStore, get_tracker
from .sanitize import Sanitizer
from .session import SessionUtil

__all__ = [
    "AppConfig",
    "AuthManager",
    "CryptoUtils",
    "CSRFProtection",
    "RateLimitExceeded",
    "RateLimiter",
    "RateLimitStore",
    "Sanitizer",
    "SessionUtil",
    "get_tracker",
]
