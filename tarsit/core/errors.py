"""Exception types shared across the security core."""


class TarsitError(Exception):
    """Base error for tarsit."""

    pass


class TokenValidationError(TarsitError, TypeError):
    """Raised when a credential or token argument has the wrong type."""

    pass


class AuthError(TarsitError):
    """Authentication error."""

    pass


class StorageError(TarsitError):
    """Persistent store error."""

    pass
