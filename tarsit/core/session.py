"""Session token issuance and verification."""

import hashlib
import secrets
from datetime import timedelta

from .errors import TokenValidationError
from .models import TimeBasedToken, utc_now


class SessionUtil:
    """Session and CSRF token utilities.

    Raw tokens are given to the client once; the server keeps only
    ``hash_token(token)`` and checks incoming tokens with
    :meth:`verify_token`.
    """

    TOKEN_BYTES = 32

    @classmethod
    def generate_session_token(cls) -> str:
        """Generate a 256-bit session token as hex."""
        return secrets.token_hex(cls.TOKEN_BYTES)

    @classmethod
    def generate_csrf_token(cls) -> str:
        """Generate a 256-bit CSRF token, independent of any session token."""
        return secrets.token_hex(cls.TOKEN_BYTES)

    @staticmethod
    def generate_random_string(length: int = 32) -> str:
        """Generate a hex string from ``length`` random bytes."""
        return secrets.token_hex(length)

    @staticmethod
    def hash_token(token: str) -> str:
        """Hash a token for storage.

        Args:
            token: Raw token.

        Returns:
            SHA-256 hex digest.
        """
        if not isinstance(token, str):
            raise TokenValidationError("token must be a string")
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    @classmethod
    def verify_token(cls, token: str, hash_str: str) -> bool:
        """Verify a token against its stored hash.

        Uses constant-time comparison of the hex digests.

        Args:
            token: Raw token presented by the client.
            hash_str: Stored digest.

        Returns:
            True if the token hashes to ``hash_str``.

        Raises:
            TokenValidationError: If either argument is not a string.
        """
        if not isinstance(hash_str, str):
            raise TokenValidationError("hash must be a string")
        token_hash = cls.hash_token(token)
        return secrets.compare_digest(
            token_hash.encode("ascii"),
            hash_str.encode("utf-8"),
        )

    @classmethod
    def create_time_based_token(cls, ttl_seconds: int = 3600) -> TimeBasedToken:
        """Create a fresh session token with an absolute expiry.

        Args:
            ttl_seconds: Token lifetime in seconds.

        Returns:
            TimeBasedToken with ``expires_at = now + ttl_seconds``.
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        return TimeBasedToken(
            token=cls.generate_session_token(),
            expires_at=utc_now() + timedelta(seconds=ttl_seconds),
        )
