"""Password hashing and random secret generation."""

import hashlib
import secrets

import bcrypt as _bcrypt

from .errors import TokenValidationError


class CryptoUtils:
    """Cryptography helpers.

    Features:
    - bcrypt password hashing with a configurable cost factor
    - hex-encoded random tokens from the OS CSPRNG
    - short numeric codes (OTP style)
    - SHA-256 digests for fingerprinting
    """

    def __init__(
        self,
        bcrypt_rounds: int = 10,
        token_bytes: int = 32,
        code_length: int = 6,
    ):
        """Initialize crypto helpers.

        Args:
            bcrypt_rounds: Cost factor for bcrypt.
            token_bytes: Default number of random bytes per token.
            code_length: Default number of digits per numeric code.
        """
        self.bcrypt_rounds = bcrypt_rounds
        self.token_bytes = token_bytes
        self.code_length = code_length

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        The result embeds algorithm, cost and salt, so it is all that is
        needed for later verification.

        Args:
            password: Plain text password.

        Returns:
            Bcrypt hash string.

        Raises:
            TokenValidationError: If password is not a string.
        """
        if not isinstance(password, str):
            raise TokenValidationError("password must be a string")
        salt = _bcrypt.gensalt(rounds=self.bcrypt_rounds)
        hashed = _bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    def compare_password(self, password: str, hash_str: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            password: Plain text password.
            hash_str: Bcrypt hash to verify against.

        Returns:
            True if password matches. A malformed hash never matches.

        Raises:
            TokenValidationError: If either argument is not a string.
        """
        if not isinstance(password, str) or not isinstance(hash_str, str):
            raise TokenValidationError("password and hash must be strings")
        try:
            return _bcrypt.checkpw(password.encode("utf-8"), hash_str.encode("utf-8"))
        except ValueError:
            # Invalid salt or oversized input
            return False

    def generate_token(self, length: int | None = None) -> str:
        """Generate a random hex token.

        Args:
            length: Number of random bytes (defaults to ``token_bytes``).

        Returns:
            Lowercase hex string of ``2 * length`` characters.
        """
        if length is None:
            length = self.token_bytes
        if length < 1:
            raise ValueError("Token length must be positive")
        return secrets.token_hex(length)

    def generate_code(self, length: int | None = None) -> str:
        """Generate a numeric code such as a one-time passcode.

        Drawn uniformly from ``[10**(length-1), 10**length - 1]`` using the
        CSPRNG, so the code never has a leading zero.

        Args:
            length: Number of digits (defaults to ``code_length``).

        Returns:
            Numeric string of exactly ``length`` digits.
        """
        if length is None:
            length = self.code_length
        if length < 1:
            raise ValueError("Code length must be positive")
        low = 10 ** (length - 1)
        high = 10**length - 1
        return str(low + secrets.randbelow(high - low + 1))

    @staticmethod
    def sha256(data: str | bytes) -> str:
        """Hash data with SHA-256.

        Args:
            data: Text (UTF-8 encoded before hashing) or raw bytes.

        Returns:
            Lowercase hex digest.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        return hashlib.sha256(data).hexdigest()
