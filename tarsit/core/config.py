"""Application configuration management."""

import os
from pathlib import Path

from pydantic import BaseModel, Field


class AppConfig(BaseModel):
    """Application-wide configuration.

    Values come from ``TARSIT_*`` environment variables or defaults.
    """

    # Paths
    base_dir: Path = Field(default_factory=lambda: Path.cwd())
    data_dir: Path = Field(default=None)

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    environment: str = "production"
    log_level: str = "INFO"

    # Hashing and tokens
    bcrypt_rounds: int = 10
    token_bytes: int = 32
    code_length: int = 6
    session_ttl_seconds: int = 3600

    # Throttling
    rate_limit: int = 100
    rate_limit_window_seconds: int = 60
    login_rate_limit: int = 5
    trust_proxy: bool = False

    # CSRF
    skip_csrf: bool = False

    def __init__(self, **data):
        super().__init__(**data)
        if self.data_dir is None:
            self.data_dir = self.base_dir / "data"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def csrf_disabled(self) -> bool:
        """CSRF checks may only be switched off in development."""
        return self.environment == "development" and self.skip_csrf

    @property
    def users_file(self) -> Path:
        """Path to users storage file."""
        return self.data_dir / "users.json"

    @property
    def sessions_file(self) -> Path:
        """Path to sessions storage file."""
        return self.data_dir / "sessions.json"

    @property
    def log_file(self) -> Path:
        return self.data_dir / "tarsit.log"

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_env(cls, base_dir: Path | None = None) -> "AppConfig":
        """Create configuration from environment variables.

        Args:
            base_dir: Base directory for the application.

        Returns:
            AppConfig instance.

        Raises:
            ValueError: If environment variable values are invalid.
        """
        if base_dir is None:
            base_dir = Path(os.getenv("TARSIT_BASE_DIR", Path.cwd()))

        def get_int_env(name: str, default: int, min_val: int, max_val: int) -> int:
            """Parse and validate integer environment variable."""
            value_str = os.getenv(name, str(default))
            try:
                value = int(value_str)
            except ValueError:
                raise ValueError(f"{name} must be an integer, got: {value_str}")
            if value < min_val or value > max_val:
                raise ValueError(f"{name} must be between {min_val} and {max_val}, got: {value}")
            return value

        def get_bool_env(name: str, default: bool) -> bool:
            return os.getenv(name, str(default)).lower() in ("1", "true", "yes")

        environment = os.getenv("TARSIT_ENV", "production").lower()
        # Looser default limit outside production for easier testing
        default_rate_limit = 100 if environment == "production" else 1000

        return cls(
            base_dir=base_dir,
            host=os.getenv("TARSIT_HOST", "127.0.0.1"),
            port=get_int_env("TARSIT_PORT", 8000, 1, 65535),
            environment=environment,
            log_level=os.getenv("TARSIT_LOG_LEVEL", "INFO"),
            bcrypt_rounds=get_int_env("TARSIT_BCRYPT_ROUNDS", 10, 4, 31),
            token_bytes=get_int_env("TARSIT_TOKEN_BYTES", 32, 16, 128),
            code_length=get_int_env("TARSIT_CODE_LENGTH", 6, 4, 12),
            session_ttl_seconds=get_int_env("TARSIT_SESSION_TTL", 3600, 60, 2592000),
            rate_limit=get_int_env("TARSIT_RATE_LIMIT", default_rate_limit, 1, 100000),
            rate_limit_window_seconds=get_int_env("TARSIT_RATE_LIMIT_WINDOW", 60, 1, 86400),
            login_rate_limit=get_int_env("TARSIT_LOGIN_RATE_LIMIT", 5, 1, 1000),
            trust_proxy=get_bool_env("TARSIT_TRUST_PROXY", False),
            skip_csrf=get_bool_env("TARSIT_SKIP_CSRF", False),
        )
