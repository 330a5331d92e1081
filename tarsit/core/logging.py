"""Logging for tarsit.

Every module logs through a child of the ``tarsit`` logger. Handlers
installed by :func:`setup_logging` mask anything shaped like a raw
session token, CSRF token or API key before it is written.
"""

import logging
import re
import sys
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("tarsit")


class SecretMaskingFilter(logging.Filter):
    """Replace token-shaped substrings in log messages with a mask."""

    MASK = "[redacted]"

    # 32-byte hex tokens, with or without the API key prefix
    SECRET_RE = re.compile(r"\b(?:tarsit_)?[0-9a-f]{64}\b")

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = self.SECRET_RE.sub(self.MASK, message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(SecretMaskingFilter())
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Configure the ``tarsit`` logger.

    Calling it again replaces the previous handlers.

    Args:
        log_level: Level name such as DEBUG or WARNING; unknown names mean INFO.
        log_file: Also append to this file when given.
        log_format: Format string for log records.

    Returns:
        The ``tarsit`` logger.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    formatter = logging.Formatter(log_format)

    handlers = [_handler(logging.StreamHandler(sys.stdout), level, formatter)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            _handler(logging.FileHandler(log_file, encoding="utf-8"), level, formatter)
        )

    logger.handlers.clear()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Child logger under ``tarsit``, e.g. ``get_logger("auth")``."""
    return logging.getLogger(f"tarsit.{name}")


auth_logger = get_logger("auth")
security_logger = get_logger("security")
storage_logger = get_logger("storage")
