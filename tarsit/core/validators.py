"""Password strength rules."""

import re
from dataclasses import dataclass, field

from .errors import TarsitError

MIN_PASSWORD_LENGTH = 8

COMMON_PASSWORDS = (
    "password",
    "password123",
    "12345678",
    "qwerty",
    "abc123",
    "letmein",
    "welcome",
    "admin",
)

SPECIAL_CHARS_RE = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")


class PasswordPolicyError(TarsitError):
    """Password does not meet the strength rules."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


@dataclass
class PasswordStrength:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


def validate_password_strength(password: str) -> PasswordStrength:
    """Check a password against the strength rules.

    Requires at least 8 characters, an uppercase letter, a lowercase
    letter, a digit and a special character, and rejects passwords that
    contain a well-known weak password.

    Args:
        password: Candidate password.

    Returns:
        PasswordStrength listing every rule that failed.
    """
    if not isinstance(password, str):
        return PasswordStrength(is_valid=False, errors=["Password must be a string"])

    errors = []

    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number")
    if not SPECIAL_CHARS_RE.search(password):
        errors.append("Password must contain at least one special character")

    lowered = password.lower()
    if any(weak in lowered for weak in COMMON_PASSWORDS):
        errors.append("Password is too common or weak")

    return PasswordStrength(is_valid=not errors, errors=errors)
