"""Content sanitization for security."""

import re
from typing import Any

import bleach


class Sanitizer:
    """Deep sanitization of untrusted request data.

    Every string leaf is reduced to plain text: no tags and no attributes
    survive, while text content is kept. Containers are rebuilt with the
    same shape.
    """

    # Plain text only
    ALLOWED_TAGS: list[str] = []
    ALLOWED_ATTRIBUTES: dict[str, list[str]] = {}

    # Tags whose content should be completely removed (not just the tag).
    # An unclosed opener swallows the rest of the string.
    STRIP_CONTENT_TAGS = re.compile(
        r"<(script|style|noscript|template)\b[^>]*>.*?(?:</\1\s*>|\Z)",
        re.IGNORECASE | re.DOTALL,
    )

    def sanitize_string(self, content: str) -> str:
        """Strip markup from a string and trim it.

        Args:
            content: Untrusted text.

        Returns:
            Text with all tags removed.
        """
        if not content:
            return content

        clean = self.STRIP_CONTENT_TAGS.sub("", content)
        clean = bleach.clean(
            clean,
            tags=self.ALLOWED_TAGS,
            attributes=self.ALLOWED_ATTRIBUTES,
            strip=True,
            strip_comments=True,
        )
        return clean.strip()

    def sanitize_value(self, value: Any) -> Any:
        """Recursively sanitize a JSON-shaped value.

        Strings are cleaned, lists and tuples are rebuilt element-wise,
        dicts keep every key with cleaned values. Anything else (numbers,
        booleans, None) is returned unchanged.
        """
        if isinstance(value, str):
            return self.sanitize_string(value)
        if isinstance(value, (list, tuple)):
            return type(value)(self.sanitize_value(item) for item in value)
        if isinstance(value, dict):
            return {key: self.sanitize_value(item) for key, item in value.items()}
        return value

    def sanitize_body(self, value: Any) -> Any:
        """Sanitize a request body.

        Only bodies go through here; query and path parameters are
        validated separately.
        """
        if not value:
            return value
        return self.sanitize_value(value)


SENSITIVE_FIELDS = frozenset({
    "password",
    "password_hash",
    "token",
    "refresh_token",
    "verification_token",
    "reset_token",
    "token_hash",
    "csrf_token_hash",
    "key_hash",
})


def redact_sensitive(data: Any) -> Any:
    """Drop credential fields from outgoing data, recursively."""
    if isinstance(data, list):
        return [redact_sensitive(item) for item in data]
    if isinstance(data, dict):
        return {
            key: redact_sensitive(value)
            for key, value in data.items()
            if key not in SENSITIVE_FIELDS
        }
    return data
