"""API keys for programmatic access.

Keys look like ``tarsit_<64 hex chars>`` and are shown to the owner once;
only their SHA-256 digest is kept.
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .crypto import CryptoUtils
from .models import utc_now
from .session import SessionUtil

API_KEY_PREFIX = "tarsit_"


@dataclass
class ApiKeyRecord:
    key_id: str
    user_id: str
    name: str
    key_hash: str
    created_at: datetime = field(default_factory=utc_now)
    last_used_at: datetime | None = None
    active: bool = True

    def public_view(self) -> dict:
        return {
            "key_id": self.key_id,
            "name": self.name,
            "created_at": self.created_at,
            "last_used_at": self.last_used_at,
        }


class ApiKeyService:
    """Issues, validates and revokes API keys (in memory)."""

    def __init__(self, crypto: CryptoUtils | None = None):
        self.crypto = crypto or CryptoUtils()
        self._lock = threading.Lock()
        self._keys: dict[str, ApiKeyRecord] = {}

    def generate_api_key(self, user_id: str, name: str) -> tuple[str, str]:
        """Create a key for a user.

        Returns:
            Tuple of (raw key, key id). The raw key cannot be retrieved again.
        """
        api_key = API_KEY_PREFIX + self.crypto.generate_token(32)
        record = ApiKeyRecord(
            key_id=str(uuid.uuid4()),
            user_id=user_id,
            name=name,
            key_hash=self.crypto.sha256(api_key),
        )
        with self._lock:
            self._keys[record.key_id] = record
        return api_key, record.key_id

    def validate_api_key(self, api_key: str | None) -> Optional[ApiKeyRecord]:
        """Look up an active key.

        Returns:
            The matching record, or None.
        """
        if not api_key or not isinstance(api_key, str) or not api_key.startswith(API_KEY_PREFIX):
            return None
        with self._lock:
            for record in self._keys.values():
                if record.active and SessionUtil.verify_token(api_key, record.key_hash):
                    record.last_used_at = utc_now()
                    return record
        return None

    def revoke_api_key(self, key_id: str, user_id: str) -> bool:
        """Deactivate a key owned by ``user_id``."""
        with self._lock:
            record = self._keys.get(key_id)
            if record is None or record.user_id != user_id or not record.active:
                return False
            record.active = False
            return True

    def list_api_keys(self, user_id: str) -> list[ApiKeyRecord]:
        """Active keys for a user, newest first."""
        with self._lock:
            records = [
                r for r in self._keys.values()
                if r.user_id == user_id and r.active
            ]
        return sorted(records, key=lambda r: r.created_at, reverse=True)
