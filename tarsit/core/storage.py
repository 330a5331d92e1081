"""Persistent user and session storage with file-based backend.

Both stores keep a JSON document on disk. Reads take a shared lock on the
document; every read-modify-write holds an exclusive lock on a sidecar
``<name>.lock`` file from the read to the atomic replace, so several
uvicorn workers can share them. Sessions are keyed by the SHA-256 of the
session token; raw tokens never touch the disk.
"""

import fcntl
import json
import shutil
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .errors import StorageError
from .logging import storage_logger
from .models import Session, User
from .session import SessionUtil


class JsonFileStore:
    """JSON document on disk with locking and atomic writes."""

    def __init__(self, path: Path):
        """Initialize store.

        Args:
            path: Path to the JSON file.
        """
        self.path = path
        self.lock_path = path.with_name(path.name + ".lock")
        self._ensure_file_exists()

    def _ensure_file_exists(self) -> None:
        """Ensure the file exists with valid JSON."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._exclusive():
            if not self.path.exists():
                self._atomic_write({})

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold the store's write lock for a whole read-modify-write."""
        with open(self.lock_path, "a") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _read(self) -> dict[str, dict]:
        """Read the document with a shared lock.

        Returns:
            Stored mapping, or an empty dict if the file is missing or corrupt.
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = json.load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                return data
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            storage_logger.error(f"Corrupt store file {self.path}, starting empty")
            return {}

    def _atomic_write(self, data: dict) -> None:
        """Replace the document atomically.

        Callers hold :meth:`_exclusive`.

        Raises:
            StorageError: If the file cannot be written.
        """
        fd, temp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with open(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False, default=str)
            shutil.move(temp_path, self.path)
        except OSError as e:
            Path(temp_path).unlink(missing_ok=True)
            raise StorageError(f"Failed to write {self.path}: {e}") from e


class UserStore(JsonFileStore):
    """File-based user accounts keyed by id."""

    def add(self, user: User) -> User:
        """Store a new user.

        Raises:
            StorageError: If the email is already registered.
        """
        with self._exclusive():
            users = self._read()
            if any(data.get("email") == user.email for data in users.values()):
                raise StorageError("Email already registered")
            users[user.id] = user.model_dump(mode="json")
            self._atomic_write(users)
        return user

    def get(self, user_id: str) -> User | None:
        data = self._read().get(user_id)
        return User(**data) if data else None

    def get_by_email(self, email: str) -> User | None:
        email = email.strip().lower()
        for data in self._read().values():
            if data.get("email") == email:
                return User(**data)
        return None

    def touch_login(self, user_id: str) -> None:
        """Record the time of a successful login."""
        with self._exclusive():
            users = self._read()
            if user_id in users:
                users[user_id]["last_login"] = datetime.now(timezone.utc).isoformat()
                self._atomic_write(users)


class SessionStore(JsonFileStore):
    """File-based session storage keyed by session token hash."""

    def save_session(self, session: Session) -> None:
        """Save a session to storage.

        Args:
            session: Session object to save.
        """
        with self._exclusive():
            sessions = self._read()
            sessions[session.token_hash] = session.model_dump(mode="json")
            self._atomic_write(sessions)

    def get_session(self, session_token: str) -> Session | None:
        """Look up a session by the raw token the client presented.

        Args:
            session_token: Raw session token.

        Returns:
            Session object if found and not expired, None otherwise.
        """
        if not session_token:
            return None
        token_hash = SessionUtil.hash_token(session_token)
        data = self._read().get(token_hash)
        if not data:
            return None

        try:
            session = Session(**data)
        except ValueError:
            # Invalid session data
            self.delete_by_hash(token_hash)
            return None

        if not SessionUtil.verify_token(session_token, session.token_hash):
            return None

        if session.is_expired():
            self.delete_by_hash(token_hash)
            return None

        return session

    def replace_csrf_hash(self, token_hash: str, csrf_token_hash: str) -> bool:
        with self._exclusive():
            sessions = self._read()
            if token_hash not in sessions:
                return False
            sessions[token_hash]["csrf_token_hash"] = csrf_token_hash
            self._atomic_write(sessions)
        return True

    def delete_session(self, session_token: str) -> bool:
        """Delete a session by raw token.

        Returns:
            True if session was found and deleted.
        """
        return self.delete_by_hash(SessionUtil.hash_token(session_token))

    def delete_by_hash(self, token_hash: str) -> bool:
        with self._exclusive():
            sessions = self._read()
            if token_hash not in sessions:
                return False
            del sessions[token_hash]
            self._atomic_write(sessions)
        return True

    def delete_user_sessions(self, user_id: str) -> int:
        """Delete all sessions for a user.

        Args:
            user_id: User ID whose sessions to delete.

        Returns:
            Number of sessions deleted.
        """
        with self._exclusive():
            sessions = self._read()
            to_delete = [
                key for key, data in sessions.items()
                if data.get("user_id") == user_id
            ]
            for key in to_delete:
                del sessions[key]
            if to_delete:
                self._atomic_write(sessions)
        return len(to_delete)

    def cleanup_expired(self) -> int:
        """Remove all expired sessions.

        Returns:
            Number of sessions removed.
        """
        now = datetime.now(timezone.utc)
        with self._exclusive():
            sessions = self._read()
            expired = []
            for key, data in sessions.items():
                try:
                    if now >= datetime.fromisoformat(data["expires_at"]):
                        expired.append(key)
                except (KeyError, ValueError):
                    expired.append(key)

            for key in expired:
                del sessions[key]
            if expired:
                self._atomic_write(sessions)

        return len(expired)

    def get_session_count(self, user_id: str | None = None) -> int:
        sessions = self._read()
        if user_id:
            return sum(1 for data in sessions.values() if data.get("user_id") == user_id)
        return len(sessions)
