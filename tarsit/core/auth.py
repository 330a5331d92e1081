"""Authentication and session management."""

import uuid
from datetime import timedelta
from typing import Optional

from .crypto import CryptoUtils
from .errors import AuthError, StorageError
from .logging import auth_logger
from .models import IssuedSession, Role, Session, User, utc_now
from .session import SessionUtil
from .storage import SessionStore, UserStore
from .validators import validate_password_strength, PasswordPolicyError


class AuthManager:
    """Manages accounts, sessions and CSRF tokens.

    Features:
    - bcrypt password hashing (via CryptoUtils)
    - 256-bit session tokens stored only as SHA-256 digests
    - per-session CSRF tokens, generated independently of the session token
    - persistent sessions (file-based for multi-worker support)
    """

    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        crypto: CryptoUtils | None = None,
        session_ttl_seconds: int = 3600,
    ):
        """Initialize auth manager.

        Args:
            users: User account store.
            sessions: Session store.
            crypto: Hashing helpers (defaults to cost factor 10).
            session_ttl_seconds: Session validity in seconds.
        """
        self.users = users
        self.sessions = sessions
        self.crypto = crypto or CryptoUtils()
        self.session_ttl = timedelta(seconds=session_ttl_seconds)
        self._dummy_hash: str | None = None

    def register_user(
        self,
        email: str,
        password: str,
        name: str,
        role: Role = Role.CUSTOMER,
    ) -> User:
        """Create a new account.

        Raises:
            PasswordPolicyError: If the password is too weak.
            AuthError: If the email is already registered.
        """
        strength = validate_password_strength(password)
        if not strength.is_valid:
            raise PasswordPolicyError(strength.errors)

        user = User(
            id=uuid.uuid4().hex,
            email=email,
            name=name,
            password_hash=self.crypto.hash_password(password),
            role=role,
        )
        try:
            self.users.add(user)
        except StorageError as e:
            raise AuthError(str(e)) from e
        auth_logger.info(f"Registered user {user.id}")
        return user

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Check credentials.

        Returns:
            The user if the password matches, None otherwise.
        """
        user = self.users.get_by_email(email)
        if user is None:
            # Same work as a real check so unknown emails are not faster
            self.crypto.compare_password(password, self._get_dummy_hash())
            return None
        if not self.crypto.compare_password(password, user.password_hash):
            return None
        self.users.touch_login(user.id)
        return user

    def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = self.crypto.hash_password(SessionUtil.generate_random_string(16))
        return self._dummy_hash

    def create_session(self, user: User, ip: str, user_agent: str = "") -> IssuedSession:
        """Create a new session for an authenticated user.

        Args:
            user: Authenticated user.
            ip: Client IP address.
            user_agent: Client user agent.

        Returns:
            IssuedSession with the raw tokens; they are not recoverable later.
        """
        issued = SessionUtil.create_time_based_token(int(self.session_ttl.total_seconds()))
        csrf_token = SessionUtil.generate_csrf_token()

        session = Session(
            token_hash=SessionUtil.hash_token(issued.token),
            csrf_token_hash=SessionUtil.hash_token(csrf_token),
            user_id=user.id,
            role=user.role,
            ip=ip,
            user_agent=user_agent,
            created_at=utc_now(),
            expires_at=issued.expires_at,
        )
        self.sessions.save_session(session)

        return IssuedSession(
            session_token=issued.token,
            csrf_token=csrf_token,
            expires_at=issued.expires_at,
            session=session,
        )

    def verify_session(self, session_token: str | None) -> Optional[Session]:
        """Verify a session token.

        Returns:
            Session if valid, None otherwise.
        """
        if not session_token:
            return None
        return self.sessions.get_session(session_token)

    def invalidate_session(self, session_token: str) -> bool:
        """Invalidate/logout a session."""
        return self.sessions.delete_session(session_token)

    def invalidate_user_sessions(self, user_id: str) -> int:
        """Invalidate all sessions for a user.

        Returns:
            Number of sessions invalidated.
        """
        return self.sessions.delete_user_sessions(user_id)

    def rotate_csrf_token(self, session: Session) -> str:
        """Issue a new CSRF token for a session.

        Returns:
            The raw token; only its hash is stored.
        """
        csrf_token = SessionUtil.generate_csrf_token()
        self.sessions.replace_csrf_hash(session.token_hash, SessionUtil.hash_token(csrf_token))
        return csrf_token

    def verify_csrf(self, session: Session | None, token: str | None) -> bool:
        """Verify CSRF token for a session.

        Returns:
            True if token is valid.
        """
        if not token or not session or not isinstance(token, str):
            return False
        return SessionUtil.verify_token(token, session.csrf_token_hash)

    def cleanup_expired_sessions(self) -> int:
        """Remove expired sessions.

        Returns:
            Number of sessions removed.
        """
        return self.sessions.cleanup_expired()
