"""Tests for authentication module."""

import json
from datetime import timedelta

import pytest

from tarsit.core.errors import AuthError
from tarsit.core.models import Role, utc_now
from tarsit.core.session import SessionUtil
from tarsit.core.validators import PasswordPolicyError

STRONG_PASSWORD = "Tr1cky!Horse"


@pytest.fixture
def user(auth):
    return auth.register_user("owner@example.com", STRONG_PASSWORD, "Owner")


class TestRegistration:
    """Tests for account creation."""

    def test_register_user(self, auth, user):
        """Test registration stores a bcrypt hash, not the password."""
        assert user.email == "owner@example.com"
        assert user.role == Role.CUSTOMER
        assert user.password_hash.startswith("$2b$")
        assert STRONG_PASSWORD not in auth.users.path.read_text()

    def test_email_normalized(self, auth):
        """Test emails are lowercased."""
        user = auth.register_user("  Mixed@Example.COM ", STRONG_PASSWORD, "M")

        assert user.email == "mixed@example.com"

    def test_duplicate_email(self, auth, user):
        """Test duplicate emails are rejected."""
        with pytest.raises(AuthError):
            auth.register_user("owner@example.com", STRONG_PASSWORD, "Other")

    def test_weak_password(self, auth):
        """Test weak passwords are rejected with reasons."""
        with pytest.raises(PasswordPolicyError) as exc_info:
            auth.register_user("weak@example.com", "short", "Weak")

        assert exc_info.value.errors


class TestAuthentication:
    """Tests for credential checks."""

    def test_correct_password(self, auth, user):
        """Test correct credentials return the user."""
        found = auth.authenticate("owner@example.com", STRONG_PASSWORD)

        assert found is not None
        assert found.id == user.id

    def test_records_last_login(self, auth, user):
        """Test a successful login updates last_login."""
        auth.authenticate("owner@example.com", STRONG_PASSWORD)

        assert auth.users.get(user.id).last_login is not None

    def test_wrong_password(self, auth, user):
        """Test wrong password fails."""
        assert auth.authenticate("owner@example.com", "Wrong!Pass1") is None

    def test_unknown_email(self, auth):
        """Test unknown email fails."""
        assert auth.authenticate("nobody@example.com", STRONG_PASSWORD) is None


class TestSessionManagement:
    """Tests for session management."""

    def test_create_session(self, auth, user):
        """Test session creation returns raw tokens and stores hashes."""
        issued = auth.create_session(user, ip="127.0.0.1", user_agent="TestAgent")

        assert issued.session.user_id == user.id
        assert issued.session.token_hash == SessionUtil.hash_token(issued.session_token)
        assert issued.session.csrf_token_hash == SessionUtil.hash_token(issued.csrf_token)
        assert issued.session_token != issued.csrf_token

        stored = auth.sessions.path.read_text()
        assert issued.session_token not in stored
        assert issued.csrf_token not in stored

    def test_verify_session_valid(self, auth, user):
        """Test verifying a valid session."""
        issued = auth.create_session(user, ip="127.0.0.1")

        verified = auth.verify_session(issued.session_token)
        assert verified is not None
        assert verified.user_id == user.id

    def test_verify_session_invalid(self, auth):
        """Test verifying an invalid session."""
        assert auth.verify_session("nonexistent") is None
        assert auth.verify_session("") is None
        assert auth.verify_session(None) is None

    def test_expired_session_rejected(self, auth, user):
        """Test expired sessions are rejected and removed."""
        issued = auth.create_session(user, ip="127.0.0.1")
        data = json.loads(auth.sessions.path.read_text())
        data[issued.session.token_hash]["expires_at"] = (
            utc_now() - timedelta(seconds=1)
        ).isoformat()
        auth.sessions.path.write_text(json.dumps(data))

        assert auth.verify_session(issued.session_token) is None
        assert auth.sessions.get_session_count() == 0

    def test_invalidate_session(self, auth, user):
        """Test session invalidation."""
        issued = auth.create_session(user, ip="127.0.0.1")

        assert auth.invalidate_session(issued.session_token) is True
        assert auth.verify_session(issued.session_token) is None

    def test_invalidate_user_sessions(self, auth, user):
        """Test invalidating all sessions for a user."""
        for _ in range(3):
            auth.create_session(user, ip="127.0.0.1")

        assert auth.invalidate_user_sessions(user.id) == 3
        assert auth.sessions.get_session_count(user.id) == 0


class TestCSRFValidation:
    """Tests for CSRF token validation."""

    def test_verify_csrf_valid(self, auth, user):
        """Test valid CSRF token verification."""
        issued = auth.create_session(user, ip="127.0.0.1")

        assert auth.verify_csrf(issued.session, issued.csrf_token) is True

    def test_verify_csrf_invalid(self, auth, user):
        """Test invalid CSRF token verification."""
        issued = auth.create_session(user, ip="127.0.0.1")

        assert auth.verify_csrf(issued.session, "wrong_token") is False
        assert auth.verify_csrf(issued.session, "") is False
        assert auth.verify_csrf(None, issued.csrf_token) is False

    def test_session_token_is_not_csrf_token(self, auth, user):
        """Test the session token cannot stand in for the CSRF token."""
        issued = auth.create_session(user, ip="127.0.0.1")

        assert auth.verify_csrf(issued.session, issued.session_token) is False

    def test_rotate_csrf(self, auth, user):
        """Test rotation invalidates the old CSRF token."""
        issued = auth.create_session(user, ip="127.0.0.1")
        new_token = auth.rotate_csrf_token(issued.session)
        session = auth.verify_session(issued.session_token)

        assert auth.verify_csrf(session, new_token) is True
        assert auth.verify_csrf(session, issued.csrf_token) is False
