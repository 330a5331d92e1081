"""CSRF protection for state-changing requests."""

from typing import Any, Optional

from fastapi import Depends, HTTPException, Request

from .dependencies import get_app_state, read_json_body, require_session
from .logging import security_logger
from .models import Session


class CSRFProtection:
    """Validates the per-session CSRF token.

    The token issued at login must come back on every POST, PUT, PATCH
    or DELETE, in the ``X-CSRF-Token`` header or, failing that, a
    ``csrfToken`` body field or query parameter. It is checked against
    the hash stored with the session.
    """

    HEADER_NAME = "X-CSRF-Token"
    FIELD_NAME = "csrfToken"

    # Methods that require CSRF validation
    PROTECTED_METHODS = {"POST", "PUT", "DELETE", "PATCH"}

    def __init__(self, disabled: bool = False):
        """Initialize CSRF protection.

        Args:
            disabled: Skip validation entirely (development only).
        """
        self.disabled = disabled

    def should_validate(self, request: Request) -> bool:
        """Check if request should have CSRF validation."""
        if self.disabled:
            return False
        return request.method in self.PROTECTED_METHODS

    def get_token_from_request(self, request: Request, body: Any = None) -> Optional[str]:
        """Extract CSRF token from header, body or query string.

        Returns:
            Token if found, None otherwise.
        """
        token = request.headers.get(self.HEADER_NAME)
        if token:
            return token
        if isinstance(body, dict):
            token = body.get(self.FIELD_NAME)
            if isinstance(token, str) and token:
                return token
        return request.query_params.get(self.FIELD_NAME) or None


async def require_csrf(
    request: Request,
    session: Session = Depends(require_session),
) -> Session:
    """Dependency rejecting state-changing requests without a valid token.

    Raises:
        HTTPException: 403 if the token is missing or wrong.
    """
    state = get_app_state(request)
    csrf = CSRFProtection(disabled=state.config.csrf_disabled)
    if not csrf.should_validate(request):
        return session

    token = request.headers.get(CSRFProtection.HEADER_NAME)
    body = None if token else await read_json_body(request)
    token = csrf.get_token_from_request(request, body)

    if not state.auth.verify_csrf(session, token):
        security_logger.warning(f"CSRF rejection on {request.method} {request.url.path}")
        raise HTTPException(status_code=403, detail="Invalid or missing CSRF token")
    return session
