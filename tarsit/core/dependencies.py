"""FastAPI dependency injection for tarsit.

Services live on ``app.state.tarsit`` as an :class:`AppState` and are
reached through the functions here, which keeps route modules free of
globals and easy to test.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from fastapi import Depends, HTTPException, Request

from .models import Principal, Session

if TYPE_CHECKING:
    from .api_keys import ApiKeyRecord, ApiKeyService
    from .auth import AuthManager
    from .config import AppConfig
    from .crypto import CryptoUtils
    from .rate_limit import RateLimitStore
    from .sanitize import Sanitizer


SESSION_COOKIE = "session_token"


@dataclass
class AppState:
    """Application state container stored in ``app.state.tarsit``."""

    config: "AppConfig"
    crypto: "CryptoUtils"
    auth: "AuthManager"
    sanitizer: "Sanitizer"
    rate_limits: "RateLimitStore"
    api_keys: "ApiKeyService"


def get_app_state(request: Request) -> AppState:
    """Get application state from request.

    Raises:
        HTTPException: If app state not initialized.
    """
    state = getattr(request.app.state, "tarsit", None)
    if state is None:
        raise HTTPException(status_code=503, detail="Application not initialized")
    return state


def get_session_token(request: Request) -> Optional[str]:
    """Read the raw session token from the cookie or a Bearer header."""
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


def load_principal(request: Request) -> Optional[Principal]:
    """Resolve the session and user for a request, once.

    Stores the results on ``request.state.session`` and
    ``request.state.user`` so later dependencies and the rate-limit
    tracker can read them.
    """
    if getattr(request.state, "principal_loaded", False):
        return request.state.user

    request.state.principal_loaded = True
    request.state.session = None
    request.state.user = None

    auth = get_app_state(request).auth
    session = auth.verify_session(get_session_token(request))
    if session is None:
        return None

    user = auth.users.get(session.user_id)
    if user is None:
        return None

    request.state.session = session
    request.state.user = Principal(id=user.id, email=user.email, role=user.role)
    return request.state.user


async def get_current_session(request: Request) -> Optional[Session]:
    """Get current session if logged in."""
    load_principal(request)
    return request.state.session


async def require_session(
    session: Optional[Session] = Depends(get_current_session),
) -> Session:
    """Require an authenticated session.

    Raises:
        HTTPException: If not authenticated.
    """
    if not session:
        raise HTTPException(status_code=401, detail="Authentication required")
    return session


async def require_principal(
    request: Request,
    session: Session = Depends(require_session),
) -> Principal:
    return request.state.user


API_KEY_HEADER = "X-API-Key"


def get_api_key(request: Request) -> Optional[str]:
    """Read an API key from ``X-API-Key`` or a Bearer header."""
    api_key = request.headers.get(API_KEY_HEADER)
    if api_key:
        return api_key
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


async def require_api_key(request: Request) -> "ApiKeyRecord":
    """Require a valid API key.

    The key's owner is recorded on ``request.state.api_key`` as
    ``{"keyId", "userId"}``.

    Raises:
        HTTPException: 401 if the key is missing, unknown or revoked.
    """
    api_key = get_api_key(request)
    if not api_key:
        raise HTTPException(status_code=401, detail="API key required")

    record = get_app_state(request).api_keys.validate_api_key(api_key)
    if record is None:
        raise HTTPException(status_code=401, detail="Invalid API key")

    request.state.api_key = {"keyId": record.key_id, "userId": record.user_id}
    return record


async def read_json_body(request: Request) -> Any:
    """Parse the JSON body, or None when there is none."""
    if not await request.body():
        return None
    try:
        return await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Malformed JSON body")


async def get_sanitized_body(request: Request) -> Any:
    """Parsed JSON body with markup stripped from every string."""
    body = await read_json_body(request)
    return get_app_state(request).sanitizer.sanitize_body(body)


def get_client_info(request: Request) -> dict:
    """Extract client information from request."""
    from .rate_limit import get_client_ip

    config = get_app_state(request).config
    return {
        "ip": get_client_ip(request, trust_forwarded=config.trust_proxy),
        "user_agent": request.headers.get("user-agent", ""),
    }
