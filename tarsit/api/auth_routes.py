"""Authentication routes.

Signup, login, logout, the current user, CSRF rotation and API key
management. Request bodies pass through the sanitizer before pydantic
validation.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

from ..core.api_keys import ApiKeyRecord
from ..core.csrf import require_csrf
from ..core.dependencies import (
    SESSION_COOKIE,
    AppState,
    get_app_state,
    get_client_info,
    get_sanitized_body,
    get_session_token,
    require_api_key,
    require_principal,
    require_session,
)
from ..core.errors import AuthError
from ..core.logging import auth_logger
from ..core.models import (
    ApiKeyRequest,
    IssuedSession,
    LoginRequest,
    Principal,
    Session,
    SignupRequest,
    User,
)
from ..core.rate_limit import RateLimiter
from ..core.sanitize import redact_sensitive
from ..core.security_headers import get_session_cookie_settings
from ..core.validators import PasswordPolicyError

router = APIRouter(prefix="/api/auth", tags=["auth"])

login_limiter = RateLimiter(scope="login", limit_setting="login_rate_limit")


def _parse(model: type[BaseModel], body: Any) -> BaseModel:
    """Validate a sanitized body against a request model."""
    try:
        return model.model_validate(body or {})
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False))


def _user_payload(user: User) -> dict:
    return redact_sensitive(user.model_dump(mode="json"))


def _session_response(
    state: AppState,
    response: Response,
    user: User,
    issued: IssuedSession,
) -> dict:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=issued.session_token,
        **get_session_cookie_settings(
            force_https=state.config.is_production,
            max_age=state.config.session_ttl_seconds,
        ),
    )
    return {
        "user": _user_payload(user),
        "sessionToken": issued.session_token,
        "csrfToken": issued.csrf_token,
        "expiresAt": issued.expires_at.isoformat(),
    }


@router.post("/signup", status_code=201, dependencies=[Depends(login_limiter)])
async def signup(
    request: Request,
    response: Response,
    body: Any = Depends(get_sanitized_body),
    state: AppState = Depends(get_app_state),
):
    """Create an account and start a session."""
    data = _parse(SignupRequest, body)
    try:
        user = state.auth.register_user(data.email, data.password, data.name)
    except PasswordPolicyError as e:
        raise HTTPException(status_code=400, detail=e.errors)
    except AuthError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid email format")

    client = get_client_info(request)
    issued = state.auth.create_session(user, client["ip"], client["user_agent"])
    return _session_response(state, response, user, issued)


@router.post("/login", dependencies=[Depends(login_limiter)])
async def login(
    request: Request,
    response: Response,
    body: Any = Depends(get_sanitized_body),
    state: AppState = Depends(get_app_state),
):
    """Exchange credentials for a session."""
    data = _parse(LoginRequest, body)
    client = get_client_info(request)

    user = state.auth.authenticate(data.email, data.password)
    if user is None:
        auth_logger.warning(f"Failed login from {client['ip']}")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    auth_logger.info(f"User {user.id} logged in from {client['ip']}")
    issued = state.auth.create_session(user, client["ip"], client["user_agent"])
    return _session_response(state, response, user, issued)


@router.post("/logout", status_code=204)
async def logout(
    request: Request,
    session: Session = Depends(require_csrf),
    state: AppState = Depends(get_app_state),
):
    """End the current session."""
    state.auth.invalidate_session(get_session_token(request))
    response = Response(status_code=204)
    response.delete_cookie(SESSION_COOKIE)
    return response


@router.get("/me")
async def me(
    principal: Principal = Depends(require_principal),
    state: AppState = Depends(get_app_state),
):
    """Return the current user."""
    user = state.auth.users.get(principal.id)
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return _user_payload(user)


@router.post("/csrf")
async def rotate_csrf(
    session: Session = Depends(require_csrf),
    state: AppState = Depends(get_app_state),
):
    """Replace the session's CSRF token; the current token must be presented."""
    return {"csrfToken": state.auth.rotate_csrf_token(session)}


@router.post("/api-keys", status_code=201)
async def create_api_key(
    body: Any = Depends(get_sanitized_body),
    session: Session = Depends(require_csrf),
    state: AppState = Depends(get_app_state),
):
    """Create an API key; the raw key is only returned here."""
    data = _parse(ApiKeyRequest, body)
    key, key_id = state.api_keys.generate_api_key(session.user_id, data.name)
    return {"key": key, "keyId": key_id}


@router.get("/api-keys")
async def list_api_keys(
    session: Session = Depends(require_session),
    state: AppState = Depends(get_app_state),
):
    return [record.public_view() for record in state.api_keys.list_api_keys(session.user_id)]


@router.get("/api-keys/current")
async def current_api_key(record: ApiKeyRecord = Depends(require_api_key)):
    """Identify the caller of a request authenticated with an API key."""
    return {"keyId": record.key_id, "userId": record.user_id}


@router.delete("/api-keys/{key_id}", status_code=204)
async def revoke_api_key(
    key_id: str,
    session: Session = Depends(require_csrf),
    state: AppState = Depends(get_app_state),
):
    if not state.api_keys.revoke_api_key(key_id, session.user_id):
        raise HTTPException(status_code=404, detail="API key not found")
    return Response(status_code=204)
