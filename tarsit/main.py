"""FastAPI application for tarsit."""

import asyncio
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from .api.auth_routes import router as auth_router
from .core.api_keys import ApiKeyService
from .core.auth import AuthManager
from .core.config import AppConfig
from .core.crypto import CryptoUtils
from .core.dependencies import AppState
from .core.logging import logger, setup_logging
from .core.rate_limit import RateLimiter, RateLimitExceeded, RateLimitStore
from .core.sanitize import Sanitizer
from .core.security_headers import SecurityHeadersMiddleware
from .core.storage import SessionStore, UserStore

CLEANUP_INTERVAL_SECONDS = 3600


def build_state(config: AppConfig) -> AppState:
    """Wire the services for one application instance."""
    config.ensure_directories()
    crypto = CryptoUtils(
        bcrypt_rounds=config.bcrypt_rounds,
        token_bytes=config.token_bytes,
        code_length=config.code_length,
    )
    auth = AuthManager(
        users=UserStore(config.users_file),
        sessions=SessionStore(config.sessions_file),
        crypto=crypto,
        session_ttl_seconds=config.session_ttl_seconds,
    )
    return AppState(
        config=config,
        crypto=crypto,
        auth=auth,
        sanitizer=Sanitizer(),
        rate_limits=RateLimitStore(),
        api_keys=ApiKeyService(crypto),
    )


async def periodic_cleanup(state: AppState) -> None:
    """Background task for periodic cleanup of sessions and rate limits."""
    while True:
        try:
            await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)

            cleaned_sessions = state.auth.cleanup_expired_sessions()
            if cleaned_sessions > 0:
                logger.info(f"Cleaned up {cleaned_sessions} expired sessions")

            cleaned_keys = state.rate_limits.cleanup(state.config.rate_limit_window_seconds)
            if cleaned_keys > 0:
                logger.info(f"Cleaned up rate limits for {cleaned_keys} trackers")

        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error(f"Error in periodic cleanup: {e}")


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Map RateLimitExceeded to 429 with rate limit headers."""
    return JSONResponse(
        status_code=429,
        content={"detail": exc.message},
        headers={
            "X-RateLimit-Limit": str(exc.limit),
            "X-RateLimit-Remaining": "0",
            "Retry-After": str(exc.retry_after),
        },
    )


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Create the application.

    Args:
        config: Configuration; read from the environment when omitted.
    """
    if config is None:
        config = AppConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(config.log_level, config.log_file)
        cleanup_task = asyncio.create_task(periodic_cleanup(app.state.tarsit))
        logger.info(f"tarsit started ({config.environment})")

        yield

        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass
        app.state.tarsit.auth.cleanup_expired_sessions()

    app = FastAPI(
        title="tarsit",
        description="Business directory and booking API",
        version="0.1.0",
        lifespan=lifespan,
        dependencies=[Depends(RateLimiter())],
    )
    app.state.tarsit = build_state(config)

    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SecurityHeadersMiddleware, force_https=config.is_production)
    app.include_router(auth_router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    return app


def get_app() -> FastAPI:
    """Factory used by ``uvicorn --factory``."""
    return create_app()
