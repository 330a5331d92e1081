"""Request throttling keyed by client identity.

The tracker key is ``<ip>`` for anonymous traffic and ``<ip>:<userId>``
once a request carries an authenticated principal. Counts live in a
sliding-window :class:`RateLimitStore`; per-route thresholds are supplied
by :class:`RateLimiter` dependencies.
"""

import math
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass

from fastapi import Request

from .dependencies import get_app_state, load_principal
from .errors import TarsitError
from .logging import security_logger

UNKNOWN_CLIENT = "unknown"
RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."


class RateLimitExceeded(TarsitError):
    """Rate limit exceeded error."""

    def __init__(
        self,
        limit: int,
        retry_after: int,
        message: str = RATE_LIMIT_MESSAGE,
    ):
        super().__init__(message)
        self.limit = limit
        self.retry_after = retry_after
        self.message = message


@dataclass(frozen=True)
class RateLimitState:
    """Outcome of counting one request against a window."""

    limit: int
    remaining: int
    reset_after: float

    @property
    def exceeded(self) -> bool:
        return self.remaining < 0


def get_client_ip(request: Request, trust_forwarded: bool = False) -> str:
    """Resolve the client IP address.

    Args:
        request: Incoming request.
        trust_forwarded: Honour the first ``X-Forwarded-For`` entry.

    Returns:
        Forwarded IP, socket peer address, or ``"unknown"``.
    """
    if trust_forwarded:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            ip = forwarded.split(",")[0].strip()
            if ip:
                return ip
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def get_tracker(request: Request, trust_forwarded: bool = False) -> str:
    """Derive the rate-limit bucket key for a request.

    Never raises: unidentifiable clients share the ``"unknown"`` bucket.
    """
    ip = get_client_ip(request, trust_forwarded)
    user = getattr(request.state, "user", None)
    user_id = getattr(user, "id", None)
    if user_id:
        return f"{ip}:{user_id}"
    return ip


def route_path(request: Request) -> str:
    """Path template of the matched route, e.g. ``/api/auth/api-keys/{key_id}``.

    Falls back to the concrete URL path when no route matched.
    """
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def on_limit_exceeded(
    limit: int,
    window_seconds: float,
    tracker: str | None = None,
    reset_after: float | None = None,
) -> None:
    """Signal a rate-limit violation.

    Args:
        limit: Limit that was hit.
        window_seconds: Window length.
        tracker: Tracker key, for the log line.
        reset_after: Seconds until the window frees a slot; the full
            window is assumed when unknown.

    Raises:
        RateLimitExceeded: Always.
    """
    security_logger.warning(f"Rate limit exceeded for {tracker or UNKNOWN_CLIENT}")
    wait = window_seconds if reset_after is None else reset_after
    raise RateLimitExceeded(limit=limit, retry_after=max(1, math.ceil(wait)))


class RateLimitStore:
    """In-memory sliding-window request counter.

    Thread-safe; one lock guards all buckets.
    """

    def __init__(self, clock=time.monotonic):
        """Initialize the store.

        Args:
            clock: Monotonic time source, replaceable in tests.
        """
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: dict[str, deque[float]] = defaultdict(deque)

    def hit(self, key: str, limit: int, window_seconds: float) -> RateLimitState:
        """Record one request for ``key`` and report the window state.

        Rejected requests are not recorded, so a bucket never holds more
        than ``limit`` timestamps.

        Args:
            key: Tracker key.
            limit: Max requests allowed in the window.
            window_seconds: Window length.

        Returns:
            RateLimitState; ``exceeded`` is true when this request is over the limit.
        """
        now = self._clock()
        window_start = now - window_seconds
        with self._lock:
            hits = self._hits[key]
            while hits and hits[0] <= window_start:
                hits.popleft()
            if len(hits) >= limit:
                return RateLimitState(
                    limit=limit,
                    remaining=-1,
                    reset_after=hits[0] + window_seconds - now,
                )
            hits.append(now)
            return RateLimitState(
                limit=limit,
                remaining=limit - len(hits),
                reset_after=hits[0] + window_seconds - now,
            )

    def count(self, key: str, window_seconds: float) -> int:
        """Number of requests recorded for ``key`` within the window."""
        window_start = self._clock() - window_seconds
        with self._lock:
            return sum(1 for ts in self._hits.get(key, ()) if ts > window_start)

    def reset(self, key: str) -> None:
        with self._lock:
            self._hits.pop(key, None)

    def cleanup(self, window_seconds: float) -> int:
        """Remove keys with no requests inside the window.

        Returns:
            Number of keys removed.
        """
        window_start = self._clock() - window_seconds
        with self._lock:
            stale = [
                key for key, hits in self._hits.items()
                if not hits or hits[-1] <= window_start
            ]
            for key in stale:
                del self._hits[key]
        return len(stale)


class RateLimiter:
    """FastAPI dependency enforcing a per-route request limit.

    Usage::

        @router.post("/login", dependencies=[Depends(RateLimiter(5, 60))])

    With no arguments the limit and window come from the app config.
    """

    def __init__(
        self,
        limit: int | None = None,
        window_seconds: int | None = None,
        scope: str = "default",
        limit_setting: str = "rate_limit",
    ):
        """Initialize limiter.

        Args:
            limit: Max requests per window (default: config.rate_limit).
            window_seconds: Window length (default: config.rate_limit_window_seconds).
            scope: Bucket namespace, so stacked limiters count independently.
            limit_setting: AppConfig field holding the default limit.
        """
        self.limit = limit
        self.window_seconds = window_seconds
        self.scope = scope
        self.limit_setting = limit_setting

    async def __call__(self, request: Request) -> RateLimitState:
        state = get_app_state(request)
        config = state.config
        limit = self.limit or getattr(config, self.limit_setting)
        window = self.window_seconds or config.rate_limit_window_seconds

        # Resolve the principal first so the tracker can include the user id
        load_principal(request)
        tracker = get_tracker(request, trust_forwarded=config.trust_proxy)
        key = f"{self.scope}|{route_path(request)}|{tracker}"
        result = state.rate_limits.hit(key, limit, window)
        if result.exceeded:
            on_limit_exceeded(limit, window, tracker, result.reset_after)
        return result
