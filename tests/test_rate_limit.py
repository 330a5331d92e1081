"""Tests for rate-limit tracking and throttling."""

from unittest.mock import MagicMock

import pytest
from starlette.requests import Request

from tarsit.core.models import Principal, Role
from tarsit.core.rate_limit import (
    RATE_LIMIT_MESSAGE,
    RateLimitExceeded,
    RateLimitStore,
    get_client_ip,
    get_tracker,
    on_limit_exceeded,
    route_path,
)


def make_request(forwarded=None, client=None, user=None) -> Request:
    headers = []
    if forwarded is not None:
        headers.append((b"x-forwarded-for", forwarded.encode()))
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": headers,
        "query_string": b"",
        "client": (client, 1234) if client else None,
    }
    request = Request(scope)
    if user is not None:
        request.state.user = user
    return request


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestTracker:
    """Tests for tracker key derivation."""

    def test_anonymous_ip(self):
        """Test anonymous requests are keyed by IP."""
        assert get_tracker(make_request(forwarded="1.2.3.4"), trust_forwarded=True) == "1.2.3.4"

    def test_authenticated_user(self):
        """Test authenticated requests are keyed by IP and user id."""
        user = Principal(id="u1", email="a@b.co", role=Role.CUSTOMER)
        request = make_request(forwarded="1.2.3.4", user=user)

        assert get_tracker(request, trust_forwarded=True) == "1.2.3.4:u1"

    def test_unknown(self):
        """Test unidentifiable clients share the unknown bucket."""
        assert get_tracker(make_request()) == "unknown"

    def test_socket_peer_fallback(self):
        """Test the socket address is used without a forwarded IP."""
        assert get_tracker(make_request(client="10.0.0.7")) == "10.0.0.7"

    def test_forwarded_takes_first_hop(self):
        """Test only the first forwarded entry is used."""
        request = make_request(forwarded="1.2.3.4, 10.0.0.1", client="10.0.0.2")

        assert get_client_ip(request, trust_forwarded=True) == "1.2.3.4"

    def test_forwarded_ignored_when_untrusted(self):
        """Test forwarded header is skipped by default."""
        request = make_request(forwarded="1.2.3.4", client="10.0.0.2")

        assert get_tracker(request) == "10.0.0.2"

    def test_user_without_id(self):
        """Test a user object with no id falls back to the IP."""
        request = make_request(client="10.0.0.7", user=object())

        assert get_tracker(request) == "10.0.0.7"

    def test_ipv6_kept_as_is(self):
        """Test IPv6 addresses are not escaped."""
        user = Principal(id="u1", email="a@b.co", role=Role.CUSTOMER)

        assert get_tracker(make_request(client="::1", user=user)) == "::1:u1"


class TestLimitExceeded:
    """Tests for the rate limit signal."""

    def test_raises_distinct_error(self):
        """Test a specific error with the client message is raised."""
        with pytest.raises(RateLimitExceeded) as exc_info:
            on_limit_exceeded(100, 60)

        assert exc_info.value.message == RATE_LIMIT_MESSAGE
        assert exc_info.value.limit == 100
        assert exc_info.value.retry_after == 60

    def test_retry_after_rounds_up(self):
        """Test fractional windows round up to whole seconds."""
        with pytest.raises(RateLimitExceeded) as exc_info:
            on_limit_exceeded(1, 0.2)

        assert exc_info.value.retry_after == 1


class TestRateLimitStore:
    """Tests for the sliding-window counter."""

    def test_under_limit(self):
        """Test requests under the limit pass."""
        store = RateLimitStore()
        for _ in range(4):
            state = store.hit("1.2.3.4", limit=5, window_seconds=60)

        assert state.exceeded is False
        assert state.remaining == 1

    def test_limit_exceeded(self):
        """Test the request after the limit is flagged."""
        store = RateLimitStore()
        for _ in range(5):
            assert store.hit("1.2.3.4", limit=5, window_seconds=60).exceeded is False

        assert store.hit("1.2.3.4", limit=5, window_seconds=60).exceeded is True

    def test_per_key(self):
        """Test buckets are independent."""
        store = RateLimitStore()
        for _ in range(3):
            store.hit("1.2.3.4", limit=2, window_seconds=60)

        assert store.hit("1.2.3.4:u1", limit=2, window_seconds=60).exceeded is False

    def test_window_slides(self):
        """Test old requests fall out of the window."""
        clock = FakeClock()
        store = RateLimitStore(clock=clock)
        for _ in range(2):
            store.hit("k", limit=2, window_seconds=60)

        clock.now += 61

        assert store.hit("k", limit=2, window_seconds=60).exceeded is False
        assert store.count("k", 60) == 1

    def test_cleanup(self):
        """Test stale keys are removed."""
        clock = FakeClock()
        store = RateLimitStore(clock=clock)
        store.hit("old", limit=5, window_seconds=60)
        clock.now += 120
        store.hit("new", limit=5, window_seconds=60)

        assert store.cleanup(60) == 1
        assert store.count("old", 60) == 0
        assert store.count("new", 60) == 1

    def test_reset(self):
        """Test a key can be cleared."""
        store = RateLimitStore()
        store.hit("k", limit=1, window_seconds=60)
        store.reset("k")

        assert store.hit("k", limit=1, window_seconds=60).exceeded is False

    def test_rejected_hits_not_recorded(self):
        """Test a flood past the limit keeps the bucket at the limit."""
        clock = FakeClock()
        store = RateLimitStore(clock=clock)
        for _ in range(1000):
            store.hit("k", limit=5, window_seconds=60)

        assert store.count("k", 60) == 5
        assert len(store._hits["k"]) == 5

    def test_reset_after_counts_from_oldest_hit(self):
        """Test the reported wait is the time until the oldest hit expires."""
        clock = FakeClock()
        store = RateLimitStore(clock=clock)
        store.hit("k", limit=1, window_seconds=60)
        clock.now += 20

        state = store.hit("k", limit=1, window_seconds=60)
        assert state.exceeded is True
        assert state.reset_after == 40


class TestRetryAfter:
    """Tests for the retry delay carried by RateLimitExceeded."""

    def test_uses_reset_after(self):
        """Test the remaining window time is rounded up."""
        with pytest.raises(RateLimitExceeded) as exc_info:
            on_limit_exceeded(1, 60, reset_after=39.2)

        assert exc_info.value.retry_after == 40

    def test_never_below_one_second(self):
        """Test a nearly expired window still asks for a one-second wait."""
        with pytest.raises(RateLimitExceeded) as exc_info:
            on_limit_exceeded(1, 60, reset_after=0.0)

        assert exc_info.value.retry_after == 1


class TestRoutePath:
    """Tests for the route template used in bucket keys."""

    def test_matched_route_template(self):
        """Test the route template is used over the concrete path."""
        request = make_request()
        request.scope["route"] = MagicMock(path="/api/auth/api-keys/{key_id}")

        assert route_path(request) == "/api/auth/api-keys/{key_id}"

    def test_unmatched_falls_back_to_url(self):
        """Test the URL path is used when no route matched."""
        assert route_path(make_request()) == "/"
