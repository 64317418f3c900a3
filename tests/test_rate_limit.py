"""
Tests for the in-memory cache and the rate-limit middleware.
"""
from toeic_api.core import config
from toeic_api.core.cache import MemoryCache
from toeic_api.core.rate_limit import (
    RULES,
    FixedWindowRateLimiter,
    RateLimitRule,
    compute_slow_down_delay,
    limiter,
    resolve_route_class,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_cache_entries_expire():
    clock = FakeClock()
    cache = MemoryCache("test", clock=clock)

    cache.set("plans", {"plans": []}, ttl=600)
    clock.now += 599
    assert cache.get("plans") == {"plans": []}

    clock.now += 1
    assert cache.get("plans") is None
    assert cache.stats()["hits"] == 1
    assert cache.stats()["misses"] == 1


def test_counter_keeps_its_window():
    clock = FakeClock()
    cache = MemoryCache("test", clock=clock)

    assert cache.incr("k", ttl=60) == (1, 60)
    clock.now += 30
    assert cache.incr("k", ttl=60) == (2, 30)
    clock.now += 30
    assert cache.incr("k", ttl=60) == (1, 60)


def test_route_classes():
    assert resolve_route_class("/api/auth/login") == "auth"
    assert resolve_route_class("/api/auth/google") == "oauth"
    assert resolve_route_class("/api/practice/questions/generate") == "ai"
    assert resolve_route_class("/api/chat/sessions/4") == "ai"
    assert resolve_route_class("/api/vocabulary/import") == "upload"
    assert resolve_route_class("/api/vocabulary") is None
    assert resolve_route_class("/api/authz") is None


def test_slow_down_delay_grows_and_caps():
    assert compute_slow_down_delay(50, 50, 500, 5000) == 0
    assert compute_slow_down_delay(51, 50, 500, 5000) == 0.5
    assert compute_slow_down_delay(53, 50, 500, 5000) == 1.5
    assert compute_slow_down_delay(500, 50, 500, 5000) == 5.0


def test_ai_class_limit(client):
    """The 31st AI request in the window is refused with the AI message."""
    for _ in range(RULES["ai"].max_requests):
        assert client.get("/api/chat/sessions").status_code == 401

    response = client.get("/api/chat/sessions")

    assert response.status_code == 429
    assert response.json() == {"success": False, "error": "AI request limit exceeded, please try again later."}
    assert "Retry-After" in response.headers


def test_successful_logins_are_not_counted(client, test_user):
    rule = RULES["auth"]
    for _ in range(rule.max_requests + 2):
        response = client.post("/api/auth/login", json={"email": "learner@example.com", "password": "testpass123"})
        assert response.status_code == 200


def test_failed_logins_are_limited(client, test_user):
    rule = RULES["auth"]
    for _ in range(rule.max_requests):
        response = client.post("/api/auth/login", json={"email": "learner@example.com", "password": "wrong-pass"})
        assert response.status_code == 401

    response = client.post("/api/auth/login", json={"email": "learner@example.com", "password": "wrong-pass"})

    assert response.status_code == 429
    assert response.json()["error"] == rule.message


def test_general_limit_headers(client):
    response = client.get("/api/health/live")

    assert response.headers["RateLimit-Limit"] == str(RULES["general"].max_requests)


def test_non_api_paths_are_not_counted(client):
    client.get("/")

    assert limiter.cache.stats()["entries"] == 0


def test_decr_leaves_missing_counters_alone():
    clock = FakeClock()
    cache = MemoryCache("test", clock=clock)

    assert cache.decr("absent") is None
    assert cache.stats()["entries"] == 0

    cache.incr("k", ttl=60)
    clock.now += 60
    assert cache.decr("k") is None
    assert cache.incr("k", ttl=60) == (1, 60)


def test_undo_after_window_expired_does_not_grant_extra_request():
    clock = FakeClock()
    limiter_under_test = FixedWindowRateLimiter(MemoryCache("test", clock=clock))
    rule = RULES["auth"]

    limiter_under_test.hit(rule, "10.0.0.1")
    clock.now += rule.window_seconds
    limiter_under_test.undo(rule, "10.0.0.1")

    assert limiter_under_test.hit(rule, "10.0.0.1").count == 1


def test_general_limit_resets_after_window(client, monkeypatch):
    """A client refused by the general limit is served again once the window passes."""
    clock = FakeClock()
    monkeypatch.setattr(limiter.cache, "_clock", clock)
    monkeypatch.setattr(config, "SLOW_DOWN_DELAY_MS", 0)
    general = RateLimitRule(
        name="general",
        window_seconds=60,
        max_requests=5,
        message=RULES["general"].message,
    )
    monkeypatch.setitem(RULES, "general", general)

    for _ in range(general.max_requests):
        assert client.get("/api/health/live").status_code == 200

    response = client.get("/api/health/live")
    assert response.status_code == 429
    assert response.json() == {"success": False, "error": general.message}

    clock.now += general.window_seconds
    response = client.get("/api/health/live")
    assert response.status_code == 200
    assert response.headers["RateLimit-Remaining"] == str(general.max_requests - 1)
