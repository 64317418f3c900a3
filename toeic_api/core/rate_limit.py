"""
Fixed-window in-memory rate limiter for API endpoints.

Counters are kept per client IP and per route class in the shared cache, so
they are process-local and only approximate behind a load balancer.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from fastapi import Request, status
from fastapi.responses import JSONResponse

from toeic_api.core import config
from toeic_api.core.cache import MemoryCache, rate_limit_cache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    name: str
    window_seconds: float
    max_requests: int
    message: str
    skip_successful_requests: bool = False


@dataclass
class RateLimitResult:
    allowed: bool
    count: int
    remaining: int
    reset_seconds: float


RULES: Dict[str, RateLimitRule] = {
    "general": RateLimitRule(
        name="general",
        window_seconds=config.RATE_LIMIT_WINDOW_MS / 1000,
        max_requests=config.RATE_LIMIT_MAX_REQUESTS,
        message="Too many requests from this IP, please try again later.",
    ),
    "auth": RateLimitRule(
        name="auth",
        window_seconds=15 * 60,
        max_requests=20,
        message="Too many authentication attempts, please try again later.",
        skip_successful_requests=True,
    ),
    "oauth": RateLimitRule(
        name="oauth",
        window_seconds=5 * 60,
        max_requests=50,
        message="Too many OAuth requests, please try again later.",
        skip_successful_requests=True,
    ),
    "ai": RateLimitRule(
        name="ai",
        window_seconds=15 * 60,
        max_requests=30,
        message="AI request limit exceeded, please try again later.",
    ),
    "upload": RateLimitRule(
        name="upload",
        window_seconds=60 * 60,
        max_requests=10,
        message="Upload limit exceeded, please try again later.",
    ),
}

# Path prefix -> route class. First match wins, so keep specific prefixes first.
ROUTE_CLASSES: List[Tuple[str, str]] = [
    ("/api/auth/google", "oauth"),
    ("/api/auth/login", "auth"),
    ("/api/auth/register", "auth"),
    ("/api/auth/verify-email", "auth"),
    ("/api/auth/resend-verification", "auth"),
    ("/api/auth/request-password-reset", "auth"),
    ("/api/auth/verify-reset-token", "auth"),
    ("/api/auth/reset-password", "auth"),
    ("/api/notifications", "auth"),
    ("/api/practice/questions/generate", "ai"),
    ("/api/chat", "ai"),
    ("/api/vocabulary/definition", "ai"),
    ("/api/vocabulary/import", "upload"),
]


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request."""
    # Check for forwarded IP (from proxy/load balancer)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Take the first IP in the chain
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"


def resolve_route_class(path: str) -> Optional[str]:
    """Return the rate-limit class for a path, or None for general-only paths."""
    for prefix, route_class in ROUTE_CLASSES:
        if path == prefix or path.startswith(prefix + "/"):
            return route_class
    return None


def compute_slow_down_delay(hits: int, delay_after: int, delay_ms: int, max_delay_ms: int) -> float:
    """Delay in seconds for the given hit count; grows linearly past delay_after."""
    if hits <= delay_after:
        return 0.0
    return min((hits - delay_after) * delay_ms, max_delay_ms) / 1000


class FixedWindowRateLimiter:
    """Counts hits per (rule, key) in fixed windows stored in a cache."""

    def __init__(self, cache: MemoryCache):
        self.cache = cache

    def _key(self, rule: RateLimitRule, client_key: str) -> str:
        return f"ratelimit:{rule.name}:{client_key}"

    def hit(self, rule: RateLimitRule, client_key: str) -> RateLimitResult:
        count, reset_seconds = self.cache.incr(self._key(rule, client_key), 1, ttl=rule.window_seconds)
        return RateLimitResult(
            allowed=count <= rule.max_requests,
            count=count,
            remaining=max(0, rule.max_requests - count),
            reset_seconds=reset_seconds,
        )

    def undo(self, rule: RateLimitRule, client_key: str) -> None:
        """Take back one hit (used for successful requests on skip-successful rules)."""
        self.cache.decr(self._key(rule, client_key))

    def slow_down_delay(self, client_key: str) -> float:
        hits, _ = self.cache.incr(
            f"slowdown:{client_key}", 1, ttl=config.SLOW_DOWN_WINDOW_MS / 1000
        )
        return compute_slow_down_delay(
            hits,
            config.SLOW_DOWN_DELAY_AFTER,
            config.SLOW_DOWN_DELAY_MS,
            config.SLOW_DOWN_MAX_DELAY_MS,
        )

    def reset(self) -> None:
        self.cache.clear()


limiter = FixedWindowRateLimiter(rate_limit_cache)


def _limited_response(rule: RateLimitRule, result: RateLimitResult) -> JSONResponse:
    retry_after = max(1, int(round(result.reset_seconds)))
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"success": False, "error": rule.message},
        headers={
            "Retry-After": str(retry_after),
            "RateLimit-Limit": str(rule.max_requests),
            "RateLimit-Remaining": "0",
            "RateLimit-Reset": str(retry_after),
        },
    )


async def rate_limit_middleware(request: Request, call_next):
    """
    Apply the general limit, the slow-down stage and the route-class limit.

    Requests outside /api are not counted.
    """
    path = request.url.path
    if not config.RATE_LIMIT_ENABLED or not path.startswith("/api"):
        return await call_next(request)

    ip = get_client_ip(request)

    general = RULES["general"]
    result = limiter.hit(general, ip)
    if not result.allowed:
        logger.warning(f"Rate limit exceeded: class=general, ip={ip}, path={path}, count={result.count}")
        return _limited_response(general, result)

    delay = limiter.slow_down_delay(ip)
    if delay > 0:
        logger.info(f"Slowing down request: ip={ip}, path={path}, delay_ms={int(delay * 1000)}")
        await asyncio.sleep(delay)

    route_rule = None
    route_class = resolve_route_class(path)
    if route_class:
        route_rule = RULES[route_class]
        route_result = limiter.hit(route_rule, ip)
        if not route_result.allowed:
            logger.warning(
                f"Rate limit exceeded: class={route_class}, ip={ip}, path={path}, count={route_result.count}"
            )
            return _limited_response(route_rule, route_result)

    response = await call_next(request)

    if route_rule and route_rule.skip_successful_requests and response.status_code < 400:
        limiter.undo(route_rule, ip)

    response.headers["RateLimit-Limit"] = str(general.max_requests)
    response.headers["RateLimit-Remaining"] = str(result.remaining)
    return response
