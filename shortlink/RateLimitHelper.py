import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette import status

from shortlink.core.config import settings
from shortlink.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# (method, path) pairs that spend rate limit tokens
RATE_LIMITED_ROUTES = {("POST", "/api/v1/urls")}


def build_rate_limiter() -> RateLimiter:
    return RateLimiter(
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        cleanup_interval_seconds=settings.RATE_LIMIT_CLEANUP_INTERVAL_SECONDS,
        stale_after_windows=settings.RATE_LIMIT_STALE_WINDOWS,
    )


def get_client_ip(request: Request) -> str:
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    xri = request.headers.get("x-real-ip")
    if xri:
        return xri.strip()
    return request.client.host if request.client else "unknown"


def is_rate_limited_path(request: Request) -> bool:
    return (request.method, request.url.path.rstrip("/") or "/") in RATE_LIMITED_ROUTES


def check_rate_limit(limiter: RateLimiter, request: Request):
    """Return a 429 response when the client is over its allotment, else None."""
    client_ip = get_client_ip(request)
    if limiter.allow(client_ip, settings.RATE_LIMIT_RPM):
        return None

    retry_after = limiter.retry_after(client_ip)
    logger.warning(f"Rate limit exceeded for {client_ip} on {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        headers={"Retry-After": str(retry_after)},
        content={
            "detail": f"Too many requests. Limit is {settings.RATE_LIMIT_RPM} per "
                      f"{settings.RATE_LIMIT_WINDOW_SECONDS} seconds."
        },
    )
