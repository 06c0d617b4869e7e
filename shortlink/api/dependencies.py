import threading
import time
from datetime import timedelta
from typing import Optional

from shortlink.core.config import settings
from shortlink.db.Connection import database
from shortlink.db.repository import SQLURLStore
from shortlink.services.RedisURLCache import RedisURLCache
from shortlink.services.shortener import URLService

_url_service: Optional[URLService] = None
_url_service_lock = threading.Lock()


def get_url_service() -> URLService:
    """FastAPI dependency: the process-wide URLService, built on first use."""
    global _url_service
    if _url_service is None:
        # sync handlers run on a thread pool; build exactly once
        with _url_service_lock:
            if _url_service is None:
                _url_service = URLService(
                    store=SQLURLStore(database.SessionLocal),
                    cache=RedisURLCache(database.redis_client),
                    base_url=settings.BASE_URL,
                    default_cache_ttl=timedelta(seconds=settings.DEFAULT_CACHE_TTL_SECONDS),
                )
    return _url_service


def reset_url_service():
    global _url_service
    with _url_service_lock:
        _url_service = None


def request_deadline() -> float:
    """Monotonic deadline for the current request's store and cache calls."""
    return time.monotonic() + settings.REQUEST_TIMEOUT_SECONDS
