import logging
from datetime import timedelta
from typing import Optional

import redis
import redis.exceptions

from shortlink.services.interfaces import URLCache

logger = logging.getLogger(__name__)
KEY_PREFIX = "url:"


def cache_key(short_code: str) -> str:
    return f"{KEY_PREFIX}{short_code}"


class RedisURLCache(URLCache):
    """Cache of short code -> original URL kept in Redis under ``url:{code}``.

    Every Redis failure is logged and swallowed: reads report a miss, writes
    report False. The durable store stays the source of truth.
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    def get(self, short_code: str) -> Optional[str]:
        try:
            cached_url = self.client.get(cache_key(short_code))
        except redis.exceptions.RedisError as e:
            logger.warning(f"Redis GET failed for {short_code}, treating as miss: {e}")
            return None

        if cached_url is None:
            return None
        if isinstance(cached_url, (bytes, bytearray)):
            cached_url = cached_url.decode()
        return cached_url

    def set(self, short_code: str, original_url: str, ttl: timedelta) -> bool:
        ttl_ms = int(ttl.total_seconds() * 1000)
        if ttl_ms <= 0:
            logger.debug(f"Not caching {short_code}: non-positive TTL {ttl}")
            return False
        try:
            self.client.set(cache_key(short_code), original_url, px=ttl_ms)
        except redis.exceptions.RedisError as e:
            logger.warning(f"Failed to cache {short_code}, Redis unavailable: {e}")
            return False
        logger.debug(f"Cached {short_code} -> {original_url[:50]} for {ttl_ms}ms")
        return True

    def delete(self, short_code: str) -> bool:
        try:
            return bool(self.client.delete(cache_key(short_code)))
        except redis.exceptions.RedisError as e:
            logger.warning(f"Failed to evict {short_code} from cache: {e}")
            return False

    def exists(self, short_code: str) -> bool:
        try:
            return bool(self.client.exists(cache_key(short_code)))
        except redis.exceptions.RedisError as e:
            logger.warning(f"Redis EXISTS failed for {short_code}: {e}")
            return False
