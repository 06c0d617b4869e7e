from datetime import timedelta
from unittest.mock import MagicMock

import pytest
import redis

from shortlink.services.RedisURLCache import RedisURLCache, cache_key


class TestRedisURLCache:

    @pytest.fixture(autouse=True)
    def setup(self, redis_client):
        self.redis_client = redis_client
        self.cache = RedisURLCache(redis_client)

    def test_cache_key_schema(self):
        assert cache_key("abc123") == "url:abc123"

    def test_set_uses_millisecond_ttl(self):
        assert self.cache.set("abc123", "https://example.com/x", timedelta(hours=24)) is True
        self.redis_client.set.assert_called_once_with("url:abc123", "https://example.com/x", px=86_400_000)

    def test_set_skips_non_positive_ttl(self):
        assert self.cache.set("abc123", "https://example.com/x", timedelta(0)) is False
        assert self.cache.set("abc123", "https://example.com/x", timedelta(seconds=-5)) is False
        self.redis_client.set.assert_not_called()

    def test_get_hit_and_miss(self):
        self.redis_client.get.return_value = "https://example.com/x"
        assert self.cache.get("abc123") == "https://example.com/x"
        self.redis_client.get.assert_called_with("url:abc123")

        self.redis_client.get.return_value = None
        assert self.cache.get("abc123") is None

    def test_get_decodes_bytes(self):
        self.redis_client.get.return_value = b"https://example.com/bytes"
        assert self.cache.get("abc123") == "https://example.com/bytes"

    def test_delete_and_exists(self):
        self.redis_client.delete.return_value = 1
        self.redis_client.exists.return_value = 1
        assert self.cache.delete("abc123") is True
        assert self.cache.exists("abc123") is True
        self.redis_client.delete.assert_called_once_with("url:abc123")
        self.redis_client.exists.assert_called_once_with("url:abc123")

        self.redis_client.exists.return_value = 0
        assert self.cache.exists("abc123") is False

    @pytest.mark.parametrize(
        "error",
        [redis.exceptions.ConnectionError("down"), redis.exceptions.TimeoutError("slow")],
    )
    def test_backend_failures_degrade(self, error):
        self.redis_client.get.side_effect = error
        self.redis_client.set.side_effect = error
        self.redis_client.delete.side_effect = error
        self.redis_client.exists.side_effect = error

        assert self.cache.get("abc123") is None
        assert self.cache.set("abc123", "https://example.com/x", timedelta(minutes=1)) is False
        assert self.cache.delete("abc123") is False
        assert self.cache.exists("abc123") is False


def test_non_redis_errors_propagate():
    client = MagicMock(spec=redis.Redis)
    client.get.side_effect = TypeError("bug")
    with pytest.raises(TypeError):
        RedisURLCache(client).get("abc123")
