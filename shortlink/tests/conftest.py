import threading
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest
import redis
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from shortlink.api.dependencies import get_url_service
from shortlink.core.domain import Analytics, ShortLink, utcnow
from shortlink.core.errors import CodeConflict
from shortlink.db.Models.models import Base
from shortlink.db.repository import SQLURLStore, ensure_counter
from shortlink.main import app
from shortlink.services.RedisURLCache import RedisURLCache
from shortlink.services.interfaces import URLCache, URLStore
from shortlink.services.rate_limiter import RateLimiter
from shortlink.services.shortener import URLService

BASE_URL = "https://sho.rt"


class InMemoryURLStore(URLStore):
    """Dict-backed store with the same contract as SQLURLStore."""

    def __init__(self, start: int = 0):
        self.counter = start
        self.rows: Dict[str, ShortLink] = {}
        self.lock = threading.Lock()

    def allocate_id(self) -> int:
        with self.lock:
            self.counter += 1
            return self.counter

    def insert(self, short_code, original_url, created_at, expires_at=None, owner_id=None, surrogate_id=None) -> Tuple[int, datetime]:
        with self.lock:
            if short_code in self.rows:
                raise CodeConflict(short_code)
            row_id = len(self.rows) + 1
            self.rows[short_code] = ShortLink(
                id=row_id, short_code=short_code, surrogate_id=surrogate_id, original_url=original_url,
                created_at=created_at, expires_at=expires_at, owner_id=owner_id,
            )
            return row_id, created_at

    def lookup(self, short_code, now) -> Optional[ShortLink]:
        link = self.rows.get(short_code)
        if link is None or link.is_expired(now):
            return None
        return link

    def exists(self, short_code) -> bool:
        return short_code in self.rows

    def increment_clicks(self, short_code, accessed_at) -> bool:
        with self.lock:
            link = self.rows.get(short_code)
            if link is None:
                return False
            link.click_count += 1
            link.last_accessed = accessed_at
            return True

    def read_analytics(self, short_code) -> Optional[Analytics]:
        link = self.rows.get(short_code)
        if link is None:
            return None
        return Analytics(link.short_code, link.click_count, link.last_accessed)

    def purge_expired(self, now) -> List[str]:
        with self.lock:
            codes = [c for c, link in self.rows.items() if link.is_expired(now)]
            for code in codes:
                del self.rows[code]
            return codes


class InMemoryURLCache(URLCache):
    """Cache double honouring TTLs against the (freezable) wall clock."""

    def __init__(self):
        self.entries: Dict[str, Tuple[str, datetime]] = {}
        self.ttls: Dict[str, timedelta] = {}

    def set(self, short_code, original_url, ttl) -> bool:
        if ttl <= timedelta(0):
            return False
        self.entries[short_code] = (original_url, utcnow() + ttl)
        self.ttls[short_code] = ttl
        return True

    def get(self, short_code) -> Optional[str]:
        entry = self.entries.get(short_code)
        if entry is None:
            return None
        url, expires = entry
        if utcnow() >= expires:
            del self.entries[short_code]
            return None
        return url

    def delete(self, short_code) -> bool:
        return self.entries.pop(short_code, None) is not None

    def exists(self, short_code) -> bool:
        return self.get(short_code) is not None


@pytest.fixture
def memory_store():
    return InMemoryURLStore()


@pytest.fixture
def memory_cache():
    return InMemoryURLCache()


@pytest.fixture
def make_service():
    def _make(store, cache, **kwargs):
        return URLService(store, cache, BASE_URL, **kwargs)

    return _make


@pytest.fixture
def service(make_service, memory_store, memory_cache):
    return make_service(memory_store, memory_cache)


@pytest.fixture
def session_factory(tmp_path):
    """Fresh SQLite database file per test."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'shortlink.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    with factory() as db:
        ensure_counter(db)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def sql_store(session_factory):
    return SQLURLStore(session_factory)


@pytest.fixture
def redis_client():
    client = MagicMock(spec=redis.Redis)
    client.get.return_value = None
    client.exists.return_value = 0
    client.delete.return_value = 0
    return client


@pytest.fixture
def api_service(make_service, sql_store, redis_client):
    return make_service(sql_store, RedisURLCache(redis_client))


@pytest.fixture
def client(api_service):
    """Test client wired to a SQLite store and a mocked Redis."""
    original_limiter = app.state.rate_limiter
    app.state.rate_limiter = RateLimiter(window_seconds=60)
    app.dependency_overrides[get_url_service] = lambda: api_service
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.rate_limiter = original_limiter


@pytest.fixture
def sample_urls():
    """Provides sample URLs for testing."""
    return [
        "https://example.com/test1",
        "https://google.com/search?q=test",
        "https://github.com/user/repo",
    ]
