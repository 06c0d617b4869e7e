"""Short-code allocation and cache-aside resolution.

Creation derives generated codes from the durable store's atomic counter, so
uniqueness follows from counter monotonicity. Custom aliases rely on the
store's unique constraint. Resolution reads the cache first and falls back
to the store, repopulating the cache; click counts are updated off the
response path.
"""
import logging
import re
import time
from datetime import datetime, timedelta
from typing import Callable, Optional
from urllib.parse import urlparse

from shortlink.core.domain import Analytics, ShortenResult, utcnow
from shortlink.core.errors import (
    AliasTaken,
    CodeConflict,
    DeadlineExceeded,
    InvalidAlias,
    InvalidTTL,
    InvalidURL,
    NotFound,
    ShortLinkError,
)
from shortlink.services.interfaces import URLCache, URLStore
from shortlink.services.metrics import record_click, run_now
from shortlink.utils.encoding import encode_base62

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = timedelta(hours=24)
MAX_URL_LENGTH = 2048
MAX_ALLOCATION_ATTEMPTS = 5
CUSTOM_ALIAS_PATTERN = re.compile(r"^[A-Za-z0-9_-]{3,20}$")
# Fixed single-segment routes served ahead of the redirect route
RESERVED_ALIASES = frozenset({"docs", "redoc", "health", "ready"})


def validate_url(original_url: str) -> str:
    if not original_url or not isinstance(original_url, str):
        raise InvalidURL("URL must be a non-empty string")
    if len(original_url) > MAX_URL_LENGTH:
        raise InvalidURL(f"URL must be less than {MAX_URL_LENGTH} characters")
    try:
        parsed = urlparse(original_url)
        host = parsed.hostname
    except ValueError:
        raise InvalidURL()
    if not parsed.scheme or not host:
        raise InvalidURL("URL must include a scheme and a host")
    return original_url


def validate_custom_alias(custom_alias: str) -> str:
    if not CUSTOM_ALIAS_PATTERN.match(custom_alias):
        raise InvalidAlias()
    if custom_alias in RESERVED_ALIASES:
        raise InvalidAlias(f"Custom alias is reserved: {custom_alias}")
    return custom_alias


def check_deadline(deadline: Optional[float], operation: str):
    """Abort when the caller's ``time.monotonic()`` deadline has passed."""
    if deadline is not None and time.monotonic() >= deadline:
        logger.warning(f"Deadline exceeded before {operation}")
        raise DeadlineExceeded(operation)


class URLService:

    def __init__(
        self,
        store: URLStore,
        cache: URLCache,
        base_url: str,
        default_cache_ttl: timedelta = DEFAULT_CACHE_TTL,
    ):
        self.store = store
        self.cache = cache
        self.base_url = base_url.rstrip("/")
        self.default_cache_ttl = default_cache_ttl

    def short_url(self, short_code: str) -> str:
        return f"{self.base_url}/{short_code}"

    def cache_ttl(self, expires_at: Optional[datetime], now: datetime) -> timedelta:
        """TTL for a cache entry; never longer than the link has left to live."""
        if expires_at is None:
            return self.default_cache_ttl
        return expires_at - now

    def _cache_get(self, short_code: str) -> Optional[str]:
        try:
            return self.cache.get(short_code)
        except Exception:
            logger.exception(f"Cache read failed for {short_code}, falling back to store")
            return None

    def _populate_cache(self, short_code: str, original_url: str, expires_at: Optional[datetime], deadline: Optional[float]):
        if deadline is not None and time.monotonic() >= deadline:
            logger.info(f"Skipping cache population for {short_code}: deadline passed")
            return
        try:
            self.cache.set(short_code, original_url, self.cache_ttl(expires_at, utcnow()))
        except Exception:
            logger.exception(f"Cache population failed for {short_code}")

    def shorten(
        self,
        original_url: str,
        custom_alias: Optional[str] = None,
        ttl_days: Optional[int] = None,
        owner_id: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> ShortenResult:
        validate_url(original_url)
        if custom_alias is not None:
            validate_custom_alias(custom_alias)

        now = utcnow()
        expires_at = None
        if ttl_days and ttl_days > 0:
            try:
                expires_at = now + timedelta(days=ttl_days)
            except OverflowError:
                raise InvalidTTL(f"ttl_days={ttl_days} puts the expiry past the representable date range")

        if custom_alias is not None:
            short_code = self._create_with_alias(custom_alias, original_url, now, expires_at, owner_id, deadline)
        else:
            short_code = self._create_with_generated_code(original_url, now, expires_at, owner_id, deadline)

        self._populate_cache(short_code, original_url, expires_at, deadline)

        logger.info(f"Shortened {original_url[:50]}... to {short_code}")
        return ShortenResult(short_url=self.short_url(short_code), short_code=short_code, expires_at=expires_at)

    def _create_with_alias(self, alias, original_url, now, expires_at, owner_id, deadline) -> str:
        # Fast-path rejection only; the unique constraint decides races
        check_deadline(deadline, "alias existence check")
        if self.store.exists(alias):
            logger.warning(f"Custom alias collision: '{alias}'")
            raise AliasTaken(alias)

        check_deadline(deadline, "insert")
        try:
            self.store.insert(alias, original_url, now, expires_at, owner_id)
        except CodeConflict:
            logger.warning(f"Custom alias '{alias}' taken concurrently")
            raise AliasTaken(alias)
        return alias

    def _create_with_generated_code(self, original_url, now, expires_at, owner_id, deadline) -> str:
        for attempt in range(1, MAX_ALLOCATION_ATTEMPTS + 1):
            check_deadline(deadline, "id allocation")
            surrogate_id = self.store.allocate_id()
            short_code = encode_base62(surrogate_id)
            if short_code in RESERVED_ALIASES:
                logger.info(f"Skipping counter value {surrogate_id}: {short_code} is a reserved path")
                continue

            check_deadline(deadline, "insert")
            try:
                self.store.insert(short_code, original_url, now, expires_at, owner_id, surrogate_id=surrogate_id)
                return short_code
            except CodeConflict:
                # A custom alias already spells this counter value
                logger.info(f"Generated code {short_code} taken by an alias, attempt {attempt}/{MAX_ALLOCATION_ATTEMPTS}")

        raise ShortLinkError(
            "allocation_exhausted",
            f"Failed to allocate a unique short code after {MAX_ALLOCATION_ATTEMPTS} attempts",
        )

    def resolve(
        self,
        short_code: str,
        deadline: Optional[float] = None,
        schedule: Optional[Callable] = None,
    ) -> str:
        """Return the target URL and hand the click increment to ``schedule``.

        ``schedule`` is called as ``schedule(func, *args)``; the HTTP layer
        passes ``BackgroundTasks.add_task`` so the increment runs after the
        response is sent. Without one the increment runs inline.
        """
        original_url = self._lookup(short_code, deadline)
        (schedule or run_now)(record_click, self.store, short_code, utcnow())
        return original_url

    def _lookup(self, short_code: str, deadline: Optional[float]) -> str:
        """Two-tier lookup: cache, then store with cache repopulation."""
        check_deadline(deadline, "cache lookup")
        cached_url = self._cache_get(short_code)
        if cached_url is not None:
            logger.info(f"Redirect cache HIT for {short_code}")
            return cached_url

        check_deadline(deadline, "store lookup")
        now = utcnow()
        link = self.store.lookup(short_code, now)
        if link is None or link.is_expired(now):
            logger.warning(f"Short code not found or expired: {short_code}")
            raise NotFound(short_code)

        self._populate_cache(short_code, link.original_url, link.expires_at, deadline)
        logger.info(f"Redirect cache MISS/DB HIT for {short_code} -> {link.original_url[:50]}...")
        return link.original_url

    def get_analytics(self, short_code: str, deadline: Optional[float] = None) -> Analytics:
        check_deadline(deadline, "analytics read")
        analytics = self.store.read_analytics(short_code)
        if analytics is None:
            raise NotFound(short_code)
        return analytics

    def purge_expired(self) -> list:
        """Delete expired links from the store and evict them from the cache."""
        codes = self.store.purge_expired(utcnow())
        for short_code in codes:
            self.cache.delete(short_code)
        if codes:
            logger.info(f"Purged {len(codes)} expired links")
        return codes
