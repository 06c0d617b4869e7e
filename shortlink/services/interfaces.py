"""Collaborator interfaces consumed by ``URLService``.

The service depends on these abstractions only; ``SQLURLStore`` and
``RedisURLCache`` are the production implementations.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from shortlink.core.domain import Analytics, ShortLink


class URLStore(ABC):
    """Durable, authoritative store of short links."""

    @abstractmethod
    def allocate_id(self) -> int:
        """Return the next value of an atomic, strictly increasing counter.

        Values are never handed out twice, even across processes.
        """

    @abstractmethod
    def insert(
        self,
        short_code: str,
        original_url: str,
        created_at: datetime,
        expires_at: Optional[datetime] = None,
        owner_id: Optional[str] = None,
        surrogate_id: Optional[int] = None,
    ) -> Tuple[int, datetime]:
        """Persist a new link and return ``(row id, created_at)``.

        Raises CodeConflict when ``short_code`` already exists.
        """

    @abstractmethod
    def lookup(self, short_code: str, now: datetime) -> Optional[ShortLink]:
        """Return the link for ``short_code`` unless missing or expired at ``now``."""

    @abstractmethod
    def exists(self, short_code: str) -> bool:
        """True if a row holds ``short_code``, expired or not."""

    @abstractmethod
    def increment_clicks(self, short_code: str, accessed_at: datetime) -> bool:
        """Add one click and set last_accessed; False if the code is gone."""

    @abstractmethod
    def read_analytics(self, short_code: str) -> Optional[Analytics]:
        pass

    @abstractmethod
    def purge_expired(self, now: datetime) -> List[str]:
        """Delete links expired at ``now`` and return their codes."""


class URLCache(ABC):
    """Derived code -> URL cache with per-key expiry.

    Implementations never raise on backend failure: reads degrade to a miss
    and writes to a no-op.
    """

    @abstractmethod
    def set(self, short_code: str, original_url: str, ttl: timedelta) -> bool:
        pass

    @abstractmethod
    def get(self, short_code: str) -> Optional[str]:
        pass

    @abstractmethod
    def delete(self, short_code: str) -> bool:
        pass

    @abstractmethod
    def exists(self, short_code: str) -> bool:
        pass
