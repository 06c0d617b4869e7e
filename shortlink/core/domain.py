from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp; every stored datetime uses this convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class ShortLink:
    short_code: str
    original_url: str
    created_at: datetime
    id: Optional[int] = None
    surrogate_id: Optional[int] = None
    expires_at: Optional[datetime] = None
    owner_id: Optional[str] = None
    click_count: int = 0
    last_accessed: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


@dataclass(frozen=True)
class Analytics:
    short_code: str
    click_count: int
    last_accessed: Optional[datetime] = None


@dataclass(frozen=True)
class ShortenResult:
    short_url: str
    short_code: str
    expires_at: Optional[datetime] = None
