from datetime import datetime
from functools import wraps
from typing import List, Optional, Tuple
import logging

from sqlalchemy import or_, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from shortlink.core.domain import Analytics, ShortLink
from shortlink.core.errors import CodeConflict, StoreUnavailable
from shortlink.db.Models.models import IdCounter, ShortLinkItem
from shortlink.services.interfaces import URLStore

logger = logging.getLogger(__name__)

SHORT_LINK_COUNTER = "short_links"


def _to_domain(item: ShortLinkItem) -> ShortLink:
    return ShortLink(
        id=item.id,
        short_code=item.short_code,
        surrogate_id=item.surrogate_id,
        original_url=item.original_url,
        created_at=item.created_at,
        expires_at=item.expires_at,
        owner_id=item.owner_id,
        click_count=item.click_count or 0,
        last_accessed=item.last_accessed,
    )


def _not_expired(now: datetime):
    return or_(ShortLinkItem.expires_at.is_(None), ShortLinkItem.expires_at > now)


def next_counter_value(db: Session, name: str) -> int:
    counters = IdCounter.__table__
    stmt = (
        update(counters)
        .where(counters.c.name == name)
        .values(value=counters.c.value + 1)
        .returning(counters.c.value)
    )
    value = db.execute(stmt).scalar_one_or_none()
    if value is None:
        # First allocation ever for this counter
        db.add(IdCounter(name=name, value=1))
        db.flush()
        value = 1
    return value


def ensure_counter(db: Session, name: str = SHORT_LINK_COUNTER):
    if db.get(IdCounter, name) is None:
        db.add(IdCounter(name=name, value=0))
        try:
            db.commit()
        except IntegrityError:
            # created concurrently by another worker
            db.rollback()


def get_link_by_short_code(db: Session, short_code: str, now: datetime) -> Optional[ShortLinkItem]:
    return (
        db.query(ShortLinkItem)
        .filter(ShortLinkItem.short_code == short_code, _not_expired(now))
        .first()
    )


def short_code_exists(db: Session, short_code: str) -> bool:
    return db.query(ShortLinkItem.id).filter(ShortLinkItem.short_code == short_code).first() is not None


def increment_click(db: Session, short_code: str, accessed_at: datetime) -> int:
    updated = db.query(ShortLinkItem).filter(ShortLinkItem.short_code == short_code).update({
        ShortLinkItem.click_count: ShortLinkItem.click_count + 1,
        ShortLinkItem.last_accessed: accessed_at,
    }, synchronize_session=False)
    db.commit()
    return updated


def get_analytics(db: Session, short_code: str) -> Optional[Analytics]:
    row = (
        db.query(ShortLinkItem.short_code, ShortLinkItem.click_count, ShortLinkItem.last_accessed)
        .filter(ShortLinkItem.short_code == short_code)
        .first()
    )
    if row is None:
        return None
    return Analytics(short_code=row.short_code, click_count=row.click_count or 0, last_accessed=row.last_accessed)


def delete_expired(db: Session, now: datetime) -> List[str]:
    expired = ShortLinkItem.expires_at.isnot(None) & (ShortLinkItem.expires_at <= now)
    codes = [code for (code,) in db.query(ShortLinkItem.short_code).filter(expired).all()]
    if codes:
        db.query(ShortLinkItem).filter(ShortLinkItem.short_code.in_(codes)).delete(synchronize_session=False)
        db.commit()
    return codes


def _store_errors(func):
    """Surface driver and pool failures as StoreUnavailable."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (DBAPIError, PoolTimeoutError) as e:
            logger.error("Durable store call %s failed: %s", func.__name__, e)
            raise StoreUnavailable(f"Durable store unavailable during {func.__name__}") from e

    return wrapper


class SQLURLStore(URLStore):
    """``URLStore`` over SQLAlchemy; every call runs in its own session."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @_store_errors
    def allocate_id(self) -> int:
        for _ in range(2):
            with self.session_factory() as db:
                try:
                    value = next_counter_value(db, SHORT_LINK_COUNTER)
                    db.commit()
                    return value
                except IntegrityError:
                    # Lost the race to create the counter row; it exists now
                    db.rollback()
        raise StoreUnavailable("Could not allocate an id from the short link counter")

    @_store_errors
    def insert(
        self,
        short_code: str,
        original_url: str,
        created_at: datetime,
        expires_at: Optional[datetime] = None,
        owner_id: Optional[str] = None,
        surrogate_id: Optional[int] = None,
    ) -> Tuple[int, datetime]:
        item = ShortLinkItem(
            short_code=short_code,
            surrogate_id=surrogate_id,
            original_url=original_url,
            created_at=created_at,
            expires_at=expires_at,
            owner_id=owner_id,
            click_count=0,
        )
        with self.session_factory() as db:
            db.add(item)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                logger.warning("IntegrityError creating short_code=%s: %s", short_code, e.orig)
                raise CodeConflict(short_code) from e
            return item.id, item.created_at

    @_store_errors
    def lookup(self, short_code: str, now: datetime) -> Optional[ShortLink]:
        with self.session_factory() as db:
            item = get_link_by_short_code(db, short_code, now)
            return _to_domain(item) if item else None

    @_store_errors
    def exists(self, short_code: str) -> bool:
        with self.session_factory() as db:
            return short_code_exists(db, short_code)

    @_store_errors
    def increment_clicks(self, short_code: str, accessed_at: datetime) -> bool:
        with self.session_factory() as db:
            return increment_click(db, short_code, accessed_at) > 0

    @_store_errors
    def read_analytics(self, short_code: str) -> Optional[Analytics]:
        with self.session_factory() as db:
            return get_analytics(db, short_code)

    @_store_errors
    def purge_expired(self, now: datetime) -> List[str]:
        with self.session_factory() as db:
            return delete_expired(db, now)
