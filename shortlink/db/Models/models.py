from sqlalchemy import BigInteger, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base

from shortlink.core.domain import utcnow

Base = declarative_base()

# Named atomic counters; "short_links" feeds generated short codes
class IdCounter(Base):
    __tablename__ = "id_counters"

    name = Column(String(64), primary_key=True)
    value = Column(BigInteger, nullable=False, default=0)

class ShortLinkItem(Base):
    __tablename__ = "short_links"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Unique constraint is the final guard against duplicate aliases
    short_code = Column(String(20), unique=True, index=True, nullable=False)

    # Counter value the code was derived from; NULL for custom aliases
    surrogate_id = Column(BigInteger, unique=True, nullable=True)

    original_url = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=True, index=True)
    owner_id = Column(String(64), nullable=True)

    click_count = Column(BigInteger, default=0, nullable=False)
    last_accessed = Column(DateTime, nullable=True)
