import logging
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from shortlink.core.config import settings
from redis.connection import ConnectionPool
import redis
import redis.exceptions

logger = logging.getLogger(__name__)


def build_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("postgresql"):
        # Server-side bound on every statement so a stuck query cannot hold a worker
        connect_args["options"] = f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        connect_args=connect_args,
    )


def build_redis_pool() -> ConnectionPool:
    return ConnectionPool(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        password=settings.REDIS_PASSWORD,
        db=settings.REDIS_DB,
        decode_responses=True,
        max_connections=50,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_keepalive=True,
    )


engine = build_engine(settings.sqlalchemy_database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

pool = build_redis_pool()
redis_client = redis.Redis(connection_pool=pool)


def verify_redis_connection(client: redis.Redis = None) -> bool:
    """PING Redis. A failure is reported, not raised: the service runs uncached without it."""
    try:
        (client or redis_client).ping()
    except redis.exceptions.RedisError as e:
        logger.warning(f"Redis unreachable, redirects will be served from the database only: {e}")
        return False
    logger.info("Redis connection verified")
    return True


def verify_database_connection(bind: Engine = None) -> bool:
    try:
        with (bind or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
    logger.info("Database connection verified")
    return True
