import logging
import sys

from shortlink.core.config import settings

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(funcName)s:%(lineno)d | %(message)s'

# Chatty third-party loggers; our own adapters log what matters about them
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "redis", "httpx")


def configure_logging(level: str = None) -> logging.Logger:
    """Route all records to stdout in one format and return the service logger."""
    resolved = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(
        level=resolved,
        format=LOG_FORMAT,
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    logging.getLogger("uvicorn.error").propagate = True
    # request_logging_middleware already logs every request
    logging.getLogger("uvicorn.access").disabled = True

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    service_logger = logging.getLogger("shortlink")
    service_logger.setLevel(resolved)
    return service_logger
