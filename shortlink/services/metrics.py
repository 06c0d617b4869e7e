from datetime import datetime
import logging

from shortlink.services.interfaces import URLStore

logger = logging.getLogger(__name__)


def record_click(store: URLStore, short_code: str, accessed_at: datetime):
    """Bump the click counters for ``short_code``; failures are logged and dropped."""
    try:
        updated = store.increment_clicks(short_code, accessed_at)
        if updated:
            logger.debug("record_click: DB counters updated for %s", short_code)
        else:
            logger.info("record_click: %s vanished before its click was recorded", short_code)
    except Exception:
        logger.exception("record_click: failed to update DB for %s", short_code)


def run_now(func, *args, **kwargs):
    """Scheduler that runs the task in the caller's thread."""
    func(*args, **kwargs)
