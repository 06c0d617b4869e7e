"""In-process fixed-window rate limiter.

Each identity (usually a client IP) owns one window holding a token count and
the moment the window opened. A check inside the window spends one token; the
first check after the window has elapsed resets it to the full allotment and
spends one token from the fresh window. Up to 2x the nominal rate can pass
across a window boundary.

Locking is split in two levels so unrelated identities never contend: the
identity table lock is held only to look up or insert a window and to delete
stale ones, while each window carries its own lock for the token arithmetic.

The limiter is per process: several workers each enforce their own limit.
"""
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    tokens: int
    window_start: float
    retired: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class RateLimiter:

    def __init__(
        self,
        window_seconds: float = 60,
        cleanup_interval_seconds: float = 300,
        stale_after_windows: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ):
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if cleanup_interval_seconds <= 0:
            raise ValueError("cleanup_interval_seconds must be > 0")
        if stale_after_windows < 1:
            raise ValueError("stale_after_windows must be >= 1")

        self.window_seconds = window_seconds
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self.stale_after_windows = stale_after_windows
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._table_lock = threading.Lock()
        self._stop = threading.Event()
        self._reclaimer: Optional[threading.Thread] = None

    def allow(self, identity: str, rate: int) -> bool:
        """Spend one token of ``identity``'s allotment of ``rate`` per window."""
        if rate <= 0:
            return False

        while True:
            window = self._windows.get(identity)
            if window is None:
                with self._table_lock:
                    window = self._windows.get(identity)
                    if window is None:
                        # Fresh identity: full allotment, this request takes one
                        self._windows[identity] = _Window(tokens=rate - 1, window_start=self._clock())
                        return True

            with window.lock:
                if window.retired:
                    # reclaimed between lookup and lock; use the replacement
                    continue
                now = self._clock()
                if now - window.window_start > self.window_seconds:
                    window.tokens = rate - 1
                    window.window_start = now
                    return True
                if window.tokens > 0:
                    window.tokens -= 1
                    return True
                return False

    def retry_after(self, identity: str) -> int:
        """Whole seconds until ``identity``'s current window resets."""
        window = self._windows.get(identity)
        if window is None:
            return 0
        remaining = self.window_seconds - (self._clock() - window.window_start)
        return max(0, int(remaining) + 1)

    def reclaim(self) -> int:
        """Drop identities whose window went stale; returns how many were dropped.

        A dropped identity gets a fresh full window on its next request, which
        it would have got anyway since its old window had long elapsed.
        """
        horizon = self.stale_after_windows * self.window_seconds
        removed = 0
        with self._table_lock:
            now = self._clock()
            for identity in list(self._windows):
                window = self._windows[identity]
                with window.lock:
                    if now - window.window_start > horizon:
                        window.retired = True
                        del self._windows[identity]
                        removed += 1
        if removed:
            logger.debug("Reclaimed %d idle rate limit windows", removed)
        return removed

    def __len__(self):
        return len(self._windows)

    def start(self):
        """Run ``reclaim`` every ``cleanup_interval_seconds`` on a daemon thread."""
        if self._reclaimer is not None and self._reclaimer.is_alive():
            return
        self._stop.clear()
        self._reclaimer = threading.Thread(
            target=self._reclaim_loop, name="rate-limit-reclaimer", daemon=True
        )
        self._reclaimer.start()
        logger.info(
            "Rate limit reclaimer started (interval=%ss, stale after %s windows)",
            self.cleanup_interval_seconds, self.stale_after_windows,
        )

    def stop(self, timeout: float = 5.0):
        self._stop.set()
        if self._reclaimer is not None:
            self._reclaimer.join(timeout)
            self._reclaimer = None

    def _reclaim_loop(self):
        while not self._stop.wait(self.cleanup_interval_seconds):
            try:
                self.reclaim()
            except Exception:
                logger.exception("Rate limit reclamation failed")
