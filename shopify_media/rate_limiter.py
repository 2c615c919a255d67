"""
Rate Limiter — The single throttle gate in front of every Shopify call.

Shopify's Admin API enforces a leaky bucket per store. Rather than model the
bucket, the aggregator spaces calls out: at most one upstream call may start
per `interval` seconds, no matter how many extractors or replace steps are
in flight.

The limiter owns its "time of last call" and updates it under a lock, with
the sleep inside the critical section, so two callers can never both observe
a free slot. Clock and sleep are injectable so tests can drive it without
waiting. One instance is normally shared by every client in the process;
callers that want per-shop isolation can create one per shop.
"""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """Enforces a minimum interval between consecutive upstream calls.

    Attributes:
        interval: Minimum seconds between the start of two calls.
    """

    def __init__(
        self,
        interval: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_call: Optional[float] = None

    def wait(self) -> float:
        """Block until the next call may proceed and claim that slot.

        Returns:
            The number of seconds spent waiting.
        """
        with self._lock:
            waited = 0.0
            if self._last_call is not None:
                waited = max(0.0, self.interval - (self._clock() - self._last_call))
                if waited > 0:
                    logger.debug("Throttling upstream call for %.2fs", waited)
                    self._sleep(waited)
            self._last_call = self._clock()
            return waited

    @property
    def last_call(self) -> Optional[float]:
        return self._last_call


DEFAULT_INTERVAL = 2.0

_shared_limiter: Optional[RateLimiter] = None
_shared_lock = threading.Lock()


def get_shared_limiter(interval: Optional[float] = None) -> RateLimiter:
    """Return the process-wide limiter, creating it on first use.

    The latest explicit interval wins: a caller asking for a different
    spacing retunes the shared instance. Without an interval the current
    one is kept (2.0s for a new limiter).
    """
    global _shared_limiter
    with _shared_lock:
        if _shared_limiter is None:
            _shared_limiter = RateLimiter(DEFAULT_INTERVAL if interval is None else interval)
        elif interval is not None and _shared_limiter.interval != interval:
            logger.info("Shared rate limit interval changed from %.2fs to %.2fs",
                        _shared_limiter.interval, interval)
            _shared_limiter.interval = interval
        return _shared_limiter
