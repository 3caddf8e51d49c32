"""Fixed-interval gate for outbound catalog calls."""

import logging
import time
from typing import Callable

from price_watch.config import Settings

logger = logging.getLogger(__name__)


class Pacer:
    """
    Space calls at least ``interval`` seconds apart.

    The Best Buy API answers rapid successive calls with 403s, so every
    catalog request goes through ``wait()``. The first call passes straight
    through; later calls sleep only for whatever is left of the interval.
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if interval < 0:
            raise ValueError("interval must not be negative")
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Pacer":
        return cls(settings.check_interval_ms / 1000.0)

    def wait(self) -> None:
        if self._last is not None:
            delay = self._last + self.interval - self._clock()
            if delay > 0:
                logger.debug("Pacer: sleeping %.3f s before next call", delay)
                self._sleep(delay)
        self._last = self._clock()
