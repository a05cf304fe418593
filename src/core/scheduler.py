"""Sweep scheduling (core domain).

One sweep runs immediately, then one per interval for as long as the process
lives. The loop is synchronous, so a slow sweep simply delays the next tick.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterator, Optional

LOGGER = logging.getLogger(__name__)

INITIAL = "initial"
PERIODIC = "periodic"


class Ticker:
    """Yields an initial tick right away and a periodic tick every interval."""

    def __init__(self, interval: float, sleep: Callable[[float], None] = time.sleep) -> None:
        self._interval = interval
        self._sleep = sleep

    def ticks(self) -> Iterator[str]:
        yield INITIAL
        while True:
            self._sleep(self._interval)
            yield PERIODIC


class Scheduler:
    """Drives a sweep function from a ticker."""

    def __init__(
        self,
        ticker: Ticker,
        sweep: Callable[[], object],
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._ticker = ticker
        self._sweep = sweep
        self._logger = logger or LOGGER

    def run(self, max_ticks: Optional[int] = None) -> int:
        """Run sweeps until max_ticks is reached; forever when it is None."""

        completed = 0
        if max_ticks is not None and max_ticks <= 0:
            return completed
        for tick in self._ticker.ticks():
            self._logger.debug("Starting %s sweep", tick)
            try:
                self._sweep()
            except Exception:
                self._logger.exception("Unexpected error during %s sweep", tick)
            completed += 1
            # Stop before the ticker sleeps again.
            if max_ticks is not None and completed >= max_ticks:
                break
        return completed
