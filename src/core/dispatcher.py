"""Rate-limited notification delivery (core domain)."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from core.models import NotificationPayload
from core.ports import NotifierPort

LOGGER = logging.getLogger(__name__)


class Pacer:
    """Blocks until a minimum interval has passed since the last attempt."""

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last_attempt: Optional[float] = None

    def wait(self) -> None:
        if self._last_attempt is None:
            return
        remaining = self._interval - (self._clock() - self._last_attempt)
        if remaining > 0:
            self._sleep(remaining)

    def mark(self) -> None:
        self._last_attempt = self._clock()


class Dispatcher:
    """Delivers payloads one at a time, honouring the webhook rate limit.

    Each call makes exactly one attempt. The attempt time is recorded even
    when delivery fails, so a failing webhook is paced like a healthy one.
    """

    def __init__(self, notifier: NotifierPort, pacer: Pacer, logger: Optional[logging.Logger] = None) -> None:
        self._notifier = notifier
        self._pacer = pacer
        self._logger = logger or LOGGER

    def send(self, payload: NotificationPayload) -> None:
        self._pacer.wait()
        try:
            self._notifier.send(payload)
        finally:
            self._pacer.mark()
        self._logger.debug("Delivered notification %s", payload.link)
