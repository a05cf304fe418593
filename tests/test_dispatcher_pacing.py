from __future__ import annotations

import pytest

from core.dispatcher import Dispatcher, Pacer
from core.errors import DeliveryError
from core.models import NotificationPayload


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeNotifier:
    def __init__(self, clock: FakeClock, fail: bool = False) -> None:
        self._clock = clock
        self.fail = fail
        self.attempts: list[float] = []

    def send(self, payload: NotificationPayload) -> None:
        self.attempts.append(self._clock.now)
        if self.fail:
            raise DeliveryError("Webhook error 429", status=429, body="rate_limited")


def _payload(event_id: int) -> NotificationPayload:
    return NotificationPayload(
        title=f"kill {event_id}",
        link=f"https://zkillboard.com/kill/{event_id}/",
        color="good",
        fallback=f"kill {event_id}",
    )


def test_consecutive_sends_are_spaced_by_interval() -> None:
    clock = FakeClock()
    notifier = FakeNotifier(clock)
    dispatcher = Dispatcher(notifier, Pacer(1.0, clock=clock.time, sleep=clock.sleep))

    for event_id in range(4):
        dispatcher.send(_payload(event_id))

    assert len(notifier.attempts) == 4
    assert notifier.attempts[-1] - notifier.attempts[0] >= 3 * 1.0
    gaps = [later - earlier for earlier, later in zip(notifier.attempts, notifier.attempts[1:])]
    assert all(gap >= 1.0 for gap in gaps)


def test_first_send_does_not_wait() -> None:
    clock = FakeClock()
    dispatcher = Dispatcher(FakeNotifier(clock), Pacer(1.0, clock=clock.time, sleep=clock.sleep))

    dispatcher.send(_payload(1))

    assert clock.sleeps == []


def test_slow_work_between_sends_counts_towards_interval() -> None:
    clock = FakeClock()
    dispatcher = Dispatcher(FakeNotifier(clock), Pacer(1.0, clock=clock.time, sleep=clock.sleep))

    dispatcher.send(_payload(1))
    clock.now += 0.75
    dispatcher.send(_payload(2))

    assert clock.sleeps == [pytest.approx(0.25)]


def test_failed_attempt_is_paced_and_not_retried() -> None:
    clock = FakeClock()
    notifier = FakeNotifier(clock, fail=True)
    dispatcher = Dispatcher(notifier, Pacer(1.0, clock=clock.time, sleep=clock.sleep))

    with pytest.raises(DeliveryError) as excinfo:
        dispatcher.send(_payload(1))
    notifier.fail = False
    dispatcher.send(_payload(2))

    assert excinfo.value.body == "rate_limited"
    assert len(notifier.attempts) == 2
    assert notifier.attempts[1] - notifier.attempts[0] >= 1.0
