from __future__ import annotations

import logging

from core.scheduler import INITIAL, PERIODIC, Scheduler, Ticker


class FakeSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def test_ticker_starts_immediately_then_waits_each_interval() -> None:
    sleep = FakeSleep()
    ticks = Ticker(300, sleep=sleep).ticks()

    assert next(ticks) == INITIAL
    assert sleep.calls == []
    assert next(ticks) == PERIODIC
    assert next(ticks) == PERIODIC
    assert sleep.calls == [300, 300]


def test_scheduler_runs_initial_and_periodic_sweeps() -> None:
    sleep = FakeSleep()
    sweeps: list[int] = []
    scheduler = Scheduler(Ticker(60, sleep=sleep), lambda: sweeps.append(len(sweeps)))

    completed = scheduler.run(max_ticks=3)

    assert completed == 3
    assert sweeps == [0, 1, 2]
    assert sleep.calls == [60, 60]


def test_single_sweep_does_not_sleep() -> None:
    sleep = FakeSleep()
    sweeps: list[int] = []
    scheduler = Scheduler(Ticker(60, sleep=sleep), lambda: sweeps.append(1))

    scheduler.run(max_ticks=1)

    assert sweeps == [1]
    assert sleep.calls == []


def test_sweep_error_is_logged_and_loop_continues(caplog) -> None:
    calls: list[int] = []

    def sweep() -> None:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")

    scheduler = Scheduler(Ticker(1, sleep=FakeSleep()), sweep)

    with caplog.at_level(logging.ERROR):
        completed = scheduler.run(max_ticks=2)

    assert completed == 2
    assert len(calls) == 2
    assert "Unexpected error during initial sweep" in caplog.text
