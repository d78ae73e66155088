from __future__ import annotations

import logging
import threading
import time
from typing import List

import pytest

from services.ticker import RefreshTicker


def test_tick_applies_only_while_running() -> None:
    applied: List[int] = []
    ticker = RefreshTicker(interval=60, refresh=lambda: 1, apply=applied.append)

    assert ticker.tick() is False
    assert applied == []

    with ticker:
        assert ticker.running
        assert ticker.tick() is True

    assert not ticker.running
    assert ticker.tick() is False
    assert applied == [1]


def test_result_finishing_after_stop_is_discarded() -> None:
    applied: List[str] = []
    ticker: RefreshTicker[str] = RefreshTicker(interval=60, refresh=lambda: "late", apply=applied.append)

    def refresh_and_stop() -> str:
        ticker.stop()
        return "late"

    ticker._refresh = refresh_and_stop  # type: ignore[assignment]
    ticker.start()

    assert ticker.tick() is False
    assert applied == []


def test_stop_does_not_wait_for_in_flight_refresh() -> None:
    started = threading.Event()
    release = threading.Event()
    finished = threading.Event()
    applied: List[str] = []

    def slow_refresh() -> str:
        started.set()
        release.wait(5.0)
        return "late"

    ticker: RefreshTicker[str] = RefreshTicker(interval=0.01, refresh=slow_refresh, apply=applied.append)
    original_tick = ticker._tick

    def tracked_tick(generation: int) -> bool:
        try:
            return original_tick(generation)
        finally:
            finished.set()

    ticker._tick = tracked_tick  # type: ignore[assignment]
    ticker.start()
    assert started.wait(2.0)

    began = time.monotonic()
    ticker.stop()
    elapsed = time.monotonic() - began

    release.set()
    assert finished.wait(2.0)
    assert elapsed < 0.5
    assert applied == []


def test_apply_callback_can_stop_its_own_ticker() -> None:
    applied: List[int] = []
    ticker: RefreshTicker[int] = RefreshTicker(interval=60, refresh=lambda: 3, apply=applied.append)

    def apply_and_stop(value: int) -> None:
        applied.append(value)
        ticker.stop()

    ticker._apply = apply_and_stop  # type: ignore[assignment]
    ticker.start()

    assert ticker.tick() is True
    assert applied == [3]
    assert not ticker.running


def test_failed_refresh_keeps_previous_state(caplog) -> None:
    applied: List[int] = []
    values = iter([1])

    def refresh() -> int:
        return next(values)

    ticker = RefreshTicker(interval=60, refresh=refresh, apply=applied.append)
    with ticker, caplog.at_level(logging.ERROR, logger="services.ticker"):
        assert ticker.tick() is True
        assert ticker.tick() is False

    assert applied == [1]
    assert "Refresh failed" in caplog.text


def test_background_loop_refreshes_on_interval() -> None:
    done = threading.Event()
    applied: List[int] = []

    def apply(value: int) -> None:
        applied.append(value)
        if len(applied) >= 2:
            done.set()

    with RefreshTicker(interval=0.01, refresh=lambda: len(applied), apply=apply):
        assert done.wait(2.0)

    assert applied[:2] == [0, 1]


def test_restart_after_stop_applies_again() -> None:
    applied: List[int] = []
    ticker = RefreshTicker(interval=60, refresh=lambda: 7, apply=applied.append)

    ticker.start()
    ticker.stop()
    ticker.start()
    try:
        assert ticker.tick() is True
    finally:
        ticker.stop()

    assert applied == [7]


def test_non_positive_interval_is_rejected() -> None:
    with pytest.raises(ValueError):
        RefreshTicker(interval=0, refresh=lambda: None, apply=lambda _: None)
