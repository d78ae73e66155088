"""Unit tests for the activity feed and the weekly trend."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from models.records import CleaningRecord, ReceptionRecord, TemperatureReading
from services.activity import ActivityKind, ActivityStatus, build_activity, trend_by_day

PARIS = ZoneInfo("Europe/Paris")
NOW = datetime(2024, 3, 11, 10, 0, tzinfo=PARIS)
TODAY = NOW.date()


def _reading(value: float, taken_at: datetime, reading_id: str = "l1") -> TemperatureReading:
    return TemperatureReading(
        zone_id="fridge",
        value=value,
        taken_at=taken_at,
        bound_min=0.0,
        bound_max=4.0,
        reading_id=reading_id,
    )


def _cleaning(record_id: str, done_at: datetime, is_clean: bool = True) -> CleaningRecord:
    return CleaningRecord(record_id=record_id, post_id="sink", done_at=done_at, is_clean=is_clean)


def _reception(reception_id: str, received_at: datetime, is_compliant: bool = True) -> ReceptionRecord:
    return ReceptionRecord(
        reception_id=reception_id,
        supplier_name="Metro",
        product_name="Chicken",
        received_at=received_at,
        is_compliant=is_compliant,
    )


def test_activity_keeps_only_today_and_sorts_newest_first() -> None:
    readings = [
        _reading(3.0, NOW - timedelta(hours=2), "l1"),
        _reading(7.0, NOW - timedelta(days=1), "l0"),
    ]
    cleanings = [_cleaning("c1", NOW - timedelta(minutes=5), is_clean=False)]
    receptions = [_reception("rec-1", NOW - timedelta(hours=1))]

    items = build_activity(
        readings, cleanings, receptions, NOW, zone_names={"fridge": "Fridge"}, post_names={"sink": "Sink"}
    )

    assert [item.item_id for item in items] == ["cleaning-c1", "reception-rec-1", "temperature-l1"]
    assert items[0].status is ActivityStatus.warn
    assert items[1].kind is ActivityKind.reception
    assert items[1].label == "Metro"
    assert items[1].detail == "Chicken"
    assert items[2].label == "Temperature Fridge"
    assert items[2].detail == "3°C"


def test_activity_caps_each_source() -> None:
    readings = [_reading(2.0, NOW - timedelta(minutes=m), f"l{m}") for m in range(1, 9)]
    receptions = [_reception(f"rec-{m}", NOW - timedelta(minutes=m)) for m in range(1, 6)]

    items = build_activity(readings, [], receptions, NOW)

    kinds = [item.kind for item in items]
    assert kinds.count(ActivityKind.temperature) == 5
    assert kinds.count(ActivityKind.reception) == 3
    assert items[0].item_id in {"temperature-l1", "reception-rec-1"}


def test_activity_buckets_utc_instants_by_local_day() -> None:
    # 23:30 UTC on the 10th is already the 11th in Paris.
    late = datetime(2024, 3, 10, 23, 30, tzinfo=timezone.utc)

    items = build_activity([_reading(2.0, late)], [], [], NOW)

    assert len(items) == 1
    assert items[0].label == "Temperature Zone"


def test_trend_by_day_fills_missing_days() -> None:
    readings = [
        _reading(2.0, NOW),
        _reading(9.0, NOW - timedelta(hours=1)),
        _reading(1.0, NOW - timedelta(days=2)),
        _reading(1.0, NOW - timedelta(days=10)),
    ]
    cleanings = [
        _cleaning("c1", NOW - timedelta(days=2)),
        _cleaning("c2", NOW - timedelta(days=2), is_clean=False),
    ]
    receptions = [_reception("rec-1", NOW)]

    trend = trend_by_day(readings, cleanings, receptions, NOW, days=3)

    assert [day.day for day in trend] == [TODAY - timedelta(days=2), TODAY - timedelta(days=1), TODAY]
    oldest, middle, today = trend
    assert (oldest.temperature_readings, oldest.temperature_conformity, oldest.cleanings) == (1, 100, 1)
    assert (middle.temperature_readings, middle.temperature_conformity) == (0, 100)
    assert (today.temperature_readings, today.temperature_conformity, today.receptions) == (2, 50, 1)
