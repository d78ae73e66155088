"""Unit tests for dashboard alert derivation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from models.records import (
    CleaningTask,
    ProductStatus,
    ReceptionRecord,
    ShelfLifeItem,
    TemperatureReading,
    TemperatureZone,
)
from services.alerts import (
    AlertAggregator,
    AlertCategory,
    AlertSeverity,
    next_unresolved,
)

PARIS = ZoneInfo("Europe/Paris")
NOW = datetime(2024, 3, 11, 10, 0, tzinfo=PARIS)
TODAY = NOW.date()

FRIDGE = TemperatureZone(zone_id="zone-fridge", name="Fridge", min_temp=0.0, max_temp=4.0)
FREEZER = TemperatureZone(zone_id="zone-freezer", name="Freezer", min_temp=-25.0, max_temp=-18.0)


def _reading(zone: TemperatureZone, value: float, taken_at: datetime = NOW) -> TemperatureReading:
    return TemperatureReading(
        zone_id=zone.zone_id,
        value=value,
        taken_at=taken_at,
        bound_min=zone.min_temp,
        bound_max=zone.max_temp,
    )


def _task(post_id: str, frequency: str = "daily", last_completed_at=None, area="Kitchen") -> CleaningTask:
    return CleaningTask(
        post_id=post_id,
        name=f"Post {post_id}",
        frequency=frequency,
        last_completed_at=last_completed_at,
        area=area,
    )


def _product(product_id: str, days: int, status=ProductStatus.active) -> ShelfLifeItem:
    return ShelfLifeItem(
        product_id=product_id,
        name=f"Product {product_id}",
        expires_on=TODAY + timedelta(days=days),
        status=status,
    )


def test_missing_reading_is_a_warning() -> None:
    alerts = AlertAggregator().aggregate([_reading(FRIDGE, 3.0)], [], [], [FRIDGE, FREEZER], NOW)

    assert len(alerts.temperature) == 1
    alert = alerts.temperature[0]
    assert alert.severity is AlertSeverity.warning
    assert alert.target_id == FREEZER.zone_id
    assert alert.title == "Missing reading: Freezer"
    assert alert.message == "No reading today"


def test_reading_from_yesterday_does_not_count() -> None:
    yesterday = NOW - timedelta(days=1)

    alerts = AlertAggregator().aggregate([_reading(FRIDGE, 3.0, yesterday)], [], [], [FRIDGE], NOW)

    assert [a.target_id for a in alerts.temperature] == [FRIDGE.zone_id]
    assert alerts.temperature[0].severity is AlertSeverity.warning


def test_latest_out_of_range_reading_is_critical() -> None:
    readings = [
        _reading(FRIDGE, 3.0, NOW - timedelta(hours=2)),
        _reading(FRIDGE, 6.5, NOW - timedelta(hours=1)),
    ]

    alerts = AlertAggregator().aggregate(readings, [], [], [FRIDGE], NOW)

    assert len(alerts.temperature) == 1
    alert = alerts.temperature[0]
    assert alert.severity is AlertSeverity.critical
    assert alert.title == "Out of range: Fridge"
    assert alert.message == "6.5°C recorded"


def test_corrected_reading_clears_out_of_range_alert() -> None:
    readings = [
        _reading(FRIDGE, 7.0, NOW - timedelta(hours=2)),
        _reading(FRIDGE, 3.5, NOW - timedelta(minutes=5)),
    ]

    alerts = AlertAggregator().aggregate(readings, [], [], [FRIDGE], NOW)

    assert alerts.temperature == []


def test_cleaning_alerts_escalate_past_threshold() -> None:
    aggregator = AlertAggregator(cleaning_escalation_threshold=3)
    three = [_task(str(i)) for i in range(3)]
    four = [_task(str(i)) for i in range(4)]

    assert {a.severity for a in aggregator.aggregate([], three, [], [], NOW).cleaning} == {
        AlertSeverity.warning
    }
    assert {a.severity for a in aggregator.aggregate([], four, [], [], NOW).cleaning} == {
        AlertSeverity.critical
    }


def test_cleaning_alert_message_and_done_tasks() -> None:
    tasks = [
        _task("done", last_completed_at=NOW - timedelta(hours=1)),
        _task("weekly", frequency="weekly", last_completed_at=NOW - timedelta(days=8), area="Bar"),
        _task("never", frequency="monthly", area=None),
        _task("adhoc", frequency="on_demand"),
    ]

    alerts = AlertAggregator().aggregate([], tasks, [], [], NOW)

    assert [a.target_id for a in alerts.cleaning] == ["weekly", "never"]
    assert alerts.cleaning[0].message == "Bar (Weekly)"
    assert alerts.cleaning[0].area == "Bar"
    assert alerts.cleaning[1].message == "Monthly"


def test_dlc_alert_messages_and_severity() -> None:
    products = [
        _product("expired", -2),
        _product("today", 0),
        _product("tomorrow", 1),
        _product("soon", 2),
        _product("fine", 5),
        _product("used", -1, ProductStatus.used),
    ]

    alerts = AlertAggregator().aggregate([], [], products, [], NOW)

    by_id = {a.target_id: a for a in alerts.dlc}
    assert set(by_id) == {"expired", "today", "tomorrow", "soon"}
    assert by_id["expired"].message == "Expired 2 day(s) ago"
    assert by_id["today"].message == "Expires today"
    assert by_id["tomorrow"].message == "Expires tomorrow"
    assert by_id["soon"].message == "Expires in 2 days"
    assert by_id["today"].severity is AlertSeverity.critical
    assert by_id["expired"].severity is AlertSeverity.critical
    assert by_id["soon"].severity is AlertSeverity.warning


def test_aggregate_is_idempotent() -> None:
    aggregator = AlertAggregator()
    readings = [_reading(FRIDGE, 9.0)]
    tasks = [_task("a"), _task("b")]
    products = [_product("p", 1)]

    first = aggregator.aggregate(readings, tasks, products, [FRIDGE, FREEZER], NOW)
    second = aggregator.aggregate(readings, tasks, products, [FRIDGE, FREEZER], NOW)

    assert first == second
    assert [a.key for a in first.all()] == [a.key for a in second.all()]


def test_all_returns_workflow_order() -> None:
    alerts = AlertAggregator().aggregate(
        [], [_task("post")], [_product("p", 0)], [FRIDGE], NOW
    )

    assert [a.category for a in alerts.all()] == [
        AlertCategory.cleaning,
        AlertCategory.temperature,
        AlertCategory.dlc,
    ]
    assert alerts.total == 3


def test_summarize_counts_today_only() -> None:
    readings = [
        _reading(FRIDGE, 3.0),
        _reading(FRIDGE, 5.0),
        _reading(FREEZER, -20.0),
        _reading(FREEZER, -10.0, NOW - timedelta(days=1)),
    ]
    tasks = [
        _task("done", last_completed_at=NOW - timedelta(hours=1)),
        _task("due"),
        _task("adhoc", frequency="on_demand"),
    ]
    products = [_product("x", -1), _product("y", 1), _product("z", 2), _product("ok", 10)]

    stats = AlertAggregator().summarize(readings, tasks, products, NOW)

    assert stats.temperature_total == 3
    assert stats.temperature_conforming == 2
    assert stats.temperature_conformity == 67
    assert (stats.cleaning_total, stats.cleaning_done, stats.cleaning_pending) == (2, 1, 1)
    assert (stats.dlc_expired, stats.dlc_critical, stats.dlc_warning) == (1, 1, 1)


def test_summarize_with_no_readings_is_fully_conforming() -> None:
    stats = AlertAggregator().summarize([], [], [], NOW)

    assert stats.temperature_conformity == 100
    assert stats.temperature_total == 0
    assert stats.reception_today == 0


def test_summarize_counts_todays_receptions() -> None:
    receptions = [
        ReceptionRecord(reception_id="a", supplier_name="Metro", product_name="Milk", received_at=NOW),
        ReceptionRecord(
            reception_id="b", supplier_name="Metro", product_name="Eggs", received_at=NOW - timedelta(days=1)
        ),
    ]

    stats = AlertAggregator().summarize([], [], [], NOW, receptions)

    assert stats.reception_today == 1


def test_utc_readings_are_bucketed_by_local_day() -> None:
    # 23:30 UTC on the 10th is 00:30 on the 11th in Paris.
    reading = _reading(FRIDGE, 2.0, datetime(2024, 3, 10, 23, 30, tzinfo=timezone.utc))

    alerts = AlertAggregator().aggregate([reading], [], [], [FRIDGE], NOW)

    assert alerts.temperature == []


def test_next_unresolved_skips_resolved_keys() -> None:
    alerts = AlertAggregator().aggregate([], [_task("a"), _task("b")], [], [], NOW).all()

    assert next_unresolved(alerts, set()) == alerts[0]
    assert next_unresolved(alerts, {"cleaning:a"}) == alerts[1]
    assert next_unresolved(alerts, {"cleaning:a", "cleaning:b"}) is None
