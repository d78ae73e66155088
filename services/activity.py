"""Recent activity feed and weekly trend for the kitchen dashboard."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional

from models.records import CleaningRecord, ReceptionRecord, TemperatureReading
from services.clock import local_day
from services.compliance import is_conforming

READINGS_IN_FEED = 5
CLEANINGS_IN_FEED = 5
RECEPTIONS_IN_FEED = 3
TREND_DAYS = 7


class ActivityKind(str, Enum):
    temperature = "temperature"
    cleaning = "cleaning"
    reception = "reception"


class ActivityStatus(str, Enum):
    ok = "ok"
    warn = "warn"


@dataclass(frozen=True)
class ActivityItem:
    item_id: str
    kind: ActivityKind
    occurred_at: datetime
    label: str
    status: ActivityStatus
    detail: Optional[str] = None


@dataclass(frozen=True)
class DayTrend:
    day: date
    temperature_readings: int
    temperature_conformity: int
    cleanings: int
    receptions: int


def _status(ok: bool) -> ActivityStatus:
    return ActivityStatus.ok if ok else ActivityStatus.warn


def _conformity(readings: List[TemperatureReading]) -> int:
    if not readings:
        return 100
    conforming = sum(1 for r in readings if is_conforming(r.value, r.bound_min, r.bound_max))
    return math.floor(conforming * 100 / len(readings) + 0.5)


def build_activity(
    readings: Iterable[TemperatureReading],
    cleanings: Iterable[CleaningRecord],
    receptions: Iterable[ReceptionRecord],
    now: datetime,
    zone_names: Optional[Mapping[str, str]] = None,
    post_names: Optional[Mapping[str, str]] = None,
) -> List[ActivityItem]:
    """Today's latest readings, cleanings and deliveries, newest first."""
    today = now.date()
    zone_names = zone_names or {}
    post_names = post_names or {}

    def newest_today(records, stamp, limit):
        todays = [r for r in records if local_day(stamp(r), now) == today]
        todays.sort(key=stamp, reverse=True)
        return todays[:limit]

    items: List[ActivityItem] = []
    for reading in newest_today(readings, lambda r: r.taken_at, READINGS_IN_FEED):
        items.append(
            ActivityItem(
                item_id=f"temperature-{reading.reading_id or reading.zone_id}",
                kind=ActivityKind.temperature,
                occurred_at=reading.taken_at,
                label=f"Temperature {zone_names.get(reading.zone_id, 'Zone')}",
                status=_status(is_conforming(reading.value, reading.bound_min, reading.bound_max)),
                detail=f"{reading.value:g}°C",
            )
        )
    for record in newest_today(cleanings, lambda r: r.done_at, CLEANINGS_IN_FEED):
        items.append(
            ActivityItem(
                item_id=f"cleaning-{record.record_id}",
                kind=ActivityKind.cleaning,
                occurred_at=record.done_at,
                label=f"Cleaning {post_names.get(record.post_id, 'post')}",
                status=_status(record.is_clean),
                detail=record.employee_id,
            )
        )
    for reception in newest_today(receptions, lambda r: r.received_at, RECEPTIONS_IN_FEED):
        items.append(
            ActivityItem(
                item_id=f"reception-{reception.reception_id}",
                kind=ActivityKind.reception,
                occurred_at=reception.received_at,
                label=reception.supplier_name,
                status=_status(reception.is_compliant),
                detail=reception.product_name,
            )
        )

    items.sort(key=lambda item: item.occurred_at, reverse=True)
    return items


def trend_by_day(
    readings: Iterable[TemperatureReading],
    cleanings: Iterable[CleaningRecord],
    receptions: Iterable[ReceptionRecord],
    now: datetime,
    days: int = TREND_DAYS,
) -> List[DayTrend]:
    """Per-day counters for the ``days`` local days ending today, oldest first."""
    window = [now.date() - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
    readings_by_day: Dict[date, List[TemperatureReading]] = {day: [] for day in window}
    cleanings_by_day = dict.fromkeys(window, 0)
    receptions_by_day = dict.fromkeys(window, 0)

    for reading in readings:
        day = local_day(reading.taken_at, now)
        if day in readings_by_day:
            readings_by_day[day].append(reading)
    for record in cleanings:
        day = local_day(record.done_at, now)
        if day in cleanings_by_day and record.is_clean:
            cleanings_by_day[day] += 1
    for reception in receptions:
        day = local_day(reception.received_at, now)
        if day in receptions_by_day:
            receptions_by_day[day] += 1

    return [
        DayTrend(
            day=day,
            temperature_readings=len(readings_by_day[day]),
            temperature_conformity=_conformity(readings_by_day[day]),
            cleanings=cleanings_by_day[day],
            receptions=receptions_by_day[day],
        )
        for day in window
    ]
