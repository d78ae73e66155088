"""Compliance thresholds: temperature conformity, cleaning periods, DLC windows.

Every function here is a pure computation over already fetched values and a
reference instant. Nothing is cached; callers recompute on every read.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from models.records import CleaningFrequency

CRITICAL_DEVIATION = 3.0

_PERIOD_DAYS = {
    CleaningFrequency.weekly: 7,
    CleaningFrequency.monthly: 30,
}


class ReadingStatus(str, Enum):
    ok = "ok"
    warning = "warning"
    critical = "critical"


class ShelfLifeStatus(str, Enum):
    ok = "ok"
    warning = "warning"
    critical = "critical"
    expired = "expired"


def _as_day(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def classify(
    value: float,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
) -> ReadingStatus:
    """Classify a reading against an inclusive ``[minimum, maximum]`` range.

    Missing bounds are open-ended. Outside the range, a deviation of more
    than three degrees beyond the nearer bound is critical.
    """
    lower = -math.inf if minimum is None else minimum
    upper = math.inf if maximum is None else maximum

    if lower <= value <= upper:
        return ReadingStatus.ok

    deviation = max(lower - value, value - upper)
    if deviation > CRITICAL_DEVIATION:
        return ReadingStatus.critical
    return ReadingStatus.warning


def is_conforming(
    value: float,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
) -> bool:
    return classify(value, minimum, maximum) is ReadingStatus.ok


def days_until(target: Union[date, datetime], today: Union[date, datetime]) -> int:
    """Whole calendar days from ``today`` to ``target`` (negative when past)."""
    return (_as_day(target) - _as_day(today)).days


def needs_periodic_action(
    frequency: Union[CleaningFrequency, str],
    last_done: Optional[datetime],
    now: datetime,
) -> bool:
    """Tell whether a periodic task is due at ``now``.

    ``daily`` tasks are due as soon as the calendar day changes, whatever the
    elapsed hours. ``weekly`` and ``monthly`` tasks count whole elapsed days.
    A task never done is always due, except ``on_demand`` ones which never are.
    """
    try:
        frequency = CleaningFrequency(frequency)
    except ValueError:
        return False

    if frequency is CleaningFrequency.on_demand:
        return False
    if last_done is None:
        return True

    # A naive side is read in the other side's zone.
    if last_done.tzinfo is None and now.tzinfo is not None:
        last_done = last_done.replace(tzinfo=now.tzinfo)
    elif last_done.tzinfo is not None and now.tzinfo is None:
        now = now.replace(tzinfo=last_done.tzinfo)
    elif last_done.tzinfo is not None:
        last_done = last_done.astimezone(now.tzinfo)

    if frequency is CleaningFrequency.daily:
        return last_done.date() != now.date()

    elapsed_days = math.floor((now - last_done).total_seconds() / 86400)
    return elapsed_days >= _PERIOD_DAYS[frequency]


def classify_shelf_life(
    expires_on: Union[date, datetime], today: Union[date, datetime]
) -> ShelfLifeStatus:
    remaining = days_until(expires_on, today)
    if remaining < 0:
        return ShelfLifeStatus.expired
    if remaining <= 1:
        return ShelfLifeStatus.critical
    if remaining <= 2:
        return ShelfLifeStatus.warning
    return ShelfLifeStatus.ok
