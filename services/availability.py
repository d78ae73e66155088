"""Bookable service windows and time slots for a given calendar day."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from models.records import Reservation, ServiceWindow
from services.compliance import days_until


class WindowStatus(str, Enum):
    closed_today = "closed_today"
    ended = "ended"
    open_now = "open_now"


def day_index(day: date) -> int:
    """Day-of-week index with Sunday as 0, matching ``ServiceWindow.days_of_week``."""
    return day.isoweekday() % 7


def window_bounds(
    window: ServiceWindow, on: date, tzinfo=None
) -> Tuple[datetime, datetime]:
    start = datetime.combine(on, window.start_time, tzinfo=tzinfo)
    end = datetime.combine(on, window.end_time, tzinfo=tzinfo)
    if window.crosses_midnight:
        end += timedelta(days=1)
    return start, end


def windows_for(windows: Iterable[ServiceWindow], on: date) -> List[ServiceWindow]:
    index = day_index(on)
    return [window for window in windows if index in window.days_of_week]


def status_of(window: ServiceWindow, on: date, now: datetime) -> WindowStatus:
    if day_index(on) not in window.days_of_week:
        return WindowStatus.closed_today
    _, end = window_bounds(window, on, now.tzinfo)
    if now >= end:
        return WindowStatus.ended
    return WindowStatus.open_now


@dataclass(frozen=True)
class SlotSequence:
    """Lazy grid of bookable start times inside one window on one day.

    Iterating twice recomputes the grid from the same inputs. A slot is kept
    only when it is strictly after ``now + notice``, so a slot starting
    exactly at ``now`` is gone.
    """

    window: ServiceWindow
    on: date
    now: datetime
    step_minutes: int = 30
    notice: timedelta = field(default=timedelta(0))

    def __post_init__(self) -> None:
        if self.step_minutes <= 0:
            raise ValueError(f"Slot step must be positive, got {self.step_minutes}")

    def __iter__(self) -> Iterator[time]:
        if day_index(self.on) not in self.window.days_of_week:
            return
        start, end = window_bounds(self.window, self.on, self.now.tzinfo)
        cutoff = self.now + self.notice
        step = timedelta(minutes=self.step_minutes)

        current = start
        while current < end:
            if current > cutoff:
                yield current.time()
            current += step

    def __contains__(self, candidate: object) -> bool:
        return any(slot == candidate for slot in self)

    def as_list(self) -> List[time]:
        return list(self)


def slots_for(
    window: ServiceWindow,
    on: date,
    now: datetime,
    step_minutes: int = 30,
    notice: timedelta = timedelta(0),
) -> SlotSequence:
    return SlotSequence(
        window=window, on=on, now=now, step_minutes=step_minutes, notice=notice
    )


def bookable_dates(today: date, advance_booking_days: int) -> Iterator[date]:
    """Yield ``today`` through ``today + advance_booking_days`` inclusive."""
    offset = 0
    while offset <= advance_booking_days:
        yield today + timedelta(days=offset)
        offset += 1


@dataclass(frozen=True)
class WindowAvailability:
    window: ServiceWindow
    status: WindowStatus
    slots: Tuple[time, ...]
    remaining_covers: Optional[int] = None


@dataclass(frozen=True)
class DayAvailability:
    day: date
    windows: Tuple[WindowAvailability, ...]

    @property
    def has_slots(self) -> bool:
        return any(item.slots for item in self.windows)


class ServiceAvailabilityResolver:
    """Resolves which service windows are bookable for a tenant."""

    def __init__(
        self,
        windows: Sequence[ServiceWindow],
        step_minutes: int = 30,
        advance_booking_days: int = 30,
        min_notice_hours: float = 0,
    ) -> None:
        self.windows = sorted(windows, key=lambda window: window.start_time)
        self.step_minutes = step_minutes
        self.advance_booking_days = advance_booking_days
        self.notice = timedelta(hours=max(min_notice_hours, 0))

    def windows_for(self, on: date) -> List[ServiceWindow]:
        return windows_for(self.windows, on)

    def status_of(self, window: ServiceWindow, on: date, now: datetime) -> WindowStatus:
        return status_of(window, on, now)

    def slots_for(self, window: ServiceWindow, on: date, now: datetime) -> SlotSequence:
        return slots_for(
            window, on, now, step_minutes=self.step_minutes, notice=self.notice
        )

    def bookable_dates(self, today: date) -> Iterator[date]:
        return bookable_dates(today, self.advance_booking_days)

    def is_bookable_date(self, on: date, today: date) -> bool:
        return 0 <= days_until(on, today) <= self.advance_booking_days

    def find_window(self, service_id: str) -> Optional[ServiceWindow]:
        for window in self.windows:
            if window.service_id == service_id:
                return window
        return None

    def day(
        self,
        on: date,
        now: datetime,
        reservations: Iterable[Reservation] = (),
    ) -> DayAvailability:
        held = list(reservations)
        items = []
        for window in self.windows_for(on):
            status = self.status_of(window, on, now)
            slots: Tuple[time, ...] = ()
            if status is WindowStatus.open_now:
                slots = tuple(self.slots_for(window, on, now))
            items.append(
                WindowAvailability(
                    window=window,
                    status=status,
                    slots=slots,
                    remaining_covers=remaining_covers(window, on, held),
                )
            )
        return DayAvailability(day=on, windows=tuple(items))

    def calendar(
        self, now: datetime, reservations: Iterable[Reservation] = ()
    ) -> Iterator[DayAvailability]:
        held = list(reservations)
        for on in self.bookable_dates(now.date()):
            yield self.day(on, now, held)


def remaining_covers(
    window: ServiceWindow, on: date, reservations: Iterable[Reservation]
) -> Optional[int]:
    """Covers left in ``window`` on ``on``; ``None`` when the window is uncapped."""
    if window.max_covers is None:
        return None
    taken = sum(
        reservation.party_size
        for reservation in reservations
        if reservation.holds_covers
        and reservation.date == on
        and reservation.service_id == window.service_id
    )
    return max(window.max_covers - taken, 0)
