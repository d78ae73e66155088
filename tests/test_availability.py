"""Unit tests for service windows and slot generation."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

import pytest

from models.records import Reservation, ReservationStatus, ServiceWindow
from services.availability import (
    ServiceAvailabilityResolver,
    WindowStatus,
    bookable_dates,
    day_index,
    remaining_covers,
    slots_for,
    status_of,
    windows_for,
)

PARIS = ZoneInfo("Europe/Paris")
ALL_DAYS = frozenset(range(7))
# 2024-03-11 is a Monday.
MONDAY = date(2024, 3, 11)


def _window(
    service_id: str = "lunch",
    start: time = time(12, 0),
    end: time = time(14, 0),
    days=ALL_DAYS,
    max_covers=None,
) -> ServiceWindow:
    return ServiceWindow(
        service_id=service_id,
        name=service_id.title(),
        start_time=start,
        end_time=end,
        days_of_week=frozenset(days),
        max_covers=max_covers,
    )


def _at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=PARIS)


def _reservation(party_size: int, status=ReservationStatus.confirmed, service_id="lunch") -> Reservation:
    return Reservation(
        reservation_id=f"res-{party_size}-{status.value}",
        service_id=service_id,
        date=MONDAY,
        time=time(12, 30),
        party_size=party_size,
        customer_name="Jeanne Martin",
        customer_email="jeanne@example.com",
        customer_phone=None,
        status=status,
    )


def test_day_index_uses_sunday_as_zero() -> None:
    assert day_index(date(2024, 3, 10)) == 0
    assert day_index(MONDAY) == 1
    assert day_index(date(2024, 3, 16)) == 6


def test_windows_for_filters_on_weekday() -> None:
    lunch = _window("lunch", days={1, 2, 3})
    brunch = _window("brunch", days={0})

    assert windows_for([lunch, brunch], MONDAY) == [lunch]
    assert windows_for([lunch, brunch], date(2024, 3, 10)) == [brunch]


def test_slots_exclude_times_already_passed_today() -> None:
    slots = slots_for(_window(), MONDAY, _at(MONDAY, 12, 45))

    assert slots.as_list() == [time(13, 0), time(13, 30)]


def test_slot_at_exactly_now_is_excluded() -> None:
    slots = slots_for(_window(), MONDAY, _at(MONDAY, 13, 0))

    assert slots.as_list() == [time(13, 30)]


def test_slots_on_future_date_cover_whole_window() -> None:
    slots = slots_for(_window(), MONDAY + timedelta(days=1), _at(MONDAY, 20))

    assert list(slots) == [time(12, 0), time(12, 30), time(13, 0), time(13, 30)]


def test_slot_sequence_is_restartable() -> None:
    slots = slots_for(_window(), MONDAY, _at(MONDAY, 9))

    assert list(slots) == list(slots)
    assert time(12, 30) in slots
    assert time(12, 15) not in slots


def test_slots_honour_step_and_notice() -> None:
    slots = slots_for(
        _window(),
        MONDAY,
        _at(MONDAY, 11),
        step_minutes=15,
        notice=timedelta(hours=2),
    )

    assert slots.as_list() == [time(13, 15), time(13, 30), time(13, 45)]


def test_non_positive_step_is_rejected() -> None:
    with pytest.raises(ValueError):
        slots_for(_window(), MONDAY, _at(MONDAY, 9), step_minutes=0)


def test_overnight_window_runs_past_midnight() -> None:
    late = _window("late", start=time(22, 0), end=time(1, 0))

    slots = slots_for(late, MONDAY, _at(MONDAY, 18))

    assert slots.as_list() == [time(22, 0), time(22, 30), time(23, 0), time(23, 30), time(0, 0), time(0, 30)]
    assert status_of(late, MONDAY, _at(MONDAY, 23, 30)) is WindowStatus.open_now


def test_status_of_window() -> None:
    weekdays = _window(days={1, 2, 3, 4, 5})

    assert status_of(weekdays, date(2024, 3, 10), _at(MONDAY, 9)) is WindowStatus.closed_today
    assert status_of(weekdays, MONDAY, _at(MONDAY, 11)) is WindowStatus.open_now
    assert status_of(weekdays, MONDAY, _at(MONDAY, 13)) is WindowStatus.open_now
    assert status_of(weekdays, MONDAY, _at(MONDAY, 14)) is WindowStatus.ended
    assert status_of(weekdays, MONDAY + timedelta(days=1), _at(MONDAY, 20)) is WindowStatus.open_now


def test_bookable_dates_are_inclusive() -> None:
    dates = list(bookable_dates(MONDAY, 2))

    assert dates == [MONDAY, MONDAY + timedelta(days=1), MONDAY + timedelta(days=2)]


def test_remaining_covers_counts_held_reservations_only() -> None:
    window = _window(max_covers=20)
    reservations = [
        _reservation(4),
        _reservation(6, ReservationStatus.pending),
        _reservation(8, ReservationStatus.cancelled),
        _reservation(3, service_id="dinner"),
    ]

    assert remaining_covers(window, MONDAY, reservations) == 10
    assert remaining_covers(_window(), MONDAY, reservations) is None


def test_resolver_day_lists_windows_with_slots() -> None:
    lunch = _window("lunch", max_covers=30)
    dinner = _window("dinner", start=time(19, 0), end=time(21, 0))
    resolver = ServiceAvailabilityResolver([dinner, lunch])

    day = resolver.day(MONDAY, _at(MONDAY, 15), [_reservation(4)])

    assert [item.window.service_id for item in day.windows] == ["lunch", "dinner"]
    lunch_item, dinner_item = day.windows
    assert lunch_item.status is WindowStatus.ended
    assert lunch_item.slots == ()
    assert lunch_item.remaining_covers == 26
    assert dinner_item.slots == (time(19, 0), time(19, 30), time(20, 0), time(20, 30))
    assert day.has_slots


def test_resolver_bookable_date_range() -> None:
    resolver = ServiceAvailabilityResolver([_window()], advance_booking_days=7)

    assert resolver.is_bookable_date(MONDAY, MONDAY)
    assert resolver.is_bookable_date(MONDAY + timedelta(days=7), MONDAY)
    assert not resolver.is_bookable_date(MONDAY + timedelta(days=8), MONDAY)
    assert not resolver.is_bookable_date(MONDAY - timedelta(days=1), MONDAY)
    assert len(list(resolver.calendar(_at(MONDAY, 9)))) == 8


def test_resolver_find_window() -> None:
    lunch = _window("lunch")
    resolver = ServiceAvailabilityResolver([lunch])

    assert resolver.find_window("lunch") is lunch
    assert resolver.find_window("missing") is None
