"""Public booking and staff reservation handling."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional

from datastore.store import MockRelationalStore, TenantStore, build_default_store
from models.records import Reservation, ReservationStatus, ServiceWindow
from services.availability import (
    DayAvailability,
    ServiceAvailabilityResolver,
    WindowStatus,
    remaining_covers,
)
from services.clock import to_storage
from settings import get_settings

logger = logging.getLogger(__name__)

SETTINGS_TABLE = "restaurant_reservation_settings"
RESTAURANTS_TABLE = "restaurants"
SERVICES_TABLE = "services"
RESERVATIONS_TABLE = "reservations"
TABLES_TABLE = "tables"

ALLOWED_TRANSITIONS: Dict[ReservationStatus, frozenset] = {
    ReservationStatus.pending: frozenset({ReservationStatus.confirmed, ReservationStatus.cancelled}),
    ReservationStatus.confirmed: frozenset(
        {ReservationStatus.completed, ReservationStatus.cancelled, ReservationStatus.no_show}
    ),
}


class SlotUnavailable(ValueError):
    """Raised when the requested service, time or covers cannot be booked."""


class InvalidTransition(ValueError):
    """Raised for a reservation status change staff are not allowed to make."""


def _int_setting(row: Mapping[str, Any], key: str, default: int) -> int:
    value = row.get(key)
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class BookingPolicy:
    min_party_size: int = 1
    max_party_size: int = 20
    advance_booking_days: int = 30
    min_notice_hours: int = 0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "BookingPolicy":
        return cls(
            min_party_size=_int_setting(row, "min_party_size", 1),
            max_party_size=_int_setting(row, "max_party_size", 20),
            advance_booking_days=_int_setting(row, "advance_booking_days", 30),
            min_notice_hours=_int_setting(row, "min_notice_hours", 0),
        )


@dataclass(frozen=True)
class BookingRequest:
    service_id: str
    reservation_date: date
    reservation_time: time
    party_size: int
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class PublicBookingPage:
    slug: str
    restaurant_name: str
    policy: BookingPolicy
    days: List[DayAvailability] = field(default_factory=list)
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    welcome_message: Optional[str] = None
    confirmation_message: Optional[str] = None


@dataclass
class _Tenant:
    restaurant_id: str
    settings: Dict[str, Any]
    policy: BookingPolicy
    store: TenantStore


class BookingService:
    """Coordinates the public booking page and staff reservation changes."""

    def __init__(self, store: MockRelationalStore, step_minutes: int = 30) -> None:
        self.store = store
        self.step_minutes = step_minutes

    def page(self, slug: str, now: datetime) -> PublicBookingPage:
        tenant = self._tenant_for_slug(slug)
        restaurant = self._restaurant(tenant)
        resolver = self._resolver(tenant)
        reservations = self._reservations(tenant.store)
        return PublicBookingPage(
            slug=slug,
            restaurant_name=str(restaurant.get("name") or slug),
            policy=tenant.policy,
            days=list(resolver.calendar(now, reservations)),
            address=tenant.settings.get("display_address") or restaurant.get("address"),
            phone=tenant.settings.get("display_phone") or restaurant.get("phone"),
            email=tenant.settings.get("display_email") or restaurant.get("email"),
            welcome_message=tenant.settings.get("welcome_message"),
            confirmation_message=tenant.settings.get("confirmation_message"),
        )

    def availability(self, slug: str, on: date, now: datetime) -> DayAvailability:
        tenant = self._tenant_for_slug(slug)
        resolver = self._resolver(tenant)
        if not resolver.is_bookable_date(on, now.date()):
            return DayAvailability(day=on, windows=())
        return resolver.day(on, now, self._reservations(tenant.store, on))

    def create_reservation(
        self, slug: str, request: BookingRequest, now: datetime
    ) -> Reservation:
        tenant = self._tenant_for_slug(slug)
        policy = tenant.policy
        if not policy.min_party_size <= request.party_size <= policy.max_party_size:
            raise ValueError(
                f"Party size must be between {policy.min_party_size} and {policy.max_party_size}."
            )

        resolver = self._resolver(tenant)
        if not resolver.is_bookable_date(request.reservation_date, now.date()):
            raise ValueError(
                f"Reservations are open from today up to {policy.advance_booking_days} days ahead."
            )

        window = resolver.find_window(request.service_id)
        if window is None:
            raise KeyError(f"Service {request.service_id!r} not found.")

        on = request.reservation_date
        status = resolver.status_of(window, on, now)
        if status is not WindowStatus.open_now:
            raise SlotUnavailable(f"Service {window.name!r} is not bookable on {on.isoformat()}.")

        slot = request.reservation_time.replace(second=0, microsecond=0)
        if slot not in resolver.slots_for(window, on, now):
            raise SlotUnavailable(f"{slot.strftime('%H:%M')} is not an available time slot.")

        left = remaining_covers(window, on, self._reservations(tenant.store, on))
        if left is not None and request.party_size > left:
            raise SlotUnavailable(f"Only {left} cover(s) left for {window.name!r}.")

        row = tenant.store.insert(
            RESERVATIONS_TABLE,
            {
                "service_id": window.service_id,
                "reservation_date": on.isoformat(),
                "reservation_time": slot.strftime("%H:%M"),
                "party_size": request.party_size,
                "customer_name": request.customer_name,
                "customer_email": request.customer_email,
                "customer_phone": request.customer_phone or None,
                "notes": request.notes or None,
                "status": ReservationStatus.pending.value,
                "table_id": None,
                "created_at": to_storage(now),
            },
        )
        logger.info(
            "Reservation created",
            extra={"slug": slug, "reservation_id": row["id"], "status": row["status"]},
        )
        return Reservation.from_row(row)

    def list_reservations(
        self,
        restaurant_id: str,
        on: Optional[date] = None,
        status: Optional[ReservationStatus] = None,
    ) -> List[Reservation]:
        filters: Dict[str, Any] = {}
        if on is not None:
            filters["reservation_date"] = on.isoformat()
        if status is not None:
            filters["status"] = status.value
        rows = TenantStore(self.store, restaurant_id).select(RESERVATIONS_TABLE, filters)
        reservations = [Reservation.from_row(row) for row in rows]
        return sorted(reservations, key=lambda r: (r.date, r.time, r.reservation_id))

    def change_status(
        self,
        restaurant_id: str,
        reservation_id: str,
        new_status: ReservationStatus,
        now: datetime,
    ) -> Reservation:
        tenant = TenantStore(self.store, restaurant_id)
        current = Reservation.from_row(tenant.get(RESERVATIONS_TABLE, reservation_id))
        if new_status not in ALLOWED_TRANSITIONS.get(current.status, frozenset()):
            raise InvalidTransition(
                f"Cannot move reservation from {current.status.value} to {new_status.value}."
            )
        row = tenant.update(
            RESERVATIONS_TABLE,
            reservation_id,
            {"status": new_status.value, "updated_at": to_storage(now)},
        )
        logger.info(
            "Reservation status changed",
            extra={
                "restaurant_id": restaurant_id,
                "reservation_id": reservation_id,
                "status": new_status.value,
            },
        )
        return Reservation.from_row(row)

    def assign_table(
        self, restaurant_id: str, reservation_id: str, table_id: Optional[str]
    ) -> Reservation:
        tenant = TenantStore(self.store, restaurant_id)
        tenant.get(RESERVATIONS_TABLE, reservation_id)
        if table_id is not None:
            tenant.get(TABLES_TABLE, table_id)
        row = tenant.update(RESERVATIONS_TABLE, reservation_id, {"table_id": table_id})
        return Reservation.from_row(row)

    def _tenant_for_slug(self, slug: str) -> _Tenant:
        rows = self.store.select(SETTINGS_TABLE, {"slug": slug, "is_enabled": True})
        if not rows:
            raise KeyError(f"No booking page for {slug!r}.")
        settings = rows[0]
        restaurant_id = str(settings["restaurant_id"])
        return _Tenant(
            restaurant_id=restaurant_id,
            settings=settings,
            policy=BookingPolicy.from_row(settings),
            store=TenantStore(self.store, restaurant_id),
        )

    def _restaurant(self, tenant: _Tenant) -> Dict[str, Any]:
        rows = self.store.select(RESTAURANTS_TABLE, {"id": tenant.restaurant_id})
        return rows[0] if rows else {}

    def _resolver(self, tenant: _Tenant) -> ServiceAvailabilityResolver:
        windows = []
        for row in tenant.store.select(SERVICES_TABLE, {"is_active__ne": False}):
            try:
                windows.append(ServiceWindow.from_row(row))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(
                    "Skipping malformed service",
                    extra={
                        "restaurant_id": tenant.restaurant_id,
                        "table": SERVICES_TABLE,
                        "record_id": row.get("id"),
                        "reason": str(exc),
                    },
                )
        return ServiceAvailabilityResolver(
            windows,
            step_minutes=self.step_minutes,
            advance_booking_days=tenant.policy.advance_booking_days,
            min_notice_hours=tenant.policy.min_notice_hours,
        )

    @staticmethod
    def _reservations(store: TenantStore, on: Optional[date] = None) -> List[Reservation]:
        filters = {"reservation_date": on.isoformat()} if on is not None else {}
        held = []
        for row in store.select(RESERVATIONS_TABLE, filters):
            try:
                held.append(Reservation.from_row(row))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(
                    "Skipping malformed reservation",
                    extra={"table": RESERVATIONS_TABLE, "record_id": row.get("id"), "reason": str(exc)},
                )
        return held


@lru_cache
def build_default_booking() -> BookingService:
    return BookingService(
        store=build_default_store(), step_minutes=get_settings().slot_step_minutes
    )
