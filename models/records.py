"""Domain models shared across services.

Rows fetched from the store are plain dictionaries; the ``from_row``
constructors turn them into these records. Required fields raise
``ValueError`` when malformed, optional bounds degrade to ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, FrozenSet, Mapping, Optional


class CleaningFrequency(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    on_demand = "on_demand"


class ProductStatus(str, Enum):
    active = "active"
    used = "used"
    discarded = "discarded"
    expired = "expired"


class ReservationStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"
    no_show = "no_show"


def parse_instant(value: Any) -> datetime:
    """Parse an ISO-8601 instant; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        candidate = str(value or "").strip()
        if not candidate:
            raise ValueError("Timestamp is empty.")
        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError as exc:
            raise ValueError("Invalid timestamp format") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_day(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value or "").strip())
    except ValueError as exc:
        raise ValueError(f"Invalid date {value!r}") from exc


def parse_time_of_day(value: Any) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    candidate = str(value or "").strip()
    try:
        parsed = time.fromisoformat(candidate)
    except ValueError as exc:
        raise ValueError(f"Invalid time {value!r}") from exc
    return parsed.replace(second=0, microsecond=0)


def optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _days_of_week(value: Any) -> FrozenSet[int]:
    days = set()
    for item in value or ():
        try:
            day = int(item)
        except (TypeError, ValueError):
            continue
        if 0 <= day <= 6:
            days.add(day)
    return frozenset(days)


@dataclass(frozen=True, slots=True)
class TemperatureZone:
    """A monitored piece of equipment (fridge, freezer, hot holding...)."""

    zone_id: str
    name: str
    min_temp: Optional[float] = None
    max_temp: Optional[float] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TemperatureZone":
        return cls(
            zone_id=str(row["id"]),
            name=str(row.get("name") or "Zone"),
            min_temp=optional_float(row.get("min_temp")),
            max_temp=optional_float(row.get("max_temp")),
        )


@dataclass(frozen=True, slots=True)
class TemperatureReading:
    """A single temperature reading taken on a zone."""

    zone_id: str
    value: float
    taken_at: datetime
    bound_min: Optional[float] = None
    bound_max: Optional[float] = None
    reading_id: Optional[str] = None

    @classmethod
    def from_row(
        cls, row: Mapping[str, Any], zone: Optional[TemperatureZone] = None
    ) -> "TemperatureReading":
        value = optional_float(row.get("temperature"))
        if value is None:
            raise ValueError("missing temperature value")
        bound_min = optional_float(row.get("min_temp"))
        bound_max = optional_float(row.get("max_temp"))
        if zone is not None:
            bound_min = zone.min_temp if bound_min is None else bound_min
            bound_max = zone.max_temp if bound_max is None else bound_max
        return cls(
            zone_id=str(row["zone_id"]),
            value=value,
            taken_at=parse_instant(row.get("created_at")),
            bound_min=bound_min,
            bound_max=bound_max,
            reading_id=row.get("id"),
        )


@dataclass(frozen=True, slots=True)
class CleaningTask:
    """A cleaning post with its frequency and last completion."""

    post_id: str
    name: str
    frequency: str
    last_completed_at: Optional[datetime] = None
    area: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ShelfLifeItem:
    """A tracked product with its use-by date (DLC)."""

    product_id: str
    name: str
    expires_on: date
    status: ProductStatus = ProductStatus.active
    storage_location: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ShelfLifeItem":
        try:
            status = ProductStatus(row.get("status") or ProductStatus.active.value)
        except ValueError:
            status = ProductStatus.active
        return cls(
            product_id=str(row["id"]),
            name=str(row.get("product_name") or "Product"),
            expires_on=parse_day(row.get("dlc_date")),
            status=status,
            storage_location=row.get("storage_location"),
        )


@dataclass(frozen=True, slots=True)
class ServiceWindow:
    """A recurring seating period (lunch, dinner...).

    ``days_of_week`` uses 0 for Sunday through 6 for Saturday, the
    convention of the stored service rows.
    """

    service_id: str
    name: str
    start_time: time
    end_time: time
    days_of_week: FrozenSet[int]
    max_covers: Optional[int] = None

    @property
    def crosses_midnight(self) -> bool:
        return self.end_time <= self.start_time

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ServiceWindow":
        max_covers = row.get("max_covers")
        return cls(
            service_id=str(row["id"]),
            name=str(row.get("name") or "Service"),
            start_time=parse_time_of_day(row.get("start_time")),
            end_time=parse_time_of_day(row.get("end_time")),
            days_of_week=_days_of_week(row.get("days_of_week")),
            max_covers=int(max_covers) if max_covers not in (None, "") else None,
        )


@dataclass(frozen=True, slots=True)
class Reservation:
    reservation_id: str
    service_id: Optional[str]
    date: date
    time: time
    party_size: int
    customer_name: str
    customer_email: Optional[str]
    customer_phone: Optional[str]
    status: ReservationStatus
    table_id: Optional[str] = None
    notes: Optional[str] = None

    @property
    def holds_covers(self) -> bool:
        return self.status in (ReservationStatus.pending, ReservationStatus.confirmed)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Reservation":
        return cls(
            reservation_id=str(row["id"]),
            service_id=row.get("service_id"),
            date=parse_day(row.get("reservation_date")),
            time=parse_time_of_day(row.get("reservation_time")),
            party_size=int(row.get("party_size") or 0),
            customer_name=str(row.get("customer_name") or ""),
            customer_email=row.get("customer_email"),
            customer_phone=row.get("customer_phone"),
            status=ReservationStatus(row.get("status") or ReservationStatus.pending.value),
            table_id=row.get("table_id"),
            notes=row.get("notes"),
        )


def _flag(value: Any, default: bool = True) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return value.strip().lower() not in ("false", "0", "no")
    return bool(value)


@dataclass(frozen=True, slots=True)
class CleaningRecord:
    """One completed (or failed) cleaning of a post."""

    record_id: str
    post_id: str
    done_at: datetime
    is_clean: bool = True
    employee_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "CleaningRecord":
        return cls(
            record_id=str(row["id"]),
            post_id=str(row["post_id"]),
            done_at=parse_instant(row.get("created_at")),
            is_clean=_flag(row.get("is_clean")),
            employee_id=row.get("employee_id"),
        )


@dataclass(frozen=True, slots=True)
class ReceptionRecord:
    """A goods delivery checked at the back door."""

    reception_id: str
    supplier_name: str
    product_name: str
    received_at: datetime
    is_compliant: bool = True
    lot_number: Optional[str] = None
    expires_on: Optional[date] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    storage_location: Optional[str] = None
    temperature_on_arrival: Optional[float] = None
    non_compliance_reason: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ReceptionRecord":
        dlc = row.get("dlc_date")
        return cls(
            reception_id=str(row["id"]),
            supplier_name=str(row.get("supplier_name") or "Supplier"),
            product_name=str(row.get("product_name") or "Product"),
            received_at=parse_instant(row.get("created_at")),
            is_compliant=_flag(row.get("is_compliant")),
            lot_number=row.get("lot_number") or None,
            expires_on=parse_day(dlc) if dlc else None,
            quantity=optional_float(row.get("quantity")),
            unit=row.get("unit") or None,
            storage_location=row.get("storage_location") or None,
            temperature_on_arrival=optional_float(row.get("temperature_on_arrival")),
            non_compliance_reason=row.get("non_compliance_reason") or None,
            notes=row.get("notes") or None,
        )
