"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

import re
from datetime import date, datetime, time
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from models.records import ReceptionRecord, ReservationStatus
from services.activity import ActivityItem, ActivityKind, ActivityStatus
from services.alerts import Alert, AlertCategory, AlertSeverity, DashboardStats
from services.availability import DayAvailability, WindowStatus

_NAME_PATTERN = re.compile(r"^[a-zA-ZÀ-ÿ\s'-]+$")
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_PATTERN = re.compile(r"^(?:(?:\+|00)33|0)\s*[1-9](?:[\s.-]*\d{2}){4}$")


class AlertOut(BaseModel):
    key: str
    category: AlertCategory
    severity: AlertSeverity
    target_id: str
    title: str
    message: str
    area: Optional[str] = None

    @classmethod
    def from_alert(cls, alert: Alert) -> "AlertOut":
        return cls(
            key=alert.key,
            category=alert.category,
            severity=alert.severity,
            target_id=alert.target_id,
            title=alert.title,
            message=alert.message,
            area=alert.area,
        )


class AlertsOut(BaseModel):
    temperature: List[AlertOut] = Field(default_factory=list)
    cleaning: List[AlertOut] = Field(default_factory=list)
    dlc: List[AlertOut] = Field(default_factory=list)


class StatsOut(BaseModel):
    temperature_conformity: int = Field(..., ge=0, le=100)
    temperature_total: int = Field(..., ge=0)
    temperature_conforming: int = Field(..., ge=0)
    cleaning_pending: int = Field(..., ge=0)
    cleaning_done: int = Field(..., ge=0)
    cleaning_total: int = Field(..., ge=0)
    dlc_expired: int = Field(..., ge=0)
    dlc_critical: int = Field(..., ge=0)
    dlc_warning: int = Field(..., ge=0)
    reception_today: int = Field(default=0, ge=0)

    @classmethod
    def from_stats(cls, stats: DashboardStats) -> "StatsOut":
        return cls(**vars(stats))


class ActivityItemOut(BaseModel):
    id: str
    kind: ActivityKind
    occurred_at: datetime
    label: str
    status: ActivityStatus
    detail: Optional[str] = None

    @classmethod
    def from_item(cls, item: ActivityItem) -> "ActivityItemOut":
        return cls(
            id=item.item_id,
            kind=item.kind,
            occurred_at=item.occurred_at,
            label=item.label,
            status=item.status,
            detail=item.detail,
        )


class DashboardOut(BaseModel):
    """Derived dashboard state; recomputed on every request."""

    restaurant_id: str
    generated_at: datetime
    stats: StatsOut
    alerts: AlertsOut
    total_alerts: int = Field(..., ge=0)
    activity: List[ActivityItemOut] = Field(default_factory=list)


class DayTrendOut(BaseModel):
    day: date
    temperature_readings: int = Field(..., ge=0)
    temperature_conformity: int = Field(..., ge=0, le=100)
    cleanings: int = Field(..., ge=0)
    receptions: int = Field(..., ge=0)


class WeeklyTrendOut(BaseModel):
    restaurant_id: str
    days: List[DayTrendOut]


class NextAlertOut(BaseModel):
    alert: Optional[AlertOut] = None
    remaining: int = Field(..., ge=0)


class TemperatureReadingIn(BaseModel):
    zone_id: str
    temperature: float = Field(..., ge=-80, le=300, description="Measured value in °C.")
    notes: Optional[str] = Field(default=None, max_length=500)
    employee_id: Optional[str] = None
    photo_url: Optional[str] = None


class TemperatureReadingOut(BaseModel):
    id: Optional[str] = None
    zone_id: str
    temperature: float
    status: str
    taken_at: datetime
    min_temp: Optional[float] = None
    max_temp: Optional[float] = None


class CleaningCompletionIn(BaseModel):
    is_clean: bool = True
    notes: Optional[str] = Field(default=None, max_length=500)
    employee_id: Optional[str] = None


class CleaningCompletionOut(BaseModel):
    id: str
    post_id: str
    is_clean: bool
    created_at: datetime


class _ProductActionBase(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)
    employee_id: Optional[str] = None


class UseProductIn(_ProductActionBase):
    action_type: Literal["used"]
    quantity: Optional[float] = Field(default=None, gt=0)


class DiscardProductIn(_ProductActionBase):
    action_type: Literal["discarded"]
    reason: str = Field(..., min_length=1, max_length=500)
    quantity: Optional[float] = Field(default=None, gt=0)


class ExtendProductIn(_ProductActionBase):
    action_type: Literal["extended"]
    new_dlc_date: date


class MoveProductIn(_ProductActionBase):
    action_type: Literal["moved"]
    new_location: str = Field(..., min_length=1, max_length=100)


ProductActionIn = Annotated[
    Union[UseProductIn, DiscardProductIn, ExtendProductIn, MoveProductIn],
    Field(discriminator="action_type"),
]


class ProductOut(BaseModel):
    id: str
    product_name: str
    dlc_date: date
    status: str
    storage_location: Optional[str] = None


class ReceptionIn(BaseModel):
    supplier_name: str = Field(..., min_length=1, max_length=100)
    product_name: str = Field(..., min_length=1, max_length=100)
    is_compliant: bool = True
    non_compliance_reason: Optional[str] = Field(default=None, max_length=500)
    lot_number: Optional[str] = Field(default=None, max_length=50)
    dlc_date: Optional[date] = None
    quantity: Optional[float] = Field(default=None, gt=0)
    unit: Optional[str] = Field(default=None, max_length=20)
    storage_location: Optional[str] = Field(default=None, max_length=100)
    temperature_on_arrival: Optional[float] = Field(default=None, ge=-80, le=100)
    notes: Optional[str] = Field(default=None, max_length=500)
    employee_id: Optional[str] = None


class ReceptionOut(BaseModel):
    id: str
    supplier_name: str
    product_name: str
    received_at: datetime
    is_compliant: bool
    non_compliance_reason: Optional[str] = None
    lot_number: Optional[str] = None
    dlc_date: Optional[date] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    storage_location: Optional[str] = None
    temperature_on_arrival: Optional[float] = None
    notes: Optional[str] = None

    @classmethod
    def from_record(cls, record: ReceptionRecord) -> "ReceptionOut":
        return cls(
            id=record.reception_id,
            supplier_name=record.supplier_name,
            product_name=record.product_name,
            received_at=record.received_at,
            is_compliant=record.is_compliant,
            non_compliance_reason=record.non_compliance_reason,
            lot_number=record.lot_number,
            dlc_date=record.expires_on,
            quantity=record.quantity,
            unit=record.unit,
            storage_location=record.storage_location,
            temperature_on_arrival=record.temperature_on_arrival,
            notes=record.notes,
        )


class PhotoUploadResponse(BaseModel):
    url: str


class TimeSlotsOut(BaseModel):
    service_id: str
    name: str
    status: WindowStatus
    start_time: str
    end_time: str
    slots: List[str] = Field(default_factory=list)
    remaining_covers: Optional[int] = None


class AvailabilityOut(BaseModel):
    day: date
    services: List[TimeSlotsOut] = Field(default_factory=list)

    @classmethod
    def from_day(cls, day: DayAvailability) -> "AvailabilityOut":
        return cls(
            day=day.day,
            services=[
                TimeSlotsOut(
                    service_id=item.window.service_id,
                    name=item.window.name,
                    status=item.status,
                    start_time=item.window.start_time.strftime("%H:%M"),
                    end_time=item.window.end_time.strftime("%H:%M"),
                    slots=[slot.strftime("%H:%M") for slot in item.slots],
                    remaining_covers=item.remaining_covers,
                )
                for item in day.windows
            ],
        )


class ReservationRequestIn(BaseModel):
    """Public booking form payload."""

    reservation_date: date
    reservation_time: time
    party_size: int = Field(..., ge=1, le=50)
    customer_name: str = Field(..., min_length=2, max_length=100)
    customer_email: str = Field(..., max_length=254)
    customer_phone: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=500)
    service_id: str

    @field_validator("customer_name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        candidate = value.strip()
        if len(candidate) < 2 or not _NAME_PATTERN.match(candidate):
            raise ValueError("Name contains invalid characters")
        return candidate

    @field_validator("customer_email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        candidate = value.strip().lower()
        if not _EMAIL_PATTERN.match(candidate):
            raise ValueError("Invalid e-mail address")
        return candidate

    @field_validator("customer_phone")
    @classmethod
    def validate_phone(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        candidate = value.strip()
        if not _PHONE_PATTERN.match(candidate):
            raise ValueError("Invalid phone number")
        return re.sub(r"[\s.-]", "", candidate)

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class ReservationOut(BaseModel):
    id: str
    service_id: Optional[str] = None
    reservation_date: date
    reservation_time: str
    party_size: int
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    status: ReservationStatus
    table_id: Optional[str] = None
    notes: Optional[str] = None


class StatusUpdateIn(BaseModel):
    status: ReservationStatus


class TableAssignmentIn(BaseModel):
    table_id: Optional[str] = None
