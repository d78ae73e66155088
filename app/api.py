"""HTTP route definitions for the service."""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status

from app.schemas import (
    ActivityItemOut,
    AlertOut,
    AlertsOut,
    AvailabilityOut,
    CleaningCompletionIn,
    CleaningCompletionOut,
    DashboardOut,
    DayTrendOut,
    DiscardProductIn,
    ExtendProductIn,
    MoveProductIn,
    NextAlertOut,
    PhotoUploadResponse,
    ProductActionIn,
    ProductOut,
    ReceptionIn,
    ReceptionOut,
    ReservationOut,
    ReservationRequestIn,
    StatsOut,
    StatusUpdateIn,
    TableAssignmentIn,
    TemperatureReadingIn,
    TemperatureReadingOut,
    WeeklyTrendOut,
)
from models.records import Reservation, ReservationStatus
from services.alerts import AlertCategory
from services.booking import (
    BookingRequest,
    BookingService,
    InvalidTransition,
    SlotUnavailable,
    build_default_booking,
)
from services.clock import local_now
from services.compliance import classify
from services.dashboard import (
    DashboardService,
    DiscardProduct,
    ExtendProduct,
    MoveProduct,
    ProductAction,
    UseProduct,
    build_default_dashboard,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_dashboard() -> DashboardService:
    return build_default_dashboard()


def get_booking() -> BookingService:
    return build_default_booking()


def get_now() -> datetime:
    return local_now()


def _not_found(exc: KeyError) -> HTTPException:
    detail = exc.args[0] if exc.args else "Not found."
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(detail))


def _bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _conflict(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def _reservation_out(reservation: Reservation) -> ReservationOut:
    return ReservationOut(
        id=reservation.reservation_id,
        service_id=reservation.service_id,
        reservation_date=reservation.date,
        reservation_time=reservation.time.strftime("%H:%M"),
        party_size=reservation.party_size,
        customer_name=reservation.customer_name,
        customer_email=reservation.customer_email,
        customer_phone=reservation.customer_phone,
        status=reservation.status,
        table_id=reservation.table_id,
        notes=reservation.notes,
    )


def _product_action(payload: ProductActionIn) -> ProductAction:
    if isinstance(payload, DiscardProductIn):
        return DiscardProduct(reason=payload.reason, quantity=payload.quantity)
    if isinstance(payload, ExtendProductIn):
        return ExtendProduct(new_expires_on=payload.new_dlc_date, reason=payload.reason)
    if isinstance(payload, MoveProductIn):
        return MoveProduct(new_location=payload.new_location, reason=payload.reason)
    return UseProduct(reason=payload.reason, quantity=payload.quantity)


@router.get(
    "/restaurants/{restaurant_id}/dashboard",
    response_model=DashboardOut,
    summary="Derived HACCP statistics, open alerts and today's activity.",
)
async def get_dashboard_state(
    restaurant_id: str,
    dashboard: DashboardService = Depends(get_dashboard),
    now: datetime = Depends(get_now),
) -> DashboardOut:
    snapshot = dashboard.snapshot(restaurant_id, now)
    alerts = snapshot.alerts
    return DashboardOut(
        restaurant_id=restaurant_id,
        generated_at=snapshot.generated_at,
        stats=StatsOut.from_stats(snapshot.stats),
        alerts=AlertsOut(
            temperature=[AlertOut.from_alert(a) for a in alerts.temperature],
            cleaning=[AlertOut.from_alert(a) for a in alerts.cleaning],
            dlc=[AlertOut.from_alert(a) for a in alerts.dlc],
        ),
        total_alerts=alerts.total,
        activity=[ActivityItemOut.from_item(item) for item in snapshot.activity],
    )


@router.get(
    "/restaurants/{restaurant_id}/dashboard/weekly",
    response_model=WeeklyTrendOut,
    summary="Per-day readings, conformity, cleanings and deliveries for the last days.",
)
async def get_weekly_trend(
    restaurant_id: str,
    days: int = Query(default=7, ge=1, le=31),
    dashboard: DashboardService = Depends(get_dashboard),
    now: datetime = Depends(get_now),
) -> WeeklyTrendOut:
    trend = dashboard.weekly_trend(restaurant_id, now, days)
    return WeeklyTrendOut(
        restaurant_id=restaurant_id,
        days=[DayTrendOut(**vars(day)) for day in trend],
    )


@router.get(
    "/restaurants/{restaurant_id}/alerts/next",
    response_model=NextAlertOut,
    summary="Next open alert of the walk-through, skipping already handled keys.",
)
async def get_next_alert(
    restaurant_id: str,
    resolved: List[str] = Query(default=[]),
    category: Optional[AlertCategory] = None,
    dashboard: DashboardService = Depends(get_dashboard),
    now: datetime = Depends(get_now),
) -> NextAlertOut:
    upcoming = dashboard.next_alert(restaurant_id, now, resolved=resolved, category=category)
    return NextAlertOut(
        alert=AlertOut.from_alert(upcoming.alert) if upcoming.alert else None,
        remaining=upcoming.remaining,
    )


@router.post(
    "/restaurants/{restaurant_id}/receptions",
    status_code=status.HTTP_201_CREATED,
    response_model=ReceptionOut,
    summary="Record a goods delivery check.",
)
async def post_reception(
    restaurant_id: str,
    payload: ReceptionIn,
    dashboard: DashboardService = Depends(get_dashboard),
    now: datetime = Depends(get_now),
) -> ReceptionOut:
    try:
        record = dashboard.record_reception(
            restaurant_id,
            payload.supplier_name,
            payload.product_name,
            now,
            is_compliant=payload.is_compliant,
            non_compliance_reason=payload.non_compliance_reason,
            lot_number=payload.lot_number,
            expires_on=payload.dlc_date,
            quantity=payload.quantity,
            unit=payload.unit,
            storage_location=payload.storage_location,
            temperature_on_arrival=payload.temperature_on_arrival,
            notes=payload.notes,
            employee_id=payload.employee_id,
        )
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return ReceptionOut.from_record(record)


@router.get(
    "/restaurants/{restaurant_id}/receptions",
    response_model=List[ReceptionOut],
    summary="Deliveries received on a day (today by default).",
)
async def list_receptions(
    restaurant_id: str,
    on: Optional[date] = Query(default=None, alias="date"),
    dashboard: DashboardService = Depends(get_dashboard),
    now: datetime = Depends(get_now),
) -> List[ReceptionOut]:
    records = dashboard.list_receptions(restaurant_id, on or now.date(), now)
    return [ReceptionOut.from_record(record) for record in records]


@router.post(
    "/restaurants/{restaurant_id}/temperature-readings",
    status_code=status.HTTP_201_CREATED,
    response_model=TemperatureReadingOut,
    summary="Record a temperature reading for a zone.",
)
async def post_temperature_reading(
    restaurant_id: str,
    payload: TemperatureReadingIn,
    dashboard: DashboardService = Depends(get_dashboard),
    now: datetime = Depends(get_now),
) -> TemperatureReadingOut:
    try:
        reading = dashboard.record_temperature(
            restaurant_id,
            payload.zone_id,
            payload.temperature,
            now,
            notes=payload.notes,
            employee_id=payload.employee_id,
            photo_url=payload.photo_url,
        )
    except KeyError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return TemperatureReadingOut(
        id=reading.reading_id,
        zone_id=reading.zone_id,
        temperature=reading.value,
        status=classify(reading.value, reading.bound_min, reading.bound_max).value,
        taken_at=reading.taken_at,
        min_temp=reading.bound_min,
        max_temp=reading.bound_max,
    )


@router.post(
    "/restaurants/{restaurant_id}/cleaning-posts/{post_id}/completions",
    status_code=status.HTTP_201_CREATED,
    response_model=CleaningCompletionOut,
    summary="Record that a cleaning post was cleaned.",
)
async def post_cleaning_completion(
    restaurant_id: str,
    post_id: str,
    payload: Optional[CleaningCompletionIn] = None,
    dashboard: DashboardService = Depends(get_dashboard),
    now: datetime = Depends(get_now),
) -> CleaningCompletionOut:
    payload = payload or CleaningCompletionIn()
    try:
        row = dashboard.complete_cleaning(
            restaurant_id,
            post_id,
            now,
            is_clean=payload.is_clean,
            notes=payload.notes,
            employee_id=payload.employee_id,
        )
    except KeyError as exc:
        raise _not_found(exc) from exc
    return CleaningCompletionOut(
        id=row["id"], post_id=post_id, is_clean=row["is_clean"], created_at=row["created_at"]
    )


@router.post(
    "/restaurants/{restaurant_id}/dlc-products/{product_id}/actions",
    response_model=ProductOut,
    summary="Use, discard, extend or move a tracked product.",
)
async def post_product_action(
    restaurant_id: str,
    product_id: str,
    payload: ProductActionIn,
    dashboard: DashboardService = Depends(get_dashboard),
    now: datetime = Depends(get_now),
) -> ProductOut:
    try:
        item = dashboard.apply_product_action(
            restaurant_id,
            product_id,
            _product_action(payload),
            now,
            employee_id=payload.employee_id,
        )
    except KeyError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return ProductOut(
        id=item.product_id,
        product_name=item.name,
        dlc_date=item.expires_on,
        status=item.status.value,
        storage_location=item.storage_location,
    )


@router.post(
    "/restaurants/{restaurant_id}/photos",
    status_code=status.HTTP_201_CREATED,
    response_model=PhotoUploadResponse,
    summary="Upload a photo and get its public URL.",
)
async def upload_photo(
    restaurant_id: str,
    file: UploadFile = File(..., description="Photo attached to a HACCP record."),
    dashboard: DashboardService = Depends(get_dashboard),
) -> PhotoUploadResponse:
    filename = Path(file.filename or "photo.jpg").name
    try:
        contents = await file.read()
        url = dashboard.upload_photo(restaurant_id, filename, contents)
    except ValueError as exc:
        raise _bad_request(exc) from exc
    finally:
        await file.close()
    return PhotoUploadResponse(url=url)


@router.get(
    "/restaurants/{restaurant_id}/reservations",
    response_model=List[ReservationOut],
    summary="List reservations, optionally for one date or status.",
)
async def list_reservations(
    restaurant_id: str,
    on: Optional[date] = Query(default=None, alias="date"),
    reservation_status: Optional[ReservationStatus] = Query(default=None, alias="status"),
    booking: BookingService = Depends(get_booking),
) -> List[ReservationOut]:
    reservations = booking.list_reservations(restaurant_id, on=on, status=reservation_status)
    return [_reservation_out(r) for r in reservations]


@router.patch(
    "/restaurants/{restaurant_id}/reservations/{reservation_id}/status",
    response_model=ReservationOut,
    summary="Move a reservation through its lifecycle.",
)
async def patch_reservation_status(
    restaurant_id: str,
    reservation_id: str,
    payload: StatusUpdateIn,
    booking: BookingService = Depends(get_booking),
    now: datetime = Depends(get_now),
) -> ReservationOut:
    try:
        reservation = booking.change_status(restaurant_id, reservation_id, payload.status, now)
    except KeyError as exc:
        raise _not_found(exc) from exc
    except InvalidTransition as exc:
        raise _conflict(exc) from exc
    return _reservation_out(reservation)


@router.put(
    "/restaurants/{restaurant_id}/reservations/{reservation_id}/table",
    response_model=ReservationOut,
    summary="Place a reservation at a table, or clear its table.",
)
async def put_reservation_table(
    restaurant_id: str,
    reservation_id: str,
    payload: TableAssignmentIn,
    booking: BookingService = Depends(get_booking),
) -> ReservationOut:
    try:
        reservation = booking.assign_table(restaurant_id, reservation_id, payload.table_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return _reservation_out(reservation)


@router.get(
    "/book/{slug}/availability",
    response_model=AvailabilityOut,
    summary="Bookable services and time slots for one date.",
)
async def get_availability(
    slug: str,
    on: Optional[date] = Query(default=None, alias="date"),
    booking: BookingService = Depends(get_booking),
    now: datetime = Depends(get_now),
) -> AvailabilityOut:
    try:
        day = booking.availability(slug, on or now.date(), now)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return AvailabilityOut.from_day(day)


@router.post(
    "/book/{slug}/reservations",
    status_code=status.HTTP_201_CREATED,
    response_model=ReservationOut,
    summary="Request a reservation; it starts as pending.",
)
async def post_reservation(
    slug: str,
    payload: ReservationRequestIn,
    booking: BookingService = Depends(get_booking),
    now: datetime = Depends(get_now),
) -> ReservationOut:
    request = BookingRequest(
        service_id=payload.service_id,
        reservation_date=payload.reservation_date,
        reservation_time=payload.reservation_time,
        party_size=payload.party_size,
        customer_name=payload.customer_name,
        customer_email=payload.customer_email,
        customer_phone=payload.customer_phone,
        notes=payload.notes,
    )
    try:
        reservation = booking.create_reservation(slug, request, now)
    except KeyError as exc:
        raise _not_found(exc) from exc
    except SlotUnavailable as exc:
        raise _conflict(exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return _reservation_out(reservation)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
