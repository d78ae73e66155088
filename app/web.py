from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from app.api import get_booking, get_now
from app.schemas import ReservationRequestIn
from models.records import Reservation
from services.availability import WindowStatus
from services.booking import BookingRequest, BookingService, PublicBookingPage, SlotUnavailable


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))


router = APIRouter(include_in_schema=False)


def _load_page(booking: BookingService, slug: str, now: datetime) -> PublicBookingPage:
    try:
        return booking.page(slug, now)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


def _render(
    request: Request,
    page: PublicBookingPage,
    status_code: int = status.HTTP_200_OK,
    error: Optional[str] = None,
    reservation: Optional[Reservation] = None,
) -> HTMLResponse:
    open_days = [day for day in page.days if day.has_slots]
    services = {
        item.window.service_id: item.window
        for day in open_days
        for item in day.windows
        if item.status == WindowStatus.open_now and item.slots
    }
    return templates.TemplateResponse(
        request,
        "booking/page.html",
        {
            "page": page,
            "open_days": open_days,
            "services": list(services.values()),
            "open_now": WindowStatus.open_now,
            "error": error,
            "reservation": reservation,
        },
        status_code=status_code,
    )


def _validation_message(exc: ValidationError) -> str:
    return "; ".join(
        f"{error['loc'][-1]}: {error['msg']}" if error.get("loc") else error["msg"]
        for error in exc.errors()
    )


@router.get("/book/{slug}", name="booking_page", response_class=HTMLResponse)
async def booking_page(
    request: Request,
    slug: str,
    booking: BookingService = Depends(get_booking),
    now: datetime = Depends(get_now),
) -> HTMLResponse:
    return _render(request, _load_page(booking, slug, now))


@router.post("/book/{slug}", name="booking_submit", response_class=HTMLResponse)
async def booking_submit(
    request: Request,
    slug: str,
    service_id: str = Form(""),
    reservation_date: str = Form(""),
    reservation_time: str = Form(""),
    party_size: str = Form(""),
    customer_name: str = Form(""),
    customer_email: str = Form(""),
    customer_phone: str = Form(""),
    notes: str = Form(""),
    booking: BookingService = Depends(get_booking),
    now: datetime = Depends(get_now),
) -> HTMLResponse:
    page = _load_page(booking, slug, now)
    try:
        payload = ReservationRequestIn.model_validate(
            {
                "service_id": service_id,
                "reservation_date": reservation_date,
                "reservation_time": reservation_time,
                "party_size": party_size,
                "customer_name": customer_name,
                "customer_email": customer_email,
                "customer_phone": customer_phone or None,
                "notes": notes or None,
            }
        )
    except ValidationError as exc:
        return _render(
            request, page, status.HTTP_400_BAD_REQUEST, error=_validation_message(exc)
        )

    try:
        reservation = booking.create_reservation(
            slug,
            BookingRequest(
                service_id=payload.service_id,
                reservation_date=payload.reservation_date,
                reservation_time=payload.reservation_time,
                party_size=payload.party_size,
                customer_name=payload.customer_name,
                customer_email=payload.customer_email,
                customer_phone=payload.customer_phone,
                notes=payload.notes,
            ),
            now,
        )
    except KeyError as exc:
        detail = exc.args[0] if exc.args else "Not found."
        return _render(request, page, status.HTTP_400_BAD_REQUEST, error=str(detail))
    except SlotUnavailable as exc:
        return _render(request, page, status.HTTP_409_CONFLICT, error=str(exc))
    except ValueError as exc:
        return _render(request, page, status.HTTP_400_BAD_REQUEST, error=str(exc))

    page = _load_page(booking, slug, now)
    return _render(request, page, status.HTTP_201_CREATED, reservation=reservation)
