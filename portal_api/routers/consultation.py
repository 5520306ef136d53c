"""Public consultation router - slot listing, booking and self-service cancel.

Unauthenticated endpoints for website visitors to:
- View open consultation slots
- Book a slot (rate limited)
- View a booking by id
- Cancel a booking with the email it was made with
"""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from portal_api.core.config import settings
from portal_api.core.deps import get_calendar_client, get_db, get_dispatcher, get_email_sender
from portal_api.core.rate_limit import limiter
from portal_api.schemas.common import Envelope
from portal_api.schemas.consultation import (
    BookingCancel,
    BookingCreate,
    BookingRead,
    SlotRead,
    SlotWithAvailability,
)
from portal_api.services import booking_service, consultation_service, slot_service
from portal_api.services.slot_service import SlotAvailability

router = APIRouter(prefix="/consultation", tags=["consultation"])


# =============================================================================
# Helper Functions
# =============================================================================

def _slot_to_read(item: SlotAvailability) -> SlotWithAvailability:
    slot = item.slot
    return SlotWithAvailability(
        id=slot.id,
        date=slot.date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        duration=slot.duration,
        max_bookings=slot.max_bookings,
        status=slot.status,
        is_available=slot.is_available,
        notes=slot.notes,
        created_by_id=slot.created_by_id,
        created_at=slot.created_at,
        updated_at=slot.updated_at,
        booking_count=item.booking_count,
        available_spots=item.available_spots,
    )


def _booking_to_read(booking) -> BookingRead:
    return BookingRead(
        id=booking.id,
        slot_id=booking.slot_id,
        user_name=booking.user_name,
        user_email=booking.user_email,
        user_phone=booking.user_phone,
        message=booking.message,
        status=booking.status,
        meeting_link=booking.meeting_link,
        confirmed_at=booking.confirmed_at,
        confirmed_by_id=booking.confirmed_by_id,
        cancelled_at=booking.cancelled_at,
        cancelled_by=booking.cancelled_by,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
        slot=SlotRead.model_validate(booking.slot) if booking.slot else None,
    )


# =============================================================================
# Slots
# =============================================================================

@router.get("/slots", response_model=Envelope[list[SlotWithAvailability]])
def list_available_slots(
    date_: date | None = Query(None, alias="date", description="Single date (YYYY-MM-DD)"),
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    """
    Open slots with remaining capacity.

    Defaults to today onward when no date filter is given.
    """
    items = slot_service.list_available(db, on_date=date_, start_date=start_date, end_date=end_date)
    return Envelope(
        message="Available slots retrieved",
        data=[_slot_to_read(item) for item in items],
    )


# =============================================================================
# Bookings
# =============================================================================

@router.post("/book", status_code=201, response_model=Envelope[BookingRead])
@limiter.limit(settings.RATE_LIMIT_BOOKING)
def book_consultation(
    data: BookingCreate,
    request: Request,
    db: Session = Depends(get_db),
    calendar=Depends(get_calendar_client),
    dispatcher=Depends(get_dispatcher),
    sender=Depends(get_email_sender),
):
    """
    Book a consultation slot.

    The booking is confirmed immediately. Confirmation and admin alert
    emails are sent in the background.
    """
    booking = consultation_service.book(
        db,
        slot_id=data.slot_id,
        user_name=data.user_name,
        user_email=data.user_email,
        user_phone=data.user_phone,
        message=data.message,
        calendar=calendar,
        dispatcher=dispatcher,
        sender=sender,
    )
    return Envelope(
        message="Consultation booked successfully",
        data=_booking_to_read(booking),
    )


@router.get("/bookings/{booking_id}", response_model=Envelope[BookingRead])
def get_booking(booking_id: UUID, db: Session = Depends(get_db)):
    booking = booking_service.get_booking(db, booking_id)
    return Envelope(message="Booking retrieved", data=_booking_to_read(booking))


@router.post("/bookings/{booking_id}/cancel", response_model=Envelope[BookingRead])
def cancel_booking(
    booking_id: UUID,
    data: BookingCancel,
    db: Session = Depends(get_db),
    calendar=Depends(get_calendar_client),
    dispatcher=Depends(get_dispatcher),
):
    """Cancel a booking. The email must match the one used to book."""
    booking = consultation_service.cancel(
        db,
        booking_id,
        data.user_email,
        calendar=calendar,
        dispatcher=dispatcher,
    )
    return Envelope(message="Booking cancelled successfully", data=_booking_to_read(booking))
