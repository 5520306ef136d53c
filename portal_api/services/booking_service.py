"""Consultation booking store.

Mutations here touch only the booking row. Cross-entity effects (slot
status, calendar, email) live in consultation_service.
"""

from datetime import date, datetime, timezone
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from portal_api.core.errors import NotFound
from portal_api.db.enums import BookingStatus, CancelledBy
from portal_api.db.models import ConsultationBooking, ConsultationSlot
from portal_api.utils.normalization import normalize_email, normalize_name
from portal_api.utils.pagination import PaginationParams, paginate_query


# =============================================================================
# Counts
# =============================================================================

def active_booking_count(db: Session, slot_id: UUID) -> int:
    """Bookings on the slot whose status is not cancelled."""
    return db.query(func.count(ConsultationBooking.id)).filter(
        ConsultationBooking.slot_id == slot_id,
        ConsultationBooking.status != BookingStatus.CANCELLED.value,
    ).scalar() or 0


def active_booking_counts(db: Session, slot_ids: list[UUID]) -> dict[UUID, int]:
    """Active booking counts for many slots in one query."""
    if not slot_ids:
        return {}
    rows = (
        db.query(ConsultationBooking.slot_id, func.count(ConsultationBooking.id))
        .filter(
            ConsultationBooking.slot_id.in_(slot_ids),
            ConsultationBooking.status != BookingStatus.CANCELLED.value,
        )
        .group_by(ConsultationBooking.slot_id)
        .all()
    )
    return {slot_id: count for slot_id, count in rows}


# =============================================================================
# Queries
# =============================================================================

def get_booking(db: Session, booking_id: UUID) -> ConsultationBooking:
    booking = (
        db.query(ConsultationBooking)
        .options(joinedload(ConsultationBooking.slot))
        .filter(ConsultationBooking.id == booking_id)
        .first()
    )
    if not booking:
        raise NotFound("Booking not found")
    return booking


def list_bookings(
    db: Session,
    pagination: PaginationParams,
    status: str | None = None,
    slot_id: UUID | None = None,
    user_email: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> tuple[list[ConsultationBooking], int]:
    """Admin listing, newest first. Date filters apply to the slot date."""
    query = (
        db.query(ConsultationBooking)
        .join(ConsultationSlot, ConsultationSlot.id == ConsultationBooking.slot_id)
        .options(joinedload(ConsultationBooking.slot))
    )
    if status:
        query = query.filter(ConsultationBooking.status == status)
    if slot_id:
        query = query.filter(ConsultationBooking.slot_id == slot_id)
    if user_email:
        query = query.filter(ConsultationBooking.user_email == normalize_email(user_email))
    if start_date is not None:
        query = query.filter(ConsultationSlot.date >= start_date)
    if end_date is not None:
        query = query.filter(ConsultationSlot.date <= end_date)
    query = query.order_by(ConsultationBooking.created_at.desc())
    return paginate_query(query, pagination)


# =============================================================================
# Mutations
# =============================================================================

def create_booking(
    db: Session,
    slot_id: UUID,
    user_name: str,
    user_email: str,
    user_phone: str,
    message: str | None = None,
    status: str = BookingStatus.CONFIRMED.value,
    meeting_link: str | None = None,
    calendar_event_id: str | None = None,
) -> ConsultationBooking:
    """
    Stage a booking row (flushed, not committed).

    Callers have already checked slot availability and capacity.
    """
    now = datetime.now(timezone.utc)
    booking = ConsultationBooking(
        slot_id=slot_id,
        user_name=normalize_name(user_name),
        user_email=normalize_email(user_email),
        user_phone=user_phone.strip(),
        message=(message or "").strip() or None,
        status=status,
        meeting_link=meeting_link,
        calendar_event_id=calendar_event_id,
        confirmed_at=now if status == BookingStatus.CONFIRMED.value else None,
    )
    db.add(booking)
    db.flush()
    return booking


def update_booking(
    db: Session,
    booking: ConsultationBooking,
    status: str | None = None,
    confirmed_by: UUID | None = None,
    **fields,
) -> ConsultationBooking:
    """Set status and/or plain fields (meeting_link, message). Not committed."""
    if status == BookingStatus.CONFIRMED.value:
        booking.status = status
        if booking.confirmed_at is None:
            booking.confirmed_at = datetime.now(timezone.utc)
        if booking.confirmed_by_id is None and confirmed_by is not None:
            booking.confirmed_by_id = confirmed_by
    elif status is not None:
        booking.status = status
    for key in ("meeting_link", "message"):
        if key in fields:
            setattr(booking, key, fields[key])
    return booking


def mark_cancelled(
    db: Session,
    booking: ConsultationBooking,
    by: CancelledBy,
) -> ConsultationBooking:
    """Flag the booking cancelled. Not committed."""
    booking.status = BookingStatus.CANCELLED.value
    booking.cancelled_at = datetime.now(timezone.utc)
    booking.cancelled_by = by.value
    return booking
