"""Consultation booking engine.

Orchestrates the slot and booking stores, the calendar adapter and the
notification dispatcher:
- book: availability checks, meet link, booking insert, slot capacity
- cancel / admin_cancel: release capacity, drop the calendar event
- admin_update_booking: the admin side of the booking state machine

Database writes are committed before any notification is queued. Emails and
calendar clean-up are best-effort and never fail the request.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Coroutine, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from portal_api.core.async_utils import run_async
from portal_api.core.config import settings
from portal_api.core.errors import (
    AlreadyCancelled,
    CalendarError,
    EmailMismatch,
    FullyBooked,
    IllegalTransition,
    PastSlot,
    SlotUnavailable,
    Terminal,
)
from portal_api.core.structured_logging import build_log_context
from portal_api.core.task_queue import NotificationDispatcher
from portal_api.db.enums import BookingStatus, CancelledBy, SlotStatus
from portal_api.db.models import ConsultationBooking, ConsultationSlot
from portal_api.services import booking_service, notification_service, slot_service
from portal_api.services.calendar_service import (
    CalendarAccess,
    CalendarEventResult,
    GoogleCalendarClient,
)
from portal_api.services.email_service import EmailSender
from portal_api.utils.normalization import normalize_email
from portal_api.utils.time_slots import slot_start_datetime

logger = logging.getLogger(__name__)
T = TypeVar("T")

CALENDAR_CALL_TIMEOUT = 45

# Admin-driven booking transitions. Same-state patches are no-ops.
BOOKING_TRANSITIONS: dict[str, set[str]] = {
    BookingStatus.PENDING.value: {BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value},
    BookingStatus.CONFIRMED.value: {BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value},
    BookingStatus.CANCELLED.value: set(),
    BookingStatus.COMPLETED.value: set(),
}


# =============================================================================
# Calendar helpers
# =============================================================================

def _run_calendar(coro: Coroutine[object, object, T]) -> T:
    """Run a calendar coroutine from sync code; timeouts surface as CalendarError."""
    try:
        return run_async(coro, timeout=CALENDAR_CALL_TIMEOUT)
    except TimeoutError as exc:
        raise CalendarError("Calendar request timed out", kind="timeout") from exc


def _slot_window(slot: ConsultationSlot) -> tuple[datetime, datetime]:
    start = slot_start_datetime(slot.date, slot.start_time, settings.GOOGLE_CALENDAR_TIMEZONE)
    return start, start + timedelta(minutes=slot.duration)


def _event_description(
    user_name: str, user_email: str, user_phone: str, message: str | None
) -> str:
    lines = [
        "Consultation booking",
        "",
        f"Name: {user_name}",
        f"Email: {user_email}",
        f"Phone: {user_phone}",
    ]
    if message:
        lines += ["", f"Message: {message}"]
    return "\n".join(lines)


def _create_meeting(
    calendar: GoogleCalendarClient | None,
    slot: ConsultationSlot,
    user_name: str,
    user_email: str,
    user_phone: str,
    message: str | None,
) -> CalendarEventResult | None:
    """
    Create the calendar event for a booking.

    Returns None when no calendar is configured. Provider errors propagate as
    CalendarError; a missing meet link is returned as meet_link=None.
    """
    if calendar is None or not calendar.configured:
        logger.warning(
            "Google Calendar not configured; booking without meeting link",
            extra=build_log_context(slot_id=str(slot.id)),
        )
        return None
    start, end = _slot_window(slot)
    return _run_calendar(
        calendar.create_event(
            start=start,
            end=end,
            summary=f"Consultation with {user_name}",
            description=_event_description(user_name, user_email, user_phone, message),
            attendees=[user_email],
        )
    )


def _delete_event_job(calendar: GoogleCalendarClient, event_id: str) -> None:
    """Dispatcher job: remove a calendar event, logging (not raising) failures."""
    try:
        _run_calendar(calendar.delete_event(event_id))
        logger.info("Calendar event deleted", extra=build_log_context(event_id=event_id))
    except Exception as exc:
        logger.warning(
            "Failed to delete calendar event: %s", exc, extra=build_log_context(event_id=event_id)
        )


def _schedule_event_removal(
    calendar: GoogleCalendarClient | None,
    dispatcher: NotificationDispatcher | None,
    event_id: str | None,
) -> None:
    if not event_id or calendar is None or not calendar.configured:
        return
    if dispatcher is None:
        _delete_event_job(calendar, event_id)
        return
    dispatcher.submit(_delete_event_job, calendar, event_id)


def verify_calendar_access(calendar: GoogleCalendarClient) -> CalendarAccess:
    """Calendar diagnostics for the admin surface and the CLI."""
    return _run_calendar(calendar.verify_access())


# =============================================================================
# Checks
# =============================================================================

def _check_bookable(db: Session, slot: ConsultationSlot) -> int:
    """Raise unless the slot can take one more booking. Returns the active count."""
    if slot.status == SlotStatus.BOOKED.value:
        raise FullyBooked()
    if slot.status != SlotStatus.AVAILABLE.value or not slot.is_available:
        raise SlotUnavailable()

    start, _ = _slot_window(slot)
    if start < datetime.now(timezone.utc):
        raise PastSlot()

    active = booking_service.active_booking_count(db, slot.id)
    if active >= slot.max_bookings:
        raise FullyBooked()
    return active


def _lock_slot(db: Session, slot_id: UUID) -> ConsultationSlot:
    """Re-read the slot under a row lock (no-op on SQLite)."""
    return (
        db.query(ConsultationSlot)
        .filter(ConsultationSlot.id == slot_id)
        .with_for_update()
        .populate_existing()
        .one()
    )


def _release_slot(db: Session, slot_id: UUID) -> None:
    """Return a booked slot to available once it has spare capacity."""
    db.flush()
    slot = _lock_slot(db, slot_id)
    if slot.status != SlotStatus.BOOKED.value:
        return
    if booking_service.active_booking_count(db, slot.id) < slot.max_bookings:
        slot.status = SlotStatus.AVAILABLE.value
        logger.info("Slot reopened after cancellation", extra=build_log_context(slot_id=str(slot.id)))


# =============================================================================
# Public flow
# =============================================================================

def book(
    db: Session,
    slot_id: UUID,
    user_name: str,
    user_email: str,
    user_phone: str,
    message: str | None = None,
    *,
    calendar: GoogleCalendarClient | None = None,
    dispatcher: NotificationDispatcher | None = None,
    sender: EmailSender | None = None,
) -> ConsultationBooking:
    """
    Book one place on a slot.

    The booking is created confirmed. When the last place is taken the slot
    moves to booked. Receipt and admin alert emails are queued after commit.
    """
    slot = slot_service.get_slot(db, slot_id)
    _check_bookable(db, slot)

    event = _create_meeting(calendar, slot, user_name, user_email, user_phone, message)

    try:
        slot = _lock_slot(db, slot_id)
        active = _check_bookable(db, slot)
        booking = booking_service.create_booking(
            db,
            slot_id=slot.id,
            user_name=user_name,
            user_email=user_email,
            user_phone=user_phone,
            message=message,
            status=BookingStatus.CONFIRMED.value,
            meeting_link=event.meet_link if event else None,
            calendar_event_id=event.event_id if event else None,
        )
        if active + 1 >= slot.max_bookings:
            slot.status = SlotStatus.BOOKED.value
        db.commit()
    except Exception:
        db.rollback()
        if event and event.event_id:
            _delete_event_job(calendar, event.event_id)
        raise

    db.refresh(booking)
    db.refresh(slot)
    logger.info(
        "Consultation booked",
        extra=build_log_context(booking_id=str(booking.id), slot_id=str(slot.id)),
    )

    if dispatcher is not None:
        notification_service.schedule_booking_notifications(db, dispatcher, booking, slot, sender)
    return booking


def _cancel(
    db: Session,
    booking: ConsultationBooking,
    by: CancelledBy,
    calendar: GoogleCalendarClient | None,
    dispatcher: NotificationDispatcher | None,
) -> ConsultationBooking:
    if booking.status == BookingStatus.CANCELLED.value:
        raise AlreadyCancelled()
    if booking.status == BookingStatus.COMPLETED.value:
        raise Terminal()

    booking_service.mark_cancelled(db, booking, by)
    _release_slot(db, booking.slot_id)
    db.commit()
    db.refresh(booking)
    logger.info(
        "Consultation booking cancelled by %s",
        by.value,
        extra=build_log_context(booking_id=str(booking.id), slot_id=str(booking.slot_id)),
    )

    _schedule_event_removal(calendar, dispatcher, booking.calendar_event_id)
    return booking


def cancel(
    db: Session,
    booking_id: UUID,
    user_email: str,
    *,
    calendar: GoogleCalendarClient | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> ConsultationBooking:
    """Visitor cancellation; the email must match the booking."""
    booking = booking_service.get_booking(db, booking_id)
    if normalize_email(user_email) != normalize_email(booking.user_email):
        raise EmailMismatch()
    return _cancel(db, booking, CancelledBy.USER, calendar, dispatcher)


# =============================================================================
# Admin flow
# =============================================================================

def admin_cancel(
    db: Session,
    booking_id: UUID,
    *,
    calendar: GoogleCalendarClient | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> ConsultationBooking:
    booking = booking_service.get_booking(db, booking_id)
    return _cancel(db, booking, CancelledBy.ADMIN, calendar, dispatcher)


def admin_update_booking(
    db: Session,
    booking_id: UUID,
    patch: dict,
    *,
    actor_id: UUID | None = None,
    calendar: GoogleCalendarClient | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> ConsultationBooking:
    """
    Apply an admin patch: status, meeting_link, message.

    Allowed status moves are listed in BOOKING_TRANSITIONS; moving to
    cancelled frees slot capacity like a regular cancellation.
    """
    booking = booking_service.get_booking(db, booking_id)
    status = patch.get("status")
    cancelled_now = False

    if status is not None and status != booking.status:
        if status not in BOOKING_TRANSITIONS.get(booking.status, set()):
            raise IllegalTransition(
                f"Cannot change booking status from {booking.status} to {status}"
            )
        if status == BookingStatus.CANCELLED.value:
            booking_service.mark_cancelled(db, booking, CancelledBy.ADMIN)
            _release_slot(db, booking.slot_id)
            cancelled_now = True
        else:
            booking_service.update_booking(db, booking, status=status, confirmed_by=actor_id)

    fields = {key: patch[key] for key in ("meeting_link", "message") if key in patch}
    if fields:
        booking_service.update_booking(db, booking, **fields)

    db.commit()
    db.refresh(booking)
    logger.info(
        "Consultation booking updated",
        extra=build_log_context(
            booking_id=str(booking.id), user_id=str(actor_id) if actor_id else None
        ),
    )

    if cancelled_now:
        _schedule_event_removal(calendar, dispatcher, booking.calendar_event_id)
    return booking
