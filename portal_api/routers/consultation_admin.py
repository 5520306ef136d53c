"""Admin consultation router - slot management, bookings and calendar checks.

All endpoints require the superuser or project manager role.
"""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from portal_api.core.deps import get_calendar_client, get_db, get_dispatcher, require_roles
from portal_api.db.enums import BookingStatus, RoleName, SlotStatus
from portal_api.schemas.common import Envelope, Page
from portal_api.schemas.consultation import (
    AdminBookingRead,
    BookingUpdate,
    BulkSlotCreate,
    CalendarAccessRead,
    MultipleSlotCreate,
    SlotCreate,
    SlotRead,
    SlotUpdate,
    SlotWithAvailability,
)
from portal_api.services import booking_service, consultation_service, slot_service
from portal_api.services.slot_service import SlotAvailability
from portal_api.utils.pagination import PaginationParams, get_pagination, total_pages

router = APIRouter(prefix="/consultation/admin", tags=["consultation-admin"])

require_admin = require_roles(RoleName.SUPERUSER, RoleName.PROJECT_MANAGER)


# =============================================================================
# Helper Functions
# =============================================================================

def _slot_to_read(item: SlotAvailability) -> SlotWithAvailability:
    return SlotWithAvailability(
        **SlotRead.model_validate(item.slot).model_dump(),
        booking_count=item.booking_count,
        available_spots=item.available_spots,
    )


def _new_slot_to_read(slot) -> SlotWithAvailability:
    return _slot_to_read(SlotAvailability(slot=slot, booking_count=0))


def _booking_to_read(booking) -> AdminBookingRead:
    return AdminBookingRead(
        id=booking.id,
        slot_id=booking.slot_id,
        user_name=booking.user_name,
        user_email=booking.user_email,
        user_phone=booking.user_phone,
        message=booking.message,
        status=booking.status,
        meeting_link=booking.meeting_link,
        calendar_event_id=booking.calendar_event_id,
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

@router.get("/slots", response_model=Envelope[Page[SlotWithAvailability]])
def list_slots(
    status: SlotStatus | None = Query(None),
    is_available: bool | None = Query(None, alias="isAvailable"),
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    items, total = slot_service.list_slots(
        db,
        pagination,
        status=status.value if status else None,
        is_available=is_available,
        start_date=start_date,
        end_date=end_date,
    )
    return Envelope(
        message="Slots retrieved",
        data=Page(
            items=[_slot_to_read(item) for item in items],
            page=pagination.page,
            limit=pagination.limit,
            total=total,
            total_pages=total_pages(total, pagination.limit),
        ),
    )


@router.get("/slots/{slot_id}", response_model=Envelope[SlotWithAvailability])
def get_slot(slot_id: UUID, db: Session = Depends(get_db), user=Depends(require_admin)):
    item = slot_service.get_slot_with_count(db, slot_id)
    return Envelope(message="Slot retrieved", data=_slot_to_read(item))


@router.post("/slots", status_code=201, response_model=Envelope[SlotWithAvailability])
def create_slot(data: SlotCreate, db: Session = Depends(get_db), user=Depends(require_admin)):
    slot = slot_service.create_slot(
        db,
        slot_date=data.date,
        start_time=data.start_time,
        duration=data.duration,
        max_bookings=data.max_bookings,
        notes=data.notes,
        status=data.status,
        created_by=user.id,
    )
    return Envelope(message="Slot created successfully", data=_new_slot_to_read(slot))


@router.post("/slots/bulk", status_code=201, response_model=Envelope[list[SlotWithAvailability]])
def create_bulk_slots(
    data: BulkSlotCreate, db: Session = Depends(get_db), user=Depends(require_admin)
):
    """Generate slots at a fixed interval across a date range."""
    slots = slot_service.create_bulk(
        db,
        start_date=data.start_date,
        end_date=data.end_date,
        start_time=data.start_time,
        end_time=data.end_time,
        interval=data.interval,
        duration=data.duration,
        max_bookings=data.max_bookings,
        notes=data.notes,
        created_by=user.id,
    )
    return Envelope(
        message=f"{len(slots)} slots created successfully",
        data=[_new_slot_to_read(slot) for slot in slots],
    )


@router.post("/slots/multiple", status_code=201, response_model=Envelope[list[SlotWithAvailability]])
def create_multiple_slots(
    data: MultipleSlotCreate, db: Session = Depends(get_db), user=Depends(require_admin)
):
    """Create several explicitly-timed slots on one date."""
    slots = slot_service.create_multiple(
        db,
        slot_date=data.date,
        slots=[spec.model_dump() for spec in data.slots],
        created_by=user.id,
    )
    return Envelope(
        message=f"{len(slots)} slots created successfully",
        data=[_new_slot_to_read(slot) for slot in slots],
    )


@router.put("/slots/{slot_id}", response_model=Envelope[SlotWithAvailability])
def update_slot(
    slot_id: UUID, data: SlotUpdate, db: Session = Depends(get_db), user=Depends(require_admin)
):
    item = slot_service.update_slot(db, slot_id, data.model_dump(exclude_unset=True))
    return Envelope(message="Slot updated successfully", data=_slot_to_read(item))


@router.delete("/slots/{slot_id}", response_model=Envelope[None])
def delete_slot(slot_id: UUID, db: Session = Depends(get_db), user=Depends(require_admin)):
    slot_service.delete_slot(db, slot_id)
    return Envelope(message="Slot deleted successfully")


# =============================================================================
# Bookings
# =============================================================================

@router.get("/bookings", response_model=Envelope[Page[AdminBookingRead]])
def list_bookings(
    status: BookingStatus | None = Query(None),
    slot_id: UUID | None = Query(None, alias="slotId"),
    user_email: str | None = Query(None, alias="userEmail"),
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    items, total = booking_service.list_bookings(
        db,
        pagination,
        status=status.value if status else None,
        slot_id=slot_id,
        user_email=user_email,
        start_date=start_date,
        end_date=end_date,
    )
    return Envelope(
        message="Bookings retrieved",
        data=Page(
            items=[_booking_to_read(b) for b in items],
            page=pagination.page,
            limit=pagination.limit,
            total=total,
            total_pages=total_pages(total, pagination.limit),
        ),
    )


@router.get("/bookings/{booking_id}", response_model=Envelope[AdminBookingRead])
def get_booking(booking_id: UUID, db: Session = Depends(get_db), user=Depends(require_admin)):
    booking = booking_service.get_booking(db, booking_id)
    return Envelope(message="Booking retrieved", data=_booking_to_read(booking))


@router.put("/bookings/{booking_id}", response_model=Envelope[AdminBookingRead])
def update_booking(
    booking_id: UUID,
    data: BookingUpdate,
    db: Session = Depends(get_db),
    calendar=Depends(get_calendar_client),
    dispatcher=Depends(get_dispatcher),
    user=Depends(require_admin),
):
    """Change status, meeting link or message."""
    booking = consultation_service.admin_update_booking(
        db,
        booking_id,
        data.model_dump(exclude_unset=True),
        actor_id=user.id,
        calendar=calendar,
        dispatcher=dispatcher,
    )
    return Envelope(message="Booking updated successfully", data=_booking_to_read(booking))


@router.post("/bookings/{booking_id}/cancel", response_model=Envelope[AdminBookingRead])
def cancel_booking(
    booking_id: UUID,
    db: Session = Depends(get_db),
    calendar=Depends(get_calendar_client),
    dispatcher=Depends(get_dispatcher),
    user=Depends(require_admin),
):
    booking = consultation_service.admin_cancel(
        db, booking_id, calendar=calendar, dispatcher=dispatcher
    )
    return Envelope(message="Booking cancelled successfully", data=_booking_to_read(booking))


# =============================================================================
# Calendar
# =============================================================================

@router.get("/calendar/verify", response_model=Envelope[CalendarAccessRead])
def verify_calendar(calendar=Depends(get_calendar_client), user=Depends(require_admin)):
    """Check that the configured calendar is reachable and writable."""
    access = consultation_service.verify_calendar_access(calendar)
    return Envelope(
        success=access.ok,
        message="Calendar access verified" if access.ok else "Calendar access check failed",
        data=CalendarAccessRead(**access._asdict()),
    )
