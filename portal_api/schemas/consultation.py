"""Consultation schemas - Pydantic models for the slot and booking API."""

import datetime as dt
from typing import Literal
from uuid import UUID

from pydantic import AliasChoices, EmailStr, Field, model_validator

from portal_api.schemas.common import CamelModel

HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"
SlotStatusLiteral = Literal["available", "booked", "cancelled", "completed"]
BookingStatusLiteral = Literal["pending", "confirmed", "cancelled", "completed"]


# =============================================================================
# Slots
# =============================================================================

class SlotCreate(CamelModel):
    """Schema for creating a single slot."""
    date: dt.date
    start_time: str = Field(..., pattern=HHMM, description="HH:MM, 24-hour")
    duration: int = Field(30, ge=15, le=480)
    max_bookings: int = Field(1, ge=1)
    notes: str | None = Field(None, max_length=2000)
    status: SlotStatusLiteral = "available"


class SlotUpdate(CamelModel):
    """Schema for patching a slot. Omitted fields are left untouched."""
    date: dt.date | None = None
    start_time: str | None = Field(None, pattern=HHMM)
    duration: int | None = Field(None, ge=15, le=480)
    max_bookings: int | None = Field(None, ge=1)
    notes: str | None = Field(None, max_length=2000)
    status: SlotStatusLiteral | None = None
    is_available: bool | None = None


class BulkSlotCreate(CamelModel):
    """Generate slots every `interval` minutes between two times on each day of a range."""
    start_date: dt.date
    end_date: dt.date
    start_time: str = Field(..., pattern=HHMM)
    end_time: str = Field(..., pattern=HHMM)
    interval: int = Field(..., ge=5, le=480)
    duration: int = Field(30, ge=15, le=480)
    max_bookings: int = Field(1, ge=1)
    notes: str | None = Field(None, max_length=2000)


class SlotSpec(CamelModel):
    """One explicit slot in a multiple-create request."""
    start_time: str
    duration: int = 30
    max_bookings: int = Field(1, ge=1)
    notes: str | None = Field(None, max_length=2000)
    status: SlotStatusLiteral = "available"


class MultipleSlotCreate(CamelModel):
    """Several explicit slots on one date."""
    date: dt.date
    slots: list[SlotSpec] = Field(..., min_length=1)


class SlotRead(CamelModel):
    """Schema for reading a slot."""
    id: UUID
    date: dt.date
    start_time: str
    end_time: str
    duration: int
    max_bookings: int
    status: str
    is_available: bool
    notes: str | None = None
    created_by_id: UUID | None = None
    created_at: dt.datetime
    updated_at: dt.datetime


class SlotWithAvailability(SlotRead):
    """Slot plus its live active-booking count."""
    booking_count: int = 0
    available_spots: int = 0


# =============================================================================
# Bookings
# =============================================================================

class BookingCreate(CamelModel):
    """Public booking request."""
    slot_id: UUID
    user_name: str = Field(..., min_length=1, max_length=255)
    user_email: EmailStr
    user_phone: str = Field(..., min_length=5, max_length=50)
    message: str | None = Field(None, max_length=2000)


class BookingCancel(CamelModel):
    """Public cancel request; the email must match the booking."""
    user_email: EmailStr = Field(
        ..., validation_alias=AliasChoices("userEmail", "user_email", "email")
    )


class BookingUpdate(CamelModel):
    """Admin booking patch."""
    status: BookingStatusLiteral | None = None
    meeting_link: str | None = Field(None, max_length=500)
    message: str | None = Field(None, max_length=2000)

    @model_validator(mode="after")
    def _not_empty(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class BookingRead(CamelModel):
    """Schema for reading a booking."""
    id: UUID
    slot_id: UUID
    user_name: str
    user_email: str
    user_phone: str
    message: str | None = None
    status: str
    meeting_link: str | None = None
    confirmed_at: dt.datetime | None = None
    confirmed_by_id: UUID | None = None
    cancelled_at: dt.datetime | None = None
    cancelled_by: str | None = None
    created_at: dt.datetime
    updated_at: dt.datetime
    slot: SlotRead | None = None


class AdminBookingRead(BookingRead):
    """Booking as seen from the admin portal."""
    calendar_event_id: str | None = None


# =============================================================================
# Calendar diagnostics
# =============================================================================

class CalendarAccessRead(CamelModel):
    ok: bool
    calendar_id: str
    summary: str | None = None
    time_zone: str | None = None
    access_role: str | None = None
    failure: str | None = None
    hint: str | None = None
