"""Pydantic schemas for API request/response models."""

from portal_api.schemas.common import CamelModel, Envelope, ErrorResponse, FieldError, Page
from portal_api.schemas.consultation import (
    AdminBookingRead,
    BookingCancel,
    BookingCreate,
    BookingRead,
    BookingUpdate,
    BulkSlotCreate,
    CalendarAccessRead,
    MultipleSlotCreate,
    SlotCreate,
    SlotRead,
    SlotUpdate,
    SlotWithAvailability,
)
from portal_api.schemas.project import (
    ProjectCreate,
    ProjectListItem,
    ProjectRead,
    ProjectUpdate,
)
