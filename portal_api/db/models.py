"""SQLAlchemy ORM models for users, enquiries, consultations, and projects."""

import uuid
from typing import Optional
from datetime import date, datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal_api.db.base import Base
from portal_api.db.enums import (
    BookingStatus,
    Currency,
    EnquiryStatus,
    ProjectStage,
    ProjectStatus,
    SlotStatus,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Users & Roles
# =============================================================================

class User(Base):
    """
    Admin portal user.

    Soft-deleted users keep their row (is_deleted) so historical actor
    references stay valid.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)

    user_roles: Mapped[list["UserRole"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )


class Role(Base):
    """Named role (e.g. "superuser", "project manager", "Higher Management")."""

    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class UserRole(Base):
    """Role membership."""

    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_role"),
        Index("idx_user_roles_role", "role_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"), nullable=False
    )

    user: Mapped["User"] = relationship(back_populates="user_roles")
    role: Mapped["Role"] = relationship()


# =============================================================================
# Enquiries (contact form submissions)
# =============================================================================

class Enquiry(Base):
    """Contact enquiry; the origin of every project."""

    __tablename__ = "enquiries"
    __table_args__ = (
        Index("idx_enquiries_status", "status"),
        Index("idx_enquiries_created", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=EnquiryStatus.NEW.value, nullable=False
    )
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Set by admins before a project can be opened
    assigned_to_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    scheduled_call_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow, onupdate=_utcnow, nullable=False
    )

    assigned_to: Mapped[Optional["User"]] = relationship()


# =============================================================================
# Consultations
# =============================================================================

class ConsultationSlot(Base):
    """
    Bookable consultation window on one date.

    start_time/end_time are "HH:MM" wall-clock strings; end_time is always
    start_time + duration and never crosses midnight.
    """

    __tablename__ = "consultation_slots"
    __table_args__ = (
        Index("idx_consultation_slots_date_start", "date", "start_time"),
        Index("idx_consultation_slots_open", "status", "is_available", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    max_bookings: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=SlotStatus.AVAILABLE.value, nullable=False
    )
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow, onupdate=_utcnow, nullable=False
    )

    bookings: Mapped[list["ConsultationBooking"]] = relationship(back_populates="slot")


class ConsultationBooking(Base):
    """A visitor's reservation of one place in a slot."""

    __tablename__ = "consultation_bookings"
    __table_args__ = (
        Index("idx_consultation_bookings_slot_created", "slot_id", "created_at"),
        Index("idx_consultation_bookings_email", "user_email"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    slot_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("consultation_slots.id", ondelete="RESTRICT"), nullable=False
    )

    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    user_email: Mapped[str] = mapped_column(String(255), nullable=False)  # lowercase
    user_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), default=BookingStatus.PENDING.value, nullable=False
    )
    meeting_link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    calendar_event_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    confirmed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    confirmed_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String(10), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow, onupdate=_utcnow, nullable=False
    )

    slot: Mapped["ConsultationSlot"] = relationship(back_populates="bookings")


# =============================================================================
# Projects
# =============================================================================

class Project(Base):
    """
    Client project opened from an enquiry.

    Stage sub-records are flattened into prefixed columns (quote_*, payment_*,
    onboarding_*, drafting_*, filing_*, grant_*, close_*).
    """

    __tablename__ = "projects"
    __table_args__ = (
        UniqueConstraint("enquiry_id", name="uq_projects_enquiry"),
        Index("idx_projects_manager", "project_manager_id"),
        Index("idx_projects_status", "status"),
        Index("idx_projects_created", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    enquiry_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("enquiries.id", ondelete="RESTRICT"), nullable=False
    )
    project_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Client snapshot (copied from the enquiry at creation)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False)
    client_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    project_manager_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    project_manager_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    services: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(30), default=ProjectStatus.DRAFT_QUOTE.value, nullable=False
    )
    current_stage: Mapped[str] = mapped_column(
        String(30), default=ProjectStage.DRAFT_QUOTE.value, nullable=False
    )

    # Quote
    quote_invoice_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    quote_client_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    quote_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    quote_service_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    quote_line_items: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    quote_amount: Mapped[float | None] = mapped_column(
        Numeric(14, 2, asdecimal=False), nullable=True
    )
    quote_currency: Mapped[str] = mapped_column(
        String(3), default=Currency.INR.value, nullable=False
    )
    quote_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    quote_draft_date: Mapped[datetime | None] = mapped_column(nullable=True)
    quote_draft_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    quote_assigned_approver_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    quote_assigned_approver_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    quote_assigned_approver_at: Mapped[datetime | None] = mapped_column(nullable=True)
    quote_internal_approval_date: Mapped[datetime | None] = mapped_column(nullable=True)
    quote_internal_approved_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    quote_sent_date: Mapped[datetime | None] = mapped_column(nullable=True)
    quote_sent_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    quote_client_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    quote_client_approval_date: Mapped[datetime | None] = mapped_column(nullable=True)
    # Last approver who was emailed; suppresses repeat notifications
    quote_approver_notified_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)

    # Payment
    payment_amount: Mapped[float | None] = mapped_column(
        Numeric(14, 2, asdecimal=False), nullable=True
    )
    payment_currency: Mapped[str] = mapped_column(
        String(3), default=Currency.INR.value, nullable=False
    )
    payment_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    payment_date: Mapped[datetime | None] = mapped_column(nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_transaction_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Onboarding
    onboarding_start_date: Mapped[datetime | None] = mapped_column(nullable=True)
    onboarding_completed_date: Mapped[datetime | None] = mapped_column(nullable=True)
    onboarding_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    onboarding_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Drafting
    drafting_start_date: Mapped[datetime | None] = mapped_column(nullable=True)
    drafting_completed_date: Mapped[datetime | None] = mapped_column(nullable=True)
    drafted_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    drafting_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Filing
    filing_date: Mapped[datetime | None] = mapped_column(nullable=True)
    filing_application_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    filed_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    filing_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Grant
    grant_date: Mapped[datetime | None] = mapped_column(nullable=True)
    grant_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    granted_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    grant_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Close
    closed_date: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    close_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow, onupdate=_utcnow, nullable=False
    )

    enquiry: Mapped["Enquiry"] = relationship()
    project_manager: Mapped["User"] = relationship(foreign_keys=[project_manager_id])
