"""Enum definitions for application constants."""

from enum import Enum


# =============================================================================
# Roles
# =============================================================================

class RoleName(str, Enum):
    """Role names consulted by the engines (rows live in the roles table)."""
    SUPERUSER = "superuser"
    PROJECT_MANAGER = "project manager"
    HIGHER_MANAGEMENT = "Higher Management"


ADMIN_ALERT_ROLES = (RoleName.SUPERUSER, RoleName.PROJECT_MANAGER)


# =============================================================================
# Consultations
# =============================================================================

class SlotStatus(str, Enum):
    """
    Consultation slot status.

    available ⇄ booked follows the active booking count; admins may force
    cancelled or completed.
    """
    AVAILABLE = "available"
    BOOKED = "booked"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class BookingStatus(str, Enum):
    """
    Consultation booking lifecycle.

    Flow: pending → confirmed → completed
              ↘         ↘
               cancelled (terminal)
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class CancelledBy(str, Enum):
    USER = "user"
    ADMIN = "admin"


# =============================================================================
# Projects
# =============================================================================

class ProjectStage(str, Enum):
    """Linear project pipeline, in order."""
    DRAFT_QUOTE = "Draft Quote"
    INTERNAL_APPROVAL = "Internal Approval"
    QUOTE_SENT = "Quote Sent"
    CLIENT_APPROVAL = "Client Approval"
    PAYMENT = "Payment"
    ONBOARDING = "Onboarding"
    DRAFTING = "Drafting"
    FILING = "Filing"
    GRANT = "Grant"
    CLOSE = "Close"

    @property
    def position(self) -> int:
        return STAGE_ORDER.index(self)


STAGE_ORDER = list(ProjectStage)


class ProjectStatus(str, Enum):
    """Project status: every stage plus the two terminal branches."""
    DRAFT_QUOTE = "Draft Quote"
    INTERNAL_APPROVAL = "Internal Approval"
    QUOTE_SENT = "Quote Sent"
    CLIENT_APPROVAL = "Client Approval"
    PAYMENT = "Payment"
    ONBOARDING = "Onboarding"
    DRAFTING = "Drafting"
    FILING = "Filing"
    GRANT = "Grant"
    CLOSE = "Close"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


TERMINAL_PROJECT_STATUSES = {ProjectStatus.COMPLETED, ProjectStatus.CANCELLED}

# Statuses that are only reachable once the quote has been internally approved
APPROVED_PROJECT_STATUSES = {
    ProjectStatus.QUOTE_SENT,
    ProjectStatus.CLIENT_APPROVAL,
    ProjectStatus.PAYMENT,
    ProjectStatus.ONBOARDING,
    ProjectStatus.DRAFTING,
    ProjectStatus.FILING,
    ProjectStatus.GRANT,
    ProjectStatus.CLOSE,
    ProjectStatus.COMPLETED,
}


class Currency(str, Enum):
    INR = "INR"
    USD = "USD"
    EUR = "EUR"


class EnquiryStatus(str, Enum):
    NEW = "New"
    IN_PROGRESS = "In-Progress"
    CLOSED = "Closed"
