"""Project schemas - create, deep-optional patch, and read shapes.

Patches are nested per stage. Only fields present in the request body are
applied, so an explicit null clears a value while an omitted key leaves it.
"""

import datetime as dt
from typing import Literal
from uuid import UUID

from pydantic import Field

from portal_api.schemas.common import CamelModel

CurrencyLiteral = Literal["INR", "USD", "EUR"]
PaymentStatusLiteral = Literal["Pending", "Partial", "Completed", "Refunded"]
StageLiteral = Literal[
    "Draft Quote",
    "Internal Approval",
    "Quote Sent",
    "Client Approval",
    "Payment",
    "Onboarding",
    "Drafting",
    "Filing",
    "Grant",
    "Close",
]
StatusLiteral = Literal[
    "Draft Quote",
    "Internal Approval",
    "Quote Sent",
    "Client Approval",
    "Payment",
    "Onboarding",
    "Drafting",
    "Filing",
    "Grant",
    "Close",
    "Completed",
    "Cancelled",
]


# =============================================================================
# Create
# =============================================================================

class ProjectCreate(CamelModel):
    """Open a project from an enquiry."""
    enquiry_id: UUID
    project_name: str | None = Field(None, max_length=255)
    quote_amount: float | None = Field(None, ge=0)
    quote_description: str | None = None
    services: list[str] | None = None
    notes: str | None = None


# =============================================================================
# Patch (deep optional)
# =============================================================================

class LineItem(CamelModel):
    description: str = Field(..., min_length=1)
    quantity: float = Field(1, ge=0)
    unit_price: float = Field(0, ge=0)
    currency: CurrencyLiteral = "INR"
    final_cost: float | None = Field(None, ge=0)


class QuotePatch(CamelModel):
    invoice_number: str | None = None
    client_name: str | None = None
    title: str | None = None
    service_type: str | None = None
    line_items: list[LineItem] | None = None
    amount: float | None = Field(None, ge=0)
    currency: CurrencyLiteral | None = None
    description: str | None = None
    assigned_approver: UUID | None = None
    client_approved: bool | None = None


class PaymentPatch(CamelModel):
    amount: float | None = Field(None, ge=0)
    currency: CurrencyLiteral | None = None
    status: PaymentStatusLiteral | None = None
    payment_date: dt.datetime | None = None
    payment_method: str | None = None
    transaction_id: str | None = None
    notes: str | None = None


class OnboardingPatch(CamelModel):
    start_date: dt.datetime | None = None
    completed_date: dt.datetime | None = None
    onboarding_by: UUID | None = None
    notes: str | None = None


class DraftingPatch(CamelModel):
    start_date: dt.datetime | None = None
    completed_date: dt.datetime | None = None
    drafted_by: UUID | None = None
    notes: str | None = None


class FilingPatch(CamelModel):
    filing_date: dt.datetime | None = None
    application_number: str | None = None
    filed_by: UUID | None = None
    notes: str | None = None


class GrantPatch(CamelModel):
    grant_date: dt.datetime | None = None
    grant_number: str | None = None
    granted_by: UUID | None = None
    notes: str | None = None


class ClosePatch(CamelModel):
    closed_date: dt.datetime | None = None
    closed_by: UUID | None = None
    remarks: str | None = None


class ProjectUpdate(CamelModel):
    """Partial project update."""
    project_name: str | None = Field(None, min_length=1, max_length=255)
    project_manager: UUID | None = None
    services: list[str] | None = None
    notes: str | None = None
    status: StatusLiteral | None = None
    current_stage: StageLiteral | None = None
    quote: QuotePatch | None = None
    payment: PaymentPatch | None = None
    onboarding: OnboardingPatch | None = None
    drafting: DraftingPatch | None = None
    filing: FilingPatch | None = None
    grant: GrantPatch | None = None
    close: ClosePatch | None = None


# =============================================================================
# Read
# =============================================================================

class QuoteRead(CamelModel):
    invoice_number: str | None = None
    client_name: str | None = None
    title: str | None = None
    service_type: str | None = None
    line_items: list[LineItem] = []
    amount: float | None = None
    currency: str = "INR"
    description: str | None = None
    draft_date: dt.datetime | None = None
    draft_by: UUID | None = None
    assigned_approver: UUID | None = None
    assigned_approver_name: str | None = None
    assigned_approver_at: dt.datetime | None = None
    internal_approval_date: dt.datetime | None = None
    internal_approved_by: UUID | None = None
    sent_date: dt.datetime | None = None
    sent_by: UUID | None = None
    client_approved: bool = False
    client_approval_date: dt.datetime | None = None


class PaymentRead(CamelModel):
    amount: float | None = None
    currency: str = "INR"
    status: str | None = None
    payment_date: dt.datetime | None = None
    payment_method: str | None = None
    transaction_id: str | None = None
    notes: str | None = None


class OnboardingRead(CamelModel):
    start_date: dt.datetime | None = None
    completed_date: dt.datetime | None = None
    onboarding_by: UUID | None = None
    notes: str | None = None


class DraftingRead(CamelModel):
    start_date: dt.datetime | None = None
    completed_date: dt.datetime | None = None
    drafted_by: UUID | None = None
    notes: str | None = None


class FilingRead(CamelModel):
    filing_date: dt.datetime | None = None
    application_number: str | None = None
    filed_by: UUID | None = None
    notes: str | None = None


class GrantRead(CamelModel):
    grant_date: dt.datetime | None = None
    grant_number: str | None = None
    granted_by: UUID | None = None
    notes: str | None = None


class CloseRead(CamelModel):
    closed_date: dt.datetime | None = None
    closed_by: UUID | None = None
    remarks: str | None = None


class ProjectRead(CamelModel):
    id: UUID
    enquiry_id: UUID
    project_name: str
    client_name: str
    client_email: str
    client_phone: str | None = None
    project_manager: UUID
    project_manager_name: str | None = None
    services: list[str] = []
    notes: str | None = None
    created_by: UUID | None = None
    status: str
    current_stage: str
    quote: QuoteRead
    payment: PaymentRead
    onboarding: OnboardingRead
    drafting: DraftingRead
    filing: FilingRead
    grant: GrantRead
    close: CloseRead
    created_at: dt.datetime
    updated_at: dt.datetime


class ProjectListItem(CamelModel):
    id: UUID
    project_name: str
    client_name: str
    client_email: str
    project_manager: UUID
    project_manager_name: str | None = None
    status: str
    current_stage: str
    quote_amount: float | None = None
    quote_currency: str = "INR"
    created_at: dt.datetime
    updated_at: dt.datetime
