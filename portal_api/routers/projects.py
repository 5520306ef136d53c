"""Projects router - API endpoints for the project pipeline."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from portal_api.core.deps import get_db, get_dispatcher, get_email_sender, require_roles
from portal_api.db.enums import ProjectStatus, RoleName
from portal_api.db.models import Project
from portal_api.schemas.common import Envelope, Page
from portal_api.schemas.project import (
    CloseRead,
    DraftingRead,
    FilingRead,
    GrantRead,
    OnboardingRead,
    PaymentRead,
    ProjectCreate,
    ProjectListItem,
    ProjectRead,
    ProjectUpdate,
    QuoteRead,
)
from portal_api.services import project_service
from portal_api.utils.pagination import PaginationParams, get_pagination, total_pages

router = APIRouter(prefix="/projects", tags=["projects"])

require_project_access = require_roles(
    RoleName.SUPERUSER, RoleName.PROJECT_MANAGER, RoleName.HIGHER_MANAGEMENT
)


# =============================================================================
# Helper Functions
# =============================================================================

def _project_to_read(project: Project) -> ProjectRead:
    """Convert Project model to read schema (stage columns regrouped)."""
    return ProjectRead(
        id=project.id,
        enquiry_id=project.enquiry_id,
        project_name=project.project_name,
        client_name=project.client_name,
        client_email=project.client_email,
        client_phone=project.client_phone,
        project_manager=project.project_manager_id,
        project_manager_name=project.project_manager_name,
        services=project.services or [],
        notes=project.notes,
        created_by=project.created_by_id,
        status=project.status,
        current_stage=project.current_stage,
        quote=QuoteRead(
            invoice_number=project.quote_invoice_number,
            client_name=project.quote_client_name,
            title=project.quote_title,
            service_type=project.quote_service_type,
            line_items=project.quote_line_items or [],
            amount=project.quote_amount,
            currency=project.quote_currency,
            description=project.quote_description,
            draft_date=project.quote_draft_date,
            draft_by=project.quote_draft_by_id,
            assigned_approver=project.quote_assigned_approver_id,
            assigned_approver_name=project.quote_assigned_approver_name,
            assigned_approver_at=project.quote_assigned_approver_at,
            internal_approval_date=project.quote_internal_approval_date,
            internal_approved_by=project.quote_internal_approved_by_id,
            sent_date=project.quote_sent_date,
            sent_by=project.quote_sent_by_id,
            client_approved=project.quote_client_approved,
            client_approval_date=project.quote_client_approval_date,
        ),
        payment=PaymentRead(
            amount=project.payment_amount,
            currency=project.payment_currency,
            status=project.payment_status,
            payment_date=project.payment_date,
            payment_method=project.payment_method,
            transaction_id=project.payment_transaction_id,
            notes=project.payment_notes,
        ),
        onboarding=OnboardingRead(
            start_date=project.onboarding_start_date,
            completed_date=project.onboarding_completed_date,
            onboarding_by=project.onboarding_by_id,
            notes=project.onboarding_notes,
        ),
        drafting=DraftingRead(
            start_date=project.drafting_start_date,
            completed_date=project.drafting_completed_date,
            drafted_by=project.drafted_by_id,
            notes=project.drafting_notes,
        ),
        filing=FilingRead(
            filing_date=project.filing_date,
            application_number=project.filing_application_number,
            filed_by=project.filed_by_id,
            notes=project.filing_notes,
        ),
        grant=GrantRead(
            grant_date=project.grant_date,
            grant_number=project.grant_number,
            granted_by=project.granted_by_id,
            notes=project.grant_notes,
        ),
        close=CloseRead(
            closed_date=project.closed_date,
            closed_by=project.closed_by_id,
            remarks=project.close_remarks,
        ),
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


def _project_to_list_item(project: Project) -> ProjectListItem:
    return ProjectListItem(
        id=project.id,
        project_name=project.project_name,
        client_name=project.client_name,
        client_email=project.client_email,
        project_manager=project.project_manager_id,
        project_manager_name=project.project_manager_name,
        status=project.status,
        current_stage=project.current_stage,
        quote_amount=project.quote_amount,
        quote_currency=project.quote_currency,
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=Envelope[Page[ProjectListItem]])
def list_projects(
    search: str | None = Query(None, max_length=200),
    status: ProjectStatus | None = Query(None),
    project_manager: UUID | None = Query(None, alias="projectManager"),
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
    user=Depends(require_project_access),
):
    """List projects, newest first."""
    items, total = project_service.list_projects(
        db,
        pagination,
        search=search,
        status=status.value if status else None,
        project_manager=project_manager,
    )
    return Envelope(
        message="Projects retrieved",
        data=Page(
            items=[_project_to_list_item(p) for p in items],
            page=pagination.page,
            limit=pagination.limit,
            total=total,
            total_pages=total_pages(total, pagination.limit),
        ),
    )


@router.post("", status_code=201, response_model=Envelope[ProjectRead])
def create_project(
    data: ProjectCreate,
    db: Session = Depends(get_db),
    user=Depends(require_project_access),
):
    """Open a project from an enquiry with a scheduled call and an assigned manager."""
    project = project_service.create_project(db, data, user)
    return Envelope(message="Project created successfully", data=_project_to_read(project))


@router.get("/{project_id}", response_model=Envelope[ProjectRead])
def get_project(
    project_id: UUID,
    db: Session = Depends(get_db),
    user=Depends(require_project_access),
):
    project = project_service.get_project(db, project_id)
    return Envelope(message="Project retrieved", data=_project_to_read(project))


@router.put("/{project_id}", response_model=Envelope[ProjectRead])
def update_project(
    project_id: UUID,
    data: ProjectUpdate,
    db: Session = Depends(get_db),
    dispatcher=Depends(get_dispatcher),
    sender=Depends(get_email_sender),
    user=Depends(require_project_access),
):
    """
    Partially update a project.

    Stage moves are validated; leaving Internal Approval is reserved for the
    assigned approver.
    """
    project = project_service.update_project(
        db, project_id, data, user, dispatcher=dispatcher, sender=sender
    )
    return Envelope(message="Project updated successfully", data=_project_to_read(project))


@router.delete("/{project_id}", response_model=Envelope[None])
def delete_project(
    project_id: UUID,
    db: Session = Depends(get_db),
    user=Depends(require_project_access),
):
    project_service.delete_project(db, project_id)
    return Envelope(message="Project deleted successfully")
