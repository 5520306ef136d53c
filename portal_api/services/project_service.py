"""Project workflow engine.

Projects move through a linear ten-stage pipeline. The only hard gate is
Internal Approval: the quote leaves it only when the assigned Higher
Management approver approves it, and moving back to Draft Quote drops the
approval so it has to be earned again.

update_project validates the whole patch before touching the row, so a
rejected patch leaves the project unchanged.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal_api.core.errors import (
    ApproverLocked,
    Conflict,
    IllegalTransition,
    InvalidApprover,
    NotAssignedApprover,
    NotFound,
    ValidationFailed,
)
from portal_api.core.structured_logging import build_log_context
from portal_api.core.task_queue import NotificationDispatcher
from portal_api.db.enums import (
    APPROVED_PROJECT_STATUSES,
    TERMINAL_PROJECT_STATUSES,
    Currency,
    ProjectStage,
    ProjectStatus,
)
from portal_api.db.models import Enquiry, Project, User
from portal_api.schemas.project import ProjectCreate, ProjectUpdate
from portal_api.services import notification_service, permission_service
from portal_api.services.email_service import EmailSender
from portal_api.utils.pagination import PaginationParams, paginate_query

logger = logging.getLogger(__name__)

IA = ProjectStage.INTERNAL_APPROVAL

# Patch key -> column, per stage sub-record
QUOTE_FIELDS = {
    "invoice_number": "quote_invoice_number",
    "client_name": "quote_client_name",
    "title": "quote_title",
    "service_type": "quote_service_type",
    "amount": "quote_amount",
    "currency": "quote_currency",
    "description": "quote_description",
}
PAYMENT_FIELDS = {
    "amount": "payment_amount",
    "currency": "payment_currency",
    "status": "payment_status",
    "payment_date": "payment_date",
    "payment_method": "payment_method",
    "transaction_id": "payment_transaction_id",
    "notes": "payment_notes",
}
ONBOARDING_FIELDS = {
    "start_date": "onboarding_start_date",
    "completed_date": "onboarding_completed_date",
    "onboarding_by": "onboarding_by_id",
    "notes": "onboarding_notes",
}
DRAFTING_FIELDS = {
    "start_date": "drafting_start_date",
    "completed_date": "drafting_completed_date",
    "drafted_by": "drafted_by_id",
    "notes": "drafting_notes",
}
FILING_FIELDS = {
    "filing_date": "filing_date",
    "application_number": "filing_application_number",
    "filed_by": "filed_by_id",
    "notes": "filing_notes",
}
GRANT_FIELDS = {
    "grant_date": "grant_date",
    "grant_number": "grant_number",
    "granted_by": "granted_by_id",
    "notes": "grant_notes",
}
CLOSE_FIELDS = {
    "closed_date": "closed_date",
    "closed_by": "closed_by_id",
    "remarks": "close_remarks",
}
SECTION_FIELDS = {
    "payment": PAYMENT_FIELDS,
    "onboarding": ONBOARDING_FIELDS,
    "drafting": DRAFTING_FIELDS,
    "filing": FILING_FIELDS,
    "grant": GRANT_FIELDS,
    "close": CLOSE_FIELDS,
}

# Entering a stage stamps (date column, actor column) when unset
STAGE_ENTRY_STAMPS = {
    ProjectStage.QUOTE_SENT: ("quote_sent_date", "quote_sent_by_id"),
    ProjectStage.ONBOARDING: ("onboarding_start_date", "onboarding_by_id"),
    ProjectStage.DRAFTING: ("drafting_start_date", "drafted_by_id"),
    ProjectStage.FILING: ("filing_date", "filed_by_id"),
    ProjectStage.GRANT: ("grant_date", "granted_by_id"),
    ProjectStage.CLOSE: ("closed_date", "closed_by_id"),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _active_user(db: Session, user_id: UUID) -> User | None:
    user = db.get(User, user_id)
    if user is None or user.is_deleted:
        return None
    return user


# =============================================================================
# Queries
# =============================================================================

def get_project(db: Session, project_id: UUID) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise NotFound("Project not found")
    return project


def list_projects(
    db: Session,
    pagination: PaginationParams,
    search: str | None = None,
    status: str | None = None,
    project_manager: UUID | None = None,
) -> tuple[list[Project], int]:
    """Newest first. search matches project name, client name or client email."""
    query = db.query(Project)
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Project.project_name.ilike(term),
                Project.client_name.ilike(term),
                Project.client_email.ilike(term),
            )
        )
    if status:
        query = query.filter(Project.status == status)
    if project_manager:
        query = query.filter(Project.project_manager_id == project_manager)
    query = query.order_by(Project.created_at.desc())
    return paginate_query(query, pagination)


# =============================================================================
# Create / Delete
# =============================================================================

def create_project(db: Session, data: ProjectCreate, actor: User) -> Project:
    """
    Open a project from an enquiry.

    The enquiry needs a scheduled call and an assigned project manager, and
    may only ever produce one project.
    """
    enquiry = db.get(Enquiry, data.enquiry_id)
    if not enquiry:
        raise NotFound("Enquiry not found")

    errors = []
    if enquiry.scheduled_call_at is None:
        errors.append({
            "field": "enquiryId",
            "message": "Enquiry must have a scheduled call before creating a project",
        })
    if enquiry.assigned_to_id is None:
        errors.append({
            "field": "enquiryId",
            "message": "Enquiry must be assigned to a project manager before creating a project",
        })
    if errors:
        raise ValidationFailed("; ".join(e["message"] for e in errors), errors=errors)

    manager = _active_user(db, enquiry.assigned_to_id)
    if manager is None:
        raise ValidationFailed("Assigned project manager not found")

    existing = db.query(Project.id).filter(Project.enquiry_id == enquiry.id).first()
    if existing:
        raise Conflict("A project already exists for this enquiry")

    now = _now()
    project = Project(
        enquiry_id=enquiry.id,
        project_name=(data.project_name or "").strip() or f"{enquiry.subject} - Project",
        client_name=enquiry.name,
        client_email=enquiry.email,
        client_phone=enquiry.phone,
        project_manager_id=manager.id,
        project_manager_name=manager.name,
        services=data.services if data.services else [enquiry.subject],
        notes=data.notes,
        created_by_id=actor.id,
        status=ProjectStatus.DRAFT_QUOTE.value,
        current_stage=ProjectStage.DRAFT_QUOTE.value,
        quote_amount=data.quote_amount,
        quote_currency=Currency.INR.value,
        quote_description=data.quote_description,
        quote_line_items=[],
        quote_draft_date=now,
        quote_draft_by_id=actor.id,
    )
    db.add(project)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("A project already exists for this enquiry") from exc
    db.refresh(project)

    logger.info(
        "Project created from enquiry",
        extra=build_log_context(project_id=str(project.id), user_id=str(actor.id)),
    )
    return project


def delete_project(db: Session, project_id: UUID) -> None:
    project = get_project(db, project_id)
    db.delete(project)
    db.commit()
    logger.info("Project deleted", extra=build_log_context(project_id=str(project_id)))


# =============================================================================
# Update
# =============================================================================

def _line_items(items: list[dict]) -> list[dict]:
    """Store line items as plain JSON, defaulting final_cost to quantity x unit price."""
    result = []
    for item in items:
        quantity = item.get("quantity", 1)
        unit_price = item.get("unit_price", 0)
        final_cost = item.get("final_cost")
        if final_cost is None:
            final_cost = round(quantity * unit_price, 2)
        result.append({
            "description": item["description"],
            "quantity": quantity,
            "unit_price": unit_price,
            "currency": item.get("currency") or Currency.INR.value,
            "final_cost": final_cost,
        })
    return result


def _apply_section(project: Project, values: dict, mapping: dict[str, str]) -> None:
    for key, column in mapping.items():
        if key in values:
            setattr(project, column, values[key])


def update_project(
    db: Session,
    project_id: UUID,
    patch: ProjectUpdate,
    actor: User,
    *,
    dispatcher: NotificationDispatcher | None = None,
    sender: EmailSender | None = None,
) -> Project:
    """
    Apply a partial update and enforce the stage rules.

    - Entering Internal Approval needs an assigned approver.
    - Leaving it forward needs the assigned approver to be the actor; the
      approval date and approver are stamped then.
    - Going back to Draft Quote clears the approval.
    - The approver is locked while an approval is recorded.
    - Entering later stages stamps their date and actor when unset.
    """
    project = get_project(db, project_id)
    fields = patch.model_dump(exclude_unset=True)
    quote = fields.get("quote") or {}
    now = _now()

    prev_stage = ProjectStage(project.current_stage)
    new_stage = ProjectStage(fields["current_stage"]) if fields.get("current_stage") else prev_stage

    # -------------------------------------------------------------------------
    # Validate
    # -------------------------------------------------------------------------

    reverting = prev_stage.position >= IA.position and new_stage == ProjectStage.DRAFT_QUOTE
    approved = project.quote_internal_approval_date is not None and not reverting

    approver_changed = (
        "assigned_approver" in quote
        and quote["assigned_approver"] != project.quote_assigned_approver_id
    )
    approver: User | None = None
    if approver_changed:
        if approved:
            raise ApproverLocked()
        if quote["assigned_approver"] is not None:
            approver = _active_user(db, quote["assigned_approver"])
            if approver is None or not permission_service.is_valid_approver(db, approver.id):
                raise InvalidApprover()

    approver_id = quote["assigned_approver"] if approver_changed else project.quote_assigned_approver_id
    if new_stage == IA and approver_id is None:
        raise IllegalTransition("Assign an approver before moving to Internal Approval")

    approving = False
    if new_stage.position > IA.position and not approved:
        if prev_stage != IA:
            raise IllegalTransition("The quote must pass Internal Approval first")
        if approver_changed or not permission_service.may_approve(db, actor.id, project):
            raise NotAssignedApprover()
        approving = True

    explicit_status = ProjectStatus(fields["status"]) if fields.get("status") else None
    current_status = ProjectStatus(project.status)
    if explicit_status is not None:
        next_status = explicit_status
    elif current_status in TERMINAL_PROJECT_STATUSES:
        next_status = current_status
    else:
        next_status = ProjectStatus(new_stage.value)
    if next_status in APPROVED_PROJECT_STATUSES and not (approved or approving):
        if explicit_status is None and reverting:
            raise IllegalTransition(
                f"Cannot revert a {current_status.value} project to Draft Quote without changing its status"
            )
        raise IllegalTransition(f"Cannot set status to {next_status.value} before internal approval")

    manager: User | None = None
    if fields.get("project_manager") is not None:
        manager = _active_user(db, fields["project_manager"])
        if manager is None:
            raise ValidationFailed("Project manager not found")

    # -------------------------------------------------------------------------
    # Apply
    # -------------------------------------------------------------------------

    if "project_name" in fields and fields["project_name"]:
        project.project_name = fields["project_name"].strip()
    if "notes" in fields:
        project.notes = fields["notes"]
    if fields.get("services") is not None:
        project.services = fields["services"]
    if manager is not None:
        project.project_manager_id = manager.id
        project.project_manager_name = manager.name

    _apply_section(project, quote, QUOTE_FIELDS)
    if quote.get("line_items") is not None:
        project.quote_line_items = _line_items(quote["line_items"])
    if quote.get("client_approved") is not None:
        project.quote_client_approved = quote["client_approved"]
        if quote["client_approved"] and project.quote_client_approval_date is None:
            project.quote_client_approval_date = now
    if approver_changed:
        project.quote_assigned_approver_id = approver.id if approver else None
        project.quote_assigned_approver_name = approver.name if approver else None
        project.quote_assigned_approver_at = now if approver else None

    for section, mapping in SECTION_FIELDS.items():
        if fields.get(section):
            _apply_section(project, fields[section], mapping)

    if reverting:
        project.quote_internal_approval_date = None
        project.quote_internal_approved_by_id = None
    if approving:
        project.quote_internal_approval_date = now
        project.quote_internal_approved_by_id = actor.id

    project.current_stage = new_stage.value
    if new_stage != prev_stage and new_stage in STAGE_ENTRY_STAMPS:
        date_column, actor_column = STAGE_ENTRY_STAMPS[new_stage]
        if getattr(project, date_column) is None:
            setattr(project, date_column, now)
        if getattr(project, actor_column) is None:
            setattr(project, actor_column, actor.id)

    project.status = next_status.value

    notify = (
        new_stage == IA
        and project.quote_assigned_approver_id is not None
        and project.quote_approver_notified_id != project.quote_assigned_approver_id
    )
    if notify:
        project.quote_approver_notified_id = project.quote_assigned_approver_id

    db.commit()
    db.refresh(project)

    log_context = build_log_context(project_id=str(project.id), user_id=str(actor.id))
    if new_stage != prev_stage:
        logger.info(
            "Project stage changed: %s -> %s", prev_stage.value, new_stage.value, extra=log_context
        )
    if approving:
        logger.info("Quote internally approved", extra=log_context)
    if reverting and prev_stage != new_stage:
        logger.info("Quote approval cleared by reversion to Draft Quote", extra=log_context)

    if notify and dispatcher is not None:
        notified = approver or db.get(User, project.quote_assigned_approver_id)
        if notified is not None:
            notification_service.schedule_approver_notification(
                dispatcher, project, notified, assigned_by=actor, sender=sender
            )
    return project
