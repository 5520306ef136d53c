"""Booking and approval notifications (best-effort).

Emails are composed from plain snapshots taken in the request thread and
delivered on the notification dispatcher. A failed send is logged and
swallowed; it never fails the operation that triggered it.
"""

import logging
from datetime import date
from functools import lru_cache
from typing import NamedTuple

from sqlalchemy.orm import Session

from portal_api.core.config import settings
from portal_api.core.structured_logging import build_log_context
from portal_api.core.task_queue import NotificationDispatcher
from portal_api.db.enums import ADMIN_ALERT_ROLES
from portal_api.db.models import ConsultationBooking, ConsultationSlot, Project, User
from portal_api.services import email_templates
from portal_api.services.email_service import EmailSender, SmtpEmailSender
from portal_api.services.permission_service import users_with_roles
from portal_api.utils.time_slots import format_12h

logger = logging.getLogger(__name__)


@lru_cache
def get_email_sender() -> EmailSender:
    return SmtpEmailSender(settings)


# =============================================================================
# Snapshots (safe to hand to worker threads)
# =============================================================================

class BookingNotice(NamedTuple):
    booking_id: str
    user_name: str
    user_email: str
    user_phone: str
    message: str | None
    meeting_link: str | None
    slot_date: date
    start_time: str
    end_time: str
    duration: int

    @classmethod
    def from_models(cls, booking: ConsultationBooking, slot: ConsultationSlot) -> "BookingNotice":
        return cls(
            booking_id=str(booking.id),
            user_name=booking.user_name,
            user_email=booking.user_email,
            user_phone=booking.user_phone,
            message=booking.message,
            meeting_link=booking.meeting_link,
            slot_date=slot.date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            duration=slot.duration,
        )

    @property
    def display_date(self) -> str:
        return self.slot_date.strftime("%A, %B %d, %Y")


class ApproverNotice(NamedTuple):
    project_id: str
    project_name: str
    client_name: str
    amount: float | None
    currency: str
    approver_name: str
    approver_email: str
    assigned_by_name: str | None


# =============================================================================
# Recipients
# =============================================================================

def resolve_admin_emails(db: Session) -> list[str]:
    """Emails of active superusers and project managers."""
    users = users_with_roles(db, ADMIN_ALERT_ROLES)
    seen: set[str] = set()
    emails: list[str] = []
    for user in users:
        email = (user.email or "").strip().lower()
        if email and email not in seen:
            seen.add(email)
            emails.append(email)
    return emails


# =============================================================================
# Compose + send
# =============================================================================

def send_booking_receipt(sender: EmailSender, notice: BookingNotice) -> bool:
    """Confirmation to the visitor. Returns False if nothing was sent."""
    rendered = email_templates.booking_receipt_template(
        booking_id=notice.booking_id,
        user_name=notice.user_name,
        slot_date=notice.display_date,
        start_time=format_12h(notice.start_time),
        end_time=format_12h(notice.end_time),
        duration=notice.duration,
        meeting_link=notice.meeting_link,
        manage_url=f"{settings.WEBSITE_URL.rstrip('/')}/consultation/confirmation/{notice.booking_id}",
    )
    try:
        return sender.send(
            to=notice.user_email, subject=rendered.subject, html=rendered.html, text=rendered.text
        )
    except Exception as exc:
        logger.warning(
            "Booking receipt email failed: %s",
            exc,
            extra=build_log_context(booking_id=notice.booking_id),
        )
        return False


def notify_admins(sender: EmailSender, notice: BookingNotice, admin_emails: list[str]) -> bool:
    """Alert admins about a new booking. Returns False if nothing was sent."""
    if not admin_emails:
        logger.warning(
            "No admin recipients for booking alert",
            extra=build_log_context(booking_id=notice.booking_id),
        )
        return False
    rendered = email_templates.admin_booking_alert_template(
        booking_id=notice.booking_id,
        user_name=notice.user_name,
        user_email=notice.user_email,
        user_phone=notice.user_phone,
        message=notice.message,
        slot_date=notice.display_date,
        start_time=format_12h(notice.start_time),
        end_time=format_12h(notice.end_time),
        meeting_link=notice.meeting_link,
        admin_url=f"{settings.ADMIN_PORTAL_URL.rstrip('/')}/admin/consultation-bookings/{notice.booking_id}",
    )
    try:
        return sender.send(
            to=admin_emails, subject=rendered.subject, html=rendered.html, text=rendered.text
        )
    except Exception as exc:
        logger.warning(
            "Admin booking alert email failed: %s",
            exc,
            extra=build_log_context(booking_id=notice.booking_id),
        )
        return False


def notify_approver_assigned(sender: EmailSender, notice: ApproverNotice) -> bool:
    """Deep-link email asking the approver to review the quote."""
    amount = f"{notice.currency} {notice.amount:,.2f}" if notice.amount is not None else None
    rendered = email_templates.approver_assigned_template(
        approver_name=notice.approver_name,
        project_name=notice.project_name,
        client_name=notice.client_name,
        amount=amount,
        assigned_by_name=notice.assigned_by_name,
        project_url=f"{settings.ADMIN_PORTAL_URL.rstrip('/')}/admin/projects/{notice.project_id}",
    )
    try:
        return sender.send(
            to=notice.approver_email, subject=rendered.subject, html=rendered.html, text=rendered.text
        )
    except Exception as exc:
        logger.warning(
            "Approver assignment email failed: %s",
            exc,
            extra=build_log_context(project_id=notice.project_id),
        )
        return False


# =============================================================================
# Scheduling (called from the engines)
# =============================================================================

def schedule_booking_notifications(
    db: Session,
    dispatcher: NotificationDispatcher,
    booking: ConsultationBooking,
    slot: ConsultationSlot,
    sender: EmailSender | None = None,
) -> None:
    """Queue the visitor receipt and the admin alert. Never raises."""
    try:
        sender = sender or get_email_sender()
        notice = BookingNotice.from_models(booking, slot)
        admin_emails = resolve_admin_emails(db)
        dispatcher.submit(send_booking_receipt, sender, notice)
        dispatcher.submit(notify_admins, sender, notice, admin_emails)
    except Exception:
        logger.exception(
            "Failed to schedule booking notifications",
            extra=build_log_context(booking_id=str(booking.id)),
        )


def schedule_approver_notification(
    dispatcher: NotificationDispatcher,
    project: Project,
    approver: User,
    assigned_by: User | None = None,
    sender: EmailSender | None = None,
) -> None:
    """Queue the approver-assignment email. Never raises."""
    try:
        sender = sender or get_email_sender()
        notice = ApproverNotice(
            project_id=str(project.id),
            project_name=project.project_name,
            client_name=project.client_name,
            amount=project.quote_amount,
            currency=project.quote_currency,
            approver_name=approver.name,
            approver_email=approver.email,
            assigned_by_name=assigned_by.name if assigned_by else None,
        )
        dispatcher.submit(notify_approver_assigned, sender, notice)
    except Exception:
        logger.exception(
            "Failed to schedule approver notification",
            extra=build_log_context(project_id=str(project.id)),
        )
