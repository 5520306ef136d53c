"""
HTML email templates for consultation and project notifications.

Each builder returns a RenderedEmail (subject, html, text). User-supplied
values are HTML-escaped.
"""

from html import escape
from typing import NamedTuple

THEME = {
    "primary": "#2563eb",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success_bg": "#f0fdf4",
    "success_text": "#166534",
}


class RenderedEmail(NamedTuple):
    subject: str
    html: str
    text: str


def get_base_template(title: str, body: str, cta_url: str | None = None, cta_label: str | None = None) -> str:
    """Shared wrapper: header, card body, optional button."""
    cta = ""
    if cta_url and cta_label:
        cta = (
            f'<p style="text-align:center;margin:28px 0 8px 0;">'
            f'<a href="{escape(cta_url)}" style="display:inline-block;background:{THEME["primary"]};'
            f'color:#ffffff;text-decoration:none;padding:12px 28px;border-radius:8px;'
            f'font-weight:600;">{escape(cta_label)}</a></p>'
        )
    return f"""<!DOCTYPE html>
<html>
<body style="margin:0;padding:0;background:{THEME['background']};font-family:Arial,Helvetica,sans-serif;">
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0">
    <tr><td align="center" style="padding:32px 16px;">
      <table role="presentation" width="600" cellpadding="0" cellspacing="0"
             style="background:{THEME['card_bg']};border:1px solid {THEME['border']};border-radius:12px;">
        <tr><td style="padding:28px 32px 8px 32px;">
          <h1 style="margin:0;font-size:22px;color:{THEME['text_primary']};">{escape(title)}</h1>
        </td></tr>
        <tr><td style="padding:8px 32px 28px 32px;color:{THEME['text_secondary']};font-size:15px;line-height:1.6;">
          {body}
          {cta}
        </td></tr>
      </table>
      <p style="color:{THEME['text_muted']};font-size:12px;margin-top:16px;">
        This is an automated message. Please do not reply directly to this email.
      </p>
    </td></tr>
  </table>
</body>
</html>"""


def _details_table(rows: list[tuple[str, str]]) -> str:
    cells = "".join(
        f'<tr><td style="padding:6px 12px 6px 0;color:{THEME["text_muted"]};white-space:nowrap;">'
        f"{escape(label)}</td>"
        f'<td style="padding:6px 0;color:{THEME["text_primary"]};font-weight:600;">{escape(value)}</td></tr>'
        for label, value in rows
    )
    return f'<table role="presentation" cellpadding="0" cellspacing="0" style="margin:16px 0;">{cells}</table>'


def _meeting_block(meeting_link: str | None) -> str:
    if not meeting_link:
        return (
            "<p>The meeting link will be shared with you before the consultation.</p>"
        )
    link = escape(meeting_link)
    return (
        f'<div style="background:{THEME["success_bg"]};border-radius:8px;padding:16px;margin:16px 0;">'
        f'<p style="margin:0 0 8px 0;color:{THEME["success_text"]};font-weight:600;">Join the consultation</p>'
        f'<p style="margin:0;"><a href="{link}" style="color:{THEME["success_text"]};">{link}</a></p>'
        f"</div>"
    )


def _text_lines(rows: list[tuple[str, str]]) -> str:
    return "\n".join(f"{label}: {value}" for label, value in rows)


# =============================================================================
# Consultations
# =============================================================================

def booking_receipt_template(
    *,
    booking_id: str,
    user_name: str,
    slot_date: str,
    start_time: str,
    end_time: str,
    duration: int,
    meeting_link: str | None,
    manage_url: str,
) -> RenderedEmail:
    """Confirmation sent to the visitor who booked."""
    subject = f"Consultation Booking Confirmed - Booking ID: {booking_id[-8:].upper()}"
    rows = [
        ("Booking ID", booking_id[-8:].upper()),
        ("Date", slot_date),
        ("Time", f"{start_time} - {end_time}"),
        ("Duration", f"{duration} minutes"),
    ]
    body = (
        f"<p>Hi {escape(user_name)},</p>"
        "<p>Your consultation has been booked. Here are the details:</p>"
        f"{_details_table(rows)}"
        f"{_meeting_block(meeting_link)}"
        "<p>If you need to cancel, use the link below with the email address you booked with.</p>"
    )
    html = get_base_template("Your consultation is confirmed", body, manage_url, "View or cancel booking")
    text = (
        f"Hi {user_name},\n\nYour consultation has been booked.\n\n{_text_lines(rows)}\n"
        + (f"\nJoin the consultation meeting: {meeting_link}\n" if meeting_link else "")
        + f"\nView or cancel your booking: {manage_url}\n"
    )
    return RenderedEmail(subject, html, text)


def admin_booking_alert_template(
    *,
    booking_id: str,
    user_name: str,
    user_email: str,
    user_phone: str,
    message: str | None,
    slot_date: str,
    start_time: str,
    end_time: str,
    meeting_link: str | None,
    admin_url: str,
) -> RenderedEmail:
    """Alert sent to superusers and project managers."""
    subject = f"New Consultation Booking - {user_name}"
    rows = [
        ("Name", user_name),
        ("Email", user_email),
        ("Phone", user_phone),
        ("Date", slot_date),
        ("Time", f"{start_time} - {end_time}"),
        ("Booking ID", booking_id),
    ]
    message_block = ""
    if message:
        message_block = (
            f'<p style="margin:16px 0 4px 0;color:{THEME["text_muted"]};">Message</p>'
            f'<p style="margin:0;white-space:pre-wrap;">{escape(message)}</p>'
        )
    body = (
        "<p>A new consultation has been booked.</p>"
        f"{_details_table(rows)}{message_block}{_meeting_block(meeting_link)}"
    )
    html = get_base_template("New consultation booking", body, admin_url, "Open in admin portal")
    text = (
        f"A new consultation has been booked.\n\n{_text_lines(rows)}\n"
        + (f"\nMessage:\n{message}\n" if message else "")
        + (f"\nMeeting link: {meeting_link}\n" if meeting_link else "")
        + f"\nOpen in admin portal: {admin_url}\n"
    )
    return RenderedEmail(subject, html, text)


# =============================================================================
# Projects
# =============================================================================

def approver_assigned_template(
    *,
    approver_name: str,
    project_name: str,
    client_name: str,
    amount: str | None,
    assigned_by_name: str | None,
    project_url: str,
) -> RenderedEmail:
    """Ask the assigned Higher Management user to review a quote."""
    subject = f"Quote approval requested - {project_name}"
    rows = [("Project", project_name), ("Client", client_name)]
    if amount:
        rows.append(("Quote amount", amount))
    if assigned_by_name:
        rows.append(("Requested by", assigned_by_name))
    body = (
        f"<p>Hi {escape(approver_name)},</p>"
        "<p>You have been assigned to approve the quote for the project below. "
        "The project cannot move past Internal Approval until you approve it.</p>"
        f"{_details_table(rows)}"
    )
    html = get_base_template("Quote approval requested", body, project_url, "Review quote")
    text = (
        f"Hi {approver_name},\n\nYou have been assigned to approve the quote for this project.\n\n"
        f"{_text_lines(rows)}\n\nReview the quote: {project_url}\n"
    )
    return RenderedEmail(subject, html, text)
