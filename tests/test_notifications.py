"""Tests for the notification dispatcher, email composition and SMTP transport."""

import smtplib
import threading
from datetime import date

import pytest

from portal_api.core.config import Settings
from portal_api.core.task_queue import NotificationDispatcher
from portal_api.db.enums import RoleName
from portal_api.services import email_service, notification_service
from portal_api.services.email_service import SmtpEmailSender, html_to_text
from portal_api.services.notification_service import (
    ApproverNotice,
    BookingNotice,
    notify_admins,
    notify_approver_assigned,
    resolve_admin_emails,
    send_booking_receipt,
)
from conftest import RecordingSender, make_user


def _notice(**overrides) -> BookingNotice:
    values = dict(
        booking_id="7f1c2a9e-0000-4000-8000-00000000abcd",
        user_name="Asha",
        user_email="a@x.io",
        user_phone="+91 98765 43210",
        message="About a design patent",
        meeting_link="https://meet.google.com/abc-defg-hij",
        slot_date=date(2030, 6, 1),
        start_time="14:00",
        end_time="14:30",
        duration=30,
    )
    values.update(overrides)
    return BookingNotice(**values)


# =============================================================================
# Dispatcher
# =============================================================================

def test_dispatcher_runs_jobs_off_thread():
    dispatcher = NotificationDispatcher(workers=1, maxsize=10)
    seen = []
    try:
        assert dispatcher.submit(lambda: seen.append(threading.current_thread().name))
        dispatcher.join()
    finally:
        dispatcher.shutdown()
    assert seen == ["notify-0"]


def test_dispatcher_drops_when_full():
    dispatcher = NotificationDispatcher(workers=1, maxsize=1)
    started = threading.Event()
    release = threading.Event()

    def blocker():
        started.set()
        release.wait(timeout=5)

    try:
        assert dispatcher.submit(blocker)
        assert started.wait(timeout=5)
        assert dispatcher.submit(lambda: None)
        assert dispatcher.submit(lambda: None) is False
        assert dispatcher.dropped == 1
    finally:
        release.set()
        dispatcher.shutdown()


def test_dispatcher_survives_failing_job(caplog):
    dispatcher = NotificationDispatcher(workers=1, maxsize=10)
    seen = []

    def broken():
        raise ValueError("template exploded")

    try:
        dispatcher.submit(broken)
        dispatcher.submit(lambda: seen.append("ok"))
        dispatcher.join()
    finally:
        dispatcher.shutdown()
    assert seen == ["ok"]
    assert "Notification job broken failed" in caplog.text


def test_dispatcher_rejects_after_shutdown():
    dispatcher = NotificationDispatcher(workers=1)
    dispatcher.shutdown()
    assert dispatcher.submit(lambda: None) is False


# =============================================================================
# Recipients and composition
# =============================================================================

def test_resolve_admin_emails(db):
    make_user(db, "Admin One", [RoleName.SUPERUSER], email="Admin@Portal.io")
    make_user(db, "Both Roles", [RoleName.SUPERUSER, RoleName.PROJECT_MANAGER], email="both@portal.io")
    make_user(db, "Head", [RoleName.HIGHER_MANAGEMENT], email="head@portal.io")
    make_user(db, "Gone", [RoleName.PROJECT_MANAGER], email="gone@portal.io", is_deleted=True)

    assert sorted(resolve_admin_emails(db)) == ["admin@portal.io", "both@portal.io"]


def test_booking_receipt_content():
    sender = RecordingSender()

    assert send_booking_receipt(sender, _notice()) is True

    (email,) = sender.sent
    assert email["to"] == "a@x.io"
    assert email["subject"] == "Consultation Booking Confirmed - Booking ID: 0000ABCD"
    assert "Saturday, June 01, 2030" in email["html"]
    assert "2:00 PM - 2:30 PM" in email["html"]
    assert "https://meet.google.com/abc-defg-hij" in email["text"]


def test_booking_receipt_without_meeting_link():
    sender = RecordingSender()
    send_booking_receipt(sender, _notice(meeting_link=None))
    assert "will be shared with you" in sender.sent[0]["html"]


def test_admin_alert_escapes_visitor_input():
    sender = RecordingSender()

    notify_admins(sender, _notice(user_name="<b>Eve</b>"), ["admin@portal.io"])

    html = sender.sent[0]["html"]
    assert "<b>Eve</b>" not in html
    assert "&lt;b&gt;Eve&lt;/b&gt;" in html


def test_admin_alert_without_recipients_is_skipped():
    sender = RecordingSender()
    assert notify_admins(sender, _notice(), []) is False
    assert sender.sent == []


def test_send_failures_are_swallowed(caplog):
    class BrokenSender:
        def send(self, **kwargs):
            raise OSError("connection refused")

    assert send_booking_receipt(BrokenSender(), _notice()) is False
    assert "Booking receipt email failed" in caplog.text


def test_approver_email_without_amount():
    sender = RecordingSender()
    notice = ApproverNotice(
        project_id="p-1",
        project_name="Patent Filing - Project",
        client_name="Asha Client",
        amount=None,
        currency="INR",
        approver_name="Harish Higher",
        approver_email="harish@portal.io",
        assigned_by_name="Priya Manager",
    )

    notify_approver_assigned(sender, notice)

    assert "Quote amount" not in sender.sent[0]["html"]
    assert "Priya Manager" in sender.sent[0]["html"]


# =============================================================================
# SMTP transport
# =============================================================================

class FakeSMTP:
    instances: list["FakeSMTP"] = []
    starttls_error: Exception | None = None

    def __init__(self, host, port, timeout=None, context=None):
        self.host, self.port = host, port
        self.calls: list[tuple] = []
        FakeSMTP.instances.append(self)

    def starttls(self, context=None):
        self.calls.append(("starttls",))
        if self.starttls_error is not None:
            raise self.starttls_error

    def login(self, user, password):
        self.calls.append(("login", user))

    def sendmail(self, from_addr, to_addrs, msg):
        self.calls.append(("sendmail", from_addr, list(to_addrs)))

    def quit(self):
        self.calls.append(("quit",))
        if self.starttls_error is not None:
            raise smtplib.SMTPServerDisconnected("gone")

    def close(self):
        self.calls.append(("close",))


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.starttls_error = None
    monkeypatch.setattr(email_service.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(email_service.smtplib, "SMTP_SSL", FakeSMTP)
    return FakeSMTP


def test_smtp_skips_without_credentials(fake_smtp):
    sender = SmtpEmailSender(Settings(SMTP_USER="", SMTP_PASS=""))

    assert sender.send(to="a@x.io", subject="Hi", html="<p>Hi</p>") is False
    assert fake_smtp.instances == []


def test_smtp_starttls_delivery(fake_smtp):
    config = Settings(
        SMTP_HOST="smtp.example.com",
        SMTP_PORT=587,
        SMTP_USER="bookings@portal.io",
        SMTP_PASS="pw",
        MAIL_FROM="Portal <noreply@portal.io>",
    )

    sent = SmtpEmailSender(config).send(to=["a@x.io", "b@x.io"], subject="Hi", html="<p>Hi</p>")

    assert sent is True
    (server,) = fake_smtp.instances
    assert server.host == "smtp.example.com"
    assert server.calls == [
        ("starttls",),
        ("login", "bookings@portal.io"),
        ("sendmail", "noreply@portal.io", ["a@x.io", "b@x.io"]),
        ("quit",),
    ]


def test_smtp_implicit_tls_on_465(fake_smtp):
    config = Settings(SMTP_PORT=465, SMTP_USER="u@portal.io", SMTP_PASS="pw")

    SmtpEmailSender(config).send(to="a@x.io", subject="Hi", html="<p>Hi</p>")

    assert ("starttls",) not in fake_smtp.instances[0].calls


def test_html_to_text():
    text = html_to_text("<style>p{}</style><p>Hello&amp;welcome</p><br/><b>Bold</b>")
    assert "Hello&welcome" in text
    assert "Bold" in text
    assert "p{}" not in text


def test_email_sender_is_shared():
    notification_service.get_email_sender.cache_clear()
    assert notification_service.get_email_sender() is notification_service.get_email_sender()


def test_smtp_closes_connection_when_starttls_fails(fake_smtp):
    fake_smtp.starttls_error = smtplib.SMTPNotSupportedError("STARTTLS extension not supported")
    config = Settings(SMTP_PORT=587, SMTP_USER="u@portal.io", SMTP_PASS="pw")

    with pytest.raises(smtplib.SMTPNotSupportedError):
        SmtpEmailSender(config).send(to="a@x.io", subject="Hi", html="<p>Hi</p>")

    (server,) = fake_smtp.instances
    assert server.calls == [("starttls",), ("quit",), ("close",)]
