"""SMTP email transport."""

from __future__ import annotations

import html as html_module
import logging
import re
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, parseaddr
from typing import Protocol

from portal_api.core.config import Settings, settings

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 30


class EmailSender(Protocol):
    def send(self, *, to: str | list[str], subject: str, html: str, text: str | None = None) -> bool:
        """Deliver one message. Returns False when the send was skipped."""


def html_to_text(content: str) -> str:
    """Convert HTML into readable text for the plain-text alternative."""
    text = re.sub(r"<(script|style)[^>]*>.*?</\1>", "", content, flags=re.DOTALL | re.I)
    text = re.sub(r"<br\s*/?>|</p>|</tr>|</h\d>", "\n", text, flags=re.I)
    text = re.sub(r"<[^>]+>", " ", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text).strip()
    return html_module.unescape(text)


class SmtpEmailSender:
    """Send mail through the configured SMTP relay (STARTTLS or implicit TLS)."""

    key = "smtp"

    def __init__(self, config: Settings = settings):
        self._config = config

    def is_configured(self) -> bool:
        return self._config.smtp_configured

    def _from_header(self) -> str:
        name, address = parseaddr(self._config.mail_from_address)
        return formataddr((name, address)) if name else address

    def send(self, *, to: str | list[str], subject: str, html: str, text: str | None = None) -> bool:
        """
        Send a multipart (text + HTML) message.

        Returns False without sending when SMTP credentials are missing.
        Transport errors propagate to the caller.
        """
        recipients = [to] if isinstance(to, str) else [r for r in to if r]
        if not recipients:
            logger.warning("Email skipped: no recipients (subject=%r)", subject)
            return False
        if not self.is_configured():
            logger.warning("Email skipped: SMTP credentials not configured (subject=%r)", subject)
            return False

        from_header = self._from_header()
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = from_header
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(text or html_to_text(html), "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))

        host = self._config.SMTP_HOST
        port = self._config.SMTP_PORT
        context = ssl.create_default_context()
        implicit_tls = self._config.SMTP_SECURE or port == 465
        if implicit_tls:
            server = smtplib.SMTP_SSL(host, port, context=context, timeout=SMTP_TIMEOUT_SECONDS)
        else:
            server = smtplib.SMTP(host, port, timeout=SMTP_TIMEOUT_SECONDS)
        try:
            if not implicit_tls:
                server.starttls(context=context)
            server.login(self._config.SMTP_USER, self._config.SMTP_PASS)
            server.sendmail(parseaddr(from_header)[1], recipients, msg.as_string())
        finally:
            try:
                server.quit()
            except (smtplib.SMTPException, OSError):
                server.close()

        logger.info("Email sent via SMTP (%d recipient(s), subject=%r)", len(recipients), subject)
        return True
