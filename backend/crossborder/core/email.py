# backend/crossborder/core/email.py
"""
Outbound mail for account flows (password reset links).

EMAIL_PROVIDER=smtp delivers through the SMTP_* settings; anything else,
or SMTP without credentials, writes the message to the log. Delivery is
best effort: failures are logged, never raised to the request.
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Callable, Dict, Optional

from crossborder.core.config import settings

logger = logging.getLogger("crossborder")

DEFAULT_FROM = "CrossBorder Transportation <no-reply@crossborder.example>"


@dataclass
class OutboundEmail:
    to: str
    subject: str
    text: str
    html: Optional[str] = None

    def as_message(self) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = settings.email_from or DEFAULT_FROM
        msg["To"] = self.to
        msg["Subject"] = self.subject
        msg.set_content(self.text)
        if self.html:
            msg.add_alternative(self.html, subtype="html")
        return msg


def _deliver_to_log(mail: OutboundEmail) -> None:
    logger.info("email (log mode) to=%s subject=%s\n%s", mail.to, mail.subject, mail.text)


def _deliver_smtp(mail: OutboundEmail) -> None:
    if not settings.smtp_configured:
        logger.warning("EMAIL_PROVIDER=smtp without SMTP_HOST/SMTP_USER/SMTP_PASSWORD; logging instead.")
        _deliver_to_log(mail)
        return

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            if settings.smtp_use_tls:
                server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.send_message(mail.as_message())
    except (smtplib.SMTPException, OSError):
        logger.exception("smtp_send_failed to=%s subject=%s", mail.to, mail.subject)
        return

    logger.info("email sent via smtp to=%s subject=%s", mail.to, mail.subject)


PROVIDERS: Dict[str, Callable[[OutboundEmail], None]] = {
    "log": _deliver_to_log,
    "smtp": _deliver_smtp,
}


def send_email(
    *,
    to_email: str,
    subject: str,
    text_body: str,
    html_body: Optional[str] = None,
) -> None:
    to_email = (to_email or "").strip()
    if not to_email:
        return

    provider = (settings.email_provider or "log").strip().lower()
    deliver = PROVIDERS.get(provider, _deliver_to_log)
    deliver(OutboundEmail(to=to_email, subject=subject, text=text_body, html=html_body))
