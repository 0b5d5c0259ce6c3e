from __future__ import annotations

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from .settings import settings
from .status import InfrastructureStatus, describe, status_label


def send_email(subject: str, body: str) -> bool:
    """Send an email if SMTP settings are configured.

    Environment variables:
      - IRR_ENABLE_EMAIL=true
      - IRR_SMTP_HOST / IRR_SMTP_PORT
      - IRR_SMTP_USER / IRR_SMTP_PASSWORD
      - IRR_EMAIL_FROM / IRR_EMAIL_TO
    """
    if not settings.enable_email:
        return False
    if not all(
        [
            settings.smtp_host,
            settings.smtp_port,
            settings.smtp_user,
            settings.smtp_password,
            settings.email_from,
            settings.email_to,
        ]
    ):
        return False

    msg = MIMEMultipart()
    msg["From"] = settings.email_from
    msg["To"] = settings.email_to
    msg["Subject"] = subject
    msg.attach(MIMEText(body, "plain"))

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.email_from, [settings.email_to], msg.as_string())
        return True
    except (smtplib.SMTPException, OSError):
        return False


def notify_failure(action: str, status: InfrastructureStatus | None, detail: str) -> bool:
    state = status_label(status) if status is not None else "unknown"
    subject = f"[IRR] {action} failed ({state})"
    lines = [f"Action: {action}", f"Detail: {detail}"]
    if status is not None:
        lines.append(f"Status: {describe(status)}")
    return send_email(subject, "\n".join(lines))
