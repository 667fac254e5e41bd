"""Outbound e-mail delivery of issued certificates.

Mail is sent over SMTP (STARTTLS when the server offers it, which it does on
the submission port 587) from a worker thread so the event loop is never
blocked by the network round-trips.
"""

import asyncio
import html
import smtplib
from email.message import EmailMessage
from pathlib import Path

from core.config import Settings
from core.logger import get_logger

logger = get_logger(__name__)


class DeliveryError(Exception):
    """Raised when a certificate e-mail could not be delivered."""

    pass


def build_certificate_message(
    *,
    sender: str,
    to: str,
    recipient_name: str,
    resource_name: str,
    certificate_id: str,
    pdf_bytes: bytes,
) -> EmailMessage:
    """Plain-text + HTML message with the PDF attached as <id>.pdf."""
    message = EmailMessage()
    message["Subject"] = f"Your certificate for {resource_name}"
    message["From"] = sender
    message["To"] = to

    message.set_content(
        f"Hello {recipient_name},\n\n"
        f"Attached is your certificate for {resource_name}.\n\n"
        f"Certificate ID: {certificate_id}\n"
    )
    message.add_alternative(
        f"<p>Hello {html.escape(recipient_name)},</p>"
        f"<p>Attached is your certificate for <b>{html.escape(resource_name)}</b>.</p>"
        f"<p>Certificate ID: {html.escape(certificate_id)}</p>",
        subtype="html",
    )
    message.add_attachment(
        pdf_bytes,
        maintype="application",
        subtype="pdf",
        filename=f"{certificate_id}.pdf",
    )
    return message


def _send_sync(settings: Settings, message: EmailMessage) -> None:
    with smtplib.SMTP(
        settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout
    ) as smtp:
        smtp.ehlo()
        if smtp.has_extn("starttls"):
            smtp.starttls()
            smtp.ehlo()
        if settings.smtp_user and settings.smtp_password:
            smtp.login(settings.smtp_user, settings.smtp_password)
        smtp.send_message(message)


async def send_certificate_email(
    settings: Settings,
    *,
    to: str,
    recipient_name: str,
    resource_name: str,
    certificate_id: str,
    pdf_path: Path,
) -> None:
    """Send the issued PDF to its recipient.

    Raises:
        DeliveryError: Transport not configured, attachment missing, or the
            SMTP exchange failed
    """
    if not settings.smtp_configured:
        raise DeliveryError("SMTP transport is not configured (set SMTP_HOST)")

    sender = settings.mail_from or settings.smtp_user
    if not sender:
        raise DeliveryError("No sender address configured (set MAIL_FROM)")

    try:
        pdf_bytes = await asyncio.to_thread(pdf_path.read_bytes)
    except OSError as e:
        raise DeliveryError(f"Certificate file not found: {pdf_path.name}") from e

    message = build_certificate_message(
        sender=sender,
        to=to,
        recipient_name=recipient_name,
        resource_name=resource_name,
        certificate_id=certificate_id,
        pdf_bytes=pdf_bytes,
    )

    try:
        await asyncio.to_thread(_send_sync, settings, message)
    except (smtplib.SMTPException, OSError) as e:
        raise DeliveryError(f"SMTP delivery failed: {e}") from e

    logger.info("certificate.email.sent", certificate_id=certificate_id)
