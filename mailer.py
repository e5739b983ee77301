import html
import logging
from typing import Optional

import resend

from config import CONTACT_TO_EMAIL, EMAIL_FROM, RESEND_API_KEY

logger = logging.getLogger("storefront.mail")


def send_email(to: str, subject: str, html_body: str, text_body: Optional[str] = None) -> bool:
    """Send one message through Resend. Returns False when delivery is not configured."""
    if not RESEND_API_KEY:
        logger.info("Email delivery disabled, skipping %r to %s", subject, to)
        return False
    resend.api_key = RESEND_API_KEY
    params = {"from": EMAIL_FROM, "to": [to], "subject": subject, "html": html_body}
    if text_body:
        params["text"] = text_body
    resend.Emails.send(params)
    return True


def notify_contact_inquiry(inquiry_id: str, name: str, email: str, subject: str, message: str) -> None:
    """Forward a contact inquiry to support and acknowledge it to the sender.

    Runs after the response is sent; failures are logged and never raised.
    """
    safe_name, safe_subject = html.escape(name), html.escape(subject)
    if CONTACT_TO_EMAIL:
        try:
            send_email(
                CONTACT_TO_EMAIL,
                f"New contact inquiry: {subject}",
                f"<p><strong>New contact inquiry received</strong></p>"
                f"<p><strong>Name:</strong> {safe_name}</p>"
                f"<p><strong>Email:</strong> {html.escape(email)}</p>"
                f"<p><strong>Subject:</strong> {safe_subject}</p>"
                f"<p>{html.escape(message).replace(chr(10), '<br/>')}</p>",
                f"New contact inquiry received\n\nName: {name}\nEmail: {email}\n"
                f"Subject: {subject}\n\nMessage:\n{message}",
            )
        except Exception:
            logger.exception("Failed to send support contact email for inquiry %s", inquiry_id)

    try:
        send_email(
            email,
            "We received your message - SoleMate",
            f"<p>Hi {safe_name},</p>"
            f"<p>Thanks for contacting SoleMate. We have received your message and will get back to you soon.</p>"
            f"<p><strong>Your subject:</strong> {safe_subject}</p>"
            f"<p>Reference ID: {inquiry_id}</p>",
            f"Hi {name},\n\nThanks for contacting SoleMate. We received your message and will get back "
            f"to you soon.\n\nSubject: {subject}\nReference ID: {inquiry_id}",
        )
    except Exception:
        logger.exception("Failed to send acknowledgement email for inquiry %s", inquiry_id)
