"""
RentHive - Email Service
Transactional email through Resend, with Jinja2 HTML templates.
"""

import asyncio
import base64
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

import resend
from jinja2 import Environment, FileSystemLoader, select_autoescape

from renthive.core.config import get_settings
from renthive.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)

_templates = Environment(
    loader=FileSystemLoader(Path(__file__).resolve().parent.parent / "templates"),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


# =============================================================================
# Formatting helpers
# =============================================================================

def format_currency(amount: Optional[float]) -> str:
    """Pound amount with two decimals, or "Not specified"."""
    if not amount:
        return "Not specified"
    return f"£{amount:.2f}"


def format_date(value: Optional[date | datetime | str]) -> str:
    """UK style dd/mm/yyyy, or "Not specified"."""
    if not value:
        return "Not specified"
    if isinstance(value, str):
        value = date.fromisoformat(value[:10])
    return value.strftime("%d/%m/%Y")


def format_address(prop: Any) -> str:
    """Join the non-empty address parts of a property (model or dict)."""
    def get(field: str):
        if isinstance(prop, dict):
            return prop.get(field)
        return getattr(prop, field, None)

    parts = [
        get("address_line1"),
        get("address_line2"),
        get("city"),
        get("county"),
        get("postcode"),
        get("country"),
    ]
    return ", ".join(part for part in parts if part)


def render_template(name: str, **context) -> str:
    return _templates.get_template(name).render(**context)


def render_request_email(
    title: str,
    sender_name: str,
    prop: Any,
    message: str,
    image_count: int = 0,
    additional_info: Optional[list[tuple[str, str]]] = None,
) -> str:
    """
    HTML body for a tenant-to-landlord request.

    additional_info rows are shown in a highlighted block above the message.
    """
    return render_template(
        "request_email.html",
        title=title,
        sender_name=sender_name,
        property=prop,
        address=format_address(prop),
        lease_start=format_date(getattr(prop, "lease_start_date", None)),
        lease_end=format_date(getattr(prop, "lease_end_date", None)),
        message=message,
        image_count=image_count,
        additional_info=additional_info or [],
    )


# =============================================================================
# Delivery
# =============================================================================

def build_attachment(filename: str, content: bytes) -> dict:
    return {"filename": filename, "content": base64.b64encode(content).decode("ascii")}


async def send_email(
    to: str | list[str],
    subject: str,
    html: str,
    sender_name: Optional[str] = None,
    reply_to: Optional[str] = None,
    attachments: Optional[list[dict]] = None,
) -> Optional[str]:
    """
    Send an email and return the provider's message id.

    Raises ExternalServiceError when Resend is not configured or rejects
    the message.
    """
    settings = get_settings()
    if not settings.resend_api_key:
        raise ExternalServiceError("Email service is not configured")

    resend.api_key = settings.resend_api_key
    from_address = settings.resend_from_email
    if sender_name:
        from_address = f"{sender_name} <{settings.resend_from_email}>"

    params: dict[str, Any] = {
        "from": from_address,
        "to": [to] if isinstance(to, str) else to,
        "subject": subject,
        "html": html,
    }
    if reply_to:
        params["reply_to"] = reply_to
    if attachments:
        params["attachments"] = attachments

    logger.info("Sending email '%s' with %d attachment(s)", subject, len(attachments or []))
    try:
        response = await asyncio.to_thread(resend.Emails.send, params)
    except Exception as e:
        logger.error("Resend rejected email '%s': %s", subject, e)
        raise ExternalServiceError(f"Failed to send email: {e}") from e

    return response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
