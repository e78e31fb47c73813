"""
Notification Service
Delivers member notifications over WhatsApp first with email as the fallback channel.
Notifications are best-effort: failures are logged and reported, never raised.
"""

import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional

from ..constants import OPERATIONS
from ..email_service import send_ready_for_pickup_email
from ..shared.dates import format_weekday_date, utc_now
from . import whatsapp_service

logger = logging.getLogger(__name__)


async def send_with_fallback(
    phone: Optional[str],
    email: Optional[str],
    send_whatsapp: Callable[[], Awaitable[tuple[bool, Optional[str]]]],
    send_email: Callable[[], Awaitable[Any]],
    context: str,
) -> dict:
    """
    Attempt WhatsApp, then email only if WhatsApp was not delivered.

    Args:
        phone: Member phone, WhatsApp is skipped when empty
        email: Member email, the fallback is skipped when empty
        send_whatsapp: Coroutine factory returning (success, error)
        send_email: Coroutine factory that raises on failure
        context: Short label used in logs

    Returns:
        dict with sent, channel, whatsapp_sent, email_sent and errors
    """
    result = {
        "sent": False,
        "channel": None,
        "whatsapp_sent": False,
        "email_sent": False,
        "errors": [],
    }

    if phone:
        try:
            success, error = await send_whatsapp()
        except Exception as e:
            success, error = False, str(e)
        if success:
            result.update(sent=True, channel="whatsapp", whatsapp_sent=True)
            return result
        logger.warning(f"⚠️ {context}: WhatsApp failed ({error}), falling back to email")
        result["errors"].append(f"WhatsApp: {error}")
    else:
        result["errors"].append("WhatsApp: no phone number")

    if not email:
        result["errors"].append("Email: no email address")
        logger.error(f"❌ {context}: no channel could deliver the notification")
        return result

    try:
        await send_email()
        result.update(sent=True, channel="email", email_sent=True)
        logger.info(f"📧 {context}: delivered by email fallback")
    except Exception as e:
        logger.error(f"❌ {context}: email fallback failed: {e}")
        result["errors"].append(f"Email: {e}")

    return result


async def notify_drop_ready(
    first_name: str,
    phone: Optional[str],
    email: Optional[str],
    bag_number: str,
    gym_name: str,
    available_until: Optional[str] = None,
) -> dict:
    """Tell a member their bag is ready for pickup"""
    available_until = available_until or format_weekday_date(
        utc_now() + timedelta(days=OPERATIONS["pickup_deadline_days"])
    )

    return await send_with_fallback(
        phone,
        email,
        lambda: whatsapp_service.send_ready_for_pickup(phone, bag_number, gym_name, available_until),
        lambda: send_ready_for_pickup_email(email, first_name or "there", bag_number, gym_name, available_until),
        context=f"Ready notification for bag {bag_number}",
    )
