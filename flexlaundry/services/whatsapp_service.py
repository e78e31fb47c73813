"""
WhatsApp Messaging Service
Sends member notifications through the Twilio WhatsApp API.
Approved content templates are used when configured, with plain text fallbacks.
"""

import json
import logging
from typing import Optional

import httpx

from ..config import (
    TWILIO_ACCOUNT_SID,
    TWILIO_AUTH_TOKEN,
    TWILIO_WHATSAPP_NUMBER,
    WHATSAPP_TEMPLATES,
)
from ..constants import COMPANY

logger = logging.getLogger(__name__)


def format_whatsapp_address(phone: str) -> str:
    """Prefix a E.164 number with the whatsapp: channel"""
    return phone if phone.startswith("whatsapp:") else f"whatsapp:{phone}"


async def _post_message(data: dict, transport: Optional[httpx.AsyncBaseTransport] = None) -> tuple[bool, Optional[str]]:
    """POST a message to the Twilio Messages API"""
    if not TWILIO_ACCOUNT_SID or not TWILIO_AUTH_TOKEN:
        logger.error("❌ Twilio not configured - TWILIO_ACCOUNT_SID/TWILIO_AUTH_TOKEN missing")
        return False, "WhatsApp service not configured"

    try:
        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.post(
                f"https://api.twilio.com/2010-04-01/Accounts/{TWILIO_ACCOUNT_SID}/Messages.json",
                auth=(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN),
                data=data,
                timeout=10.0,
            )

        logger.info(f"📡 Twilio API response status: {response.status_code}")

        if response.status_code in [200, 201]:
            message_sid = response.json().get("sid")
            logger.info(f"✅ WhatsApp sent to {data['To']} (SID: {message_sid})")
            return True, None

        try:
            error_data = response.json()
        except ValueError:
            error_data = {}
        error_message = error_data.get("message", "Unknown error")
        error_code = error_data.get("code")
        logger.error(f"❌ Twilio API error [{error_code}]: {error_message}")
        return False, error_message

    except httpx.HTTPError as e:
        logger.error(f"Twilio API error: {str(e)}")
        return False, str(e)


async def send_whatsapp(
    to_phone: Optional[str], body: str, transport: Optional[httpx.AsyncBaseTransport] = None
) -> tuple[bool, Optional[str]]:
    """
    Send a plain text WhatsApp message

    Args:
        to_phone: Recipient phone number (E.164)
        body: Message text
        transport: Optional httpx transport override

    Returns:
        Tuple of (success: bool, error_message: Optional[str])
    """
    if not to_phone:
        return False, "No phone number provided"

    logger.info(f"📱 Sending WhatsApp to {to_phone}")
    data = {
        "From": TWILIO_WHATSAPP_NUMBER,
        "To": format_whatsapp_address(to_phone),
        "Body": body,
    }
    return await _post_message(data, transport)


async def send_whatsapp_template(
    to_phone: Optional[str],
    template_key: str,
    variables: dict,
    fallback_body: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> tuple[bool, Optional[str]]:
    """Send an approved content template, falling back to plain text if it fails"""
    if not to_phone:
        return False, "No phone number provided"

    content_sid = WHATSAPP_TEMPLATES.get(template_key)
    if content_sid:
        data = {
            "From": TWILIO_WHATSAPP_NUMBER,
            "To": format_whatsapp_address(to_phone),
            "ContentSid": content_sid,
        }
        if variables:
            data["ContentVariables"] = json.dumps(variables)

        success, error = await _post_message(data, transport)
        if success:
            return True, None
        logger.warning(f"⚠️ WhatsApp template {template_key} failed ({error}), sending plain text")

    return await send_whatsapp(to_phone, fallback_body, transport)


# ============================================
# Member Message Templates
# ============================================


async def send_welcome(phone: str, first_name: str, plan_name: str, gym_name: str):
    body = (
        f"Welcome to FLEX, {first_name}! 🎉\n\n"
        f"Your {plan_name} plan is now active at {gym_name}.\n\n"
        f"Ready to drop off your first bag of gym clothes? "
        f"Grab a FLEX bag from reception and log it in your portal."
    )
    return await send_whatsapp_template(
        phone, "welcome", {"1": first_name, "2": plan_name, "3": gym_name}, body
    )


async def send_drop_confirmed(phone: str, bag_number: str, gym_name: str, expected_date: str):
    body = (
        f"Got your FLEX bag! ✅\n\n"
        f"📦 Bag: {bag_number}\n"
        f"📍 Location: {gym_name}\n"
        f"⏰ Expected ready: {expected_date}\n\n"
        f"We'll message you when it's ready for pickup."
    )
    return await send_whatsapp_template(
        phone, "drop_confirmed", {"1": bag_number, "2": gym_name, "3": expected_date}, body
    )


async def send_ready_for_pickup(phone: str, bag_number: str, gym_name: str, available_until: str):
    body = (
        f"Your clothes are ready! 👕✨\n\n"
        f"📦 Bag {bag_number} is waiting at {gym_name} reception.\n"
        f"📅 Available until: {available_until}\n\n"
        f"Just ask for your FLEX bag."
    )
    return await send_whatsapp_template(
        phone, "ready_pickup", {"1": bag_number, "2": gym_name, "3": available_until}, body
    )


async def send_pickup_confirm_request(phone: str, first_name: str, bag_number: str, gym_name: str):
    body = (
        f"Hi {first_name}! Did you pick up bag {bag_number} from {gym_name}? 👕\n\n"
        f"If you've collected it, you're all set. "
        f"If not, it's still waiting for you at reception."
    )
    return await send_whatsapp(phone, body)


async def send_pickup_reminder(phone: str, first_name: str, bag_number: str, gym_name: str):
    body = (
        f"Reminder: your clean clothes are waiting! ⏰\n\n"
        f"Hi {first_name}, bag {bag_number} is still at {gym_name} reception. "
        f"Please collect it soon so we can keep space free for everyone."
    )
    return await send_whatsapp_template(
        phone, "pickup_reminder", {"1": first_name, "2": bag_number, "3": gym_name}, body
    )


async def send_reengagement(phone: str, first_name: str, drops_remaining: int, expiry_date: str):
    body = (
        f"Hey {first_name}! We haven't seen your gym clothes lately. 👀\n\n"
        f"You still have {drops_remaining} drops remaining - they expire on {expiry_date}.\n\n"
        f"Ready to make a drop?"
    )
    return await send_whatsapp_template(
        phone,
        "reengagement",
        {"1": first_name, "2": str(drops_remaining), "3": expiry_date},
        body,
    )


async def send_verification_code(phone: str, code: str):
    body = (
        f"Your FLEX login code is: {code}\n\n"
        f"This code expires in 15 minutes. Don't share it with anyone."
    )
    return await send_whatsapp(phone, body)


async def send_login_link(phone: str, first_name: str, login_url: str):
    body = (
        f"Hey {first_name}! 👋 Here's your FLEX login link:\n\n"
        f"{login_url}\n\n"
        f"This link expires in 24 hours."
    )
    return await send_whatsapp_template(phone, "login_link", {"1": first_name, "2": login_url}, body)


async def send_payment_retry(phone: str, first_name: str, day: int, update_url: str):
    if day >= 7:
        body = (
            f"Hi {first_name}, final notice: we still couldn't take your FLEX payment. ⚠️\n\n"
            f"Your subscription will be paused in 3 days unless you update your card:\n"
            f"{update_url}"
        )
    else:
        body = (
            f"Hi {first_name}, we couldn't process your FLEX payment. 💳\n\n"
            f"Please update your payment details to keep your drops going:\n"
            f"{update_url}"
        )
    return await send_whatsapp(phone, body)


async def send_pause_reminder(phone: str, first_name: str, resume_date: str):
    body = (
        f"Hi {first_name}! 👋 Your FLEX subscription will resume on {resume_date}.\n\n"
        f"Your drops will be reset and billing restarts on that date. "
        f"Need a longer break? Manage your subscription in the member portal."
    )
    return await send_whatsapp(phone, body)


async def send_pause_confirmed(phone: str, resume_date: str):
    body = (
        f"Your subscription is now paused. ⏸️\n\n"
        f"It will automatically resume on {resume_date}.\n\n"
        f"See you soon! 💪"
    )
    return await send_whatsapp(phone, body)


async def send_resume_confirmed(phone: str):
    body = "Welcome back! Your subscription is active again. ✅\n\nReady to make a drop?"
    return await send_whatsapp(phone, body)


async def send_cancel_confirmation(phone: str):
    body = (
        "We're sorry to see you go! 😢\n\n"
        "Your subscription has been cancelled. You'll have access until the end of your current billing period.\n\n"
        f"Changed your mind? You can resubscribe anytime at {COMPANY['website']}"
    )
    return await send_whatsapp(phone, body)


async def send_gym_changed(phone: str, gym_name: str):
    body = (
        f"Gym updated! ✅\n\n"
        f"Your gym has been changed to {gym_name}. Your next drop should be at {gym_name}."
    )
    return await send_whatsapp(phone, body)


TICKET_STATUS_MESSAGES = {
    "In Progress": (
        "Hey {first_name}! 👋\n\n"
        "Update on your ticket {ticket_id}:\n\n"
        "We're now working on this. We'll get back to you soon."
    ),
    "Awaiting Customer": (
        "Hey {first_name}! 📬\n\n"
        "We need more info on ticket {ticket_id}.\n\n"
        "Please check your email and reply there, or message us here with more details."
    ),
    "Resolved": (
        "Hey {first_name}! ✅\n\n"
        "Good news - ticket {ticket_id} has been resolved!\n\n"
        "If you have any other issues, let us know in the member portal."
    ),
}


async def send_ticket_status(phone: str, first_name: str, ticket_id: str, status: str):
    template = TICKET_STATUS_MESSAGES.get(status)
    if not template:
        return False, f"No message for status {status}"
    return await send_whatsapp(phone, template.format(first_name=first_name, ticket_id=ticket_id))


async def send_support_confirmed(phone: str, ticket_type: str):
    body = (
        f"Got it! Your {ticket_type} issue has been logged. 📝\n\n"
        f"Our team will review and get back to you within 24 hours."
    )
    return await send_whatsapp(phone, body)
