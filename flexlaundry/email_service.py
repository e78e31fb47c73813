"""
Email Service using Resend
Provides member and ops emails built from MJML templates for responsive design
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import BASE_URL, EMAIL_FROM_ADDRESS, OPS_ALERT_EMAIL, RESEND_API_KEY, SUPPORT_EMAIL
from .email_templates import (
    cancellation_template,
    login_link_template,
    ops_new_ticket_template,
    pause_confirmation_template,
    payment_failed_template,
    pickup_confirm_template,
    ready_for_pickup_template,
    sla_alert_template,
    stuck_bag_alert_template,
    support_ticket_template,
    welcome_email_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailError(Exception):
    """Raised when an email cannot be compiled or sent"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise EmailError(f"Failed to compile MJML template: {str(e)}") from e

    # mjml_to_html returns an object exposing html and errors
    errors = getattr(result, "errors", None)
    if errors is None and isinstance(result, dict):
        errors = result.get("errors")
    if errors:
        logger.warning(f"MJML compilation warnings: {errors}")

    html = getattr(result, "html", None)
    if html is None and isinstance(result, dict):
        html = result.get("html", "")
    return html or ""


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> dict:
    """
    Send an email via Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address
        reply_to: Optional reply-to address

    Returns:
        Send response dict
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailError("Email service not configured")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        email_data = {
            "from": from_address or EMAIL_FROM_ADDRESS,
            "to": recipients,
            "subject": subject,
            "html": html_content,
        }
        if reply_to:
            email_data["reply_to"] = reply_to

        response = resend.Emails.send(email_data)
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailError(f"Failed to send email: {str(e)}") from e


# ============================================
# Member Emails
# ============================================


async def send_welcome_email(to: str, first_name: str, plan_name: str, gym_name: str) -> dict:
    """Send welcome email to new members"""
    return await send_email(
        to=to,
        subject=f"Welcome to FLEX, {first_name}! 🎉",
        mjml_content=welcome_email_template(first_name, plan_name, gym_name, f"{BASE_URL}/portal/login"),
    )


async def send_ready_for_pickup_email(
    to: str, first_name: str, bag_number: str, gym_name: str, pickup_deadline: str
) -> dict:
    return await send_email(
        to=to,
        subject=f"Your FLEX bag {bag_number} is ready! ✨",
        mjml_content=ready_for_pickup_template(first_name, bag_number, gym_name, pickup_deadline),
    )


async def send_login_link_email(to: str, first_name: str, login_url: str) -> dict:
    return await send_email(
        to=to,
        subject="Your FLEX Login Link",
        mjml_content=login_link_template(first_name, login_url),
    )


async def send_pause_confirmation_email(to: str, first_name: str, resume_date: str) -> dict:
    return await send_email(
        to=to,
        subject="Your FLEX subscription is paused",
        mjml_content=pause_confirmation_template(first_name, resume_date),
    )


async def send_cancellation_email(to: str, first_name: str, immediate: bool = False) -> dict:
    return await send_email(
        to=to,
        subject="Your FLEX subscription has been cancelled",
        mjml_content=cancellation_template(first_name, immediate),
    )


async def send_payment_failed_email(to: str, first_name: str, update_url: str, day: int = 0) -> dict:
    """Payment failure notice (day 0) and retry reminders (day 3, day 7)"""
    subjects = {
        0: "Action needed: your FLEX payment failed",
        3: "Reminder: please update your FLEX payment details",
        7: "Final notice: your FLEX subscription will be paused",
    }
    return await send_email(
        to=to,
        subject=subjects.get(day, subjects[0]),
        mjml_content=payment_failed_template(first_name, update_url, day),
    )


async def send_pickup_confirm_email(
    to: str, first_name: str, bag_number: str, gym_name: str, is_reminder: bool = False
) -> dict:
    subject = (
        f"Reminder: bag {bag_number} is waiting for you"
        if is_reminder
        else f"Did you collect bag {bag_number}?"
    )
    return await send_email(
        to=to,
        subject=subject,
        mjml_content=pickup_confirm_template(first_name, bag_number, gym_name, is_reminder),
    )


async def send_support_ticket_email(to: str, first_name: str, ticket_id: str, ticket_type: str) -> dict:
    return await send_email(
        to=to,
        subject=f"We've received your FLEX support request ({ticket_id})",
        mjml_content=support_ticket_template(first_name, ticket_id, ticket_type),
        reply_to=SUPPORT_EMAIL,
    )


# ============================================
# Ops Emails
# ============================================


async def send_ops_new_ticket_email(ticket: dict) -> dict:
    return await send_email(
        to=SUPPORT_EMAIL,
        subject=f"🎫 FLEX Support: {ticket.get('type', 'Ticket')} from {ticket.get('member_name', 'member')}",
        mjml_content=ops_new_ticket_template(ticket),
        reply_to=ticket.get("member_email") or None,
    )


async def send_sla_alert_email(critical: list[dict], warnings: list[dict]) -> dict:
    return await send_email(
        to=OPS_ALERT_EMAIL,
        subject=f"🚨 FLEX SLA Alert: {len(critical)} Critical Issue(s)",
        mjml_content=sla_alert_template(critical, warnings, f"{BASE_URL}/ops/sla"),
    )


async def send_stuck_bag_alert_email(
    bag_number: str, status: str, hours: float, priority: str, member_name: str
) -> dict:
    return await send_email(
        to=OPS_ALERT_EMAIL,
        subject=f"⚠️ FLEX: Bag {bag_number} stuck in {status}",
        mjml_content=stuck_bag_alert_template(bag_number, status, hours, priority, member_name),
    )
