"""
MJML Email Templates
All member and ops email templates using MJML for responsive, cross-client compatibility
"""

from typing import Optional

from .constants import COMPANY

# FLEX brand colors - Black/Lime scheme
THEME = {
    "primary": "#111111",
    "accent": "#c6f432",
    "background": "#f5f5f4",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}

LOGO_URL = "https://flexlaundry.co.uk/flex-logo.png"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
    is_member_email: bool = True,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="{THEME['accent']}"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    footer_notice = ""
    if is_member_email:
        footer_notice = f"""
        <mj-text align="center" font-size="12px" color="#94a3b8" padding="12px 0 0 0">
          You're receiving this because you're a {COMPANY['name']} member.
          Questions? Email {COMPANY['support_email']}
        </mj-text>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="{THEME['primary']}" padding="28px 20px">
          <mj-column>
            <mj-image
              src="{LOGO_URL}"
              alt="FLEX"
              width="110px"
              href="{COMPANY['website']}"
              padding="0" />
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="40px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              © {COMPANY['name']} Laundry. Fresh gym kit, zero effort.
            </mj-text>
            {footer_notice}
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _detail_rows(rows: list[tuple[str, str]]) -> str:
    items = "".join(
        f"<tr><td style=\"padding:6px 0;color:{THEME['text_muted']}\">{label}</td>"
        f"<td style=\"padding:6px 0;font-weight:600\">{value}</td></tr>"
        for label, value in rows
        if value
    )
    return f"""
    <mj-table padding="8px 0 16px 0">
      {items}
    </mj-table>
    """


# ============================================================================
# MEMBER EMAILS
# ============================================================================


def welcome_email_template(first_name: str, plan_name: str, gym_name: str, portal_url: str) -> str:
    """Welcome email MJML template"""
    content = f"""
    <mj-text>Hi {first_name},</mj-text>
    <mj-text>
      Welcome to {COMPANY['name']}! Your <strong>{plan_name}</strong> plan is active at
      <strong>{gym_name}</strong>.
    </mj-text>
    <mj-text>
      Grab a FLEX bag from reception, fill it with your gym kit, and leave it at the desk.
      We'll have it back clean within 48 hours.
    </mj-text>
    """
    return get_base_template(
        title=f"Welcome to FLEX, {first_name}!",
        preview_text="Your FLEX membership is active",
        content_sections=content,
        cta_url=portal_url,
        cta_label="Open member portal",
    )


def ready_for_pickup_template(first_name: str, bag_number: str, gym_name: str, pickup_deadline: str) -> str:
    """Bag ready for pickup MJML template"""
    content = f"""
    <mj-text>Hi {first_name},</mj-text>
    <mj-text>Your clean gym clothes are waiting for you.</mj-text>
    {_detail_rows([("Bag", bag_number), ("Pickup at", gym_name), ("Collect by", pickup_deadline)])}
    <mj-text>Just ask for your FLEX bag at reception.</mj-text>
    """
    return get_base_template(
        title=f"Bag {bag_number} is ready!",
        preview_text=f"Bag {bag_number} is ready at {gym_name}",
        content_sections=content,
    )


def login_link_template(first_name: str, login_url: str) -> str:
    """Magic login link MJML template"""
    content = f"""
    <mj-text>Hi {first_name},</mj-text>
    <mj-text>Use the button below to sign in to your FLEX member portal.</mj-text>
    <mj-text color="{THEME['text_muted']}" font-size="14px">This link expires in 24 hours.</mj-text>
    """
    return get_base_template(
        title="Your FLEX login link",
        preview_text="Sign in to your FLEX account",
        content_sections=content,
        cta_url=login_url,
        cta_label="Sign in",
    )


def pause_confirmation_template(first_name: str, resume_date: str) -> str:
    """Subscription paused MJML template"""
    content = f"""
    <mj-text>Hi {first_name},</mj-text>
    <mj-text>
      Your FLEX subscription is paused. You won't be charged while paused and it will
      resume automatically on <strong>{resume_date}</strong>.
    </mj-text>
    """
    return get_base_template(
        title="Your subscription is paused",
        preview_text=f"Resumes on {resume_date}",
        content_sections=content,
    )


def cancellation_template(first_name: str, immediate: bool) -> str:
    """Subscription cancelled MJML template"""
    access = (
        "Your subscription has ended."
        if immediate
        else "You'll keep access until the end of your current billing period."
    )
    content = f"""
    <mj-text>Hi {first_name},</mj-text>
    <mj-text>We're sorry to see you go. {access}</mj-text>
    <mj-text>Changed your mind? You can rejoin anytime.</mj-text>
    """
    return get_base_template(
        title="Your subscription has been cancelled",
        preview_text="Your FLEX subscription has been cancelled",
        content_sections=content,
        cta_url=f"{COMPANY['website']}/join",
        cta_label="Rejoin FLEX",
    )


def payment_failed_template(first_name: str, update_url: str, day: int = 0) -> str:
    """Payment failed / retry reminder MJML template"""
    if day >= 7:
        message = (
            "This is your final reminder. Your subscription will be paused in 3 days "
            "unless your payment details are updated."
        )
    elif day >= 3:
        message = "We still haven't been able to take your payment. Please update your card."
    else:
        message = "We couldn't process your latest payment. Please update your payment details."
    content = f"""
    <mj-text>Hi {first_name},</mj-text>
    <mj-text>{message}</mj-text>
    """
    return get_base_template(
        title="Payment issue with your FLEX subscription",
        preview_text="Action needed: update your payment details",
        content_sections=content,
        cta_url=update_url,
        cta_label="Update payment details",
    )


def pickup_confirm_template(first_name: str, bag_number: str, gym_name: str, is_reminder: bool) -> str:
    """Pickup confirmation / reminder MJML template"""
    if is_reminder:
        message = f"Bag {bag_number} is still waiting at {gym_name}. Please collect it soon."
    else:
        message = f"Did you pick up bag {bag_number} from {gym_name}? If not, it's waiting at reception."
    content = f"""
    <mj-text>Hi {first_name},</mj-text>
    <mj-text>{message}</mj-text>
    """
    return get_base_template(
        title="Reminder: your bag is waiting" if is_reminder else "Have you collected your bag?",
        preview_text=message,
        content_sections=content,
    )


def support_ticket_template(first_name: str, ticket_id: str, ticket_type: str) -> str:
    """Support ticket received MJML template"""
    content = f"""
    <mj-text>Hi {first_name},</mj-text>
    <mj-text>
      We've logged your <strong>{ticket_type}</strong> ticket ({ticket_id}).
      Our team will get back to you within 24 hours.
    </mj-text>
    """
    return get_base_template(
        title="We've received your request",
        preview_text=f"Ticket {ticket_id} received",
        content_sections=content,
    )


# ============================================================================
# OPS EMAILS
# ============================================================================


def ops_new_ticket_template(ticket: dict) -> str:
    """New support ticket notification for the ops team"""
    content = f"""
    {_detail_rows([
        ("Type", ticket.get("type", "")),
        ("Member", ticket.get("member_name", "")),
        ("Phone", ticket.get("member_phone", "")),
        ("Email", ticket.get("member_email", "")),
        ("Bag", ticket.get("bag_number") or ""),
    ])}
    <mj-text>{ticket.get("description", "")}</mj-text>
    """
    return get_base_template(
        title="New support ticket",
        preview_text=f"{ticket.get('type', 'Ticket')} from {ticket.get('member_name', 'member')}",
        content_sections=content,
        is_member_email=False,
    )


def sla_alert_template(critical: list[dict], warnings: list[dict], dashboard_url: str) -> str:
    """SLA alert summary for the ops team"""

    def _items(items: list[dict]) -> str:
        return "<br/>".join(f"• {item['label']}: {item['detail']}" for item in items) or "None"

    content = f"""
    <mj-text font-weight="600" color="{THEME['danger']}">Critical ({len(critical)})</mj-text>
    <mj-text>{_items(critical)}</mj-text>
    <mj-text font-weight="600" color="{THEME['warning']}">Warnings ({len(warnings)})</mj-text>
    <mj-text>{_items(warnings)}</mj-text>
    """
    return get_base_template(
        title="SLA alert",
        preview_text=f"{len(critical)} critical issue(s)",
        content_sections=content,
        cta_url=dashboard_url,
        cta_label="Open SLA dashboard",
        is_member_email=False,
    )


def stuck_bag_alert_template(bag_number: str, status: str, hours: float, priority: str, member_name: str) -> str:
    """Stuck drop alert for the ops team"""
    content = f"""
    {_detail_rows([
        ("Bag", bag_number),
        ("Status", status),
        ("Stuck for", f"{hours:.0f} hours"),
        ("Priority", priority),
        ("Member", member_name),
    ])}
    <mj-text>An issue ticket has been created automatically.</mj-text>
    """
    return get_base_template(
        title=f"Bag {bag_number} looks stuck",
        preview_text=f"Bag {bag_number} stuck in {status}",
        content_sections=content,
        is_member_email=False,
    )
