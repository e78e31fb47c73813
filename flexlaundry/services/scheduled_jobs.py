"""
Scheduled Jobs
Periodic member messaging and ops monitoring. Each job returns a summary dict and
collects per-item failures instead of aborting. Run by the /api/cron endpoints and
by the arq worker.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from ..airtable import AirtableClient
from ..config import BASE_URL
from ..constants import (
    DROP_AT_LAUNDRY,
    DROP_DROPPED,
    DROP_READY,
    MEMBER_ACTIVE,
    MEMBER_PAST_DUE,
    MEMBER_PAUSED,
    OPERATIONS,
)
from ..domain.billing.stripe_service import stripe_service
from ..domain.drops.repository import DropRepository
from ..domain.members.repository import MemberRepository
from ..domain.support.service import SupportService
from ..email_service import (
    send_payment_failed_email,
    send_pickup_confirm_email,
    send_sla_alert_email,
    send_stuck_bag_alert_email,
)
from ..shared.dates import (
    format_weekday_date,
    hours_since,
    parse_datetime,
    to_iso,
    utc_now,
)
from . import whatsapp_service
from .notification_service import send_with_fallback
from .sla import get_sla_report

logger = logging.getLogger(__name__)

PICKUP_CONFIRM_HOURS = 24
PICKUP_REMINDER_HOURS = 48
AUTO_PAUSE_DAYS = 30
AUTO_PAUSE_REASON = "Payment failure - auto-paused after 10 days"

# (status, alert after hours, escalate after hours, issue type, priority, escalated priority)
STUCK_DROP_RULES = [
    (DROP_DROPPED, 6, 12, "Late Delivery", "Medium", "High"),
    (DROP_AT_LAUNDRY, 36, 48, "Late Delivery", "High", "Urgent"),
    (DROP_READY, 120, None, "Missing Bag", "Low", "Low"),
]


def _first(value):
    """Airtable lookups come back as lists"""
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _short_date(dt: datetime) -> str:
    """27 Oct"""
    return f"{dt.day} {dt:%b}"


def next_billing_date(signup: Optional[datetime], now: datetime) -> datetime:
    """Next monthly renewal, anchored on the signup day of month"""
    if signup is None:
        return now + relativedelta(months=1)
    months = (now.year - signup.year) * 12 + (now.month - signup.month)
    candidate = signup + relativedelta(months=months)
    if candidate <= now:
        candidate = signup + relativedelta(months=months + 1)
    return candidate


def classify_stuck_drop(status: Optional[str], hours: Optional[float]) -> Optional[tuple[str, str]]:
    """Return (issue type, priority) for a drop stuck in its status, or None"""
    if hours is None:
        return None
    for rule_status, alert_after, escalate_after, issue_type, priority, escalated in STUCK_DROP_RULES:
        if status != rule_status or hours <= alert_after:
            continue
        if escalate_after is not None and hours > escalate_after:
            return issue_type, escalated
        return issue_type, priority
    return None


# ============================================================================
# SLA CHECK
# ============================================================================


async def sla_check(airtable: AirtableClient, now: Optional[datetime] = None) -> dict:
    """Email ops a summary of breached and critical drops. Alerts repeat every run."""
    report = await get_sla_report(airtable, now)

    critical = []
    warnings = []
    for drop in report["drops"]:
        item = {
            "label": f"Bag {drop['bagNumber']}",
            "detail": f"{drop['status']} for {drop['hoursElapsed']}h at {drop['gym'] or 'unknown gym'}",
        }
        if drop["urgency"] == "breached":
            critical.append(item)
        elif drop["urgency"] == "critical":
            warnings.append(item)

    alert_sent = False
    if critical or warnings:
        try:
            await send_sla_alert_email(critical, warnings)
            alert_sent = True
            logger.info(f"🚨 SLA alert sent: {len(critical)} critical, {len(warnings)} warnings")
        except Exception as e:
            logger.error(f"❌ Failed to send SLA alert: {e}")
    else:
        logger.info("✅ SLA check: all drops within turnaround")

    return {
        "success": True,
        "status": report["status"],
        "critical": len(critical),
        "warnings": len(warnings),
        "alertSent": alert_sent,
    }


# ============================================================================
# MEMBER MESSAGING
# ============================================================================


async def pause_reminders(airtable: AirtableClient, now: Optional[datetime] = None) -> dict:
    """Remind paused members a few days before billing resumes"""
    now = now or utc_now()
    window = timedelta(days=OPERATIONS["pause_reminder_days"])
    results = {"processed": 0, "sent": 0, "errors": []}

    members = await MemberRepository(airtable).list_by_formula(
        f"AND({{Status}} = '{MEMBER_PAUSED}', {{Stripe Subscription ID}} != '')"
    )
    logger.info(f"⏸️ Checking {len(members)} paused members for upcoming resumes")

    for member in members:
        fields = member["fields"]
        results["processed"] += 1
        try:
            subscription = stripe_service.get_subscription(fields["Stripe Subscription ID"])
            pause = subscription.get("pause_collection")
            resumes_at = pause.get("resumes_at") if pause else None
            if not resumes_at:
                continue

            resume_date = datetime.fromtimestamp(resumes_at, tz=now.tzinfo)
            if not now < resume_date <= now + window:
                continue

            phone = fields.get("Phone")
            if not phone:
                continue
            success, error = await whatsapp_service.send_pause_reminder(
                phone, fields.get("First Name") or "there", format_weekday_date(resume_date)
            )
            if success:
                results["sent"] += 1
            else:
                results["errors"].append({"memberId": member["id"], "error": error})
        except Exception as e:
            logger.error(f"❌ Pause reminder failed for member {member['id']}: {e}")
            results["errors"].append({"memberId": member["id"], "error": str(e)})

    logger.info(f"📊 Pause reminders: {results['sent']} sent of {results['processed']} checked")
    return results


async def reengagement(airtable: AirtableClient, now: Optional[datetime] = None) -> dict:
    """Nudge active members who haven't dropped a bag in a while"""
    now = now or utc_now()
    cutoff = now - timedelta(days=OPERATIONS["reengagement_days"])
    results = {"processed": 0, "sent": 0, "errors": []}

    members = await MemberRepository(airtable).list_by_formula(f"{{Status}} = '{MEMBER_ACTIVE}'")

    for member in members:
        fields = member["fields"]
        last_activity = parse_datetime(fields.get("Last Drop Date") or fields.get("Signup Date"))
        if last_activity is None or last_activity > cutoff:
            continue

        results["processed"] += 1
        phone = fields.get("Phone")
        if not phone:
            continue
        try:
            renewal = next_billing_date(parse_datetime(fields.get("Signup Date")), now)
            success, error = await whatsapp_service.send_reengagement(
                phone,
                fields.get("First Name") or "there",
                fields.get("Drops Remaining") or 0,
                _short_date(renewal),
            )
            if success:
                results["sent"] += 1
            else:
                results["errors"].append({"memberId": member["id"], "error": error})
        except Exception as e:
            logger.error(f"❌ Re-engagement failed for member {member['id']}: {e}")
            results["errors"].append({"memberId": member["id"], "error": str(e)})

    logger.info(f"📊 Re-engagement: {results['sent']} sent of {results['processed']} inactive members")
    return results


async def payment_retry(airtable: AirtableClient, now: Optional[datetime] = None) -> dict:
    """Day 3 and day 7 payment reminders, then auto-pause from day 10"""
    now = now or utc_now()
    members_repo = MemberRepository(airtable)
    update_url = f"{BASE_URL}/portal/billing"
    results = {"day3RemindersSent": 0, "day7RemindersSent": 0, "subscriptionsPaused": 0, "errors": []}

    members = await members_repo.list_by_formula("NOT({Payment Failed Date} = BLANK())")
    logger.info(f"💳 Checking {len(members)} members with failed payments")

    for member in members:
        fields = member["fields"]
        failed_at = parse_datetime(fields.get("Payment Failed Date"))
        if failed_at is None:
            continue
        days = round((now - failed_at).total_seconds() / 86400)
        first_name = fields.get("First Name") or "there"
        phone = fields.get("Phone")
        email = fields.get("Email")

        try:
            if 3 <= days < 7 and not fields.get("Day 3 Reminder Sent"):
                reminder_day, flag, counter = 3, "Day 3 Reminder Sent", "day3RemindersSent"
            elif 7 <= days < 10 and not fields.get("Day 7 Reminder Sent"):
                reminder_day, flag, counter = 7, "Day 7 Reminder Sent", "day7RemindersSent"
            else:
                reminder_day = None

            if reminder_day:
                outcome = await send_with_fallback(
                    phone,
                    email,
                    lambda: whatsapp_service.send_payment_retry(phone, first_name, reminder_day, update_url),
                    lambda: send_payment_failed_email(email, first_name, update_url, day=reminder_day),
                    context=f"Day {reminder_day} payment reminder for member {member['id']}",
                )
                if outcome["sent"]:
                    await members_repo.update(member["id"], {flag: True})
                    results[counter] += 1
                else:
                    results["errors"].append({"memberId": member["id"], "error": "; ".join(outcome["errors"])})

            elif days >= 10 and fields.get("Status") == MEMBER_PAST_DUE and fields.get("Stripe Subscription ID"):
                resumes_at = int((now + timedelta(days=AUTO_PAUSE_DAYS)).timestamp())
                stripe_service.pause_subscription(fields["Stripe Subscription ID"], resumes_at)
                await members_repo.update(
                    member["id"], {"Status": MEMBER_PAUSED, "Pause Reason": AUTO_PAUSE_REASON}
                )
                results["subscriptionsPaused"] += 1
                logger.info(f"⏸️ Auto-paused member {member['id']} after {days} days of failed payment")
        except Exception as e:
            logger.error(f"❌ Payment retry failed for member {member['id']}: {e}")
            results["errors"].append({"memberId": member["id"], "error": str(e)})

    logger.info(
        f"📊 Payment retry: {results['day3RemindersSent']} day-3, {results['day7RemindersSent']} day-7, "
        f"{results['subscriptionsPaused']} paused"
    )
    return results


async def pickup_confirm(airtable: AirtableClient, now: Optional[datetime] = None) -> dict:
    """Ask members to confirm collection of ready bags, then remind them"""
    now = now or utc_now()
    drops_repo = DropRepository(airtable)
    members_repo = MemberRepository(airtable)
    results = {"confirmationsSent": 0, "remindersSent": 0, "viaEmail": 0, "errors": []}

    ready_drops = await drops_repo.list_by_formula(f"{{Status}} = '{DROP_READY}'")

    for drop in ready_drops:
        fields = drop["fields"]
        hours = hours_since(fields.get("Ready Date"), now)
        if hours is None:
            continue

        if hours >= PICKUP_CONFIRM_HOURS and not fields.get("Pickup Confirm Sent"):
            is_reminder, flag, counter = False, "Pickup Confirm Sent", "confirmationsSent"
        elif hours >= PICKUP_REMINDER_HOURS and fields.get("Pickup Confirm Sent") and not fields.get("Pickup Reminder Sent"):
            is_reminder, flag, counter = True, "Pickup Reminder Sent", "remindersSent"
        else:
            continue

        try:
            member_id = _first(fields.get("Member"))
            member = await members_repo.get_by_id(member_id) if member_id else None
            if not member:
                continue

            member_fields = member["fields"]
            phone = member_fields.get("Phone")
            email = member_fields.get("Email")
            first_name = member_fields.get("First Name") or "there"
            bag_number = fields.get("Bag Number")
            gym_name = _first(fields.get("Gym Name")) or "your gym"
            send_whatsapp = (
                whatsapp_service.send_pickup_reminder if is_reminder else whatsapp_service.send_pickup_confirm_request
            )

            outcome = await send_with_fallback(
                phone,
                email,
                lambda: send_whatsapp(phone, first_name, bag_number, gym_name),
                lambda: send_pickup_confirm_email(email, first_name, bag_number, gym_name, is_reminder=is_reminder),
                context=f"Pickup {'reminder' if is_reminder else 'confirmation'} for bag {bag_number}",
            )
            if outcome["sent"]:
                await drops_repo.update(drop["id"], {flag: True})
                results[counter] += 1
                if outcome["email_sent"]:
                    results["viaEmail"] += 1
            else:
                results["errors"].append({"dropId": drop["id"], "error": "Both WhatsApp and email failed"})
        except Exception as e:
            logger.error(f"❌ Pickup confirmation failed for drop {drop['id']}: {e}")
            results["errors"].append({"dropId": drop["id"], "error": str(e)})

    logger.info(
        f"📊 Pickup confirm: {results['confirmationsSent']} confirmations, "
        f"{results['remindersSent']} reminders ({results['viaEmail']} via email)"
    )
    return results


# ============================================================================
# ISSUE DETECTION
# ============================================================================


async def issue_detection(airtable: AirtableClient, now: Optional[datetime] = None) -> dict:
    """Open tickets for drops stuck in a status and alert ops"""
    now = now or utc_now()
    drops_repo = DropRepository(airtable)
    members_repo = MemberRepository(airtable)
    support = SupportService(airtable)
    results = {"stuckDropsFound": 0, "issuesCreated": 0, "alertsSent": 0, "errors": []}

    statuses = ", ".join(f"{{Status}} = '{status}'" for status, *_ in STUCK_DROP_RULES)
    drops = await drops_repo.list_by_formula(f"OR({statuses})")

    for drop in drops:
        fields = drop["fields"]
        if fields.get("Has Open Issue"):
            continue

        status = fields.get("Status")
        since = fields.get("Ready Date") if status == DROP_READY else None
        hours = hours_since(since or fields.get("Last Modified") or fields.get("Drop Date"), now)
        classification = classify_stuck_drop(status, hours)
        if classification is None:
            continue

        issue_type, priority = classification
        hours = round(hours)
        bag_number = fields.get("Bag Number")
        results["stuckDropsFound"] += 1

        try:
            member_id = _first(fields.get("Member"))
            member_name, member_phone = "Unknown", ""
            if member_id:
                member = await members_repo.get_by_id(member_id)
                if member:
                    member_name = member["fields"].get("First Name") or "Unknown"
                    member_phone = member["fields"].get("Phone") or ""

            description = (
                f'Bag {bag_number} stuck in "{status}" for {hours} hours.\n'
                f"Gym: {_first(fields.get('Gym Name')) or 'Unknown'}\n"
                f"Customer: {member_name}\n"
                f"Phone: {member_phone}\n"
                f"Auto-detected by system at {to_iso(now)}."
            )
            await support.create_system_issue(issue_type, description, priority, member_id, drop["id"])
            await drops_repo.update(drop["id"], {"Has Open Issue": True})
            results["issuesCreated"] += 1
            logger.info(f"🎫 Created {issue_type} ticket ({priority}) for bag {bag_number}")

            try:
                await send_stuck_bag_alert_email(bag_number, status, hours, priority, member_name)
                results["alertsSent"] += 1
            except Exception as e:
                logger.error(f"❌ Stuck bag alert failed for bag {bag_number}: {e}")
        except Exception as e:
            logger.error(f"❌ Issue detection failed for drop {drop['id']}: {e}")
            results["errors"].append({"dropId": drop["id"], "error": str(e)})

    logger.info(
        f"📊 Issue detection: {results['stuckDropsFound']} stuck, {results['issuesCreated']} tickets created"
    )
    return results
