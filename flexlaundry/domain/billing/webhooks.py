"""
Stripe Webhook Routes
Keeps member records in step with Stripe checkout, subscription and invoice events
"""

import logging
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request

from ...airtable import AirtableClient, get_airtable
from ...config import BASE_URL
from ...constants import MEMBER_ACTIVE, MEMBER_CANCELLED, MEMBER_PAST_DUE, MEMBER_PAUSED
from ...email_service import send_payment_failed_email, send_welcome_email
from ...services import whatsapp_service
from ...services.audit_service import (
    AuditAction,
    log_member_created,
    log_payment_event,
    log_subscription_change,
)
from ...shared.dates import to_iso, utc_now
from ...shared.validators import normalize_phone
from ..members.repository import GymRepository, MemberRepository
from .plans import get_plan, get_plan_by_stripe_price
from .stripe_service import stripe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


@router.post("/stripe")
async def handle_stripe_webhook(request: Request, airtable: AirtableClient = Depends(get_airtable)):
    """
    Handle Stripe webhook events
    Supported events: checkout.session.completed, customer.subscription.updated,
    customer.subscription.deleted, invoice.payment_succeeded, invoice.payment_failed
    """
    payload = await request.body()
    try:
        event = stripe_service.construct_event(payload, request.headers.get("stripe-signature"))
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.error(f"❌ Stripe webhook signature verification failed: {e}")
        raise HTTPException(status_code=400, detail="Invalid signature") from e

    event_type = event["type"]
    data = event["data"]["object"]
    logger.info(f"🔔 Stripe webhook: {event_type}")

    try:
        if event_type == "checkout.session.completed":
            await handle_checkout_completed(airtable, data)
        elif event_type == "customer.subscription.updated":
            await handle_subscription_updated(airtable, data)
        elif event_type == "customer.subscription.deleted":
            await handle_subscription_deleted(airtable, data)
        elif event_type == "invoice.payment_succeeded":
            await handle_payment_succeeded(airtable, data)
        elif event_type == "invoice.payment_failed":
            await handle_payment_failed(airtable, data)
        else:
            logger.debug(f"Unhandled event type: {event_type}")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Stripe webhook processing error for {event_type}: {e}")
        raise HTTPException(status_code=500, detail="Webhook processing failed") from e

    return {"received": True}


async def _find_member(members: MemberRepository, obj: dict) -> Optional[dict]:
    """Locate the member behind a subscription or invoice object"""
    subscription_id = obj.get("subscription") if obj.get("object") == "invoice" else obj.get("id")
    if subscription_id and isinstance(subscription_id, str):
        member = await members.get_by_subscription(subscription_id)
        if member:
            return member
    customer_id = obj.get("customer")
    if customer_id and isinstance(customer_id, str):
        return await members.get_by_stripe_customer(customer_id)
    return None


# ============================================================================
# EVENT HANDLERS
# ============================================================================


async def handle_checkout_completed(airtable: AirtableClient, session: dict) -> Optional[dict]:
    """Create (or activate) the member who just paid"""
    metadata = session.get("metadata") or {}
    plan = get_plan(metadata.get("planId"))
    if not plan:
        logger.error(f"❌ Checkout {session.get('id')} has no valid plan in metadata")
        return None

    members = MemberRepository(airtable)
    gyms = GymRepository(airtable)

    customer_id = session.get("customer")
    email = (session.get("customer_details") or {}).get("email") or session.get("customer_email")
    if not email and customer_id:
        customer = stripe_service.get_customer(customer_id)
        email = customer.get("email")

    phone = normalize_phone(metadata["phone"]) if metadata.get("phone") else ""
    first_name = metadata.get("firstName") or ""

    gym = None
    if metadata.get("gymId"):
        gym = await gyms.get_by_id(metadata["gymId"])
    elif metadata.get("gymCode"):
        gym = await gyms.get_by_code(metadata["gymCode"])
    gym_name = gym["fields"].get("Name", "your gym") if gym else "your gym"

    fields = {
        "First Name": first_name,
        "Last Name": metadata.get("lastName") or "",
        "Email": email or "",
        "Phone": phone,
        "Subscription Tier": plan["name"],
        "Status": MEMBER_ACTIVE,
        "Drops Remaining": plan["drops"],
        "Stripe Customer ID": customer_id or "",
        "Stripe Subscription ID": session.get("subscription") or "",
    }
    if gym:
        fields["Gym"] = [gym["id"]]

    # Phone verification during signup may already have created a Pending row
    existing = await members.get_by_phone(phone) if phone else None
    if existing:
        member = await members.update(existing["id"], fields)
        logger.info(f"✅ Member activated from checkout: {existing['id']}")
    else:
        fields["Total Drops"] = 0
        fields["Signup Date"] = to_iso(utc_now())
        member = await members.create(fields)
        logger.info(f"✅ Member created from checkout: {member['id']}")

    await log_member_created(
        airtable, member["id"], {"plan": plan["name"], "gym": gym_name, "checkoutSession": session.get("id")}
    )
    if plan["isSubscription"]:
        await log_subscription_change(
            airtable,
            member["id"],
            AuditAction.SUBSCRIPTION_CREATED,
            {"plan": plan["name"], "subscriptionId": session.get("subscription")},
            actor_type="system",
        )

    if phone:
        sent, error = await whatsapp_service.send_welcome(phone, first_name or "there", plan["name"], gym_name)
        if sent:
            logger.info(f"📱 Welcome WhatsApp sent to {phone}")
        else:
            logger.warning(f"⚠️ Welcome WhatsApp failed for {phone}: {error}")

    if email:
        try:
            await send_welcome_email(email, first_name or "there", plan["name"], gym_name)
            logger.info(f"📧 Welcome email sent to {email}")
        except Exception as e:
            logger.warning(f"⚠️ Welcome email failed for {email}: {e}")

    return member


def map_subscription_status(subscription: dict) -> str:
    if subscription.get("pause_collection"):
        return MEMBER_PAUSED
    status = subscription.get("status")
    if status == "past_due":
        return MEMBER_PAST_DUE
    if status == "canceled":
        return MEMBER_CANCELLED
    return MEMBER_ACTIVE


async def handle_subscription_updated(airtable: AirtableClient, subscription: dict) -> None:
    members = MemberRepository(airtable)
    member = await _find_member(members, subscription)
    if not member:
        logger.warning(f"⚠️ No member found for subscription {subscription.get('id')}")
        return

    status = map_subscription_status(subscription)
    changes = {"Status": status, "Cancel At Period End": bool(subscription.get("cancel_at_period_end"))}

    items = (subscription.get("items") or {}).get("data") or []
    if items:
        plan = get_plan_by_stripe_price((items[0].get("price") or {}).get("id"))
        if plan:
            changes["Subscription Tier"] = plan["name"]

    await members.update(member["id"], changes)
    logger.info(f"✅ Member {member['id']} status updated to {status}")


async def handle_subscription_deleted(airtable: AirtableClient, subscription: dict) -> None:
    members = MemberRepository(airtable)
    member = await _find_member(members, subscription)
    if not member:
        return

    await members.update(
        member["id"], {"Status": MEMBER_CANCELLED, "Cancellation Date": to_iso(utc_now())}
    )
    await log_subscription_change(
        airtable,
        member["id"],
        AuditAction.SUBSCRIPTION_CANCELLED,
        {"subscriptionId": subscription.get("id"), "source": "stripe"},
        actor_type="system",
    )
    logger.info(f"✅ Member {member['id']} cancelled")


async def handle_payment_succeeded(airtable: AirtableClient, invoice: dict) -> None:
    """Renewal invoices reset the monthly drop allowance"""
    if invoice.get("billing_reason") != "subscription_cycle":
        return

    members = MemberRepository(airtable)
    member = await _find_member(members, invoice)
    if not member:
        return

    plan = get_plan(member["fields"].get("Subscription Tier"))
    await members.update(
        member["id"],
        {
            "Drops Remaining": plan["drops"] if plan else 0,
            "Status": MEMBER_ACTIVE,
            "Payment Failed Date": None,
            "Day 3 Reminder Sent": False,
            "Day 7 Reminder Sent": False,
        },
    )
    await log_payment_event(
        airtable, member["id"], True, {"invoiceId": invoice.get("id"), "amount": invoice.get("amount_paid")}
    )
    logger.info(f"✅ Drops reset for member {member['id']}")


async def handle_payment_failed(airtable: AirtableClient, invoice: dict) -> None:
    members = MemberRepository(airtable)
    member = await _find_member(members, invoice)
    if not member:
        return

    fields = member["fields"]
    changes = {"Status": MEMBER_PAST_DUE}
    # Stripe retries fire this event again; the retry schedule counts from the first failure
    if not fields.get("Payment Failed Date"):
        changes.update(
            {"Payment Failed Date": to_iso(utc_now()), "Day 3 Reminder Sent": False, "Day 7 Reminder Sent": False}
        )
    await members.update(member["id"], changes)
    await log_payment_event(
        airtable, member["id"], False, {"invoiceId": invoice.get("id"), "attempt": invoice.get("attempt_count")}
    )

    if fields.get("Email"):
        try:
            await send_payment_failed_email(
                fields["Email"],
                fields.get("First Name") or "there",
                invoice.get("hosted_invoice_url") or f"{BASE_URL}/portal/billing",
            )
        except Exception as e:
            logger.warning(f"⚠️ Payment failed email not sent to {fields['Email']}: {e}")
    logger.warning(f"⚠️ Payment failed for member {member['id']}")
