"""Subscription service - Business logic for checkout and subscription management"""

import logging
from datetime import timedelta
from typing import Optional

import stripe
from fastapi import Depends, HTTPException

from ...airtable import AirtableClient, get_airtable
from ...config import BASE_URL
from ...constants import MEMBER_ACTIVE, MEMBER_CANCELLED, MEMBER_PAUSED
from ...email_service import send_cancellation_email, send_pause_confirmation_email
from ...services import whatsapp_service
from ...services.audit_service import AuditAction, log_subscription_change
from ...shared.dates import format_long_date, to_iso, utc_now
from ...shared.validators import normalize_phone
from ..members.repository import GymRepository, MemberRepository
from .plans import get_plan
from .schemas import CancelRequest, ChangePlanRequest, CheckoutRequest
from .stripe_service import stripe_service, summarize_subscription

logger = logging.getLogger(__name__)


class SubscriptionService:
    """Service for checkout and member subscription management"""

    def __init__(self, airtable: AirtableClient):
        self.airtable = airtable
        self.members = MemberRepository(airtable)
        self.gyms = GymRepository(airtable)

    def _require_stripe(self) -> None:
        if not stripe_service.is_available():
            raise HTTPException(status_code=503, detail="Billing service temporarily unavailable")

    @staticmethod
    def _require_subscription(member: dict) -> str:
        subscription_id = member["fields"].get("Stripe Subscription ID")
        if not subscription_id:
            raise HTTPException(status_code=400, detail="No subscription found")
        return subscription_id

    # ========================================================================
    # CHECKOUT
    # ========================================================================

    async def create_checkout_session(self, request: CheckoutRequest) -> dict:
        """Create a Stripe checkout session for a new member"""
        if not request.planId or not request.email or not request.phone:
            raise HTTPException(status_code=400, detail="Missing required fields")

        try:
            phone = normalize_phone(request.phone)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        plan = get_plan(request.planId)
        if not plan:
            raise HTTPException(status_code=400, detail="Invalid plan")

        gym = None
        if request.gymCode:
            gym = await self.gyms.get_by_code(request.gymCode)
            if not gym:
                raise HTTPException(status_code=400, detail="Invalid gym code")

        self._require_stripe()
        if not plan["stripePriceId"]:
            logger.error(f"❌ No Stripe price configured for plan {plan['name']}")
            raise HTTPException(status_code=503, detail="Billing service temporarily unavailable")

        metadata = {
            "planId": plan["id"],
            "gymCode": (request.gymCode or "").upper(),
            "gymId": gym["id"] if gym else "",
            "firstName": request.firstName or "",
            "lastName": request.lastName or "",
            "phone": phone,
        }

        try:
            session = stripe_service.create_checkout_session(
                price_id=plan["stripePriceId"],
                mode="subscription" if plan["isSubscription"] else "payment",
                customer_email=request.email,
                success_url=f"{BASE_URL}/success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{BASE_URL}/join?plan={plan['id']}",
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to create checkout session: {e}")
            raise HTTPException(status_code=500, detail="Failed to create checkout session") from e

        return {"url": session["url"], "sessionId": session["id"]}

    async def get_checkout_result(self, session_id: str) -> dict:
        """Summarize a completed checkout for the success page"""
        self._require_stripe()
        try:
            session = stripe_service.retrieve_checkout_session(session_id)
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to retrieve checkout session {session_id}: {e}")
            raise HTTPException(status_code=404, detail="Checkout session not found") from e

        metadata = session.get("metadata") or {}
        plan = get_plan(metadata.get("planId"))
        customer_details = session.get("customer_details") or {}
        return {
            "email": customer_details.get("email") or session.get("customer_email"),
            "firstName": metadata.get("firstName"),
            "plan": plan["name"] if plan else None,
            "status": session.get("status"),
            "paymentStatus": session.get("payment_status"),
        }

    # ========================================================================
    # SUBSCRIPTION MANAGEMENT
    # ========================================================================

    async def get_subscription(self, member: dict) -> dict:
        fields = member["fields"]
        subscription_id = fields.get("Stripe Subscription ID")
        if not subscription_id:
            return {"status": "no_subscription", "plan": fields.get("Subscription Tier") or "None"}

        self._require_stripe()
        try:
            subscription = stripe_service.get_subscription(subscription_id)
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to fetch subscription {subscription_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to get subscription") from e

        return {"plan": fields.get("Subscription Tier"), **summarize_subscription(subscription)}

    async def pause(self, member: dict, days: int) -> dict:
        """Pause billing for up to 30 days"""
        subscription_id = self._require_subscription(member)
        self._require_stripe()

        resume_at = utc_now() + timedelta(days=days)
        try:
            stripe_service.pause_subscription(subscription_id, int(resume_at.timestamp()))
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to pause subscription {subscription_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to pause subscription") from e

        await self.members.update(
            member["id"], {"Status": MEMBER_PAUSED, "Pause Reason": f"Member paused for {days} days"}
        )
        await log_subscription_change(
            self.airtable,
            member["id"],
            AuditAction.SUBSCRIPTION_PAUSED,
            {"days": days, "resumesAt": to_iso(resume_at)},
        )

        resume_label = format_long_date(resume_at)
        fields = member["fields"]
        await self._notify(
            whatsapp_service.send_pause_confirmed(fields.get("Phone"), resume_label) if fields.get("Phone") else None,
            send_pause_confirmation_email(fields["Email"], fields.get("First Name") or "there", resume_label)
            if fields.get("Email")
            else None,
        )

        return {
            "success": True,
            "message": f"Subscription paused until {resume_label}",
            "resumeDate": to_iso(resume_at),
        }

    async def resume(self, member: dict) -> dict:
        subscription_id = self._require_subscription(member)
        self._require_stripe()

        try:
            stripe_service.resume_subscription(subscription_id)
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to resume subscription {subscription_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to resume subscription") from e

        await self.members.update(member["id"], {"Status": MEMBER_ACTIVE, "Pause Reason": ""})
        await log_subscription_change(self.airtable, member["id"], AuditAction.SUBSCRIPTION_RESUMED)

        phone = member["fields"].get("Phone")
        await self._notify(whatsapp_service.send_resume_confirmed(phone) if phone else None)

        return {"success": True, "message": "Subscription resumed successfully"}

    async def cancel(self, member: dict, request: CancelRequest) -> dict:
        """Cancel at period end, or immediately when requested"""
        subscription_id = self._require_subscription(member)
        self._require_stripe()

        try:
            subscription = stripe_service.cancel_subscription(subscription_id, immediate=request.immediate)
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to cancel subscription {subscription_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to cancel subscription") from e

        changes = {
            "Cancellation Reason": request.reason or "Not specified",
            "Cancellation Date": to_iso(utc_now()),
            "Cancel At Period End": not request.immediate,
        }
        if request.immediate:
            changes["Status"] = MEMBER_CANCELLED
        await self.members.update(member["id"], changes)
        await log_subscription_change(
            self.airtable,
            member["id"],
            AuditAction.SUBSCRIPTION_CANCELLED,
            {"reason": request.reason, "immediate": request.immediate},
        )

        fields = member["fields"]
        await self._notify(
            whatsapp_service.send_cancel_confirmation(fields["Phone"]) if fields.get("Phone") else None,
            send_cancellation_email(fields["Email"], fields.get("First Name") or "there", request.immediate)
            if fields.get("Email")
            else None,
        )

        end_date = summarize_subscription(subscription).get("currentPeriodEnd") if subscription else None
        return {
            "success": True,
            "message": "Subscription cancelled" if request.immediate else "Subscription will end at the end of the billing period",
            "endDate": end_date,
            "dropsRemaining": fields.get("Drops Remaining") or 0,
        }

    async def change_plan(self, member: dict, request: ChangePlanRequest) -> dict:
        """Move between subscription plans with prorations"""
        subscription_id = self._require_subscription(member)
        new_plan = get_plan(request.newPlan)
        if not new_plan or not new_plan["isSubscription"]:
            raise HTTPException(status_code=400, detail="Invalid plan")

        fields = member["fields"]
        current_plan = get_plan(fields.get("Subscription Tier"))
        if current_plan and current_plan["id"] == new_plan["id"]:
            raise HTTPException(status_code=400, detail="You are already on this plan")

        self._require_stripe()
        if not new_plan["stripePriceId"]:
            raise HTTPException(status_code=500, detail="Price not configured")

        try:
            stripe_service.change_price(subscription_id, new_plan["stripePriceId"])
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to change plan for {subscription_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to change plan") from e

        # Allowance difference applies to the current month straight away
        old_allowance = current_plan["drops"] if current_plan else 0
        drops_remaining = max(0, (fields.get("Drops Remaining") or 0) + new_plan["drops"] - old_allowance)
        await self.members.update(
            member["id"], {"Subscription Tier": new_plan["name"], "Drops Remaining": drops_remaining}
        )
        await log_subscription_change(
            self.airtable,
            member["id"],
            AuditAction.SUBSCRIPTION_PLAN_CHANGED,
            {"from": fields.get("Subscription Tier"), "to": new_plan["name"]},
        )

        if fields.get("Phone"):
            await self._notify(
                whatsapp_service.send_whatsapp(
                    fields["Phone"],
                    f"Your FLEX plan has been changed to {new_plan['name']}. ✅\n\n"
                    f"You now have {new_plan['drops']} drops per month.",
                )
            )

        return {
            "success": True,
            "plan": new_plan["name"],
            "dropsRemaining": drops_remaining,
            "message": f"Plan changed to {new_plan['name']}",
        }

    async def create_billing_portal(self, member: dict) -> dict:
        customer_id = member["fields"].get("Stripe Customer ID")
        if not customer_id:
            raise HTTPException(status_code=400, detail="No billing account found")

        self._require_stripe()
        try:
            session = stripe_service.create_billing_portal_session(customer_id, f"{BASE_URL}/portal/dashboard")
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to create billing portal session for {member['id']}: {e}")
            raise HTTPException(status_code=500, detail="Failed to open billing portal") from e
        return {"url": session["url"]}

    @staticmethod
    async def _notify(*sends: Optional[object]) -> None:
        """Await member notifications, logging failures instead of raising"""
        for send in sends:
            if send is None:
                continue
            try:
                result = await send
                if isinstance(result, tuple) and not result[0]:
                    logger.warning(f"⚠️ Subscription notification failed: {result[1]}")
            except Exception as e:
                logger.warning(f"⚠️ Subscription notification failed: {e}")


def get_subscription_service(airtable: AirtableClient = Depends(get_airtable)) -> SubscriptionService:
    """Dependency injection for SubscriptionService"""
    return SubscriptionService(airtable)
