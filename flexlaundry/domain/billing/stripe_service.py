"""Stripe service - Integration with the Stripe API"""

import logging
from typing import Optional

import stripe

from ...config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET

logger = logging.getLogger(__name__)


class StripeService:
    """Service for Stripe API operations"""

    def __init__(self):
        self.api_key = STRIPE_SECRET_KEY
        if not self.api_key:
            logger.warning("STRIPE_SECRET_KEY not set; billing endpoints will fail until configured")
        else:
            stripe.api_key = self.api_key
            logger.info("Stripe client initialized")

    def is_available(self) -> bool:
        """Check if Stripe is configured"""
        return bool(self.api_key)

    def create_checkout_session(
        self,
        price_id: str,
        mode: str,
        customer_email: Optional[str],
        success_url: str,
        cancel_url: str,
        metadata: Optional[dict] = None,
    ):
        """Create a hosted checkout session for a plan"""
        params = {
            "mode": mode,
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata or {},
            "allow_promotion_codes": True,
        }
        if customer_email:
            params["customer_email"] = customer_email
        if mode == "subscription":
            params["subscription_data"] = {"metadata": metadata or {}}

        session = stripe.checkout.Session.create(**params)
        logger.info(f"✅ Stripe checkout session created: {session['id']}")
        return session

    def retrieve_checkout_session(self, session_id: str):
        return stripe.checkout.Session.retrieve(session_id, expand=["customer", "subscription"])

    def get_customer(self, customer_id: str):
        return stripe.Customer.retrieve(customer_id)

    def get_subscription(self, subscription_id: str):
        return stripe.Subscription.retrieve(subscription_id)

    def pause_subscription(self, subscription_id: str, resumes_at: Optional[int] = None):
        """Stop invoicing until resumes_at (unix seconds), or indefinitely"""
        pause_collection = {"behavior": "void"}
        if resumes_at:
            pause_collection["resumes_at"] = resumes_at
        logger.info(f"⏸️ Pausing Stripe subscription {subscription_id}")
        return stripe.Subscription.modify(subscription_id, pause_collection=pause_collection)

    def resume_subscription(self, subscription_id: str):
        logger.info(f"▶️ Resuming Stripe subscription {subscription_id}")
        # An empty string clears pause_collection
        return stripe.Subscription.modify(subscription_id, pause_collection="")

    def cancel_subscription(self, subscription_id: str, immediate: bool = False):
        if immediate:
            logger.info(f"🛑 Cancelling Stripe subscription {subscription_id} immediately")
            return stripe.Subscription.cancel(subscription_id)
        logger.info(f"🛑 Cancelling Stripe subscription {subscription_id} at period end")
        return stripe.Subscription.modify(subscription_id, cancel_at_period_end=True)

    def change_price(self, subscription_id: str, new_price_id: str):
        """Swap the subscription's price with prorations"""
        subscription = self.get_subscription(subscription_id)
        item = subscription["items"]["data"][0]
        return stripe.Subscription.modify(
            subscription_id,
            items=[{"id": item["id"], "price": new_price_id}],
            proration_behavior="create_prorations",
        )

    def create_billing_portal_session(self, customer_id: str, return_url: str):
        return stripe.billing_portal.Session.create(customer=customer_id, return_url=return_url)

    def construct_event(self, payload: bytes, sig_header: Optional[str]):
        """Verify a webhook payload. Raises stripe.SignatureVerificationError on mismatch."""
        return stripe.Webhook.construct_event(payload, sig_header, STRIPE_WEBHOOK_SECRET)


def summarize_subscription(subscription) -> dict:
    """Shape a Stripe subscription for the member portal"""
    items = subscription.get("items", {}).get("data", []) if subscription else []
    first_item = items[0] if items else {}
    pause = subscription.get("pause_collection") or {}
    return {
        "id": subscription.get("id"),
        "status": subscription.get("status"),
        "currentPeriodEnd": subscription.get("current_period_end") or first_item.get("current_period_end"),
        "cancelAtPeriodEnd": bool(subscription.get("cancel_at_period_end")),
        "isPaused": bool(pause),
        "resumesAt": pause.get("resumes_at") if pause else None,
        "priceId": (first_item.get("price") or {}).get("id"),
    }


stripe_service = StripeService()
