"""Plan catalog - single source of truth for plan pricing and drop allowances"""

from typing import Optional

from ...config import STRIPE_PRICE_ESSENTIAL, STRIPE_PRICE_ONEOFF, STRIPE_PRICE_UNLIMITED

PLANS = {
    "One-Off": {
        "id": "oneoff",
        "name": "One-Off",
        "price": 5,
        "drops": 1,
        "interval": None,
        "description": "Try it once",
        "shortDescription": "Single drop",
        "features": ["1 bag of gym clothes", "48-hour turnaround", "No commitment"],
        "stripePriceId": STRIPE_PRICE_ONEOFF,
        "isSubscription": False,
        "isPopular": False,
        "showOnPricing": True,
    },
    "Essential": {
        "id": "essential",
        "name": "Essential",
        "price": 35,
        "drops": 10,
        "interval": "month",
        "description": "10 drops per month",
        "shortDescription": "£3.50 per drop",
        "features": ["10 drops per month", "48-hour turnaround", "WhatsApp tracking", "Cancel anytime"],
        "stripePriceId": STRIPE_PRICE_ESSENTIAL,
        "isSubscription": True,
        "isPopular": True,
        "showOnPricing": True,
    },
    # Soft cap at 16, hidden from the pricing page
    "Unlimited": {
        "id": "unlimited",
        "name": "Unlimited",
        "price": 48,
        "drops": 16,
        "interval": "month",
        "description": "Up to 16 drops per month",
        "shortDescription": "£3.00 per drop",
        "features": [
            "Up to 16 drops per month",
            "48-hour turnaround",
            "WhatsApp tracking",
            "Priority support",
            "Cancel anytime",
        ],
        "stripePriceId": STRIPE_PRICE_UNLIMITED,
        "isSubscription": True,
        "isPopular": False,
        "showOnPricing": False,
    },
}


def get_plan(plan_name: Optional[str]) -> Optional[dict]:
    """Look up a plan by display name ("Essential") or id ("essential")"""
    if not plan_name:
        return None
    if plan_name in PLANS:
        return PLANS[plan_name]
    return next((plan for plan in PLANS.values() if plan["id"] == plan_name.lower()), None)


def get_plan_by_stripe_price(price_id: Optional[str]) -> Optional[dict]:
    if not price_id:
        return None
    return next((plan for plan in PLANS.values() if plan["stripePriceId"] == price_id), None)


def get_drops_for_plan(plan_name: Optional[str]) -> int:
    plan = get_plan(plan_name)
    return plan["drops"] if plan else 0


def get_public_plans() -> list[dict]:
    return [plan for plan in PLANS.values() if plan["showOnPricing"]]
