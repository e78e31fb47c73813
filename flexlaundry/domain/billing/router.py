"""Billing router - Checkout endpoints for new members"""

import logging

from fastapi import APIRouter, Depends, Query

from .schemas import CheckoutRequest
from .subscription_service import SubscriptionService, get_subscription_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/checkout", tags=["Checkout"])


@router.post("")
async def create_checkout_session(
    body: CheckoutRequest,
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Create a Stripe checkout session and return its hosted URL"""
    return await service.create_checkout_session(body)


@router.get("/success")
async def checkout_success(
    session_id: str = Query(..., min_length=1),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Look up a finished checkout for the confirmation page"""
    return await service.get_checkout_result(session_id)
