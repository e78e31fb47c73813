"""Portal router - Member self-service endpoints"""

import logging

from fastapi import APIRouter, Depends

from ...auth import get_current_member
from ..billing.schemas import CancelRequest, ChangePlanRequest, PauseRequest
from ..billing.subscription_service import SubscriptionService, get_subscription_service
from ..drops.schemas import MemberDropRequest
from ..support.schemas import TicketCreate
from .schemas import GymChangeRequest
from .service import PortalService, get_portal_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/portal", tags=["Portal"])


# ============================================================================
# PROFILE & DROPS
# ============================================================================


@router.get("/me")
async def get_me(
    member: dict = Depends(get_current_member),
    service: PortalService = Depends(get_portal_service),
):
    """Current member with allowance, active drops, open tickets and subscription"""
    return await service.get_me(member)


@router.post("/drop")
async def submit_drop(
    body: MemberDropRequest,
    member: dict = Depends(get_current_member),
    service: PortalService = Depends(get_portal_service),
):
    return await service.submit_drop(member, body.bagNumber)


@router.get("/drops")
async def list_drops(
    member: dict = Depends(get_current_member),
    service: PortalService = Depends(get_portal_service),
):
    return {"drops": await service.list_drops(member)}


# ============================================================================
# GYM
# ============================================================================


@router.get("/gym")
async def get_gyms(
    member: dict = Depends(get_current_member),
    service: PortalService = Depends(get_portal_service),
):
    return await service.get_gyms(member)


@router.post("/gym")
async def change_gym(
    body: GymChangeRequest,
    member: dict = Depends(get_current_member),
    service: PortalService = Depends(get_portal_service),
):
    return await service.change_gym(member, body.gymId)


# ============================================================================
# SUPPORT TICKETS
# ============================================================================


@router.get("/tickets")
async def list_tickets(
    member: dict = Depends(get_current_member),
    service: PortalService = Depends(get_portal_service),
):
    return {"tickets": await service.support.list_member_tickets(member["id"])}


@router.post("/tickets")
async def create_ticket(
    body: TicketCreate,
    member: dict = Depends(get_current_member),
    service: PortalService = Depends(get_portal_service),
):
    ticket = await service.support.create_ticket(member, body)
    return {"success": True, "ticket": ticket}


# ============================================================================
# SUBSCRIPTION & BILLING
# ============================================================================


@router.post("/billing")
async def open_billing_portal(
    member: dict = Depends(get_current_member),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Stripe billing portal session for updating card details"""
    return await service.create_billing_portal(member)


@router.get("/subscription")
async def get_subscription(
    member: dict = Depends(get_current_member),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.get_subscription(member)


@router.post("/subscription/pause")
async def pause_subscription(
    body: PauseRequest,
    member: dict = Depends(get_current_member),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.pause(member, body.days)


@router.post("/subscription/resume")
async def resume_subscription(
    member: dict = Depends(get_current_member),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.resume(member)


@router.post("/subscription/cancel")
async def cancel_subscription(
    body: CancelRequest,
    member: dict = Depends(get_current_member),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.cancel(member, body)


@router.post("/subscription/change-plan")
async def change_plan(
    body: ChangePlanRequest,
    member: dict = Depends(get_current_member),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.change_plan(member, body)
