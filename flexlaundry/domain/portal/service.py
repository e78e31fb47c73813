"""Portal service - Member self-service views and actions"""

import logging

import stripe
from fastapi import Depends, HTTPException

from ...airtable import AirtableClient, get_airtable
from ...constants import TICKET_CLOSED, TICKET_RESOLVED
from ...services import whatsapp_service
from ...services.audit_service import AuditAction, log_audit_event
from ..billing.plans import get_drops_for_plan
from ..billing.stripe_service import stripe_service, summarize_subscription
from ..drops.service import DropService, serialize_drop
from ..members.repository import GymRepository, MemberRepository
from ..members.schemas import member_summary
from ..support.service import SupportService

logger = logging.getLogger(__name__)


def serialize_gym(record: dict) -> dict:
    fields = record.get("fields", {})
    return {
        "id": record["id"],
        "name": fields.get("Name"),
        "code": fields.get("Code"),
        "address": fields.get("Address"),
        "area": fields.get("Area"),
        "collectionDays": fields.get("Collection Days"),
    }


class PortalService:
    """Service behind the member portal"""

    def __init__(self, airtable: AirtableClient):
        self.airtable = airtable
        self.members = MemberRepository(airtable)
        self.gyms = GymRepository(airtable)
        self.drops = DropService(airtable)
        self.support = SupportService(airtable)

    async def get_me(self, member: dict) -> dict:
        """Profile, allowance, active drops, open tickets and subscription details"""
        summary = member_summary(member)
        drops_allowed = get_drops_for_plan(summary.plan)

        try:
            active_drops = await self.drops.get_active_for_member(member["id"])
            tickets = await self.support.list_member_tickets(member["id"])
        except Exception as e:
            logger.error(f"❌ Failed to load portal data for {member['id']}: {e}")
            raise HTTPException(status_code=500, detail="Failed to get member data") from e

        subscription = None
        if summary.stripeSubscriptionId and stripe_service.is_available():
            try:
                subscription = summarize_subscription(stripe_service.get_subscription(summary.stripeSubscriptionId))
            except stripe.StripeError as e:
                logger.warning(f"⚠️ Failed to get Stripe subscription for {member['id']}: {e}")

        return {
            **summary.model_dump(),
            "dropsAllowed": drops_allowed,
            "dropsUsed": max(0, drops_allowed - summary.dropsRemaining),
            "activeDrops": active_drops,
            "openTickets": [t for t in tickets if t["status"] not in (TICKET_RESOLVED, TICKET_CLOSED)],
            "subscription": subscription,
        }

    async def get_gyms(self, member: dict) -> dict:
        fields = member["fields"]
        gyms = await self.gyms.list_active()
        gym_ids = fields.get("Gym") or []
        gym_names = fields.get("Gym Name") or []
        return {
            "currentGym": {
                "id": gym_ids[0] if gym_ids else None,
                "name": gym_names[0] if isinstance(gym_names, list) and gym_names else gym_names or None,
            },
            "availableGyms": [serialize_gym(g) for g in gyms],
        }

    async def change_gym(self, member: dict, gym_id: str) -> dict:
        if not gym_id:
            raise HTTPException(status_code=400, detail="Gym ID is required")

        gym = await self.gyms.get_by_id(gym_id)
        if not gym or gym["fields"].get("Is Active") is False:
            raise HTTPException(status_code=400, detail="Invalid gym")

        await self.members.update(member["id"], {"Gym": [gym_id]})
        await log_audit_event(
            self.airtable,
            AuditAction.MEMBER_UPDATED,
            member["id"],
            actor_type="member",
            target_type="member",
            target_id=member["id"],
            details={"gym": gym["fields"].get("Name")},
        )

        gym_name = gym["fields"].get("Name", "")
        phone = member["fields"].get("Phone")
        if phone:
            sent, error = await whatsapp_service.send_gym_changed(phone, gym_name)
            if not sent:
                logger.warning(f"⚠️ Gym change WhatsApp failed for {member['id']}: {error}")

        return {"success": True, "gym": serialize_gym(gym)}

    async def submit_drop(self, member: dict, bag_number: str) -> dict:
        return await self.drops.submit_member_drop(member, bag_number)

    async def list_drops(self, member: dict) -> list[dict]:
        records = await self.drops.repo.get_recent_by_member(member["id"], limit=20)
        return [serialize_drop(record) for record in records]


def get_portal_service(airtable: AirtableClient = Depends(get_airtable)) -> PortalService:
    """Dependency injection for PortalService"""
    return PortalService(airtable)
