"""
Drop status callback
Called by the Airtable automation when a drop's status changes. Only Ready
notifies the member.
"""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..airtable import AirtableClient, get_airtable
from ..constants import DROP_READY
from ..domain.drops.repository import DropRepository
from ..domain.members.repository import MemberRepository
from ..services.notification_service import notify_drop_ready
from ..shared.dates import format_weekday_evening, utc_now
from ..webhook_security import verify_cron_secret

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Automation"], dependencies=[Depends(verify_cron_secret)])

AVAILABILITY_HOURS = 48


class DropStatusNotification(BaseModel):
    dropId: Optional[str] = None
    status: Optional[str] = None
    memberId: Optional[str] = None
    bagNumber: Optional[str] = None


def _first(value):
    if isinstance(value, list):
        return value[0] if value else None
    return value


@router.post("/notify-drop-status")
async def notify_drop_status(body: DropStatusNotification, airtable: AirtableClient = Depends(get_airtable)):
    if not body.dropId or not body.status:
        raise HTTPException(status_code=400, detail="dropId and status are required")

    if body.status != DROP_READY:
        logger.info(f"Drop {body.dropId} moved to {body.status}, no notification needed")
        return {"success": True, "message": "No notification needed for this status"}

    bag_number = body.bagNumber
    member_id = body.memberId
    gym_name = None

    if not bag_number or not member_id:
        drop = await DropRepository(airtable).get(body.dropId)
        if not drop:
            raise HTTPException(status_code=404, detail="Drop not found")
        bag_number = bag_number or drop["fields"].get("Bag Number")
        member_id = member_id or _first(drop["fields"].get("Member"))
        gym_name = _first(drop["fields"].get("Gym Name"))

    member = await MemberRepository(airtable).get_by_id(member_id) if member_id else None
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")

    fields = member["fields"]
    notification = await notify_drop_ready(
        first_name=fields.get("First Name", ""),
        phone=fields.get("Phone"),
        email=fields.get("Email"),
        bag_number=bag_number or "",
        gym_name=gym_name or _first(fields.get("Gym Name")) or "your gym",
        available_until=format_weekday_evening(utc_now() + timedelta(hours=AVAILABILITY_HOURS)),
    )

    if not notification["sent"]:
        logger.error(f"❌ Ready notification for bag {bag_number} not delivered: {notification['errors']}")
        raise HTTPException(status_code=500, detail="Failed to send notification")

    logger.info(f"✅ Ready notification sent for bag {bag_number} via {notification['channel']}")
    return {"success": True, "message": "Notification sent", "notification": notification}
