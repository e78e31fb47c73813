"""Bag service - Business logic for bag inventory"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException

from ...airtable import AirtableClient, get_airtable
from ...constants import BAG_AVAILABLE, BAG_DAMAGED, BAG_ISSUED, BAG_IN_USE, BAG_UNRETURNED
from ...services.audit_service import log_bag_action
from ...shared.dates import to_iso, utc_now
from ...shared.validators import normalize_bag_number
from .repository import BagRepository
from .schemas import BAG_ACTIONS, BagValidation

logger = logging.getLogger(__name__)


class BagService:
    """Service for bag lifecycle operations"""

    def __init__(self, airtable: AirtableClient):
        self.airtable = airtable
        self.repo = BagRepository(airtable)

    async def validate_bag(self, raw_bag_number: Optional[str]) -> BagValidation:
        """Check a member-entered bag number is well formed, known and free"""
        bag_number = normalize_bag_number(raw_bag_number)
        if not bag_number:
            return BagValidation(
                valid=False,
                error="INVALID_FORMAT",
                message="Bag number should look like B042 or 042",
            )

        bag = await self.repo.get_by_number(bag_number)
        if not bag:
            return BagValidation(
                valid=False,
                bagNumber=bag_number,
                error="NOT_FOUND",
                message=f"Bag {bag_number} doesn't exist in our system",
            )

        if bag["fields"].get("Status") != BAG_AVAILABLE:
            return BagValidation(
                valid=False,
                bagNumber=bag_number,
                bagId=bag["id"],
                error="NOT_AVAILABLE",
                message=f"Bag {bag_number} is already in use",
            )

        return BagValidation(valid=True, bagNumber=bag_number, bagId=bag["id"])

    async def mark_in_use(self, bag_id: str, drop_id: str) -> dict:
        return await self.repo.update(bag_id, {"Status": BAG_IN_USE, "Current Drop": [drop_id]})

    async def mark_available(self, bag_id: str) -> dict:
        return await self.repo.update(bag_id, {"Status": BAG_AVAILABLE, "Current Drop": []})

    async def list_bags(self, status: Optional[str] = None) -> list[dict]:
        bags = await self.repo.list_bags(status)
        return [
            {
                "id": bag["id"],
                "bagNumber": bag["fields"].get("Bag Number"),
                "status": bag["fields"].get("Status"),
                "condition": bag["fields"].get("Condition"),
                "memberId": (bag["fields"].get("Member") or [None])[0],
                "issuedDate": bag["fields"].get("Issued Date"),
                "returnedDate": bag["fields"].get("Returned Date"),
            }
            for bag in bags
        ]

    async def perform_action(
        self,
        bag_id: str,
        action: str,
        member_id: Optional[str] = None,
        condition: Optional[str] = None,
    ) -> dict:
        """Apply an ops bag action and write it to the audit log"""
        if action not in BAG_ACTIONS:
            raise HTTPException(status_code=400, detail="Invalid action")

        now = to_iso(utc_now())

        if action == "issue":
            if not member_id:
                raise HTTPException(status_code=400, detail="Member ID required")
            fields = {"Status": BAG_ISSUED, "Member": [member_id], "Issued Date": now}
            audit_details = {"memberId": member_id}
        elif action == "return":
            fields = {"Status": BAG_AVAILABLE, "Member": [], "Returned Date": now}
            audit_details = {}
        elif action == "mark_unreturned":
            fields = {"Status": BAG_UNRETURNED}
            audit_details = {}
        else:
            if not condition:
                raise HTTPException(status_code=400, detail="Condition required")
            fields = {"Condition": condition}
            if condition == BAG_DAMAGED:
                fields["Status"] = BAG_DAMAGED
            audit_details = {"condition": condition}

        try:
            result = await self.repo.update(bag_id, fields)
        except Exception as e:
            logger.error(f"❌ Bag action {action} failed for {bag_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to update bag") from e

        await log_bag_action(self.airtable, bag_id, action, audit_details)
        logger.info(f"👜 Bag {bag_id}: {action}")
        return result


def get_bag_service(airtable: AirtableClient = Depends(get_airtable)) -> BagService:
    """Dependency injection for BagService"""
    return BagService(airtable)
