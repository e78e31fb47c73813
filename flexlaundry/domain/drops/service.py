"""Drop service - Business logic for the drop lifecycle"""

import json
import logging
from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException

from ...airtable import AirtableClient, get_airtable
from ...constants import (
    DROP_COLLECTED,
    DROP_DROPPED,
    DROP_READY,
    DROP_STATUSES,
    MEMBER_ACTIVE,
    OPERATIONS,
)
from ...services import whatsapp_service
from ...services.audit_service import AuditAction, log_audit_event, log_drop_status_change
from ...services.notification_service import notify_drop_ready
from ...shared.dates import format_short_weekday_date, format_weekday_date, to_iso, utc_now
from ...shared.validators import normalize_bag_number
from ..bags.service import BagService
from ..members.repository import MemberRepository
from .repository import DropRepository
from .schemas import SCAN_TYPE_STATUS

logger = logging.getLogger(__name__)

OPS_OPERATOR = "ops_dashboard"


def _first(value):
    if isinstance(value, list):
        return value[0] if value else None
    return value


def serialize_drop(drop: dict) -> dict:
    """Shape a drop record for API responses"""
    fields = drop.get("fields", {})
    return {
        "id": drop["id"],
        "bagNumber": fields.get("Bag Number"),
        "status": fields.get("Status"),
        "dropDate": fields.get("Drop Date"),
        "expectedReady": fields.get("Expected Ready"),
        "readyDate": fields.get("Ready Date"),
        "memberName": _first(fields.get("Member Name")),
        "memberPhone": _first(fields.get("Member Phone")),
        "gym": _first(fields.get("Gym Name")),
        "createdAt": drop.get("createdTime"),
    }


def parse_scan_log(drop: dict) -> list:
    raw = drop.get("fields", {}).get("Scan Log")
    if not raw:
        return []
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return []


class DropService:
    """Service for drop status changes, scans and notifications"""

    def __init__(self, airtable: AirtableClient):
        self.airtable = airtable
        self.repo = DropRepository(airtable)
        self.members = MemberRepository(airtable)
        self.bags = BagService(airtable)

    # ============================================================================
    # QUERIES
    # ============================================================================

    async def list_drops(self, status: Optional[str] = None, limit: int = 100) -> list[dict]:
        drops = await self.repo.list_drops(status, limit)
        return [serialize_drop(drop) for drop in drops]

    async def get_active_for_member(self, member_id: str) -> list[dict]:
        drops = await self.repo.get_active_by_member(member_id)
        return [serialize_drop(drop) for drop in drops]

    # ============================================================================
    # STATUS TRANSITIONS
    # ============================================================================

    async def _apply_status(
        self,
        drop: dict,
        new_status: str,
        scan_entry: dict,
        extra_fields: Optional[dict] = None,
    ) -> dict:
        """Write a new status, its timestamp fields and the scan log entry in one update"""
        now = to_iso(utc_now())
        fields = {
            "Status": new_status,
            "Status Changed": now,
            "Scan Log": self.repo.scan_log_with(drop, scan_entry),
            **(extra_fields or {}),
        }
        if new_status == DROP_READY:
            fields["Ready Date"] = now
        elif new_status == DROP_COLLECTED:
            fields["Collected Date"] = now

        updated = await self.repo.update(drop["id"], fields)
        drop.setdefault("fields", {}).update(fields)

        if new_status == DROP_COLLECTED:
            bag_id = _first(drop["fields"].get("Bag"))
            if bag_id:
                try:
                    await self.bags.mark_available(bag_id)
                except Exception as e:
                    logger.error(f"❌ Failed to release bag {bag_id} for drop {drop['id']}: {e}")

        return updated

    async def _member_contact(self, drop: dict) -> dict:
        """Resolve name, phone and email for the member who owns a drop"""
        fields = drop.get("fields", {})
        contact = {
            "first_name": (_first(fields.get("Member Name")) or "").split(" ")[0],
            "phone": _first(fields.get("Member Phone")),
            "email": _first(fields.get("Member Email")),
        }
        member_id = _first(fields.get("Member"))
        if (not contact["phone"] and not contact["email"]) and member_id:
            member = await self.members.get_by_id(member_id)
            if member:
                contact = {
                    "first_name": member["fields"].get("First Name", ""),
                    "phone": member["fields"].get("Phone"),
                    "email": member["fields"].get("Email"),
                }
        return contact

    async def notify_ready(self, drop: dict, available_until: Optional[str] = None) -> dict:
        """Notify the owning member that a drop is ready. Never raises."""
        try:
            contact = await self._member_contact(drop)
            return await notify_drop_ready(
                first_name=contact["first_name"],
                phone=contact["phone"],
                email=contact["email"],
                bag_number=drop["fields"].get("Bag Number", ""),
                gym_name=_first(drop["fields"].get("Gym Name")) or "your gym",
                available_until=available_until,
            )
        except Exception as e:
            logger.error(f"❌ Ready notification failed for drop {drop.get('id')}: {e}")
            return {"sent": False, "channel": None, "errors": [str(e)]}

    async def update_status(self, drop_id: str, status: Optional[str], operator: str = OPS_OPERATOR) -> dict:
        """
        Set a drop to any valid status.

        Backward moves are allowed so ops can correct mistakes. Every change is
        appended to the scan log, and a move to Ready notifies the member.
        """
        if not status:
            raise HTTPException(status_code=400, detail="Status required")
        if status not in DROP_STATUSES:
            raise HTTPException(status_code=400, detail="Invalid status")

        drop = await self.repo.get(drop_id)
        if not drop:
            raise HTTPException(status_code=404, detail="Drop not found")

        old_status = drop["fields"].get("Status")

        try:
            await self._apply_status(
                drop,
                status,
                {
                    "timestamp": to_iso(utc_now()),
                    "action": "status_update",
                    "previousStatus": old_status,
                    "newStatus": status,
                    "operator": operator,
                },
            )
        except Exception as e:
            logger.error(f"❌ Failed to update drop {drop_id} to {status}: {e}")
            raise HTTPException(status_code=500, detail="Failed to update drop") from e

        await log_drop_status_change(self.airtable, drop_id, old_status, status, actor=operator)
        logger.info(f"📦 Drop {drop_id}: {old_status} → {status}")

        notification = None
        if status == DROP_READY:
            notification = await self.notify_ready(drop)

        return {
            "success": True,
            "drop": {"id": drop_id, "status": status},
            "notification": notification,
        }

    async def bulk_checkin(
        self,
        drop_ids: list[str],
        new_status: str,
        action: Optional[str] = None,
        laundry_partner: Optional[str] = None,
    ) -> dict:
        """Move several drops to one status. Each drop succeeds or fails on its own."""
        if not drop_ids:
            raise HTTPException(status_code=400, detail="No drops specified")
        if new_status not in DROP_STATUSES:
            raise HTTPException(status_code=400, detail="Invalid status")

        updated = 0
        errors = []

        for drop_id in drop_ids:
            try:
                drop = await self.repo.get(drop_id)
                if not drop:
                    raise ValueError("Drop not found")
                old_status = drop["fields"].get("Status")

                extra = {}
                if laundry_partner:
                    extra = {"Laundry Partner": laundry_partner, "Assignment Time": to_iso(utc_now())}
                entry = {
                    "timestamp": to_iso(utc_now()),
                    "action": action or "status_update",
                    "previousStatus": old_status,
                    "newStatus": new_status,
                    "operator": OPS_OPERATOR,
                }
                if laundry_partner:
                    entry["laundryPartner"] = laundry_partner
                await self._apply_status(drop, new_status, entry, extra)

                await log_drop_status_change(
                    self.airtable,
                    drop_id,
                    old_status,
                    new_status,
                    extra={"laundryPartner": laundry_partner} if laundry_partner else None,
                )
                updated += 1
            except Exception as e:
                logger.error(f"❌ Check-in failed for drop {drop_id}: {e}")
                errors.append({"dropId": drop_id, "error": str(e)})

        logger.info(f"✅ Bulk check-in to {new_status}: {updated} updated, {len(errors)} failed")
        return {
            "success": True,
            "updated": updated,
            "laundryPartner": laundry_partner,
            "errors": errors,
        }

    async def deliver(self, drop_ids: list[str], gym_name: Optional[str] = None) -> dict:
        """Mark drops as returned to the gym and notify their members"""
        if not drop_ids:
            raise HTTPException(status_code=400, detail="No drops specified")

        delivered = 0
        notifications_sent = 0
        errors = []

        for drop_id in drop_ids:
            try:
                drop = await self.repo.get(drop_id)
                if not drop:
                    raise ValueError("Drop not found")
                old_status = drop["fields"].get("Status")

                await self._apply_status(
                    drop,
                    DROP_READY,
                    {
                        "timestamp": to_iso(utc_now()),
                        "action": "return_to_gym",
                        "previousStatus": old_status,
                        "newStatus": DROP_READY,
                        "operator": OPS_OPERATOR,
                        "gym": gym_name or _first(drop["fields"].get("Gym Name")),
                    },
                )
                await log_drop_status_change(self.airtable, drop_id, old_status, DROP_READY)
                delivered += 1
            except Exception as e:
                logger.error(f"❌ Delivery failed for drop {drop_id}: {e}")
                errors.append({"dropId": drop_id, "error": str(e)})
                continue

            notification = await self.notify_ready(drop)
            if notification.get("sent"):
                notifications_sent += 1

        return {
            "success": True,
            "delivered": delivered,
            "notificationsSent": notifications_sent,
            "errors": errors,
        }

    # ============================================================================
    # SCANS
    # ============================================================================

    async def scan(
        self,
        bag_number: str,
        scan_type: str,
        operator_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> dict:
        """Record a checkpoint scan. Status only ever moves forward from a scan."""
        if scan_type not in SCAN_TYPE_STATUS:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid scanType. Valid types: {', '.join(SCAN_TYPE_STATUS)}",
            )

        normalized = normalize_bag_number(bag_number) or bag_number.upper()
        drop = await self.repo.get_by_bag_number(normalized)
        if not drop:
            raise HTTPException(status_code=404, detail=f"Bag {bag_number} not found")

        current_status = drop["fields"].get("Status")
        new_status = SCAN_TYPE_STATUS[scan_type]
        timestamp = to_iso(utc_now())

        entry = {
            "timestamp": timestamp,
            "scanType": scan_type,
            "operatorId": operator_id or "unknown",
            "notes": notes or "",
            "previousStatus": current_status,
            "newStatus": new_status,
        }

        current_index = DROP_STATUSES.index(current_status) if current_status in DROP_STATUSES else -1
        status_updated = DROP_STATUSES.index(new_status) > current_index
        if status_updated:
            await self._apply_status(drop, new_status, entry)
            await log_drop_status_change(
                self.airtable, drop["id"], current_status, new_status, actor=operator_id or "scanner"
            )
        else:
            await self.repo.append_scan_entry(drop, entry)

        if scan_type == "return_to_gym":
            available_until = format_short_weekday_date(utc_now() + timedelta(days=5))
            await self.notify_ready(drop, available_until=available_until)

        logger.info(f"📦 Bag {normalized} scanned: {scan_type} ({current_status} → {new_status})")
        return {
            "success": True,
            "bagNumber": normalized,
            "scanType": scan_type,
            "previousStatus": current_status,
            "newStatus": new_status,
            "statusUpdated": status_updated,
            "timestamp": timestamp,
        }

    async def lookup_bag(self, bag_number: str) -> dict:
        normalized = normalize_bag_number(bag_number) or bag_number.upper()
        drop = await self.repo.get_by_bag_number(normalized)
        if not drop:
            raise HTTPException(status_code=404, detail=f"Bag {bag_number} not found")
        return {
            "bagNumber": normalized,
            "status": drop["fields"].get("Status"),
            "gymName": _first(drop["fields"].get("Gym Name")),
            "dropDate": drop["fields"].get("Drop Date"),
            "readyDate": drop["fields"].get("Ready Date"),
            "scanLog": parse_scan_log(drop),
        }

    # ============================================================================
    # MEMBER DROPS
    # ============================================================================

    async def create_drop(
        self, member_id: str, bag_id: str, bag_number: str, gym_id: Optional[str] = None
    ) -> dict:
        """Create a Dropped record and mark its bag in use"""
        now = utc_now()
        fields = {
            "Member": [member_id],
            "Bag Number": bag_number,
            "Bag": [bag_id],
            "Status": DROP_DROPPED,
            "Drop Date": to_iso(now),
            "Expected Ready": to_iso(now + timedelta(hours=OPERATIONS["turnaround_hours"])),
            "Scan Log": json.dumps(
                [{"timestamp": to_iso(now), "action": "member_drop", "newStatus": DROP_DROPPED, "operator": "member"}]
            ),
        }
        if gym_id:
            fields["Gym"] = [gym_id]

        drop = await self.repo.create(fields)
        await self.bags.mark_in_use(bag_id, drop["id"])
        return drop

    async def submit_member_drop(self, member: dict, raw_bag_number: Optional[str]) -> dict:
        """Log a drop for a signed-in member"""
        fields = member["fields"]

        if fields.get("Status") != MEMBER_ACTIVE:
            raise HTTPException(status_code=403, detail="Your subscription is not active")
        if not raw_bag_number:
            raise HTTPException(status_code=400, detail="Bag number is required")

        drops_remaining = fields.get("Drops Remaining") or 0
        if drops_remaining <= 0:
            raise HTTPException(status_code=400, detail="No drops remaining this month")

        validation = await self.bags.validate_bag(raw_bag_number)
        if not validation.valid:
            raise HTTPException(status_code=400, detail=validation.message)

        gym_id = _first(fields.get("Gym"))
        try:
            drop = await self.create_drop(member["id"], validation.bagId, validation.bagNumber, gym_id)
            remaining = drops_remaining - 1
            await self.members.update(
                member["id"],
                {
                    "Drops Remaining": remaining,
                    "Total Drops": (fields.get("Total Drops") or 0) + 1,
                    "Last Drop Date": to_iso(utc_now()),
                },
            )
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"❌ Failed to create drop for member {member['id']}: {e}")
            raise HTTPException(status_code=500, detail="Failed to create drop") from e

        await log_audit_event(
            self.airtable,
            AuditAction.DROP_CREATED,
            member["id"],
            actor_type="member",
            target_type="drop",
            target_id=drop["id"],
            details={"bagNumber": validation.bagNumber},
        )

        expected = format_weekday_date(utc_now() + timedelta(hours=OPERATIONS["turnaround_hours"]))
        try:
            await whatsapp_service.send_drop_confirmed(
                fields.get("Phone"),
                validation.bagNumber,
                _first(fields.get("Gym Name")) or "your gym",
                expected,
            )
        except Exception as e:
            logger.warning(f"⚠️ Drop confirmation WhatsApp failed for {member['id']}: {e}")

        return {
            "success": True,
            "dropId": drop["id"],
            "bagNumber": validation.bagNumber,
            "expectedDate": expected,
            "dropsRemaining": remaining,
        }


def get_drop_service(airtable: AirtableClient = Depends(get_airtable)) -> DropService:
    """Dependency injection for DropService"""
    return DropService(airtable)
