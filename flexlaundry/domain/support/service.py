"""Support service - Business logic for support tickets"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException

from ...airtable import AirtableClient, get_airtable
from ...constants import TICKET_OPEN, TICKET_RESOLVED
from ...email_service import send_ops_new_ticket_email
from ...services import whatsapp_service
from ...services.audit_service import AuditAction, log_audit_event, log_ticket_created
from ...shared.dates import format_timestamp, to_iso, utc_now
from ..drops.repository import DropRepository
from ..members.repository import MemberRepository
from .repository import TicketRepository
from .schemas import TicketCreate, TicketUpdate

logger = logging.getLogger(__name__)

# Status changes that the member hears about on WhatsApp
NOTIFY_STATUSES = ("In Progress", "Awaiting Customer", "Resolved")


def serialize_ticket(record: dict) -> dict:
    fields = record.get("fields", {})
    return {
        "id": record["id"],
        "ticketId": fields.get("Ticket ID") or record["id"],
        "type": fields.get("Type"),
        "description": fields.get("Description"),
        "status": fields.get("Status"),
        "priority": fields.get("Priority"),
        "source": fields.get("Source"),
        "memberId": (fields.get("Member") or [None])[0],
        "dropId": (fields.get("Drop") or [None])[0],
        "internalNotes": fields.get("Internal Notes"),
        "createdAt": fields.get("Created At") or record.get("createdTime"),
        "updatedAt": fields.get("Updated At"),
        "hasAttachment": bool(fields.get("Attachments")),
    }


def append_internal_note(existing: Optional[str], note: str) -> str:
    stamped = f"[{format_timestamp(utc_now())}]\n{note}"
    return f"{existing}\n\n{stamped}" if existing else stamped


class SupportService:
    """Service for ticket creation and ops ticket management"""

    def __init__(self, airtable: AirtableClient):
        self.airtable = airtable
        self.repo = TicketRepository(airtable)
        self.members = MemberRepository(airtable)
        self.drops = DropRepository(airtable)

    async def list_tickets(self, status_filter: str = "open") -> list[dict]:
        records = await self.repo.list_tickets(status_filter)
        return [serialize_ticket(record) for record in records]

    async def list_member_tickets(self, member_id: str) -> list[dict]:
        records = await self.repo.list_for_member(member_id)
        return [serialize_ticket(record) for record in records]

    async def get_ticket(self, ticket_id: str) -> dict:
        """Get a ticket with the raising member's contact details"""
        record = await self.repo.get(ticket_id)
        if not record:
            raise HTTPException(status_code=404, detail="Ticket not found")

        ticket = serialize_ticket(record)
        ticket["member"] = None
        if ticket["memberId"]:
            member = await self.members.get_by_id(ticket["memberId"])
            if member:
                fields = member["fields"]
                ticket["member"] = {
                    "id": member["id"],
                    "name": f"{fields.get('First Name', '')} {fields.get('Last Name', '')}".strip(),
                    "email": fields.get("Email", ""),
                    "phone": fields.get("Phone", ""),
                    "plan": fields.get("Subscription Tier"),
                    "status": fields.get("Status"),
                }
        return ticket

    async def update_ticket(self, ticket_id: str, update: TicketUpdate) -> dict:
        """Apply an ops update and tell the member about notable status changes"""
        record = await self.repo.get(ticket_id)
        if not record:
            raise HTTPException(status_code=404, detail="Ticket not found")

        fields = record["fields"]
        old_status = fields.get("Status")
        changes: dict = {"Updated At": to_iso(utc_now())}
        if update.status:
            changes["Status"] = update.status
        if update.priority:
            changes["Priority"] = update.priority
        if update.internalNote:
            changes["Internal Notes"] = append_internal_note(fields.get("Internal Notes"), update.internalNote)

        try:
            await self.repo.update(ticket_id, changes)
        except Exception as e:
            logger.error(f"❌ Failed to update ticket {ticket_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to update ticket") from e

        await log_audit_event(
            self.airtable,
            AuditAction.TICKET_RESOLVED if update.status == TICKET_RESOLVED else AuditAction.TICKET_UPDATED,
            "ops_dashboard",
            actor_type="ops",
            target_type="ticket",
            target_id=ticket_id,
            details={"oldStatus": old_status, "newStatus": update.status, "priority": update.priority},
        )

        notification_sent = False
        member_id = (fields.get("Member") or [None])[0]
        if update.status and update.status != old_status and update.status in NOTIFY_STATUSES and member_id:
            notification_sent = await self._notify_status(
                member_id, fields.get("Ticket ID") or ticket_id, update.status
            )

        return {"success": True, "notificationSent": notification_sent}

    async def _notify_status(self, member_id: str, ticket_ref: str, status: str) -> bool:
        try:
            member = await self.members.get_by_id(member_id)
            if not member or not member["fields"].get("Phone"):
                return False
            sent, error = await whatsapp_service.send_ticket_status(
                member["fields"]["Phone"],
                member["fields"].get("First Name") or "there",
                ticket_ref,
                status,
            )
            if not sent:
                logger.warning(f"⚠️ Ticket status WhatsApp failed for {ticket_ref}: {error}")
            return sent
        except Exception as e:
            logger.error(f"❌ Failed to send ticket status notification: {e}")
            return False

    async def create_ticket(self, member: dict, request: TicketCreate) -> dict:
        """Raise a ticket for a member and alert the support inbox"""
        fields = member["fields"]
        now = to_iso(utc_now())
        ticket_fields = {
            "Member": [member["id"]],
            "Type": request.type,
            "Description": request.description,
            "Status": TICKET_OPEN,
            "Priority": "Medium",
            "Source": "portal",
            "Created At": now,
            "Updated At": now,
        }

        if request.bagNumber:
            active = await self.drops.get_active_by_member(member["id"])
            related = next((d for d in active if d["fields"].get("Bag Number") == request.bagNumber), None)
            if related:
                ticket_fields["Drop"] = [related["id"]]

        try:
            record = await self.repo.create(ticket_fields)
        except Exception as e:
            logger.error(f"❌ Failed to create ticket for {member['id']}: {e}")
            raise HTTPException(status_code=500, detail="Failed to create ticket") from e

        await log_ticket_created(self.airtable, record["id"], member["id"], request.type, "portal")

        member_name = f"{fields.get('First Name', '')} {fields.get('Last Name', '')}".strip()
        try:
            await send_ops_new_ticket_email(
                {
                    "type": request.type,
                    "member_name": member_name,
                    "member_phone": fields.get("Phone"),
                    "member_email": fields.get("Email"),
                    "description": request.description,
                    "bag_number": request.bagNumber,
                }
            )
        except Exception as e:
            logger.warning(f"⚠️ Ops ticket email failed: {e}")

        if fields.get("Phone"):
            await whatsapp_service.send_support_confirmed(fields["Phone"], request.type)

        return serialize_ticket(record)

    async def create_system_issue(
        self,
        issue_type: str,
        description: str,
        priority: str,
        member_id: Optional[str] = None,
        drop_id: Optional[str] = None,
    ) -> dict:
        """Open a ticket raised by automated monitoring"""
        now = to_iso(utc_now())
        fields = {
            "Type": issue_type,
            "Description": description,
            "Status": TICKET_OPEN,
            "Priority": priority,
            "Source": "system",
            "Created At": now,
            "Updated At": now,
        }
        if member_id:
            fields["Member"] = [member_id]
        if drop_id:
            fields["Drop"] = [drop_id]
        record = await self.repo.create(fields)
        await log_ticket_created(self.airtable, record["id"], member_id or "", issue_type, "system")
        return record


def get_support_service(airtable: AirtableClient = Depends(get_airtable)) -> SupportService:
    """Dependency injection for SupportService"""
    return SupportService(airtable)
