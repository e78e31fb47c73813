"""
Audit Log Service
Records member, billing and ops actions to the Airtable Audit Log table.
Audit writes never raise: a failed write is logged and reported as False.
"""

import json
import logging
from typing import Any, Optional

from ..airtable import AirtableClient, quote_formula_value
from ..constants import TABLES
from ..shared.dates import to_iso, utc_now

logger = logging.getLogger(__name__)


class AuditAction:
    MEMBER_CREATED = "member_created"
    MEMBER_UPDATED = "member_updated"
    MEMBER_LOGIN = "member_login"
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_PAUSED = "subscription_paused"
    SUBSCRIPTION_RESUMED = "subscription_resumed"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    SUBSCRIPTION_PLAN_CHANGED = "subscription_plan_changed"
    DROP_CREATED = "drop_created"
    DROP_STATUS_CHANGED = "drop_status_changed"
    DROP_COLLECTED = "drop_collected"
    BAG_ACTION = "bag_action"
    TICKET_CREATED = "ticket_created"
    TICKET_UPDATED = "ticket_updated"
    TICKET_RESOLVED = "ticket_resolved"
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    NOTIFICATION_SENT = "notification_sent"
    ERROR_OCCURRED = "error_occurred"
    OPS_LOGIN = "ops_login"
    OPS_ACTION = "ops_action"


async def log_audit_event(
    airtable: AirtableClient,
    action: str,
    actor: str,
    actor_type: str = "system",
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
    metadata: Optional[dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> bool:
    """Write one Audit Log row. Returns False instead of raising on failure."""
    fields = {
        "Action": action,
        "Actor": actor,
        "Actor Type": actor_type,
        "Target Type": target_type or "",
        "Target ID": target_id or "",
        "Details": json.dumps(details or {}),
        "Metadata": json.dumps(metadata or {}),
        "Timestamp": to_iso(utc_now()),
    }
    if ip_address:
        fields["IP Address"] = ip_address
    if user_agent:
        fields["User Agent"] = user_agent

    try:
        await airtable.create_record(TABLES["audit_log"], fields)
        logger.debug(f"✅ Audit: {action} by {actor} on {target_type}:{target_id}")
        return True
    except Exception as e:
        logger.error(f"❌ Failed to write audit event {action}: {e}")
        return False


# ============================================================================
# CONVENIENCE HELPERS
# ============================================================================


async def log_drop_status_change(
    airtable: AirtableClient,
    drop_id: str,
    old_status: Optional[str],
    new_status: str,
    actor: str = "ops_dashboard",
    extra: Optional[dict] = None,
) -> bool:
    action = AuditAction.DROP_COLLECTED if new_status == "Collected" else AuditAction.DROP_STATUS_CHANGED
    return await log_audit_event(
        airtable,
        action,
        actor,
        actor_type="ops",
        target_type="drop",
        target_id=drop_id,
        details={"oldStatus": old_status, "newStatus": new_status, **(extra or {})},
    )


async def log_bag_action(
    airtable: AirtableClient, bag_id: str, bag_action: str, details: Optional[dict] = None
) -> bool:
    return await log_audit_event(
        airtable,
        AuditAction.BAG_ACTION,
        "ops_dashboard",
        actor_type="ops",
        target_type="bag",
        target_id=bag_id,
        details={"action": bag_action, **(details or {})},
    )


async def log_subscription_change(
    airtable: AirtableClient,
    member_id: str,
    action: str,
    details: Optional[dict] = None,
    actor_type: str = "member",
) -> bool:
    return await log_audit_event(
        airtable,
        action,
        member_id,
        actor_type=actor_type,
        target_type="subscription",
        target_id=member_id,
        details=details,
    )


async def log_member_created(airtable: AirtableClient, member_id: str, details: Optional[dict] = None) -> bool:
    return await log_audit_event(
        airtable,
        AuditAction.MEMBER_CREATED,
        "stripe_webhook",
        actor_type="system",
        target_type="member",
        target_id=member_id,
        details=details,
    )


async def log_ticket_created(
    airtable: AirtableClient, ticket_id: str, member_id: str, ticket_type: str, source: str
) -> bool:
    return await log_audit_event(
        airtable,
        AuditAction.TICKET_CREATED,
        member_id or "system",
        actor_type="member" if source == "portal" else "system",
        target_type="ticket",
        target_id=ticket_id,
        details={"type": ticket_type, "source": source},
    )


async def log_payment_event(
    airtable: AirtableClient, member_id: str, succeeded: bool, details: Optional[dict] = None
) -> bool:
    return await log_audit_event(
        airtable,
        AuditAction.PAYMENT_SUCCEEDED if succeeded else AuditAction.PAYMENT_FAILED,
        "stripe_webhook",
        actor_type="system",
        target_type="member",
        target_id=member_id,
        details=details,
    )


async def log_ops_action(
    airtable: AirtableClient,
    action: str,
    target_type: str,
    target_id: str,
    details: Optional[dict] = None,
) -> bool:
    return await log_audit_event(
        airtable,
        AuditAction.OPS_ACTION,
        "ops_dashboard",
        actor_type="ops",
        target_type=target_type,
        target_id=target_id,
        details={"action": action, **(details or {})},
    )


# ============================================================================
# QUERIES
# ============================================================================


def _parse_json_field(value: Optional[str]) -> Any:
    if not value:
        return {}
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return {"raw": value}


async def get_audit_logs(
    airtable: AirtableClient,
    action: Optional[str] = None,
    target_id: Optional[str] = None,
    target_type: Optional[str] = None,
    actor: Optional[str] = None,
    limit: int = 50,
) -> list[dict]:
    """List recent audit events, newest first"""
    conditions = []
    if action:
        conditions.append(f"{{Action}} = '{quote_formula_value(action)}'")
    if target_id:
        conditions.append(f"{{Target ID}} = '{quote_formula_value(target_id)}'")
    if target_type:
        conditions.append(f"{{Target Type}} = '{quote_formula_value(target_type)}'")
    if actor:
        conditions.append(f"{{Actor}} = '{quote_formula_value(actor)}'")

    formula = None
    if len(conditions) == 1:
        formula = conditions[0]
    elif conditions:
        formula = f"AND({', '.join(conditions)})"

    records = await airtable.list_records(
        TABLES["audit_log"],
        formula=formula,
        max_records=limit,
        sort=[("Timestamp", "desc")],
    )

    return [
        {
            "id": record["id"],
            "action": record["fields"].get("Action"),
            "actor": record["fields"].get("Actor"),
            "actorType": record["fields"].get("Actor Type"),
            "targetType": record["fields"].get("Target Type"),
            "targetId": record["fields"].get("Target ID"),
            "details": _parse_json_field(record["fields"].get("Details")),
            "metadata": _parse_json_field(record["fields"].get("Metadata")),
            "timestamp": record["fields"].get("Timestamp"),
        }
        for record in records
    ]
