"""
SLA Monitoring
Classifies open drops against the 48-hour turnaround and open tickets against
the support response window, and rolls them up into an ops health status.
"""

import logging
from datetime import datetime
from typing import Optional

from ..airtable import AirtableClient
from ..constants import DROP_COLLECTED, DROP_READY, OPERATIONS, TABLES
from ..domain.support.repository import TicketRepository
from ..shared.dates import hours_since, utc_now

logger = logging.getLogger(__name__)

DROP_BREACHED_HOURS = OPERATIONS["turnaround_hours"]
DROP_CRITICAL_HOURS = 36
TICKET_OVERDUE_HOURS = 48
TICKET_ATTENTION_HOURS = 24

HEALTHY = "healthy"
WARNING = "warning"
CRITICAL = "critical"


def classify_drop_hours(hours: Optional[float]) -> str:
    if hours is None:
        return "ok"
    # Checked in this order so a drop past both thresholds reports as breached
    if hours >= DROP_BREACHED_HOURS:
        return "breached"
    if hours >= DROP_CRITICAL_HOURS:
        return "critical"
    return "ok"


def classify_ticket_hours(hours: Optional[float]) -> str:
    if hours is None:
        return "ok"
    if hours >= TICKET_OVERDUE_HOURS:
        return "overdue"
    if hours >= TICKET_ATTENTION_HOURS:
        return "needs_attention"
    return "ok"


def assess_drop(record: dict, now: Optional[datetime] = None) -> dict:
    fields = record.get("fields", {})
    hours = hours_since(fields.get("Drop Date"), now)
    gym = fields.get("Gym Name")
    return {
        "id": record["id"],
        "bagNumber": fields.get("Bag Number"),
        "status": fields.get("Status"),
        "dropDate": fields.get("Drop Date"),
        "gym": gym[0] if isinstance(gym, list) and gym else gym,
        "laundryPartner": fields.get("Laundry Partner"),
        "hoursElapsed": round(hours) if hours is not None else None,
        "urgency": classify_drop_hours(hours),
    }


def assess_ticket(record: dict, now: Optional[datetime] = None) -> dict:
    fields = record.get("fields", {})
    hours = hours_since(fields.get("Created At") or record.get("createdTime"), now)
    return {
        "id": record["id"],
        "ticketId": fields.get("Ticket ID"),
        "type": fields.get("Type"),
        "description": fields.get("Description"),
        "createdAt": fields.get("Created At"),
        "hoursOpen": round(hours) if hours is not None else None,
        "urgency": classify_ticket_hours(hours),
    }


def evaluate_sla(drops: list[dict], tickets: list[dict], now: Optional[datetime] = None) -> dict:
    """
    Classify drops and tickets and derive the overall health.

    Args:
        drops: Drop records still in the cycle (not Collected)
        tickets: Open ticket records
        now: Reference time, defaults to the current UTC time

    Returns:
        dict with status, counts, and the flagged drops and tickets
    """
    now = now or utc_now()
    assessed_drops = [assess_drop(d, now) for d in drops if d.get("fields", {}).get("Status") != DROP_COLLECTED]
    assessed_tickets = [assess_ticket(t, now) for t in tickets]

    drops_at_risk = [d for d in assessed_drops if d["urgency"] != "ok"]
    tickets_flagged = [t for t in assessed_tickets if t["urgency"] != "ok"]
    breached = [d for d in drops_at_risk if d["urgency"] == "breached"]
    overdue_tickets = [t for t in tickets_flagged if t["urgency"] == "overdue"]

    if breached or overdue_tickets:
        status = CRITICAL
    elif drops_at_risk or tickets_flagged:
        status = WARNING
    else:
        status = HEALTHY

    return {
        "status": status,
        "dropsAtRisk": len(drops_at_risk),
        "breachedDrops": len(breached),
        "criticalDrops": len(drops_at_risk) - len(breached),
        "openTickets": len(assessed_tickets),
        "ticketsNeedingAttention": len(tickets_flagged),
        "overdueTickets": len(overdue_tickets),
        "drops": sorted(drops_at_risk, key=lambda d: d["hoursElapsed"] or 0, reverse=True),
        "tickets": sorted(tickets_flagged, key=lambda t: t["hoursOpen"] or 0, reverse=True),
    }


def summarize_today(drops_today: list[dict], now: Optional[datetime] = None) -> dict:
    now = now or utc_now()
    statuses = [d.get("fields", {}).get("Status") for d in drops_today]
    return {
        "date": now.date().isoformat(),
        "newDrops": len(drops_today),
        "completedDrops": statuses.count(DROP_COLLECTED),
        "readyDrops": statuses.count(DROP_READY),
    }


async def get_sla_report(airtable: AirtableClient, now: Optional[datetime] = None) -> dict:
    """Fetch open drops and tickets and evaluate them for the ops dashboard"""
    now = now or utc_now()
    drops = await airtable.list_records(TABLES["drops"], formula=f"{{Status}} != '{DROP_COLLECTED}'")
    tickets = await TicketRepository(airtable).list_open()

    report = evaluate_sla(drops, tickets, now)

    try:
        drops_today = await airtable.list_records(
            TABLES["drops"], formula="IS_SAME({Drop Date}, TODAY(), 'day')"
        )
    except Exception as e:
        logger.warning(f"⚠️ Failed to load today's drops for SLA summary: {e}")
        drops_today = []
    report["today"] = summarize_today(drops_today, now)
    return report
