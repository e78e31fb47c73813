import asyncio
import json
from unittest.mock import AsyncMock

from flexlaundry.services.audit_service import (
    AuditAction,
    get_audit_logs,
    log_audit_event,
    log_drop_status_change,
)


def test_audit_event_is_written(airtable):
    ok = asyncio.run(
        log_audit_event(
            airtable,
            AuditAction.MEMBER_LOGIN,
            "recMember1",
            actor_type="member",
            details={"method": "whatsapp_code"},
            ip_address="203.0.113.9",
        )
    )

    assert ok is True
    [row] = airtable.rows("Audit Log")
    assert row["fields"]["Action"] == "member_login"
    assert json.loads(row["fields"]["Details"]) == {"method": "whatsapp_code"}
    assert row["fields"]["IP Address"] == "203.0.113.9"
    assert "User Agent" not in row["fields"]


def test_audit_failure_never_raises(airtable):
    airtable.create_record = AsyncMock(side_effect=RuntimeError("airtable down"))
    assert asyncio.run(log_audit_event(airtable, AuditAction.OPS_ACTION, "ops_dashboard")) is False


def test_collected_uses_its_own_action(airtable):
    asyncio.run(log_drop_status_change(airtable, "recDrop1", "Ready", "Collected"))
    asyncio.run(log_drop_status_change(airtable, "recDrop2", "Dropped", "At Laundry"))
    actions = [row["fields"]["Action"] for row in airtable.rows("Audit Log")]
    assert actions == ["drop_collected", "drop_status_changed"]


def test_get_audit_logs_parses_json(airtable):
    airtable.seed(
        "Audit Log",
        "recLog1",
        {"Action": "bag_action", "Actor": "ops_dashboard", "Details": '{"action": "issue"}', "Metadata": "not json"},
    )

    [entry] = asyncio.run(get_audit_logs(airtable, action="bag_action", actor="ops_dashboard"))

    assert entry["details"] == {"action": "issue"}
    assert entry["metadata"] == {"raw": "not json"}
    assert airtable.formulas[-1] == ("Audit Log", "AND({Action} = 'bag_action', {Actor} = 'ops_dashboard')")


def test_audit_route(ops_client, airtable):
    airtable.seed("Audit Log", "recLog1", {"Action": "ops_login", "Actor": "ops_dashboard"})
    response = ops_client.get("/api/ops/audit", params={"limit": 10})
    assert response.json()["count"] == 1
