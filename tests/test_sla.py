import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from flexlaundry.services.sla import (
    classify_drop_hours,
    classify_ticket_hours,
    evaluate_sla,
    get_sla_report,
)
from flexlaundry.shared.dates import to_iso

NOW = datetime(2025, 10, 20, 12, 0, tzinfo=timezone.utc)


def drop(record_id, hours_ago, status="At Laundry"):
    return {
        "id": record_id,
        "fields": {
            "Bag Number": f"B{record_id[-3:]}",
            "Status": status,
            "Drop Date": to_iso(NOW - timedelta(hours=hours_ago)),
            "Gym Name": ["The Yard"],
        },
    }


def ticket(record_id, hours_ago):
    return {"id": record_id, "fields": {"Type": "Damage", "Created At": to_iso(NOW - timedelta(hours=hours_ago))}}


@pytest.mark.parametrize(
    "hours,expected",
    [(None, "ok"), (10, "ok"), (35.9, "ok"), (36, "critical"), (47.5, "critical"), (48, "breached"), (200, "breached")],
)
def test_drop_classification(hours, expected):
    assert classify_drop_hours(hours) == expected


def test_drop_past_both_thresholds_is_breached():
    # 60h is past the 36h critical line too
    assert classify_drop_hours(60) == "breached"


@pytest.mark.parametrize("hours,expected", [(2, "ok"), (24, "needs_attention"), (47, "needs_attention"), (48, "overdue")])
def test_ticket_classification(hours, expected):
    assert classify_ticket_hours(hours) == expected


def test_evaluate_sla_rolls_up_to_critical():
    drops = [drop("rec001", 50), drop("rec002", 40), drop("rec003", 5), drop("rec004", 100, status="Collected")]
    tickets = [ticket("recT1", 30), ticket("recT2", 50), ticket("recT3", 1)]

    report = evaluate_sla(drops, tickets, NOW)

    assert report["status"] == "critical"
    assert report["dropsAtRisk"] == 2
    assert report["breachedDrops"] == 1
    assert report["criticalDrops"] == 1
    assert report["openTickets"] == 3
    assert report["ticketsNeedingAttention"] == 2
    assert report["overdueTickets"] == 1
    assert [d["id"] for d in report["drops"]] == ["rec001", "rec002"]
    assert report["drops"][0]["gym"] == "The Yard"
    assert report["drops"][0]["hoursElapsed"] == 50


def test_evaluate_sla_warning_and_healthy():
    assert evaluate_sla([drop("rec001", 40)], [], NOW)["status"] == "warning"
    assert evaluate_sla([], [ticket("recT1", 25)], NOW)["status"] == "warning"
    assert evaluate_sla([drop("rec001", 3)], [ticket("recT1", 2)], NOW)["status"] == "healthy"


def test_ready_drops_are_still_classified():
    report = evaluate_sla([drop("rec001", 60, status="Ready")], [], NOW)
    assert report["breachedDrops"] == 1


def test_sla_report_includes_today_summary(airtable):
    for record in (drop("rec001", 50), drop("rec002", 1, status="Ready")):
        airtable.seed("Drops", record["id"], record["fields"])
    airtable.seed("Issues", "recT1", {"Status": "Open", "Created At": to_iso(NOW - timedelta(hours=2))})

    report = asyncio.run(get_sla_report(airtable, NOW))

    assert report["status"] == "critical"
    assert report["today"]["date"] == "2025-10-20"
    assert report["today"]["readyDrops"] == 1


def test_ops_sla_route_requires_ops_cookie(client):
    assert client.get("/api/ops/sla").status_code == 401


def test_ops_sla_route(ops_client, airtable):
    airtable.seed("Drops", "rec001", {"Bag Number": "B001", "Status": "Dropped", "Drop Date": to_iso(datetime.now(timezone.utc))})
    response = ops_client.get("/api/ops/sla")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
