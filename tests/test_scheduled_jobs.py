import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from flexlaundry.services import scheduled_jobs
from flexlaundry.services.scheduled_jobs import classify_stuck_drop, next_billing_date
from flexlaundry.shared.dates import to_iso

NOW = datetime(2025, 10, 20, 12, 0, tzinfo=timezone.utc)


def ago(**kwargs):
    return to_iso(NOW - timedelta(**kwargs))


def seed_member(airtable, member_id="recMember1", **fields):
    base = {"First Name": "Alex", "Phone": "+447700900123", "Email": "alex@example.com", "Status": "Active"}
    return airtable.seed("Members", member_id, {**base, **fields})


@pytest.fixture
def whatsapp_ok():
    return AsyncMock(return_value=(True, None))


# ============================================================================
# HELPERS
# ============================================================================


def test_next_billing_date_uses_signup_day():
    signup = datetime(2025, 9, 27, tzinfo=timezone.utc)
    assert next_billing_date(signup, NOW) == datetime(2025, 10, 27, tzinfo=timezone.utc)
    assert next_billing_date(signup, datetime(2025, 10, 28, tzinfo=timezone.utc)) == datetime(
        2025, 11, 27, tzinfo=timezone.utc
    )


def test_next_billing_date_clamps_to_month_end():
    signup = datetime(2025, 1, 31, tzinfo=timezone.utc)
    assert next_billing_date(signup, datetime(2025, 2, 10, tzinfo=timezone.utc)) == datetime(
        2025, 2, 28, tzinfo=timezone.utc
    )


@pytest.mark.parametrize(
    "status,hours,expected",
    [
        ("Dropped", 5, None),
        ("Dropped", 8, ("Late Delivery", "Medium")),
        ("Dropped", 13, ("Late Delivery", "High")),
        ("At Laundry", 30, None),
        ("At Laundry", 40, ("Late Delivery", "High")),
        ("At Laundry", 49, ("Late Delivery", "Urgent")),
        ("Ready", 100, None),
        ("Ready", 121, ("Missing Bag", "Low")),
        ("Collected", 500, None),
    ],
)
def test_classify_stuck_drop(status, hours, expected):
    assert classify_stuck_drop(status, hours) == expected


# ============================================================================
# SLA CHECK
# ============================================================================


def test_sla_check_alerts_every_run(airtable):
    airtable.seed("Drops", "recDrop1", {"Bag Number": "B001", "Status": "At Laundry", "Drop Date": ago(hours=50)})
    airtable.seed("Drops", "recDrop2", {"Bag Number": "B002", "Status": "Dropped", "Drop Date": ago(hours=40)})

    with patch("flexlaundry.services.scheduled_jobs.send_sla_alert_email", AsyncMock()) as alert:
        first = asyncio.run(scheduled_jobs.sla_check(airtable, NOW))
        asyncio.run(scheduled_jobs.sla_check(airtable, NOW))

    assert first == {"success": True, "status": "critical", "critical": 1, "warnings": 1, "alertSent": True}
    assert alert.await_count == 2
    critical, warnings = alert.await_args.args
    assert critical[0]["label"] == "Bag B001"
    assert warnings[0]["detail"].startswith("Dropped for 40h")


def test_sla_check_is_quiet_when_healthy(airtable):
    airtable.seed("Drops", "recDrop1", {"Bag Number": "B001", "Status": "Dropped", "Drop Date": ago(hours=2)})
    with patch("flexlaundry.services.scheduled_jobs.send_sla_alert_email", AsyncMock()) as alert:
        result = asyncio.run(scheduled_jobs.sla_check(airtable, NOW))
    assert result["alertSent"] is False
    alert.assert_not_awaited()


# ============================================================================
# PAUSE REMINDERS
# ============================================================================


def paused_stripe(resumes_in_days):
    stripe = MagicMock()
    stripe.get_subscription.return_value = {
        "id": "sub_123",
        "pause_collection": {"behavior": "void", "resumes_at": int((NOW + timedelta(days=resumes_in_days)).timestamp())},
    }
    return stripe


def test_pause_reminders_resend_when_run_twice(airtable, whatsapp_ok):
    seed_member(airtable, Status="Paused", **{"Stripe Subscription ID": "sub_123"})

    with patch.object(scheduled_jobs, "stripe_service", paused_stripe(2)), patch(
        "flexlaundry.services.whatsapp_service.send_pause_reminder", whatsapp_ok
    ):
        first = asyncio.run(scheduled_jobs.pause_reminders(airtable, NOW))
        second = asyncio.run(scheduled_jobs.pause_reminders(airtable, NOW))

    assert first["sent"] == 1
    assert second["sent"] == 1
    assert whatsapp_ok.await_count == 2
    assert whatsapp_ok.await_args.args == ("+447700900123", "Alex", "Wednesday 22 Oct")


def test_pause_reminders_skip_resumes_outside_window(airtable, whatsapp_ok):
    seed_member(airtable, Status="Paused", **{"Stripe Subscription ID": "sub_123"})
    with patch.object(scheduled_jobs, "stripe_service", paused_stripe(10)), patch(
        "flexlaundry.services.whatsapp_service.send_pause_reminder", whatsapp_ok
    ):
        result = asyncio.run(scheduled_jobs.pause_reminders(airtable, NOW))
    assert result == {"processed": 1, "sent": 0, "errors": []}
    whatsapp_ok.assert_not_awaited()


def test_pause_reminders_collect_stripe_errors(airtable, whatsapp_ok):
    seed_member(airtable, Status="Paused", **{"Stripe Subscription ID": "sub_123"})
    stripe = MagicMock()
    stripe.get_subscription.side_effect = RuntimeError("stripe down")
    with patch.object(scheduled_jobs, "stripe_service", stripe):
        result = asyncio.run(scheduled_jobs.pause_reminders(airtable, NOW))
    assert result["errors"] == [{"memberId": "recMember1", "error": "stripe down"}]


# ============================================================================
# RE-ENGAGEMENT
# ============================================================================


def test_reengagement_nudges_inactive_members(airtable, whatsapp_ok):
    seed_member(
        airtable,
        **{"Last Drop Date": ago(days=20), "Signup Date": "2025-09-27T10:00:00.000Z", "Drops Remaining": 4},
    )
    with patch("flexlaundry.services.whatsapp_service.send_reengagement", whatsapp_ok):
        result = asyncio.run(scheduled_jobs.reengagement(airtable, NOW))

    assert result["sent"] == 1
    whatsapp_ok.assert_awaited_once_with("+447700900123", "Alex", 4, "27 Oct")


def test_reengagement_skips_recent_droppers(airtable, whatsapp_ok):
    seed_member(airtable, **{"Last Drop Date": ago(days=3), "Signup Date": "2025-01-05T10:00:00.000Z"})
    with patch("flexlaundry.services.whatsapp_service.send_reengagement", whatsapp_ok):
        result = asyncio.run(scheduled_jobs.reengagement(airtable, NOW))
    assert result["processed"] == 0
    whatsapp_ok.assert_not_awaited()


# ============================================================================
# PAYMENT RETRY
# ============================================================================


def test_payment_retry_day_three_reminder_is_sent_once(airtable, whatsapp_ok):
    seed_member(airtable, Status="Past Due", **{"Payment Failed Date": ago(days=4)})

    with patch("flexlaundry.services.whatsapp_service.send_payment_retry", whatsapp_ok):
        first = asyncio.run(scheduled_jobs.payment_retry(airtable, NOW))
        second = asyncio.run(scheduled_jobs.payment_retry(airtable, NOW))

    assert first["day3RemindersSent"] == 1
    assert second["day3RemindersSent"] == 0
    assert airtable.tables["Members"]["recMember1"]["fields"]["Day 3 Reminder Sent"] is True
    whatsapp_ok.assert_awaited_once()
    assert whatsapp_ok.await_args.args[2] == 3
    assert whatsapp_ok.await_args.args[3].endswith("/portal/billing")


def test_payment_retry_day_seven_falls_back_to_email(airtable):
    seed_member(airtable, Status="Past Due", **{"Payment Failed Date": ago(days=7), "Day 3 Reminder Sent": True})

    with patch(
        "flexlaundry.services.whatsapp_service.send_payment_retry", AsyncMock(return_value=(False, "undelivered"))
    ), patch("flexlaundry.services.scheduled_jobs.send_payment_failed_email", AsyncMock()) as email:
        result = asyncio.run(scheduled_jobs.payment_retry(airtable, NOW))

    assert result["day7RemindersSent"] == 1
    assert email.await_args.kwargs["day"] == 7
    assert airtable.tables["Members"]["recMember1"]["fields"]["Day 7 Reminder Sent"] is True


def test_payment_retry_auto_pauses_after_ten_days(airtable):
    seed_member(
        airtable,
        Status="Past Due",
        **{
            "Payment Failed Date": ago(days=11),
            "Day 3 Reminder Sent": True,
            "Day 7 Reminder Sent": True,
            "Stripe Subscription ID": "sub_123",
        },
    )
    stripe = MagicMock()

    with patch.object(scheduled_jobs, "stripe_service", stripe):
        result = asyncio.run(scheduled_jobs.payment_retry(airtable, NOW))

    assert result["subscriptionsPaused"] == 1
    subscription_id, resumes_at = stripe.pause_subscription.call_args.args
    assert subscription_id == "sub_123"
    assert resumes_at == int((NOW + timedelta(days=30)).timestamp())
    fields = airtable.tables["Members"]["recMember1"]["fields"]
    assert fields["Status"] == "Paused"
    assert fields["Pause Reason"] == "Payment failure - auto-paused after 10 days"


# ============================================================================
# PICKUP CONFIRMATION
# ============================================================================


def test_pickup_confirm_then_reminder(airtable, whatsapp_ok):
    seed_member(airtable)
    airtable.seed(
        "Drops",
        "recDrop1",
        {"Bag Number": "B001", "Status": "Ready", "Ready Date": ago(hours=30), "Member": ["recMember1"], "Gym Name": ["The Yard"]},
    )
    airtable.seed(
        "Drops",
        "recDrop2",
        {
            "Bag Number": "B002",
            "Status": "Ready",
            "Ready Date": ago(hours=50),
            "Member": ["recMember1"],
            "Pickup Confirm Sent": True,
        },
    )
    reminder = AsyncMock(return_value=(True, None))

    with patch("flexlaundry.services.whatsapp_service.send_pickup_confirm_request", whatsapp_ok), patch(
        "flexlaundry.services.whatsapp_service.send_pickup_reminder", reminder
    ):
        result = asyncio.run(scheduled_jobs.pickup_confirm(airtable, NOW))

    assert result["confirmationsSent"] == 1
    assert result["remindersSent"] == 1
    whatsapp_ok.assert_awaited_once_with("+447700900123", "Alex", "B001", "The Yard")
    reminder.assert_awaited_once_with("+447700900123", "Alex", "B002", "your gym")
    assert airtable.tables["Drops"]["recDrop1"]["fields"]["Pickup Confirm Sent"] is True
    assert airtable.tables["Drops"]["recDrop2"]["fields"]["Pickup Reminder Sent"] is True


def test_pickup_confirm_waits_a_day(airtable, whatsapp_ok):
    seed_member(airtable)
    airtable.seed("Drops", "recDrop1", {"Bag Number": "B001", "Status": "Ready", "Ready Date": ago(hours=5), "Member": ["recMember1"]})
    with patch("flexlaundry.services.whatsapp_service.send_pickup_confirm_request", whatsapp_ok):
        result = asyncio.run(scheduled_jobs.pickup_confirm(airtable, NOW))
    assert result["confirmationsSent"] == 0
    whatsapp_ok.assert_not_awaited()


def test_pickup_confirm_records_double_failure(airtable):
    seed_member(airtable, Email="")
    airtable.seed("Drops", "recDrop1", {"Bag Number": "B001", "Status": "Ready", "Ready Date": ago(hours=30), "Member": ["recMember1"]})
    with patch(
        "flexlaundry.services.whatsapp_service.send_pickup_confirm_request", AsyncMock(return_value=(False, "nope"))
    ):
        result = asyncio.run(scheduled_jobs.pickup_confirm(airtable, NOW))
    assert result["errors"] == [{"dropId": "recDrop1", "error": "Both WhatsApp and email failed"}]
    assert "Pickup Confirm Sent" not in airtable.tables["Drops"]["recDrop1"]["fields"]


# ============================================================================
# ISSUE DETECTION
# ============================================================================


def test_issue_detection_opens_tickets_for_stuck_drops(airtable):
    seed_member(airtable)
    airtable.seed("Drops", "recDrop1", {"Bag Number": "B001", "Status": "Dropped", "Drop Date": ago(hours=8), "Member": ["recMember1"]})
    airtable.seed("Drops", "recDrop2", {"Bag Number": "B002", "Status": "At Laundry", "Drop Date": ago(hours=50)})
    airtable.seed("Drops", "recDrop3", {"Bag Number": "B003", "Status": "Ready", "Drop Date": ago(hours=200), "Ready Date": ago(hours=130)})
    airtable.seed("Drops", "recDrop4", {"Bag Number": "B004", "Status": "Dropped", "Drop Date": ago(hours=2)})
    airtable.seed(
        "Drops", "recDrop5", {"Bag Number": "B005", "Status": "Dropped", "Drop Date": ago(hours=20), "Has Open Issue": True}
    )

    with patch("flexlaundry.services.scheduled_jobs.send_stuck_bag_alert_email", AsyncMock()) as alert:
        result = asyncio.run(scheduled_jobs.issue_detection(airtable, NOW))

    assert result["issuesCreated"] == 3
    assert result["alertsSent"] == 3
    issues = {row["fields"]["Drop"][0]: row["fields"] for row in airtable.rows("Issues")}
    assert (issues["recDrop1"]["Type"], issues["recDrop1"]["Priority"]) == ("Late Delivery", "Medium")
    assert (issues["recDrop2"]["Type"], issues["recDrop2"]["Priority"]) == ("Late Delivery", "Urgent")
    assert (issues["recDrop3"]["Type"], issues["recDrop3"]["Priority"]) == ("Missing Bag", "Low")
    assert issues["recDrop1"]["Member"] == ["recMember1"]
    assert issues["recDrop1"]["Source"] == "system"
    assert "Customer: Alex" in issues["recDrop1"]["Description"]
    for drop_id in ("recDrop1", "recDrop2", "recDrop3"):
        assert airtable.tables["Drops"][drop_id]["fields"]["Has Open Issue"] is True
    assert alert.await_args_list[0].args == ("B001", "Dropped", 8, "Medium", "Alex")


def test_issue_detection_is_idempotent_via_open_issue_flag(airtable):
    airtable.seed("Drops", "recDrop1", {"Bag Number": "B001", "Status": "Dropped", "Drop Date": ago(hours=8)})
    with patch("flexlaundry.services.scheduled_jobs.send_stuck_bag_alert_email", AsyncMock()):
        asyncio.run(scheduled_jobs.issue_detection(airtable, NOW))
        second = asyncio.run(scheduled_jobs.issue_detection(airtable, NOW))
    assert second["issuesCreated"] == 0
    assert len(airtable.rows("Issues")) == 1


# ============================================================================
# CRON ROUTES
# ============================================================================


def test_cron_requires_secret(client, cron_headers):
    assert client.get("/api/cron/sla-check").status_code == 401
    assert client.get("/api/cron/sla-check", headers={"Authorization": "Bearer wrong"}).status_code == 401


def test_cron_route_runs_job(client, cron_headers):
    job = AsyncMock(return_value={"processed": 0, "sent": 0, "errors": []})
    with patch.object(scheduled_jobs, "pause_reminders", job):
        response = client.post("/api/cron/pause-reminders", headers=cron_headers)
    assert response.status_code == 200
    assert response.json() == {"success": True, "processed": 0, "sent": 0, "errors": []}


def test_cron_route_reports_job_failure(client, cron_headers):
    with patch.object(scheduled_jobs, "reengagement", AsyncMock(side_effect=RuntimeError("airtable down"))):
        response = client.get("/api/cron/reengagement", headers=cron_headers)
    assert response.status_code == 500
    assert response.json()["detail"] == "Cron job failed"
