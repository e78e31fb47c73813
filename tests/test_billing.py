import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import stripe
from fastapi import HTTPException

from flexlaundry.constants import MEMBER_ACTIVE, MEMBER_CANCELLED, MEMBER_PAST_DUE, MEMBER_PAUSED
from flexlaundry.domain.billing.plans import PLANS, get_plan
from flexlaundry.domain.billing.schemas import CancelRequest, ChangePlanRequest, PauseRequest
from flexlaundry.domain.billing.subscription_service import SubscriptionService
from flexlaundry.domain.billing.webhooks import map_subscription_status

FAILED_AT = "2025-10-01T09:00:00.000Z"


def post_event(client, event):
    stripe_mock = MagicMock()
    stripe_mock.construct_event.return_value = event
    with patch("flexlaundry.domain.billing.webhooks.stripe_service", stripe_mock):
        return client.post("/api/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1,v1=abc"})


def seed_subscriber(airtable, **fields):
    base = {
        "First Name": "Alex",
        "Phone": "+447700900123",
        "Email": "alex@example.com",
        "Status": MEMBER_ACTIVE,
        "Subscription Tier": "Essential",
        "Drops Remaining": 4,
        "Stripe Customer ID": "cus_1",
        "Stripe Subscription ID": "sub_1",
    }
    return airtable.seed("Members", "recMember1", {**base, **fields})


# ============================================================================
# PLANS
# ============================================================================


def test_get_plan_by_name_or_id():
    assert get_plan("Essential")["drops"] == 10
    assert get_plan("unlimited")["drops"] == 16
    assert get_plan("gold") is None
    assert get_plan(None) is None


def test_pause_days_are_clamped():
    assert PauseRequest().days == 14
    assert PauseRequest(days=60).days == 30
    with pytest.raises(ValueError):
        PauseRequest(days=0)


# ============================================================================
# WEBHOOKS
# ============================================================================


def test_webhook_rejects_bad_signature(client):
    stripe_mock = MagicMock()
    stripe_mock.construct_event.side_effect = stripe.SignatureVerificationError("No signatures found", "bad")
    with patch("flexlaundry.domain.billing.webhooks.stripe_service", stripe_mock):
        response = client.post("/api/webhooks/stripe", content=b"{}", headers={"stripe-signature": "bad"})
    assert response.status_code == 400


def test_checkout_completed_creates_member(client, airtable):
    airtable.seed("Gyms", "recGym1", {"Name": "The Yard", "Code": "YARD"})
    event = {
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": "cs_1",
                "customer": "cus_1",
                "subscription": "sub_1",
                "customer_details": {"email": "alex@example.com"},
                "metadata": {"planId": "essential", "gymCode": "YARD", "firstName": "Alex", "phone": "07700 900123"},
            }
        },
    }

    with patch("flexlaundry.services.whatsapp_service.send_welcome", AsyncMock(return_value=(True, None))) as welcome, patch(
        "flexlaundry.domain.billing.webhooks.send_welcome_email", AsyncMock()
    ) as welcome_email:
        response = post_event(client, event)

    assert response.status_code == 200
    assert response.json() == {"received": True}
    [member] = airtable.rows("Members")
    fields = member["fields"]
    assert fields["Phone"] == "+447700900123"
    assert fields["Status"] == MEMBER_ACTIVE
    assert fields["Drops Remaining"] == 10
    assert fields["Gym"] == ["recGym1"]
    assert fields["Stripe Subscription ID"] == "sub_1"
    welcome.assert_awaited_once_with("+447700900123", "Alex", "Essential", "The Yard")
    welcome_email.assert_awaited_once()


def test_checkout_completed_activates_pending_member(client, airtable):
    airtable.seed("Members", "recPending", {"Phone": "+447700900123", "Status": "Pending", "First Name": "Alex"})
    event = {
        "type": "checkout.session.completed",
        "data": {"object": {"id": "cs_1", "customer_email": "alex@example.com", "metadata": {"planId": "oneoff", "phone": "+447700900123"}}},
    }

    with patch("flexlaundry.services.whatsapp_service.send_welcome", AsyncMock(return_value=(True, None))), patch(
        "flexlaundry.domain.billing.webhooks.send_welcome_email", AsyncMock()
    ):
        post_event(client, event)

    [member] = airtable.rows("Members")
    assert member["id"] == "recPending"
    assert member["fields"]["Status"] == MEMBER_ACTIVE
    assert member["fields"]["Subscription Tier"] == "One-Off"


def test_payment_failed_keeps_first_failure_date(client, airtable):
    seed_subscriber(airtable, **{"Payment Failed Date": FAILED_AT, "Day 3 Reminder Sent": True})
    event = {"type": "invoice.payment_failed", "data": {"object": {"object": "invoice", "id": "in_1", "subscription": "sub_1"}}}

    with patch("flexlaundry.domain.billing.webhooks.send_payment_failed_email", AsyncMock()):
        post_event(client, event)

    fields = airtable.tables["Members"]["recMember1"]["fields"]
    assert fields["Status"] == MEMBER_PAST_DUE
    assert fields["Payment Failed Date"] == FAILED_AT
    assert fields["Day 3 Reminder Sent"] is True


def test_first_payment_failure_starts_retry_schedule(client, airtable):
    seed_subscriber(airtable)
    event = {"type": "invoice.payment_failed", "data": {"object": {"object": "invoice", "id": "in_1", "subscription": "sub_1"}}}

    with patch("flexlaundry.domain.billing.webhooks.send_payment_failed_email", AsyncMock()) as email:
        post_event(client, event)

    fields = airtable.tables["Members"]["recMember1"]["fields"]
    assert fields["Payment Failed Date"]
    assert fields["Day 3 Reminder Sent"] is False
    assert fields["Day 7 Reminder Sent"] is False
    email.assert_awaited_once()


def test_renewal_resets_drops(client, airtable):
    seed_subscriber(airtable, **{"Drops Remaining": 0, "Status": MEMBER_PAST_DUE, "Payment Failed Date": FAILED_AT})
    event = {
        "type": "invoice.payment_succeeded",
        "data": {"object": {"object": "invoice", "id": "in_2", "subscription": "sub_1", "billing_reason": "subscription_cycle"}},
    }

    post_event(client, event)

    fields = airtable.tables["Members"]["recMember1"]["fields"]
    assert fields["Drops Remaining"] == 10
    assert fields["Status"] == MEMBER_ACTIVE
    assert fields["Payment Failed Date"] is None


def test_first_invoice_does_not_reset_drops(client, airtable):
    seed_subscriber(airtable, **{"Drops Remaining": 2})
    event = {
        "type": "invoice.payment_succeeded",
        "data": {"object": {"object": "invoice", "subscription": "sub_1", "billing_reason": "subscription_create"}},
    }
    post_event(client, event)
    assert airtable.tables["Members"]["recMember1"]["fields"]["Drops Remaining"] == 2


def test_subscription_deleted_cancels_member(client, airtable):
    seed_subscriber(airtable)
    post_event(client, {"type": "customer.subscription.deleted", "data": {"object": {"id": "sub_1", "customer": "cus_1"}}})
    assert airtable.tables["Members"]["recMember1"]["fields"]["Status"] == MEMBER_CANCELLED


def test_webhook_handler_error_returns_500(client, airtable):
    airtable.seed("Members", "recMember1", {"Stripe Subscription ID": "sub_1"})
    airtable.update_record = AsyncMock(side_effect=RuntimeError("airtable down"))
    response = post_event(
        client, {"type": "customer.subscription.updated", "data": {"object": {"id": "sub_1", "status": "active"}}}
    )
    assert response.status_code == 500


@pytest.mark.parametrize(
    "subscription,expected",
    [
        ({"status": "active"}, MEMBER_ACTIVE),
        ({"status": "trialing"}, MEMBER_ACTIVE),
        ({"status": "past_due"}, MEMBER_PAST_DUE),
        ({"status": "canceled"}, MEMBER_CANCELLED),
        ({"status": "active", "pause_collection": {"behavior": "void"}}, MEMBER_PAUSED),
    ],
)
def test_map_subscription_status(subscription, expected):
    assert map_subscription_status(subscription) == expected


# ============================================================================
# SUBSCRIPTION MANAGEMENT
# ============================================================================


@pytest.fixture
def stripe_mock():
    mock = MagicMock()
    mock.cancel_subscription.return_value = {"id": "sub_1", "status": "active", "current_period_end": 1761955200}
    with patch("flexlaundry.domain.billing.subscription_service.stripe_service", mock):
        yield mock


@pytest.fixture
def quiet_notifications():
    with patch("flexlaundry.services.whatsapp_service.send_whatsapp", AsyncMock(return_value=(True, None))), patch(
        "flexlaundry.services.whatsapp_service.send_pause_confirmed", AsyncMock(return_value=(True, None))
    ), patch("flexlaundry.services.whatsapp_service.send_cancel_confirmation", AsyncMock(return_value=(True, None))), patch(
        "flexlaundry.domain.billing.subscription_service.send_pause_confirmation_email", AsyncMock()
    ), patch(
        "flexlaundry.domain.billing.subscription_service.send_cancellation_email", AsyncMock()
    ):
        yield


def test_pause_marks_member_paused(airtable, stripe_mock, quiet_notifications):
    member = seed_subscriber(airtable)
    result = asyncio.run(SubscriptionService(airtable).pause(member, 30))

    assert result["success"] is True
    subscription_id, resumes_at = stripe_mock.pause_subscription.call_args.args
    assert subscription_id == "sub_1"
    assert resumes_at > 0
    assert airtable.tables["Members"]["recMember1"]["fields"]["Status"] == MEMBER_PAUSED


def test_pause_without_subscription(airtable, stripe_mock):
    member = airtable.seed("Members", "recMember1", {"Status": MEMBER_ACTIVE})
    with pytest.raises(HTTPException) as exc:
        asyncio.run(SubscriptionService(airtable).pause(member, 14))
    assert exc.value.status_code == 400


def test_cancel_at_period_end_keeps_status(airtable, stripe_mock, quiet_notifications):
    member = seed_subscriber(airtable)
    result = asyncio.run(SubscriptionService(airtable).cancel(member, CancelRequest(reason="Moving away")))

    fields = airtable.tables["Members"]["recMember1"]["fields"]
    assert fields["Status"] == MEMBER_ACTIVE
    assert fields["Cancel At Period End"] is True
    assert fields["Cancellation Reason"] == "Moving away"
    assert result["endDate"] == 1761955200
    assert result["dropsRemaining"] == 4
    stripe_mock.cancel_subscription.assert_called_once_with("sub_1", immediate=False)


def test_cancel_immediately(airtable, stripe_mock, quiet_notifications):
    member = seed_subscriber(airtable)
    asyncio.run(SubscriptionService(airtable).cancel(member, CancelRequest(immediate=True)))

    fields = airtable.tables["Members"]["recMember1"]["fields"]
    assert fields["Status"] == MEMBER_CANCELLED
    assert fields["Cancellation Reason"] == "Not specified"


def test_change_plan_adds_allowance_difference(airtable, stripe_mock, quiet_notifications, monkeypatch):
    monkeypatch.setitem(PLANS["Unlimited"], "stripePriceId", "price_unlimited")
    member = seed_subscriber(airtable)

    result = asyncio.run(SubscriptionService(airtable).change_plan(member, ChangePlanRequest(newPlan="Unlimited")))

    assert result["dropsRemaining"] == 10
    assert airtable.tables["Members"]["recMember1"]["fields"]["Subscription Tier"] == "Unlimited"
    stripe_mock.change_price.assert_called_once_with("sub_1", "price_unlimited")


def test_downgrade_never_goes_negative(airtable, stripe_mock, quiet_notifications, monkeypatch):
    monkeypatch.setitem(PLANS["Essential"], "stripePriceId", "price_essential")
    member = seed_subscriber(airtable, **{"Subscription Tier": "Unlimited", "Drops Remaining": 3})

    result = asyncio.run(SubscriptionService(airtable).change_plan(member, ChangePlanRequest(newPlan="essential")))

    assert result["dropsRemaining"] == 0


@pytest.mark.parametrize("new_plan,detail", [("oneoff", "Invalid plan"), ("gold", "Invalid plan"), ("Essential", "You are already on this plan")])
def test_change_plan_rejections(airtable, stripe_mock, new_plan, detail):
    member = seed_subscriber(airtable)
    with pytest.raises(HTTPException) as exc:
        asyncio.run(SubscriptionService(airtable).change_plan(member, ChangePlanRequest(newPlan=new_plan)))
    assert exc.value.status_code == 400
    assert exc.value.detail == detail
    stripe_mock.change_price.assert_not_called()


# ============================================================================
# CHECKOUT
# ============================================================================


@pytest.mark.parametrize(
    "body",
    [
        {"email": "alex@example.com", "phone": "07700900123"},
        {"planId": "essential", "phone": "07700900123"},
        {"planId": "essential", "email": "alex@example.com"},
        {"planId": "gold", "email": "alex@example.com", "phone": "07700900123"},
    ],
)
def test_checkout_validation(client, body):
    assert client.post("/api/checkout", json=body).status_code == 400


def test_checkout_returns_hosted_url(client, stripe_mock, monkeypatch):
    monkeypatch.setitem(PLANS["Essential"], "stripePriceId", "price_essential")
    stripe_mock.create_checkout_session.return_value = {"id": "cs_1", "url": "https://checkout.stripe.com/c/cs_1"}

    response = client.post(
        "/api/checkout", json={"planId": "essential", "email": "alex@example.com", "phone": "07700 900123", "firstName": "Alex"}
    )

    assert response.json() == {"url": "https://checkout.stripe.com/c/cs_1", "sessionId": "cs_1"}
    kwargs = stripe_mock.create_checkout_session.call_args.kwargs
    assert kwargs["mode"] == "subscription"
    assert kwargs["metadata"]["phone"] == "+447700900123"


def test_checkout_rejects_phone_without_digits(client, stripe_mock):
    response = client.post("/api/checkout", json={"planId": "essential", "email": "alex@example.com", "phone": "n/a"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Phone number must contain digits"
    stripe_mock.create_checkout_session.assert_not_called()
