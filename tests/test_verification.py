import json
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from flexlaundry.main import app
from flexlaundry.routes.portal_auth import get_signup_verification_store
from flexlaundry.security_utils import verify_session_token
from flexlaundry.services.verification_service import MAX_ATTEMPTS, VerificationCodeStore, get_verification_store
from flexlaundry.shared.dates import to_iso, utc_now

PHONE = "+447700900123"


@pytest.fixture
def store(fake_redis):
    return VerificationCodeStore(client=fake_redis)


@pytest.fixture
def auth_client(client, store):
    app.dependency_overrides[get_verification_store] = lambda: store
    app.dependency_overrides[get_signup_verification_store] = lambda: store
    return client


def seed_member(airtable, **fields):
    return airtable.seed(
        "Members",
        "recMember1",
        {"Phone": PHONE, "First Name": "Alex", "Email": "alex@example.com", "Status": "Active", **fields},
    )


# ============================================================================
# CODE STORE
# ============================================================================


def test_issued_code_is_stored_with_ttl(store, fake_redis):
    code = store.issue(PHONE)
    assert len(code) == 6 and code.isdigit()
    assert json.loads(fake_redis.get(f"verify:{PHONE}")) == {"code": code}
    assert fake_redis.ttl(f"verify:{PHONE}") == 15 * 60


def test_code_is_consumed_on_success(store):
    code = store.issue(PHONE)
    assert store.verify(PHONE, code) == (True, None)
    valid, error = store.verify(PHONE, code)
    assert not valid
    assert "expired" in error


def test_wrong_codes_lock_the_code(store):
    code = store.issue(PHONE)
    wrong = "000000" if code != "000000" else "111111"
    for _ in range(MAX_ATTEMPTS):
        assert store.verify(PHONE, wrong) == (False, "Invalid code")

    valid, error = store.verify(PHONE, code)
    assert not valid
    assert "Too many attempts" in error


def test_wrong_code_is_counted_in_redis(store, fake_redis):
    store.issue(PHONE)
    assert store.verify(PHONE, "not-it")[0] is False

    assert fake_redis.get(f"verify:{PHONE}:attempts") == "1"
    assert fake_redis.ttl(f"verify:{PHONE}:attempts") == 15 * 60


def test_attempts_from_other_requests_lock_the_code(store, fake_redis):
    code = store.issue(PHONE)
    for _ in range(MAX_ATTEMPTS):
        fake_redis.incr(f"verify:{PHONE}:attempts")

    valid, error = store.verify(PHONE, code)

    assert not valid
    assert "Too many attempts" in error
    assert fake_redis.store == {}


def test_new_code_resets_attempts(store, fake_redis):
    store.issue(PHONE)
    store.verify(PHONE, "not-it")

    code = store.issue(PHONE)

    assert fake_redis.get(f"verify:{PHONE}:attempts") is None
    assert store.verify(PHONE, code) == (True, None)


def test_non_ascii_code_is_rejected(store):
    store.issue(PHONE)
    assert store.verify(PHONE, "１２３４５６") == (False, "Invalid code")


def test_expired_code_fails(store, fake_redis):
    code = store.issue(PHONE)
    fake_redis.delete(f"verify:{PHONE}")
    assert store.verify(PHONE, code)[0] is False


# ============================================================================
# ROUTES
# ============================================================================


def test_request_code_does_not_reveal_unknown_numbers(auth_client, fake_redis):
    with patch("flexlaundry.services.whatsapp_service.send_verification_code", AsyncMock()) as send:
        response = auth_client.post("/api/portal/request-code", json={"phone": "07700900123"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    send.assert_not_awaited()
    assert fake_redis.store == {}


def test_request_code_sends_code_to_known_member(auth_client, airtable, fake_redis):
    seed_member(airtable)
    with patch(
        "flexlaundry.services.whatsapp_service.send_verification_code", AsyncMock(return_value=(True, None))
    ) as send:
        response = auth_client.post("/api/portal/request-code", json={"phone": "07700 900123"})

    assert response.status_code == 200
    stored = json.loads(fake_redis.get(f"verify:{PHONE}"))
    send.assert_awaited_once_with(PHONE, stored["code"])


def test_request_code_requires_phone(auth_client):
    assert auth_client.post("/api/portal/request-code", json={}).status_code == 400


@pytest.mark.parametrize(
    "path, body",
    [
        ("/api/portal/request-code", {"phone": "abc"}),
        ("/api/portal/verify-code", {"phone": "abc", "code": "123456"}),
        ("/api/member/send-login-link", {"phone": "n/a"}),
        ("/api/verify-phone/send", {"phone": "abc"}),
        ("/api/verify-phone/check", {"phone": "abc", "code": "123456"}),
    ],
)
def test_phone_without_digits_is_a_bad_request(auth_client, path, body):
    response = auth_client.post(path, json=body)

    assert response.status_code == 400
    assert response.json()["detail"] == "Phone number must contain digits"


def test_verify_code_sets_session_cookie(auth_client, airtable, store):
    seed_member(airtable)
    code = store.issue(PHONE)

    response = auth_client.post("/api/portal/verify-code", json={"phone": "07700900123", "code": code})

    assert response.status_code == 200
    assert response.json()["redirect"] == "/portal/dashboard"
    session = verify_session_token(response.cookies["flex_auth"])
    assert session["memberId"] == "recMember1"
    assert session["phone"] == PHONE


def test_consumed_code_is_rejected(auth_client, airtable, store):
    seed_member(airtable)
    code = store.issue(PHONE)
    assert auth_client.post("/api/portal/verify-code", json={"phone": PHONE, "code": code}).status_code == 200

    response = auth_client.post("/api/portal/verify-code", json={"phone": PHONE, "code": code})
    assert response.status_code == 401


def test_expired_code_is_rejected(auth_client, airtable, store, fake_redis):
    seed_member(airtable)
    code = store.issue(PHONE)
    fake_redis.delete(f"verify:{PHONE}")

    response = auth_client.post("/api/portal/verify-code", json={"phone": PHONE, "code": code})
    assert response.status_code == 401


def test_token_login_is_single_use(auth_client, airtable):
    seed_member(airtable, **{"Login Token": "abc123", "Token Expiry": to_iso(utc_now() + timedelta(hours=2))})

    first = auth_client.post("/api/portal/token-login", json={"token": "abc123"})
    assert first.status_code == 200
    assert "flex_auth" in first.cookies
    assert airtable.tables["Members"]["recMember1"]["fields"]["Login Token"] == ""

    # The fake ignores formulas, so the cleared expiry is what rejects the replay
    second = auth_client.post("/api/portal/token-login", json={"token": "abc123"})
    assert second.status_code == 401


def test_expired_login_link_is_rejected(auth_client, airtable):
    seed_member(airtable, **{"Login Token": "abc123", "Token Expiry": to_iso(utc_now() - timedelta(minutes=1))})
    response = auth_client.post("/api/portal/token-login", json={"token": "abc123"})
    assert response.status_code == 401


def test_send_login_link_unknown_number(auth_client):
    response = auth_client.post("/api/member/send-login-link", json={"phone": PHONE})
    assert response.status_code == 404


def test_send_login_link_falls_back_to_email(auth_client, airtable):
    seed_member(airtable)
    with patch(
        "flexlaundry.services.whatsapp_service.send_login_link", AsyncMock(return_value=(False, "no template"))
    ), patch("flexlaundry.routes.portal_auth.send_login_link_email", AsyncMock()) as email:
        response = auth_client.post("/api/member/send-login-link", json={"phone": PHONE})

    assert response.status_code == 200
    assert response.json()["channel"] == "email"
    token = airtable.tables["Members"]["recMember1"]["fields"]["Login Token"]
    assert len(token) == 64
    assert email.await_args.args[2].endswith(f"/member/dashboard?token={token}")


def test_signup_verification_rejects_non_uk_numbers(auth_client):
    response = auth_client.post("/api/verify-phone/send", json={"phone": "+14155550100"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Please enter a valid UK phone number"


def test_signup_verification_creates_pending_member(auth_client, airtable, store):
    code = store.issue(PHONE)
    response = auth_client.post("/api/verify-phone/check", json={"phone": PHONE, "code": code})

    assert response.status_code == 200
    member_id = response.json()["memberId"]
    member = airtable.tables["Members"][member_id]["fields"]
    assert member["Status"] == "Pending"
    assert member["Phone"] == PHONE


def test_portal_requires_session(client):
    assert client.get("/api/portal/me").status_code == 401
    client.cookies.set("flex_auth", "not-a-jwt")
    assert client.get("/api/portal/me").status_code == 401
