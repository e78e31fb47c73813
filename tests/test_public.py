import pytest

from flexlaundry.cache import Cache
from flexlaundry.main import app
from flexlaundry.services.cms_service import CMSService, get_cms_service


@pytest.fixture
def public_client(client, airtable, fake_redis):
    app.dependency_overrides[get_cms_service] = lambda: CMSService(airtable, Cache(fake_redis))
    return client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert "X-Frame-Options" not in response.headers


def test_plans_hide_stripe_prices(client):
    response = client.get("/api/plans")

    plans = response.json()["plans"]
    assert [plan["id"] for plan in plans] == ["oneoff", "essential"]
    assert all("stripePriceId" not in plan for plan in plans)


def test_security_headers(client):
    headers = client.get("/api/plans").headers
    assert headers["X-Frame-Options"] == "DENY"
    assert headers["X-Content-Type-Options"] == "nosniff"
    assert headers["Content-Security-Policy"].startswith("default-src 'none'")
    assert headers["Cache-Control"] == "no-store"
    assert "Strict-Transport-Security" not in headers


@pytest.mark.parametrize(
    "body",
    [{"email": "a@example.com", "gymName": "Gym X"}, {"firstName": "Alex", "gymName": "Gym X"}, {"firstName": "Alex", "email": "a@example.com"}],
)
def test_register_interest_requires_fields(public_client, body):
    assert public_client.post("/api/register-interest", json=body).status_code == 400


def test_register_interest(public_client, airtable):
    response = public_client.post(
        "/api/register-interest", json={"firstName": "Alex", "email": "alex@example.com", "gymName": "Gym X"}
    )

    assert response.json() == {"success": True, "message": "Interest registered successfully"}
    [row] = airtable.rows("Gym Interest")
    assert row["fields"]["Status"] == "New"
    assert row["fields"]["Last Name"] == ""


def test_config_key_not_found(public_client):
    assert public_client.get("/api/config/hero_title").status_code == 404


def test_config_key(public_client, airtable):
    airtable.seed("Config", "rec1", {"Key": "launch_gyms", "Value": '["YARD"]'})
    assert public_client.get("/api/config/launch_gyms").json() == {"key": "launch_gyms", "value": ["YARD"]}


def test_faq(public_client, airtable):
    airtable.seed("FAQ", "rec1", {"Question": "How long?", "Answer": "48 hours", "Published": True})
    assert public_client.get("/api/faq").json()["faqs"][0]["category"] == "General"


def test_discount_validation_route(public_client):
    assert public_client.post("/api/discounts/validate", json={}).json() == {"valid": False, "error": "Invalid code"}


def test_validation_errors_return_422(ops_client):
    response = ops_client.post("/api/ops/bags/action", json={"action": "issue"})
    assert response.status_code == 422
