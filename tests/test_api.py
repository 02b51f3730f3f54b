"""HTTP contract of the quote and token routes."""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

from fastapi.testclient import TestClient

from quotedesk.main import create_app
from quotedesk.security import Principal, create_access_token
from support import OPERATOR_EMAIL, RecordingEmailTransport, make_settings


def _client(tmp_path, transport: RecordingEmailTransport):
    settings = make_settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    app = create_app(settings, email_transport=transport.transport)
    return TestClient(app), settings


def _bearer(settings, subject: str, email: str) -> dict:
    token = create_access_token(Principal(subject=subject, email=email), settings)
    return {"Authorization": f"Bearer {token}"}


def test_quote_flow_over_http(tmp_path):
    transport = RecordingEmailTransport()
    client, settings = _client(tmp_path, transport)
    admin = _bearer(settings, "user_admin", OPERATOR_EMAIL)

    with client:
        assert client.get("/health").json()["data"]["status"] == "healthy"

        bad = client.post("/quotes", json={"destination": "", "duration": 7, "participants": 2, "contact_email": "a@b.com"})
        assert bad.status_code == 400
        assert bad.json()["error"]["code"] == "VALIDATION_ERROR"

        created = client.post(
            "/quotes",
            json={"destination": "Peru", "duration": 10, "participants": 2, "contact_email": "traveler@example.com"},
        )
        assert created.status_code == 201
        quote_id = created.json()["data"]["quoteId"]

        update = {"status": "approved", "quoted_price": 4200, "quoted_currency": "USD"}
        assert client.patch(f"/admin/quotes/{quote_id}", json=update).status_code == 401
        intruder = _bearer(settings, "user_x", "random@evil.com")
        assert client.patch(f"/admin/quotes/{quote_id}", json=update, headers=intruder).status_code == 401
        assert client.patch("/admin/quotes/quote_missing", json=update, headers=admin).status_code == 404
        patched = client.patch(f"/admin/quotes/{quote_id}", json=update, headers=admin)
        assert patched.status_code == 200
        assert patched.json()["data"]["status"] == "approved"

        listed = client.get("/admin/quotes", headers=admin).json()["data"]
        assert listed["totalResults"] == 1

        notified = client.post(f"/admin/quotes/{quote_id}/notify-approved", headers=admin)
        assert notified.status_code == 200
        signup_link = notified.json()["data"]["signup_link"]
        token = parse_qs(urlparse(signup_link).query)["quote_token"][0]

        shown = client.get("/quote-tokens/validate", params={"token": token})
        assert shown.status_code == 200
        assert shown.json()["data"]["email"] == "traveler@example.com"
        assert client.get("/quote-tokens/validate", params={"token": "bogus"}).status_code == 404
        assert client.get("/quote-tokens/validate").status_code == 400

        signup = client.post(
            "/auth/signup",
            json={"email": "traveler@example.com", "password": "andes-2027", "quote_token": token},
        )
        assert signup.status_code == 201
        session = signup.json()["data"]
        assert session["quote_attached"] is True

        user_headers = {"Authorization": f"Bearer {session['access_token']}"}
        mine = client.get("/quotes/mine", headers=user_headers).json()["data"]
        assert [q["id"] for q in mine["quotes"]] == [quote_id]

        replay = client.post("/quote-tokens/consume", json={"token": token}, headers=user_headers)
        assert replay.status_code == 400
        assert replay.json()["error"]["code"] == "INVALID_TOKEN"

        assert client.post("/auth/check-email", json={"email": "traveler@example.com"}).json()["data"]["exists"] is True

    assert len(transport.requests) == 1


def test_notify_reports_provider_failure(tmp_path):
    transport = RecordingEmailTransport(status_code=500, body={"message": "provider down"})
    client, settings = _client(tmp_path, transport)
    admin = _bearer(settings, "user_admin", OPERATOR_EMAIL)

    with client:
        quote_id = client.post(
            "/quotes",
            json={"destination": "Chile", "duration": 8, "participants": 4, "contact_email": "group@example.com"},
        ).json()["data"]["quoteId"]

        premature = client.post(f"/admin/quotes/{quote_id}/notify-approved", headers=admin)
        assert premature.status_code == 400
        assert premature.json()["error"]["code"] == "INVALID_STATE"

        client.patch(f"/admin/quotes/{quote_id}", json={"status": "approved", "quoted_price": 9800}, headers=admin)
        failed = client.post(f"/admin/quotes/{quote_id}/notify-approved", headers=admin)
        assert failed.status_code == 500
        error = failed.json()["error"]
        assert error["code"] == "EMAIL_DELIVERY_FAILED"
        assert error["details"]["provider_status"] == 500

        detail = client.get(f"/admin/quotes/{quote_id}", headers=admin).json()["data"]
        assert detail["status"] == "approved"


def test_package_catalogue_and_bookings_over_http(tmp_path):
    client, settings = _client(tmp_path, RecordingEmailTransport())
    admin = _bearer(settings, "user_admin", OPERATOR_EMAIL)
    customer = _bearer(settings, "user_customer", "traveler@example.com")
    package = {
        "title": "Patagonia Trek",
        "destination": "Chile",
        "duration": 9,
        "price_usd": 3100,
        "max_participants": 6,
        "difficulty_level": "challenging",
        "itinerary": [{"day": 1, "title": "Puerto Natales", "activities": ["Gear check"]}],
    }

    with client:
        assert client.post("/admin/packages", json=package, headers=customer).status_code == 401
        created = client.post("/admin/packages", json=package, headers=admin)
        assert created.status_code == 201
        package_id = created.json()["data"]["id"]

        public = client.get("/packages").json()["data"]
        assert [p["id"] for p in public["packages"]] == [package_id]
        assert client.get(f"/packages/{package_id}").json()["data"]["itinerary"][0]["day"] == 1

        booked = client.post(f"/packages/{package_id}/bookings", json={"participants": 2}, headers=customer)
        assert booked.status_code == 201
        booking = booked.json()["data"]
        assert booking["package_id"] == package_id
        assert booking["total_amount"] == "6200.00"
        too_many = client.post(f"/packages/{package_id}/bookings", json={"participants": 7}, headers=customer)
        assert too_many.status_code == 400

        assert client.get(f"/bookings/{booking['id']}", headers=customer).status_code == 200
        assert client.get("/admin/bookings", headers=customer).status_code == 401
        admin_list = client.get("/admin/bookings", headers=admin).json()["data"]
        assert [b["id"] for b in admin_list["bookings"]] == [booking["id"]]
        assert client.get(f"/admin/bookings/{booking['id']}", headers=admin).json()["data"]["status"] == "pending"

        assert client.delete(f"/admin/packages/{package_id}", headers=admin).status_code == 409
        hidden = client.patch(f"/admin/packages/{package_id}", json={"is_active": False}, headers=admin)
        assert hidden.json()["data"]["is_active"] is False
        assert client.get(f"/packages/{package_id}").status_code == 404
        assert client.get("/admin/packages", headers=admin).json()["data"]["totalResults"] == 1


def test_quote_form_rejects_zero_adults(tmp_path):
    client, _ = _client(tmp_path, RecordingEmailTransport())
    with client:
        response = client.post(
            "/quotes",
            json={"destination": "Peru", "duration": 7, "contact_email": "a@example.com", "adults": 0},
        )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
