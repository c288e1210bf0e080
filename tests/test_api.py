import json

import pytest
from fastapi.testclient import TestClient

from conftest import completed_event
from repairhub.database import get_db
from repairhub.main import app
from repairhub.repositories.dynamodb_repository import get_tables
from repairhub.services.gemini_client import get_gemini_client
from repairhub.services.stripe_client import get_checkout_gateway
from repairhub.services.tomtom_client import get_tomtom_client
from repairhub.utils.errors import ExternalServiceError

USER = {"X-User-Id": "user-1"}
REPAIRER = {"X-User-Id": "rep-1", "X-User-Role": "repairer"}

NEW_REQUEST = {
    "title": "Laptop won't charge",
    "description": "Battery stuck at 0%",
    "category": "electronics",
    "imageUrls": ["https://img.test/before-1.jpg"],
    "location": {"latitude": 0.0, "longitude": 0.05, "address": "Somewhere"},
}


class FakeMaps:
    def reverse_geocode(self, latitude, longitude):
        if latitude == 0 and longitude == 0:
            return None
        return "1 Main Street, Bengaluru"

    def route(self, origin, destination):
        if origin == destination:
            raise ExternalServiceError("Map service is unavailable.")
        return [origin, destination]


@pytest.fixture
def client(tables, db, ai, gateway):
    app.dependency_overrides[get_tables] = lambda: tables
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_gemini_client] = lambda: ai
    app.dependency_overrides[get_checkout_gateway] = lambda: gateway
    app.dependency_overrides[get_tomtom_client] = lambda: FakeMaps()
    yield TestClient(app)
    app.dependency_overrides.clear()


def _submit(client):
    resp = client.post("/requests", json=NEW_REQUEST, headers=USER)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_missing_identity_is_401(client):
    assert client.get("/requests").status_code == 401


def test_submit_returns_request_and_report(client):
    body = _submit(client)

    assert body["request"]["status"] == "diagnosed"
    assert body["request"]["userId"] == "user-1"
    report = body["diagnosticReport"]
    assert report["estimatedComplexity"] == "high"
    assert report["estimatedCost"] == {"min": 200.0, "max": 400.0, "minInr": 15000, "maxInr": 30000}


def test_invalid_body_is_rejected(client):
    resp = client.post("/requests", json={**NEW_REQUEST, "title": ""}, headers=USER)
    assert resp.status_code == 422
    resp = client.post("/requests", json={**NEW_REQUEST, "category": "spaceships"}, headers=USER)
    assert resp.status_code == 400


def test_read_permissions_and_not_found(client):
    request_id = _submit(client)["request"]["id"]

    assert client.get(f"/requests/{request_id}", headers=USER).status_code == 200
    assert client.get(f"/requests/{request_id}", headers={"X-User-Id": "stranger"}).status_code == 403
    admin = {"X-User-Id": "ops", "X-User-Role": "admin"}
    assert client.get(f"/requests/{request_id}", headers=admin).status_code == 200
    assert client.get("/requests/missing", headers=USER).status_code == 404


def test_list_my_requests(client):
    first = _submit(client)["request"]["id"]
    second = _submit(client)["request"]["id"]
    resp = client.get("/requests", headers=USER)
    assert [r["id"] for r in resp.json()] == [second, first]


def test_diagnostic_endpoints(client, ai):
    request_id = _submit(client)["request"]["id"]
    got = client.get(f"/requests/{request_id}/diagnostic", headers=USER).json()
    generated = client.post(f"/requests/{request_id}/diagnostic", headers=USER).json()
    assert got["id"] == generated["id"]
    assert len(ai.text_calls) == 1


def test_repairer_flow_through_payment(client, gateway):
    request_id = _submit(client)["request"]["id"]

    profile = {"categories": ["electronics"], "serviceArea": 10, "location": {"latitude": 0.0, "longitude": 0.0}}
    assert client.put("/repairers/me", json=profile, headers=REPAIRER).status_code == 200

    available = client.get("/requests/available", headers=REPAIRER).json()
    assert [a["request"]["id"] for a in available] == [request_id]
    assert available[0]["distanceKm"] == pytest.approx(5.56, abs=0.01)

    assert client.post(f"/requests/{request_id}/accept", headers=REPAIRER).json()["status"] == "accepted"
    assert client.post(f"/requests/{request_id}/start", headers=REPAIRER).json()["status"] == "in_progress"

    done = client.post(
        f"/requests/{request_id}/complete",
        json={"imageUrl": "https://img.test/after.jpg", "note": "New battery"},
        headers=REPAIRER,
    ).json()
    assert done["verification"]["verified"] is True
    assert done["request"]["status"] == "verified"

    priced = client.post(f"/requests/{request_id}/price", json={"price": 1200}, headers=REPAIRER)
    assert priced.json()["status"] == "awaiting_payment"

    assigned = client.get("/requests/assigned", headers=REPAIRER).json()
    assert [r["id"] for r in assigned] == [request_id]

    checkout = client.post(
        "/create-checkout-session",
        json={"requestId": request_id, "userId": "user-1", "repairerId": "rep-1", "amount": 1200},
        headers=USER,
    )
    assert checkout.status_code == 200, checkout.text
    assert checkout.json() == {"sessionId": "cs_test_1", "redirectUrl": "https://checkout.stripe.test/cs_test_1"}

    resp = client.post(
        "/stripe-webhook",
        content=json.dumps(completed_event(request_id, "cs_test_1")),
        headers={"Stripe-Signature": "t=1,v1=ok"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"received": True}
    assert client.get(f"/requests/{request_id}", headers=USER).json()["status"] == "paid"

    audit = client.get(f"/requests/{request_id}/verifications", headers=USER).json()
    assert audit[0]["completionNote"] == "New battery"


def test_transition_errors_map_to_409(client):
    request_id = _submit(client)["request"]["id"]
    assert client.post(f"/requests/{request_id}/cancel", headers=USER).status_code == 200
    resp = client.post(f"/requests/{request_id}/accept", headers=REPAIRER)
    assert resp.status_code == 409


def test_checkout_validation(client):
    request_id = _submit(client)["request"]["id"]
    body = {"requestId": request_id, "userId": "user-1", "repairerId": "rep-1", "amount": 0}
    assert client.post("/create-checkout-session", json=body, headers=USER).status_code == 422

    body["amount"] = 100
    body.pop("repairerId")
    assert client.post("/create-checkout-session", json=body, headers=USER).status_code == 422

    body["repairerId"] = "rep-1"
    body["userId"] = "someone-else"
    assert client.post("/create-checkout-session", json=body, headers=USER).status_code == 403


def test_webhook_bad_signature_is_400(client):
    resp = client.post("/stripe-webhook", content=b"{}", headers={"Stripe-Signature": "bad"})
    assert resp.status_code == 400


def test_webhook_bookkeeping_error_still_acknowledged(client):
    # diagnosed 상태 요청에 대한 결제 완료 이벤트 → 전이 불가지만 200
    request_id = _submit(client)["request"]["id"]
    resp = client.post(
        "/stripe-webhook",
        content=json.dumps(completed_event(request_id, "cs_x")),
        headers={"Stripe-Signature": "t=1,v1=ok"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"received": True}


def test_nearby_repairers(client):
    client.put(
        "/repairers/me",
        json={"categories": ["electronics"], "serviceArea": 10, "location": {"latitude": 0.0, "longitude": 0.0}},
        headers=REPAIRER,
    )
    found = client.get("/repairers/nearby", params={"lat": 0, "lon": 0.05, "radiusKm": 50, "category": "electronics"})
    assert [r["repairer"]["id"] for r in found.json()] == ["rep-1"]

    none = client.get("/repairers/nearby", params={"lat": 0, "lon": 0.05, "category": "furniture"})
    assert none.json() == []

    assert client.get("/repairers/nearby", params={"lat": 0, "lon": 0, "category": "rockets"}).status_code == 400
    assert client.get("/repairers/rep-1").json()["serviceArea"] == 10
    assert client.get("/repairers/ghost").status_code == 404


def test_geo_endpoints(client):
    assert client.get("/geo/reverse", params={"lat": 12.9, "lon": 77.6}).json() == {
        "address": "1 Main Street, Bengaluru"
    }
    assert client.get("/geo/reverse", params={"lat": 0, "lon": 0}).json() == {"address": None}

    route = client.get("/geo/route", params={"fromLat": 1, "fromLon": 2, "toLat": 3, "toLon": 4}).json()
    assert route["points"] == [{"latitude": 1, "longitude": 2}, {"latitude": 3, "longitude": 4}]

    failed = client.get("/geo/route", params={"fromLat": 1, "fromLon": 2, "toLat": 1, "toLon": 2})
    assert failed.status_code == 502
