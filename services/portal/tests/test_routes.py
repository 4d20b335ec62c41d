import httpx
import json
import jwt
import pytest
from fastapi.testclient import TestClient
from conftest import JWT_SECRET, make_token
from app.main import app, settings as app_settings
from app.application.page_store import PageStateStore

CLIENT_PRODUCT = {
    "_id": "p1", "name": "Drill", "sku": "DR-1", "isClientUploaded": True,
    "clientInventory": {"currentStock": 3, "reorderLevel": 5},
}

def auth(user_id="client-1", role="client", **stored_user):
    headers = {"Authorization": f"Bearer {make_token(user_id, role)}"}
    if stored_user:
        headers["X-Session-User"] = json.dumps(stored_user)
    return headers

@pytest.fixture
def client(http_client, settings):
    app.state.http_client = http_client
    app.state.page_store = PageStateStore(settings)
    with TestClient(app) as test_client:
        yield test_client
    app.state.http_client = None
    app.state.page_store = None

def test_health(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    assert resp.json()["service"] == "portal-service"

def test_missing_token(client):
    resp = client.get('/inventory/')
    assert resp.status_code == 401

def test_wrong_role(client, upstream):
    resp = client.get('/organizations/', headers=auth())
    assert resp.status_code == 403
    assert upstream.calls == []

def test_session(client):
    resp = client.get('/session/', headers=auth(name="Acme Traders", organizationId={"_id": "org-1"}))
    assert resp.status_code == 200
    assert resp.json() == {
        "id": "client-1",
        "role": "client",
        "name": "Acme Traders",
        "email": None,
        "organizationId": "org-1",
    }

def test_inventory_page(client, upstream):
    upstream.add("GET", "/api/client-inventory", json={"products": [CLIENT_PRODUCT]})
    resp = client.get('/inventory/', headers=auth())
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    assert body["endpoint"] == "client-inventory"
    assert body["errorKind"] is None
    item = body["items"][0]
    assert item["productName"] == "Drill"
    assert item["status"] == "low_stock"
    assert item["reorderLevel"] == 5

def test_page_state_survives_between_requests(client, upstream):
    upstream.add("GET", "/api/client-inventory", json={"products": [CLIENT_PRODUCT]})
    client.get('/inventory/', headers=auth())
    resp = client.get('/inventory/?status=in_stock', headers=auth())
    assert resp.json()["items"] == []
    assert upstream.paths("GET").count("/api/client-inventory") == 1

def test_list_failure_renders_empty_page(client, upstream):
    resp = client.get('/dealer-slots/', headers=auth())
    assert resp.status_code == 200
    body = resp.json()
    assert body["items"] == []
    assert body["error"].startswith("dealer-slots:")
    assert body["errorKind"] == "server"

def test_relogin_after_repeated_auth_failures(client, upstream):
    for path in ("/api/client-inventory", "/api/products/debug-client-inventory", "/api/products"):
        upstream.add("GET", path, status=401, json={"message": "Token expired"})
    for _ in range(3):
        resp = client.get('/inventory/?refresh=true', headers=auth())
    body = resp.json()
    assert body["errorKind"] == "auth"
    assert body["needsRelogin"] is True

def test_adjustment_requires_reason(client, upstream):
    upstream.add("GET", "/api/client-inventory", json={"products": [CLIENT_PRODUCT]})
    resp = client.patch('/inventory/p1', json={"quantity": 9}, headers=auth())
    assert resp.status_code == 422
    body = resp.json()
    assert body["errorKind"] == "validation"
    assert body["errors"]["reason"] == "Please provide a reason for quantity adjustment"
    assert upstream.paths("PATCH") == []

def test_adjustment_server_message_passed_through(client, upstream):
    upstream.add("GET", "/api/client-inventory", json={"products": [CLIENT_PRODUCT]})
    upstream.add("PATCH", "/api/products/p1/client-inventory", status=400, json={"message": "Stock limit exceeded"})
    resp = client.patch('/inventory/p1', json={"quantity": 9, "reason": "Delivery"}, headers=auth())
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Stock limit exceeded", "errorKind": "server"}

def test_adjustment_returns_updated_page(client, upstream):
    upstream.add("GET", "/api/client-inventory", json={"products": [CLIENT_PRODUCT]})
    updated = dict(CLIENT_PRODUCT, clientInventory={"currentStock": 9, "reorderLevel": 5})
    upstream.add("PATCH", "/api/products/p1/client-inventory", json={"product": updated})
    resp = client.patch('/inventory/p1', json={"quantity": 9, "reason": "Delivery"}, headers=auth())
    assert resp.status_code == 200
    assert resp.json()["items"][0]["quantity"] == 9
    assert resp.json()["items"][0]["status"] == "in_stock"

def test_unknown_record(client, upstream):
    upstream.add("GET", "/api/client-inventory", json={"products": []})
    resp = client.patch('/inventory/missing', json={"quantity": 1, "reason": "x"}, headers=auth())
    assert resp.status_code == 404

def test_reject_without_reason(client, upstream):
    upstream.add("GET", "/api/product-requests", json=[{"_id": "r1", "status": "pending"}])
    resp = client.post('/admin/purchase-requests/r1/reject', json={"reason": ""}, headers=auth("admin-1", "admin"))
    assert resp.status_code == 422
    assert resp.json()["detail"] == "Please provide a reason for rejection"

def test_notifications_unread_filter(client, upstream):
    upstream.add("GET", "/api/notifications", json={"notifications": [
        {"_id": "n1", "type": "purchase_request_approved", "read": True},
        {"_id": "n2", "type": "purchase_request_rejected", "read": False},
    ]})
    resp = client.get('/notifications/?unread_only=true', headers=auth())
    body = resp.json()
    assert [n["id"] for n in body["items"]] == ["n2"]
    assert body["unreadCount"] == 1

def test_login_token_with_nested_user(client, upstream):
    token = jwt.encode({"user": {"id": "client-1", "role": "client", "organizationId": "org-1"}}, JWT_SECRET, algorithm="HS256")
    headers = {"Authorization": f"Bearer {token}"}
    resp = client.get('/session/', headers=headers)
    assert resp.status_code == 200
    assert resp.json()["id"] == "client-1"
    assert resp.json()["organizationId"] == "org-1"

    upstream.add("GET", "/api/client-inventory", json={"products": [CLIENT_PRODUCT]})
    resp = client.get('/inventory/', headers=headers)
    assert resp.status_code == 200
    assert resp.json()["total"] == 1

def test_adjustment_accepted_when_refetch_fails(client, upstream):
    upstream.add("GET", "/api/client-inventory", json={"products": [CLIENT_PRODUCT]})
    upstream.add("GET", "/api/client-inventory", status=500, json={"message": "Database unavailable"})
    upstream.add("PATCH", "/api/products/p1/client-inventory", status=204)
    resp = client.patch('/inventory/p1', json={"quantity": 9, "reason": "Delivery"}, headers=auth())
    assert resp.status_code == 200
    body = resp.json()
    assert "client-inventory: Database unavailable" in body["error"]
    assert upstream.paths("PATCH") == ["/api/products/p1/client-inventory"]

def test_dealer_slot_over_available_stock(client, upstream):
    upstream.add("GET", "/api/dealer-slots", json={"dealerSlots": []})
    upstream.add("GET", "/api/client-orders/inventory/summary", json=[
        {"_id": "p1", "name": "Drill", "available": 4, "availableToAllocate": 3},
    ])
    resp = client.post('/dealer-slots/', json={"name": "Gold", "originalProduct": "p1", "quantity": 5}, headers=auth())
    assert resp.status_code == 422
    assert resp.json()["errors"]["quantity"] == "You only have 3 units available."
    assert upstream.paths("POST") == []

def test_dealer_slot_created(client, upstream):
    upstream.add("GET", "/api/dealer-slots", json={"dealerSlots": []})
    upstream.add("GET", "/api/client-orders/inventory/summary", json=[
        {"_id": "p1", "name": "Drill", "available": 4, "availableToAllocate": 3},
    ])
    upstream.add("POST", "/api/dealer-slots", status=201, json={"dealerSlot": {"_id": "s1", "name": "Gold", "quantity": 2}})
    resp = client.post('/dealer-slots/', json={"name": "Gold", "originalProduct": "p1", "quantity": 2}, headers=auth())
    assert resp.status_code == 201
    assert [s["id"] for s in resp.json()["items"]] == ["s1"]

def test_dealer_slot_creation_is_client_only(client, upstream):
    resp = client.post('/dealer-slots/', json={"name": "Gold", "originalProduct": "p1"}, headers=auth("admin-1", "admin"))
    assert resp.status_code == 403

def test_allocatable_products_skip_empty_stock(client, upstream):
    upstream.add("GET", "/api/client-orders/inventory/summary", json=[
        {"_id": "p1", "name": "Drill", "available": 4, "availableToAllocate": 3},
        {"_id": "p2", "name": "Saw", "available": 0, "availableToAllocate": 0},
    ])
    resp = client.get('/dealer-slots/allocatable', headers=auth())
    assert resp.status_code == 200
    assert [p["id"] for p in resp.json()] == ["p1"]
    assert resp.json()[0]["availableToAllocate"] == 3

def test_readiness_checks_upstream_through_shared_client(client, upstream):
    resp = client.get('/health/ready')
    checks = resp.json()["checks"]
    assert checks["upstream:connectivity"]["status"] == "pass"
    assert upstream.paths("GET") == [httpx.URL(app_settings.API_BASE_URL).path]

def test_readiness_fails_when_upstream_unreachable(client, upstream):
    upstream.add("GET", httpx.URL(app_settings.API_BASE_URL).path, exc=httpx.ConnectError("connection refused"))
    resp = client.get('/health/ready')
    assert resp.status_code == 503
    assert resp.json()["checks"]["upstream:connectivity"]["status"] == "fail"

def test_startup_and_metrics(client):
    resp = client.get('/health/startup')
    assert resp.status_code == 200
    assert resp.json()["status"] == "started"

    resp = client.get('/metrics')
    assert resp.status_code == 200
    body = resp.json()
    assert body["service"] == "portal-service"
    assert body["system"]["num_threads"] >= 1
