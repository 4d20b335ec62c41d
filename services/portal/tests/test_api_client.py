import json
import httpx
import pytest
from conftest import run
from app.application.errors import UpstreamAuthError, UpstreamError, UpstreamUnavailable
from app.infrastructure.api_client import normalize_endpoint

@pytest.mark.parametrize("endpoint", ["products", "/products", "api/products", "/api/products", "//api//products"])
def test_endpoint_normalization(endpoint):
    assert normalize_endpoint(endpoint) == "/api/products"

def test_nested_paths_keep_segments():
    assert normalize_endpoint("products//p1/client-inventory") == "/api/products/p1/client-inventory"

def test_get_returns_json(upstream, client_api):
    upstream.add("GET", "/api/clients", json={"clients": []})
    assert run(client_api.get("clients")) == {"clients": []}

def test_writes_send_json_without_cache_buster(upstream, client_api):
    upstream.add("PATCH", "/api/products/p1/inventory", json={"_id": "p1"})
    run(client_api.patch("products/p1/inventory", {"currentStock": 4}))
    request = upstream.calls[0]
    assert "_t" not in request.url.params
    assert json.loads(request.read()) == {"currentStock": 4}

def test_auth_failure(upstream, client_api):
    upstream.add("GET", "/api/clients", status=403, json={"message": "Access denied"})
    with pytest.raises(UpstreamAuthError) as excinfo:
        run(client_api.get("clients"))
    assert excinfo.value.status_code == 403
    assert excinfo.value.message == "Access denied"

def test_server_message_is_kept_verbatim(upstream, client_api):
    upstream.add("POST", "/api/clients", status=400, json={"message": "Email already registered"})
    with pytest.raises(UpstreamError) as excinfo:
        run(client_api.post("clients", {"email": "a@b.co"}))
    assert excinfo.value.status_code == 400
    assert excinfo.value.message == "Email already registered"

def test_network_failure(upstream, client_api):
    upstream.add("GET", "/api/clients", exc=httpx.ConnectError("connection refused"))
    with pytest.raises(UpstreamUnavailable):
        run(client_api.get("clients"))

def test_no_content(upstream, client_api):
    upstream.add("DELETE", "/api/clients/c1", status=204)
    assert run(client_api.delete("clients/c1")) is None
