import asyncio
import httpx
import jwt
import pytest
from typing import Any, Dict, List, Optional, Tuple
from app.auth_local import build_session
from app.core_settings import Settings
from app.infrastructure.api_client import PortalApi

API_BASE = "http://upstream.test"
JWT_SECRET = "change-me"

def make_token(user_id: str, role: str) -> str:
    return jwt.encode({"id": user_id, "role": role}, JWT_SECRET, algorithm="HS256")

def run(coro):
    return asyncio.run(coro)

class UpstreamStub:
    """Stand-in for the upstream REST API, served through httpx.MockTransport.

    Responses are registered per (method, path). Registering several for the
    same route serves them in order, repeating the last one.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Any]] = {}
        self.calls: List[httpx.Request] = []

    def add(self, method: str, path: str, status: int = 200, json: Any = None, exc: Optional[Exception] = None):
        self.routes.setdefault((method, path), []).append((status, json, exc))
        return self

    def replace(self, method: str, path: str, status: int = 200, json: Any = None):
        self.routes[(method, path)] = [(status, json, None)]
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": f"Route not found: {request.url.path}"})
        status, body, exc = queue.pop(0) if len(queue) > 1 else queue[0]
        if exc is not None:
            raise exc
        if status == 204:
            return httpx.Response(204)
        return httpx.Response(status, json=body)

    def paths(self, method: Optional[str] = None) -> List[str]:
        return [c.url.path for c in self.calls if method is None or c.method == method]

@pytest.fixture
def upstream():
    return UpstreamStub()

@pytest.fixture
def settings():
    return Settings(API_BASE_URL=API_BASE)

@pytest.fixture
def http_client(upstream):
    client = httpx.AsyncClient(base_url=API_BASE, transport=httpx.MockTransport(upstream.handler))
    yield client
    run(client.aclose())

@pytest.fixture
def client_session():
    token = make_token("client-1", "client")
    return build_session(token, {"id": "client-1", "role": "client"}, {"name": "Acme Traders", "organizationId": "org-1"})

@pytest.fixture
def admin_session():
    token = make_token("admin-1", "admin")
    return build_session(token, {"id": "admin-1", "role": "admin"}, {"name": "Org Admin", "organizationId": "org-1"})

@pytest.fixture
def superadmin_session():
    token = make_token("root-1", "superadmin")
    return build_session(token, {"id": "root-1", "role": "superadmin"})

@pytest.fixture
def client_api(http_client, client_session):
    return PortalApi(http_client, client_session)

@pytest.fixture
def admin_api(http_client, admin_session):
    return PortalApi(http_client, admin_session)
