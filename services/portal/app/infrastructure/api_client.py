import re
import time
import httpx
from typing import Any, Dict, Optional
from shared.core import get_logger
from app.auth_local import BEARER_PREFIX, SessionContext
from app.application.errors import UpstreamAuthError, UpstreamError, UpstreamUnavailable

logger = get_logger(__name__)

CLIENT_ID_HEADER = "X-Client-ID"

def normalize_endpoint(endpoint: str) -> str:
    """Map 'products', '/products', 'api/products' and '/api/products' to '/api/products'."""
    path = endpoint.strip()
    path = path.lstrip("/")
    if path.startswith("api/"):
        path = path[4:]
    path = re.sub(r"/{2,}", "/", path).lstrip("/")
    return f"/api/{path}"

def extract_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("message", "detail", "error", "msg"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    text = resp.text.strip()
    return text or f"Request failed with status {resp.status_code}"

def create_http_client(base_url: str, timeout: float, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

class PortalApi:
    """Upstream REST API bound to one session.

    Every call carries the bearer token twice (Authorization and x-auth-token)
    and, for client-scoped lookups, an X-Client-ID header.
    """

    def __init__(self, http: httpx.AsyncClient, session: SessionContext):
        self.http = http
        self.session = session

    def _headers(self, client_id: Optional[str] = None, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "Authorization": f"{BEARER_PREFIX}{self.session.token}",
            "x-auth-token": self.session.token,
            "Content-Type": "application/json",
        }
        if client_id:
            headers[CLIENT_ID_HEADER] = client_id
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Any = None,
        headers: Optional[Dict[str, str]] = None,
        client_id: Optional[str] = None,
    ) -> Any:
        path = normalize_endpoint(endpoint)
        query = {k: v for k, v in (params or {}).items() if v is not None}
        if method == "GET":
            query["_t"] = int(time.time() * 1000)
        try:
            resp = await self.http.request(
                method,
                path,
                params=query,
                json=payload,
                headers=self._headers(client_id, headers),
            )
        except httpx.TimeoutException as e:
            logger.warning(
                f"Upstream timeout: {method} {path}",
                extra={'extra_fields': {'method': method, 'path': path}}
            )
            raise UpstreamUnavailable(f"Request to {path} timed out") from e
        except httpx.HTTPError as e:
            logger.warning(
                f"Upstream unreachable: {method} {path}",
                extra={'extra_fields': {'method': method, 'path': path, 'error': str(e)}}
            )
            raise UpstreamUnavailable(f"Network error while calling {path}: {e}") from e

        if resp.status_code in (401, 403):
            raise UpstreamAuthError(extract_message(resp), status_code=resp.status_code)
        if resp.status_code >= 400:
            raise UpstreamError(extract_message(resp), status_code=resp.status_code)
        if resp.status_code == 204 or not resp.content:
            return None
        content_type = resp.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            return resp.json()
        return resp.text

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> Any:
        return await self.request("GET", endpoint, params=params, **kwargs)

    async def post(self, endpoint: str, payload: Any = None, **kwargs) -> Any:
        return await self.request("POST", endpoint, payload=payload, **kwargs)

    async def put(self, endpoint: str, payload: Any = None, **kwargs) -> Any:
        return await self.request("PUT", endpoint, payload=payload, **kwargs)

    async def patch(self, endpoint: str, payload: Any = None, **kwargs) -> Any:
        return await self.request("PATCH", endpoint, payload=payload, **kwargs)

    async def delete(self, endpoint: str, **kwargs) -> Any:
        return await self.request("DELETE", endpoint, **kwargs)
