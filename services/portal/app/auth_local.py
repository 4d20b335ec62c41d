import json
import jwt
from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, HTTPException, Request
from shared.core import set_request_context, get_logger
from .core_settings import get_settings
from .domain.models import Role

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "
SESSION_USER_HEADER = "X-Session-User"

@dataclass(frozen=True)
class SessionUser:
    id: str
    role: Role
    name: Optional[str] = None
    email: Optional[str] = None
    organization_id: Optional[str] = None

@dataclass(frozen=True)
class SessionContext:
    """Explicit session handed to every view-model instead of ambient storage."""
    token: str
    user: SessionUser

def decode_session_token(token: str) -> Optional[dict]:
    settings = get_settings()
    try:
        if settings.JWT_VERIFY:
            return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None

def _session_user_header(request: Request) -> dict:
    raw = request.headers.get(SESSION_USER_HEADER)
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring malformed session user header")
        return {}
    return data if isinstance(data, dict) else {}

def build_session(token: str, claims: dict, stored_user: Optional[dict] = None) -> SessionContext:
    stored_user = stored_user or {}
    # Login tokens nest the identity under "user"
    nested = claims.get("user") if isinstance(claims.get("user"), dict) else {}
    user_id = (
        claims.get("id") or claims.get("sub") or nested.get("id") or nested.get("_id")
        or stored_user.get("_id") or stored_user.get("id")
    )
    raw_role = claims.get("role") or nested.get("role") or stored_user.get("role")
    if not user_id or not raw_role:
        raise HTTPException(status_code=401, detail="Invalid token")
    try:
        role = Role(raw_role)
    except ValueError:
        raise HTTPException(status_code=403, detail=f"Unknown role: {raw_role}")
    organization = stored_user.get("organizationId") or claims.get("organizationId") or nested.get("organizationId")
    if isinstance(organization, dict):
        organization = organization.get("_id") or organization.get("id")
    user = SessionUser(
        id=str(user_id),
        role=role,
        name=stored_user.get("name") or nested.get("name"),
        email=stored_user.get("email") or nested.get("email"),
        organization_id=str(organization) if organization else None,
    )
    return SessionContext(token=token, user=user)

def get_session(request: Request) -> SessionContext:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        raise HTTPException(status_code=401, detail="Missing token")
    token = auth_header.split(" ", 1)[1].strip()
    claims = decode_session_token(token)
    if not claims:
        raise HTTPException(status_code=401, detail="Invalid token")
    session = build_session(token, claims, _session_user_header(request))
    set_request_context(user_id=session.user.id)
    return session

def require_roles(*roles: Role):
    allowed = set(roles)

    def _check(session: SessionContext = Depends(get_session)) -> SessionContext:
        if session.user.role not in allowed:
            raise HTTPException(status_code=403, detail="Your role doesn't have access to this page")
        return session

    return _check
