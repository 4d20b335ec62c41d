"""
Ordered endpoint fallback and response-shape normalization.

The upstream API exposes several resources under more than one path and
wraps lists in differing envelopes. A resolver walks an explicit, ordered
list of candidate endpoints once each and returns the first list it finds.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
from shared.core import get_logger
from app.application.errors import PortalError, UpstreamAuthError
from app.domain.models import ErrorKind
from app.infrastructure.api_client import PortalApi

logger = get_logger(__name__)

DEFAULT_LIST_KEYS: Tuple[str, ...] = ("requests", "data")

@dataclass(frozen=True)
class EndpointStrategy:
    path: str
    params: Dict[str, Any] = field(default_factory=dict)
    client_id: Optional[str] = None
    label: Optional[str] = None

    @property
    def name(self) -> str:
        return self.label or self.path

@dataclass
class ResolveResult:
    items: List[Any] = field(default_factory=list)
    endpoint: Optional[str] = None
    errors: List[Tuple[str, str]] = field(default_factory=list)
    kinds: List[ErrorKind] = field(default_factory=list)
    auth_failed: bool = False

    @property
    def ok(self) -> bool:
        return self.endpoint is not None

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        if self.ok or not self.kinds:
            return None
        if self.auth_failed:
            return ErrorKind.AUTH
        return self.kinds[-1]

    @property
    def error(self) -> Optional[str]:
        if self.ok or not self.errors:
            return None
        return "; ".join(f"{name}: {reason}" for name, reason in self.errors)

def extract_list(body: Any, preferred_keys: Sequence[str] = DEFAULT_LIST_KEYS) -> Optional[List[Any]]:
    """Find the canonical list inside a response body.

    A bare array wins; then the first preferred key holding an array; then
    the first array-valued property in document order. None when the body
    carries no list at all.
    """
    if isinstance(body, list):
        return body
    if not isinstance(body, dict):
        return None
    for key in preferred_keys:
        value = body.get(key)
        if isinstance(value, list):
            return value
    for value in body.values():
        if isinstance(value, list):
            return value
    return None

async def resolve_list(
    api: PortalApi,
    strategies: Sequence[EndpointStrategy],
    preferred_keys: Sequence[str] = DEFAULT_LIST_KEYS,
) -> ResolveResult:
    result = ResolveResult()
    for attempt, strategy in enumerate(strategies, start=1):
        logger.info(
            f"Fetching list from {strategy.name}",
            extra={'extra_fields': {'endpoint': strategy.path, 'attempt': attempt, 'of': len(strategies)}}
        )
        try:
            body = await api.get(strategy.path, params=strategy.params, client_id=strategy.client_id)
        except PortalError as e:
            if isinstance(e, UpstreamAuthError):
                result.auth_failed = True
            result.errors.append((strategy.name, e.message))
            result.kinds.append(e.kind)
            logger.warning(
                f"Endpoint {strategy.name} failed",
                extra={'extra_fields': {'endpoint': strategy.path, 'attempt': attempt, 'error_kind': e.kind.value, 'error': e.message}}
            )
            continue

        # A success with nothing in it (204, empty body, {}) is an empty page
        items = [] if body is None or body == {} else extract_list(body, preferred_keys)
        if items is None:
            result.errors.append((strategy.name, "response contained no list"))
            result.kinds.append(ErrorKind.SERVER)
            logger.warning(
                f"Endpoint {strategy.name} returned no list",
                extra={'extra_fields': {'endpoint': strategy.path, 'attempt': attempt}}
            )
            continue

        result.items = items
        result.endpoint = strategy.path
        logger.info(
            f"Resolved {len(items)} records from {strategy.name}",
            extra={'extra_fields': {'endpoint': strategy.path, 'attempt': attempt, 'count': len(items)}}
        )
        return result

    if not result.errors:
        result.errors.append(("resolver", "no candidate endpoints"))
        result.kinds.append(ErrorKind.SERVER)
    logger.error(
        "All candidate endpoints failed",
        extra={'extra_fields': {'endpoints': [s.path for s in strategies], 'auth_failed': result.auth_failed}}
    )
    return result
