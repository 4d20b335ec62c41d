"""
Page view-model base.

A view-model owns the canonical list for one page of one user, the
loading/error state around it, and the write operations the page offers.
Session and API access are injected, never looked up.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Generic, Iterable, List, Optional, Sequence, Type, TypeVar
from pydantic import BaseModel, ValidationError
from shared.core import get_logger
from app.auth_local import SessionContext
from app.core_settings import Settings
from app.domain.models import ErrorKind
from app.application.errors import UpstreamAuthError, UpstreamError
from app.application.filtering import apply_ordering, parse_order_by
from app.application.resolver import DEFAULT_LIST_KEYS, EndpointStrategy, ResolveResult, resolve_list
from app.application.schemas import PageView
from app.infrastructure.api_client import PortalApi

logger = get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

# (user_id, page) -> None; lets one page invalidate another user's page
Invalidator = Callable[[str, str], None]

@dataclass
class FetchOutcome:
    items: List[Any] = field(default_factory=list)
    endpoint: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    auth_failed: bool = False

    @classmethod
    def from_resolved(cls, result: ResolveResult, items: List[Any]) -> "FetchOutcome":
        return cls(
            items=items,
            endpoint=result.endpoint,
            error=result.error,
            error_kind=result.error_kind,
            auth_failed=result.auth_failed and not result.ok,
        )

def returned_record(body: Any, keys: Sequence[str] = ()) -> Optional[dict]:
    """The record a write returned, bare or wrapped under one of keys."""
    if not isinstance(body, dict):
        return None
    if body.get("_id") or body.get("id"):
        return body
    for key in keys:
        value = body.get(key)
        if isinstance(value, dict) and (value.get("_id") or value.get("id")):
            return value
    return None

class PageViewModel(Generic[RecordT]):
    page: str = ""
    record_type: Type[RecordT]
    list_keys: Sequence[str] = DEFAULT_LIST_KEYS

    def __init__(
        self,
        session: SessionContext,
        api: PortalApi,
        settings: Settings,
        invalidate: Optional[Invalidator] = None,
    ):
        self.session = session
        self.api = api
        self.settings = settings
        self.invalidate = invalidate
        self.items: List[RecordT] = []
        self.loading = False
        self.error: Optional[str] = None
        self.error_kind: Optional[ErrorKind] = None
        self.endpoint: Optional[str] = None
        self.auth_failures = 0
        self.last_refreshed: Optional[datetime] = None
        self.stale = True
        self._generation = 0

    def bind(self, session: SessionContext, api: PortalApi) -> "PageViewModel":
        """Attach the current request's session and API client."""
        self.session = session
        self.api = api
        return self

    @property
    def user_id(self) -> str:
        return self.session.user.id

    @property
    def needs_relogin(self) -> bool:
        return self.auth_failures >= self.settings.AUTH_RELOGIN_THRESHOLD

    def needs_refresh(self) -> bool:
        return self.stale or self.last_refreshed is None

    def mark_stale(self) -> None:
        self.stale = True

    #############################
    # Fetch                     #
    #############################

    def strategies(self) -> List[EndpointStrategy]:
        return []

    def parse_records(self, raw_items: Iterable[Any]) -> List[RecordT]:
        records = []
        for raw in raw_items:
            try:
                records.append(self.record_type.model_validate(raw))
            except ValidationError as e:
                logger.warning(
                    f"Skipping malformed {self.page} record",
                    extra={'extra_fields': {'page': self.page, 'errors': e.error_count()}}
                )
        return records

    async def load(self) -> FetchOutcome:
        result = await resolve_list(self.api, self.strategies(), self.list_keys)
        return FetchOutcome.from_resolved(result, self.parse_records(result.items))

    async def refresh(self) -> bool:
        """Refetch the canonical list. False when a newer fetch superseded this one."""
        self._generation += 1
        generation = self._generation
        self.loading = True
        try:
            outcome = await self.load()
        finally:
            if generation == self._generation:
                self.loading = False

        if generation != self._generation:
            logger.info(
                f"Discarding superseded {self.page} response",
                extra={'extra_fields': {'page': self.page, 'generation': generation, 'current': self._generation}}
            )
            return False

        self._apply(outcome)
        return True

    def _apply(self, outcome: FetchOutcome) -> None:
        self.last_refreshed = datetime.now(timezone.utc)
        self.stale = False
        self.endpoint = outcome.endpoint
        self.error = outcome.error
        self.error_kind = outcome.error_kind
        if outcome.auth_failed:
            self.auth_failures += 1
        elif outcome.error is None:
            self.auth_failures = 0
        # Failed fetches still replace the list; the page renders empty with the error
        self.items = outcome.items

    async def ensure_loaded(self, force: bool = False) -> None:
        if force or self.needs_refresh():
            await self.refresh()

    #############################
    # Writes                    #
    #############################

    async def submit(self, call: Awaitable[Any]) -> Any:
        """Await one write call, tracking auth failures. State is untouched on failure."""
        try:
            body = await call
        except UpstreamAuthError:
            self.auth_failures += 1
            raise
        self.auth_failures = 0
        return body

    def find(self, record_id: str) -> RecordT:
        for record in self.items:
            if getattr(record, "id", None) == record_id:
                return record
        raise UpstreamError(f"{self.page} record {record_id} not found", status_code=404)

    def replace(self, record: RecordT) -> bool:
        for index, existing in enumerate(self.items):
            if getattr(existing, "id", None) == getattr(record, "id", None):
                self.items[index] = record
                return True
        return False

    def remove(self, record_id: str) -> None:
        self.items = [r for r in self.items if getattr(r, "id", None) != record_id]

    async def patch_or_refresh(self, body: Any, keys: Sequence[str] = ()) -> Optional[RecordT]:
        """Replace the local row with the server's returned record, else refetch."""
        data = returned_record(body, keys)
        if data is not None:
            records = self.parse_records([data])
            if records and self.replace(records[0]):
                return records[0]
        await self.refresh()
        return None

    #############################
    # Presentation              #
    #############################

    def filtered(self, filters: Any) -> List[RecordT]:
        return list(self.items)

    def ordered(self, items: List[RecordT], order_by: Optional[str]) -> List[RecordT]:
        return apply_ordering(items, parse_order_by(order_by))

    def page_state(self, items: List[Any]) -> dict:
        return {
            "items": items,
            "total": len(items),
            "loading": self.loading,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "needs_relogin": self.needs_relogin,
            "endpoint": self.endpoint,
            "last_refreshed": self.last_refreshed,
        }

    def view(self, filters: Any = None) -> PageView:
        items = self.filtered(filters) if filters is not None else list(self.items)
        return PageView(**self.page_state(items))
