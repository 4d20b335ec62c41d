from collections import Counter
from typing import List, Optional
from pydantic import ValidationError
from shared.core import get_logger
from app.domain.models import REQUEST_NOTIFICATION_TYPES, RequestStatus
from app.application.enrichment import enrich_rejection_reasons
from app.application.errors import PortalError
from app.application.filtering import apply_filters
from app.application.inventory import InventoryViewModel
from app.application.resolver import EndpointStrategy, extract_list, resolve_list
from app.application.schemas import (
    AdminPurchaseRequestFilters,
    Notification,
    PurchaseRequest,
    PurchaseRequestCreate,
    PurchaseRequestFilters,
    RejectRequest,
    RequestStats,
)
from app.application.validation import validate_purchase_request, validate_rejection
from app.application.view_model import FetchOutcome, PageViewModel, returned_record

logger = get_logger(__name__)

REQUEST_LIST_KEYS = ("requests", "data", "productRequests", "purchaseRequests")
REQUEST_RECORD_KEYS = ("request", "productRequest", "purchaseRequest", "data")
NOTIFICATION_LIST_KEYS = ("notifications", "data")
SEARCH_FIELDS = ("product.name", "product_name", "notes")

def _filter_requests(items: List[PurchaseRequest], filters: PurchaseRequestFilters) -> List[PurchaseRequest]:
    return apply_filters(
        items,
        search=filters.search,
        search_fields=SEARCH_FIELDS,
        equals={"status": filters.status},
        ranges={
            "price": (filters.min_price, filters.max_price),
            "created_at": (filters.date_from, filters.date_to),
        },
    )

class PurchaseRequestsViewModel(PageViewModel[PurchaseRequest]):
    """A client's own purchase requests, with rejection reasons recovered from notifications."""
    page = "purchase-requests"
    record_type = PurchaseRequest
    list_keys = REQUEST_LIST_KEYS

    def strategies(self) -> List[EndpointStrategy]:
        client_id = self.user_id
        params = {"clientId": client_id}
        return [
            EndpointStrategy("product-requests/client", params, client_id=client_id),
            EndpointStrategy("products/purchase-requests", params, client_id=client_id),
            EndpointStrategy("purchase-requests", params, client_id=client_id),
            EndpointStrategy("client-purchase-requests", params, client_id=client_id),
        ]

    async def load(self) -> FetchOutcome:
        result = await resolve_list(self.api, self.strategies(), self.list_keys)
        requests = self.parse_records(result.items)
        if requests:
            requests = enrich_rejection_reasons(requests, await self._request_notifications())
        return FetchOutcome.from_resolved(result, requests)

    async def _request_notifications(self) -> List[Notification]:
        params = {"types": ",".join(REQUEST_NOTIFICATION_TYPES)}
        try:
            body = await self.api.get("notifications", params=params)
        except PortalError as e:
            logger.warning(
                "Notifications unavailable, rejection reasons not backfilled",
                extra={'extra_fields': {'error_kind': e.kind.value, 'error': e.message}}
            )
            return []
        notifications = []
        for raw in extract_list(body, NOTIFICATION_LIST_KEYS) or []:
            try:
                notifications.append(Notification.model_validate(raw))
            except ValidationError:
                logger.warning("Skipping malformed notification record")
        return notifications

    async def create(self, form: PurchaseRequestCreate) -> Optional[PurchaseRequest]:
        form = form.model_copy(update={
            "client_id": form.client_id or self.user_id,
            "organization_id": form.organization_id or self.session.user.organization_id,
        })
        validate_purchase_request(form)
        payload = form.model_dump(by_alias=True, exclude_none=True)
        payload["status"] = RequestStatus.PENDING.value
        logger.info(
            "Submitting purchase request",
            extra={'extra_fields': {'product_id': form.product_id, 'quantity': form.quantity}}
        )
        body = await self.submit(self.api.post("product-requests", payload))

        data = returned_record(body, REQUEST_RECORD_KEYS)
        records = self.parse_records([data]) if data is not None else []
        if records:
            self.items = self.items + records
            return records[0]
        await self.refresh()
        return None

    def filtered(self, filters: PurchaseRequestFilters) -> List[PurchaseRequest]:
        return self.ordered(_filter_requests(self.items, filters), filters.order_by)

class AdminPurchaseRequestsViewModel(PageViewModel[PurchaseRequest]):
    """Every request an admin can decide on."""
    page = "admin-purchase-requests"
    record_type = PurchaseRequest
    list_keys = REQUEST_LIST_KEYS

    def strategies(self) -> List[EndpointStrategy]:
        return [
            EndpointStrategy("product-requests"),
            EndpointStrategy("products/purchase-requests"),
            EndpointStrategy("purchase-requests"),
            EndpointStrategy("admin/purchase-requests"),
        ]

    def _invalidate_client_pages(self, request: PurchaseRequest, inventory_changed: bool) -> None:
        client_id = request.client_ref
        if not client_id or self.invalidate is None:
            return
        self.invalidate(client_id, PurchaseRequestsViewModel.page)
        if inventory_changed:
            self.invalidate(client_id, InventoryViewModel.page)

    async def approve(self, request_id: str) -> None:
        request = self.find(request_id)
        logger.info("Approving purchase request", extra={'extra_fields': {'request_id': request_id}})
        await self.submit(self.api.post(f"product-requests/{request_id}/approve"))
        self._invalidate_client_pages(request, inventory_changed=True)
        await self.refresh()

    async def reject(self, request_id: str, payload: RejectRequest) -> None:
        validate_rejection(payload)
        request = self.find(request_id)
        reason = payload.reason.strip()
        logger.info("Rejecting purchase request", extra={'extra_fields': {'request_id': request_id}})
        await self.submit(self.api.post(f"product-requests/{request_id}/reject", {"reason": reason}))
        self._invalidate_client_pages(request, inventory_changed=False)
        await self.refresh()

    def stats(self) -> RequestStats:
        counts = Counter(r.status for r in self.items)
        return RequestStats(
            total=len(self.items),
            pending=counts.get(RequestStatus.PENDING.value, 0),
            approved=counts.get(RequestStatus.APPROVED.value, 0),
            rejected=counts.get(RequestStatus.REJECTED.value, 0),
            completed=counts.get(RequestStatus.COMPLETED.value, 0),
        )

    def filtered(self, filters: AdminPurchaseRequestFilters) -> List[PurchaseRequest]:
        items = _filter_requests(self.items, filters)
        if filters.client_id:
            items = [r for r in items if r.client_ref == filters.client_id]
        return self.ordered(items, filters.order_by)
