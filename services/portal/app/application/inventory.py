from typing import Dict, List, Optional
from pydantic import ValidationError
from shared.core import get_logger
from app.domain.models import ErrorKind, Role, StockStatus
from app.application.errors import PortalError
from app.application.filtering import ALL, apply_filters, distinct_values
from app.application.resolver import EndpointStrategy, extract_list, resolve_list
from app.application.schemas import (
    InventoryAdjustment,
    InventoryFilters,
    InventoryItem,
    InventoryPageView,
    Product,
)
from app.application.validation import validate_inventory_adjustment
from app.application.view_model import FetchOutcome, PageViewModel

logger = get_logger(__name__)

PRODUCT_LIST_KEYS = ("products", "data")
NO_ACCESS_MESSAGE = "Your role doesn't have access to inventory management"

class InventoryViewModel(PageViewModel[InventoryItem]):
    page = "inventory"
    record_type = InventoryItem
    list_keys = PRODUCT_LIST_KEYS

    def strategies(self) -> List[EndpointStrategy]:
        role = self.session.user.role
        if role == Role.ADMIN:
            return [EndpointStrategy("products", {"createdBy": self.user_id})]
        if role == Role.CLIENT:
            client_id = self.user_id
            return [
                EndpointStrategy("client-inventory", client_id=client_id),
                EndpointStrategy("products/debug-client-inventory", {"clientId": client_id}, client_id=client_id),
                EndpointStrategy(
                    "products",
                    {"hasClientInventory": "true", "clientId": client_id},
                    client_id=client_id,
                    label="products?hasClientInventory",
                ),
            ]
        return []

    def _parse_products(self, raw_items) -> List[Product]:
        products = []
        for raw in raw_items:
            try:
                products.append(Product.model_validate(raw))
            except ValidationError:
                logger.warning("Skipping malformed product record", extra={'extra_fields': {'page': self.page}})
        return products

    async def load(self) -> FetchOutcome:
        role = self.session.user.role
        if role not in (Role.ADMIN, Role.CLIENT):
            return FetchOutcome(error=NO_ACCESS_MESSAGE, error_kind=ErrorKind.AUTH)

        result = await resolve_list(self.api, self.strategies(), self.list_keys)
        products = self._parse_products(result.items)

        if role == Role.ADMIN:
            # The createdBy filter is not honoured by every API version
            products = [p for p in products if p.creator_id == self.user_id]
        elif result.ok:
            products = merge_client_products(products, await self._organization_catalog())

        items = [InventoryItem.from_product(p) for p in products]
        return FetchOutcome.from_resolved(result, items)

    async def _organization_catalog(self) -> List[Product]:
        organization_id = self.session.user.organization_id
        if not organization_id:
            return []
        params = {"status": "active", "organizationId": organization_id, "isClientUploaded": "false"}
        try:
            body = await self.api.get("products", params=params)
        except PortalError as e:
            logger.warning(
                "Organization catalog unavailable, showing client inventory only",
                extra={'extra_fields': {'organization_id': organization_id, 'error': e.message}}
            )
            return []
        return self._parse_products(extract_list(body, self.list_keys) or [])

    async def adjust(self, item_id: str, adjustment: InventoryAdjustment) -> Optional[InventoryItem]:
        """Submit one stock adjustment.

        None when the server returned no product and the refetch could not
        produce the row; the write itself succeeded and the page carries the
        refetch error.
        """
        item = self.find(item_id)
        validate_inventory_adjustment(item, adjustment)

        reorder_level = adjustment.reorder_level if adjustment.reorder_level is not None else item.reorder_level
        if item.is_client_product:
            endpoint = f"products/{item.product_id}/client-inventory"
            payload = {"currentStock": adjustment.quantity, "reorderLevel": reorder_level}
        else:
            endpoint = f"products/{item.product_id}/inventory"
            reserved = adjustment.reserved_quantity if adjustment.reserved_quantity is not None else item.reserved_quantity
            payload = {"currentStock": adjustment.quantity, "reorderLevel": reorder_level, "reservedStock": reserved}

        logger.info(
            "Submitting inventory adjustment",
            extra={'extra_fields': {
                'product_id': item.product_id,
                'from': item.quantity,
                'to': adjustment.quantity,
                'reason': adjustment.reason,
            }}
        )
        body = await self.submit(self.api.patch(endpoint, payload))

        data = body.get("product") if isinstance(body, dict) and isinstance(body.get("product"), dict) else body
        products = self._parse_products([data]) if isinstance(data, dict) and (data.get("_id") or data.get("id")) else []
        if products:
            updated = InventoryItem.from_product(products[0])
            if self.replace(updated):
                return updated
        await self.refresh()
        return next((i for i in self.items if i.id == item_id), None)

    def filtered(self, filters: InventoryFilters) -> List[InventoryItem]:
        items = apply_filters(
            self.items,
            search=filters.search,
            search_fields=("product_name", "product_sku"),
            equals={"category": filters.category, "status": filters.status},
        )
        return self.ordered(items, filters.order_by)

    def categories(self) -> List[str]:
        return [ALL] + distinct_values(self.items, "category")

    def view(self, filters: Optional[InventoryFilters] = None) -> InventoryPageView:
        items = self.filtered(filters or InventoryFilters())
        return InventoryPageView(
            **self.page_state(items),
            categories=self.categories(),
            statuses=[ALL] + [s.value for s in StockStatus],
        )

def merge_client_products(client_products: List[Product], catalog: List[Product]) -> List[Product]:
    """Client inventory first, then catalog products the client does not already hold, deduplicated by id."""
    held_names = {p.name.strip().lower() for p in client_products if p.name}
    merged: Dict[str, Product] = {}
    anonymous: List[Product] = []
    for product in client_products:
        if product.id is None:
            anonymous.append(product)
        else:
            merged.setdefault(product.id, product)
    for product in catalog:
        if product.name and product.name.strip().lower() in held_names:
            continue
        if product.id is None:
            continue
        merged.setdefault(product.id, product)
    return list(merged.values()) + anonymous
