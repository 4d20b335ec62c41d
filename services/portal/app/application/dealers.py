from typing import List, Optional
from pydantic import ValidationError
from shared.core import get_logger
from app.application.errors import PortalError
from app.application.filtering import apply_filters
from app.application.resolver import EndpointStrategy, extract_list
from app.application.schemas import (
    AllocatableProduct,
    ClientOrder,
    ClientOrderFilters,
    DealerSlot,
    DealerSlotCreate,
    DealerSlotFilters,
    DealerSlotStatusChange,
)
from app.application.validation import validate_dealer_slot, validate_dealer_slot_status
from app.application.view_model import PageViewModel, returned_record

logger = get_logger(__name__)

SLOT_RECORD_KEYS = ("dealerSlot", "slot", "data")
INVENTORY_SUMMARY_ENDPOINT = "client-orders/inventory/summary"

class DealerSlotsViewModel(PageViewModel[DealerSlot]):
    page = "dealer-slots"
    record_type = DealerSlot
    list_keys = ("dealerSlots", "slots", "data")

    def strategies(self) -> List[EndpointStrategy]:
        return [EndpointStrategy("dealer-slots")]

    async def change_status(self, slot_id: str, change: DealerSlotStatusChange) -> Optional[DealerSlot]:
        self.find(slot_id)
        validate_dealer_slot_status(change)
        logger.info(
            "Changing dealer slot status",
            extra={'extra_fields': {'slot_id': slot_id, 'status': change.status}}
        )
        body = await self.submit(self.api.put(f"dealer-slots/{slot_id}", {"status": change.status}))
        return await self.patch_or_refresh(body, SLOT_RECORD_KEYS)

    async def allocatable_products(self) -> List[AllocatableProduct]:
        """The caller's own stock that can back a new slot."""
        body = await self.submit(self.api.get(INVENTORY_SUMMARY_ENDPOINT))
        products = []
        for raw in extract_list(body, ("products", "data")) or []:
            try:
                products.append(AllocatableProduct.model_validate(raw))
            except ValidationError:
                logger.warning("Skipping malformed inventory summary row")
        return [p for p in products if p.available > 0]

    async def _allocatable(self, product_id: str) -> Optional[AllocatableProduct]:
        try:
            products = await self.allocatable_products()
        except PortalError as e:
            logger.warning(
                "Inventory summary unavailable, slot quantity not checked locally",
                extra={'extra_fields': {'product_id': product_id, 'error': e.message}}
            )
            return None
        return next((p for p in products if p.id == product_id), None)

    async def create(self, form: DealerSlotCreate) -> Optional[DealerSlot]:
        validate_dealer_slot(form)
        validate_dealer_slot(form, await self._allocatable(form.original_product))

        benefits = [b.strip() for b in form.redemption_rules.additional_benefits if b.strip()]
        form = form.model_copy(update={
            "name": form.name.strip(),
            "redemption_rules": form.redemption_rules.model_copy(update={"additional_benefits": benefits}),
        })
        payload = form.model_dump(mode="json", by_alias=True, exclude_none=True)
        logger.info(
            "Creating dealer slot",
            extra={'extra_fields': {'product_id': form.original_product, 'quantity': form.quantity}}
        )
        body = await self.submit(self.api.post("dealer-slots", payload))

        data = returned_record(body, SLOT_RECORD_KEYS)
        records = self.parse_records([data]) if data is not None else []
        if records:
            self.items = self.items + records
            return records[0]
        await self.refresh()
        return None

    def filtered(self, filters: DealerSlotFilters) -> List[DealerSlot]:
        items = apply_filters(
            self.items,
            search=filters.search,
            search_fields=("name", "description"),
            equals={"status": filters.status},
            ranges={"loyalty_points": (filters.min_points, filters.max_points)},
        )
        return self.ordered(items, filters.order_by)

class ClientOrdersViewModel(PageViewModel[ClientOrder]):
    page = "client-orders"
    record_type = ClientOrder
    list_keys = ("clientOrders", "orders", "data")

    def strategies(self) -> List[EndpointStrategy]:
        return [EndpointStrategy("client-orders")]

    def filtered(self, filters: ClientOrderFilters) -> List[ClientOrder]:
        items = apply_filters(
            self.items,
            search=filters.search,
            search_fields=("order_number",),
            equals={"status": filters.status},
            ranges={"total": (filters.min_total, filters.max_total)},
        )
        return self.ordered(items, filters.order_by)
