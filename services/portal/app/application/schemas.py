from pydantic import BaseModel, Field, AliasChoices, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar
from app.domain.models import (
    DEFAULT_CATEGORY,
    DEFAULT_LOCATION,
    RequestStatus,
    StockStatus,
    derive_stock_status,
    effective_reorder_level,
)

def ref_id(value: Any) -> Optional[str]:
    """Id of a reference that the API returns either bare or populated."""
    if value is None:
        return None
    if isinstance(value, dict):
        inner = value.get("_id") or value.get("id")
        return str(inner) if inner is not None else None
    return str(value)

def _id_field():
    return Field(None, validation_alias=AliasChoices("_id", "id"))

class PortalModel(BaseModel):
    """Upstream records: camelCase on the wire, snake_case in Python."""
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        coerce_numbers_to_str = True
        extra = "ignore"

#############################
# Upstream records          #
#############################

class ClientInventory(PortalModel):
    initial_stock: Optional[int] = None
    current_stock: int = 0
    reorder_level: Optional[int] = None
    last_updated: Optional[datetime] = None

class Product(PortalModel):
    id: Optional[str] = _id_field()
    name: str = ""
    description: Optional[str] = None
    sku: Optional[str] = None
    category: Optional[str] = None
    price: float = 0
    loyalty_points: Optional[float] = None
    stock: int = 0
    reorder_level: Optional[int] = None
    reserved_stock: int = 0
    status: Optional[str] = None
    organization_id: Optional[Any] = None
    created_by: Optional[Any] = None
    is_client_uploaded: bool = False
    has_client_inventory: bool = False
    client_id: Optional[Any] = None
    client_inventory: Optional[ClientInventory] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def creator_id(self) -> Optional[str]:
        return ref_id(self.created_by)

class InventoryItem(PortalModel):
    id: Optional[str] = None
    product_id: Optional[str] = None
    product_name: str = ""
    product_sku: Optional[str] = None
    category: str = DEFAULT_CATEGORY
    price: float = 0
    quantity: int = 0
    available_quantity: int = 0
    reserved_quantity: int = 0
    reorder_level: int = 5
    location: str = DEFAULT_LOCATION
    last_updated: Optional[datetime] = None
    is_client_product: bool = False

    @computed_field
    @property
    def status(self) -> StockStatus:
        return derive_stock_status(self.quantity, self.reorder_level)

    @classmethod
    def from_product(cls, product: Product) -> "InventoryItem":
        if product.client_inventory is not None:
            stock = product.client_inventory.current_stock
            reorder_level = product.client_inventory.reorder_level
            if reorder_level is None:
                reorder_level = product.reorder_level
            last_updated = product.client_inventory.last_updated or product.updated_at
        elif product.is_client_uploaded:
            # Client-uploaded product whose inventory record was never created
            stock = 0
            reorder_level = product.reorder_level
            last_updated = product.updated_at
        else:
            stock = product.stock
            reorder_level = product.reorder_level
            last_updated = product.updated_at
        return cls(
            id=product.id,
            product_id=product.id,
            product_name=product.name,
            product_sku=product.sku,
            category=product.category or DEFAULT_CATEGORY,
            price=product.price,
            quantity=stock,
            available_quantity=stock,
            reserved_quantity=product.reserved_stock,
            reorder_level=effective_reorder_level(reorder_level),
            last_updated=last_updated,
            is_client_product=product.client_inventory is not None or product.is_client_uploaded,
        )

class ProductSummary(PortalModel):
    id: Optional[str] = _id_field()
    name: str = "Unknown Product"
    sku: str = "N/A"
    price: Optional[float] = None

class ClientSummary(PortalModel):
    id: Optional[str] = _id_field()
    name: str = "Unknown Client"
    email: str = "N/A"

class PurchaseRequest(PortalModel):
    id: Optional[str] = _id_field()
    product_id: Optional[Any] = None
    product_name: Optional[str] = None
    client_id: Optional[Any] = None
    client_name: Optional[str] = None
    organization_id: Optional[Any] = None
    quantity: int = 0
    price: float = 0
    status: str = RequestStatus.PENDING.value
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    order_id: Optional[Any] = None
    product: Optional[ProductSummary] = None
    client: Optional[ClientSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value):
        return value or RequestStatus.PENDING.value

    @model_validator(mode="after")
    def _fill_summaries(self):
        if self.product is None:
            self.product = ProductSummary(name=self.product_name or "Unknown Product", price=self.price)
        if self.client is None:
            self.client = ClientSummary(name=self.client_name or "Unknown Client")
        return self

    @property
    def client_ref(self) -> Optional[str]:
        return ref_id(self.client_id) or (self.client.id if self.client else None)

class Notification(PortalModel):
    id: Optional[str] = _id_field()
    recipient: Optional[Any] = None
    type: str = ""
    title: Optional[str] = None
    message: str = ""
    read: bool = False
    related_id: Optional[str] = None
    related_model: Optional[str] = None
    priority: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("related_id", mode="before")
    @classmethod
    def _flatten_related(cls, value):
        return ref_id(value)

class Company(PortalModel):
    name: Optional[str] = None
    position: Optional[str] = None

class Address(PortalModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    zip_code: Optional[str] = None

class Client(PortalModel):
    id: Optional[str] = _id_field()
    name: str = ""
    email: str = ""
    phone: Optional[str] = None
    company: Optional[Company] = None
    address: Optional[Address] = None
    status: str = "active"
    organization_id: Optional[Any] = None
    stats: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None

class Organization(PortalModel):
    id: Optional[str] = _id_field()
    name: str = ""
    description: Optional[str] = None
    status: str = "active"
    admins: List[Any] = []
    settings: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None

class DealerSlot(PortalModel):
    id: Optional[str] = _id_field()
    name: str = ""
    description: Optional[str] = None
    original_product: Optional[Any] = None
    client_id: Optional[Any] = None
    organization_id: Optional[Any] = None
    quantity: int = 0
    available_quantity: int = 0
    loyalty_points: float = 0
    dealer_price: float = 0
    status: str = "active"
    expiry_date: Optional[datetime] = None
    redemption_rules: Optional[Any] = None
    created_at: Optional[datetime] = None

class ClientOrder(PortalModel):
    id: Optional[str] = _id_field()
    order_number: Optional[str] = None
    items: List[Dict[str, Any]] = []
    total: float = 0
    total_loyalty_points: float = 0
    status: str = "pending"
    payment_status: Optional[str] = None
    order_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

#############################
# Write payloads            #
#############################

class InventoryAdjustment(PortalModel):
    quantity: int
    reorder_level: Optional[int] = None
    reserved_quantity: Optional[int] = None
    reason: Optional[str] = ""
    notes: Optional[str] = None

class PurchaseRequestCreate(PortalModel):
    product_id: Optional[str] = None
    client_id: Optional[str] = None
    organization_id: Optional[str] = None
    quantity: int = 0
    price: float = 0
    notes: Optional[str] = None

class RejectRequest(PortalModel):
    reason: Optional[str] = ""

class ClientForm(PortalModel):
    name: str = ""
    email: str = ""
    password: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[Company] = None
    address: Optional[Address] = None
    status: str = "active"

class OrganizationForm(PortalModel):
    name: str = ""
    description: Optional[str] = None
    status: str = "active"

class AdminForm(PortalModel):
    name: str = ""
    email: str = ""
    password: str = ""

class OrganizationCreate(PortalModel):
    organization: OrganizationForm
    admin: AdminForm

class DealerSlotStatusChange(PortalModel):
    status: str

class RedemptionRules(PortalModel):
    points_required: float = 0
    discount_percentage: float = 0
    additional_benefits: List[str] = []

class DealerSlotCreate(PortalModel):
    name: str = ""
    description: Optional[str] = None
    original_product: Optional[str] = None
    quantity: int = 1
    dealer_price: float = 0
    loyalty_points: float = 0
    expiry_date: Optional[datetime] = None
    status: str = "active"
    redemption_rules: RedemptionRules = RedemptionRules()

class AllocatableProduct(PortalModel):
    """A row of the client's inventory summary that can back a dealer slot."""
    id: Optional[str] = _id_field()
    name: str = ""
    sku: Optional[str] = None
    category: Optional[str] = None
    price: float = 0
    loyalty_points: float = 0
    available: int = 0
    available_to_allocate: int = 0

#############################
# Filter state (query)      #
#############################

class InventoryFilters(BaseModel):
    search: Optional[str] = None
    category: Optional[str] = "all"
    status: Optional[str] = "all"
    order_by: Optional[str] = None

class PurchaseRequestFilters(BaseModel):
    status: Optional[str] = "all"
    search: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    order_by: Optional[str] = "-created_at"

class AdminPurchaseRequestFilters(PurchaseRequestFilters):
    client_id: Optional[str] = None

class ClientFilters(BaseModel):
    search: Optional[str] = None
    status: Optional[str] = "all"
    order_by: Optional[str] = None

class OrganizationFilters(BaseModel):
    search: Optional[str] = None
    status: Optional[str] = "all"
    order_by: Optional[str] = None

class DealerSlotFilters(BaseModel):
    search: Optional[str] = None
    status: Optional[str] = "all"
    min_points: Optional[float] = None
    max_points: Optional[float] = None
    order_by: Optional[str] = None

class ClientOrderFilters(BaseModel):
    search: Optional[str] = None
    status: Optional[str] = "all"
    min_total: Optional[float] = None
    max_total: Optional[float] = None
    order_by: Optional[str] = "-order_date"

class NotificationFilters(BaseModel):
    unread_only: bool = False
    type: Optional[str] = None

#############################
# Page views (responses)    #
#############################

ItemT = TypeVar("ItemT")

class PageView(PortalModel, Generic[ItemT]):
    items: List[ItemT] = []
    total: int = 0
    loading: bool = False
    error: Optional[str] = None
    error_kind: Optional[str] = None
    needs_relogin: bool = False
    endpoint: Optional[str] = None
    last_refreshed: Optional[datetime] = None

class InventoryPageView(PageView[InventoryItem]):
    categories: List[str] = []
    statuses: List[str] = []

class NotificationPageView(PageView[Notification]):
    unread_count: int = 0

class RequestStats(PortalModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    completed: int = 0
