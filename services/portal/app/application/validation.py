import re
from typing import Dict, Optional
from app.application.errors import ValidationFailed
from app.application.schemas import (
    AllocatableProduct,
    ClientForm,
    DealerSlotCreate,
    DealerSlotStatusChange,
    InventoryAdjustment,
    InventoryItem,
    OrganizationCreate,
    OrganizationForm,
    PurchaseRequestCreate,
    RejectRequest,
)
from app.domain.models import DealerSlotStatus, EntityStatus

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[0-9\s\-()]{8,20}$")
MIN_PASSWORD_LENGTH = 6

def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())

def _raise_if(errors: Dict[str, str]) -> None:
    if errors:
        raise ValidationFailed(errors)

def validate_inventory_adjustment(item: InventoryItem, adjustment: InventoryAdjustment) -> None:
    errors = {}
    if adjustment.quantity < 0:
        errors["quantity"] = "Quantity cannot be negative"
    if adjustment.reorder_level is not None and adjustment.reorder_level < 0:
        errors["reorderLevel"] = "Reorder level cannot be negative"
    if adjustment.reserved_quantity is not None and adjustment.reserved_quantity < 0:
        errors["reservedQuantity"] = "Reserved quantity cannot be negative"
    if adjustment.quantity != item.quantity and _blank(adjustment.reason):
        errors["reason"] = "Please provide a reason for quantity adjustment"
    _raise_if(errors)

def validate_purchase_request(request: PurchaseRequestCreate) -> None:
    errors = {}
    if _blank(request.product_id):
        errors["productId"] = "Please select a product"
    if _blank(request.client_id):
        errors["clientId"] = "Client is required"
    if request.quantity <= 0:
        errors["quantity"] = "Quantity must be greater than 0"
    if request.price <= 0:
        errors["price"] = "Price must be greater than 0"
    _raise_if(errors)

def validate_rejection(payload: RejectRequest) -> None:
    if _blank(payload.reason):
        raise ValidationFailed({"reason": "Please provide a reason for rejection"})

def _email_errors(email: str, errors: Dict[str, str], field: str = "email") -> None:
    if _blank(email):
        errors[field] = "Email is required"
    elif not EMAIL_PATTERN.match(email.strip()):
        errors[field] = "Email is invalid"

def validate_client_form(form: ClientForm, creating: bool) -> None:
    errors = {}
    if _blank(form.name):
        errors["name"] = "Name is required"
    _email_errors(form.email, errors)
    if creating and (form.password is None or len(form.password) < MIN_PASSWORD_LENGTH):
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    elif not creating and form.password and len(form.password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if not _blank(form.phone) and not PHONE_PATTERN.match(form.phone.strip()):
        errors["phone"] = "Phone number is invalid"
    if form.status not in {s.value for s in EntityStatus}:
        errors["status"] = "Status is required"
    _raise_if(errors)

def validate_organization(form: OrganizationForm) -> None:
    errors = {}
    if _blank(form.name):
        errors["name"] = "Organization name is required"
    if form.status not in {s.value for s in EntityStatus}:
        errors["status"] = "Status is invalid"
    _raise_if(errors)

def validate_organization_with_admin(payload: OrganizationCreate) -> None:
    errors = {}
    try:
        validate_organization(payload.organization)
    except ValidationFailed as e:
        errors.update({f"organization.{k}": v for k, v in e.errors.items()})
    if _blank(payload.admin.name):
        errors["admin.name"] = "Admin name is required"
    _email_errors(payload.admin.email, errors, field="admin.email")
    if len(payload.admin.password or "") < MIN_PASSWORD_LENGTH:
        errors["admin.password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    _raise_if(errors)

def validate_dealer_slot(form: DealerSlotCreate, product: Optional[AllocatableProduct] = None) -> None:
    """Stock is only checked when the product's allocatable quantity is known."""
    errors = {}
    if _blank(form.name):
        errors["name"] = "Slot name is required"
    if _blank(form.original_product):
        errors["originalProduct"] = "Please select a product"
    if form.quantity <= 0:
        errors["quantity"] = "Quantity must be greater than 0"
    elif product is not None and form.quantity > product.available_to_allocate:
        errors["quantity"] = f"You only have {product.available_to_allocate} units available."
    if form.status not in {s.value for s in DealerSlotStatus}:
        errors["status"] = f"Unknown dealer slot status: {form.status}"
    _raise_if(errors)

def validate_dealer_slot_status(change: DealerSlotStatusChange) -> None:
    if change.status not in {s.value for s in DealerSlotStatus}:
        raise ValidationFailed({"status": f"Unknown dealer slot status: {change.status}"})
