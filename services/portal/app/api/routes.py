from fastapi import APIRouter, Depends, Request
from typing import Any, Dict, List
from app.auth_local import SessionContext, get_session, require_roles
from app.domain.models import Role
from app.application.administration import ClientsViewModel, OrganizationsViewModel
from app.application.dealers import ClientOrdersViewModel, DealerSlotsViewModel
from app.application.inventory import InventoryViewModel
from app.application.notifications import NotificationsViewModel
from app.application.purchase_requests import AdminPurchaseRequestsViewModel, PurchaseRequestsViewModel
from app.application.schemas import (
    AllocatableProduct,
    AdminPurchaseRequestFilters,
    Client,
    ClientFilters,
    ClientForm,
    ClientOrder,
    ClientOrderFilters,
    DealerSlot,
    DealerSlotCreate,
    DealerSlotFilters,
    DealerSlotStatusChange,
    InventoryAdjustment,
    InventoryFilters,
    InventoryPageView,
    NotificationFilters,
    NotificationPageView,
    Organization,
    OrganizationCreate,
    OrganizationFilters,
    OrganizationForm,
    PageView,
    PurchaseRequest,
    PurchaseRequestCreate,
    PurchaseRequestFilters,
    RejectRequest,
    RequestStats,
)
from app.infrastructure.api_client import PortalApi

ADMINS = (Role.ADMIN, Role.SUPER_ADMIN)
ALL_ROLES = tuple(Role)

def page(view_model_cls, *roles: Role):
    """Dependency handing out the caller's view-model for one page, role-gated."""
    guard = require_roles(*roles)

    def _dependency(request: Request, session: SessionContext = Depends(guard)):
        api = PortalApi(request.app.state.http_client, session)
        view_model = request.app.state.page_store.get(view_model_cls, session, api)
        request.state.view_model = view_model
        return view_model

    return _dependency

inventory_page = page(InventoryViewModel, *ALL_ROLES)
purchase_requests_page = page(PurchaseRequestsViewModel, Role.CLIENT)
admin_requests_page = page(AdminPurchaseRequestsViewModel, *ADMINS)
clients_page = page(ClientsViewModel, *ADMINS)
organizations_page = page(OrganizationsViewModel, Role.SUPER_ADMIN)
dealer_slots_page = page(DealerSlotsViewModel, *ALL_ROLES)
dealer_slot_owner_page = page(DealerSlotsViewModel, Role.CLIENT)
client_orders_page = page(ClientOrdersViewModel, Role.CLIENT, *ADMINS)
notifications_page = page(NotificationsViewModel, *ALL_ROLES)

#############################
# Session                   #
#############################

session_router = APIRouter(prefix="/session", tags=["session"])

@session_router.get("/")
def whoami(session: SessionContext = Depends(get_session)) -> Dict[str, Any]:
    user = session.user
    return {
        "id": user.id,
        "role": user.role.value,
        "name": user.name,
        "email": user.email,
        "organizationId": user.organization_id,
    }

#############################
# Inventory                 #
#############################

inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])

@inventory_router.get("/", response_model=InventoryPageView)
async def get_inventory(
    filters: InventoryFilters = Depends(),
    refresh: bool = False,
    vm: InventoryViewModel = Depends(inventory_page),
):
    await vm.ensure_loaded(force=refresh)
    return vm.view(filters)

@inventory_router.patch("/{item_id}", response_model=InventoryPageView)
async def adjust_inventory(item_id: str, payload: InventoryAdjustment, vm: InventoryViewModel = Depends(inventory_page)):
    await vm.ensure_loaded()
    await vm.adjust(item_id, payload)
    return vm.view()

#############################
# Purchase requests         #
#############################

purchase_requests_router = APIRouter(prefix="/purchase-requests", tags=["purchase-requests"])

@purchase_requests_router.get("/", response_model=PageView[PurchaseRequest])
async def get_purchase_requests(
    filters: PurchaseRequestFilters = Depends(),
    refresh: bool = False,
    vm: PurchaseRequestsViewModel = Depends(purchase_requests_page),
):
    await vm.ensure_loaded(force=refresh)
    return vm.view(filters)

@purchase_requests_router.post("/", response_model=PageView[PurchaseRequest], status_code=201)
async def create_purchase_request(payload: PurchaseRequestCreate, vm: PurchaseRequestsViewModel = Depends(purchase_requests_page)):
    await vm.ensure_loaded()
    await vm.create(payload)
    return vm.view(PurchaseRequestFilters())

admin_requests_router = APIRouter(prefix="/admin/purchase-requests", tags=["purchase-requests"])

@admin_requests_router.get("/", response_model=PageView[PurchaseRequest])
async def get_admin_purchase_requests(
    filters: AdminPurchaseRequestFilters = Depends(),
    refresh: bool = False,
    vm: AdminPurchaseRequestsViewModel = Depends(admin_requests_page),
):
    await vm.ensure_loaded(force=refresh)
    return vm.view(filters)

@admin_requests_router.get("/stats", response_model=RequestStats)
async def get_purchase_request_stats(refresh: bool = False, vm: AdminPurchaseRequestsViewModel = Depends(admin_requests_page)):
    await vm.ensure_loaded(force=refresh)
    return vm.stats()

@admin_requests_router.post("/{request_id}/approve", response_model=PageView[PurchaseRequest])
async def approve_purchase_request(request_id: str, vm: AdminPurchaseRequestsViewModel = Depends(admin_requests_page)):
    await vm.ensure_loaded()
    await vm.approve(request_id)
    return vm.view(AdminPurchaseRequestFilters())

@admin_requests_router.post("/{request_id}/reject", response_model=PageView[PurchaseRequest])
async def reject_purchase_request(
    request_id: str,
    payload: RejectRequest,
    vm: AdminPurchaseRequestsViewModel = Depends(admin_requests_page),
):
    await vm.ensure_loaded()
    await vm.reject(request_id, payload)
    return vm.view(AdminPurchaseRequestFilters())

#############################
# Clients                   #
#############################

clients_router = APIRouter(prefix="/clients", tags=["clients"])

@clients_router.get("/", response_model=PageView[Client])
async def get_clients(filters: ClientFilters = Depends(), refresh: bool = False, vm: ClientsViewModel = Depends(clients_page)):
    await vm.ensure_loaded(force=refresh)
    return vm.view(filters)

@clients_router.post("/", response_model=PageView[Client], status_code=201)
async def create_client(payload: ClientForm, vm: ClientsViewModel = Depends(clients_page)):
    await vm.create(payload)
    return vm.view(ClientFilters())

@clients_router.put("/{client_id}", response_model=PageView[Client])
async def update_client(client_id: str, payload: ClientForm, vm: ClientsViewModel = Depends(clients_page)):
    await vm.ensure_loaded()
    await vm.update(client_id, payload)
    return vm.view(ClientFilters())

@clients_router.delete("/{client_id}", response_model=PageView[Client])
async def delete_client(client_id: str, vm: ClientsViewModel = Depends(clients_page)):
    await vm.ensure_loaded()
    await vm.delete(client_id)
    return vm.view(ClientFilters())

#############################
# Organizations             #
#############################

organizations_router = APIRouter(prefix="/organizations", tags=["organizations"])

@organizations_router.get("/", response_model=PageView[Organization])
async def get_organizations(
    filters: OrganizationFilters = Depends(),
    refresh: bool = False,
    vm: OrganizationsViewModel = Depends(organizations_page),
):
    await vm.ensure_loaded(force=refresh)
    return vm.view(filters)

@organizations_router.get("/stats")
async def get_platform_stats(vm: OrganizationsViewModel = Depends(organizations_page)) -> Dict[str, Any]:
    return await vm.platform_stats()

@organizations_router.post("/", response_model=PageView[Organization], status_code=201)
async def create_organization(payload: OrganizationCreate, vm: OrganizationsViewModel = Depends(organizations_page)):
    await vm.ensure_loaded()
    await vm.create_with_admin(payload)
    return vm.view(OrganizationFilters())

@organizations_router.put("/{organization_id}", response_model=PageView[Organization])
async def update_organization(
    organization_id: str,
    payload: OrganizationForm,
    vm: OrganizationsViewModel = Depends(organizations_page),
):
    await vm.ensure_loaded()
    await vm.update(organization_id, payload)
    return vm.view(OrganizationFilters())

@organizations_router.delete("/{organization_id}", response_model=PageView[Organization])
async def delete_organization(organization_id: str, vm: OrganizationsViewModel = Depends(organizations_page)):
    await vm.ensure_loaded()
    await vm.delete(organization_id)
    return vm.view(OrganizationFilters())

#############################
# Dealer slots / orders     #
#############################

dealer_slots_router = APIRouter(prefix="/dealer-slots", tags=["dealer-slots"])

@dealer_slots_router.get("/", response_model=PageView[DealerSlot])
async def get_dealer_slots(
    filters: DealerSlotFilters = Depends(),
    refresh: bool = False,
    vm: DealerSlotsViewModel = Depends(dealer_slots_page),
):
    await vm.ensure_loaded(force=refresh)
    return vm.view(filters)

@dealer_slots_router.get("/allocatable", response_model=List[AllocatableProduct])
async def get_allocatable_products(vm: DealerSlotsViewModel = Depends(dealer_slot_owner_page)):
    return await vm.allocatable_products()

@dealer_slots_router.post("/", response_model=PageView[DealerSlot], status_code=201)
async def create_dealer_slot(payload: DealerSlotCreate, vm: DealerSlotsViewModel = Depends(dealer_slot_owner_page)):
    await vm.ensure_loaded()
    await vm.create(payload)
    return vm.view(DealerSlotFilters())

@dealer_slots_router.put("/{slot_id}/status", response_model=PageView[DealerSlot])
async def change_dealer_slot_status(
    slot_id: str,
    payload: DealerSlotStatusChange,
    vm: DealerSlotsViewModel = Depends(dealer_slots_page),
):
    await vm.ensure_loaded()
    await vm.change_status(slot_id, payload)
    return vm.view(DealerSlotFilters())

client_orders_router = APIRouter(prefix="/client-orders", tags=["client-orders"])

@client_orders_router.get("/", response_model=PageView[ClientOrder])
async def get_client_orders(
    filters: ClientOrderFilters = Depends(),
    refresh: bool = False,
    vm: ClientOrdersViewModel = Depends(client_orders_page),
):
    await vm.ensure_loaded(force=refresh)
    return vm.view(filters)

#############################
# Notifications             #
#############################

notifications_router = APIRouter(prefix="/notifications", tags=["notifications"])

@notifications_router.get("/", response_model=NotificationPageView)
async def get_notifications(
    filters: NotificationFilters = Depends(),
    refresh: bool = False,
    vm: NotificationsViewModel = Depends(notifications_page),
):
    await vm.ensure_loaded(force=refresh)
    return vm.view(filters)

@notifications_router.put("/read-all", response_model=NotificationPageView)
async def mark_all_notifications_read(vm: NotificationsViewModel = Depends(notifications_page)):
    await vm.mark_all_read()
    return vm.view()

@notifications_router.put("/{notification_id}/read", response_model=NotificationPageView)
async def mark_notification_read(notification_id: str, vm: NotificationsViewModel = Depends(notifications_page)):
    await vm.ensure_loaded()
    await vm.mark_read(notification_id)
    return vm.view()

@notifications_router.delete("/{notification_id}", response_model=NotificationPageView)
async def delete_notification(notification_id: str, vm: NotificationsViewModel = Depends(notifications_page)):
    await vm.ensure_loaded()
    await vm.delete(notification_id)
    return vm.view()

routers = [
    session_router,
    inventory_router,
    purchase_requests_router,
    admin_requests_router,
    clients_router,
    organizations_router,
    dealer_slots_router,
    client_orders_router,
    notifications_router,
]
