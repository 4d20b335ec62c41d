from typing import Any, Dict, List, Optional
from shared.core import get_logger
from app.application.filtering import apply_filters
from app.application.resolver import EndpointStrategy
from app.application.schemas import (
    Client,
    ClientFilters,
    ClientForm,
    Organization,
    OrganizationCreate,
    OrganizationFilters,
    OrganizationForm,
)
from app.application.validation import (
    validate_client_form,
    validate_organization,
    validate_organization_with_admin,
)
from app.application.view_model import PageViewModel, returned_record

logger = get_logger(__name__)

def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None

def _clean_section(section) -> Optional[Dict[str, Any]]:
    if section is None:
        return None
    data = {k: _clean(v) if isinstance(v, str) else v for k, v in section.model_dump(by_alias=True).items()}
    data = {k: v for k, v in data.items() if v is not None}
    return data or None

def build_client_payload(form: ClientForm, organization_id: Optional[str] = None) -> Dict[str, Any]:
    """Trimmed client payload; empty company/address sections are left out."""
    payload: Dict[str, Any] = {
        "name": form.name.strip(),
        "email": form.email.strip(),
        "status": form.status,
        "role": "client",
        "createdByAdmin": True,
    }
    if form.password:
        payload["password"] = form.password
    phone = _clean(form.phone)
    if phone:
        payload["phone"] = phone
    company = _clean_section(form.company)
    if company:
        payload["company"] = company
    address = _clean_section(form.address)
    if address:
        payload["address"] = address
    if organization_id:
        payload["organizationId"] = organization_id
    return payload

class ClientsViewModel(PageViewModel[Client]):
    page = "clients"
    record_type = Client
    list_keys = ("clients", "data")

    def strategies(self) -> List[EndpointStrategy]:
        return [EndpointStrategy("clients"), EndpointStrategy("admin/clients")]

    async def create(self, form: ClientForm) -> None:
        validate_client_form(form, creating=True)
        payload = build_client_payload(form, self.session.user.organization_id)
        logger.info("Creating client", extra={'extra_fields': {'email': payload["email"]}})
        await self.submit(self.api.post("clients", payload))
        await self.refresh()

    async def update(self, client_id: str, form: ClientForm) -> Optional[Client]:
        self.find(client_id)
        validate_client_form(form, creating=False)
        payload = build_client_payload(form)
        body = await self.submit(self.api.put(f"clients/{client_id}", payload))
        return await self.patch_or_refresh(body, ("client", "data"))

    async def delete(self, client_id: str) -> None:
        self.find(client_id)
        await self.submit(self.api.delete(f"clients/{client_id}"))
        self.remove(client_id)

    def filtered(self, filters: ClientFilters) -> List[Client]:
        items = apply_filters(
            self.items,
            search=filters.search,
            search_fields=("name", "email", "company.name"),
            equals={"status": filters.status},
        )
        return self.ordered(items, filters.order_by)

class OrganizationsViewModel(PageViewModel[Organization]):
    page = "organizations"
    record_type = Organization
    list_keys = ("organizations", "data")

    def strategies(self) -> List[EndpointStrategy]:
        return [EndpointStrategy("organizations")]

    async def create_with_admin(self, payload: OrganizationCreate) -> Optional[Organization]:
        """Provision an organization together with its first admin in one call."""
        validate_organization_with_admin(payload)
        body = {
            "organization": {
                "name": payload.organization.name.strip(),
                "description": _clean(payload.organization.description),
                "status": payload.organization.status,
            },
            "admin": {
                "name": payload.admin.name.strip(),
                "email": payload.admin.email.strip(),
                "password": payload.admin.password,
                "role": "admin",
            },
        }
        logger.info("Provisioning organization", extra={'extra_fields': {'organization': body["organization"]["name"]}})
        result = await self.submit(self.api.post("organizations/with-admin", body))
        data = returned_record(result, ("organization",))
        records = self.parse_records([data]) if data is not None else []
        if records:
            self.items = self.items + records
            return records[0]
        await self.refresh()
        return None

    async def update(self, organization_id: str, form: OrganizationForm) -> Optional[Organization]:
        self.find(organization_id)
        validate_organization(form)
        payload = {"name": form.name.strip(), "description": _clean(form.description), "status": form.status}
        body = await self.submit(self.api.put(f"organizations/{organization_id}", payload))
        return await self.patch_or_refresh(body, ("organization",))

    async def delete(self, organization_id: str) -> None:
        self.find(organization_id)
        await self.submit(self.api.delete(f"organizations/{organization_id}"))
        self.remove(organization_id)

    async def platform_stats(self) -> Dict[str, Any]:
        """Server-computed platform totals, passed through untouched."""
        body = await self.submit(self.api.get("admin/stats"))
        return body if isinstance(body, dict) else {}

    def filtered(self, filters: OrganizationFilters) -> List[Organization]:
        items = apply_filters(
            self.items,
            search=filters.search,
            search_fields=("name", "description"),
            equals={"status": filters.status},
        )
        return self.ordered(items, filters.order_by)
