"""
Pydantic schemas for tenants
"""

from pydantic import EmailStr, Field
from typing import Optional
from datetime import datetime

from iam_service.models.tenant import Address, Tenant
from iam_service.schemas.common import CamelModel


class AddressPayload(CamelModel):
    """Postal address"""
    address_line1: Optional[str] = Field(default=None, max_length=255)
    address_line2: Optional[str] = Field(default=None, max_length=255)
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, max_length=100)
    postal_code: Optional[str] = Field(default=None, max_length=20)

    def to_model(self) -> Address:
        return Address(**self.model_dump(by_alias=False))


class CreateTenantRequest(CamelModel):
    """Organization onboarding request; required fields are checked by the service"""
    tenant_name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[EmailStr] = None
    domain: Optional[str] = Field(default=None, max_length=255)
    region: Optional[str] = None
    phone_no: Optional[str] = Field(default=None, max_length=50)
    tenant_type: Optional[str] = None
    industry: Optional[str] = None
    billing_cycle_type: Optional[str] = None
    parent_tenant_id: Optional[str] = None

    temporary_address: Optional[AddressPayload] = None
    permanent_address: Optional[AddressPayload] = None
    billing_address: Optional[AddressPayload] = None

    admin_first_name: Optional[str] = Field(default=None, max_length=100)
    admin_last_name: Optional[str] = Field(default=None, max_length=100)
    admin_user_name: Optional[str] = Field(default=None, max_length=100)
    admin_phone_number: Optional[str] = Field(default=None, max_length=50)
    admin_email: Optional[EmailStr] = None
    admin_password: Optional[str] = Field(default=None, max_length=128)


class UpdateTenantRequest(CamelModel):
    """Mutable organization attributes"""
    tenant_name: Optional[str] = None
    email: Optional[EmailStr] = None
    domain: Optional[str] = Field(default=None, max_length=255)
    region: Optional[str] = None
    phone_no: Optional[str] = Field(default=None, max_length=50)
    tenant_type: Optional[str] = None
    industry: Optional[str] = None
    billing_cycle_type: Optional[str] = None
    temporary_address: Optional[AddressPayload] = None
    permanent_address: Optional[AddressPayload] = None
    billing_address: Optional[AddressPayload] = None


class TenantResponse(CamelModel):
    """Tenant as returned by the API"""
    tenant_id: str = Field(alias="tenantID")
    tenant_name: str
    realm_name: str
    domain: str
    email: Optional[str] = None
    region: Optional[str] = None
    phone_no: Optional[str] = None
    tenant_type: Optional[str] = None
    industry: Optional[str] = None
    billing_cycle_type: Optional[str] = None
    parent_tenant_id: Optional[str] = None
    temporary_address: Optional[AddressPayload] = None
    permanent_address: Optional[AddressPayload] = None
    billing_address: Optional[AddressPayload] = None
    status: str
    created_at: datetime
    login_url: Optional[str] = None

    @classmethod
    def from_tenant(
        cls,
        tenant: Tenant,
        temporary_address: Optional[Address] = None,
        permanent_address: Optional[Address] = None,
        billing_address: Optional[Address] = None,
    ) -> "TenantResponse":
        def address(value: Optional[Address]) -> Optional[AddressPayload]:
            if value is None:
                return None
            return AddressPayload(**value.model_dump(exclude={"id"}))

        return cls(
            tenant_id=tenant.tenant_id,
            tenant_name=tenant.tenant_name,
            realm_name=tenant.realm_name,
            domain=tenant.domain,
            email=tenant.email,
            region=tenant.region,
            phone_no=tenant.phone_no,
            tenant_type=tenant.tenant_type,
            industry=tenant.industry,
            billing_cycle_type=tenant.billing_cycle_type,
            parent_tenant_id=tenant.parent_tenant_id,
            temporary_address=address(temporary_address),
            permanent_address=address(permanent_address),
            billing_address=address(billing_address),
            status=tenant.status,
            created_at=tenant.created_at,
            login_url=tenant.login_url,
        )


class TenantNode(CamelModel):
    """Tenant with its descendants"""
    tenant_id: str = Field(alias="tenantID")
    tenant_name: str
    domain: str
    status: str
    tenant_type: Optional[str] = None
    login_url: Optional[str] = None
    children: list["TenantNode"] = Field(default_factory=list)


class BillingType(CamelModel):
    id: int
    billing_type: str
