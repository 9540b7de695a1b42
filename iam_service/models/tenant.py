"""
Tenant model with the resumable provisioning state machine
"""

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import uuid


class TenantStatus(str, Enum):
    """Provisioning progress of a tenant, in order"""
    CREATING = "CREATING"                 # Local skeleton being written
    CREATED_LOCAL = "CREATED_LOCAL"       # Skeleton persisted, nothing remote yet
    REALM_CREATED = "REALM_CREATED"       # IdP realm exists
    CLIENT_CREATED = "CLIENT_CREATED"     # IdP client exists in the realm
    USER_CREATED = "USER_CREATED"         # Admin user exists and is realm admin
    ACTIVE = "ACTIVE"                     # Auth config written, welcome mail sent


STATUS_ORDER = list(TenantStatus)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Address(SQLModel, table=True):
    """Postal address attached to a tenant"""

    __tablename__ = "addresses"

    id: Optional[int] = Field(default=None, primary_key=True)
    address_line1: Optional[str] = Field(default=None, max_length=255)
    address_line2: Optional[str] = Field(default=None, max_length=255)
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, max_length=100)
    postal_code: Optional[str] = Field(default=None, max_length=20)


class Tenant(SQLModel, table=True):
    """Organization provisioned as its own IdP realm"""

    __tablename__ = "tenants"

    tenant_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        max_length=36,
    )
    tenant_name: str = Field(
        unique=True,
        index=True,
        max_length=100,
        description="Organization name; doubles as realm name and client id"
    )
    realm_name: str = Field(max_length=100)
    domain: str = Field(
        unique=True,
        index=True,
        max_length=255,
        description="Canonical domain (<label><suffix>)"
    )
    email: str = Field(unique=True, index=True, max_length=255)
    phone_no: str = Field(unique=True, index=True, max_length=50)
    region: Optional[str] = Field(default=None, max_length=100)
    tenant_type: Optional[str] = Field(default=None, max_length=100)
    industry: Optional[str] = Field(default=None, max_length=150)
    package_type: Optional[str] = Field(default=None, max_length=100)
    billing_cycle_type: Optional[str] = Field(default=None, max_length=50)

    temporary_address_id: Optional[int] = Field(default=None, foreign_key="addresses.id")
    permanent_address_id: Optional[int] = Field(default=None, foreign_key="addresses.id")
    billing_address_id: Optional[int] = Field(default=None, foreign_key="addresses.id")

    parent_tenant_id: Optional[str] = Field(default=None, index=True, max_length=36)
    login_url: Optional[str] = Field(default=None, max_length=1024)

    status: str = Field(
        default=TenantStatus.CREATING.value,
        index=True,
        max_length=32,
        description="Provisioning status, see TenantStatus"
    )

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    created_by: Optional[str] = Field(default=None, max_length=100)
    updated_by: Optional[str] = Field(default=None, max_length=100)

    @property
    def provisioning_status(self) -> Optional[TenantStatus]:
        """Status as an enum, or None when the stored value is not recognised"""
        try:
            return TenantStatus(self.status)
        except ValueError:
            return None

    def is_active(self) -> bool:
        return self.status == TenantStatus.ACTIVE.value

    def advance_to(self, status: TenantStatus) -> None:
        """Move provisioning forward; moving backwards is rejected"""
        current = self.provisioning_status
        if current is not None and STATUS_ORDER.index(status) < STATUS_ORDER.index(current):
            raise ValueError(f"Cannot move tenant from {current.value} back to {status.value}")
        self.status = status.value
        self.updated_at = utc_now()
