"""
User model scoped to a tenant and mirrored in the tenant realm
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import DateTime, UniqueConstraint
from datetime import datetime
from enum import Enum
from typing import Optional
import uuid

from iam_service.models.tenant import utc_now


class UserStatus(str, Enum):
    """Lifecycle of the local user row"""
    CREATING = "CREATING"     # Local row only
    ACTIVE = "ACTIVE"         # Linked to an IdP user


class User(SQLModel, table=True):
    """Tenant user; the tenant admin is flagged with default_user"""

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
    )

    user_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        max_length=36,
    )
    tenant_id: str = Field(
        foreign_key="tenants.tenant_id",
        index=True,
        max_length=36,
        description="Tenant ID for multi-tenant isolation"
    )

    user_name: str = Field(unique=True, index=True, max_length=100)
    email: str = Field(index=True, max_length=255)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone_no: Optional[str] = Field(default=None, index=True, max_length=50)

    status: str = Field(default=UserStatus.CREATING.value, max_length=32)
    keycloak_user_id: Optional[str] = Field(default=None, index=True, max_length=64)
    default_user: bool = Field(default=False, description="True for the tenant admin")

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    def link_identity(self, keycloak_user_id: str) -> None:
        """Record the IdP user id and mark the user active"""
        self.keycloak_user_id = keycloak_user_id
        self.status = UserStatus.ACTIVE.value
        self.updated_at = utc_now()
