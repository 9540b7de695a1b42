"""
Role model
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import UniqueConstraint
from typing import Optional
import uuid


class Role(SQLModel, table=True):
    """Named permission bundle within a tenant"""

    __tablename__ = "roles"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_roles_tenant_name"),
    )

    role_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        max_length=36,
    )
    tenant_id: str = Field(foreign_key="tenants.tenant_id", index=True, max_length=36)
    name: str = Field(max_length=150)
    description: Optional[str] = Field(default=None, max_length=500)
    is_default: str = Field(default="N", max_length=1)
    is_super_role: str = Field(default="N", max_length=1)

    def is_system_role(self) -> bool:
        return self.is_default == "Y" or self.is_super_role == "Y"
