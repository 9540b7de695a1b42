"""
Groups and their role / user memberships
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import DateTime, UniqueConstraint
from datetime import datetime
from typing import Optional
import uuid

from iam_service.models.tenant import utc_now


class GroupRoleLink(SQLModel, table=True):
    """Role granted to a group"""

    __tablename__ = "group_role_links"

    group_id: str = Field(foreign_key="groups.group_id", primary_key=True, max_length=36)
    role_id: str = Field(foreign_key="roles.role_id", primary_key=True, max_length=36)


class UserGroupLink(SQLModel, table=True):
    """User membership in a group"""

    __tablename__ = "user_group_links"

    group_id: str = Field(foreign_key="groups.group_id", primary_key=True, max_length=36)
    user_id: str = Field(foreign_key="users.user_id", primary_key=True, max_length=36)


class Group(SQLModel, table=True):
    """Named set of users within a tenant"""

    __tablename__ = "groups"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_groups_tenant_name"),
    )

    group_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        max_length=36,
    )
    tenant_id: str = Field(foreign_key="tenants.tenant_id", index=True, max_length=36)
    name: str = Field(max_length=150)
    description: Optional[str] = Field(default=None, max_length=500)
    is_admin: str = Field(default="N", max_length=1)
    is_default: str = Field(default="N", max_length=1)
    active: bool = Field(default=True)
    created_by: Optional[str] = Field(default=None, max_length=100)
    created_time: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_time: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    def is_system_group(self) -> bool:
        """Admin and default groups are managed by provisioning"""
        return self.is_admin == "Y" or self.is_default == "Y"
