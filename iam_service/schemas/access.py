"""
Pydantic schemas for groups and roles
"""

from pydantic import Field
from typing import Optional

from iam_service.schemas.common import CamelModel


class GroupCreate(CamelModel):
    tenant_id: str
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = Field(default=None, max_length=500)
    role_ids: list[str] = Field(default_factory=list)
    user_ids: list[str] = Field(default_factory=list)


class GroupResponse(CamelModel):
    group_id: str
    tenant_id: str
    name: str
    description: Optional[str] = None
    is_admin: str
    is_default: str
    active: bool
    role_ids: list[str] = Field(default_factory=list)
    user_ids: list[str] = Field(default_factory=list)


class RoleCreate(CamelModel):
    tenant_id: str
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = Field(default=None, max_length=500)


class RoleResponse(CamelModel):
    role_id: str
    tenant_id: str
    name: str
    description: Optional[str] = None
    is_default: str
    is_super_role: str


class DropdownItem(CamelModel):
    """id/name pair for select inputs"""
    id: str
    name: str
