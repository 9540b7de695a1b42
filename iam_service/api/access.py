"""
Group and role API endpoints
"""

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session
from typing import List

from iam_service.core.database import get_session
from iam_service.schemas.access import DropdownItem, GroupCreate, GroupResponse, RoleCreate, RoleResponse
from iam_service.services.access import AccessService

groups_router = APIRouter()
roles_router = APIRouter()


def get_access_service(session: Session = Depends(get_session)) -> AccessService:
    return AccessService(session)


@groups_router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
def create_group(group_data: GroupCreate, service: AccessService = Depends(get_access_service)):
    return service.create_group(group_data)


@groups_router.get("", response_model=List[GroupResponse])
def list_groups(
    tenant_id: str = Query(..., alias="tenantId"),
    service: AccessService = Depends(get_access_service),
):
    return service.list_groups(tenant_id)


@groups_router.get("/dropdown", response_model=List[DropdownItem])
def groups_dropdown(
    tenant_id: str = Query(..., alias="tenantId"),
    service: AccessService = Depends(get_access_service),
):
    """Assignable groups; admin and default groups are hidden"""
    return service.groups_dropdown(tenant_id)


@groups_router.get("/{group_id}", response_model=GroupResponse)
def get_group(group_id: str, service: AccessService = Depends(get_access_service)):
    return service.get_group(group_id)


@roles_router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
def create_role(role_data: RoleCreate, service: AccessService = Depends(get_access_service)):
    return service.create_role(role_data)


@roles_router.get("", response_model=List[RoleResponse])
def list_roles(
    tenant_id: str = Query(..., alias="tenantId"),
    service: AccessService = Depends(get_access_service),
):
    return service.list_roles(tenant_id)


@roles_router.get("/dropdown", response_model=List[DropdownItem])
def roles_dropdown(
    tenant_id: str = Query(..., alias="tenantId"),
    service: AccessService = Depends(get_access_service),
):
    """Assignable roles; default and super roles are hidden"""
    return service.roles_dropdown(tenant_id)


@roles_router.get("/{role_id}", response_model=RoleResponse)
def get_role(role_id: str, service: AccessService = Depends(get_access_service)):
    return service.get_role(role_id)
