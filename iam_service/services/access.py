"""
Groups, roles and memberships
"""

from sqlmodel import Session, select
from sqlalchemy import delete
from typing import Optional
import structlog

from iam_service.core.errors import ErrorCode, IamOperationError, ResourceNotFoundError
from iam_service.models.group import Group, GroupRoleLink, UserGroupLink
from iam_service.models.role import Role
from iam_service.models.tenant import Tenant
from iam_service.models.user import User
from iam_service.schemas.access import DropdownItem, GroupCreate, GroupResponse, RoleCreate, RoleResponse

logger = structlog.get_logger(__name__)


def admin_access_name(tenant_name: str) -> str:
    return f"{tenant_name}_Admin"


class AccessService:
    """Group and role management scoped to a tenant"""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Provisioning hook

    def ensure_admin_access(self, tenant: Tenant, admin: User) -> Group:
        """
        Create-or-get the tenant's admin role and admin group and put the
        admin user in the group. Flushes, does not commit.
        """
        name = admin_access_name(tenant.tenant_name)
        role = self.ensure_role(
            tenant.tenant_id,
            name,
            description="Organization administrator",
            is_default="Y",
            is_super_role="Y",
        )
        group = self.ensure_group(
            tenant.tenant_id,
            name,
            description="Organization administrators",
            is_admin="Y",
            is_default="Y",
        )
        self.assign_role_to_group(group.group_id, role.role_id)
        self.assign_user_to_group(group.group_id, admin.user_id)
        self.session.flush()
        logger.info(f"Admin role and group ensured for tenant {tenant.tenant_name}")
        return group

    def ensure_role(self, tenant_id: str, name: str, **attributes) -> Role:
        role = self.session.exec(
            select(Role).where(Role.tenant_id == tenant_id, Role.name == name)
        ).first()
        if role is None:
            role = Role(tenant_id=tenant_id, name=name, **attributes)
            self.session.add(role)
            self.session.flush()
        return role

    def ensure_group(self, tenant_id: str, name: str, **attributes) -> Group:
        group = self.session.exec(
            select(Group).where(Group.tenant_id == tenant_id, Group.name == name)
        ).first()
        if group is None:
            group = Group(tenant_id=tenant_id, name=name, **attributes)
            self.session.add(group)
            self.session.flush()
        return group

    def assign_role_to_group(self, group_id: str, role_id: str) -> None:
        if self.session.get(GroupRoleLink, (group_id, role_id)) is None:
            self.session.add(GroupRoleLink(group_id=group_id, role_id=role_id))

    def assign_user_to_group(self, group_id: str, user_id: str) -> None:
        if self.session.get(UserGroupLink, (group_id, user_id)) is None:
            self.session.add(UserGroupLink(group_id=group_id, user_id=user_id))

    def delete_tenant_access(self, tenant_id: str) -> None:
        """Remove every group, role and membership of a tenant. Does not commit."""
        group_ids = select(Group.group_id).where(Group.tenant_id == tenant_id)
        self.session.exec(delete(UserGroupLink).where(UserGroupLink.group_id.in_(group_ids)))
        self.session.exec(delete(GroupRoleLink).where(GroupRoleLink.group_id.in_(group_ids)))
        self.session.exec(delete(Group).where(Group.tenant_id == tenant_id))
        self.session.exec(delete(Role).where(Role.tenant_id == tenant_id))

    # ------------------------------------------------------------------
    # Groups

    def _require_tenant(self, tenant_id: str) -> Tenant:
        tenant = self.session.get(Tenant, tenant_id)
        if tenant is None:
            raise ResourceNotFoundError(f"Tenant not found: {tenant_id}")
        return tenant

    def _group_response(self, group: Group) -> GroupResponse:
        role_ids = self.session.exec(
            select(GroupRoleLink.role_id).where(GroupRoleLink.group_id == group.group_id)
        ).all()
        user_ids = self.session.exec(
            select(UserGroupLink.user_id).where(UserGroupLink.group_id == group.group_id)
        ).all()
        return GroupResponse(
            group_id=group.group_id,
            tenant_id=group.tenant_id,
            name=group.name,
            description=group.description,
            is_admin=group.is_admin,
            is_default=group.is_default,
            active=group.active,
            role_ids=list(role_ids),
            user_ids=list(user_ids),
        )

    def create_group(self, group_data: GroupCreate, created_by: Optional[str] = None) -> GroupResponse:
        self._require_tenant(group_data.tenant_id)
        existing = self.session.exec(
            select(Group).where(Group.tenant_id == group_data.tenant_id, Group.name == group_data.name)
        ).first()
        if existing:
            raise IamOperationError(ErrorCode.GROUP_ALREADY_EXISTS, f"Group '{group_data.name}' already exists.")

        group = Group(
            tenant_id=group_data.tenant_id,
            name=group_data.name,
            description=group_data.description,
            created_by=created_by,
        )
        self.session.add(group)
        self.session.flush()

        for role_id in group_data.role_ids:
            role = self.session.get(Role, role_id)
            if role is None or role.tenant_id != group.tenant_id:
                raise ResourceNotFoundError(f"Role not found: {role_id}")
            self.assign_role_to_group(group.group_id, role_id)
        for user_id in group_data.user_ids:
            user = self.session.get(User, user_id)
            if user is None or user.tenant_id != group.tenant_id:
                raise ResourceNotFoundError(f"User not found: {user_id}")
            self.assign_user_to_group(group.group_id, user_id)

        self.session.commit()
        self.session.refresh(group)
        logger.info(f"Group created: {group.name} ({group.group_id})")
        return self._group_response(group)

    def get_group(self, group_id: str) -> GroupResponse:
        group = self.session.get(Group, group_id)
        if group is None:
            raise ResourceNotFoundError(f"Group not found: {group_id}")
        return self._group_response(group)

    def list_groups(self, tenant_id: str) -> list[GroupResponse]:
        groups = self.session.exec(
            select(Group).where(Group.tenant_id == tenant_id).order_by(Group.name)
        ).all()
        return [self._group_response(g) for g in groups]

    def groups_dropdown(self, tenant_id: str) -> list[DropdownItem]:
        groups = self.session.exec(
            select(Group).where(Group.tenant_id == tenant_id, Group.active == True).order_by(Group.name)  # noqa: E712
        ).all()
        return [DropdownItem(id=g.group_id, name=g.name) for g in groups if not g.is_system_group()]

    # ------------------------------------------------------------------
    # Roles

    def create_role(self, role_data: RoleCreate) -> RoleResponse:
        self._require_tenant(role_data.tenant_id)
        existing = self.session.exec(
            select(Role).where(Role.tenant_id == role_data.tenant_id, Role.name == role_data.name)
        ).first()
        if existing:
            raise IamOperationError(ErrorCode.ROLE_ALREADY_EXISTS, f"Role '{role_data.name}' already exists.")

        role = Role(tenant_id=role_data.tenant_id, name=role_data.name, description=role_data.description)
        self.session.add(role)
        self.session.commit()
        self.session.refresh(role)
        logger.info(f"Role created: {role.name} ({role.role_id})")
        return RoleResponse.model_validate(role, from_attributes=True)

    def get_role(self, role_id: str) -> RoleResponse:
        role = self.session.get(Role, role_id)
        if role is None:
            raise ResourceNotFoundError(f"Role not found: {role_id}")
        return RoleResponse.model_validate(role, from_attributes=True)

    def list_roles(self, tenant_id: str) -> list[RoleResponse]:
        roles = self.session.exec(
            select(Role).where(Role.tenant_id == tenant_id).order_by(Role.name)
        ).all()
        return [RoleResponse.model_validate(r, from_attributes=True) for r in roles]

    def roles_dropdown(self, tenant_id: str) -> list[DropdownItem]:
        roles = self.session.exec(
            select(Role).where(Role.tenant_id == tenant_id).order_by(Role.name)
        ).all()
        return [DropdownItem(id=r.role_id, name=r.name) for r in roles if not r.is_system_role()]
