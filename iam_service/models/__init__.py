from iam_service.models.tenant import Tenant, TenantStatus, Address
from iam_service.models.user import User, UserStatus
from iam_service.models.auth_provider_config import AuthProviderConfig
from iam_service.models.group import Group, GroupRoleLink, UserGroupLink
from iam_service.models.role import Role
from iam_service.models.reference import Region, Country, State, City, Industry, TenantType

__all__ = [
    "Tenant",
    "TenantStatus",
    "Address",
    "User",
    "UserStatus",
    "AuthProviderConfig",
    "Group",
    "GroupRoleLink",
    "UserGroupLink",
    "Role",
    "Region",
    "Country",
    "State",
    "City",
    "Industry",
    "TenantType",
]
