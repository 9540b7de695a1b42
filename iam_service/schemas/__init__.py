"""
Schemas for API responses and requests
"""

from iam_service.schemas.common import AvailabilityResponse, CamelModel
from iam_service.schemas.tenant import (
    AddressPayload,
    BillingType,
    CreateTenantRequest,
    TenantNode,
    TenantResponse,
    UpdateTenantRequest,
)
from iam_service.schemas.auth import AuthDetailsDto, LoginEchoResponse
from iam_service.schemas.user import UserCreate, UserResponse, UserUpdate

__all__ = [
    "AvailabilityResponse",
    "CamelModel",
    "AddressPayload",
    "BillingType",
    "CreateTenantRequest",
    "TenantNode",
    "TenantResponse",
    "UpdateTenantRequest",
    "AuthDetailsDto",
    "LoginEchoResponse",
    "UserCreate",
    "UserResponse",
    "UserUpdate",
]
