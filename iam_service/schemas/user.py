"""
Pydantic schemas for tenant users
"""

from pydantic import EmailStr, Field
from typing import Optional
from datetime import datetime

from iam_service.schemas.common import CamelModel


class UserCreate(CamelModel):
    """New tenant user; the username is generated when omitted"""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    user_name: Optional[str] = Field(default=None, max_length=100)
    phone_no: Optional[str] = Field(default=None, max_length=50)
    group_ids: list[str] = Field(default_factory=list)


class UserUpdate(CamelModel):
    """Mutable user attributes"""
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[EmailStr] = None
    phone_no: Optional[str] = Field(default=None, max_length=50)


class UserResponse(CamelModel):
    """User response model"""
    user_id: str
    tenant_id: str
    user_name: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_no: Optional[str] = None
    status: str
    keycloak_user_id: Optional[str] = None
    default_user: bool
    created_at: datetime
