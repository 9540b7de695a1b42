"""
Pydantic schemas for tenant auth configuration and login echo
"""

from typing import Optional

from iam_service.schemas.common import CamelModel


class AuthDetailsDto(CamelModel):
    """Public OIDC coordinates of a tenant, served to login frontends"""
    tenant_id: str
    tenant_key: str
    name: str
    tenant_type: Optional[str] = None
    keycloak_url: str
    realm: str
    client_id: str
    issuer: str
    jwk_uri: str
    token_uri: str
    domain: str
    status: str


class LoginEchoResponse(CamelModel):
    """Identity claims of the caller's verified token"""
    user_id: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    access_token: str
    message: str = "Login successful"
