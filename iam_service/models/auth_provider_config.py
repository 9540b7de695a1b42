"""
Per-tenant OIDC provider coordinates
"""

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel
from datetime import datetime
from typing import Optional
import uuid

from iam_service.models.tenant import utc_now

SSO_TYPE_KEYCLOAK = "KEYCLOAK"
DEFAULT_SCOPES = "openid profile email"


class AuthProviderConfig(SQLModel, table=True):
    """Where a tenant's tokens come from and how to verify them"""

    __tablename__ = "auth_provider_configs"

    auth_id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: str = Field(
        foreign_key="tenants.tenant_id",
        unique=True,
        index=True,
        max_length=36,
    )
    sso_type: str = Field(default=SSO_TYPE_KEYCLOAK, max_length=32)
    issuer_uri: str = Field(index=True, max_length=1024)
    auth_server_url: str = Field(max_length=1024)
    token_endpoint: str = Field(max_length=1024)
    jwk_uri: Optional[str] = Field(default=None, max_length=1024)
    client_id: str = Field(max_length=255)
    client_secret: Optional[str] = Field(default=None, max_length=255)
    redirect_uri: Optional[str] = Field(default=None, max_length=1024)
    login_url: Optional[str] = Field(default=None, max_length=1024)
    scopes: str = Field(default=DEFAULT_SCOPES, max_length=255)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    def certs_uri(self) -> str:
        """JWKS location, derived from the issuer when not stored"""
        if self.jwk_uri:
            return self.jwk_uri
        return f"{self.issuer_uri.rstrip('/')}/protocol/openid-connect/certs"
