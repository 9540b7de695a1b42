"""
Public auth configuration lookup for login frontends
"""

from typing import Optional

from sqlmodel import Session, select
import structlog

from iam_service.core.errors import ResourceNotFoundError
from iam_service.models.auth_provider_config import AuthProviderConfig
from iam_service.models.tenant import Tenant
from iam_service.schemas.auth import AuthDetailsDto

logger = structlog.get_logger(__name__)


def host_key(host: str) -> str:
    """Strip scheme, port and path from a host header value"""
    value = (host or "").strip()
    for scheme in ("http://", "https://"):
        if value.lower().startswith(scheme):
            value = value[len(scheme):]
    return value.split("/", 1)[0].split(":", 1)[0]


class AuthConfigService:
    """Resolves a request host to the tenant's OIDC coordinates"""

    def __init__(self, session: Session):
        self.session = session

    def _find_tenant(self, host: str) -> Optional[Tenant]:
        key = host_key(host)
        if not key:
            return None
        tenant = self.session.exec(select(Tenant).where(Tenant.domain == key.lower())).first()
        if tenant is None:
            tenant = self.session.exec(select(Tenant).where(Tenant.tenant_name == key)).first()
        return tenant

    def get_tenant_config(self, host: str) -> AuthDetailsDto:
        tenant = self._find_tenant(host)
        if tenant is None:
            logger.info(f"No tenant matches host {host}")
            raise ResourceNotFoundError(f"Tenant not found for host: {host}")

        config = self.session.exec(
            select(AuthProviderConfig).where(AuthProviderConfig.tenant_id == tenant.tenant_id)
        ).first()
        if config is None:
            raise ResourceNotFoundError(f"Auth provider config missing for tenant: {tenant.tenant_name}")

        return AuthDetailsDto(
            tenant_id=tenant.tenant_id,
            tenant_key=tenant.tenant_name,
            name=tenant.tenant_name,
            tenant_type=tenant.tenant_type,
            keycloak_url=config.auth_server_url,
            realm=tenant.realm_name,
            client_id=config.client_id,
            issuer=config.issuer_uri,
            jwk_uri=config.certs_uri(),
            token_uri=config.token_endpoint,
            domain=tenant.domain,
            status=tenant.status,
        )
