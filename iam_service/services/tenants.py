"""
Tenant queries, updates and removal
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete
from sqlmodel import Session, select
import structlog

from iam_service.core.config import Settings
from iam_service.core.domain import DomainNormalizer
from iam_service.core.errors import ErrorCode, IamOperationError, ResourceNotFoundError
from iam_service.idp.client import IdpError
from iam_service.models.auth_provider_config import AuthProviderConfig
from iam_service.models.reference import TenantType
from iam_service.models.tenant import Address, Tenant
from iam_service.models.user import User
from iam_service.schemas.common import AvailabilityResponse
from iam_service.schemas.reference import TenantTypeResponse
from iam_service.schemas.tenant import (
    BillingType,
    TenantNode,
    TenantResponse,
    UpdateTenantRequest,
)
from iam_service.services.access import AccessService

logger = structlog.get_logger(__name__)

BILLING_TYPES = ["Trial", "Monthly", "Quarterly", "Yearly"]
ADDRESS_FIELDS = ("temporary_address", "permanent_address", "billing_address")


class TenantService:
    """Everything about tenants except provisioning itself"""

    def __init__(self, session: Session, idp, settings: Settings):
        self.session = session
        self.idp = idp
        self.settings = settings
        self.normalizer = DomainNormalizer(settings.DOMAIN_SUFFIX)

    def _tenant(self, tenant_id: str) -> Tenant:
        tenant = self.session.get(Tenant, tenant_id)
        if tenant is None:
            raise ResourceNotFoundError(f"Tenant not found: {tenant_id}")
        return tenant

    def _address(self, address_id: Optional[int]) -> Optional[Address]:
        return self.session.get(Address, address_id) if address_id else None

    def _response(self, tenant: Tenant) -> TenantResponse:
        return TenantResponse.from_tenant(
            tenant,
            temporary_address=self._address(tenant.temporary_address_id),
            permanent_address=self._address(tenant.permanent_address_id),
            billing_address=self._address(tenant.billing_address_id),
        )

    def get_tenant(self, tenant_id: str) -> TenantResponse:
        return self._response(self._tenant(tenant_id))

    def get_tenant_hierarchy(self) -> list[TenantNode]:
        """All tenants as a forest keyed on parent_tenant_id"""
        tenants = self.session.exec(select(Tenant).order_by(Tenant.created_at)).all()
        nodes = {
            t.tenant_id: TenantNode(
                tenant_id=t.tenant_id,
                tenant_name=t.tenant_name,
                domain=t.domain,
                status=t.status,
                tenant_type=t.tenant_type,
                login_url=t.login_url,
            )
            for t in tenants
        }
        roots = []
        for tenant in tenants:
            node = nodes[tenant.tenant_id]
            parent = nodes.get(tenant.parent_tenant_id) if tenant.parent_tenant_id else None
            if parent is None or parent is node:
                roots.append(node)
            else:
                parent.children.append(node)
        return roots

    # ------------------------------------------------------------------
    # Update

    def update_tenant(self, tenant_id: str, request: UpdateTenantRequest, updated_by: Optional[str] = None) -> TenantResponse:
        tenant = self._tenant(tenant_id)

        if request.tenant_name and request.tenant_name.strip() != tenant.tenant_name:
            raise IamOperationError(ErrorCode.TENANT_NAME_IMMUTABLE)

        domain_changed = False
        if request.domain:
            domain = self.normalizer.normalize(request.domain)
            if domain != tenant.domain:
                clash = self.session.exec(
                    select(Tenant).where(Tenant.domain == domain, Tenant.tenant_id != tenant_id)
                ).first()
                if clash:
                    raise IamOperationError(ErrorCode.DOMAIN_ALREADY_EXISTS)
                tenant.domain = domain
                domain_changed = True

        if request.phone_no and request.phone_no != tenant.phone_no:
            clash = self.session.exec(
                select(Tenant).where(Tenant.phone_no == request.phone_no, Tenant.tenant_id != tenant_id)
            ).first()
            if clash:
                raise IamOperationError(ErrorCode.ORGANIZATION_PHONE_NUMBER_ALREADY_EXISTS)
            tenant.phone_no = request.phone_no

        if request.email and request.email != tenant.email:
            clash = self.session.exec(
                select(Tenant).where(Tenant.email == request.email, Tenant.tenant_id != tenant_id)
            ).first()
            if clash:
                raise IamOperationError(ErrorCode.ORGANIZATION_EMAIL_ALREADY_EXISTS)
            tenant.email = request.email

        for field in ("region", "tenant_type", "industry", "billing_cycle_type"):
            value = getattr(request, field)
            if value is not None:
                setattr(tenant, field, value)

        for field in ADDRESS_FIELDS:
            payload = getattr(request, field)
            if payload is None:
                continue
            address = self._address(getattr(tenant, f"{field}_id"))
            if address is None:
                address = payload.to_model()
                self.session.add(address)
                self.session.flush()
                setattr(tenant, f"{field}_id", address.id)
            else:
                for key, value in payload.model_dump(by_alias=False).items():
                    setattr(address, key, value)
                self.session.add(address)

        if domain_changed:
            self._apply_domain_change(tenant)

        tenant.updated_at = datetime.now(timezone.utc)
        tenant.updated_by = updated_by
        self.session.add(tenant)
        self.session.commit()
        self.session.refresh(tenant)
        logger.info(f"Tenant updated: {tenant.tenant_name}")
        return self._response(tenant)

    def _apply_domain_change(self, tenant: Tenant) -> None:
        redirect = self.normalizer.redirect_uri(tenant.domain)
        if tenant.login_url:
            tenant.login_url = self.normalizer.login_url(
                self.settings.IDP_BASE_URL, tenant.tenant_name, tenant.domain
            )
        config = self.session.exec(
            select(AuthProviderConfig).where(AuthProviderConfig.tenant_id == tenant.tenant_id)
        ).first()
        if config is not None:
            config.redirect_uri = redirect
            config.login_url = tenant.login_url
            self.session.add(config)
        if tenant.is_active():
            try:
                self.idp.update_client_redirect_uris(tenant.realm_name, tenant.tenant_name, [redirect])
            except IdpError as e:
                logger.error(f"Could not update redirect URIs for {tenant.tenant_name}: {e}")
                raise IamOperationError(ErrorCode.CLIENT_CREATION_FAILED, "Unable to update organization client.") from e

    # ------------------------------------------------------------------
    # Delete

    def delete_tenant(self, tenant_id: str) -> None:
        """Remove the realm (best effort) and every local row of the tenant"""
        tenant = self._tenant(tenant_id)

        try:
            self.idp.delete_realm(tenant.realm_name)
        except IdpError as e:
            logger.warning(f"Realm {tenant.realm_name} could not be deleted: {e}")

        AccessService(self.session).delete_tenant_access(tenant_id)
        self.session.exec(delete(AuthProviderConfig).where(AuthProviderConfig.tenant_id == tenant_id))
        self.session.exec(delete(User).where(User.tenant_id == tenant_id))

        children = self.session.exec(select(Tenant).where(Tenant.parent_tenant_id == tenant_id)).all()
        for child in children:
            child.parent_tenant_id = None
            self.session.add(child)

        address_ids = [getattr(tenant, f"{field}_id") for field in ADDRESS_FIELDS]
        self.session.delete(tenant)
        self.session.flush()
        for address_id in address_ids:
            address = self._address(address_id)
            if address is not None:
                self.session.delete(address)

        self.session.commit()
        logger.info(f"Tenant deleted: {tenant_id}")

    # ------------------------------------------------------------------
    # Lookups and availability probes

    def get_tenant_types(self) -> list[TenantTypeResponse]:
        types = self.session.exec(select(TenantType).order_by(TenantType.tenant_type_name)).all()
        return [TenantTypeResponse.model_validate(t, from_attributes=True) for t in types]

    def get_billing_types(self) -> list[BillingType]:
        return [BillingType(id=i, billing_type=name) for i, name in enumerate(BILLING_TYPES, start=1)]

    def _exists(self, statement) -> bool:
        return self.session.exec(statement).first() is not None

    def check_tenant_name(self, tenant_name: str) -> AvailabilityResponse:
        exists = self._exists(select(Tenant).where(Tenant.tenant_name == tenant_name.strip()))
        return AvailabilityResponse(
            available=not exists,
            message="Tenant name already exists." if exists else "Tenant name is available.",
        )

    def check_domain(self, domain: str) -> AvailabilityResponse:
        canonical = self.normalizer.normalize(domain)
        exists = self._exists(select(Tenant).where(Tenant.domain == canonical))
        return AvailabilityResponse(
            available=not exists,
            message="Domain Name already exists." if exists else "Domain name is available.",
        )

    def check_phone_number(self, phone_no: str) -> AvailabilityResponse:
        exists = self._exists(select(Tenant).where(Tenant.phone_no == phone_no))
        return AvailabilityResponse(
            available=not exists,
            message="Phone Number already exists." if exists else "Phone Number is available.",
        )

    def check_email(self, email: str) -> AvailabilityResponse:
        exists = self._exists(select(Tenant).where(Tenant.email == email))
        return AvailabilityResponse(
            available=not exists,
            message="Email already exists." if exists else "Email is available.",
        )
