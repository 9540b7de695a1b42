"""
Resumable tenant provisioning

A tenant moves CREATING -> CREATED_LOCAL -> REALM_CREATED -> CLIENT_CREATED
-> USER_CREATED -> ACTIVE. Every step after the local skeleton is
idempotent: it probes the identity provider before creating, absorbs
"already exists" conflicts, and persists its status advance in its own
commit. A failed request can therefore be re-sent with the same tenant
name and continues from the last persisted status.

The local skeleton commits together with the realm step. If that
transaction rolls back, a registered compensation deletes the realm so a
retry starts from a clean slate.
"""

from functools import partial
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
import structlog

from iam_service.core.config import Settings
from iam_service.core.database import register_rollback_compensation
from iam_service.core.domain import DomainNormalizer
from iam_service.core.errors import ErrorCode, IamOperationError
from iam_service.core.mailer import Mailer
from iam_service.idp.client import IdpConflictError, IdpError
from iam_service.models.auth_provider_config import (
    AuthProviderConfig,
    DEFAULT_SCOPES,
    SSO_TYPE_KEYCLOAK,
)
from iam_service.models.reference import City, Country, Region, State
from iam_service.models.tenant import Address, Tenant, TenantStatus
from iam_service.models.user import User
from iam_service.schemas.tenant import CreateTenantRequest, TenantResponse
from iam_service.services.access import AccessService
from iam_service.services.users import generate_unique_username

logger = structlog.get_logger(__name__)


class TenantProvisioningService:
    """Drives a tenant through provisioning against the identity provider"""

    def __init__(
        self,
        session: Session,
        idp,
        mailer: Mailer,
        settings: Settings,
        normalizer: Optional[DomainNormalizer] = None,
    ):
        self.session = session
        self.idp = idp
        self.mailer = mailer
        self.settings = settings
        self.normalizer = normalizer or DomainNormalizer(settings.DOMAIN_SUFFIX)
        self.access = AccessService(session)

    # ------------------------------------------------------------------
    # Entry points

    def create_tenant(self, request: CreateTenantRequest) -> TenantResponse:
        """Create a tenant, or resume one that a previous attempt left unfinished"""
        logger.info(f"Create tenant requested: {request.tenant_name}")

        existing = self._find_tenant(request.tenant_name)
        if existing is not None:
            return self._resume_existing(existing, request)

        self._validate_new_tenant(request)

        try:
            tenant = self._create_skeleton(request)
        except IntegrityError:
            self.session.rollback()
            logger.warning(f"Concurrent create detected for tenant {request.tenant_name}")
            return self._recover_from_conflict(request)

        register_rollback_compensation(
            self.session,
            partial(self._delete_realm_if_present, tenant.realm_name),
            f"delete realm {tenant.realm_name}",
        )
        return self._drive(tenant, request)

    def resume_tenant_setup(self, request: CreateTenantRequest) -> TenantResponse:
        """Continue provisioning from the tenant's persisted status"""
        tenant = self._find_tenant(request.tenant_name)
        if tenant is None:
            raise IamOperationError(ErrorCode.TENANT_NOT_FOUND)
        logger.info(f"Resuming tenant {tenant.tenant_name} from {tenant.status}")
        return self._drive(tenant, request)

    def _resume_existing(self, tenant: Tenant, request: CreateTenantRequest) -> TenantResponse:
        if tenant.is_active():
            raise IamOperationError(ErrorCode.TENANT_ALREADY_ACTIVE)
        return self.resume_tenant_setup(request)

    def _recover_from_conflict(self, request: CreateTenantRequest) -> TenantResponse:
        existing = self._find_tenant(request.tenant_name)
        if existing is not None:
            return self._resume_existing(existing, request)
        # Surfaces the specific duplicate, if the conflict was on another column
        self._validate_new_tenant(request)
        raise IamOperationError(ErrorCode.INTERNAL_ERROR)

    # ------------------------------------------------------------------
    # Validation and local skeleton

    def _find_tenant(self, tenant_name: Optional[str]) -> Optional[Tenant]:
        if not tenant_name:
            return None
        return self.session.exec(
            select(Tenant).where(Tenant.tenant_name == tenant_name.strip())
        ).first()

    def _exists(self, statement) -> bool:
        return self.session.exec(statement).first() is not None

    def _validate_new_tenant(self, request: CreateTenantRequest) -> None:
        if not request.tenant_name:
            raise IamOperationError(ErrorCode.ORGANIZATION_NAME_REQUIRED)
        tenant_name = request.tenant_name.strip()
        if self._exists(select(Tenant).where(Tenant.tenant_name == tenant_name)):
            raise IamOperationError(ErrorCode.TENANT_ALREADY_EXISTS)

        domain = self.normalizer.normalize(request.domain)
        if self._exists(select(Tenant).where(Tenant.domain == domain)):
            raise IamOperationError(ErrorCode.DOMAIN_ALREADY_EXISTS)

        if not request.phone_no:
            raise IamOperationError(ErrorCode.ORGANIZATION_PHONE_NUMBER_REQUIRED)
        if self._exists(select(Tenant).where(Tenant.phone_no == request.phone_no)):
            raise IamOperationError(ErrorCode.ORGANIZATION_PHONE_NUMBER_ALREADY_EXISTS)

        if not request.email:
            raise IamOperationError(ErrorCode.ORGANIZATION_EMAIL_REQUIRED)
        if self._exists(select(Tenant).where(Tenant.email == request.email)):
            raise IamOperationError(ErrorCode.ORGANIZATION_EMAIL_ALREADY_EXISTS)

        if request.admin_user_name:
            user_name = request.admin_user_name.strip().lower()
            if self._exists(select(User).where(User.user_name == user_name)):
                raise IamOperationError(ErrorCode.ADMIN_USERNAME_ALREADY_EXISTS)

        if not request.admin_email:
            raise IamOperationError(ErrorCode.ADMIN_EMAIL_REQUIRED)
        if self._exists(select(User).where(User.email == request.admin_email)):
            raise IamOperationError(ErrorCode.ADMIN_EMAIL_ALREADY_EXISTS)

        if not request.admin_phone_number:
            raise IamOperationError(ErrorCode.ADMIN_PHONE_NUMBER_REQUIRED)
        if self._exists(select(User).where(User.phone_no == request.admin_phone_number)):
            raise IamOperationError(ErrorCode.ADMIN_PHONE_NUMBER_ALREADY_EXISTS)

        if request.parent_tenant_id and self.session.get(Tenant, request.parent_tenant_id) is None:
            raise IamOperationError(ErrorCode.INVALID_PARENT_TENANT)

        self._warn_on_unknown_location(request)

        try:
            realm_taken = self.idp.realm_exists(tenant_name)
        except IdpError as e:
            raise IamOperationError(ErrorCode.REALM_CREATION_FAILED) from e
        if realm_taken:
            raise IamOperationError(ErrorCode.REALM_ALREADY_EXISTS)

    def _warn_on_unknown_location(self, request: CreateTenantRequest) -> None:
        """Log, without failing, when the address geography is not in reference data"""
        address = request.permanent_address
        if not address:
            return
        checks = [
            (request.region, Region, Region.region_name),
            (address.country, Country, Country.country_name),
            (address.state, State, State.state_name),
            (address.city, City, City.city_name),
        ]
        for value, model, column in checks:
            if value and not self._exists(select(model).where(column == value)):
                logger.warning(
                    f"Unknown {model.__tablename__} '{value}' for tenant {request.tenant_name}"
                )

    def _create_skeleton(self, request: CreateTenantRequest) -> Tenant:
        """Write tenant, addresses and admin user. Flushes, does not commit."""
        tenant_name = request.tenant_name.strip()
        tenant = Tenant(
            tenant_name=tenant_name,
            realm_name=tenant_name,
            domain=self.normalizer.normalize(request.domain),
            email=request.email,
            phone_no=request.phone_no,
            region=request.region,
            tenant_type=request.tenant_type,
            industry=request.industry,
            billing_cycle_type=request.billing_cycle_type,
            parent_tenant_id=request.parent_tenant_id,
            status=TenantStatus.CREATING.value,
        )
        for attribute in ("temporary_address", "permanent_address", "billing_address"):
            payload = getattr(request, attribute)
            if payload is not None:
                address = payload.to_model()
                self.session.add(address)
                self.session.flush()
                setattr(tenant, f"{attribute}_id", address.id)
        self.session.add(tenant)
        self.session.flush()

        user_name = (request.admin_user_name or "").strip().lower() or generate_unique_username(
            self.session, request.admin_first_name, request.admin_last_name
        )
        admin = User(
            tenant_id=tenant.tenant_id,
            user_name=user_name,
            email=request.admin_email,
            first_name=request.admin_first_name,
            last_name=request.admin_last_name,
            phone_no=request.admin_phone_number,
            default_user=True,
        )
        self.session.add(admin)
        self.session.flush()

        tenant.advance_to(TenantStatus.CREATED_LOCAL)
        self.session.add(tenant)
        self.access.ensure_admin_access(tenant, admin)
        self.session.flush()
        logger.info(f"Local skeleton written for tenant {tenant_name} ({tenant.tenant_id})")
        return tenant

    def _delete_realm_if_present(self, realm_name: str) -> None:
        try:
            if self.idp.realm_exists(realm_name):
                self.idp.delete_realm(realm_name)
                logger.info(f"Compensation removed realm {realm_name}")
        except IdpError as e:
            logger.error(f"Compensation could not remove realm {realm_name}: {e}")

    # ------------------------------------------------------------------
    # Step dispatch

    def _drive(self, tenant: Tenant, request: CreateTenantRequest) -> TenantResponse:
        steps = {
            TenantStatus.CREATING: self._create_realm,
            TenantStatus.CREATED_LOCAL: self._create_realm,
            TenantStatus.REALM_CREATED: self._create_client,
            TenantStatus.CLIENT_CREATED: self._create_admin_user,
            TenantStatus.USER_CREATED: self._activate,
        }
        while not tenant.is_active():
            status = tenant.provisioning_status
            step = steps.get(status)
            if step is None:
                logger.error(f"Tenant {tenant.tenant_name} has unknown status {tenant.status}")
                raise IamOperationError(ErrorCode.UNKNOWN_STATE)
            logger.info(f"Tenant {tenant.tenant_name}: running step for {status.value}")
            try:
                step(tenant, request)
            except Exception:
                self.session.rollback()
                raise

        logger.info(f"Tenant {tenant.tenant_name} is ACTIVE")
        return self._response(tenant)

    def _advance(self, tenant: Tenant, status: TenantStatus) -> None:
        tenant.advance_to(status)
        self.session.add(tenant)
        self.session.commit()
        self.session.refresh(tenant)
        logger.info(f"Tenant {tenant.tenant_name} advanced to {status.value}")

    def _admin_user(self, tenant: Tenant) -> User:
        admin = self.session.exec(
            select(User).where(User.tenant_id == tenant.tenant_id, User.default_user == True)  # noqa: E712
        ).first()
        if admin is None:
            raise IamOperationError(
                ErrorCode.USER_CREATION_FAILED, "Organization admin user record is missing."
            )
        return admin

    # ------------------------------------------------------------------
    # Steps

    def _realm_representation(self, realm_name: str) -> dict:
        s = self.settings
        return {
            "realm": realm_name,
            "enabled": True,
            "smtpServer": {
                "host": s.SMTP_HOST,
                "port": str(s.SMTP_PORT),
                "from": s.SMTP_FROM,
                "user": s.SMTP_USERNAME,
                "password": s.SMTP_PASSWORD,
                "auth": str(s.SMTP_AUTH).lower(),
                "starttls": str(s.SMTP_STARTTLS).lower(),
                "ssl": "false",
            },
        }

    def _create_realm(self, tenant: Tenant, request: CreateTenantRequest) -> None:
        realm = tenant.realm_name
        try:
            if self.idp.realm_exists(realm):
                logger.info(f"Realm {realm} already exists, skipping creation")
            else:
                self.idp.create_realm(self._realm_representation(realm))
        except IdpConflictError:
            logger.info(f"Realm {realm} created concurrently, continuing")
        except IdpError as e:
            logger.error(f"Realm creation failed for {realm}: {e}")
            raise IamOperationError(ErrorCode.REALM_CREATION_FAILED) from e
        self._advance(tenant, TenantStatus.REALM_CREATED)

    def _client_representation(self, tenant: Tenant) -> dict:
        representation = {
            "clientId": tenant.tenant_name,
            "name": tenant.tenant_name,
            "protocol": "openid-connect",
            "publicClient": True,
            "standardFlowEnabled": True,
            "enabled": True,
            "redirectUris": [self.normalizer.redirect_uri(tenant.domain)],
            "webOrigins": ["*"],
        }
        if self.settings.REALM_POST_LOGIN_URL:
            representation["baseUrl"] = self.settings.REALM_POST_LOGIN_URL
        if self.settings.OIDC_REDIRECT_URL:
            representation["attributes"] = {
                "post.logout.redirect.uris": self.settings.OIDC_REDIRECT_URL,
            }
        return representation

    def _create_client(self, tenant: Tenant, request: CreateTenantRequest) -> None:
        realm = tenant.realm_name
        try:
            if self.idp.client_exists(realm, tenant.tenant_name):
                logger.info(f"Client {tenant.tenant_name} already exists in realm {realm}, skipping")
            else:
                self.idp.create_client(realm, self._client_representation(tenant))
        except IdpConflictError:
            logger.info(f"Client {tenant.tenant_name} created concurrently, continuing")
        except IdpError as e:
            logger.error(f"Client creation failed for realm {realm}: {e}")
            raise IamOperationError(ErrorCode.CLIENT_CREATION_FAILED) from e
        self._advance(tenant, TenantStatus.CLIENT_CREATED)

    def _create_admin_user(self, tenant: Tenant, request: CreateTenantRequest) -> None:
        realm = tenant.realm_name
        admin = self._admin_user(tenant)
        password = (request.admin_password or "").strip()

        try:
            existing = self.idp.find_user_by_username(realm, admin.user_name)
            if existing is not None:
                keycloak_user_id = existing["id"]
                logger.info(f"Admin user {admin.user_name} already exists in realm {realm}, linking")
            else:
                keycloak_user_id = self.idp.create_user(
                    realm,
                    admin.user_name,
                    admin.email,
                    admin.first_name,
                    admin.last_name,
                    bool(password),
                )
                if keycloak_user_id is None:
                    existing = self.idp.find_user_by_username(realm, admin.user_name)
                    if existing is None:
                        raise IamOperationError(ErrorCode.USER_CREATION_FAILED)
                    keycloak_user_id = existing["id"]

            self.idp.assign_realm_admin_role(realm, keycloak_user_id)

            # An unlinked admin row means an earlier attempt stopped before credentials were set up
            if admin.keycloak_user_id is None:
                self._setup_admin_credentials(realm, keycloak_user_id, password)
        except IdpError as e:
            logger.error(f"Admin user setup failed in realm {realm}: {e}")
            raise IamOperationError(ErrorCode.USER_CREATION_FAILED) from e

        admin.link_identity(keycloak_user_id)
        self.session.add(admin)
        self._advance(tenant, TenantStatus.USER_CREATED)

    def _setup_admin_credentials(self, realm: str, keycloak_user_id: str, password: str) -> None:
        if password:
            try:
                self.idp.set_password(realm, keycloak_user_id, password, temporary=False)
                self.idp.send_required_action_email(realm, keycloak_user_id, ["VERIFY_EMAIL"])
            except IdpError as e:
                raise IamOperationError(ErrorCode.USER_CONFIG_FAILED) from e
        else:
            self.idp.send_required_action_email(
                realm, keycloak_user_id, ["UPDATE_PASSWORD", "VERIFY_EMAIL"]
            )

    def _activate(self, tenant: Tenant, request: CreateTenantRequest) -> None:
        login_url = tenant.login_url or self.normalizer.login_url(
            self.settings.IDP_BASE_URL, tenant.tenant_name, tenant.domain
        )
        if tenant.login_url != login_url:
            tenant.login_url = login_url
            self.session.add(tenant)
            self.session.commit()
            self.session.refresh(tenant)

        admin = self._admin_user(tenant)
        self.mailer.send_welcome_email(admin.email, login_url, admin.user_name)

        config = self.session.exec(
            select(AuthProviderConfig).where(AuthProviderConfig.tenant_id == tenant.tenant_id)
        ).first()
        if config is None:
            base = self.settings.IDP_BASE_URL
            issuer = f"{base}/realms/{tenant.realm_name}"
            config = AuthProviderConfig(
                tenant_id=tenant.tenant_id,
                sso_type=SSO_TYPE_KEYCLOAK,
                issuer_uri=issuer,
                auth_server_url=base,
                token_endpoint=f"{issuer}/protocol/openid-connect/token",
                jwk_uri=f"{issuer}/protocol/openid-connect/certs",
                client_id=tenant.tenant_name,
                redirect_uri=self.normalizer.redirect_uri(tenant.domain),
                login_url=login_url,
                scopes=DEFAULT_SCOPES,
            )
            self.session.add(config)
        self._advance(tenant, TenantStatus.ACTIVE)

    # ------------------------------------------------------------------

    def _response(self, tenant: Tenant) -> TenantResponse:
        def address(address_id):
            return self.session.get(Address, address_id) if address_id else None

        return TenantResponse.from_tenant(
            tenant,
            temporary_address=address(tenant.temporary_address_id),
            permanent_address=address(tenant.permanent_address_id),
            billing_address=address(tenant.billing_address_id),
        )
