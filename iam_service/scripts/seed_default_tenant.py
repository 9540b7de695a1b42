"""
Provision the platform's default tenant

Safe to run repeatedly: a missing tenant is created, an interrupted one is
resumed, and an active one only has its admin role and group re-checked.

    python -m iam_service.scripts.seed_default_tenant
"""

import sys

from sqlmodel import Session, select
import structlog

from iam_service.core.config import Settings, get_settings
from iam_service.core.database import engine
from iam_service.core.mailer import Mailer
from iam_service.idp.client import KeycloakAdminClient
from iam_service.models.tenant import Tenant
from iam_service.models.user import User
from iam_service.schemas.tenant import CreateTenantRequest
from iam_service.services.access import AccessService
from iam_service.services.provisioning import TenantProvisioningService

logger = structlog.get_logger(__name__)


def default_tenant_request(settings: Settings) -> CreateTenantRequest:
    return CreateTenantRequest(
        tenant_name=settings.DEFAULT_TENANT_NAME,
        domain=settings.DEFAULT_TENANT_DOMAIN,
        email=settings.DEFAULT_TENANT_EMAIL,
        phone_no=settings.DEFAULT_TENANT_PHONE,
        region="GLOBAL",
        tenant_type="Master MSSP",
        industry="Technology",
        billing_cycle_type="Yearly",
        admin_first_name=settings.DEFAULT_ADMIN_FIRST_NAME,
        admin_last_name=settings.DEFAULT_ADMIN_LAST_NAME,
        admin_user_name=settings.DEFAULT_ADMIN_USERNAME,
        admin_email=settings.DEFAULT_ADMIN_EMAIL,
        admin_phone_number=settings.DEFAULT_ADMIN_PHONE,
        admin_password=settings.DEFAULT_ADMIN_PASSWORD,
    )


def seed_default_tenant(session: Session, idp, mailer: Mailer, settings: Settings) -> Tenant:
    """Create or resume the default tenant and re-ensure its admin access"""
    name = settings.DEFAULT_TENANT_NAME
    tenant = session.exec(select(Tenant).where(Tenant.tenant_name == name)).first()

    if tenant is None or not tenant.is_active():
        logger.info(f"Default tenant '{name}' missing or incomplete, provisioning")
        provisioning = TenantProvisioningService(session, idp, mailer, settings)
        provisioning.create_tenant(default_tenant_request(settings))
        tenant = session.exec(select(Tenant).where(Tenant.tenant_name == name)).one()
    else:
        logger.info(f"Default tenant '{name}' already active ({tenant.tenant_id})")

    admin = session.exec(
        select(User).where(User.tenant_id == tenant.tenant_id, User.default_user == True)  # noqa: E712
    ).one()
    AccessService(session).ensure_admin_access(tenant, admin)
    session.commit()
    return tenant


def main():
    """Main entry point for the seeding job"""
    logger.info("="*80)
    logger.info("Starting Default Tenant Seeding")
    logger.info("="*80)

    settings = get_settings()
    idp = KeycloakAdminClient(settings)
    try:
        idp.open()
        with Session(engine) as session:
            tenant = seed_default_tenant(session, idp, Mailer(settings), settings)

            logger.info("="*80)
            logger.info("Default Tenant Seeding Complete")
            logger.info(f"Tenant: {tenant.tenant_name} ({tenant.tenant_id}) status={tenant.status}")
            logger.info("="*80)

    except Exception as e:
        logger.error(f"Fatal error in seeding job: {e}")
        sys.exit(1)
    finally:
        idp.close()


if __name__ == "__main__":
    main()
