"""
Tenant API endpoints
"""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlmodel import Session
from typing import List, Optional
import structlog

from iam_service.core.config import Settings, get_settings
from iam_service.core.database import get_session
from iam_service.core.dependencies import get_idp_client, get_mailer
from iam_service.core.errors import ErrorCode, IamOperationError
from iam_service.core.mailer import Mailer
from iam_service.schemas.common import AvailabilityResponse
from iam_service.schemas.reference import TenantTypeResponse
from iam_service.schemas.tenant import (
    BillingType,
    CreateTenantRequest,
    TenantNode,
    TenantResponse,
    UpdateTenantRequest,
)
from iam_service.services.provisioning import TenantProvisioningService
from iam_service.services.tenants import TenantService

logger = structlog.get_logger(__name__)
router = APIRouter()


def get_provisioning_service(
    session: Session = Depends(get_session),
    idp=Depends(get_idp_client),
    mailer: Mailer = Depends(get_mailer),
    settings: Settings = Depends(get_settings),
) -> TenantProvisioningService:
    return TenantProvisioningService(session, idp, mailer, settings)


def get_tenant_service(
    session: Session = Depends(get_session),
    idp=Depends(get_idp_client),
    settings: Settings = Depends(get_settings),
) -> TenantService:
    return TenantService(session, idp, settings)


@router.post("", response_model=TenantResponse)
def create_tenant(
    request: CreateTenantRequest,
    service: TenantProvisioningService = Depends(get_provisioning_service),
):
    """Create a tenant, or resume a previously interrupted creation"""
    logger.info(f"Request to create tenant: {request.tenant_name}")
    return service.create_tenant(request)


@router.get("/id", response_model=TenantResponse)
def get_tenant(
    id: str = Query(...),
    service: TenantService = Depends(get_tenant_service),
):
    """Get tenant by ID"""
    return service.get_tenant(id)


@router.get("", response_model=List[TenantNode])
def list_tenants(service: TenantService = Depends(get_tenant_service)):
    """All tenants as a parent/child hierarchy"""
    return service.get_tenant_hierarchy()


@router.get("/types", response_model=List[TenantTypeResponse])
def list_tenant_types(service: TenantService = Depends(get_tenant_service)):
    return service.get_tenant_types()


@router.get("/billing", response_model=List[BillingType])
def list_billing_types(service: TenantService = Depends(get_tenant_service)):
    return service.get_billing_types()


@router.get("/check", response_model=AvailabilityResponse)
def check_availability(
    tenant_name: Optional[str] = Query(default=None, alias="tenantName"),
    domain_name: Optional[str] = Query(default=None, alias="domainName"),
    phone_number: Optional[str] = Query(default=None, alias="phoneNumber"),
    tenant_email: Optional[str] = Query(default=None, alias="tenantEmail"),
    service: TenantService = Depends(get_tenant_service),
):
    """Probe whether a tenant name, domain, phone number or email is free"""
    if tenant_name:
        return service.check_tenant_name(tenant_name)
    if domain_name:
        return service.check_domain(domain_name)
    if phone_number:
        return service.check_phone_number(phone_number)
    if tenant_email:
        return service.check_email(tenant_email)
    raise IamOperationError(
        ErrorCode.VALIDATION_FAILED,
        "One of tenantName, domainName, phoneNumber or tenantEmail is required.",
    )


@router.put("/{tenant_id}", response_model=TenantResponse)
def update_tenant(
    tenant_id: str,
    request: UpdateTenantRequest,
    service: TenantService = Depends(get_tenant_service),
):
    """Update tenant"""
    return service.update_tenant(tenant_id, request)


@router.delete("/{tenant_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tenant(
    tenant_id: str,
    service: TenantService = Depends(get_tenant_service),
):
    """Delete tenant, its realm and everything it owns"""
    service.delete_tenant(tenant_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
