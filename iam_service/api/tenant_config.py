"""
Public tenant auth configuration endpoint (no authentication)
"""

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from iam_service.core.database import get_session
from iam_service.schemas.auth import AuthDetailsDto
from iam_service.services.auth_config import AuthConfigService

router = APIRouter()


@router.get("", response_model=AuthDetailsDto)
def get_tenant_config(
    host: str = Query(..., min_length=1),
    session: Session = Depends(get_session),
):
    """OIDC coordinates for the tenant serving ``host``"""
    return AuthConfigService(session).get_tenant_config(host)
