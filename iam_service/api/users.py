"""
User API endpoints
"""

from fastapi import APIRouter, Depends, Header, Query, Response, status
from sqlmodel import Session
from typing import List, Optional
import structlog

from iam_service.core.database import get_session
from iam_service.core.dependencies import get_idp_client, get_mailer, require_token_claims
from iam_service.core.errors import ErrorCode, IamOperationError
from iam_service.core.mailer import Mailer
from iam_service.core.security import bearer_token
from iam_service.schemas.auth import LoginEchoResponse
from iam_service.schemas.common import AvailabilityResponse
from iam_service.schemas.user import UserCreate, UserResponse, UserUpdate
from iam_service.services.users import UserService

logger = structlog.get_logger(__name__)
router = APIRouter()


def get_user_service(
    session: Session = Depends(get_session),
    idp=Depends(get_idp_client),
    mailer: Mailer = Depends(get_mailer),
) -> UserService:
    return UserService(session, idp, mailer)


@router.get("/custom-response", response_model=LoginEchoResponse)
def custom_response(
    claims: dict = Depends(require_token_claims),
    authorization: Optional[str] = Header(default=None),
):
    """Echo the identity of the caller's verified token"""
    return LoginEchoResponse(
        user_id=claims.get("sub"),
        username=claims.get("preferred_username"),
        email=claims.get("email"),
        access_token=bearer_token(authorization),
    )


@router.get("/check", response_model=AvailabilityResponse)
def check_availability(
    user_name: Optional[str] = Query(default=None, alias="userName"),
    phone_number: Optional[str] = Query(default=None, alias="phoneNumber"),
    email: Optional[str] = Query(default=None),
    service: UserService = Depends(get_user_service),
):
    """Probe whether a username, phone number or email is free"""
    if user_name:
        return service.check_user_name(user_name)
    if phone_number:
        return service.check_phone_number(phone_number)
    if email:
        return service.check_email(email)
    raise IamOperationError(
        ErrorCode.VALIDATION_FAILED,
        "One of userName, phoneNumber or email is required.",
    )


@router.get("/tenant/{tenant_id}", response_model=List[UserResponse])
def list_tenant_users(tenant_id: str, service: UserService = Depends(get_user_service)):
    return service.list_tenant_users(tenant_id)


@router.post("/{tenant_id}", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    tenant_id: str,
    user_data: UserCreate,
    service: UserService = Depends(get_user_service),
):
    """Create a user in the tenant and its realm"""
    logger.info(f"Request to create user in tenant {tenant_id}")
    return service.create_user(tenant_id, user_data)


@router.get("", response_model=List[UserResponse])
def list_users(service: UserService = Depends(get_user_service)):
    return service.list_users()


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: str, service: UserService = Depends(get_user_service)):
    return service.get_user(user_id)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    user_data: UserUpdate,
    service: UserService = Depends(get_user_service),
):
    return service.update_user(user_id, user_data)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: str, service: UserService = Depends(get_user_service)):
    service.delete_user(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
