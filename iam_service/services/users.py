"""
Tenant user management, mirrored into the tenant realm
"""

from datetime import datetime, timezone
from functools import partial
from typing import Optional
import random
import re

from sqlmodel import Session, select
from sqlalchemy import delete
import structlog

from iam_service.core.database import register_rollback_compensation
from iam_service.core.errors import ErrorCode, IamOperationError, ResourceNotFoundError
from iam_service.core.mailer import Mailer
from iam_service.idp.client import IdpError
from iam_service.models.group import Group, UserGroupLink
from iam_service.models.tenant import Tenant
from iam_service.models.user import User
from iam_service.schemas.common import AvailabilityResponse
from iam_service.schemas.user import UserCreate, UserResponse, UserUpdate

logger = structlog.get_logger(__name__)

USERNAME_ATTEMPTS = 200
USERNAME_MIN_LENGTH = 5
USERNAME_MAX_LENGTH = 8

_NON_ALPHA = re.compile(r"[^a-z]")


def username_candidate(first: Optional[str], last: Optional[str], rng: random.Random) -> str:
    """
    One candidate of 5 to 8 lowercase characters built from a random window
    of the person's name plus a digit, starting with a letter.
    """
    base = _NON_ALPHA.sub("", (first or "").strip().lower()) + _NON_ALPHA.sub("", (last or "").strip().lower())
    if not base:
        base = "user"

    target = rng.randint(USERNAME_MIN_LENGTH, USERNAME_MAX_LENGTH)
    window = max(1, target - 1)
    if len(base) <= window:
        name_part = base
    else:
        start = rng.randint(0, len(base) - window)
        name_part = base[start:start + window]

    candidate = f"{name_part}{rng.randint(0, 9)}"
    while len(candidate) < target:
        candidate += chr(ord("a") + rng.randint(0, 25))
    if not candidate[0].isalpha():
        candidate = "u" + candidate
    return candidate[:USERNAME_MAX_LENGTH]


def generate_unique_username(
    session: Session,
    first: Optional[str],
    last: Optional[str],
    rng: Optional[random.Random] = None,
) -> str:
    """Pick a username not yet used by any local user"""
    rng = rng or random.Random()
    for _ in range(USERNAME_ATTEMPTS):
        candidate = username_candidate(first, last, rng)
        if len(candidate) < USERNAME_MIN_LENGTH:
            continue
        taken = session.exec(select(User).where(User.user_name == candidate)).first()
        if taken is None:
            return candidate
    raise IamOperationError(ErrorCode.USERNAME_GENERATION_FAILED)


def to_response(user: User) -> UserResponse:
    return UserResponse.model_validate(user, from_attributes=True)


class UserService:
    """Create, update and remove tenant users locally and in the IdP"""

    def __init__(self, session: Session, idp, mailer: Mailer):
        self.session = session
        self.idp = idp
        self.mailer = mailer

    def _tenant(self, tenant_id: str) -> Tenant:
        tenant = self.session.get(Tenant, tenant_id)
        if tenant is None:
            raise ResourceNotFoundError(f"Tenant not found: {tenant_id}")
        return tenant

    def _user(self, user_id: str) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise ResourceNotFoundError(f"User not found: {user_id}")
        return user

    def _validate_unique(
        self,
        tenant: Tenant,
        email: Optional[str],
        user_name: Optional[str],
        phone_no: Optional[str],
        exclude_user_id: Optional[str] = None,
    ) -> None:
        def taken(*criteria) -> bool:
            statement = select(User).where(*criteria)
            if exclude_user_id:
                statement = statement.where(User.user_id != exclude_user_id)
            return self.session.exec(statement).first() is not None

        if email and taken(User.tenant_id == tenant.tenant_id, User.email == email):
            raise IamOperationError(ErrorCode.USER_EMAIL_EXISTS)
        if user_name and taken(User.user_name == user_name):
            raise IamOperationError(ErrorCode.USER_USERNAME_EXISTS)
        if phone_no and taken(User.tenant_id == tenant.tenant_id, User.phone_no == phone_no):
            raise IamOperationError(ErrorCode.USER_PHONE_EXISTS)

    def _remove_remote_user(self, realm: str, keycloak_user_id: str) -> None:
        self.idp.remove_user(realm, keycloak_user_id)

    def create_user(self, tenant_id: str, user_data: UserCreate) -> UserResponse:
        tenant = self._tenant(tenant_id)
        user_name = (user_data.user_name or "").strip().lower() or None
        self._validate_unique(tenant, user_data.email, user_name, user_data.phone_no)

        try:
            if user_name and self.idp.find_user_by_username(tenant.realm_name, user_name):
                raise IamOperationError(ErrorCode.IDP_USER_EXISTS)
            if self.idp.find_user_by_email(tenant.realm_name, user_data.email):
                raise IamOperationError(ErrorCode.IDP_USER_EXISTS)
        except IdpError as e:
            raise IamOperationError(ErrorCode.IDP_USER_CREATION_FAILED) from e

        user = User(
            tenant_id=tenant.tenant_id,
            user_name=user_name or generate_unique_username(
                self.session, user_data.first_name, user_data.last_name
            ),
            email=user_data.email,
            first_name=user_data.first_name,
            last_name=user_data.last_name,
            phone_no=user_data.phone_no,
        )
        self.session.add(user)
        self.session.flush()

        for group_id in user_data.group_ids:
            group = self.session.get(Group, group_id)
            if group is None or group.tenant_id != tenant.tenant_id:
                self.session.rollback()
                raise ResourceNotFoundError(f"Group not found: {group_id}")
            self.session.add(UserGroupLink(group_id=group_id, user_id=user.user_id))

        try:
            keycloak_user_id = self.idp.create_user(
                tenant.realm_name,
                user.user_name,
                user.email,
                user.first_name,
                user.last_name,
                False,
            )
            if keycloak_user_id is None:
                raise IamOperationError(ErrorCode.IDP_USER_EXISTS)
            register_rollback_compensation(
                self.session,
                partial(self._remove_remote_user, tenant.realm_name, keycloak_user_id),
                f"remove user {user.user_name} from realm {tenant.realm_name}",
            )
            self.idp.send_required_action_email(
                tenant.realm_name, keycloak_user_id, ["UPDATE_PASSWORD", "VERIFY_EMAIL"]
            )
            user.link_identity(keycloak_user_id)
            if tenant.login_url:
                self.mailer.send_welcome_email(user.email, tenant.login_url, user.user_name)
            self.session.commit()
        except IdpError as e:
            self.session.rollback()
            logger.error(f"Failed to create user {user_data.email} in realm {tenant.realm_name}: {e}")
            raise IamOperationError(ErrorCode.IDP_USER_CREATION_FAILED) from e
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(user)
        logger.info(f"User created: {user.user_name} in tenant {tenant.tenant_name}")
        return to_response(user)

    def update_user(self, user_id: str, user_data: UserUpdate) -> UserResponse:
        user = self._user(user_id)
        tenant = self._tenant(user.tenant_id)
        self._validate_unique(tenant, user_data.email, None, user_data.phone_no, exclude_user_id=user.user_id)

        for field, value in user_data.model_dump(exclude_unset=True, by_alias=False).items():
            if value is not None:
                setattr(user, field, value)
        user.updated_at = datetime.now(timezone.utc)

        try:
            if user.keycloak_user_id:
                self.idp.update_user(
                    tenant.realm_name,
                    user.keycloak_user_id,
                    user.user_name,
                    user.email,
                    user.first_name,
                    user.last_name,
                )
            self.session.commit()
        except IdpError as e:
            self.session.rollback()
            logger.error(f"Failed to update user {user_id} in realm {tenant.realm_name}: {e}")
            raise IamOperationError(ErrorCode.USER_UPDATE_FAILED) from e

        self.session.refresh(user)
        return to_response(user)

    def delete_user(self, user_id: str) -> None:
        user = self._user(user_id)
        if user.default_user:
            raise IamOperationError(ErrorCode.DEFAULT_USER_DELETE_NOT_ALLOWED)
        tenant = self._tenant(user.tenant_id)

        if user.keycloak_user_id:
            try:
                self.idp.remove_user(tenant.realm_name, user.keycloak_user_id)
            except IdpError as e:
                logger.warning(f"Could not remove user {user.user_name} from realm {tenant.realm_name}: {e}")

        self.session.exec(delete(UserGroupLink).where(UserGroupLink.user_id == user.user_id))
        self.session.delete(user)
        self.session.commit()
        logger.info(f"User deleted: {user_id}")

    def get_user(self, user_id: str) -> UserResponse:
        return to_response(self._user(user_id))

    def list_users(self) -> list[UserResponse]:
        users = self.session.exec(select(User).order_by(User.created_at)).all()
        return [to_response(u) for u in users]

    def list_tenant_users(self, tenant_id: str) -> list[UserResponse]:
        self._tenant(tenant_id)
        users = self.session.exec(
            select(User).where(User.tenant_id == tenant_id).order_by(User.created_at)
        ).all()
        return [to_response(u) for u in users]

    # ------------------------------------------------------------------
    # Availability probes

    def check_user_name(self, user_name: str) -> AvailabilityResponse:
        exists = self.session.exec(
            select(User).where(User.user_name == user_name.strip().lower())
        ).first() is not None
        return AvailabilityResponse(
            available=not exists,
            message="Username already exists." if exists else "Username is available.",
        )

    def check_phone_number(self, phone_no: str) -> AvailabilityResponse:
        exists = self.session.exec(select(User).where(User.phone_no == phone_no)).first() is not None
        return AvailabilityResponse(
            available=not exists,
            message="Phone Number already exists." if exists else "Phone Number is available.",
        )

    def check_email(self, email: str) -> AvailabilityResponse:
        exists = self.session.exec(select(User).where(User.email == email)).first() is not None
        return AvailabilityResponse(
            available=not exists,
            message="Email already exists." if exists else "Email is available.",
        )
