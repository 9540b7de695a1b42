"""
Test configuration for pytest
"""

import pytest
import os
import time
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session
from typing import Generator

# Test environment variables
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["IDP_BASE_URL"] = "https://idp.example.com"
os.environ["DOMAIN_SUFFIX"] = ".motivitylabs.net"
os.environ["SMTP_HOST"] = "smtp.example.com"
os.environ["SMTP_FROM"] = "no-reply@motivitylabs.net"
os.environ["SMTP_USERNAME"] = "mailer"
os.environ["SMTP_PASSWORD"] = "mailer-secret"

from iam_service.core.config import get_settings  # noqa: E402
from iam_service.core.errors import ErrorCode, IamOperationError  # noqa: E402
from iam_service.idp.client import IdpConflictError, IdpOperationError  # noqa: E402
from iam_service.schemas.tenant import AddressPayload, CreateTenantRequest  # noqa: E402
import iam_service.models  # noqa: E402,F401


# Single shared connection so the API thread and the test see the same data
test_engine = create_engine(
    "sqlite://",
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a clean database session for each test"""
    # Create all tables
    SQLModel.metadata.create_all(test_engine)

    # Create session
    with Session(test_engine) as session:
        yield session

    # Cleanup
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def settings():
    return get_settings()


class FakeIdp:
    """In-memory identity provider recording every admin call"""

    def __init__(self):
        self.realms = {}
        self.calls = []
        self.completed = []
        self.failures = {}
        self._next_user = 1

    def fail_next(self, method, error=None):
        self.failures[method] = error or IdpOperationError(f"{method} failed", 500)

    def count(self, method):
        return sum(1 for call in self.calls if call[0] == method)

    def calls_to(self, method):
        return [call[1:] for call in self.calls if call[0] == method]

    def completed_count(self, method):
        return sum(1 for call in self.completed if call[0] == method)

    def _record(self, method, *args):
        self.calls.append((method,) + args)
        error = self.failures.pop(method, None)
        if error is not None:
            raise error
        self.completed.append((method,) + args)

    def _realm(self, realm):
        if realm not in self.realms:
            raise IdpOperationError(f"Realm {realm} not found", 404)
        return self.realms[realm]

    def add_realm(self, name):
        self.realms[name] = {"representation": {"realm": name}, "clients": {}, "users": {}, "admins": set()}

    # Realms
    def realm_exists(self, name):
        self._record("realm_exists", name)
        return any(r.lower() == name.lower() for r in self.realms)

    def create_realm(self, representation):
        self._record("create_realm", representation["realm"])
        if representation["realm"] in self.realms:
            raise IdpConflictError("realm exists", 409)
        self.add_realm(representation["realm"])
        self.realms[representation["realm"]]["representation"] = representation

    def delete_realm(self, name):
        self._record("delete_realm", name)
        self.realms.pop(name, None)

    # Clients
    def client_exists(self, realm, client_id):
        self._record("client_exists", realm, client_id)
        return client_id in self._realm(realm)["clients"]

    def create_client(self, realm, representation):
        self._record("create_client", realm, representation["clientId"])
        clients = self._realm(realm)["clients"]
        if representation["clientId"] in clients:
            raise IdpConflictError("client exists", 409)
        clients[representation["clientId"]] = representation

    def update_client_redirect_uris(self, realm, client_id, redirect_uris):
        self._record("update_client_redirect_uris", realm, client_id, redirect_uris)
        self._realm(realm)["clients"][client_id]["redirectUris"] = redirect_uris

    # Users
    def add_user(self, realm, username, email="existing@example.com"):
        user_id = f"kc-{self._next_user}"
        self._next_user += 1
        self._realm(realm)["users"][user_id] = {"id": user_id, "username": username, "email": email}
        return user_id

    def find_user_by_username(self, realm, username):
        self._record("find_user_by_username", realm, username)
        for user in self._realm(realm)["users"].values():
            if user["username"] == username:
                return user
        return None

    def find_user_by_email(self, realm, email):
        self._record("find_user_by_email", realm, email)
        for user in self._realm(realm)["users"].values():
            if user["email"] == email:
                return user
        return None

    def create_user(self, realm, username, email, first_name, last_name, with_password):
        self._record("create_user", realm, username, with_password)
        users = self._realm(realm)["users"]
        if any(u["username"] == username for u in users.values()):
            return None
        return self.add_user(realm, username, email)

    def update_user(self, realm, user_id, username, email, first_name, last_name):
        self._record("update_user", realm, user_id)
        self._realm(realm)["users"][user_id].update({"username": username, "email": email})

    def remove_user(self, realm, user_id):
        self._record("remove_user", realm, user_id)
        self._realm(realm)["users"].pop(user_id, None)

    def set_password(self, realm, user_id, password, temporary=False):
        self._record("set_password", realm, user_id, temporary)

    def send_required_action_email(self, realm, user_id, actions):
        self._record("send_required_action_email", realm, user_id, list(actions))

    def assign_realm_admin_role(self, realm, user_id):
        self._record("assign_realm_admin_role", realm, user_id)
        self._realm(realm)["admins"].add(user_id)


class FakeMailer:
    """Collects outgoing mail instead of sending it"""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send_welcome_email(self, to, login_url, username):
        if self.fail:
            self.fail = False
            raise IamOperationError(ErrorCode.EMAIL_SEND_FAILED)
        self.sent.append({"to": to, "login_url": login_url, "username": username})


@pytest.fixture
def idp():
    return FakeIdp()


@pytest.fixture
def mailer():
    return FakeMailer()


def make_tenant_request(**overrides) -> CreateTenantRequest:
    values = dict(
        tenant_name="support",
        domain="support",
        email="ops@support.io",
        phone_no="+1-555-0100",
        region="North America",
        tenant_type="MSSP",
        industry="Technology",
        billing_cycle_type="Yearly",
        permanent_address=AddressPayload(
            address_line1="1 Main St",
            city="Austin",
            state="Texas",
            country="United States",
            postal_code="73301",
        ),
        admin_first_name="Ada",
        admin_last_name="Lovelace",
        admin_user_name="adal",
        admin_phone_number="+1-555-0101",
        admin_email="a@x.io",
    )
    values.update(overrides)
    return CreateTenantRequest(**values)


@pytest.fixture
def tenant_request():
    return make_tenant_request


class SigningKey:
    """RSA key pair published as a one-key JWKS"""

    def __init__(self, kid):
        private = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        self.kid = kid
        self.private_pem = private.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode()
        public_pem = private.public_key().public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode()
        self.public_jwk = dict(jwk.construct(public_pem, "RS256").to_dict(), kid=kid, use="sig")

    def token(self, issuer, expires_in=300, **claims):
        now = int(time.time())
        payload = {"iss": issuer, "sub": "user-1", "iat": now, "exp": now + expires_in}
        payload.update(claims)
        return jwt.encode(payload, self.private_pem, algorithm="RS256", headers={"kid": self.kid})


@pytest.fixture(scope="session")
def key_a():
    return SigningKey("key-a")


@pytest.fixture(scope="session")
def key_b():
    return SigningKey("key-b")
