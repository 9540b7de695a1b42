"""
Keycloak admin REST client

Holds one administrative session (password grant against the admin realm)
for the lifetime of the process and exposes the realm, client and user
operations used by tenant provisioning. Every call carries a timeout.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import quote

import httpx
import structlog

from iam_service.core.config import Settings

logger = structlog.get_logger(__name__)

REALM_MANAGEMENT_CLIENT = "realm-management"
REALM_ADMIN_ROLE = "realm-admin"
TOKEN_REFRESH_MARGIN = timedelta(seconds=30)


class IdpError(Exception):
    """Base class for identity provider failures"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class IdpConflictError(IdpError):
    """The object already exists in the identity provider (HTTP 409)"""


class IdpOperationError(IdpError):
    """Any other failure: transport, timeout, or an unexpected response"""


def _segment(value: str) -> str:
    return quote(value, safe="")


class KeycloakAdminClient:
    """Administrative session against the identity provider"""

    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None):
        self.base_url = settings.IDP_BASE_URL.rstrip("/")
        self.admin_realm = settings.IDP_ADMIN_REALM
        self.client_id = settings.IDP_ADMIN_CLIENT_ID
        self.username = settings.IDP_ADMIN_USERNAME
        self.password = settings.IDP_ADMIN_PASSWORD
        self.timeout = settings.IDP_TIMEOUT_SECONDS
        self._transport = transport
        self._client: Optional[httpx.Client] = None
        self._access_token: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._expires_at: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Session lifecycle

    def _get_client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def open(self) -> None:
        """Acquire the administrative session"""
        self._login()
        logger.info(f"Identity provider admin session opened at {self.base_url}")

    def close(self) -> None:
        """Release the administrative session and the HTTP connection pool"""
        if self._client is None or self._client.is_closed:
            return
        if self._refresh_token:
            try:
                self._client.post(
                    f"/realms/{_segment(self.admin_realm)}/protocol/openid-connect/logout",
                    data={"client_id": self.client_id, "refresh_token": self._refresh_token},
                )
            except httpx.HTTPError as e:
                logger.warning(f"Identity provider logout failed: {e}")
        self._client.close()
        self._access_token = None
        self._refresh_token = None
        logger.info("Identity provider admin session closed")

    def _login(self) -> None:
        try:
            response = self._get_client().post(
                f"/realms/{_segment(self.admin_realm)}/protocol/openid-connect/token",
                data={
                    "grant_type": "password",
                    "client_id": self.client_id,
                    "username": self.username,
                    "password": self.password,
                },
            )
        except httpx.HTTPError as e:
            raise IdpOperationError(f"Admin login failed: {e}") from e

        if response.status_code != 200:
            raise IdpOperationError(
                f"Admin login rejected with HTTP {response.status_code}",
                response.status_code,
            )

        payload = response.json()
        self._access_token = payload["access_token"]
        self._refresh_token = payload.get("refresh_token")
        self._expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(payload.get("expires_in", 60)))

    def _token(self) -> str:
        if (
            self._access_token is None
            or self._expires_at is None
            or datetime.now(timezone.utc) >= self._expires_at - TOKEN_REFRESH_MARGIN
        ):
            self._login()
        return self._access_token

    # ------------------------------------------------------------------
    # Transport

    def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[dict] = None,
    ) -> httpx.Response:
        """Make an authenticated admin request, re-authenticating once on 401"""
        client = self._get_client()
        for attempt in range(2):
            try:
                response = client.request(
                    method,
                    f"/admin/realms{path}",
                    json=json,
                    params=params,
                    headers={"Authorization": f"Bearer {self._token()}"},
                )
            except httpx.TimeoutException as e:
                logger.error(f"Identity provider timeout: {method} {path}")
                raise IdpOperationError(f"Request timed out: {method} {path}") from e
            except httpx.HTTPError as e:
                logger.error(f"Identity provider request failed: {method} {path}: {e}")
                raise IdpOperationError(f"Request failed: {e}") from e

            if response.status_code == 401 and attempt == 0:
                self._access_token = None
                continue
            break

        if response.status_code == 409:
            raise IdpConflictError(f"Conflict: {method} {path}", 409)
        if response.status_code >= 400:
            raise IdpOperationError(
                f"{method} {path} failed with HTTP {response.status_code}: {response.text[:200]}",
                response.status_code,
            )
        return response

    # ------------------------------------------------------------------
    # Realms

    def realm_exists(self, name: str) -> bool:
        realms = self._request("GET", "").json()
        return any(r.get("realm", "").lower() == name.lower() for r in realms)

    def create_realm(self, representation: dict) -> None:
        self._request("POST", "", json=representation)
        logger.info(f"Realm created: {representation.get('realm')}")

    def delete_realm(self, name: str) -> None:
        try:
            self._request("DELETE", f"/{_segment(name)}")
        except IdpOperationError as e:
            if e.status_code == 404:
                logger.info(f"Realm already absent: {name}")
                return
            raise
        logger.info(f"Realm deleted: {name}")

    # ------------------------------------------------------------------
    # Clients

    def _find_client(self, realm: str, client_id: str) -> Optional[dict]:
        clients = self._request("GET", f"/{_segment(realm)}/clients").json()
        for client in clients:
            if client.get("clientId", "").lower() == client_id.lower():
                return client
        return None

    def client_exists(self, realm: str, client_id: str) -> bool:
        return self._find_client(realm, client_id) is not None

    def create_client(self, realm: str, representation: dict) -> None:
        self._request("POST", f"/{_segment(realm)}/clients", json=representation)
        logger.info(f"Client created in realm {realm}: {representation.get('clientId')}")

    def update_client_redirect_uris(self, realm: str, client_id: str, redirect_uris: list[str]) -> None:
        client = self._find_client(realm, client_id)
        if client is None:
            raise IdpOperationError(f"Client {client_id} not found in realm {realm}", 404)
        client["redirectUris"] = redirect_uris
        self._request("PUT", f"/{_segment(realm)}/clients/{client['id']}", json=client)

    # ------------------------------------------------------------------
    # Users

    def find_user_by_username(self, realm: str, username: str) -> Optional[dict]:
        users = self._request(
            "GET",
            f"/{_segment(realm)}/users",
            params={"username": username, "exact": "true"},
        ).json()
        return users[0] if users else None

    def find_user_by_email(self, realm: str, email: str) -> Optional[dict]:
        users = self._request(
            "GET",
            f"/{_segment(realm)}/users",
            params={"email": email, "exact": "true"},
        ).json()
        return users[0] if users else None

    def create_user(
        self,
        realm: str,
        username: str,
        email: str,
        first_name: str,
        last_name: str,
        with_password: bool,
    ) -> Optional[str]:
        """
        Create an enabled user and return its id.

        Returns None when the user already exists. Users created without a
        password must set one on first login.
        """
        required_actions = ["VERIFY_EMAIL"] if with_password else ["UPDATE_PASSWORD", "VERIFY_EMAIL"]
        representation = {
            "username": username,
            "email": email,
            "firstName": first_name,
            "lastName": last_name,
            "enabled": True,
            "emailVerified": False,
            "requiredActions": required_actions,
        }
        try:
            response = self._request("POST", f"/{_segment(realm)}/users", json=representation)
        except IdpConflictError:
            logger.info(f"User {username} already exists in realm {realm}")
            return None

        location = response.headers.get("Location", "")
        user_id = location.rstrip("/").rsplit("/", 1)[-1] if location else None
        if not user_id:
            existing = self.find_user_by_username(realm, username)
            user_id = existing["id"] if existing else None
        logger.info(f"User created in realm {realm}: {username}")
        return user_id

    def update_user(
        self,
        realm: str,
        user_id: str,
        username: str,
        email: str,
        first_name: str,
        last_name: str,
    ) -> None:
        path = f"/{_segment(realm)}/users/{_segment(user_id)}"
        representation = self._request("GET", path).json()
        representation.update({
            "username": username,
            "email": email,
            "firstName": first_name,
            "lastName": last_name,
        })
        self._request("PUT", path, json=representation)

    def remove_user(self, realm: str, user_id: str) -> None:
        self._request("DELETE", f"/{_segment(realm)}/users/{_segment(user_id)}")
        logger.info(f"User removed from realm {realm}: {user_id}")

    def set_password(self, realm: str, user_id: str, password: str, temporary: bool = False) -> None:
        self._request(
            "PUT",
            f"/{_segment(realm)}/users/{_segment(user_id)}/reset-password",
            json={"type": "password", "value": password, "temporary": temporary},
        )

    def send_required_action_email(self, realm: str, user_id: str, actions: list[str]) -> None:
        self._request(
            "PUT",
            f"/{_segment(realm)}/users/{_segment(user_id)}/execute-actions-email",
            json=actions,
        )
        logger.info(f"Required-action email sent in realm {realm}: {', '.join(actions)}")

    def assign_realm_admin_role(self, realm: str, user_id: str) -> None:
        """Map the realm-management client's realm-admin role onto a user"""
        management = self._find_client(realm, REALM_MANAGEMENT_CLIENT)
        if management is None:
            raise IdpOperationError(f"{REALM_MANAGEMENT_CLIENT} client missing in realm {realm}", 404)
        role = self._request(
            "GET",
            f"/{_segment(realm)}/clients/{management['id']}/roles/{REALM_ADMIN_ROLE}",
        ).json()
        self._request(
            "POST",
            f"/{_segment(realm)}/users/{_segment(user_id)}/role-mappings/clients/{management['id']}",
            json=[role],
        )
        logger.info(f"Realm admin role assigned in realm {realm}: {user_id}")
