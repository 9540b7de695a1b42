"""
Tests for the Keycloak admin REST client against a mocked transport
"""

import json

import httpx
import pytest

from iam_service.idp.client import (
    IdpConflictError,
    IdpOperationError,
    KeycloakAdminClient,
)

TOKEN_PATH = "/realms/master/protocol/openid-connect/token"
LOGOUT_PATH = "/realms/master/protocol/openid-connect/logout"


class FakeKeycloak:
    """Scripted admin API; handlers are keyed by (method, path)"""

    def __init__(self):
        self.requests = []
        self.routes = {}
        self.logins = 0
        self.token_expires_in = 300
        self.route("POST", TOKEN_PATH, self._token)
        self.route("POST", LOGOUT_PATH, lambda request: httpx.Response(204))

    def route(self, method, path, handler):
        self.routes[(method, path)] = handler

    def reply(self, method, path, status_code=200, body=None, headers=None):
        self.route(method, path, lambda request: httpx.Response(status_code, json=body, headers=headers))

    def _token(self, request):
        self.logins += 1
        return httpx.Response(200, json={
            "access_token": f"admin-token-{self.logins}",
            "refresh_token": "refresh",
            "expires_in": self.token_expires_in,
        })

    def __call__(self, request):
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": "not found"})
        return handler(request)

    def last(self, method, path):
        for request in reversed(self.requests):
            if request.method == method and request.url.path == path:
                return request
        return None


@pytest.fixture
def keycloak():
    return FakeKeycloak()


@pytest.fixture
def client(settings, keycloak):
    admin = KeycloakAdminClient(settings, transport=httpx.MockTransport(keycloak))
    admin.open()
    yield admin
    admin.close()


class TestSession:
    """Admin login, refresh and logout"""

    def test_open_uses_password_grant(self, client, keycloak):
        """Test login posts the password grant to the admin realm"""
        login = keycloak.last("POST", TOKEN_PATH)
        form = dict(pair.split("=", 1) for pair in login.content.decode().split("&"))
        assert form["grant_type"] == "password"
        assert form["client_id"] == "admin-cli"

    def test_requests_carry_bearer_token(self, client, keycloak):
        keycloak.reply("GET", "/admin/realms", body=[])
        client.realm_exists("acme")
        assert keycloak.last("GET", "/admin/realms").headers["Authorization"] == "Bearer admin-token-1"

    def test_rejected_login(self, settings):
        transport = httpx.MockTransport(lambda request: httpx.Response(401, json={}))
        admin = KeycloakAdminClient(settings, transport=transport)
        with pytest.raises(IdpOperationError, match="Admin login rejected"):
            admin.open()

    def test_reauthenticates_once_on_401(self, client, keycloak):
        """Test a revoked admin token is replaced transparently"""
        responses = iter([httpx.Response(401), httpx.Response(200, json=[{"realm": "acme"}])])
        keycloak.route("GET", "/admin/realms", lambda request: next(responses))

        assert client.realm_exists("acme") is True
        assert keycloak.logins == 2

    def test_token_near_expiry_is_refreshed(self, settings, keycloak):
        keycloak.token_expires_in = 10
        keycloak.reply("GET", "/admin/realms", body=[])
        admin = KeycloakAdminClient(settings, transport=httpx.MockTransport(keycloak))
        admin.open()

        admin.realm_exists("acme")

        assert keycloak.logins == 2

    def test_close_logs_out(self, settings, keycloak):
        admin = KeycloakAdminClient(settings, transport=httpx.MockTransport(keycloak))
        admin.open()
        admin.close()

        assert keycloak.last("POST", LOGOUT_PATH) is not None

    def test_timeout_is_operation_error(self, client, keycloak):
        def timeout(request):
            raise httpx.ReadTimeout("timed out", request=request)

        keycloak.route("GET", "/admin/realms", timeout)
        with pytest.raises(IdpOperationError, match="timed out"):
            client.realm_exists("acme")


class TestRealms:
    """Realm probe, creation and removal"""

    def test_realm_exists_ignores_case(self, client, keycloak):
        keycloak.reply("GET", "/admin/realms", body=[{"realm": "master"}, {"realm": "Acme"}])
        assert client.realm_exists("acme") is True
        assert client.realm_exists("other") is False

    def test_create_realm_conflict(self, client, keycloak):
        keycloak.reply("POST", "/admin/realms", status_code=409, body={"errorMessage": "exists"})
        with pytest.raises(IdpConflictError):
            client.create_realm({"realm": "acme"})

    def test_create_realm_server_error(self, client, keycloak):
        keycloak.reply("POST", "/admin/realms", status_code=500, body={})
        with pytest.raises(IdpOperationError) as exc:
            client.create_realm({"realm": "acme"})
        assert exc.value.status_code == 500

    def test_delete_missing_realm_is_noop(self, client, keycloak):
        client.delete_realm("ghost")
        assert keycloak.last("DELETE", "/admin/realms/ghost") is not None


class TestClients:
    """OIDC client lookup and redirect updates"""

    def test_client_exists(self, client, keycloak):
        keycloak.reply("GET", "/admin/realms/acme/clients", body=[{"id": "c-1", "clientId": "acme"}])
        assert client.client_exists("acme", "acme") is True
        assert client.client_exists("acme", "other") is False

    def test_update_redirect_uris(self, client, keycloak):
        keycloak.reply("GET", "/admin/realms/acme/clients", body=[{"id": "c-1", "clientId": "acme"}])
        keycloak.reply("PUT", "/admin/realms/acme/clients/c-1", status_code=204)

        client.update_client_redirect_uris("acme", "acme", ["https://new.motivitylabs.net/*"])

        sent = json.loads(keycloak.last("PUT", "/admin/realms/acme/clients/c-1").content)
        assert sent["redirectUris"] == ["https://new.motivitylabs.net/*"]


class TestUsers:
    """User creation and configuration"""

    def test_create_user_returns_id_from_location(self, client, keycloak):
        keycloak.reply(
            "POST", "/admin/realms/acme/users", status_code=201,
            headers={"Location": "https://idp.example.com/admin/realms/acme/users/abc-123"},
        )

        user_id = client.create_user("acme", "adal", "a@x.io", "Ada", "Lovelace", with_password=False)

        assert user_id == "abc-123"
        sent = json.loads(keycloak.last("POST", "/admin/realms/acme/users").content)
        assert sent["enabled"] is True
        assert sent["requiredActions"] == ["UPDATE_PASSWORD", "VERIFY_EMAIL"]

    def test_create_user_with_password_only_verifies_email(self, client, keycloak):
        keycloak.reply(
            "POST", "/admin/realms/acme/users", status_code=201,
            headers={"Location": "/admin/realms/acme/users/abc-123"},
        )
        client.create_user("acme", "adal", "a@x.io", "Ada", "Lovelace", with_password=True)

        sent = json.loads(keycloak.last("POST", "/admin/realms/acme/users").content)
        assert sent["requiredActions"] == ["VERIFY_EMAIL"]

    def test_create_existing_user_returns_none(self, client, keycloak):
        keycloak.reply("POST", "/admin/realms/acme/users", status_code=409, body={})
        assert client.create_user("acme", "adal", "a@x.io", "Ada", "Lovelace", False) is None

    def test_find_user_is_exact(self, client, keycloak):
        keycloak.reply("GET", "/admin/realms/acme/users", body=[{"id": "u-1", "username": "adal"}])

        assert client.find_user_by_username("acme", "adal")["id"] == "u-1"
        params = keycloak.last("GET", "/admin/realms/acme/users").url.params
        assert params["exact"] == "true"
        assert params["username"] == "adal"

    def test_set_password(self, client, keycloak):
        keycloak.reply("PUT", "/admin/realms/acme/users/u-1/reset-password", status_code=204)

        client.set_password("acme", "u-1", "S3cret!", temporary=False)

        sent = json.loads(keycloak.last("PUT", "/admin/realms/acme/users/u-1/reset-password").content)
        assert sent == {"type": "password", "value": "S3cret!", "temporary": False}

    def test_required_action_email(self, client, keycloak):
        path = "/admin/realms/acme/users/u-1/execute-actions-email"
        keycloak.reply("PUT", path, status_code=204)

        client.send_required_action_email("acme", "u-1", ["VERIFY_EMAIL"])

        assert json.loads(keycloak.last("PUT", path).content) == ["VERIFY_EMAIL"]

    def test_assign_realm_admin_role(self, client, keycloak):
        keycloak.reply(
            "GET", "/admin/realms/acme/clients",
            body=[{"id": "rm-1", "clientId": "realm-management"}],
        )
        keycloak.reply(
            "GET", "/admin/realms/acme/clients/rm-1/roles/realm-admin",
            body={"id": "role-1", "name": "realm-admin"},
        )
        mapping = "/admin/realms/acme/users/u-1/role-mappings/clients/rm-1"
        keycloak.reply("POST", mapping, status_code=204)

        client.assign_realm_admin_role("acme", "u-1")

        assert json.loads(keycloak.last("POST", mapping).content) == [{"id": "role-1", "name": "realm-admin"}]
