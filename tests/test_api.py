"""
HTTP-level tests: routing, error bodies and bearer authentication
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from iam_service.core.config import get_settings
from iam_service.core.database import get_session
from iam_service.core.dependencies import get_idp_client, get_mailer, get_verifier_resolver
from iam_service.core.security import IssuerVerifierResolver
from iam_service.main import app
from iam_service.models.reference import Country, Region, TenantType

ISSUER = "https://idp.example.com/realms/support"
CERTS = f"{ISSUER}/protocol/openid-connect/certs"

TENANT_PAYLOAD = {
    "tenantName": "support",
    "domain": "support",
    "email": "ops@support.io",
    "phoneNo": "+1-555-0100",
    "region": "North America",
    "permanentAddress": {"addressLine1": "1 Main St", "city": "Austin", "country": "United States"},
    "adminFirstName": "Ada",
    "adminLastName": "Lovelace",
    "adminUserName": "adal",
    "adminPhoneNumber": "+1-555-0101",
    "adminEmail": "a@x.io",
}


@pytest.fixture
def client(db, idp, mailer, key_a):
    jwks = httpx.Client(transport=httpx.MockTransport(
        lambda request: httpx.Response(200, json={"keys": [key_a.public_jwk]})
    ))
    resolver = IssuerVerifierResolver(get_settings(), http_client=jwks)

    app.dependency_overrides[get_session] = lambda: db
    app.dependency_overrides[get_idp_client] = lambda: idp
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_verifier_resolver] = lambda: resolver

    # No context manager: the lifespan would contact the real identity provider
    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()
    jwks.close()


@pytest.fixture
def tenant(client):
    response = client.post("/tenants", json=TENANT_PAYLOAD)
    assert response.status_code == 200
    return response.json()


def assert_error(response, status_code, error_code, error_number):
    assert response.status_code == status_code
    body = response.json()
    assert body["success"] is False
    assert body["errorCode"] == error_code
    assert body["errorNumber"] == error_number
    assert body["message"]
    assert body["timestamp"]


class TestHealth:

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestTenantEndpoints:
    """Tenant creation, lookup, update and removal over HTTP"""

    def test_create_tenant(self, tenant, mailer):
        assert tenant["status"] == "ACTIVE"
        assert tenant["tenantID"]
        assert tenant["domain"] == "support.motivitylabs.net"
        assert tenant["loginUrl"].startswith(f"{ISSUER}/protocol/openid-connect/auth?client_id=support")
        assert tenant["permanentAddress"]["city"] == "Austin"
        assert len(mailer.sent) == 1

    def test_create_active_tenant_again(self, client, tenant):
        response = client.post("/tenants", json=TENANT_PAYLOAD)
        assert_error(response, 400, "TENANT_ALREADY_ACTIVE", 1015)

    def test_malformed_body_is_validation_error(self, client):
        response = client.post("/tenants", json={**TENANT_PAYLOAD, "adminEmail": "not-an-email"})
        assert_error(response, 400, "VALIDATION_FAILED", 4000)

    def test_failed_step_reports_code(self, client, idp):
        idp.fail_next("create_client")
        response = client.post("/tenants", json=TENANT_PAYLOAD)
        assert_error(response, 400, "CLIENT_CREATION_FAILED", 1008)

        retry = client.post("/tenants", json=TENANT_PAYLOAD)
        assert retry.status_code == 200
        assert retry.json()["status"] == "ACTIVE"

    def test_get_by_id(self, client, tenant):
        response = client.get("/tenants/id", params={"id": tenant["tenantID"]})
        assert response.status_code == 200
        assert response.json()["tenantName"] == "support"

    def test_get_unknown_id(self, client):
        assert_error(client.get("/tenants/id", params={"id": "missing"}), 404, "RESOURCE_NOT_FOUND", 4040)

    def test_hierarchy(self, client, tenant):
        child = {
            **TENANT_PAYLOAD,
            "tenantName": "support-eu",
            "domain": "support-eu",
            "email": "ops@support-eu.io",
            "phoneNo": "+1-555-0200",
            "adminUserName": "adaeu",
            "adminPhoneNumber": "+1-555-0201",
            "adminEmail": "eu@x.io",
            "parentTenantId": tenant["tenantID"],
        }
        assert client.post("/tenants", json=child).status_code == 200

        roots = client.get("/tenants").json()

        assert [root["tenantName"] for root in roots] == ["support"]
        assert [node["tenantName"] for node in roots[0]["children"]] == ["support-eu"]

    def test_billing_types(self, client):
        response = client.get("/tenants/billing")
        assert response.json() == [
            {"id": 1, "billingType": "Trial"},
            {"id": 2, "billingType": "Monthly"},
            {"id": 3, "billingType": "Quarterly"},
            {"id": 4, "billingType": "Yearly"},
        ]

    def test_rename_is_rejected(self, client, tenant):
        response = client.put(f"/tenants/{tenant['tenantID']}", json={"tenantName": "renamed"})
        assert_error(response, 400, "TENANT_NAME_IMMUTABLE", 1018)

    def test_domain_change_updates_client(self, client, idp, tenant):
        response = client.put(f"/tenants/{tenant['tenantID']}", json={"domain": "helpdesk"})

        assert response.status_code == 200
        assert response.json()["domain"] == "helpdesk.motivitylabs.net"
        assert "helpdesk.motivitylabs.net" in response.json()["loginUrl"]
        assert idp.realms["support"]["clients"]["support"]["redirectUris"] == [
            "https://helpdesk.motivitylabs.net/*"
        ]

    def test_delete(self, client, idp, tenant):
        response = client.delete(f"/tenants/{tenant['tenantID']}")

        assert response.status_code == 204
        assert "support" not in idp.realms
        assert client.get("/tenants/id", params={"id": tenant["tenantID"]}).status_code == 404
        assert client.get("/tenant-config", params={"host": "support.motivitylabs.net"}).status_code == 404


class TestAvailabilityEndpoints:

    @pytest.mark.parametrize("params, message", [
        ({"tenantName": "support"}, "Tenant name already exists."),
        ({"tenantName": "other"}, "Tenant name is available."),
        ({"domainName": "https://SUPPORT.io"}, "Domain Name already exists."),
        ({"domainName": "other"}, "Domain name is available."),
        ({"phoneNumber": "+1-555-0100"}, "Phone Number already exists."),
        ({"tenantEmail": "free@support.io"}, "Email is available."),
    ])
    def test_tenant_check(self, client, tenant, params, message):
        response = client.get("/tenants/check", params=params)
        assert response.status_code == 200
        assert response.json()["message"] == message

    def test_tenant_check_needs_a_field(self, client):
        assert_error(client.get("/tenants/check"), 400, "VALIDATION_FAILED", 4000)

    def test_user_check(self, client, tenant):
        response = client.get("/users/check", params={"userName": "adal"})
        assert response.json() == {"available": False, "message": "Username already exists."}


class TestTenantConfigEndpoint:

    def test_config_by_host(self, client, tenant):
        response = client.get("/tenant-config", params={"host": "https://support.motivitylabs.net"})

        assert response.status_code == 200
        body = response.json()
        assert body["tenantId"] == tenant["tenantID"]
        assert body["realm"] == "support"
        assert body["clientId"] == "support"
        assert body["issuer"] == ISSUER
        assert body["jwkUri"] == CERTS

    def test_unknown_host(self, client):
        response = client.get("/tenant-config", params={"host": "nobody.motivitylabs.net"})
        assert_error(response, 404, "RESOURCE_NOT_FOUND", 4040)


class TestBearerAuthentication:
    """Tokens are verified by the issuing tenant's keys"""

    def test_valid_token_is_echoed(self, client, tenant, key_a):
        token = key_a.token(ISSUER, sub="kc-1", preferred_username="adal", email="a@x.io")

        response = client.get("/users/custom-response", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json() == {
            "userId": "kc-1",
            "username": "adal",
            "email": "a@x.io",
            "accessToken": token,
            "message": "Login successful",
        }

    def test_missing_token(self, client, tenant):
        response = client.get("/users/custom-response")
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid token", "status": 401}

    def test_expired_token(self, client, tenant, key_a):
        token = key_a.token(ISSUER, expires_in=-60)
        response = client.get("/users/custom-response", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json() == {"error": "TOKEN_EXPIRED", "status": 401}

    def test_token_from_unknown_issuer(self, client, tenant, key_a):
        token = key_a.token("https://elsewhere.example.com/realms/x")
        response = client.get("/users/custom-response", headers={"Authorization": f"Bearer {token}"})
        assert response.json() == {"error": "Invalid token", "status": 401}

    def test_tampered_token(self, client, tenant, key_b):
        token = key_b.token(ISSUER)
        response = client.get("/users/custom-response", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestAccessEndpoints:

    def test_admin_group_hidden_from_dropdown(self, client, tenant):
        tenant_id = tenant["tenantID"]
        created = client.post("/groups", json={"tenantId": tenant_id, "name": "Analysts"})
        assert created.status_code == 201

        names = [group["name"] for group in client.get("/groups", params={"tenantId": tenant_id}).json()]
        dropdown = [item["name"] for item in client.get("/groups/dropdown", params={"tenantId": tenant_id}).json()]

        assert names == ["Analysts", "support_Admin"]
        assert dropdown == ["Analysts"]

    def test_duplicate_role(self, client, tenant):
        payload = {"tenantId": tenant["tenantID"], "name": "Auditor"}
        assert client.post("/roles", json=payload).status_code == 201
        assert_error(client.post("/roles", json=payload), 400, "ROLE_ALREADY_EXISTS", 2002)


class TestReferenceEndpoints:

    @pytest.fixture
    def geography(self, db):
        americas = Region(region_name="Americas")
        europe = Region(region_name="Europe")
        db.add(americas)
        db.add(europe)
        db.commit()
        db.add(Country(country_name="United States", country_code="US", region_id=americas.region_id))
        db.add(Country(country_name="France", country_code="FR", region_id=europe.region_id))
        db.add(TenantType(tenant_type_name="MSSP"))
        db.commit()
        return americas

    def test_regions(self, client, geography):
        names = [region["regionName"] for region in client.get("/regions").json()]
        assert names == ["Americas", "Europe"]

    def test_countries_by_region(self, client, geography):
        response = client.get("/countries", params={"regionId": geography.region_id})
        assert [country["countryCode"] for country in response.json()] == ["US"]

    def test_tenant_types(self, client, geography):
        assert [t["tenantTypeName"] for t in client.get("/tenants/types").json()] == ["MSSP"]


class TestUnexpectedErrors:

    def test_internal_error_body(self, client, db, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(db, "exec", broken)

        response = client.get("/regions")

        assert_error(response, 500, "INTERNAL_SERVER_ERROR", 5000)
