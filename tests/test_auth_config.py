"""
Tests for the host to auth configuration lookup
"""

import pytest

from iam_service.core.errors import ResourceNotFoundError
from iam_service.models.auth_provider_config import AuthProviderConfig
from iam_service.models.tenant import Tenant, TenantStatus
from iam_service.services.auth_config import AuthConfigService, host_key

ISSUER = "https://idp.example.com/realms/acme"


@pytest.fixture
def acme(db):
    tenant = Tenant(
        tenant_name="acme",
        realm_name="acme",
        domain="acme.motivitylabs.net",
        email="ops@acme.io",
        phone_no="+1-555-0300",
        tenant_type="MSSP",
        status=TenantStatus.ACTIVE.value,
    )
    db.add(tenant)
    db.commit()
    db.add(AuthProviderConfig(
        tenant_id=tenant.tenant_id,
        issuer_uri=ISSUER,
        auth_server_url="https://idp.example.com",
        token_endpoint=f"{ISSUER}/protocol/openid-connect/token",
        client_id="acme",
    ))
    db.commit()
    db.refresh(tenant)
    return tenant


class TestHostKey:

    @pytest.mark.parametrize("raw, expected", [
        ("acme.motivitylabs.net", "acme.motivitylabs.net"),
        ("https://acme.motivitylabs.net/login", "acme.motivitylabs.net"),
        ("acme.motivitylabs.net:443", "acme.motivitylabs.net"),
        ("  HTTP://Acme.motivitylabs.net ", "Acme.motivitylabs.net"),
        ("", ""),
    ])
    def test_strips_scheme_port_and_path(self, raw, expected):
        assert host_key(raw) == expected


class TestGetTenantConfig:
    """Lookup by domain first, then by tenant name"""

    def test_by_domain(self, db, acme):
        details = AuthConfigService(db).get_tenant_config("acme.motivitylabs.net")

        assert details.tenant_id == acme.tenant_id
        assert details.tenant_key == "acme"
        assert details.realm == "acme"
        assert details.client_id == "acme"
        assert details.issuer == ISSUER
        assert details.keycloak_url == "https://idp.example.com"
        assert details.token_uri == f"{ISSUER}/protocol/openid-connect/token"
        assert details.status == "ACTIVE"

    def test_jwk_uri_derived_from_issuer(self, db, acme):
        details = AuthConfigService(db).get_tenant_config("acme.motivitylabs.net")
        assert details.jwk_uri == f"{ISSUER}/protocol/openid-connect/certs"

    def test_host_with_scheme_port_and_case(self, db, acme):
        details = AuthConfigService(db).get_tenant_config("https://ACME.motivitylabs.net:8443/app")
        assert details.tenant_id == acme.tenant_id

    def test_falls_back_to_tenant_name(self, db, acme):
        assert AuthConfigService(db).get_tenant_config("acme").domain == "acme.motivitylabs.net"

    def test_unknown_host(self, db, acme):
        with pytest.raises(ResourceNotFoundError, match="Tenant not found"):
            AuthConfigService(db).get_tenant_config("nobody.motivitylabs.net")

    def test_tenant_without_config(self, db):
        db.add(Tenant(
            tenant_name="pending",
            realm_name="pending",
            domain="pending.motivitylabs.net",
            email="ops@pending.io",
            phone_no="+1-555-0400",
            status=TenantStatus.CLIENT_CREATED.value,
        ))
        db.commit()

        with pytest.raises(ResourceNotFoundError, match="Auth provider config missing"):
            AuthConfigService(db).get_tenant_config("pending.motivitylabs.net")
