"""
Tests for the default tenant seeding job
"""

import pytest
from sqlmodel import select

from iam_service.core.errors import IamOperationError
from iam_service.models.group import Group, UserGroupLink
from iam_service.models.tenant import TenantStatus
from iam_service.scripts.seed_default_tenant import default_tenant_request, seed_default_tenant


class TestSeedDefaultTenant:

    def test_request_uses_configured_defaults(self, settings):
        request = default_tenant_request(settings)
        assert request.tenant_name == "secufusion"
        assert request.admin_user_name == "softwareadmin"
        assert request.billing_cycle_type == "Yearly"

    def test_first_run_provisions(self, db, idp, mailer, settings):
        tenant = seed_default_tenant(db, idp, mailer, settings)

        assert tenant.status == TenantStatus.ACTIVE.value
        assert tenant.domain == "master.motivitylabs.net"
        assert "secufusion" in idp.realms

    def test_second_run_is_a_no_op(self, db, idp, mailer, settings):
        seed_default_tenant(db, idp, mailer, settings)
        calls = len(idp.calls)

        tenant = seed_default_tenant(db, idp, mailer, settings)

        assert tenant.status == TenantStatus.ACTIVE.value
        assert len(idp.calls) == calls
        assert len(mailer.sent) == 1

    def test_admin_access_restored(self, db, idp, mailer, settings):
        """Test a removed admin group membership is put back"""
        tenant = seed_default_tenant(db, idp, mailer, settings)
        group = db.exec(select(Group).where(Group.name == "secufusion_Admin")).one()
        for link in db.exec(select(UserGroupLink).where(UserGroupLink.group_id == group.group_id)).all():
            db.delete(link)
        db.commit()

        seed_default_tenant(db, idp, mailer, settings)

        links = db.exec(select(UserGroupLink).where(UserGroupLink.group_id == group.group_id)).all()
        assert len(links) == 1
        assert tenant.tenant_id == group.tenant_id

    def test_interrupted_run_resumes(self, db, idp, mailer, settings):
        mailer.fail = True
        with pytest.raises(IamOperationError):
            seed_default_tenant(db, idp, mailer, settings)

        tenant = seed_default_tenant(db, idp, mailer, settings)

        assert tenant.status == TenantStatus.ACTIVE.value
        assert idp.count("create_realm") == 1
