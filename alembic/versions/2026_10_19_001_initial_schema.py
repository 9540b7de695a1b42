"""Initial schema: tenants, users, auth provider configs, access and reference data

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001_initial_schema'
down_revision = None


def upgrade():
    # Reference data
    op.create_table(
        'regions',
        sa.Column('region_id', sa.Integer(), primary_key=True),
        sa.Column('region_name', sa.String(100), nullable=False, index=True),
    )
    op.create_table(
        'countries',
        sa.Column('country_id', sa.Integer(), primary_key=True),
        sa.Column('country_name', sa.String(100), nullable=False, index=True),
        sa.Column('country_code', sa.String(10), nullable=True),
        sa.Column('region_id', sa.Integer(), sa.ForeignKey('regions.region_id'), nullable=True, index=True),
    )
    op.create_table(
        'states',
        sa.Column('state_id', sa.Integer(), primary_key=True),
        sa.Column('state_name', sa.String(100), nullable=False, index=True),
        sa.Column('country_id', sa.Integer(), sa.ForeignKey('countries.country_id'), nullable=True, index=True),
    )
    op.create_table(
        'cities',
        sa.Column('city_id', sa.Integer(), primary_key=True),
        sa.Column('city_name', sa.String(100), nullable=False, index=True),
        sa.Column('state_id', sa.Integer(), sa.ForeignKey('states.state_id'), nullable=True, index=True),
    )
    op.create_table(
        'industries',
        sa.Column('industry_id', sa.Integer(), primary_key=True),
        sa.Column('industry_name', sa.String(150), nullable=False),
        sa.Column('industry_code', sa.String(50), nullable=False, unique=True),
        sa.Column('parent_industry_id', sa.Integer(), sa.ForeignKey('industries.industry_id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        'tenant_types',
        sa.Column('tenant_type_id', sa.Integer(), primary_key=True),
        sa.Column('tenant_type_name', sa.String(100), nullable=False, unique=True),
    )

    # Tenants
    op.create_table(
        'addresses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('address_line1', sa.String(255), nullable=True),
        sa.Column('address_line2', sa.String(255), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(100), nullable=True),
        sa.Column('country', sa.String(100), nullable=True),
        sa.Column('postal_code', sa.String(20), nullable=True),
    )
    op.create_table(
        'tenants',
        sa.Column('tenant_id', sa.String(36), primary_key=True),
        sa.Column('tenant_name', sa.String(100), nullable=False, unique=True, index=True),
        sa.Column('realm_name', sa.String(100), nullable=False),
        sa.Column('domain', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('phone_no', sa.String(50), nullable=False, unique=True, index=True),
        sa.Column('region', sa.String(100), nullable=True),
        sa.Column('tenant_type', sa.String(100), nullable=True),
        sa.Column('industry', sa.String(150), nullable=True),
        sa.Column('package_type', sa.String(100), nullable=True),
        sa.Column('billing_cycle_type', sa.String(50), nullable=True),
        sa.Column('temporary_address_id', sa.Integer(), sa.ForeignKey('addresses.id'), nullable=True),
        sa.Column('permanent_address_id', sa.Integer(), sa.ForeignKey('addresses.id'), nullable=True),
        sa.Column('billing_address_id', sa.Integer(), sa.ForeignKey('addresses.id'), nullable=True),
        sa.Column('parent_tenant_id', sa.String(36), nullable=True, index=True),
        sa.Column('login_url', sa.String(1024), nullable=True),
        sa.Column('status', sa.String(32), nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(100), nullable=True),
        sa.Column('updated_by', sa.String(100), nullable=True),
    )

    # Users
    op.create_table(
        'users',
        sa.Column('user_id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.tenant_id'), nullable=False, index=True),
        sa.Column('user_name', sa.String(100), nullable=False, unique=True, index=True),
        sa.Column('email', sa.String(255), nullable=False, index=True),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('phone_no', sa.String(50), nullable=True, index=True),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('keycloak_user_id', sa.String(64), nullable=True, index=True),
        sa.Column('default_user', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('tenant_id', 'email', name='uq_users_tenant_email'),
    )

    op.create_table(
        'auth_provider_configs',
        sa.Column('auth_id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.tenant_id'), nullable=False, unique=True, index=True),
        sa.Column('sso_type', sa.String(32), nullable=False),
        sa.Column('issuer_uri', sa.String(1024), nullable=False, index=True),
        sa.Column('auth_server_url', sa.String(1024), nullable=False),
        sa.Column('token_endpoint', sa.String(1024), nullable=False),
        sa.Column('jwk_uri', sa.String(1024), nullable=True),
        sa.Column('client_id', sa.String(255), nullable=False),
        sa.Column('client_secret', sa.String(255), nullable=True),
        sa.Column('redirect_uri', sa.String(1024), nullable=True),
        sa.Column('login_url', sa.String(1024), nullable=True),
        sa.Column('scopes', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    # Access
    op.create_table(
        'roles',
        sa.Column('role_id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.tenant_id'), nullable=False, index=True),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('is_default', sa.String(1), nullable=False, server_default='N'),
        sa.Column('is_super_role', sa.String(1), nullable=False, server_default='N'),
        sa.UniqueConstraint('tenant_id', 'name', name='uq_roles_tenant_name'),
    )
    op.create_table(
        'groups',
        sa.Column('group_id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.tenant_id'), nullable=False, index=True),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('is_admin', sa.String(1), nullable=False, server_default='N'),
        sa.Column('is_default', sa.String(1), nullable=False, server_default='N'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.String(100), nullable=True),
        sa.Column('created_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_time', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('tenant_id', 'name', name='uq_groups_tenant_name'),
    )
    op.create_table(
        'group_role_links',
        sa.Column('group_id', sa.String(36), sa.ForeignKey('groups.group_id'), primary_key=True),
        sa.Column('role_id', sa.String(36), sa.ForeignKey('roles.role_id'), primary_key=True),
    )
    op.create_table(
        'user_group_links',
        sa.Column('group_id', sa.String(36), sa.ForeignKey('groups.group_id'), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.user_id'), primary_key=True),
    )


def downgrade():
    op.drop_table('user_group_links')
    op.drop_table('group_role_links')
    op.drop_table('groups')
    op.drop_table('roles')
    op.drop_table('auth_provider_configs')
    op.drop_table('users')
    op.drop_table('tenants')
    op.drop_table('addresses')
    op.drop_table('tenant_types')
    op.drop_table('industries')
    op.drop_table('cities')
    op.drop_table('states')
    op.drop_table('countries')
    op.drop_table('regions')
