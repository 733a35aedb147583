"""passport clients, role mappings, role overrides and settings

Revision ID: 0001_passport_tables
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_passport_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'passport_clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('secret_hash', sa.String(length=128), nullable=False),
        sa.Column('redirect_uri', sa.String(length=500), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('client_id', name='uq_passport_clients_client_id'),
    )
    op.create_index('ix_passport_clients_client_id', 'passport_clients', ['client_id'])
    op.create_index('ix_passport_clients_is_active', 'passport_clients', ['is_active'])

    op.create_table(
        'passport_role_mappings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.String(length=100), nullable=False),
        sa.Column('mapping_kind', sa.String(length=20), nullable=False, server_default='coarse_role'),
        sa.Column('coarse_role_key', sa.String(length=100), nullable=True),
        sa.Column('entity_class_id', sa.String(length=100), nullable=True),
        sa.Column('role', sa.String(length=100), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('client_id', 'coarse_role_key', name='uq_passport_role_mappings_client_coarse_role'),
        sa.UniqueConstraint('client_id', 'entity_class_id', name='uq_passport_role_mappings_client_entity_class'),
        sa.CheckConstraint(
            "(mapping_kind = 'coarse_role' AND coarse_role_key IS NOT NULL AND entity_class_id IS NULL)"
            " OR (mapping_kind = 'entity_class' AND entity_class_id IS NOT NULL AND coarse_role_key IS NULL)",
            name='ck_passport_role_mappings_kind_key',
        ),
    )
    op.create_index('ix_passport_role_mappings_client_id', 'passport_role_mappings', ['client_id'])
    op.create_index('ix_passport_role_mappings_mapping_kind', 'passport_role_mappings', ['mapping_kind'])
    op.create_index('ix_passport_role_mappings_priority', 'passport_role_mappings', ['priority'])

    op.create_table(
        'passport_role_overrides',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.String(length=100), nullable=False),
        sa.Column('primary_identity_id', sa.String(length=100), nullable=True),
        sa.Column('secondary_entity_id', sa.String(length=100), nullable=True),
        sa.Column('role', sa.String(length=100), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('primary_identity_id', 'client_id', name='uq_passport_role_overrides_identity_client'),
        sa.UniqueConstraint('secondary_entity_id', 'client_id', name='uq_passport_role_overrides_entity_client'),
        sa.CheckConstraint(
            "(primary_identity_id IS NOT NULL AND secondary_entity_id IS NULL)"
            " OR (primary_identity_id IS NULL AND secondary_entity_id IS NOT NULL)",
            name='ck_passport_role_overrides_one_reference',
        ),
    )
    op.create_index('ix_passport_role_overrides_client_id', 'passport_role_overrides', ['client_id'])
    op.create_index('ix_passport_role_overrides_primary_identity_id', 'passport_role_overrides', ['primary_identity_id'])
    op.create_index('ix_passport_role_overrides_secondary_entity_id', 'passport_role_overrides', ['secondary_entity_id'])

    op.create_table(
        'passport_settings',
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('value', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('key'),
    )


def downgrade() -> None:
    op.drop_table('passport_settings')

    op.drop_index('ix_passport_role_overrides_secondary_entity_id', table_name='passport_role_overrides')
    op.drop_index('ix_passport_role_overrides_primary_identity_id', table_name='passport_role_overrides')
    op.drop_index('ix_passport_role_overrides_client_id', table_name='passport_role_overrides')
    op.drop_table('passport_role_overrides')

    op.drop_index('ix_passport_role_mappings_priority', table_name='passport_role_mappings')
    op.drop_index('ix_passport_role_mappings_mapping_kind', table_name='passport_role_mappings')
    op.drop_index('ix_passport_role_mappings_client_id', table_name='passport_role_mappings')
    op.drop_table('passport_role_mappings')

    op.drop_index('ix_passport_clients_is_active', table_name='passport_clients')
    op.drop_index('ix_passport_clients_client_id', table_name='passport_clients')
    op.drop_table('passport_clients')
