"""Initial schema: locations, cartridges, users, sessions, operations

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration creates:
1. locations
2. users + session_tokens (bearer auth)
3. cartridges (status/location with the location-less status CHECK, version_id)
4. operations (append-only audit log; cartridge_id deliberately has no FK)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. LOCATIONS
    # ==========================================================================
    op.create_table('locations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('address', sa.String(length=200), nullable=False),
        sa.Column('cabinet', sa.String(length=50), nullable=True),
        sa.Column('contact_person', sa.String(length=100), nullable=True),
        sa.Column('contact_phone', sa.String(length=20), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('locations', schema=None) as batch_op:
        batch_op.create_index('ix_locations_active_name', ['is_active', 'name'], unique=False)

    # ==========================================================================
    # 2. USERS + SESSION TOKENS
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=120), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='OBJECT_USER'),
        sa.Column('is_enabled', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_username'), ['username'], unique=True)

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('session_tokens', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_session_tokens_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_session_tokens_token_hash'), ['token_hash'], unique=True)
        batch_op.create_index(batch_op.f('ix_session_tokens_expires_at'), ['expires_at'], unique=False)
        batch_op.create_index('ix_session_tokens_user_active', ['user_id', 'is_revoked'], unique=False)

    # ==========================================================================
    # 3. CARTRIDGES
    # ==========================================================================
    op.create_table('cartridges',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('model', sa.String(length=120), nullable=False),
        sa.Column('serial_number', sa.String(length=120), nullable=True),
        sa.Column('resource_pages', sa.Integer(), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('brand', sa.String(length=80), nullable=True),
        sa.Column('part_number', sa.String(length=80), nullable=True),
        sa.Column('color', sa.String(length=40), nullable=True),
        sa.Column('compatible_printers', sa.String(length=500), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='IN_STOCK'),
        sa.Column('current_location_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint(
            "status NOT IN ('REFILLING', 'DISPOSED') OR current_location_id IS NULL",
            name='ck_cartridges_locationless_status',
        ),
        sa.ForeignKeyConstraint(['current_location_id'], ['locations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('serial_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('cartridges', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_cartridges_model'), ['model'], unique=False)
        batch_op.create_index(batch_op.f('ix_cartridges_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_cartridges_current_location_id'), ['current_location_id'], unique=False)
        batch_op.create_index('ix_cartridges_location_status', ['current_location_id', 'status'], unique=False)

    # ==========================================================================
    # 4. OPERATIONS (append-only)
    # ==========================================================================
    op.create_table('operations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('cartridge_id', sa.Integer(), nullable=False),
        sa.Column('cartridge_model', sa.String(length=120), nullable=False),
        sa.Column('cartridge_serial_number', sa.String(length=120), nullable=True),
        sa.Column('location_id', sa.Integer(), nullable=True),
        sa.Column('location_name', sa.String(length=100), nullable=True),
        sa.Column('performed_by_user_id', sa.Integer(), nullable=False),
        sa.Column('performed_by_username', sa.String(length=64), nullable=False),
        sa.Column('operation_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('source', sa.String(length=16), nullable=False, server_default='EXPLICIT'),
        sa.CheckConstraint('count > 0', name='ck_operations_count_positive'),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['performed_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('operations', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_operations_performed_by_user_id'), ['performed_by_user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_operations_operation_date'), ['operation_date'], unique=False)
        batch_op.create_index('ix_operations_cartridge_date', ['cartridge_id', 'operation_date'], unique=False)
        batch_op.create_index('ix_operations_location_date', ['location_id', 'operation_date'], unique=False)
        batch_op.create_index('ix_operations_type_date', ['type', 'operation_date'], unique=False)


def downgrade():
    op.drop_table('operations')
    op.drop_table('cartridges')
    op.drop_table('session_tokens')
    op.drop_table('users')
    op.drop_table('locations')
