"""access control tables

Revision ID: 0001_access_control
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_access_control'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'roles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_roles_name'),
    )
    op.create_index('ix_roles_name', 'roles', ['name'])

    op.create_table(
        'groups',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_groups_name', 'groups', ['name'])

    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='SET NULL'), nullable=True),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_group_id', 'users', ['group_id'])
    op.create_index('ix_users_is_active', 'users', ['is_active'])

    # scope is free text on purpose: unknown values must be storable
    op.create_table(
        'role_permissions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=100), nullable=False),
        sa.Column('resource_type', sa.String(length=100), nullable=False),
        sa.Column('permission_type', sa.String(length=20), nullable=False),
        sa.Column('scope', sa.String(length=20), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'role', 'resource_type', 'permission_type',
            name='uq_role_permissions_role_resource_action',
        ),
    )
    op.create_index('ix_role_permissions_role', 'role_permissions', ['role'])
    op.create_index('ix_role_permissions_resource_type', 'role_permissions', ['resource_type'])

    for table in ('qr_codes', 'short_urls'):
        columns = [sa.Column('id', sa.String(), nullable=False)]
        if table == 'qr_codes':
            columns += [
                sa.Column('name', sa.String(), nullable=False),
                sa.Column('content', sa.String(), nullable=True),
            ]
        else:
            columns += [
                sa.Column('short_code', sa.String(), nullable=False),
                sa.Column('original_url', sa.String(), nullable=False),
                sa.UniqueConstraint('short_code', name='uq_short_urls_short_code'),
            ]
        columns += [
            sa.Column('user_id', sa.String(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
            sa.Column('created_by', sa.String(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
            sa.Column('group_id', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
            sa.PrimaryKeyConstraint('id'),
        ]
        op.create_table(table, *columns)
        op.create_index(f'ix_{table}_user_id', table, ['user_id'])
    op.create_index('ix_short_urls_short_code', 'short_urls', ['short_code'])

    op.create_table(
        'menu_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('menu_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('path', sa.String(), nullable=True),
        sa.Column('icon', sa.String(), nullable=True),
        sa.Column('parent_id', sa.String(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('menu_id', name='uq_menu_items_menu_id'),
    )
    op.create_index('ix_menu_items_menu_id', 'menu_items', ['menu_id'])
    op.create_index('ix_menu_items_parent_id', 'menu_items', ['parent_id'])

    op.create_table(
        'menu_role_permissions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('menu_item_id', sa.Integer(), sa.ForeignKey('menu_items.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=True),
        sa.Column('role_name', sa.String(), nullable=True),
        sa.Column('can_view', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('is_accessible', sa.Boolean(), nullable=True),
        sa.Column('has_permission', sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_menu_role_permissions_menu_item_id', 'menu_role_permissions', ['menu_item_id'])
    op.create_index('ix_menu_role_permissions_role_id', 'menu_role_permissions', ['role_id'])
    op.create_index('ix_menu_role_permissions_role_name', 'menu_role_permissions', ['role_name'])


def downgrade() -> None:
    op.drop_table('menu_role_permissions')
    op.drop_table('menu_items')
    op.drop_table('short_urls')
    op.drop_table('qr_codes')
    op.drop_table('role_permissions')
    op.drop_table('users')
    op.drop_table('groups')
    op.drop_table('roles')
