"""initial users, catalog, orders and audit tables

Revision ID: 0001_initial_orders
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_orders'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('uuid', sa.String(length=36), nullable=False, unique=True),
        sa.Column('first_name', sa.String(length=64), nullable=False),
        sa.Column('last_name', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('faculty_id', sa.Integer(), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='customer'),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_users_uuid', 'users', ['uuid'])
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table('products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('base_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
    )
    op.create_index('ix_products_name', 'products', ['name'])

    op.create_table('variant_options',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('additional_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
    )
    op.create_index('ix_variant_options_product_id', 'variant_options', ['product_id'])

    op.create_table('ingredient_options',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('extra_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
    )
    op.create_index('ix_ingredient_options_product_id', 'ingredient_options', ['product_id'])

    op.create_table('orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_uuid', sa.String(length=36), sa.ForeignKey('users.uuid', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='Recibido'),
        sa.Column('total', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ready_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_orders_user_uuid', 'orders', ['user_uuid'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table('order_details',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('product_variant_id', sa.Integer(), sa.ForeignKey('variant_options.id'), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False),
    )
    op.create_index('ix_order_details_order_id', 'order_details', ['order_id'])

    op.create_table('order_detail_ingredients',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_detail_id', sa.Integer(), sa.ForeignKey('order_details.id', ondelete='CASCADE'), nullable=False),
        sa.Column('ingredient_option_id', sa.Integer(), sa.ForeignKey('ingredient_options.id'), nullable=False),
    )
    op.create_index('ix_order_detail_ingredients_order_detail_id', 'order_detail_ingredients', ['order_detail_id'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64), nullable=True),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('perms_snapshot', sa.JSON(), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('order_detail_ingredients')
    op.drop_table('order_details')
    op.drop_table('orders')
    op.drop_table('ingredient_options')
    op.drop_table('variant_options')
    op.drop_table('products')
    op.drop_table('users')
