"""
Alembic migration: Create checkout tables.

Creates users, stores, products, orders, order_items, discount_codes and
invoices together with the check and unique constraints that keep stock
non-negative, redemption counters within their ceiling and invoice
identifiers unique.

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        'id',
        postgresql.UUID(as_uuid=True),
        nullable=False,
        server_default=sa.text('gen_random_uuid()'),
        comment='Unique identifier for the record',
    )


def _timestamp_columns() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
            comment='Timestamp when record was created',
        ),
        sa.Column(
            'updated_at',
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
            comment='Timestamp when record was last updated',
        ),
    ]


def upgrade() -> None:
    """
    Upgrade database schema to add the checkout tables.

    Stock and redemption invariants are enforced by CHECK constraints so a
    bug in application code can never commit a negative stock counter or a
    counter above its ceiling.
    """
    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')

    op.create_table(
        'users',
        _id_column(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=11), nullable=False, server_default='CUSTOMER'),
        sa.Column('is_guest', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('address', sa.String(length=500), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sa.CheckConstraint('email = lower(email)', name='ck_users_email_lower_case'),
        sa.CheckConstraint('length(name) >= 1', name='ck_users_name_min_length'),
        comment='User accounts, including guest checkout identities',
    )
    op.create_index('ix_users_is_guest', 'users', ['is_guest'])

    op.create_table(
        'stores',
        _id_column(),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=120), nullable=False),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('logo_url', sa.String(length=1000), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_stores'),
        sa.ForeignKeyConstraint(
            ['owner_id'], ['users.id'],
            name='fk_stores_owner_id_users',
            ondelete='RESTRICT',
        ),
        sa.UniqueConstraint('slug', name='uq_stores_slug'),
        comment='Storefront tenants',
    )
    op.create_index('ix_stores_owner_id', 'stores', ['owner_id'])

    op.create_table(
        'products',
        _id_column(),
        sa.Column('store_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=True),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sa.ForeignKeyConstraint(
            ['store_id'], ['stores.id'],
            name='fk_products_store_id_stores',
            ondelete='CASCADE',
        ),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
        sa.CheckConstraint('price >= 0', name='ck_products_price_non_negative'),
        comment='Catalog products with stock counters',
    )
    op.create_index('ix_products_store_id', 'products', ['store_id'])

    op.create_table(
        'orders',
        _id_column(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('store_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('total', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('status', sa.String(length=10), nullable=False, server_default='completed'),
        sa.Column('payment_method', sa.String(length=50), nullable=True),
        sa.Column(
            'metadata',
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name='fk_orders_user_id_users',
            ondelete='RESTRICT',
        ),
        sa.ForeignKeyConstraint(
            ['store_id'], ['stores.id'],
            name='fk_orders_store_id_stores',
            ondelete='SET NULL',
        ),
        sa.CheckConstraint('total >= 0', name='ck_orders_total_non_negative'),
        comment='Committed checkout orders',
    )
    op.create_index('ix_orders_user_id_created_at', 'orders', ['user_id', 'created_at'])
    op.create_index('ix_orders_store_id_created_at', 'orders', ['store_id', 'created_at'])
    op.create_index('ix_orders_status', 'orders', ['status'])

    op.create_table(
        'order_items',
        _id_column(),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_order_items'),
        sa.ForeignKeyConstraint(
            ['order_id'], ['orders.id'],
            name='fk_order_items_order_id_orders',
            ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['product_id'], ['products.id'],
            name='fk_order_items_product_id_products',
            ondelete='RESTRICT',
        ),
        sa.CheckConstraint('quantity > 0', name='ck_order_items_quantity_positive'),
        sa.CheckConstraint('price >= 0', name='ck_order_items_price_non_negative'),
        sa.CheckConstraint('line_number > 0', name='ck_order_items_line_number_positive'),
        sa.UniqueConstraint(
            'order_id', 'line_number', name='uq_order_items_order_id_line_number'
        ),
        comment='Immutable order line items',
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

    op.create_table(
        'discount_codes',
        _id_column(),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('discount_type', sa.String(length=20), nullable=False),
        sa.Column('discount_value', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('max_redemptions', sa.Integer(), nullable=False),
        sa.Column('current_redemptions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('valid_from', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('valid_until', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('archived', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_discount_codes'),
        sa.ForeignKeyConstraint(
            ['owner_id'], ['users.id'],
            name='fk_discount_codes_owner_id_users',
            ondelete='CASCADE',
        ),
        sa.UniqueConstraint('code', name='uq_discount_codes_code'),
        sa.CheckConstraint('code = upper(code)', name='ck_discount_codes_code_upper_case'),
        sa.CheckConstraint('discount_value > 0', name='ck_discount_codes_discount_value_positive'),
        sa.CheckConstraint(
            "discount_type IN ('percentage', 'fixed')",
            name='ck_discount_codes_discount_type_valid',
        ),
        sa.CheckConstraint(
            "discount_type <> 'percentage' OR discount_value <= 100",
            name='ck_discount_codes_percentage_max_100',
        ),
        sa.CheckConstraint('max_redemptions > 0', name='ck_discount_codes_max_redemptions_positive'),
        sa.CheckConstraint(
            'current_redemptions >= 0',
            name='ck_discount_codes_current_redemptions_non_negative',
        ),
        sa.CheckConstraint(
            'current_redemptions <= max_redemptions',
            name='ck_discount_codes_current_redemptions_within_ceiling',
        ),
        sa.CheckConstraint(
            'valid_until IS NULL OR valid_until > valid_from',
            name='ck_discount_codes_valid_date_range',
        ),
        comment='Discount codes with redemption ceilings',
    )
    op.create_index(
        'ix_discount_codes_owner_archived', 'discount_codes', ['owner_id', 'archived']
    )

    op.create_table(
        'invoices',
        _id_column(),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('invoice_number', sa.String(length=32), nullable=False),
        sa.Column('share_token', sa.String(length=128), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('customer_address', sa.String(length=500), nullable=True),
        sa.Column('customer_city', sa.String(length=100), nullable=True),
        sa.Column('customer_postal_code', sa.String(length=20), nullable=True),
        sa.Column('customer_phone', sa.String(length=50), nullable=True),
        sa.Column('store_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('store_name', sa.String(length=255), nullable=True),
        sa.Column('store_address', sa.String(length=500), nullable=True),
        sa.Column('store_phone', sa.String(length=50), nullable=True),
        sa.Column('store_email', sa.String(length=255), nullable=True),
        sa.Column(
            'items',
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column('subtotal', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('total', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('payment_method', sa.String(length=50), nullable=True),
        sa.Column('status', sa.String(length=9), nullable=False, server_default='issued'),
        sa.Column(
            'issued_at',
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
        ),
        sa.Column('paid_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            'metadata',
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_invoices'),
        sa.ForeignKeyConstraint(
            ['order_id'], ['orders.id'],
            name='fk_invoices_order_id_orders',
            ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['store_id'], ['stores.id'],
            name='fk_invoices_store_id_stores',
            ondelete='SET NULL',
        ),
        sa.UniqueConstraint('order_id', name='uq_invoices_order_id'),
        sa.UniqueConstraint('invoice_number', name='uq_invoices_invoice_number'),
        sa.UniqueConstraint('share_token', name='uq_invoices_share_token'),
        sa.CheckConstraint('total >= 0', name='ck_invoices_total_non_negative'),
        sa.CheckConstraint('subtotal >= 0', name='ck_invoices_subtotal_non_negative'),
        comment='Invoices materialized from committed orders',
    )
    op.create_index(
        'ix_invoices_store_id_issued_at', 'invoices', ['store_id', 'issued_at']
    )


def downgrade() -> None:
    """Drop the checkout tables in reverse dependency order."""
    op.drop_index('ix_invoices_store_id_issued_at', table_name='invoices')
    op.drop_table('invoices')

    op.drop_index('ix_discount_codes_owner_archived', table_name='discount_codes')
    op.drop_table('discount_codes')

    op.drop_index('ix_order_items_product_id', table_name='order_items')
    op.drop_index('ix_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')

    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_store_id_created_at', table_name='orders')
    op.drop_index('ix_orders_user_id_created_at', table_name='orders')
    op.drop_table('orders')

    op.drop_index('ix_products_store_id', table_name='products')
    op.drop_table('products')

    op.drop_index('ix_stores_owner_id', table_name='stores')
    op.drop_table('stores')

    op.drop_index('ix_users_is_guest', table_name='users')
    op.drop_table('users')
