"""
Alembic migration: Create product, cart and order tables.

Creates products with their stock counter, per-account carts, orders with
price-snapshotting line items and the order status history. Status columns
are stored as VARCHAR with named CHECK constraints so the same schema applies
to PostgreSQL and SQLite.

Revision ID: 001
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PRODUCT_STATUSES = ('active', 'draft', 'archived', 'pending_review', 'rejected')
ORDER_STATUSES = ('pending', 'confirmed', 'shipped', 'delivered', 'cancelled')


def _status(values: tuple[str, ...], name: str) -> sa.Enum:
    return sa.Enum(
        *values,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=20,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Create storefront tables, constraints and indexes."""
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('supplier_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('cost_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('selling_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('on_hand', sa.Integer(), nullable=False),
        sa.Column(
            'status',
            _status(PRODUCT_STATUSES, 'ck_products_status'),
            nullable=False,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sa.CheckConstraint('on_hand >= 0', name='ck_products_on_hand_non_negative'),
        sa.CheckConstraint(
            'selling_price >= 0',
            name='ck_products_selling_price_non_negative',
        ),
    )
    op.create_index('ix_products_supplier_id', 'products', ['supplier_id'])
    op.create_index('ix_products_status', 'products', ['status'])
    op.create_index(
        'ix_products_supplier_status',
        'products',
        ['supplier_id', 'status'],
    )

    op.create_table(
        'carts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_carts'),
        sa.UniqueConstraint('user_id', name='uq_carts_user_id'),
    )

    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column(
            'status',
            _status(ORDER_STATUSES, 'ck_orders_status'),
            nullable=False,
        ),
        sa.Column('shipping_address', sa.JSON(), nullable=False),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False),
        sa.Column('shipping_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_user_created', 'orders', ['user_id', 'created_at'])
    op.create_index('ix_orders_status_created', 'orders', ['status', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('product_name', sa.String(length=200), nullable=False),
        sa.Column('supplier_id', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_order_items'),
        sa.ForeignKeyConstraint(
            ['order_id'],
            ['orders.id'],
            name='fk_order_items_order_id',
            ondelete='CASCADE',
        ),
        sa.CheckConstraint('quantity >= 1', name='ck_order_items_quantity_positive'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])
    op.create_index('ix_order_items_supplier_id', 'order_items', ['supplier_id'])

    op.create_table(
        'order_status_history',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column(
            'from_status',
            _status(ORDER_STATUSES, 'ck_order_status_history_from_status'),
            nullable=False,
        ),
        sa.Column(
            'to_status',
            _status(ORDER_STATUSES, 'ck_order_status_history_to_status'),
            nullable=False,
        ),
        sa.Column('changed_by', sa.String(length=64), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_order_status_history'),
        sa.ForeignKeyConstraint(
            ['order_id'],
            ['orders.id'],
            name='fk_order_status_history_order_id',
            ondelete='CASCADE',
        ),
    )
    op.create_index(
        'ix_order_status_history_order_id',
        'order_status_history',
        ['order_id'],
    )


def downgrade() -> None:
    """Drop storefront tables in dependency order."""
    op.drop_index('ix_order_status_history_order_id', table_name='order_status_history')
    op.drop_table('order_status_history')

    op.drop_index('ix_order_items_supplier_id', table_name='order_items')
    op.drop_index('ix_order_items_product_id', table_name='order_items')
    op.drop_index('ix_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')

    op.drop_index('ix_orders_status_created', table_name='orders')
    op.drop_index('ix_orders_user_created', table_name='orders')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_user_id', table_name='orders')
    op.drop_table('orders')

    op.drop_table('carts')

    op.drop_index('ix_products_supplier_status', table_name='products')
    op.drop_index('ix_products_status', table_name='products')
    op.drop_index('ix_products_supplier_id', table_name='products')
    op.drop_table('products')
