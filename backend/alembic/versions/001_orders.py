"""Orders table for poster purchases and their fulfillment lifecycle.

Revision ID: 001_orders
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001_orders'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'orders',
        sa.Column('id', sa.String(36), primary_key=True),
        # External references
        sa.Column('payment_session_id', sa.String(255), nullable=False),
        sa.Column('fulfillment_order_id', sa.String(255), nullable=True),
        sa.Column('merchant_reference', sa.String(255), nullable=True),
        # Customer
        sa.Column('customer_email', sa.String(255), nullable=True),
        sa.Column('customer_name', sa.String(255), nullable=True),
        sa.Column('account_id', sa.String(255), nullable=True),
        # What was purchased
        sa.Column('catalog_item_id', sa.String(255), nullable=False),
        sa.Column('catalog_item_title', sa.String(255), nullable=True),
        sa.Column('size', sa.String(50), nullable=False),
        sa.Column('paper', sa.String(50), nullable=False),
        sa.Column('layout_mode', sa.String(20), server_default='STRICT'),
        sa.Column('print_asset_url', sa.Text(), nullable=False),
        sa.Column('sku', sa.String(100), nullable=True),
        sa.Column('shipping_address', postgresql.JSONB(), nullable=True),
        # Financial
        sa.Column('currency', sa.String(3), server_default='usd'),
        sa.Column('amount_total', sa.Numeric(precision=12, scale=2), server_default='0'),
        # Lifecycle
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('fulfillment_status', sa.String(255), nullable=True),
        sa.Column('fulfillment_error', sa.Text(), nullable=True),
        sa.Column('submission_attempts', sa.Integer(), server_default='0', nullable=False),
        # Shipment
        sa.Column('tracking_number', sa.String(255), nullable=True),
        sa.Column('tracking_url', sa.Text(), nullable=True),
        sa.Column('shipped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('shipped_notification_sent_at', sa.DateTime(timezone=True), nullable=True),
        # Timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('payment_session_id', name='uq_orders_payment_session_id'),
        sa.UniqueConstraint('fulfillment_order_id', name='uq_orders_fulfillment_order_id'),
    )
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_customer_email', 'orders', ['customer_email'])
    op.create_index('ix_orders_account_id', 'orders', ['account_id'])
    op.create_index('ix_orders_merchant_reference', 'orders', ['merchant_reference'])


def downgrade() -> None:
    op.drop_index('ix_orders_merchant_reference', table_name='orders')
    op.drop_index('ix_orders_account_id', table_name='orders')
    op.drop_index('ix_orders_customer_email', table_name='orders')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_table('orders')
