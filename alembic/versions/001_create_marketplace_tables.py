"""Create marketplace tables

Revision ID: 001_marketplace
Revises:
Create Date: 2026-10-18

Tables:
- crops: farmer listings and their available stock
- orders: buyer orders on a crop
- order_status_history: one row per status change
- escrow_records: funds held per order until delivery or cancellation

escrow_records.order_id carries no foreign key: the hold is written before
the order row inside the same transaction.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_marketplace'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create crops, orders, order_status_history and escrow_records."""

    # ====================
    # CROPS TABLE
    # ====================
    op.create_table(
        'crops',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('farmer_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('crop_type', sa.String(50), nullable=False, comment='VEGETABLES, FRUITS, GRAINS, PULSES, OTHERS'),
        sa.Column('quantity', sa.Numeric(10, 2), nullable=False, comment='Available stock in `unit`'),
        sa.Column('unit', sa.String(20), server_default='kg', nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False, comment='Price per unit'),
        sa.Column('status', sa.String(50), server_default='AVAILABLE', nullable=False,
                  comment='AVAILABLE, PENDING, SOLD, CANCELLED'),
        sa.Column('version', sa.Integer, server_default='1', nullable=False,
                  comment='Bumped on every stock mutation'),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('harvest_date', sa.Date, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('quantity >= 0', name='ck_crop_quantity_non_negative'),
    )

    op.create_index('ix_crops_farmer_id', 'crops', ['farmer_id'])
    op.create_index('ix_crops_status', 'crops', ['status'])
    op.create_index('ix_crop_status_type', 'crops', ['status', 'crop_type'])

    # ====================
    # ORDERS TABLE
    # ====================
    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('crop_id', sa.Uuid(), sa.ForeignKey('crops.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('buyer_id', sa.Uuid(), nullable=False),
        sa.Column('quantity', sa.Numeric(10, 2), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.String(50), server_default='PENDING', nullable=False,
                  comment='PENDING, IN_TRANSIT, DELIVERED, CANCELED'),
        sa.Column('payment_id', sa.String(100), nullable=False, comment='Gateway transaction held in escrow'),
        sa.Column('pickup_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('dispatched_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_index('ix_orders_crop_id', 'orders', ['crop_id'])
    op.create_index('ix_orders_buyer_id', 'orders', ['buyer_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_payment_id', 'orders', ['payment_id'])
    op.create_index('ix_order_status_created', 'orders', ['status', 'created_at'])
    op.create_index('ix_order_buyer_created', 'orders', ['buyer_id', 'created_at'])

    # ====================
    # ORDER STATUS HISTORY TABLE
    # ====================
    op.create_table(
        'order_status_history',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('from_status', sa.String(50), nullable=True),
        sa.Column('to_status', sa.String(50), nullable=False),
        sa.Column('changed_by', sa.Uuid(), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_index('ix_order_status_history_order_id', 'order_status_history', ['order_id'])

    # ====================
    # ESCROW RECORDS TABLE
    # ====================
    op.create_table(
        'escrow_records',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('transaction_id', sa.String(100), nullable=True,
                  comment='Gateway authorization backing the held funds'),
        sa.Column('gross_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('commission_rate', sa.Numeric(6, 4), nullable=False),
        sa.Column('commission_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('held_amount', sa.Numeric(12, 2), nullable=False, comment='gross_amount - commission_amount'),
        sa.Column('status', sa.String(50), server_default='HELD', nullable=False,
                  comment='HELD, RELEASED, REFUNDED'),
        sa.Column('refund_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('penalty_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('refund_reason', sa.String(100), nullable=True),
        sa.Column('refund_transaction_id', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('released_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_index('ix_escrow_records_order_id', 'escrow_records', ['order_id'], unique=True)
    op.create_index('ix_escrow_records_status', 'escrow_records', ['status'])


def downgrade() -> None:
    """Drop all marketplace tables"""
    op.drop_table('escrow_records')
    op.drop_table('order_status_history')
    op.drop_table('orders')
    op.drop_table('crops')
