"""Create fulfillment schema

Revision ID: 3b7e1c9d2a40
Revises: 
Create Date: 2026-10-19 11:02:14.118240

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3b7e1c9d2a40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUMS = {
    'agentstatus': ('ACTIVE', 'INACTIVE'),
    'carddesignstatus': ('ACTIVE', 'INACTIVE'),
    'orderstatus': (
        'PENDING_APPROVAL', 'APPROVED', 'PRINTING', 'PRINTED', 'READY_TO_SHIP',
        'SHIPPED', 'DELIVERED', 'PAID', 'REJECTED', 'CANCELLED',
    ),
    'paymentstatus': ('PENDING', 'ADVANCE_PAID', 'PAID', 'COD'),
    'commissionkind': ('BASE', 'OVERRIDE'),
    'paymentmethod': ('UPI', 'BANK_TRANSFER', 'CASH'),
    'payoutstatus': ('PENDING', 'COMPLETED', 'FAILED'),
    'expensecategory': ('PRINTING', 'SHIPPING', 'AGENT_COMMISSION', 'MARKETING', 'OTHER'),
}


def enum(name: str) -> postgresql.ENUM:
    # types are created once up front, order_status_events reuses orderstatus twice
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table('agents',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('full_name', sa.String(), nullable=False),
    sa.Column('email', sa.String(), nullable=True),
    sa.Column('phone', sa.String(), nullable=True),
    sa.Column('city', sa.String(), nullable=True),
    sa.Column('referral_code', sa.String(), nullable=False),
    sa.Column('status', enum('agentstatus'), nullable=False),
    sa.Column('base_commission', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('total_sales', sa.Integer(), nullable=False),
    sa.Column('total_earnings', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('available_balance', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('parent_agent_id', sa.UUID(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    sa.CheckConstraint('available_balance >= 0', name='ck_agents_available_balance_non_negative'),
    sa.ForeignKeyConstraint(['parent_agent_id'], ['agents.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_agents_referral_code'), 'agents', ['referral_code'], unique=True)
    op.create_index(op.f('ix_agents_parent_agent_id'), 'agents', ['parent_agent_id'], unique=False)

    op.create_table('card_designs',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('description', sa.String(), nullable=True),
    sa.Column('base_msp', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('status', enum('carddesignstatus'), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )

    op.create_table('agent_msps',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('agent_id', sa.UUID(), nullable=False),
    sa.Column('card_design_id', sa.UUID(), nullable=False),
    sa.Column('msp_amount', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.ForeignKeyConstraint(['agent_id'], ['agents.id'], ),
    sa.ForeignKeyConstraint(['card_design_id'], ['card_designs.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('agent_id', 'card_design_id', name='uq_agent_msps_agent_design')
    )

    op.create_table('customers',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('account_id', sa.String(), nullable=False),
    sa.Column('email', sa.String(), nullable=False),
    sa.Column('full_name', sa.String(), nullable=False),
    sa.Column('phone', sa.String(), nullable=True),
    sa.Column('company', sa.String(), nullable=True),
    sa.Column('slug', sa.String(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('account_id')
    )
    op.create_index(op.f('ix_customers_email'), 'customers', ['email'], unique=True)
    op.create_index(op.f('ix_customers_slug'), 'customers', ['slug'], unique=True)

    op.create_table('orders',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('order_number', sa.Integer(), nullable=False),
    sa.Column('agent_id', sa.UUID(), nullable=True),
    sa.Column('customer_id', sa.UUID(), nullable=True),
    sa.Column('card_design_id', sa.UUID(), nullable=False),
    sa.Column('customer_name', sa.String(), nullable=False),
    sa.Column('customer_company', sa.String(), nullable=True),
    sa.Column('customer_phone', sa.String(), nullable=False),
    sa.Column('customer_email', sa.String(), nullable=False),
    sa.Column('customer_whatsapp', sa.String(), nullable=True),
    sa.Column('line1_text', sa.String(), nullable=True),
    sa.Column('line2_text', sa.String(), nullable=True),
    sa.Column('shipping_address', sa.JSON(), nullable=True),
    sa.Column('special_instructions', sa.Text(), nullable=True),
    sa.Column('sale_price', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('msp_at_order', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('commission_amount', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('override_commission', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('override_agent_id', sa.UUID(), nullable=True),
    sa.Column('is_direct_sale', sa.Boolean(), nullable=False),
    sa.Column('is_below_msp', sa.Boolean(), nullable=False),
    sa.Column('status', enum('orderstatus'), nullable=False),
    sa.Column('payment_status', enum('paymentstatus'), nullable=False),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.Column('portfolio_slug', sa.String(), nullable=True),
    sa.Column('tracking_number', sa.String(), nullable=True),
    sa.Column('admin_notes', sa.Text(), nullable=True),
    sa.Column('rejection_reason', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('shipped_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
    sa.ForeignKeyConstraint(['agent_id'], ['agents.id'], ),
    sa.ForeignKeyConstraint(['card_design_id'], ['card_designs.id'], ),
    sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
    sa.ForeignKeyConstraint(['override_agent_id'], ['agents.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_orders_order_number'), 'orders', ['order_number'], unique=True)
    op.create_index(op.f('ix_orders_agent_id'), 'orders', ['agent_id'], unique=False)
    op.create_index(op.f('ix_orders_customer_id'), 'orders', ['customer_id'], unique=False)
    op.create_index(op.f('ix_orders_status'), 'orders', ['status'], unique=False)

    op.create_table('order_status_events',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('order_id', sa.UUID(), nullable=False),
    sa.Column('from_status', enum('orderstatus'), nullable=False),
    sa.Column('to_status', enum('orderstatus'), nullable=False),
    sa.Column('payload_json', sa.JSON(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_order_status_events_order_id'), 'order_status_events', ['order_id'], unique=False)

    op.create_table('commission_ledger',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('agent_id', sa.UUID(), nullable=False),
    sa.Column('order_id', sa.UUID(), nullable=False),
    sa.Column('kind', enum('commissionkind'), nullable=False),
    sa.Column('base_amount', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('commission', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['agent_id'], ['agents.id'], ),
    sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('order_id', 'agent_id', 'kind', name='uq_commission_ledger_order_agent_kind')
    )
    op.create_index(op.f('ix_commission_ledger_agent_id'), 'commission_ledger', ['agent_id'], unique=False)

    op.create_table('payouts',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('agent_id', sa.UUID(), nullable=False),
    sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('payment_method', enum('paymentmethod'), nullable=False),
    sa.Column('admin_notes', sa.Text(), nullable=True),
    sa.Column('status', enum('payoutstatus'), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['agent_id'], ['agents.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_payouts_agent_id'), 'payouts', ['agent_id'], unique=False)

    op.create_table('expenses',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('category', enum('expensecategory'), nullable=False),
    sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('description', sa.String(), nullable=True),
    sa.Column('expense_date', sa.Date(), nullable=False),
    sa.Column('order_id', sa.UUID(), nullable=True),
    sa.Column('agent_payout_id', sa.UUID(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['agent_payout_id'], ['payouts.id'], ),
    sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
    sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('expenses')
    op.drop_index(op.f('ix_payouts_agent_id'), table_name='payouts')
    op.drop_table('payouts')
    op.drop_index(op.f('ix_commission_ledger_agent_id'), table_name='commission_ledger')
    op.drop_table('commission_ledger')
    op.drop_index(op.f('ix_order_status_events_order_id'), table_name='order_status_events')
    op.drop_table('order_status_events')
    op.drop_index(op.f('ix_orders_status'), table_name='orders')
    op.drop_index(op.f('ix_orders_customer_id'), table_name='orders')
    op.drop_index(op.f('ix_orders_agent_id'), table_name='orders')
    op.drop_index(op.f('ix_orders_order_number'), table_name='orders')
    op.drop_table('orders')
    op.drop_index(op.f('ix_customers_slug'), table_name='customers')
    op.drop_index(op.f('ix_customers_email'), table_name='customers')
    op.drop_table('customers')
    op.drop_table('agent_msps')
    op.drop_table('card_designs')
    op.drop_index(op.f('ix_agents_parent_agent_id'), table_name='agents')
    op.drop_index(op.f('ix_agents_referral_code'), table_name='agents')
    op.drop_table('agents')

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
