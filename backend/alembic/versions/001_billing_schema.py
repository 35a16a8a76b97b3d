"""billing_schema

Revision ID: 001
Revises: 
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('status', sa.String(50), nullable=False, server_default='active'),
        sa.Column('user_role', sa.String(50), nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('uuid'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('idx_user_status', 'users', ['status'])

    # Create creators table
    op.create_table(
        'creators',
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('handle', sa.String(64), nullable=False),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('price_usd', sa.Numeric(10, 2), nullable=True),
        sa.Column('stripe_product_id', sa.String(255), nullable=True),
        sa.Column('stripe_price_id', sa.String(255), nullable=True),
        sa.Column('payout_method', sa.String(50), nullable=True),
        sa.Column('payout_email', sa.String(255), nullable=True),
        sa.Column('payout_details', postgresql.JSON(), nullable=True),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('uuid'),
        sa.ForeignKeyConstraint(['user_id'], ['users.uuid'], ),
        sa.UniqueConstraint('handle'),
        sa.UniqueConstraint('user_id'),
    )
    op.create_index('idx_creator_stripe_product_id', 'creators', ['stripe_product_id'])

    # Create subscriptions table
    op.create_table(
        'subscriptions',
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('current_period_end', sa.DateTime(), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('stripe_customer_id', sa.String(255), nullable=True),
        sa.Column('stripe_subscription_id', sa.String(255), nullable=True),
        sa.Column('last_event_at', sa.DateTime(), nullable=True),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.Column('subscriber_id', sa.String(36), nullable=False),
        sa.Column('creator_id', sa.String(36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('uuid'),
        sa.ForeignKeyConstraint(['subscriber_id'], ['users.uuid'], ),
        sa.ForeignKeyConstraint(['creator_id'], ['creators.uuid'], ),
        sa.UniqueConstraint('subscriber_id', 'creator_id', name='uq_subscription_subscriber_creator'),
    )
    op.create_index('idx_subscription_creator_id', 'subscriptions', ['creator_id'])
    op.create_index('idx_subscription_stripe_subscription_id', 'subscriptions', ['stripe_subscription_id'])
    op.create_index('idx_subscription_status', 'subscriptions', ['status'])

    # Create creator_earnings table
    op.create_table(
        'creator_earnings',
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('creator_id', sa.String(36), nullable=False),
        sa.Column('subscriber_id', sa.String(36), nullable=False),
        sa.Column('subscription_id', sa.String(36), nullable=False),
        sa.Column('gross_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('platform_fee', sa.Numeric(12, 2), nullable=False),
        sa.Column('net_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='available'),
        sa.Column('stripe_invoice_id', sa.String(255), nullable=False),
        sa.Column('stripe_payment_intent_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('uuid'),
        sa.ForeignKeyConstraint(['creator_id'], ['creators.uuid'], ),
        sa.ForeignKeyConstraint(['subscriber_id'], ['users.uuid'], ),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.uuid'], ),
        sa.UniqueConstraint('stripe_invoice_id'),
    )
    op.create_index('idx_earning_creator_id_status', 'creator_earnings', ['creator_id', 'status'])
    op.create_index('idx_earning_subscription_id', 'creator_earnings', ['subscription_id'])

    # Create creator_payouts table
    op.create_table(
        'creator_payouts',
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('creator_id', sa.String(36), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payout_method', sa.String(50), nullable=False),
        sa.Column('payout_details', postgresql.JSON(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('uuid'),
        sa.ForeignKeyConstraint(['creator_id'], ['creators.uuid'], ),
    )
    op.create_index('idx_payout_creator_id_status', 'creator_payouts', ['creator_id', 'status'])
    op.create_index('idx_payout_status', 'creator_payouts', ['status'])

    # Create webhook_events table
    op.create_table(
        'webhook_events',
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('stripe_event_id', sa.String(255), nullable=False),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('event_created', sa.DateTime(), nullable=True),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('received_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('uuid'),
        sa.UniqueConstraint('stripe_event_id'),
    )
    op.create_index('idx_webhook_event_processed', 'webhook_events', ['processed'])


def downgrade() -> None:
    op.drop_table('webhook_events')
    op.drop_table('creator_payouts')
    op.drop_table('creator_earnings')
    op.drop_table('subscriptions')
    op.drop_table('creators')
    op.drop_table('users')
