"""credit_ledger_schema

Revision ID: 7c1e9a4d2b50
Revises: 
Create Date: 2026-10-18 10:12:41.508311

Creates users, subscriptions and the usage_events ledger. Tables that
already exist are left alone.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '7c1e9a4d2b50'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    if not table_exists('users'):
        op.create_table('users',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('auth_user_id', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('full_name', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.PrimaryKeyConstraint('id', name=op.f('pk_users'))
        )
        op.create_index(op.f('ix_users_auth_user_id'), 'users', ['auth_user_id'], unique=True)
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=False)

    if not table_exists('subscriptions'):
        op.create_table('subscriptions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.String(length=36), nullable=False),
            sa.Column('plan_type', sa.String(), nullable=False),
            sa.Column('status', sa.String(), nullable=False),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('stripe_subscription_id', sa.String(), nullable=True),
            sa.Column('stripe_price_id', sa.String(), nullable=True),
            sa.Column('current_period_start', sa.DateTime(timezone=True), nullable=True),
            sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_subscriptions_user_id_users')),
            sa.PrimaryKeyConstraint('id', name=op.f('pk_subscriptions')),
            sa.UniqueConstraint('user_id', name=op.f('uq_subscriptions_user_id'))
        )
        op.create_index(op.f('ix_subscriptions_id'), 'subscriptions', ['id'], unique=False)
        op.create_index(op.f('ix_subscriptions_stripe_customer_id'), 'subscriptions', ['stripe_customer_id'], unique=False)
        op.create_index(op.f('ix_subscriptions_stripe_subscription_id'), 'subscriptions', ['stripe_subscription_id'], unique=False)

    if not table_exists('usage_events'):
        op.create_table('usage_events',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.String(), nullable=False),
            sa.Column('feature', sa.String(), nullable=False),
            sa.Column('amount', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('month_key', sa.String(length=7), nullable=False),
            sa.PrimaryKeyConstraint('id', name=op.f('pk_usage_events'))
        )
        op.create_index('idx_usage_user_month', 'usage_events', ['user_id', 'month_key'], unique=False)
        op.create_index('idx_usage_user_created', 'usage_events', ['user_id', 'created_at'], unique=False)
        op.create_index(op.f('ix_usage_events_id'), 'usage_events', ['id'], unique=False)
        op.create_index(op.f('ix_usage_events_user_id'), 'usage_events', ['user_id'], unique=False)
        op.create_index(op.f('ix_usage_events_feature'), 'usage_events', ['feature'], unique=False)
        op.create_index(op.f('ix_usage_events_created_at'), 'usage_events', ['created_at'], unique=False)
        op.create_index(op.f('ix_usage_events_month_key'), 'usage_events', ['month_key'], unique=False)


def downgrade() -> None:
    op.drop_table('usage_events')
    op.drop_table('subscriptions')
    op.drop_table('users')
