"""add_payment_and_ledger_tables

Revision ID: 8e52d4c7a913
Revises: 3c1f0a9d2b74
Create Date: 2026-02-17 16:40:02.904417

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '8e52d4c7a913'
down_revision: Union[str, None] = '3c1f0a9d2b74'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Payment history, webhook idempotency ledger and schema patch ledger."""
    bind = op.get_bind()
    existing = inspect(bind).get_table_names()

    if 'payment_transactions' not in existing:
        op.create_table('payment_transactions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('subscription_id', sa.Integer(), nullable=True),
            sa.Column('stripe_payment_intent_id', sa.String(), nullable=True),
            sa.Column('stripe_invoice_id', sa.String(), nullable=True),
            sa.Column('stripe_session_id', sa.String(), nullable=True),
            sa.Column('amount_cents', sa.Integer(), server_default='0', nullable=False),
            sa.Column('currency', sa.String(length=3), server_default='jpy', nullable=False),
            sa.Column('status', sa.String(), nullable=False),
            sa.Column('description', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['subscription_id'], ['user_subscriptions.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_payment_transactions_id'), 'payment_transactions', ['id'], unique=False)
        op.create_index(op.f('ix_payment_transactions_user_id'), 'payment_transactions', ['user_id'], unique=False)
        op.create_index(op.f('ix_payment_transactions_created_at'), 'payment_transactions', ['created_at'], unique=False)

    if 'processed_webhook_events' not in existing:
        op.create_table('processed_webhook_events',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('event_id', sa.String(), nullable=False),
            sa.Column('event_type', sa.String(), nullable=False),
            sa.Column('processed_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_processed_webhook_events_id'), 'processed_webhook_events', ['id'], unique=False)
        op.create_index(op.f('ix_processed_webhook_events_event_id'), 'processed_webhook_events', ['event_id'], unique=True)

    if 'schema_patches' not in existing:
        op.create_table('schema_patches',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('applied_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('steps_applied', sa.Integer(), server_default='0', nullable=False),
            sa.Column('steps_skipped', sa.Integer(), server_default='0', nullable=False),
            sa.Column('steps_failed', sa.Integer(), server_default='0', nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('name')
        )
        op.create_index(op.f('ix_schema_patches_id'), 'schema_patches', ['id'], unique=False)


def downgrade() -> None:
    op.drop_table('schema_patches')
    op.drop_table('processed_webhook_events')
    op.drop_table('payment_transactions')
