"""baseline_schema

Revision ID: 3c1f0a9d2b74
Revises:
Create Date: 2026-02-03 10:12:45.118240

Production-safe migration: only creates tables that do not exist yet.
Databases created before this revision are reconciled by the schema patches.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '3c1f0a9d2b74'
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
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('password_hash', sa.String(), nullable=True),
            sa.Column('name', sa.String(), nullable=True),
            sa.Column('role', sa.String(), server_default='user', nullable=False),
            sa.Column('email_verified', sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column('google_id', sa.String(), nullable=True),
            sa.Column('last_login_at', sa.DateTime(), nullable=True),
            sa.Column('trial_started_at', sa.DateTime(), nullable=True),
            sa.Column('trial_expires_at', sa.DateTime(), nullable=True),
            sa.Column('has_used_trial', sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column('trial_email', sa.String(), nullable=True),
            sa.Column('trial_ip_address', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('google_id')
        )
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
        op.create_index(op.f('ix_users_trial_email'), 'users', ['trial_email'], unique=False)
        op.create_index(op.f('ix_users_trial_ip_address'), 'users', ['trial_ip_address'], unique=False)

    if not table_exists('subscription_plans'):
        op.create_table('subscription_plans',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('name_jp', sa.String(), nullable=True),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('price_cents', sa.Integer(), server_default='0', nullable=False),
            sa.Column('currency', sa.String(length=3), server_default='jpy', nullable=False),
            sa.Column('interval', sa.String(), nullable=True),
            sa.Column('interval_count', sa.Integer(), server_default='1', nullable=False),
            sa.Column('stripe_price_id', sa.String(), nullable=True),
            sa.Column('stripe_product_id', sa.String(), nullable=True),
            sa.Column('trial_days', sa.Integer(), nullable=True),
            sa.Column('features', sa.JSON(), nullable=False),
            sa.Column('daily_practice_limit', sa.Integer(), nullable=True),
            sa.Column('daily_ai_chat_limit', sa.Integer(), nullable=True),
            sa.Column('max_vocabulary_words', sa.Integer(), nullable=True),
            sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column('is_popular', sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column('sort_order', sa.Integer(), server_default='0', nullable=False),
            sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )

    if not table_exists('user_subscriptions'):
        op.create_table('user_subscriptions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('plan_id', sa.String(), nullable=True),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('stripe_subscription_id', sa.String(), nullable=True),
            sa.Column('stripe_session_id', sa.String(), nullable=True),
            sa.Column('status', sa.String(), server_default='pending', nullable=False),
            sa.Column('current_period_start', sa.DateTime(), nullable=True),
            sa.Column('current_period_end', sa.DateTime(), nullable=True),
            sa.Column('trial_start', sa.DateTime(), nullable=True),
            sa.Column('trial_end', sa.DateTime(), nullable=True),
            sa.Column('cancel_at_period_end', sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column('canceled_at', sa.DateTime(), nullable=True),
            sa.Column('last_payment_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['plan_id'], ['subscription_plans.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id')
        )
        op.create_index(op.f('ix_user_subscriptions_id'), 'user_subscriptions', ['id'], unique=False)
        op.create_index(op.f('ix_user_subscriptions_stripe_customer_id'), 'user_subscriptions', ['stripe_customer_id'], unique=False)
        op.create_index(op.f('ix_user_subscriptions_stripe_subscription_id'), 'user_subscriptions', ['stripe_subscription_id'], unique=False)

    if not table_exists('usage_quotas'):
        op.create_table('usage_quotas',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('resource_type', sa.String(), nullable=False),
            sa.Column('used_count', sa.Integer(), server_default='0', nullable=False),
            sa.Column('limit_count', sa.Integer(), nullable=True),
            sa.Column('period_start', sa.DateTime(), nullable=False),
            sa.Column('period_end', sa.DateTime(), nullable=False),
            sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'resource_type', 'period_start', name='uq_usage_quota_period')
        )
        op.create_index(op.f('ix_usage_quotas_id'), 'usage_quotas', ['id'], unique=False)
        op.create_index(op.f('ix_usage_quotas_user_id'), 'usage_quotas', ['user_id'], unique=False)

    if not table_exists('vocabulary_items'):
        op.create_table('vocabulary_items',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('word', sa.String(length=100), nullable=False),
            sa.Column('definition', sa.Text(), nullable=True),
            sa.Column('phonetic', sa.String(), nullable=True),
            sa.Column('context', sa.Text(), nullable=True),
            sa.Column('meanings', sa.JSON(), nullable=True),
            sa.Column('audio_url', sa.String(), nullable=True),
            sa.Column('language', sa.String(length=8), server_default='en', nullable=False),
            sa.Column('reading', sa.String(), nullable=True),
            sa.Column('tags', sa.JSON(), nullable=False),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('source_type', sa.String(), server_default='manual', nullable=False),
            sa.Column('mastered', sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column('definition_loading', sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column('definition_error', sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column('ease_factor', sa.Float(), server_default='2.5', nullable=False),
            sa.Column('interval_days', sa.Integer(), server_default='0', nullable=False),
            sa.Column('repetitions', sa.Integer(), server_default='0', nullable=False),
            sa.Column('next_review_date', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('last_reviewed_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'word', name='uq_vocabulary_user_word')
        )
        op.create_index(op.f('ix_vocabulary_items_id'), 'vocabulary_items', ['id'], unique=False)
        op.create_index(op.f('ix_vocabulary_items_user_id'), 'vocabulary_items', ['user_id'], unique=False)
        op.create_index(op.f('ix_vocabulary_items_next_review_date'), 'vocabulary_items', ['next_review_date'], unique=False)

    if not table_exists('practice_records'):
        op.create_table('practice_records',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('session_id', sa.String(), nullable=False),
            sa.Column('question_type', sa.String(), nullable=True),
            sa.Column('difficulty', sa.String(), nullable=True),
            sa.Column('total_questions', sa.Integer(), server_default='0', nullable=False),
            sa.Column('correct_answers', sa.Integer(), server_default='0', nullable=False),
            sa.Column('score', sa.Integer(), nullable=True),
            sa.Column('time_spent', sa.Integer(), server_default='0', nullable=False),
            sa.Column('questions', sa.JSON(), nullable=False),
            sa.Column('real_questions', sa.Integer(), server_default='0', nullable=False),
            sa.Column('ai_pool_questions', sa.Integer(), server_default='0', nullable=False),
            sa.Column('realtime_questions', sa.Integer(), server_default='0', nullable=False),
            sa.Column('completed_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_practice_records_id'), 'practice_records', ['id'], unique=False)
        op.create_index(op.f('ix_practice_records_user_id'), 'practice_records', ['user_id'], unique=False)
        op.create_index(op.f('ix_practice_records_session_id'), 'practice_records', ['session_id'], unique=False)
        op.create_index(op.f('ix_practice_records_completed_at'), 'practice_records', ['completed_at'], unique=False)

    if not table_exists('chat_sessions'):
        op.create_table('chat_sessions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('title', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_chat_sessions_id'), 'chat_sessions', ['id'], unique=False)
        op.create_index(op.f('ix_chat_sessions_user_id'), 'chat_sessions', ['user_id'], unique=False)

    if not table_exists('chat_messages'):
        op.create_table('chat_messages',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('session_id', sa.Integer(), nullable=False),
            sa.Column('role', sa.String(), nullable=False),
            sa.Column('content', sa.Text(), nullable=False),
            sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['session_id'], ['chat_sessions.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_chat_messages_id'), 'chat_messages', ['id'], unique=False)
        op.create_index(op.f('ix_chat_messages_session_id'), 'chat_messages', ['session_id'], unique=False)


def downgrade() -> None:
    op.drop_table('chat_messages')
    op.drop_table('chat_sessions')
    op.drop_table('practice_records')
    op.drop_table('vocabulary_items')
    op.drop_table('usage_quotas')
    op.drop_table('user_subscriptions')
    op.drop_table('subscription_plans')
    op.drop_table('users')
