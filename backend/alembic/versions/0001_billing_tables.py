"""Create billing tables

Revision ID: 0001_billing_tables
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_billing_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create subscription, payment, profile mirror and audit tables."""

    # Owned by the main application; created here only when missing
    op.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            id VARCHAR(36) PRIMARY KEY,
            full_name VARCHAR(255),
            email VARCHAR(255),
            subscription_plan VARCHAR(20) NOT NULL DEFAULT 'free',
            subscription_status VARCHAR(20),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('professional_id', sa.String(36), nullable=False, unique=True, index=True),

        sa.Column('plan', sa.String(20), server_default='pro', nullable=False),
        sa.Column('status', sa.String(20), server_default='active', nullable=False),

        # Gateway references
        sa.Column('gateway', sa.String(30)),
        sa.Column('gateway_subscription_id', sa.String(255), index=True),
        sa.Column('gateway_customer_id', sa.String(255)),
        sa.Column('amount_cents', sa.Integer),

        # Billing period dates
        sa.Column('current_period_start', sa.DateTime(timezone=True)),
        sa.Column('current_period_end', sa.DateTime(timezone=True)),
        sa.Column('cancel_at_period_end', sa.Boolean, server_default='false', nullable=False),
        sa.Column('last_event_at', sa.DateTime(timezone=True)),

        # Timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_index(
        'ix_subscriptions_status',
        'subscriptions',
        ['status']
    )

    op.create_table(
        'subscription_payments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column(
            'subscription_id',
            sa.String(36),
            sa.ForeignKey('subscriptions.id', ondelete='CASCADE'),
            nullable=False,
            index=True,
        ),
        sa.Column('professional_id', sa.String(36), nullable=False, index=True),
        sa.Column('amount_cents', sa.Integer),
        sa.Column('gateway', sa.String(30), nullable=False),
        sa.Column('gateway_payment_id', sa.String(255), unique=True),
        sa.Column('payment_method', sa.String(30), server_default='card', nullable=False),
        sa.Column('status', sa.String(20), server_default='approved', nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'admin_activity_log',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('entity_type', sa.String(50), server_default='subscription', nullable=False),
        sa.Column('entity_id', sa.String(36), index=True),
        sa.Column('details', postgresql.JSONB, server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'processed_webhook_events',
        sa.Column('event_id', sa.String(255), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column(
            'processed_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
        ),
    )
    # Index for cleanup queries (delete events older than X days)
    op.create_index(
        'ix_processed_webhook_events_processed_at',
        'processed_webhook_events',
        ['processed_at'],
    )


def downgrade() -> None:
    op.drop_index('ix_processed_webhook_events_processed_at', table_name='processed_webhook_events')
    op.drop_table('processed_webhook_events')
    op.drop_table('admin_activity_log')
    op.drop_table('subscription_payments')
    op.drop_index('ix_subscriptions_status', table_name='subscriptions')
    op.drop_table('subscriptions')
