"""init_registration_schema

Revision ID: 0001
Revises:
Create Date: 2025-12-06

Schema:
- event / event_line / resource: read-only catalog owned by the events service
- registration: registrant party, checkout and check-in state, row version for CAS writes
- reservation_hold: block and per-resource capacity claims
- notification_message: confirmation email/SMS outbox

A partial unique index keeps one active hold per physical stall / RV site per event.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, JSONB


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False
        ),
        sa.Column(
            'updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False
        ),
    ]


def upgrade() -> None:
    """Create all tables with final schema."""

    # ========== STEP 1: Event catalog ==========
    op.create_table(
        'event',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='usd'),
        sa.Column('rv_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('rv_unit_amount', sa.Integer(), nullable=True),
        sa.Column('stall_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('stall_unit_amount', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'event_line',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('event_id', sa.Text(), nullable=False),
        sa.Column('class_id', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False, server_default=''),
        sa.Column('fee_amount', sa.Integer(), nullable=True),
        sa.Column('capacity', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['event_id'], ['event.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('event_id', 'class_id', name='uq_event_line_event_class'),
    )

    op.create_table(
        'resource',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('resource_type', sa.String(length=20), nullable=False),
        sa.Column('name', sa.Text(), nullable=False, server_default=''),
        sa.Column('tags', ARRAY(sa.Text()), nullable=False, server_default='{}'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_resource_tags', 'resource', ['tags'], postgresql_using='gin')

    # ========== STEP 2: Registration ==========
    op.create_table(
        'registration',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('event_id', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('payment_status', sa.String(length=20), nullable=True),
        sa.Column('stall_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rv_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('lines', JSONB(), nullable=False, server_default='[]'),
        sa.Column('party_email', sa.Text(), nullable=True),
        sa.Column('party_phone', sa.Text(), nullable=True),
        sa.Column('fees', JSONB(), nullable=False, server_default='[]'),
        sa.Column('total_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('payment_intent_id', sa.Text(), nullable=True),
        sa.Column('payment_intent_client_secret', sa.Text(), nullable=True),
        sa.Column('checkout_idempotency_key', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('hold_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refund_id', sa.Text(), nullable=True),
        sa.Column('confirmation_message_id', sa.Text(), nullable=True),
        sa.Column('confirmation_sms_message_id', sa.Text(), nullable=True),
        sa.Column('check_in_status', JSONB(), nullable=True),
        sa.Column('check_in_status_idempotency_key', sa.Text(), nullable=True),
        sa.Column('checked_in_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('checked_in_by', sa.Text(), nullable=True),
        sa.Column('check_in_idempotency_key', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['event_id'], ['event.id']),
    )
    op.create_index('ix_registration_event_id', 'registration', ['event_id'])
    op.create_index(
        'ix_registration_status_hold_expires_at', 'registration', ['status', 'hold_expires_at']
    )

    # ========== STEP 3: Reservation holds ==========
    op.create_table(
        'reservation_hold',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('owner_type', sa.String(length=40), nullable=False),
        sa.Column('owner_id', sa.Text(), nullable=False),
        sa.Column('scope_type', sa.String(length=40), nullable=False),
        sa.Column('scope_id', sa.Text(), nullable=False),
        sa.Column('item_type', sa.String(length=20), nullable=False),
        sa.Column('resource_id', sa.Text(), nullable=True),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('state', sa.String(length=20), nullable=False),
        sa.Column('held_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('released_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('release_reason', sa.String(length=40), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('metadata', JSONB(), nullable=False, server_default='{}'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('qty >= 1', name='ck_reservation_hold_qty_positive'),
    )
    op.create_index(
        'ix_reservation_hold_owner',
        'reservation_hold',
        ['owner_type', 'owner_id', 'scope_id', 'item_type', 'state'],
    )
    # One active hold per physical resource per event; class entries may repeat a line id
    op.create_index(
        'uq_reservation_hold_active_resource',
        'reservation_hold',
        ['scope_id', 'item_type', 'resource_id'],
        unique=True,
        postgresql_where=sa.text(
            "resource_id IS NOT NULL AND item_type IN ('stall', 'rv') "
            "AND state IN ('held', 'confirmed')"
        ),
    )

    # ========== STEP 4: Notification outbox ==========
    op.create_table(
        'notification_message',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('channel', sa.String(length=10), nullable=False),
        sa.Column('recipient', sa.Text(), nullable=False),
        sa.Column('template_key', sa.Text(), nullable=False),
        sa.Column('template_vars', JSONB(), nullable=False, server_default='{}'),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column(
            'created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False
        ),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notification_message_status', 'notification_message', ['status'])


def downgrade() -> None:
    op.drop_table('notification_message')
    op.drop_table('reservation_hold')
    op.drop_table('registration')
    op.drop_table('resource')
    op.drop_table('event_line')
    op.drop_table('event')
