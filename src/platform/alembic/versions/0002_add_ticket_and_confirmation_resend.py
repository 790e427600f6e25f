"""add_ticket_and_confirmation_resend

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18

- ticket: admission tickets issued to checked-in registrations, keyed by a
  hash of the issuing idempotency key
- registration: confirmation resend counter and last resend time
- notification_message: error text and attempt count for retries
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0002'
down_revision: Union[str, Sequence[str], None] = '0001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'ticket',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('event_id', sa.Text(), nullable=False),
        sa.Column('registration_id', sa.Text(), nullable=False),
        sa.Column('ticket_type', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='valid'),
        sa.Column('qr_text', sa.Text(), nullable=False),
        sa.Column('issued_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('issued_by', sa.Text(), nullable=True),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['registration_id'], ['registration.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_ticket_registration_id', 'ticket', ['registration_id'])

    op.add_column(
        'registration',
        sa.Column(
            'confirmation_resend_count', sa.Integer(), nullable=False, server_default='0'
        ),
    )
    op.add_column(
        'registration',
        sa.Column('confirmation_resent_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        'ix_registration_event_id_created_at', 'registration', ['event_id', 'created_at']
    )

    op.add_column('notification_message', sa.Column('error_message', sa.Text(), nullable=True))
    op.add_column(
        'notification_message',
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='1'),
    )


def downgrade() -> None:
    op.drop_column('notification_message', 'attempts')
    op.drop_column('notification_message', 'error_message')
    op.drop_index('ix_registration_event_id_created_at', table_name='registration')
    op.drop_column('registration', 'confirmation_resent_at')
    op.drop_column('registration', 'confirmation_resend_count')
    op.drop_index('ix_ticket_registration_id', table_name='ticket')
    op.drop_table('ticket')
