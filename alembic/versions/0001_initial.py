"""Initial schema - lift directory, tickets, correlations, events

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TICKET_STATUS = ('open', 'closed')
BUTTON_TAG = ('test', 'maintenance', 'entrapment_awaiting_confirmation', 'entrapment_yes')
MESSAGE_KIND = ('initial', 'entrapment_followup', 'reminder', 'entrapment_reminder')


def upgrade() -> None:
    """Create the lift directory, ticket store, correlation store and audit log."""

    # ==========================================================================
    # Lift directory
    # ==========================================================================
    op.create_table(
        'lifts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('msisdn', sa.String(20), nullable=False, unique=True),
        sa.Column('site_name', sa.String(255), nullable=True),
        sa.Column('building', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        'contacts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('primary_msisdn', sa.String(20), nullable=False, unique=True),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('role', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        'lift_contacts',
        sa.Column(
            'lift_id',
            sa.Integer(),
            sa.ForeignKey('lifts.id', ondelete='CASCADE'),
            primary_key=True,
        ),
        sa.Column(
            'contact_id',
            sa.Uuid(),
            sa.ForeignKey('contacts.id', ondelete='CASCADE'),
            primary_key=True,
        ),
        sa.Column('relation', sa.String(50), nullable=False, server_default='primary'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_lift_contacts_contact', 'lift_contacts', ['contact_id'])

    # ==========================================================================
    # Tickets
    # ==========================================================================
    op.create_table(
        'tickets',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('reference', sa.String(32), nullable=True, unique=True),
        sa.Column(
            'lift_id',
            sa.Integer(),
            sa.ForeignKey('lifts.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('sms_id', sa.String(128), nullable=False),
        sa.Column(
            'status',
            sa.Enum(*TICKET_STATUS, name='ticket_status', native_enum=False, length=50),
            nullable=False,
        ),
        sa.Column(
            'button_clicked',
            sa.Enum(*BUTTON_TAG, name='button_tag', native_enum=False, length=50),
            nullable=True,
        ),
        sa.Column(
            'responded_by',
            sa.Uuid(),
            sa.ForeignKey('contacts.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('reminder_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_reminder_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closure_note', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('initial_message_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_tickets_lift_id', 'tickets', ['lift_id'])
    op.create_index('idx_tickets_status', 'tickets', ['status'])
    op.create_index('idx_tickets_sms_id', 'tickets', ['sms_id'])
    op.create_index(
        'idx_tickets_status_reminder',
        'tickets',
        ['status', 'button_clicked', 'last_reminder_at'],
    )

    # ==========================================================================
    # Message correlation (provider message id -> ticket, contact, kind)
    # ==========================================================================
    op.create_table(
        'message_correlations',
        sa.Column('message_id', sa.String(255), primary_key=True),
        sa.Column(
            'ticket_id',
            sa.Integer(),
            sa.ForeignKey('tickets.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'contact_id',
            sa.Uuid(),
            sa.ForeignKey('contacts.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'kind',
            sa.Enum(*MESSAGE_KIND, name='message_kind', native_enum=False, length=50),
            nullable=False,
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_message_correlations_ticket', 'message_correlations', ['ticket_id'])

    # ==========================================================================
    # Audit log
    # ==========================================================================
    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('ticket_id', sa.Integer(), nullable=True),
        sa.Column('lift_id', sa.Integer(), nullable=True),
        sa.Column('contact_id', sa.Uuid(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_events_ticket_created', 'events', ['ticket_id', 'created_at'])
    op.create_index('idx_events_type_created', 'events', ['event_type', 'created_at'])


def downgrade() -> None:
    op.drop_table('events')
    op.drop_table('message_correlations')
    op.drop_table('tickets')
    op.drop_table('lift_contacts')
    op.drop_table('contacts')
    op.drop_table('lifts')
