"""Initial scheduling schema

Revision ID: 001_initial_scheduling
Revises:
Create Date: 2025-05-01

Creates events and bookings tables with:
- Events table for standalone events, series templates and series instances
- Self-referencing parent_event_id linking instances to their template
- Bookings table (read by the scheduling core to count active bookings)
- Indexes for availability and series queries
- PostgreSQL only: exclusion constraint preventing overlapping windows of
  non-terminal, non-deleted events of the same host
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_initial_scheduling'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    Create events and bookings tables.

    Tables:
    - events: Scheduled events (standalone, template, instance)
    - bookings: User bookings on events
    """
    op.create_table(
        'events',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('slug', sa.String(160), nullable=False),

        # Content
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('short_description', sa.String(300), nullable=True),
        sa.Column('category_id', sa.String(36), nullable=True),
        sa.Column('mode', sa.String(16), nullable=False, server_default='PHYSICAL'),
        sa.Column('venue', sa.String(200), nullable=True),
        sa.Column('address', sa.String(500), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('country', sa.String(100), nullable=True),
        sa.Column('virtual_meeting_url', sa.String(500), nullable=True),
        sa.Column('is_free', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('price', sa.Numeric(10, 2), nullable=True),
        sa.Column('currency', sa.String(3), nullable=False, server_default='USD'),
        sa.Column('max_participants', sa.Integer(), nullable=True),

        # Time
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='UTC'),

        # Recurrence
        sa.Column('is_recurring', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('recurrence_pattern', sa.String(16), nullable=True),
        sa.Column('recurrence_end_date', sa.DateTime(), nullable=True),
        sa.Column(
            'parent_event_id',
            sa.String(36),
            sa.ForeignKey('events.id', ondelete='RESTRICT'),
            nullable=True
        ),

        # Ownership and status
        sa.Column('host_id', sa.String(36), nullable=False),
        sa.Column('status', sa.String(32), nullable=False, server_default='DRAFT'),
        sa.Column('published_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),

        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),

        sa.CheckConstraint('end_date > start_date', name='ck_events_window'),
    )

    op.create_index('uq_events_slug', 'events', ['slug'], unique=True)
    op.create_index('ix_events_category_id', 'events', ['category_id'])
    op.create_index('ix_events_parent_event_id', 'events', ['parent_event_id'])
    op.create_index('idx_events_host_window', 'events', ['host_id', 'start_date', 'end_date'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'event_id',
            sa.String(36),
            sa.ForeignKey('events.id', ondelete='CASCADE'),
            nullable=False
        ),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('status', sa.String(32), nullable=False, server_default='PENDING'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_index('ix_bookings_event_id', 'bookings', ['event_id'])
    op.create_index('ix_bookings_user_id', 'bookings', ['user_id'])

    if op.get_bind().dialect.name == 'postgresql':
        # Storage-level guard against host double-booking
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute("""
            ALTER TABLE events
            ADD CONSTRAINT ex_events_host_no_overlap
            EXCLUDE USING gist (
                host_id WITH =,
                tsrange(start_date, end_date) WITH &&
            )
            WHERE (deleted_at IS NULL AND status NOT IN ('CANCELLED', 'COMPLETED'))
        """)


def downgrade() -> None:
    """Drop bookings and events tables."""
    op.drop_index('ix_bookings_user_id', table_name='bookings')
    op.drop_index('ix_bookings_event_id', table_name='bookings')
    op.drop_table('bookings')

    if op.get_bind().dialect.name == 'postgresql':
        op.execute("ALTER TABLE events DROP CONSTRAINT IF EXISTS ex_events_host_no_overlap")

    op.drop_index('idx_events_host_window', table_name='events')
    op.drop_index('ix_events_parent_event_id', table_name='events')
    op.drop_index('ix_events_category_id', table_name='events')
    op.drop_index('uq_events_slug', table_name='events')
    op.drop_table('events')
