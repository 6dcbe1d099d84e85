"""Create initial schema

Revision ID: 20261016_0001
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '20261016_0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

def _has_table(bind, name: str) -> bool:
    try:
        insp = inspect(bind)
        return insp.has_table(name)
    except Exception:
        return False

def upgrade() -> None:
    bind = op.get_bind()

    # Create branches table
    if not _has_table(bind, 'branches'):
        op.create_table('branches',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=200), nullable=False),
            sa.Column('address', sa.String(length=300), nullable=True),
            sa.Column('phone', sa.String(length=50), nullable=True),
            sa.Column('email', sa.String(length=255), nullable=True),
            sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )

    # Create users table
    if not _has_table(bind, 'users'):
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('hashed_password', sa.String(length=255), nullable=False),
            sa.Column('first_name', sa.String(length=100), nullable=True),
            sa.Column('last_name', sa.String(length=100), nullable=True),
            sa.Column('role', sa.String(length=20), server_default='front-desk', nullable=False),
            sa.Column('branch_id', sa.Integer(), nullable=True),
            sa.Column('permissions', sa.JSON(), nullable=False),
            sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)

    # Create room_types table (NULL branch = global type)
    if not _has_table(bind, 'room_types'):
        op.create_table('room_types',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('branch_id', sa.Integer(), nullable=True),
            sa.Column('name', sa.String(length=100), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('base_price', sa.Numeric(precision=10, scale=2), nullable=True),
            sa.Column('max_occupancy', sa.Integer(), server_default='2', nullable=False),
            sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
            sa.PrimaryKeyConstraint('id')
        )

    # Create rooms table
    if not _has_table(bind, 'rooms'):
        op.create_table('rooms',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('branch_id', sa.Integer(), nullable=False),
            sa.Column('room_type_id', sa.Integer(), nullable=False),
            sa.Column('number', sa.String(length=20), nullable=False),
            sa.Column('floor', sa.Integer(), nullable=True),
            sa.Column('status', sa.String(length=20), server_default='available', nullable=False),
            sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
            sa.ForeignKeyConstraint(['room_type_id'], ['room_types.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('branch_id', 'number', name='uq_rooms_branch_number')
        )
        op.create_index(op.f('ix_rooms_branch_id'), 'rooms', ['branch_id'], unique=False)

    # Create guests table
    if not _has_table(bind, 'guests'):
        op.create_table('guests',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('branch_id', sa.Integer(), nullable=True),
            sa.Column('first_name', sa.String(length=100), nullable=False),
            sa.Column('last_name', sa.String(length=100), nullable=True),
            sa.Column('email', sa.String(length=255), nullable=True),
            sa.Column('phone', sa.String(length=50), nullable=True),
            sa.Column('phone_digits', sa.String(length=50), nullable=True),
            sa.Column('nationality', sa.String(length=100), nullable=True),
            sa.Column('id_type', sa.String(length=50), nullable=True),
            sa.Column('id_number', sa.String(length=100), nullable=True),
            sa.Column('address', sa.Text(), nullable=True),
            sa.Column('date_of_birth', sa.Date(), nullable=True),
            sa.Column('reservation_count', sa.Integer(), server_default='0', nullable=False),
            sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_guests_id'), 'guests', ['id'], unique=False)
        op.create_index(op.f('ix_guests_phone_digits'), 'guests', ['phone_digits'], unique=False)

    # Create taxes table
    if not _has_table(bind, 'taxes'):
        op.create_table('taxes',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('tax_name', sa.String(length=100), nullable=False),
            sa.Column('rate', sa.Numeric(precision=5, scale=2), nullable=False),
            sa.Column('application_type', sa.String(length=20), server_default='reservation', nullable=False),
            sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_taxes_id'), 'taxes', ['id'], unique=False)
        op.create_index(op.f('ix_taxes_tax_name'), 'taxes', ['tax_name'], unique=True)

    # Create reservations table
    if not _has_table(bind, 'reservations'):
        op.create_table('reservations',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('confirmation_number', sa.String(length=20), nullable=False),
            sa.Column('branch_id', sa.Integer(), nullable=False),
            sa.Column('guest_id', sa.Integer(), nullable=False),
            sa.Column('status', sa.String(length=20), server_default='confirmed', nullable=False),
            sa.Column('total_amount', sa.Numeric(precision=10, scale=2), server_default='0', nullable=False),
            sa.Column('tax_amount', sa.Numeric(precision=10, scale=2), server_default='0', nullable=False),
            sa.Column('paid_amount', sa.Numeric(precision=10, scale=2), server_default='0', nullable=False),
            sa.Column('applied_taxes', sa.JSON(), nullable=False),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('created_by_id', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
            sa.ForeignKeyConstraint(['guest_id'], ['guests.id'], ),
            sa.ForeignKeyConstraint(['created_by_id'], ['users.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_reservations_confirmation_number'), 'reservations', ['confirmation_number'], unique=True)
        op.create_index(op.f('ix_reservations_branch_id'), 'reservations', ['branch_id'], unique=False)
        op.create_index(op.f('ix_reservations_guest_id'), 'reservations', ['guest_id'], unique=False)
        op.create_index('ix_reservations_branch_status', 'reservations', ['branch_id', 'status'], unique=False)

    # Create reservation_rooms table
    if not _has_table(bind, 'reservation_rooms'):
        op.create_table('reservation_rooms',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('reservation_id', sa.String(length=36), nullable=False),
            sa.Column('room_id', sa.Integer(), nullable=False),
            sa.Column('check_in_date', sa.Date(), nullable=False),
            sa.Column('check_out_date', sa.Date(), nullable=False),
            sa.Column('adults', sa.Integer(), server_default='1', nullable=False),
            sa.Column('children', sa.Integer(), server_default='0', nullable=False),
            sa.Column('rate_per_night', sa.Numeric(precision=10, scale=2), nullable=False),
            sa.Column('total_amount', sa.Numeric(precision=10, scale=2), nullable=False),
            sa.Column('special_requests', sa.Text(), nullable=True),
            sa.Column('actual_check_in', sa.DateTime(), nullable=True),
            sa.Column('actual_check_out', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['reservation_id'], ['reservations.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['room_id'], ['rooms.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_reservation_rooms_id'), 'reservation_rooms', ['id'], unique=False)
        op.create_index(op.f('ix_reservation_rooms_reservation_id'), 'reservation_rooms', ['reservation_id'], unique=False)
        op.create_index(op.f('ix_reservation_rooms_room_id'), 'reservation_rooms', ['room_id'], unique=False)
        op.create_index(op.f('ix_reservation_rooms_check_in_date'), 'reservation_rooms', ['check_in_date'], unique=False)
        op.create_index(op.f('ix_reservation_rooms_check_out_date'), 'reservation_rooms', ['check_out_date'], unique=False)
        op.create_index('ix_reservation_rooms_room_dates', 'reservation_rooms',
                        ['room_id', 'check_in_date', 'check_out_date'], unique=False)

    # Create outbox_events table
    if not _has_table(bind, 'outbox_events'):
        op.create_table('outbox_events',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('topic', sa.String(length=20), nullable=False),
            sa.Column('kind', sa.String(length=100), nullable=False),
            sa.Column('payload', sa.JSON(), nullable=False),
            sa.Column('attempts', sa.Integer(), server_default='0', nullable=False),
            sa.Column('last_error', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('dispatched_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_outbox_events_id'), 'outbox_events', ['id'], unique=False)
        op.create_index('ix_outbox_events_pending', 'outbox_events', ['dispatched_at', 'attempts'], unique=False)


def downgrade() -> None:
    op.drop_table('outbox_events')
    op.drop_table('reservation_rooms')
    op.drop_table('reservations')
    op.drop_table('taxes')
    op.drop_table('guests')
    op.drop_table('rooms')
    op.drop_table('room_types')
    op.drop_table('users')
    op.drop_table('branches')
