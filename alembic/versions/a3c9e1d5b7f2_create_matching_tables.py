"""create matching tables

Revision ID: a3c9e1d5b7f2
Revises:
Create Date: 2025-11-17 02:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a3c9e1d5b7f2'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

YEAR_GROUPS = ('YEAR_9', 'YEAR_10', 'YEAR_11', 'YEAR_12', 'YEAR_13')
REQUEST_TYPES = ('TUTOR', 'TUTEE')
REQUEST_STATUSES = ('OUTSTANDING', 'MATCHED', 'REJECTED', 'COMPLETED')
WEEKDAYS = ('MONDAY', 'TUESDAY', 'WEDNESDAY', 'THURSDAY', 'FRIDAY')
PERIODS = ('P1', 'P2', 'P3', 'P4', 'P5', 'P6', 'P7')


def _enum(values, length, name):
    return sa.Enum(*values, native_enum=False, length=length, name=name)


def upgrade() -> None:
    op.create_table('subjects',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('name', sa.String(length=100), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('name')
    )

    op.create_table('timeslots',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('label', sa.String(length=50), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('label')
    )

    op.create_table('users',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('full_name', sa.String(length=100), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=False),
    sa.Column('year_group', _enum(YEAR_GROUPS, 20, 'yeargroup'), nullable=False),
    sa.Column('max_sessions_per_week', sa.Integer(), nullable=False, server_default='3'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('max_sessions_per_week >= 1', name='max_sessions_positive'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('email')
    )
    op.create_index('idx_users_email', 'users', ['email'], unique=False)

    op.create_table('user_subjects',
    sa.Column('user_id', sa.Integer(), nullable=False),
    sa.Column('subject_id', sa.Integer(), nullable=False),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['subject_id'], ['subjects.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('user_id', 'subject_id')
    )

    op.create_table('availability_slots',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('user_id', sa.Integer(), nullable=False),
    sa.Column('day_of_week', _enum(WEEKDAYS, 10, 'weekday'), nullable=False),
    sa.Column('period', _enum(PERIODS, 5, 'period'), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('user_id', 'day_of_week', 'period', name='uq_availability_user_slot')
    )
    op.create_index('idx_availability_user', 'availability_slots', ['user_id'], unique=False)

    op.create_table('tutoring_requests',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('user_id', sa.Integer(), nullable=False),
    sa.Column('subject_id', sa.Integer(), nullable=False),
    sa.Column('kind', _enum(REQUEST_TYPES, 10, 'requesttype'), nullable=False),
    sa.Column('status', _enum(REQUEST_STATUSES, 20, 'requeststatus'), nullable=False, server_default='OUTSTANDING'),
    sa.Column('year_group', _enum(YEAR_GROUPS, 20, 'yeargroup'), nullable=False),
    sa.Column('target_week', sa.Date(), nullable=False),
    sa.Column('is_recurring', sa.Boolean(), nullable=False, server_default='false'),
    sa.Column('recurring_tutor_id', sa.Integer(), nullable=True),
    sa.Column('matched_partner_id', sa.Integer(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['subject_id'], ['subjects.id']),
    sa.ForeignKeyConstraint(['matched_partner_id'], ['tutoring_requests.id'], ondelete='SET NULL'),
    sa.ForeignKeyConstraint(['recurring_tutor_id'], ['users.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_requests_kind_status_week', 'tutoring_requests', ['kind', 'status', 'target_week'], unique=False)
    op.create_index('idx_requests_user', 'tutoring_requests', ['user_id'], unique=False)
    op.create_index('idx_requests_partner', 'tutoring_requests', ['matched_partner_id'], unique=False)

    op.create_table('request_timeslots',
    sa.Column('request_id', sa.Integer(), nullable=False),
    sa.Column('timeslot_id', sa.Integer(), nullable=False),
    sa.ForeignKeyConstraint(['request_id'], ['tutoring_requests.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['timeslot_id'], ['timeslots.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('request_id', 'timeslot_id')
    )

    op.create_table('matches',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('tutor_request_id', sa.Integer(), nullable=False),
    sa.Column('tutee_request_id', sa.Integer(), nullable=False),
    sa.Column('timeslot_id', sa.Integer(), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='ACTIVE'),
    sa.Column('recurrence_accepted', sa.Boolean(), nullable=False, server_default='false'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['tutor_request_id'], ['tutoring_requests.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['tutee_request_id'], ['tutoring_requests.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['timeslot_id'], ['timeslots.id']),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_matches_tutor_request', 'matches', ['tutor_request_id'], unique=False)
    op.create_index('idx_matches_tutee_request', 'matches', ['tutee_request_id'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_matches_tutee_request', table_name='matches')
    op.drop_index('idx_matches_tutor_request', table_name='matches')
    op.drop_table('matches')
    op.drop_table('request_timeslots')
    op.drop_index('idx_requests_partner', table_name='tutoring_requests')
    op.drop_index('idx_requests_user', table_name='tutoring_requests')
    op.drop_index('idx_requests_kind_status_week', table_name='tutoring_requests')
    op.drop_table('tutoring_requests')
    op.drop_index('idx_availability_user', table_name='availability_slots')
    op.drop_table('availability_slots')
    op.drop_table('user_subjects')
    op.drop_index('idx_users_email', table_name='users')
    op.drop_table('users')
    op.drop_table('timeslots')
    op.drop_table('subjects')
