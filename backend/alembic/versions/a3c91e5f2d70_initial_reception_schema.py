"""initial_reception_schema

Revision ID: a3c91e5f2d70
Revises:
Create Date: 2026-10-19 09:00:00.000000

Baseline schema for the reception backend: patients, visits, the public
status row and staff accounts.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a3c91e5f2d70'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Patient self check-ins that are still waiting: at most one per patient per day
ACTIVE_SELF_CHECK_IN = sa.text("status = 'active' AND created_by = 'patient'")


def upgrade() -> None:
    """Create the reception tables, indexes and constraints."""
    op.create_table(
        'patients',
        sa.Column('patient_id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('kana', sa.String(length=100), nullable=True),
        sa.Column('birth_date', sa.String(length=10), nullable=True),
        sa.Column('line_user_id', sa.String(length=255), nullable=True),
        sa.Column('owner_subject_id', sa.String(length=255), nullable=True),
        sa.Column('linked_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_by_type', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('patient_id'),
    )
    op.create_index('uq_patients_line_user_id', 'patients', ['line_user_id'], unique=True)

    op.create_table(
        'visits',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('patient_id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('line_user_id', sa.String(length=255), nullable=True),
        sa.Column('owner_subject_id', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('arrived_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(length=20), nullable=False),
        sa.Column('closed_by', sa.String(length=20), nullable=True),
        sa.Column('receipt_status', sa.Boolean(), nullable=False),
        sa.CheckConstraint("status IN ('active', 'paid', 'cancelled')", name='check_visit_status'),
        sa.CheckConstraint("created_by IN ('patient', 'staff')", name='check_visit_created_by'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_visits_date_arrived', 'visits', ['date', 'arrived_at'])
    op.create_index('idx_visits_patient_status', 'visits', ['patient_id', 'status'])
    op.create_index(
        'uq_visits_active_self_check_in',
        'visits',
        ['patient_id', 'date'],
        unique=True,
        postgresql_where=ACTIVE_SELF_CHECK_IN,
        sqlite_where=ACTIVE_SELF_CHECK_IN,
    )

    op.create_table(
        'public_status',
        sa.Column('id', sa.String(length=20), nullable=False),
        sa.Column('active_count', sa.Integer(), nullable=False),
        sa.Column('estimated_wait_minutes', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'staff_users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('display_name', sa.String(length=100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_staff_users_id', 'staff_users', ['id'])


def downgrade() -> None:
    """Drop all reception tables."""
    op.drop_index('ix_staff_users_id', table_name='staff_users')
    op.drop_table('staff_users')
    op.drop_table('public_status')
    op.drop_index('uq_visits_active_self_check_in', table_name='visits')
    op.drop_index('idx_visits_patient_status', table_name='visits')
    op.drop_index('idx_visits_date_arrived', table_name='visits')
    op.drop_table('visits')
    op.drop_index('uq_patients_line_user_id', table_name='patients')
    op.drop_table('patients')
