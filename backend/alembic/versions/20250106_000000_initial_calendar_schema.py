"""initial calendar schema

Creates the clinician, client, availability rule, availability exception and
appointment tables read by the calendar grid.

Revision ID: 20250106000000
Revises:
Create Date: 2025-01-06 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20250106000000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'clinicians',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(length=255), nullable=False),
        sa.Column('last_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('time_zone', sa.String(length=64), nullable=False),
        sa.Column('settings', sa.JSON().with_variant(postgresql.JSONB(), 'postgresql'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_clinicians_id', 'clinicians', ['id'])

    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(length=255), nullable=False),
        sa.Column('last_name', sa.String(length=255), nullable=False),
        sa.Column('preferred_name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_clients_id', 'clients', ['id'])

    op.create_table(
        'availability_rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('clinician_id', sa.Integer(), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint('day_of_week BETWEEN 0 AND 6', name='check_rule_day_of_week'),
        sa.ForeignKeyConstraint(['clinician_id'], ['clinicians.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_availability_rules_id', 'availability_rules', ['id'])
    op.create_index('idx_availability_rules_clinician_day', 'availability_rules', ['clinician_id', 'day_of_week'])
    op.create_index('idx_availability_rules_clinician_active', 'availability_rules', ['clinician_id', 'is_active'])

    # Deleted exceptions are kept: they are what cancels a rule occurrence
    op.create_table(
        'availability_exceptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('clinician_id', sa.Integer(), nullable=False),
        sa.Column('specific_date', sa.Date(), nullable=False),
        sa.Column('original_rule_id', sa.Integer(), nullable=True),
        sa.Column('start_time', sa.Time(), nullable=True),
        sa.Column('end_time', sa.Time(), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['clinician_id'], ['clinicians.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['original_rule_id'], ['availability_rules.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_availability_exceptions_id', 'availability_exceptions', ['id'])
    op.create_index('idx_availability_exceptions_clinician_date', 'availability_exceptions', ['clinician_id', 'specific_date'])
    op.create_index('idx_availability_exceptions_rule_date', 'availability_exceptions', ['original_rule_id', 'specific_date'])

    op.create_table(
        'appointments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('clinician_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('type', sa.String(length=100), nullable=False),
        sa.Column('notes', sa.String(length=1000), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('scheduled', 'cancelled', 'completed', 'no_show')",
            name='check_appointment_status',
        ),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.ForeignKeyConstraint(['clinician_id'], ['clinicians.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_appointments_id', 'appointments', ['id'])
    op.create_index('idx_appointments_clinician_date', 'appointments', ['clinician_id', 'date'])
    op.create_index('idx_appointments_clinician_date_status', 'appointments', ['clinician_id', 'date', 'status'])


def downgrade() -> None:
    op.drop_table('appointments')
    op.drop_table('availability_exceptions')
    op.drop_table('availability_rules')
    op.drop_table('clients')
    op.drop_table('clinicians')
