"""create scheduling tables

Revision ID: 5a1c0e3f9b27
Revises:
Create Date: 2026-10-19 10:12:41.502113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '5a1c0e3f9b27'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""

    # 1. Staff users (doctor directory and caller identity)
    op.create_table(
        'staff_users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('username', sa.String(150), nullable=False),
        sa.Column('first_name', sa.String(150), nullable=False),
        sa.Column('last_name', sa.String(150), nullable=False),
        sa.Column('phone_number', sa.String(20), nullable=True),
        sa.Column('role', sa.Enum('SUPERADMIN', 'ADMIN', 'MANAGER', 'CONSULTANT', 'DOCTOR', name='staffrole'), nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)
    )

    op.create_index('ix_staff_users_tenant_id', 'staff_users', ['tenant_id'])
    op.create_index('ix_staff_users_role', 'staff_users', ['role'])

    # 2. Clinic service catalog
    op.create_table(
        'clinic_services',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('fee', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'))
    )

    op.create_index('ix_clinic_services_tenant_id', 'clinic_services', ['tenant_id'])
    op.create_index('ix_clinic_services_is_active', 'clinic_services', ['is_active'])

    # 3. Calendar appointments (one-offs, series templates, split-off weeks)
    op.create_table(
        'calendar_appointments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('doctor_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('staff_users.id'), nullable=False),
        sa.Column('booking_id', sa.String(64), nullable=False),
        sa.Column('day_index', sa.Integer, nullable=False),
        sa.Column('time_index', sa.Integer, nullable=False),
        sa.Column('end_time_index', sa.Integer, nullable=True),
        sa.Column('slot_count', sa.Integer, nullable=True),
        sa.Column('appointment_date', sa.DateTime, nullable=False),
        sa.Column('appointment_type', sa.String(50), nullable=True),
        sa.Column('participants', sa.JSON, nullable=True),
        sa.Column('phones', sa.JSON, nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('is_recurring', sa.Boolean, nullable=False, server_default=sa.text('false')),
        sa.Column('end_date', sa.DateTime, nullable=True),
        sa.Column('recurring_parent_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('recurring_exceptions', sa.JSON, nullable=True),
        sa.Column('status', sa.String(30), nullable=False, server_default='open'),
        sa.Column('action_pay_now', sa.Boolean, server_default=sa.text('true')),
        sa.Column('action_re_book', sa.Boolean, server_default=sa.text('false')),
        sa.Column('action_edit', sa.Boolean, server_default=sa.text('true')),
        sa.Column('action_view', sa.Boolean, server_default=sa.text('true')),
        sa.Column('sms_immediate_sent', sa.Boolean, server_default=sa.text('false')),
        sa.Column('sms_reminder_sent', sa.Boolean, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'))
    )

    op.create_index('ix_calendar_appointments_booking_id', 'calendar_appointments', ['booking_id'])
    op.create_index('ix_calendar_appointments_recurring_parent_id', 'calendar_appointments', ['recurring_parent_id'])
    op.create_index('idx_calendar_appointments_tenant_date', 'calendar_appointments', ['tenant_id', 'appointment_date'])
    op.create_index('idx_calendar_appointments_tenant_recurring', 'calendar_appointments', ['tenant_id', 'is_recurring'])

    # 4. Payments
    op.create_table(
        'payments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('doctor_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('staff_users.id'), nullable=False),
        sa.Column('appointment_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('service_ids', sa.JSON, nullable=True),
        sa.Column('payment_method', sa.String(50), nullable=False),
        sa.Column('payment_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('payment_date', sa.DateTime, nullable=False),
        sa.Column('payment_status', sa.String(30), nullable=False, server_default='pending'),
        sa.Column('payment_description', sa.Text, nullable=True),
        sa.Column('service_fee', sa.Numeric(10, 2), nullable=False),
        sa.Column('service_description', sa.Text, nullable=False, server_default=''),
        sa.Column('payment_period', sa.String(20), nullable=True, server_default='single'),
        sa.Column('period_end_date', sa.DateTime, nullable=True),
        sa.Column('occurrence_date', sa.Date, nullable=True),
        sa.Column('is_deleted', sa.Boolean, nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'))
    )

    op.create_index('ix_payments_tenant_id', 'payments', ['tenant_id'])
    op.create_index('ix_payments_appointment_id', 'payments', ['appointment_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('payments')
    op.drop_table('calendar_appointments')
    op.drop_table('clinic_services')
    op.drop_table('staff_users')
    sa.Enum(name='staffrole').drop(op.get_bind(), checkfirst=True)
