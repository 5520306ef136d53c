"""Initial schema - users, roles, enquiries, consultations, projects

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

Portable DDL (UUID, JSON, timezone-aware timestamps) so the same revision
runs on PostgreSQL and SQLite.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def _user_fk(name: str) -> sa.Column:
    return sa.Column(name, sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)


def upgrade() -> None:
    """Create all tables and indexes."""

    # ==========================================================================
    # Users & Roles
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        'roles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
    )
    op.create_table(
        'user_roles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role_id', sa.Uuid(), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('user_id', 'role_id', name='uq_user_role'),
    )
    op.create_index('idx_user_roles_role', 'user_roles', ['role_id'])

    # ==========================================================================
    # Enquiries
    # ==========================================================================
    op.create_table(
        'enquiries',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('subject', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='New'),
        sa.Column('meta', sa.JSON(), nullable=True),
        _user_fk('assigned_to_id'),
        sa.Column('scheduled_call_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_enquiries_status', 'enquiries', ['status'])
    op.create_index('idx_enquiries_created', 'enquiries', ['created_at'])

    # ==========================================================================
    # Consultations
    # ==========================================================================
    op.create_table(
        'consultation_slots',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.String(5), nullable=False),
        sa.Column('end_time', sa.String(5), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('max_bookings', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(20), nullable=False, server_default='available'),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notes', sa.Text(), nullable=True),
        _user_fk('created_by_id'),
        *_timestamps(),
    )
    op.create_index('idx_consultation_slots_date_start', 'consultation_slots', ['date', 'start_time'])
    op.create_index(
        'idx_consultation_slots_open', 'consultation_slots', ['status', 'is_available', 'date']
    )

    op.create_table(
        'consultation_bookings',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'slot_id',
            sa.Uuid(),
            sa.ForeignKey('consultation_slots.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('user_name', sa.String(255), nullable=False),
        sa.Column('user_email', sa.String(255), nullable=False),
        sa.Column('user_phone', sa.String(50), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('meeting_link', sa.String(500), nullable=True),
        sa.Column('calendar_event_id', sa.String(255), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        _user_fk('confirmed_by_id'),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_by', sa.String(10), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        'idx_consultation_bookings_slot_created', 'consultation_bookings', ['slot_id', 'created_at']
    )
    op.create_index('idx_consultation_bookings_email', 'consultation_bookings', ['user_email'])

    # ==========================================================================
    # Projects
    # ==========================================================================
    op.create_table(
        'projects',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'enquiry_id', sa.Uuid(), sa.ForeignKey('enquiries.id', ondelete='RESTRICT'), nullable=False
        ),
        sa.Column('project_name', sa.String(255), nullable=False),
        sa.Column('client_name', sa.String(255), nullable=False),
        sa.Column('client_email', sa.String(255), nullable=False),
        sa.Column('client_phone', sa.String(50), nullable=True),
        sa.Column(
            'project_manager_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False
        ),
        sa.Column('project_manager_name', sa.String(255), nullable=True),
        sa.Column('services', sa.JSON(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        _user_fk('created_by_id'),
        sa.Column('status', sa.String(30), nullable=False, server_default='Draft Quote'),
        sa.Column('current_stage', sa.String(30), nullable=False, server_default='Draft Quote'),
        # Quote
        sa.Column('quote_invoice_number', sa.String(100), nullable=True),
        sa.Column('quote_client_name', sa.String(255), nullable=True),
        sa.Column('quote_title', sa.String(255), nullable=True),
        sa.Column('quote_service_type', sa.String(255), nullable=True),
        sa.Column('quote_line_items', sa.JSON(), nullable=False),
        sa.Column('quote_amount', sa.Numeric(14, 2), nullable=True),
        sa.Column('quote_currency', sa.String(3), nullable=False, server_default='INR'),
        sa.Column('quote_description', sa.Text(), nullable=True),
        sa.Column('quote_draft_date', sa.DateTime(timezone=True), nullable=True),
        _user_fk('quote_draft_by_id'),
        _user_fk('quote_assigned_approver_id'),
        sa.Column('quote_assigned_approver_name', sa.String(255), nullable=True),
        sa.Column('quote_assigned_approver_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('quote_internal_approval_date', sa.DateTime(timezone=True), nullable=True),
        _user_fk('quote_internal_approved_by_id'),
        sa.Column('quote_sent_date', sa.DateTime(timezone=True), nullable=True),
        _user_fk('quote_sent_by_id'),
        sa.Column('quote_client_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('quote_client_approval_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('quote_approver_notified_id', sa.Uuid(), nullable=True),
        # Payment
        sa.Column('payment_amount', sa.Numeric(14, 2), nullable=True),
        sa.Column('payment_currency', sa.String(3), nullable=False, server_default='INR'),
        sa.Column('payment_status', sa.String(20), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_method', sa.String(100), nullable=True),
        sa.Column('payment_transaction_id', sa.String(255), nullable=True),
        sa.Column('payment_notes', sa.Text(), nullable=True),
        # Onboarding
        sa.Column('onboarding_start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('onboarding_completed_date', sa.DateTime(timezone=True), nullable=True),
        _user_fk('onboarding_by_id'),
        sa.Column('onboarding_notes', sa.Text(), nullable=True),
        # Drafting
        sa.Column('drafting_start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('drafting_completed_date', sa.DateTime(timezone=True), nullable=True),
        _user_fk('drafted_by_id'),
        sa.Column('drafting_notes', sa.Text(), nullable=True),
        # Filing
        sa.Column('filing_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('filing_application_number', sa.String(100), nullable=True),
        _user_fk('filed_by_id'),
        sa.Column('filing_notes', sa.Text(), nullable=True),
        # Grant
        sa.Column('grant_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('grant_number', sa.String(100), nullable=True),
        _user_fk('granted_by_id'),
        sa.Column('grant_notes', sa.Text(), nullable=True),
        # Close
        sa.Column('closed_date', sa.DateTime(timezone=True), nullable=True),
        _user_fk('closed_by_id'),
        sa.Column('close_remarks', sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('enquiry_id', name='uq_projects_enquiry'),
    )
    op.create_index('idx_projects_manager', 'projects', ['project_manager_id'])
    op.create_index('idx_projects_status', 'projects', ['status'])
    op.create_index('idx_projects_created', 'projects', ['created_at'])


def downgrade() -> None:
    """Drop everything created in upgrade()."""
    op.drop_table('projects')
    op.drop_table('consultation_bookings')
    op.drop_table('consultation_slots')
    op.drop_table('enquiries')
    op.drop_table('user_roles')
    op.drop_table('roles')
    op.drop_table('users')
