"""lead acceptance schema

Revision ID: 20261019_lead_acceptance
Revises:
Create Date: 2026-10-19

Creates users, leads, seller pools (with toggle history), the audit trail
and the notification delivery log.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import text

# revision identifiers, used by Alembic.
revision = '20261019_lead_acceptance'
down_revision = None
branch_labels = None
depends_on = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    conn = op.get_bind()
    result = conn.execute(text(
        "SELECT EXISTS (SELECT FROM information_schema.tables WHERE table_name = :name)"
    ), {"name": table_name})
    return result.scalar()


def upgrade() -> None:
    if not table_exists('users'):
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(255), nullable=False),
            sa.Column('first_name', sa.String(100), nullable=True),
            sa.Column('last_name', sa.String(100), nullable=True),
            sa.Column('role', sa.String(20), nullable=True, server_default='seller'),
            sa.Column('facility', sa.String(100), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.true()),
            sa.Column('email_on_lead_assignment', sa.Boolean(), nullable=True, server_default=sa.true()),

            # Acceptance counters
            sa.Column('leads_accepted_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('leads_declined_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('leads_reassigned_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('leads_timed_out_count', sa.Integer(), nullable=False, server_default='0'),

            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('email'),
        )
        op.create_index('ix_users_email', 'users', ['email'])
        op.create_index('ix_users_facility', 'users', ['facility'])

    if not table_exists('leads'):
        op.create_table(
            'leads',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('source', sa.String(20), nullable=False),
            sa.Column('facility', sa.String(100), nullable=True),

            # Inquiry
            sa.Column('contact_name', sa.String(255), nullable=False),
            sa.Column('contact_email', sa.String(255), nullable=True),
            sa.Column('contact_phone', sa.String(50), nullable=True),
            sa.Column('vehicle_title', sa.String(255), nullable=False),
            sa.Column('vehicle_link', sa.String(500), nullable=True),
            sa.Column('listing_id', sa.String(100), nullable=True),
            sa.Column('message', sa.Text(), nullable=True),
            sa.Column('raw_payload', sa.JSON(), nullable=True),

            # Assignment
            sa.Column('status', sa.String(30), nullable=False, server_default='new'),
            sa.Column('assigned_to_id', sa.Integer(), nullable=True),
            sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('assignment_version', sa.Integer(), nullable=False, server_default='0'),

            # Acceptance cycle
            sa.Column('accept_status', sa.String(20), nullable=True),
            sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('declined_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('decline_reason', sa.Text(), nullable=True),
            sa.Column('reminder_sent_at_6h', sa.DateTime(timezone=True), nullable=True),
            sa.Column('reminder_sent_at_11h', sa.DateTime(timezone=True), nullable=True),
            sa.Column('timeout_notified_at', sa.DateTime(timezone=True), nullable=True),

            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['assigned_to_id'], ['users.id']),
        )
        op.create_index('idx_leads_facility_created', 'leads', ['facility', 'created_at'])
        op.create_index('idx_leads_status_assignee', 'leads', ['status', 'assigned_to_id'])
        op.create_index('ix_leads_listing_id', 'leads', ['listing_id'])

    if not table_exists('seller_pools'):
        op.create_table(
            'seller_pools',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('facility', sa.String(100), nullable=False),
            sa.Column('is_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['user_id'], ['users.id']),
            sa.UniqueConstraint('facility', 'user_id', name='uq_seller_pools_facility_user'),
            sa.UniqueConstraint('facility', 'sort_order', name='uq_seller_pools_facility_sort_order'),
        )
        op.create_index('ix_seller_pools_user_id', 'seller_pools', ['user_id'])
        op.create_index('ix_seller_pools_facility', 'seller_pools', ['facility'])

    if not table_exists('pool_status_changes'):
        op.create_table(
            'pool_status_changes',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('seller_pool_id', sa.Integer(), nullable=False),
            sa.Column('changed_by_id', sa.Integer(), nullable=True),
            sa.Column('new_status', sa.Boolean(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['seller_pool_id'], ['seller_pools.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['changed_by_id'], ['users.id']),
        )
        op.create_index('ix_pool_status_changes_seller_pool_id', 'pool_status_changes', ['seller_pool_id'])

    if not table_exists('audit_logs'):
        op.create_table(
            'audit_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('lead_id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=True),
            sa.Column('action', sa.String(100), nullable=False),
            sa.Column('from_value', sa.Text(), nullable=True),
            sa.Column('to_value', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        )
        op.create_index('ix_audit_logs_lead_id', 'audit_logs', ['lead_id'])
        op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
        op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])

    if not table_exists('email_notification_logs'):
        op.create_table(
            'email_notification_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('lead_id', sa.Integer(), nullable=False),
            sa.Column('kind', sa.String(30), nullable=False),
            sa.Column('email_to', sa.String(255), nullable=False),
            sa.Column('subject', sa.Text(), nullable=False),
            sa.Column('success', sa.Boolean(), nullable=False),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['user_id'], ['users.id']),
            sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='CASCADE'),
        )
        op.create_index('ix_email_notification_logs_user_id', 'email_notification_logs', ['user_id'])
        op.create_index('ix_email_notification_logs_lead_id', 'email_notification_logs', ['lead_id'])


def downgrade() -> None:
    op.drop_table('email_notification_logs')
    op.drop_table('audit_logs')
    op.drop_table('pool_status_changes')
    op.drop_table('seller_pools')
    op.drop_table('leads')
    op.drop_table('users')
