"""compliance portal initial schema

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = '20261019_01'
down_revision = None
branch_labels = None
depends_on = None


def _uuid():
    return postgresql.UUID(as_uuid=True)


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('full_name', sa.String()),
        sa.Column('role', sa.String(), server_default='researcher', nullable=False),
        sa.Column('two_factor_secret', sa.String()),
        sa.Column('two_factor_enabled', sa.Boolean(), server_default='0'),
        sa.Column('is_admin', sa.Boolean(), server_default='0'),
        sa.Column('is_active', sa.Boolean(), server_default='1'),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_table(
        'scientists',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String()),
        sa.Column('department', sa.String()),
        sa.Column('title', sa.String()),
        sa.Column('profile_image_initials', sa.String()),
        sa.Column('is_principal_investigator', sa.Boolean(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_table(
        'research_activities',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('sdr_number', sa.String(), nullable=False, unique=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('status', sa.String(), server_default='active', nullable=False),
        sa.Column('principal_investigator_id', _uuid(), sa.ForeignKey('scientists.id')),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_table(
        'research_activity_staff',
        sa.Column('research_activity_id', _uuid(), sa.ForeignKey('research_activities.id'), primary_key=True),
        sa.Column('scientist_id', _uuid(), sa.ForeignKey('scientists.id'), primary_key=True),
        sa.Column('role', sa.String(), server_default='staff'),
    )
    op.create_table(
        'ibc_applications',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('ibc_number', sa.String(), nullable=False, unique=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('principal_investigator_id', _uuid(), sa.ForeignKey('scientists.id'), nullable=False),
        sa.Column('biosafety_level', sa.String(), server_default='BSL-2', nullable=False),
        sa.Column('risk_level', sa.String(), server_default='moderate', nullable=False),
        sa.Column('status', sa.String(), server_default='draft', nullable=False),
        sa.Column('submission_type', sa.String(), server_default='initial', nullable=False),
        sa.Column('version', sa.Integer(), server_default='1', nullable=False),
        sa.Column('form_data', sa.JSON()),
        sa.Column('protocol_team_members', sa.JSON()),
        sa.Column('submission_date', sa.DateTime()),
        sa.Column('under_review_date', sa.DateTime()),
        sa.Column('approval_date', sa.DateTime()),
        sa.Column('created_by', _uuid(), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
    )
    op.create_table(
        'ibc_application_research_activities',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('ibc_application_id', _uuid(), sa.ForeignKey('ibc_applications.id'), nullable=False),
        sa.Column('research_activity_id', _uuid(), sa.ForeignKey('research_activities.id'), nullable=False),
        sa.Column('created_at', sa.DateTime()),
        sa.UniqueConstraint('ibc_application_id', 'research_activity_id'),
    )
    op.create_table(
        'pmo_applications',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('application_number', sa.String(), nullable=False, unique=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('lead_scientist_id', _uuid(), sa.ForeignKey('scientists.id'), nullable=False),
        sa.Column('research_activity_id', _uuid(), sa.ForeignKey('research_activities.id')),
        sa.Column('status', sa.String(), server_default='draft', nullable=False),
        sa.Column('form_data', sa.JSON()),
        sa.Column('protocol_team_members', sa.JSON()),
        sa.Column('submission_date', sa.DateTime()),
        sa.Column('under_review_date', sa.DateTime()),
        sa.Column('approval_date', sa.DateTime()),
        sa.Column('created_by', _uuid(), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
    )
    op.create_table(
        'application_comments',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('application_kind', sa.String(), nullable=False),
        sa.Column('application_id', _uuid(), nullable=False),
        sa.Column('comment_type', sa.String(), nullable=False),
        sa.Column('author_type', sa.String(), nullable=False),
        sa.Column('author_name', sa.String()),
        sa.Column('author_id', _uuid()),
        sa.Column('comment', sa.Text(), nullable=False),
        sa.Column('recommendation', sa.String()),
        sa.Column('status_from', sa.String()),
        sa.Column('status_to', sa.String()),
        sa.Column('is_internal', sa.Boolean(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_index(
        'ix_application_comments_application_id', 'application_comments', ['application_id']
    )
    op.create_table(
        'audit_logs',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('user_id', _uuid(), sa.ForeignKey('users.id')),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('target_type', sa.String()),
        sa.Column('target_id', _uuid()),
        sa.Column('details', sa.JSON()),
        sa.Column('created_at', sa.DateTime()),
    )


def downgrade():
    op.drop_table('audit_logs')
    op.drop_index('ix_application_comments_application_id', table_name='application_comments')
    op.drop_table('application_comments')
    op.drop_table('pmo_applications')
    op.drop_table('ibc_application_research_activities')
    op.drop_table('ibc_applications')
    op.drop_table('research_activity_staff')
    op.drop_table('research_activities')
    op.drop_table('scientists')
    op.drop_table('users')
