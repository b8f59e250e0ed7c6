"""research activity change requests

Revision ID: 20261019_02
Revises: 20261019_01
Create Date: 2026-10-19 15:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = '20261019_02'
down_revision = '20261019_01'
branch_labels = None
depends_on = None


def _uuid():
    return postgresql.UUID(as_uuid=True)


def upgrade():
    op.create_table(
        'change_requests',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('change_request_number', sa.String(), nullable=False, unique=True),
        sa.Column(
            'research_activity_id', _uuid(), sa.ForeignKey('research_activities.id'), nullable=False
        ),
        sa.Column('sdr_number', sa.String(), nullable=False),
        sa.Column('current_title', sa.String(), nullable=False),
        sa.Column('current_pi_id', _uuid(), sa.ForeignKey('scientists.id')),
        sa.Column('new_pi_id', _uuid(), sa.ForeignKey('scientists.id')),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('status', sa.String(), server_default='draft', nullable=False),
        sa.Column('form_data', sa.JSON()),
        sa.Column('submission_date', sa.DateTime()),
        sa.Column('under_review_date', sa.DateTime()),
        sa.Column('approval_date', sa.DateTime()),
        sa.Column('created_by', _uuid(), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
    )


def downgrade():
    op.drop_table('change_requests')
