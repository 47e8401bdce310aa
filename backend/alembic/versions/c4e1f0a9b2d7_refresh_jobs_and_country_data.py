"""refresh jobs and country data

Revision ID: c4e1f0a9b2d7
Revises:
Create Date: 2026-10-18 09:12:40.118235

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'c4e1f0a9b2d7'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    """Create bulk refresh job tables and cached country data tables."""

    # Bulk refresh jobs
    op.create_table(
        'jobs',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='running', nullable=False),
        # status: running, completed, failed, cancelled
        sa.Column('total_countries', sa.Integer(), server_default='0', nullable=False),
        sa.Column('processed_countries', sa.Integer(), server_default='0', nullable=False),
        sa.Column('failed_countries', sa.Integer(), server_default='0', nullable=False),
        sa.Column('started_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('error_log', JSON_TYPE, nullable=False),
        sa.Column('last_run_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    # Admission control looks up running jobs; history orders by started_at
    op.create_index('idx_jobs_status', 'jobs', ['status'])
    op.create_index('idx_jobs_started_at', 'jobs', ['started_at'])

    # Per-country checkpoints within a job
    op.create_table(
        'job_country_progress',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('job_id', sa.String(length=64), nullable=False),
        sa.Column('country_name', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='pending', nullable=False),
        # status: pending, processing, completed, failed
        sa.Column('started_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('retry_count', sa.Integer(), server_default='0', nullable=False),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('job_id', 'country_name', name='uq_job_country')
    )

    # Cached country data
    op.create_table(
        'countries',
        sa.Column('id', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('code', sa.String(length=2), nullable=False),
        sa.Column('flag_url', sa.Text(), nullable=True),
        sa.Column('last_updated', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    op.create_table(
        'alerts',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('country_id', sa.String(length=100), nullable=False),
        sa.Column('source', sa.String(length=50), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('level', sa.Text(), nullable=True),
        sa.Column('severity', sa.String(length=10), nullable=False),
        # severity: high, medium, low, info
        sa.Column('summary', sa.Text(), nullable=False),
        sa.Column('link', sa.Text(), nullable=False),
        sa.Column('date', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('key_risks', JSON_TYPE, nullable=True),
        sa.Column('safety_recommendations', JSON_TYPE, nullable=True),
        sa.Column('specific_areas', JSON_TYPE, nullable=True),
        sa.Column('ai_enhanced_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['country_id'], ['countries.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_alerts_country_id', 'alerts', ['country_id'])

    op.create_table(
        'background_info',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('country_id', sa.String(length=100), nullable=False),
        sa.Column('languages', JSON_TYPE, nullable=True),
        sa.Column('religion', sa.Text(), nullable=True),
        sa.Column('gdp_per_capita', sa.Integer(), nullable=True),
        sa.Column('population', sa.Text(), nullable=True),
        sa.Column('capital', sa.Text(), nullable=True),
        sa.Column('currency', sa.Text(), nullable=True),
        sa.Column('wiki_link', sa.Text(), nullable=True),
        sa.Column('last_updated', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['country_id'], ['countries.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        # One row per country; target of INSERT ... ON CONFLICT (country_id)
        sa.UniqueConstraint('country_id')
    )


def downgrade() -> None:
    """Drop country data and refresh job tables."""
    op.drop_table('background_info')
    op.drop_index('ix_alerts_country_id', table_name='alerts')
    op.drop_table('alerts')
    op.drop_table('countries')
    op.drop_table('job_country_progress')
    op.drop_index('idx_jobs_started_at', table_name='jobs')
    op.drop_index('idx_jobs_status', table_name='jobs')
    op.drop_table('jobs')
