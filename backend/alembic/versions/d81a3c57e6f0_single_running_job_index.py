"""single running job index

Revision ID: d81a3c57e6f0
Revises: c4e1f0a9b2d7
Create Date: 2026-10-19 14:03:27.541902

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'd81a3c57e6f0'
down_revision: Union[str, Sequence[str], None] = 'c4e1f0a9b2d7'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Allow at most one running job, even across processes."""
    op.create_index(
        'uq_jobs_single_running',
        'jobs',
        ['status'],
        unique=True,
        postgresql_where=sa.text("status = 'running'"),
        sqlite_where=sa.text("status = 'running'"),
    )


def downgrade() -> None:
    """Drop the single running job index."""
    op.drop_index('uq_jobs_single_running', table_name='jobs')
