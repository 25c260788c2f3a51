"""Add auto-rejection rules and screening fields

Revision ID: 002_add_auto_rejection
Revises: 001_initial_ats_schema
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '002_add_auto_rejection'
down_revision = '001_initial_ats_schema'
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Per-job rules plus the candidate fields they screen on."""
    op.add_column('jobs', sa.Column('auto_rejection_rules', sa.JSON(), nullable=True))
    op.add_column('candidates', sa.Column('education', sa.String(length=255), nullable=True))
    op.add_column('candidates', sa.Column('salary_expectation', sa.Float(), nullable=True))


def downgrade() -> None:
    op.drop_column('candidates', 'salary_expectation')
    op.drop_column('candidates', 'education')
    op.drop_column('jobs', 'auto_rejection_rules')
