"""Initial applicant tracking schema

Revision ID: 001_initial_ats_schema
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_initial_ats_schema'
down_revision = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
    return sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True)


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Create tenants, jobs, candidates, the stage ledger and their satellites."""
    op.create_table(
        'companies',
        _id(),
        sa.Column('name', sa.String(length=255), nullable=False),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'users',
        _id(),
        sa.Column('company_id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_users_company_id', 'users', ['company_id'])
    op.create_index('idx_user_company_role', 'users', ['company_id', 'role'])

    op.create_table(
        'jobs',
        _id(),
        sa.Column('company_id', sa.BigInteger(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('department', sa.String(length=255), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('openings', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('assigned_recruiter_id', sa.BigInteger(), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assigned_recruiter_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_jobs_company_id', 'jobs', ['company_id'])
    op.create_index('ix_jobs_title', 'jobs', ['title'])
    op.create_index('ix_jobs_status', 'jobs', ['status'])
    op.create_index('ix_jobs_assigned_recruiter_id', 'jobs', ['assigned_recruiter_id'])
    op.create_index('idx_job_company_status', 'jobs', ['company_id', 'status'])
    op.create_index('idx_job_company_department', 'jobs', ['company_id', 'department'])

    op.create_table(
        'pipeline_stages',
        _id(),
        sa.Column('job_id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_mandatory', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('parent_id', sa.BigInteger(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['parent_id'], ['pipeline_stages.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_pipeline_stages_job_id', 'pipeline_stages', ['job_id'])
    op.create_index('idx_stage_job_position', 'pipeline_stages', ['job_id', 'position'])
    op.create_index('idx_stage_name', 'pipeline_stages', ['name'])

    op.create_table(
        'candidates',
        _id(),
        sa.Column('company_id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=False),
        sa.Column('experience_years', sa.Float(), nullable=False, server_default='0'),
        sa.Column('current_company', sa.String(length=255), nullable=True),
        sa.Column('source', sa.String(length=100), nullable=False),
        sa.Column('skills', sa.JSON(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('domain_score', sa.Integer(), nullable=True),
        sa.Column('industry_score', sa.Integer(), nullable=True),
        sa.Column('key_responsibilities_score', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_candidates_company_id', 'candidates', ['company_id'])
    op.create_index('idx_candidate_company_source', 'candidates', ['company_id', 'source'])
    op.create_index('idx_candidate_company_score', 'candidates', ['company_id', 'score'])

    op.create_table(
        'job_candidates',
        _id(),
        sa.Column('job_id', sa.BigInteger(), nullable=False),
        sa.Column('candidate_id', sa.BigInteger(), nullable=False),
        sa.Column('current_stage_id', sa.BigInteger(), nullable=False),
        sa.Column('added_by', sa.BigInteger(), nullable=True),
        _timestamp('applied_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['candidate_id'], ['candidates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['current_stage_id'], ['pipeline_stages.id']),
        sa.ForeignKeyConstraint(['added_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('job_id', 'candidate_id', name='uq_job_candidate'),
    )
    op.create_index('ix_job_candidates_job_id', 'job_candidates', ['job_id'])
    op.create_index('ix_job_candidates_candidate_id', 'job_candidates', ['candidate_id'])
    op.create_index('ix_job_candidates_current_stage_id', 'job_candidates', ['current_stage_id'])
    op.create_index('idx_job_candidate_stage', 'job_candidates', ['job_id', 'current_stage_id'])

    op.create_table(
        'candidate_activities',
        _id(),
        sa.Column('candidate_id', sa.BigInteger(), nullable=False),
        sa.Column('job_candidate_id', sa.BigInteger(), nullable=True),
        sa.Column('user_id', sa.BigInteger(), nullable=True),
        sa.Column('activity_type', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['candidate_id'], ['candidates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['job_candidate_id'], ['job_candidates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_candidate_activities_candidate_id', 'candidate_activities', ['candidate_id'])
    op.create_index('ix_candidate_activities_job_candidate_id', 'candidate_activities', ['job_candidate_id'])
    op.create_index('idx_activity_candidate_created', 'candidate_activities', ['candidate_id', 'created_at'])

    op.create_table(
        'stage_history',
        _id(),
        sa.Column('job_candidate_id', sa.BigInteger(), nullable=False),
        sa.Column('stage_id', sa.BigInteger(), nullable=True),
        sa.Column('stage_name', sa.String(length=100), nullable=False),
        _timestamp('entered_at'),
        _timestamp('exited_at', nullable=True),
        sa.Column('duration_hours', sa.Float(), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('moved_by', sa.BigInteger(), nullable=True),
        sa.ForeignKeyConstraint(['job_candidate_id'], ['job_candidates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['stage_id'], ['pipeline_stages.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['moved_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_stage_history_job_candidate_id', 'stage_history', ['job_candidate_id'])
    op.create_index('idx_stage_history_open', 'stage_history', ['job_candidate_id', 'exited_at'])
    op.create_index('idx_stage_history_name', 'stage_history', ['stage_name'])

    op.create_table(
        'interviews',
        _id(),
        sa.Column('job_candidate_id', sa.BigInteger(), nullable=False),
        _timestamp('scheduled_at'),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('mode', sa.String(length=50), nullable=False),
        sa.Column('meeting_link', sa.String(length=2048), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('scheduled_by', sa.BigInteger(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['job_candidate_id'], ['job_candidates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['scheduled_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_interviews_job_candidate_id', 'interviews', ['job_candidate_id'])
    op.create_index('ix_interviews_scheduled_at', 'interviews', ['scheduled_at'])
    op.create_index('ix_interviews_scheduled_by', 'interviews', ['scheduled_by'])

    op.create_table(
        'interview_panels',
        _id(),
        sa.Column('interview_id', sa.BigInteger(), nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['interview_id'], ['interviews.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('interview_id', 'user_id', name='uq_interview_panel_member'),
    )
    op.create_index('ix_interview_panels_interview_id', 'interview_panels', ['interview_id'])
    op.create_index('ix_interview_panels_user_id', 'interview_panels', ['user_id'])

    op.create_table(
        'interview_feedback',
        _id(),
        sa.Column('interview_id', sa.BigInteger(), nullable=False),
        sa.Column('panel_member_id', sa.BigInteger(), nullable=False),
        sa.Column('ratings', sa.JSON(), nullable=False),
        sa.Column('overall_comments', sa.Text(), nullable=False),
        sa.Column('recommendation', sa.String(length=50), nullable=False),
        _timestamp('submitted_at'),
        sa.ForeignKeyConstraint(['interview_id'], ['interviews.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['panel_member_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('interview_id', 'panel_member_id', name='uq_interview_feedback_member'),
    )
    op.create_index('ix_interview_feedback_interview_id', 'interview_feedback', ['interview_id'])
    op.create_index('idx_feedback_member_submitted', 'interview_feedback', ['panel_member_id', 'submitted_at'])

    op.create_table(
        'sla_configs',
        _id(),
        sa.Column('company_id', sa.BigInteger(), nullable=False),
        sa.Column('stage_name', sa.String(length=100), nullable=False),
        sa.Column('threshold_days', sa.Integer(), nullable=False),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'stage_name', name='uq_sla_company_stage'),
    )
    op.create_index('ix_sla_configs_company_id', 'sla_configs', ['company_id'])

    op.create_table(
        'notifications',
        _id(),
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=True),
        sa.Column('entity_id', sa.BigInteger(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('idx_notification_user_unread', 'notifications', ['user_id', 'is_read'])


def downgrade() -> None:
    """Drop every table in reverse dependency order."""
    for table in (
        'notifications',
        'sla_configs',
        'interview_feedback',
        'interview_panels',
        'interviews',
        'stage_history',
        'candidate_activities',
        'job_candidates',
        'candidates',
        'pipeline_stages',
        'jobs',
        'users',
        'companies',
    ):
        op.drop_table(table)
