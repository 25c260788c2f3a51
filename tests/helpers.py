"""Small helpers shared by test modules."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from sqlalchemy import update

from core.config import get_settings
from core.security import CurrentUser, create_access_token
from core.utils.datetime import now
from database.engine import Database
from database.models import Job, JobCandidate, StageHistory, User


def stage_id(job: Job, name: str) -> int:
    """Id of the stage called ``name`` in ``job``."""
    return next(s.id for s in job.stages if s.name == name)


def as_current_user(user: User) -> CurrentUser:
    return CurrentUser(id=user.id, company_id=user.company_id, role=user.role)


def auth_header(user_id: int, company_id: int, role: str) -> dict:
    token = create_access_token(user_id, company_id, role, get_settings().jwt_secret_key)
    return {"Authorization": f"Bearer {token}"}


async def backdate(db: Database, job_candidate_id: int, days: float) -> None:
    """Shift an application's open ledger entry and applied_at ``days`` into the past."""
    moment = now() - timedelta(days=days)
    async with db.unit_of_work() as session:
        await session.execute(
            update(StageHistory)
            .where(
                StageHistory.job_candidate_id == job_candidate_id,
                StageHistory.exited_at.is_(None),
            )
            .values(entered_at=moment)
        )
        await session.execute(
            update(JobCandidate).where(JobCandidate.id == job_candidate_id).values(applied_at=moment)
        )


# ==================== Route test doubles ===================== #
CREATED = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


def fake_stage(id=1, job_id=10, name="Queue", position=0, is_default=True, is_mandatory=False):
    return SimpleNamespace(
        id=id,
        job_id=job_id,
        name=name,
        position=position,
        is_default=is_default,
        is_mandatory=is_mandatory,
        parent_id=None,
    )


def fake_job(id=10, company_id=1, recruiter_id=None, stages=None, status="active", auto_rejection_rules=None):
    return SimpleNamespace(
        id=id,
        company_id=company_id,
        title="Backend Engineer",
        department="Engineering",
        location="Remote",
        openings=1,
        status=status,
        assigned_recruiter_id=recruiter_id,
        auto_rejection_rules=auto_rejection_rules,
        created_at=CREATED,
        updated_at=CREATED,
        stages=stages if stages is not None else [fake_stage()],
    )


def fake_candidate(id=5, company_id=1, **overrides):
    fields = dict(
        id=id,
        company_id=company_id,
        name="Ada Lovelace",
        email="ada@example.com",
        phone=None,
        location="London",
        experience_years=7,
        current_company=None,
        source="LinkedIn",
        skills=["python"],
        education=None,
        salary_expectation=None,
        score=None,
        domain_score=None,
        industry_score=None,
        key_responsibilities_score=None,
        created_at=CREATED,
        updated_at=CREATED,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def fake_job_candidate(id=20, job=None, candidate_id=5, current_stage_id=1):
    job = job or fake_job()
    return SimpleNamespace(
        id=id,
        job_id=job.id,
        job=job,
        candidate_id=candidate_id,
        current_stage_id=current_stage_id,
        applied_at=CREATED,
        updated_at=CREATED,
    )
