"""Job service functions."""

from typing import List, Optional, Tuple
import logging

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from api.schemas.jobs import AutoRejectionRules
from api.services.auto_rejection import rules_to_json
from core.exceptions import NotFoundError, ValidationError
from core.middleware.authorization import require_job_access
from core.security import CurrentUser
from database.engine import Database
from database.models.companies import User, UserRole
from database.models.jobs import Job, JobStatus, PipelineStage

logger = logging.getLogger(__name__)


# (name, is_mandatory) in pipeline order
DEFAULT_STAGES: Tuple[Tuple[str, bool], ...] = (
    ("Queue", False),
    ("Applied", False),
    ("Screening", True),
    ("Shortlisted", True),
    ("Interview", False),
    ("Selected", False),
    ("Offer", True),
    ("Hired", False),
    ("Rejected", True),
)


async def create_job(
    db: Database,
    company_id: int,
    title: str,
    department: str,
    location: Optional[str] = None,
    openings: int = 1,
    assigned_recruiter_id: Optional[int] = None,
    auto_rejection_rules: Optional[AutoRejectionRules] = None,
) -> Job:
    """
    Create a job together with its default pipeline.

    Args:
        db: Database handle
        company_id: Owning company
        title: Job title
        department: Department name
        location: Optional location
        openings: Number of positions to fill
        assigned_recruiter_id: Recruiter responsible for the job
        auto_rejection_rules: Screening rules applied when candidates are added

    Returns:
        The created job with ``stages`` loaded
    """
    errors = {}
    if not (title or "").strip():
        errors["title"] = ["Title is required"]
    if not (department or "").strip():
        errors["department"] = ["Department is required"]
    if openings < 1:
        errors["openings"] = ["Openings must be at least 1"]
    if errors:
        raise ValidationError(errors)

    async with db.unit_of_work() as session:
        if assigned_recruiter_id is not None:
            recruiter = await session.get(User, assigned_recruiter_id)
            if not recruiter or recruiter.company_id != company_id:
                raise ValidationError(
                    {"assignedRecruiterId": ["Recruiter must belong to the same company"]}
                )

        job = Job(
            company_id=company_id,
            title=title.strip(),
            department=department.strip(),
            location=location.strip() if location else None,
            openings=openings,
            status=JobStatus.ACTIVE,
            assigned_recruiter_id=assigned_recruiter_id,
            auto_rejection_rules=rules_to_json(auto_rejection_rules),
        )
        job.stages = [
            PipelineStage(name=name, position=position, is_default=True, is_mandatory=mandatory)
            for position, (name, mandatory) in enumerate(DEFAULT_STAGES)
        ]
        session.add(job)
        await session.flush()

    logger.info(f"Created job {job.id} '{job.title}' for company {company_id}")
    return job


async def get_job(db: Database, job_id: int, user: Optional[CurrentUser] = None) -> Job:
    """
    Get a job with its stages.

    Raises:
        NotFoundError: Unknown job
        AuthorizationError: ``user`` may not see the job
    """
    async with db.session() as session:
        result = await session.execute(
            select(Job).options(selectinload(Job.stages)).where(Job.id == job_id)
        )
        job = result.scalar_one_or_none()

    if not job:
        raise NotFoundError("Job")
    if user is not None:
        require_job_access(job, user)
    return job


async def list_accessible_jobs(
    db: Database,
    user: CurrentUser,
    status: Optional[JobStatus] = None,
    department: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Job]:
    """List jobs visible to ``user``. Recruiters only see their assigned jobs."""
    query = select(Job).where(Job.company_id == user.company_id)
    if user.role == UserRole.RECRUITER:
        query = query.where(Job.assigned_recruiter_id == user.id)
    if status:
        query = query.where(Job.status == status)
    if department:
        query = query.where(Job.department == department)

    query = query.order_by(Job.created_at.desc(), Job.id.desc()).limit(limit).offset(offset)

    async with db.session() as session:
        result = await session.execute(query)
        return list(result.scalars().all())


async def update_job_status(db: Database, job_id: int, status: str, user: CurrentUser) -> Job:
    """Set a job's status. Closed jobs are kept."""
    try:
        new_status = JobStatus(status)
    except ValueError:
        allowed = ", ".join(s.value for s in JobStatus)
        raise ValidationError({"status": [f"Status must be one of: {allowed}"]})

    async with db.unit_of_work() as session:
        job = await session.get(Job, job_id)
        if not job:
            raise NotFoundError("Job")
        require_job_access(job, user)
        previous = job.status
        job.status = new_status

    logger.info(f"Job {job_id} status changed from {previous.value} to {new_status.value}")
    return job


async def update_auto_rejection_rules(
    db: Database, job_id: int, rules: Optional[AutoRejectionRules], user: CurrentUser
) -> Job:
    """Replace a job's screening rules. ``None`` removes them."""
    async with db.unit_of_work() as session:
        job = await session.get(Job, job_id)
        if not job:
            raise NotFoundError("Job")
        require_job_access(job, user)
        job.auto_rejection_rules = rules_to_json(rules)

    enabled = bool(rules and rules.enabled)
    logger.info(f"Job {job_id} auto-rejection rules updated (enabled={enabled})")
    return job
