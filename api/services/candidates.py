"""
Candidate service functions.

Covers candidate records, applications to jobs, stage transitions and
scoring. Every multi-row write runs in one ``unit_of_work`` so the stage
pointer, the stage history ledger and the activity timeline never disagree.
"""

from typing import Any, Dict, List, Optional
import logging
import math

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from api.schemas.candidates import (
    JobCandidateResponse,
    ScoreUpdateMetadata,
    StageChangeMetadata,
    StageChangeResult,
)
from api.schemas.jobs import AutoRejectionResult
from api.services import auto_rejection, notifications, stage_history
from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.middleware.authorization import require_job_access
from core.security import CurrentUser
from core.utils.datetime import now
from database.engine import Database
from database.models.candidates import (
    ActivityType,
    Candidate,
    CandidateActivity,
    JobCandidate,
)
from database.models.jobs import Job, PipelineStage

logger = logging.getLogger(__name__)


REJECTION_PATTERNS = ("reject", "declined", "not selected")
SORT_OPTIONS = {
    "updated": Candidate.updated_at.desc(),
    "score_desc": Candidate.score.desc(),
    "score_asc": Candidate.score.asc(),
    "name": Candidate.name.asc(),
}


# ==================== Helpers ===================== #
def is_rejection_stage(stage_name: Optional[str]) -> bool:
    """Whether a stage name reads like a terminal rejection."""
    if not stage_name:
        return False
    lowered = stage_name.lower()
    return any(pattern in lowered for pattern in REJECTION_PATTERNS)


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


async def load_job_candidate(session: AsyncSession, job_candidate_id: int) -> JobCandidate:
    """Load an application with its candidate, current stage and job stages."""
    result = await session.execute(
        select(JobCandidate)
        .options(
            selectinload(JobCandidate.candidate),
            selectinload(JobCandidate.current_stage),
            selectinload(JobCandidate.job).selectinload(Job.stages),
        )
        .where(JobCandidate.id == job_candidate_id)
    )
    job_candidate = result.scalar_one_or_none()
    if not job_candidate:
        raise NotFoundError("Job candidate")
    return job_candidate


async def apply_stage_change(
    session: AsyncSession,
    job_candidate: JobCandidate,
    target: PipelineStage,
    rejection_reason: Optional[str] = None,
    comment: Optional[str] = None,
    moved_by: Optional[int] = None,
    bulk_move: bool = False,
    triggered_rule: Optional[dict] = None,
) -> StageChangeResult:
    """
    Write one transition inside the caller's unit of work.

    Closes the open ledger entry, opens one for ``target``, moves the stage
    pointer and appends a ``stage_change`` activity. Validation is the
    caller's job. ``triggered_rule`` marks an automatic rejection.
    """
    from_stage = job_candidate.current_stage
    from_name = from_stage.name if from_stage else None
    moved_at = now()

    await stage_history.close_stage_entry(session, job_candidate.id, at=moved_at)
    await stage_history.open_stage_entry(
        session,
        job_candidate.id,
        target,
        comment=rejection_reason or comment,
        moved_by=moved_by,
        at=moved_at,
    )

    job_candidate.current_stage_id = target.id
    job_candidate.current_stage = target
    job_candidate.updated_at = moved_at

    description = f"Moved from {from_name} to {target.name}"
    if rejection_reason:
        description += f". Reason: {rejection_reason}"
    elif comment:
        description += f". Comment: {comment}"

    metadata = StageChangeMetadata(
        from_stage_id=from_stage.id if from_stage else None,
        from_stage_name=from_name,
        to_stage_id=target.id,
        to_stage_name=target.name,
        rejection_reason=rejection_reason,
        comment=comment,
        bulk_move=bulk_move,
        auto_rejected=triggered_rule is not None,
        triggered_rule=triggered_rule,
    )
    session.add(
        CandidateActivity(
            candidate_id=job_candidate.candidate_id,
            job_candidate_id=job_candidate.id,
            user_id=moved_by,
            activity_type=ActivityType.STAGE_CHANGE,
            description=description,
            activity_metadata=metadata.to_json_dict(),
        )
    )
    await session.flush()

    return StageChangeResult(
        job_candidate=JobCandidateResponse.model_validate(job_candidate),
        from_stage=from_name,
        to_stage=target.name,
    )


# ==================== Stage transitions ===================== #
async def change_stage(
    db: Database,
    job_candidate_id: int,
    new_stage_id: int,
    *,
    rejection_reason: Optional[str] = None,
    comment: Optional[str] = None,
    moved_by: Optional[int] = None,
) -> StageChangeResult:
    """
    Move an application to another stage of its job.

    Any stage of the job's pipeline is a valid target. Rejection-like stages
    need a reason or a comment. Interested users are notified after the
    change is committed.

    Args:
        db: Database handle
        job_candidate_id: Application to move
        new_stage_id: Target stage
        rejection_reason: Why the candidate is rejected
        comment: Free-text note stored on the ledger entry
        moved_by: Acting user

    Returns:
        StageChangeResult with the updated application

    Raises:
        NotFoundError: Unknown application
        ValidationError: Target outside the pipeline, or a rejection
            without a reason
    """
    rejection_reason = _clean(rejection_reason)
    comment = _clean(comment)

    async with db.unit_of_work() as session:
        job_candidate = await load_job_candidate(session, job_candidate_id)

        target = next((s for s in job_candidate.job.stages if s.id == new_stage_id), None)
        if not target:
            raise ValidationError({"stageId": ["Stage not found in this job pipeline"]})
        if is_rejection_stage(target.name) and not (rejection_reason or comment):
            raise ValidationError(
                {"rejectionReason": [f"A reason is required when moving to {target.name}"]}
            )

        result = await apply_stage_change(
            session,
            job_candidate,
            target,
            rejection_reason=rejection_reason,
            comment=comment,
            moved_by=moved_by,
        )

    logger.info(
        f"Job candidate {job_candidate_id} moved from {result.from_stage} to {result.to_stage}"
    )
    await notifications.notify_stage_change(
        db, job_candidate_id, result.from_stage, result.to_stage, actor_id=moved_by
    )
    return result


async def get_job_candidate(
    db: Database, job_candidate_id: int, user: Optional[CurrentUser] = None
) -> JobCandidate:
    """
    Get an application with its candidate, stage and job.

    Raises:
        NotFoundError: Unknown application
        AuthorizationError: ``user`` may not see the application's job
    """
    async with db.session() as session:
        job_candidate = await load_job_candidate(session, job_candidate_id)
    if user is not None:
        require_job_access(job_candidate.job, user)
    return job_candidate


async def get_available_stages(db: Database, job_candidate_id: int) -> List[PipelineStage]:
    """Stages an application may move to, ordered by position."""
    async with db.session() as session:
        job_candidate = await load_job_candidate(session, job_candidate_id)
        return list(job_candidate.job.stages)


async def _auto_reject(
    session: AsyncSession,
    job_candidate: JobCandidate,
    job: Job,
    screening: AutoRejectionResult,
    added_by: Optional[int],
) -> None:
    rejected = next(
        (s for s in job.stages if s.name.lower() == auto_rejection.REJECTED_STAGE.lower()), None
    )
    if rejected is None:
        logger.warning(f"Job {job.id} has no Rejected stage, skipping auto-rejection")
        return
    if rejected.id == job_candidate.current_stage_id:
        return

    await apply_stage_change(
        session,
        job_candidate,
        rejected,
        rejection_reason=screening.reason,
        moved_by=added_by,
        triggered_rule=screening.triggered_rule.to_json_dict(),
    )
    logger.info(f"Job candidate {job_candidate.id} auto-rejected: {screening.reason}")


async def add_candidate_to_job(
    db: Database,
    candidate_id: int,
    job_id: int,
    stage_id: Optional[int] = None,
    added_by: Optional[int] = None,
) -> JobCandidate:
    """
    Attach a candidate to a job.

    The application starts in ``stage_id`` or in the first stage, with an
    open ledger entry and an ``added_to_job`` activity.
    When the job's auto-rejection rules match the candidate, the
    application is then moved to the Rejected stage in the same unit of work.

    Raises:
        NotFoundError: Unknown candidate or job
        ValidationError: Different companies, or a stage outside the job
        ConflictError: Candidate already applied to the job
    """
    async with db.unit_of_work() as session:
        candidate = await session.get(Candidate, candidate_id)
        if not candidate:
            raise NotFoundError("Candidate")

        result = await session.execute(
            select(Job).options(selectinload(Job.stages)).where(Job.id == job_id)
        )
        job = result.scalar_one_or_none()
        if not job:
            raise NotFoundError("Job")
        if job.company_id != candidate.company_id:
            raise ValidationError({"jobId": ["Candidate and job belong to different companies"]})
        if not job.stages:
            raise ValidationError({"jobId": ["Job has no pipeline stages"]})

        existing = await session.execute(
            select(JobCandidate.id).where(
                JobCandidate.job_id == job_id, JobCandidate.candidate_id == candidate_id
            )
        )
        existing_id = existing.scalar_one_or_none()
        if existing_id is not None:
            raise ConflictError(
                "Candidate is already associated with this job",
                {"jobCandidateId": existing_id},
            )

        if stage_id is None:
            stage = job.stages[0]
        else:
            stage = next((s for s in job.stages if s.id == stage_id), None)
            if not stage:
                raise ValidationError({"stageId": ["Stage not found in this job pipeline"]})

        screening = auto_rejection.evaluate_auto_rejection(candidate, job.auto_rejection_rules)

        job_candidate = JobCandidate(
            job_id=job_id,
            candidate_id=candidate_id,
            current_stage_id=stage.id,
            current_stage=stage,
            added_by=added_by,
        )
        session.add(job_candidate)
        await session.flush()

        await stage_history.open_stage_entry(
            session, job_candidate.id, stage, moved_by=added_by, at=job_candidate.applied_at
        )
        session.add(
            CandidateActivity(
                candidate_id=candidate_id,
                job_candidate_id=job_candidate.id,
                user_id=added_by,
                activity_type=ActivityType.ADDED_TO_JOB,
                description=f"Added to {job.title} in stage {stage.name}",
                activity_metadata={"jobId": job_id, "stageId": stage.id, "stageName": stage.name},
            )
        )

        if screening.should_reject:
            await _auto_reject(session, job_candidate, job, screening, added_by)

    logger.info(f"Candidate {candidate_id} added to job {job_id} in stage {stage.name}")
    return job_candidate


# ==================== Scoring ===================== #
def calculate_overall_score(
    domain_score: Optional[float],
    industry_score: Optional[float],
    key_responsibilities_score: Optional[float],
) -> Optional[int]:
    """
    Unweighted mean of the sub-scores that are set.

    Returns:
        The mean rounded half up to an integer, or None when no sub-score is set
    """
    values = [
        v for v in (domain_score, industry_score, key_responsibilities_score) if v is not None
    ]
    if not values:
        return None
    return math.floor(sum(values) / len(values) + 0.5)


def _validate_scores(values: Dict[str, Optional[int]]) -> None:
    errors = {}
    for field, value in values.items():
        if value is not None and not 0 <= value <= 100:
            errors[field] = [f"{field.replace('_', ' ').capitalize()} must be between 0 and 100"]
    if errors:
        raise ValidationError(errors)


async def update_score(
    db: Database,
    candidate_id: int,
    score: Optional[int] = None,
    domain_score: Optional[int] = None,
    industry_score: Optional[int] = None,
    key_responsibilities_score: Optional[int] = None,
    updated_by: Optional[int] = None,
) -> Candidate:
    """
    Update a candidate's scores.

    An explicit ``score`` is stored as given. Otherwise the overall score
    is recomputed from the sub-scores after merging in the provided ones.
    Range checks run before the database is touched.

    Returns:
        The updated candidate
    """
    provided = {
        "score": score,
        "domain_score": domain_score,
        "industry_score": industry_score,
        "key_responsibilities_score": key_responsibilities_score,
    }
    _validate_scores(provided)
    if all(value is None for value in provided.values()):
        raise ValidationError({"score": ["At least one score is required"]})

    async with db.unit_of_work() as session:
        candidate = await session.get(Candidate, candidate_id)
        if not candidate:
            raise NotFoundError("Candidate")

        old_score = candidate.score
        for field in ("domain_score", "industry_score", "key_responsibilities_score"):
            if provided[field] is not None:
                setattr(candidate, field, provided[field])

        if score is not None:
            new_score = score
        else:
            new_score = calculate_overall_score(
                candidate.domain_score,
                candidate.industry_score,
                candidate.key_responsibilities_score,
            )
        candidate.score = new_score

        metadata = ScoreUpdateMetadata(
            old_score=old_score,
            new_score=new_score,
            domain_score=candidate.domain_score,
            industry_score=candidate.industry_score,
            key_responsibilities_score=candidate.key_responsibilities_score,
        )
        session.add(
            CandidateActivity(
                candidate_id=candidate_id,
                user_id=updated_by,
                activity_type=ActivityType.SCORE_UPDATED,
                description=f"Score updated from {old_score if old_score is not None else 'unset'} to {new_score}",
                activity_metadata=metadata.to_json_dict(),
            )
        )
        await session.flush()

    logger.info(f"Candidate {candidate_id} score updated from {old_score} to {new_score}")
    return candidate


# ==================== Candidate records ===================== #
async def create_candidate(
    db: Database,
    company_id: int,
    name: str,
    email: str,
    location: str,
    source: str,
    phone: Optional[str] = None,
    experience_years: float = 0,
    current_company: Optional[str] = None,
    skills: Optional[List[str]] = None,
    education: Optional[str] = None,
    salary_expectation: Optional[float] = None,
    score: Optional[int] = None,
    domain_score: Optional[int] = None,
    industry_score: Optional[int] = None,
    key_responsibilities_score: Optional[int] = None,
) -> Candidate:
    """
    Create a candidate record.

    Emails are stored lower-cased and must be unique.

    Raises:
        ValidationError: Missing required field or score out of range
        ConflictError: Email already used
    """
    errors = {}
    for field, value in (("name", name), ("email", email), ("location", location), ("source", source)):
        if _blank(value):
            errors[field] = [f"{field.capitalize()} is required"]
    if errors:
        raise ValidationError(errors)
    _validate_scores({
        "score": score,
        "domain_score": domain_score,
        "industry_score": industry_score,
        "key_responsibilities_score": key_responsibilities_score,
    })

    normalized_email = email.strip().lower()
    if score is None:
        score = calculate_overall_score(domain_score, industry_score, key_responsibilities_score)

    async with db.unit_of_work() as session:
        existing = await session.execute(
            select(Candidate.id).where(Candidate.email == normalized_email)
        )
        existing_id = existing.scalar_one_or_none()
        if existing_id is not None:
            raise ConflictError(
                "Candidate with this email already exists", {"existingId": existing_id}
            )

        candidate = Candidate(
            company_id=company_id,
            name=name.strip(),
            email=normalized_email,
            phone=_clean(phone),
            location=location.strip(),
            experience_years=experience_years or 0,
            current_company=_clean(current_company),
            source=source.strip(),
            # Skills are a set; keep first-seen order
            skills=list(dict.fromkeys(s.strip() for s in (skills or []) if s and s.strip())),
            education=_clean(education),
            salary_expectation=salary_expectation,
            score=score,
            domain_score=domain_score,
            industry_score=industry_score,
            key_responsibilities_score=key_responsibilities_score,
        )
        session.add(candidate)
        await session.flush()

    logger.info(f"Created candidate {candidate.id} for company {company_id}")
    return candidate


async def get_candidate(db: Database, candidate_id: int, company_id: Optional[int] = None) -> Candidate:
    """Get a candidate. A candidate of another company looks absent."""
    async with db.session() as session:
        candidate = await session.get(Candidate, candidate_id)
    if not candidate or (company_id is not None and candidate.company_id != company_id):
        raise NotFoundError("Candidate")
    return candidate


async def update_candidate(db: Database, candidate_id: int, **changes: Any) -> Candidate:
    """
    Partially update a candidate's profile fields.

    Scores are changed through ``update_score`` only.
    """
    allowed = {
        "name", "email", "phone", "location", "experience_years",
        "current_company", "source", "skills", "education", "salary_expectation",
    }
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError({field: ["Field cannot be updated here"] for field in sorted(unknown)})

    errors = {}
    for field in ("name", "email", "location", "source"):
        if field in changes and _blank(changes[field]):
            errors[field] = [f"{field.capitalize()} cannot be empty"]
    if errors:
        raise ValidationError(errors)

    async with db.unit_of_work() as session:
        candidate = await session.get(Candidate, candidate_id)
        if not candidate:
            raise NotFoundError("Candidate")

        if "email" in changes:
            changes["email"] = changes["email"].strip().lower()
            if changes["email"] != candidate.email:
                clash = await session.execute(
                    select(Candidate.id).where(
                        Candidate.email == changes["email"], Candidate.id != candidate_id
                    )
                )
                clash_id = clash.scalar_one_or_none()
                if clash_id is not None:
                    raise ConflictError(
                        "Candidate with this email already exists", {"existingId": clash_id}
                    )

        for field, value in changes.items():
            if isinstance(value, str):
                value = value.strip()
            if field == "skills" and value is not None:
                value = list(dict.fromkeys(s.strip() for s in value if s and s.strip()))
            setattr(candidate, field, value)

    return candidate


async def search_candidates(
    db: Database,
    company_id: int,
    query: Optional[str] = None,
    location: Optional[str] = None,
    experience_min: Optional[float] = None,
    experience_max: Optional[float] = None,
    source: Optional[str] = None,
    score_min: Optional[int] = None,
    score_max: Optional[int] = None,
    sort_by: str = "updated",
    limit: int = 50,
    offset: int = 0,
) -> List[Candidate]:
    """
    Search candidates of one company.

    Args:
        query: Case-insensitive match on name or email, substring match on phone
        location: Case-insensitive substring of the location
        experience_min: Minimum years of experience
        experience_max: Maximum years of experience
        source: Case-insensitive substring of the source
        score_min: Minimum overall score
        score_max: Maximum overall score
        sort_by: One of ``updated``, ``score_desc``, ``score_asc``, ``name``
    """
    if sort_by not in SORT_OPTIONS:
        raise ValidationError({"sortBy": [f"Sort must be one of: {', '.join(SORT_OPTIONS)}"]})

    stmt = select(Candidate).where(Candidate.company_id == company_id)
    if query and query.strip():
        term = f"%{query.strip()}%"
        stmt = stmt.where(
            or_(
                Candidate.name.ilike(term),
                Candidate.email.ilike(term),
                Candidate.phone.contains(query.strip()),
            )
        )
    if location:
        stmt = stmt.where(Candidate.location.ilike(f"%{location.strip()}%"))
    if experience_min is not None:
        stmt = stmt.where(Candidate.experience_years >= experience_min)
    if experience_max is not None:
        stmt = stmt.where(Candidate.experience_years <= experience_max)
    if source:
        stmt = stmt.where(Candidate.source.ilike(f"%{source.strip()}%"))
    if score_min is not None:
        stmt = stmt.where(Candidate.score >= score_min)
    if score_max is not None:
        stmt = stmt.where(Candidate.score <= score_max)

    stmt = stmt.order_by(SORT_OPTIONS[sort_by], Candidate.id.asc()).limit(limit).offset(offset)

    async with db.session() as session:
        result = await session.execute(stmt)
        return list(result.scalars().all())


async def get_activity_timeline(db: Database, candidate_id: int) -> List[CandidateActivity]:
    """Activities of a candidate, newest first."""
    async with db.session() as session:
        if not await session.get(Candidate, candidate_id):
            raise NotFoundError("Candidate")
        result = await session.execute(
            select(CandidateActivity)
            .where(CandidateActivity.candidate_id == candidate_id)
            .order_by(CandidateActivity.created_at.desc(), CandidateActivity.id.desc())
        )
        return list(result.scalars().all())


async def get_job_candidates(
    db: Database, job_id: int, stage_id: Optional[int] = None
) -> List[JobCandidate]:
    """Applications of a job, optionally narrowed to one stage."""
    stmt = (
        select(JobCandidate)
        .options(selectinload(JobCandidate.candidate))
        .where(JobCandidate.job_id == job_id)
    )
    if stage_id is not None:
        stmt = stmt.where(JobCandidate.current_stage_id == stage_id)
    stmt = stmt.order_by(JobCandidate.applied_at.asc(), JobCandidate.id.asc())

    async with db.session() as session:
        result = await session.execute(stmt)
        return list(result.scalars().all())

