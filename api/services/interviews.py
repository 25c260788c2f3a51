"""Interview scheduling and feedback service functions."""

from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from api.services import notifications
from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.middleware.authorization import require_job_access
from core.security import CurrentUser
from core.utils.datetime import ensure_aware
from database.engine import Database
from database.models.candidates import ActivityType, CandidateActivity, JobCandidate
from database.models.companies import User
from database.models.interviews import (
    Interview,
    InterviewFeedback,
    InterviewMode,
    InterviewPanel,
    InterviewStatus,
    Recommendation,
)

logger = logging.getLogger(__name__)


MIN_RATING = 1
MAX_RATING = 5


async def schedule_interview(
    db: Database,
    job_candidate_id: int,
    scheduled_at: datetime,
    panel_member_ids: List[int],
    duration_minutes: int = 60,
    mode: InterviewMode = InterviewMode.VIDEO,
    meeting_link: Optional[str] = None,
    location: Optional[str] = None,
    scheduled_by: Optional[int] = None,
) -> Interview:
    """
    Schedule an interview for an application.

    Args:
        db: Database handle
        job_candidate_id: Application being interviewed
        scheduled_at: Start time
        panel_member_ids: Users on the panel, all from the job's company
        duration_minutes: Length of the interview
        mode: video, phone or in_person
        meeting_link: Link supplied by the caller
        location: Required for in-person interviews
        scheduled_by: Acting user

    Returns:
        The interview with its panel
    """
    panel_member_ids = list(dict.fromkeys(panel_member_ids or []))
    errors = {}
    if not panel_member_ids:
        errors["panelMemberIds"] = ["At least one panel member is required"]
    if duration_minutes is None or duration_minutes <= 0:
        errors["durationMinutes"] = ["Duration must be a positive number"]
    if mode == InterviewMode.IN_PERSON and not (location or "").strip():
        errors["location"] = ["Location is required for in-person interviews"]
    if errors:
        raise ValidationError(errors)

    async with db.unit_of_work() as session:
        result = await session.execute(
            select(JobCandidate)
            .options(selectinload(JobCandidate.candidate), selectinload(JobCandidate.job))
            .where(JobCandidate.id == job_candidate_id)
        )
        job_candidate = result.scalar_one_or_none()
        if not job_candidate:
            raise NotFoundError("Job candidate")

        company_id = job_candidate.job.company_id
        members = await session.execute(
            select(User.id).where(User.id.in_(panel_member_ids), User.company_id == company_id)
        )
        if len(members.scalars().all()) != len(panel_member_ids):
            raise ValidationError({"panelMemberIds": ["One or more panel members not found"]})

        interview = Interview(
            job_candidate_id=job_candidate_id,
            scheduled_at=scheduled_at,
            duration_minutes=duration_minutes,
            mode=mode,
            meeting_link=meeting_link,
            location=location.strip() if location else None,
            status=InterviewStatus.SCHEDULED,
            scheduled_by=scheduled_by,
        )
        interview.panel = [InterviewPanel(user_id=user_id) for user_id in panel_member_ids]
        session.add(interview)
        await session.flush()

        session.add(
            CandidateActivity(
                candidate_id=job_candidate.candidate_id,
                job_candidate_id=job_candidate_id,
                user_id=scheduled_by,
                activity_type=ActivityType.INTERVIEW_SCHEDULED,
                description=f"Interview scheduled for {ensure_aware(scheduled_at).isoformat()}",
                activity_metadata={
                    "interviewId": interview.id,
                    "mode": mode.value,
                    "panelMemberIds": panel_member_ids,
                },
            )
        )
        candidate_name = job_candidate.candidate.name
        job_title = job_candidate.job.title

    logger.info(f"Scheduled interview {interview.id} for job candidate {job_candidate_id}")
    await notifications.notify_interview_scheduled(
        db, interview.id, panel_member_ids, candidate_name, job_title, actor_id=scheduled_by
    )
    return interview


async def get_interview(db: Database, interview_id: int, user: Optional[CurrentUser] = None) -> Interview:
    """Get an interview with its panel, checking access to the interviewed job."""
    async with db.session() as session:
        result = await session.execute(
            select(Interview)
            .options(
                selectinload(Interview.panel),
                selectinload(Interview.job_candidate).selectinload(JobCandidate.job),
            )
            .where(Interview.id == interview_id)
        )
        interview = result.scalar_one_or_none()
    if not interview:
        raise NotFoundError("Interview")
    if user is not None:
        require_job_access(interview.job_candidate.job, user)
    return interview


async def cancel_interview(db: Database, interview_id: int) -> Interview:
    async with db.unit_of_work() as session:
        result = await session.execute(
            select(Interview).options(selectinload(Interview.panel)).where(Interview.id == interview_id)
        )
        interview = result.scalar_one_or_none()
        if not interview:
            raise NotFoundError("Interview")
        if interview.status == InterviewStatus.CANCELLED:
            raise ValidationError({"status": ["Interview is already cancelled"]})
        interview.status = InterviewStatus.CANCELLED

    logger.info(f"Cancelled interview {interview_id}")
    return interview


def _validate_feedback(
    ratings: List[Dict[str, Any]], overall_comments: str, recommendation: str
) -> Recommendation:
    errors: Dict[str, List[str]] = {}
    if not ratings:
        errors["ratings"] = ["At least one rating is required"]
    else:
        for rating in ratings:
            score = rating.get("score")
            if not isinstance(score, int) or not MIN_RATING <= score <= MAX_RATING:
                errors["ratings"] = [f"Each rating score must be between {MIN_RATING} and {MAX_RATING}"]
                break
            if not str(rating.get("criterion") or "").strip():
                errors["ratings"] = ["Each rating needs a criterion"]
                break
    if not (overall_comments or "").strip():
        errors["overallComments"] = ["Overall comments are required"]

    parsed = None
    try:
        parsed = Recommendation(recommendation)
    except ValueError:
        allowed = ", ".join(r.value for r in Recommendation)
        errors["recommendation"] = [f"Recommendation must be one of: {allowed}"]

    if errors:
        raise ValidationError(errors)
    return parsed


async def submit_feedback(
    db: Database,
    interview_id: int,
    panel_member_id: int,
    ratings: List[Dict[str, Any]],
    overall_comments: str,
    recommendation: str,
) -> InterviewFeedback:
    """
    Record one panel member's scorecard.

    The interview is marked completed once every panel member has submitted.

    Raises:
        ValidationError: Bad ratings, missing comments, unknown
            recommendation, or a user who is not on the panel
        NotFoundError: Unknown interview
        ConflictError: Feedback already submitted by this panel member
    """
    parsed_recommendation = _validate_feedback(ratings, overall_comments, recommendation)

    async with db.unit_of_work() as session:
        result = await session.execute(
            select(Interview)
            .options(selectinload(Interview.panel), selectinload(Interview.feedback))
            .where(Interview.id == interview_id)
        )
        interview = result.scalar_one_or_none()
        if not interview:
            raise NotFoundError("Interview")

        panel_ids = {member.user_id for member in interview.panel}
        if panel_member_id not in panel_ids:
            raise ValidationError({"panelMemberId": ["User is not on this interview panel"]})
        if any(fb.panel_member_id == panel_member_id for fb in interview.feedback):
            raise ConflictError(
                "Feedback already submitted for this interview",
                {"interviewId": interview_id, "panelMemberId": panel_member_id},
            )

        feedback = InterviewFeedback(
            interview_id=interview_id,
            panel_member_id=panel_member_id,
            ratings=[
                {"criterion": str(r["criterion"]).strip(), "score": r["score"]} for r in ratings
            ],
            overall_comments=overall_comments.strip(),
            recommendation=parsed_recommendation,
        )
        interview.feedback.append(feedback)

        submitted = {fb.panel_member_id for fb in interview.feedback}
        if panel_ids <= submitted and interview.status == InterviewStatus.SCHEDULED:
            interview.status = InterviewStatus.COMPLETED
        await session.flush()

    logger.info(f"Panel member {panel_member_id} submitted feedback for interview {interview_id}")
    return feedback


async def list_interviews(db: Database, job_candidate_id: int) -> List[Interview]:
    """Interviews of an application in schedule order."""
    async with db.session() as session:
        if not await session.get(JobCandidate, job_candidate_id):
            raise NotFoundError("Job candidate")
        result = await session.execute(
            select(Interview)
            .options(selectinload(Interview.panel))
            .where(Interview.job_candidate_id == job_candidate_id)
            .order_by(Interview.scheduled_at.asc())
        )
        return list(result.scalars().all())


async def list_feedback(db: Database, interview_id: int) -> List[InterviewFeedback]:
    async with db.session() as session:
        if not await session.get(Interview, interview_id):
            raise NotFoundError("Interview")
        result = await session.execute(
            select(InterviewFeedback)
            .where(InterviewFeedback.interview_id == interview_id)
            .order_by(InterviewFeedback.submitted_at.asc())
        )
        return list(result.scalars().all())
