"""
In-app notification service functions.

Notifications are side effects of other operations. ``notify_*`` helpers
are called after the primary write has committed and never raise: a failed
notification is logged and dropped.
"""

from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.exceptions import NotFoundError, ValidationError
from core.utils.datetime import now
from database.engine import Database
from database.models.candidates import JobCandidate
from database.models.companies import User, UserRole
from database.models.interviews import Interview, InterviewStatus
from database.models.jobs import Job
from database.models.notifications import Notification, NotificationType

logger = logging.getLogger(__name__)


def _add_notification(
    session: AsyncSession,
    user_id: int,
    type: NotificationType,
    title: str,
    message: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
) -> Notification:
    errors = {}
    if not (title or "").strip():
        errors["title"] = ["Title is required"]
    if not (message or "").strip():
        errors["message"] = ["Message is required"]
    if errors:
        raise ValidationError(errors)

    notification = Notification(
        user_id=user_id,
        type=type,
        title=title.strip(),
        message=message.strip(),
        entity_type=entity_type,
        entity_id=entity_id,
        is_read=False,
    )
    session.add(notification)
    return notification


async def create_notification(
    db: Database,
    user_id: int,
    type: NotificationType,
    title: str,
    message: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
) -> Notification:
    """
    Create a notification for one user.

    Args:
        db: Database handle
        user_id: Recipient
        type: Notification type
        title: Short title
        message: Body text
        entity_type: Kind of entity the notification points at
        entity_id: Id of that entity

    Returns:
        The stored notification
    """
    async with db.unit_of_work() as session:
        if not await session.get(User, user_id):
            raise NotFoundError("User")
        notification = _add_notification(
            session, user_id, type, title, message, entity_type, entity_id
        )
        await session.flush()
    return notification


async def _job_recipients(
    session: AsyncSession, job: Job, actor_id: Optional[int]
) -> List[int]:
    """Assigned recruiter plus active admins and hiring managers, minus the actor."""
    result = await session.execute(
        select(User.id).where(
            User.company_id == job.company_id,
            User.is_active.is_(True),
            User.role.in_([UserRole.ADMIN, UserRole.HIRING_MANAGER]),
        )
    )
    recipients: List[int] = []
    if job.assigned_recruiter_id is not None:
        recipients.append(job.assigned_recruiter_id)
    for user_id in result.scalars().all():
        if user_id not in recipients:
            recipients.append(user_id)
    return [user_id for user_id in recipients if user_id != actor_id]


async def notify_stage_change(
    db: Database,
    job_candidate_id: int,
    from_stage: Optional[str],
    to_stage: str,
    actor_id: Optional[int] = None,
) -> int:
    """
    Tell interested users that an application changed stage.

    Returns:
        Number of notifications created, 0 when delivery failed
    """
    try:
        async with db.unit_of_work() as session:
            result = await session.execute(
                select(JobCandidate)
                .options(
                    selectinload(JobCandidate.candidate),
                    selectinload(JobCandidate.job),
                )
                .where(JobCandidate.id == job_candidate_id)
            )
            job_candidate = result.scalar_one_or_none()
            if not job_candidate:
                return 0

            job = job_candidate.job
            candidate_name = job_candidate.candidate.name
            recipients = await _job_recipients(session, job, actor_id)
            for user_id in recipients:
                _add_notification(
                    session,
                    user_id,
                    NotificationType.STAGE_CHANGE,
                    "Candidate Stage Changed",
                    f"{candidate_name} moved from {from_stage or 'no stage'} to {to_stage} for {job.title}",
                    entity_type="candidate",
                    entity_id=job_candidate.candidate_id,
                )
        return len(recipients)
    except Exception as e:
        logger.warning(f"Stage change notification failed for job candidate {job_candidate_id}: {e}")
        return 0


async def notify_sla_breach(
    db: Database,
    job_id: int,
    candidate_id: int,
    message: str,
) -> int:
    """Alert the recruiter and managers of a job about an SLA breach. Never raises."""
    try:
        async with db.unit_of_work() as session:
            job = await session.get(Job, job_id)
            if not job:
                return 0
            recipients = await _job_recipients(session, job, actor_id=None)
            for user_id in recipients:
                _add_notification(
                    session,
                    user_id,
                    NotificationType.SLA_BREACH,
                    "SLA Breach Alert",
                    message,
                    entity_type="candidate",
                    entity_id=candidate_id,
                )
        return len(recipients)
    except Exception as e:
        logger.warning(f"SLA breach notification failed for job {job_id}: {e}")
        return 0


async def notify_interview_scheduled(
    db: Database,
    interview_id: int,
    panel_member_ids: List[int],
    candidate_name: str,
    job_title: str,
    actor_id: Optional[int] = None,
) -> int:
    """Tell panel members about a new interview. Never raises."""
    recipients = [user_id for user_id in dict.fromkeys(panel_member_ids) if user_id != actor_id]
    try:
        async with db.unit_of_work() as session:
            for user_id in recipients:
                _add_notification(
                    session,
                    user_id,
                    NotificationType.INTERVIEW_SCHEDULED,
                    "Interview Scheduled",
                    f"You are on the panel for {candidate_name} ({job_title})",
                    entity_type="interview",
                    entity_id=interview_id,
                )
        return len(recipients)
    except Exception as e:
        logger.warning(f"Interview notification failed for interview {interview_id}: {e}")
        return 0


async def get_notifications(
    db: Database,
    user_id: int,
    unread_only: bool = False,
    limit: int = 50,
) -> Dict[str, Any]:
    """
    List a user's notifications, newest first.

    Returns:
        Dictionary with ``items`` and ``unread_count``
    """
    async with db.session() as session:
        if not await session.get(User, user_id):
            raise NotFoundError("User")

        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        result = await session.execute(query)
        items = list(result.scalars().all())

        count_result = await session.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        unread_count = count_result.scalar() or 0

    return {"items": items, "unread_count": unread_count}


async def mark_as_read(db: Database, notification_id: int, user_id: int) -> Notification:
    """Mark one notification read. Other users' notifications look absent."""
    async with db.unit_of_work() as session:
        notification = await session.get(Notification, notification_id)
        if not notification or notification.user_id != user_id:
            raise NotFoundError("Notification")
        notification.is_read = True
    return notification


async def mark_all_as_read(db: Database, user_id: int) -> int:
    """Mark every unread notification of a user read and return how many changed."""
    async with db.unit_of_work() as session:
        result = await session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
    return result.rowcount or 0


async def get_pending_feedback_interviews(db: Database, company_id: int) -> List[Dict[str, Any]]:
    """
    Interviews that already happened but still miss panel feedback.

    Returns:
        One dictionary per interview, most recent first
    """
    async with db.session() as session:
        result = await session.execute(
            select(Interview)
            .join(JobCandidate, JobCandidate.id == Interview.job_candidate_id)
            .join(Job, Job.id == JobCandidate.job_id)
            .options(
                selectinload(Interview.panel),
                selectinload(Interview.feedback),
                selectinload(Interview.job_candidate).selectinload(JobCandidate.candidate),
                selectinload(Interview.job_candidate).selectinload(JobCandidate.job),
            )
            .where(
                Job.company_id == company_id,
                or_(
                    Interview.status == InterviewStatus.COMPLETED,
                    and_(
                        Interview.status == InterviewStatus.SCHEDULED,
                        Interview.scheduled_at < now(),
                    ),
                ),
            )
            .order_by(Interview.scheduled_at.desc())
        )
        interviews = result.scalars().all()

    pending = []
    for interview in interviews:
        total = len(interview.panel)
        submitted = len(interview.feedback)
        if total - submitted <= 0:
            continue
        pending.append({
            "interview_id": interview.id,
            "candidate_name": interview.job_candidate.candidate.name,
            "job_title": interview.job_candidate.job.title,
            "scheduled_at": interview.scheduled_at,
            "feedback_percentage": round(submitted / total * 100),
            "pending_count": total - submitted,
        })
    return pending
