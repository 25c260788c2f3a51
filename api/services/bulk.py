"""
Bulk operations service functions.

A bulk move applies the single-candidate transition to each application
independently. Each application gets its own unit of work, so one failure
never rolls back the moves that already succeeded.
"""

from typing import List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from api.schemas.candidates import BulkMoveFailure, BulkMoveResult
from api.services import notifications
from api.services.candidates import apply_stage_change, is_rejection_stage, load_job_candidate
from core.exceptions import ATSError, NotFoundError, ValidationError
from database.engine import Database
from database.models.jobs import Job

logger = logging.getLogger(__name__)


async def bulk_move(
    db: Database,
    job_id: int,
    job_candidate_ids: List[int],
    target_stage_id: int,
    comment: Optional[str] = None,
    moved_by: Optional[int] = None,
) -> BulkMoveResult:
    """
    Move several applications of one job to the same stage.

    Args:
        db: Database handle
        job_id: Job every application must belong to
        job_candidate_ids: Applications to move, processed in order
        target_stage_id: Stage of ``job_id`` to move them to
        comment: Note stored on each ledger entry; required for rejection stages
        moved_by: Acting user

    Returns:
        BulkMoveResult. Applications already at the target are counted in
        ``skipped_count``; per-item errors end up in ``failures``.

    Raises:
        ValidationError: Empty id list, stage outside the job, or a
            rejection stage without a comment
        NotFoundError: Unknown job
    """
    if not job_candidate_ids:
        raise ValidationError({"jobCandidateIds": ["At least one job candidate is required"]})
    comment = comment.strip() if comment and comment.strip() else None

    async with db.session() as session:
        result = await session.execute(
            select(Job).options(selectinload(Job.stages)).where(Job.id == job_id)
        )
        job = result.scalar_one_or_none()
    if not job:
        raise NotFoundError("Job")

    target = next((s for s in job.stages if s.id == target_stage_id), None)
    if not target:
        raise ValidationError({"targetStageId": ["Stage not found in this job pipeline"]})
    if is_rejection_stage(target.name) and not comment:
        raise ValidationError(
            {"comment": [f"A comment is required when moving candidates to {target.name}"]}
        )

    outcome = BulkMoveResult(success=True)
    moved = []

    # dict.fromkeys drops duplicate ids and keeps order
    for job_candidate_id in dict.fromkeys(job_candidate_ids):
        candidate_name = None
        try:
            async with db.unit_of_work() as session:
                job_candidate = await load_job_candidate(session, job_candidate_id)
                candidate_name = job_candidate.candidate.name
                if job_candidate.job_id != job_id:
                    raise ValidationError({"jobCandidateId": ["Job candidate does not belong to this job"]})
                if job_candidate.current_stage_id == target.id:
                    outcome.skipped_count += 1
                    continue

                # Use the instance bound to this session
                stage = next(s for s in job_candidate.job.stages if s.id == target.id)
                change = await apply_stage_change(
                    session,
                    job_candidate,
                    stage,
                    comment=comment,
                    moved_by=moved_by,
                    bulk_move=True,
                )
            outcome.moved_count += 1
            moved.append((job_candidate_id, change.from_stage))
        except ATSError as e:
            outcome.failed_count += 1
            outcome.failures.append(
                BulkMoveFailure(
                    job_candidate_id=job_candidate_id,
                    candidate_name=candidate_name,
                    error=e.message,
                )
            )
            logger.warning(f"Bulk move could not move job candidate {job_candidate_id}: {e.message}")
        except Exception as e:
            outcome.failed_count += 1
            outcome.failures.append(
                BulkMoveFailure(
                    job_candidate_id=job_candidate_id,
                    candidate_name=candidate_name,
                    error=str(e) or type(e).__name__,
                )
            )
            logger.warning(f"Bulk move failed for job candidate {job_candidate_id}: {e}")

    outcome.success = outcome.failed_count == 0
    logger.info(
        f"Bulk move to '{target.name}' on job {job_id}: "
        f"{outcome.moved_count} moved, {outcome.failed_count} failed, {outcome.skipped_count} skipped"
    )

    for job_candidate_id, from_stage in moved:
        await notifications.notify_stage_change(
            db, job_candidate_id, from_stage, target.name, actor_id=moved_by
        )
    return outcome
