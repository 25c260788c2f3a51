"""
Stage history ledger.

Each application keeps one row per visit to a pipeline stage. The row is
opened when the application enters the stage and closed (``exited_at`` and
``duration_hours`` set) when it leaves. The open/close helpers take the
caller's session so that they join the transition's unit of work.
"""

from datetime import datetime
from typing import List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import NotFoundError
from core.utils.datetime import hours_between, now
from database.engine import Database
from database.models.candidates import JobCandidate
from database.models.jobs import PipelineStage
from database.models.pipelines import StageHistory

logger = logging.getLogger(__name__)


def calculate_duration_hours(entered_at: datetime, exited_at: datetime) -> float:
    """
    Hours spent in a stage, rounded to two decimals.

    Args:
        entered_at: When the application entered the stage
        exited_at: When it left

    Returns:
        Non-negative number of hours
    """
    return round(max(0.0, hours_between(entered_at, exited_at)), 2)


async def open_stage_entry(
    session: AsyncSession,
    job_candidate_id: int,
    stage: PipelineStage,
    comment: Optional[str] = None,
    moved_by: Optional[int] = None,
    at: Optional[datetime] = None,
) -> StageHistory:
    """Append an open ledger row for ``stage``."""
    entry = StageHistory(
        job_candidate_id=job_candidate_id,
        stage_id=stage.id,
        stage_name=stage.name,
        entered_at=at or now(),
        comment=comment,
        moved_by=moved_by,
    )
    session.add(entry)
    await session.flush()
    return entry


async def close_stage_entry(
    session: AsyncSession,
    job_candidate_id: int,
    at: Optional[datetime] = None,
) -> Optional[StageHistory]:
    """
    Close the open ledger row of an application.

    Args:
        session: Session of the surrounding unit of work
        job_candidate_id: Application whose current entry is closed
        at: Exit time, defaults to now

    Returns:
        The closed entry, or None when the application had no open entry
    """
    exited_at = at or now()
    result = await session.execute(
        select(StageHistory)
        .where(
            StageHistory.job_candidate_id == job_candidate_id,
            StageHistory.exited_at.is_(None),
        )
        .order_by(StageHistory.entered_at.desc())
    )
    open_entries = result.scalars().all()
    if not open_entries:
        return None

    if len(open_entries) > 1:
        logger.warning(
            f"Job candidate {job_candidate_id} had {len(open_entries)} open stage entries, closing all"
        )

    for entry in open_entries:
        entry.exited_at = exited_at
        entry.duration_hours = calculate_duration_hours(entry.entered_at, exited_at)
    await session.flush()
    return open_entries[0]


async def get_stage_history(db: Database, job_candidate_id: int) -> List[StageHistory]:
    """Ledger of one application, oldest first."""
    async with db.session() as session:
        job_candidate = await session.get(JobCandidate, job_candidate_id)
        if not job_candidate:
            raise NotFoundError("Job candidate")

        result = await session.execute(
            select(StageHistory)
            .where(StageHistory.job_candidate_id == job_candidate_id)
            .order_by(StageHistory.entered_at.asc(), StageHistory.id.asc())
        )
        return list(result.scalars().all())


async def get_candidate_stage_history(db: Database, candidate_id: int) -> List[StageHistory]:
    """Ledger rows across every application of a candidate, newest first."""
    async with db.session() as session:
        result = await session.execute(
            select(StageHistory)
            .join(JobCandidate, JobCandidate.id == StageHistory.job_candidate_id)
            .where(JobCandidate.candidate_id == candidate_id)
            .order_by(StageHistory.entered_at.desc(), StageHistory.id.desc())
        )
        return list(result.scalars().all())


async def get_current_stage_entry(db: Database, job_candidate_id: int) -> Optional[StageHistory]:
    async with db.session() as session:
        result = await session.execute(
            select(StageHistory)
            .where(
                StageHistory.job_candidate_id == job_candidate_id,
                StageHistory.exited_at.is_(None),
            )
            .order_by(StageHistory.entered_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
