"""
Pipeline stage ordering.

Stage positions inside one job always form the sequence 0..N-1. Every
operation that moves a stage renumbers the affected siblings and the stage
itself inside a single unit of work.
"""

from typing import List, Optional
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.exceptions import ConflictError, NotFoundError, ValidationError
from database.engine import Database
from database.models.candidates import JobCandidate
from database.models.jobs import Job, PipelineStage

logger = logging.getLogger(__name__)


async def _load_stages(session: AsyncSession, job_id: int) -> List[PipelineStage]:
    result = await session.execute(
        select(PipelineStage)
        .where(PipelineStage.job_id == job_id)
        .order_by(PipelineStage.position.asc(), PipelineStage.id.asc())
    )
    return list(result.scalars().all())


async def get_stages(db: Database, job_id: int) -> List[PipelineStage]:
    """Stages of a job ordered by position."""
    async with db.session() as session:
        if not await session.get(Job, job_id):
            raise NotFoundError("Job")
        return await _load_stages(session, job_id)


async def get_stage(db: Database, stage_id: int) -> PipelineStage:
    """Get a stage together with its job."""
    async with db.session() as session:
        result = await session.execute(
            select(PipelineStage)
            .options(selectinload(PipelineStage.job))
            .where(PipelineStage.id == stage_id)
        )
        stage = result.scalar_one_or_none()
    if not stage:
        raise NotFoundError("Stage")
    return stage


async def insert_stage(
    db: Database,
    job_id: int,
    name: str,
    position: int,
    is_mandatory: bool = False,
    parent_id: Optional[int] = None,
) -> PipelineStage:
    """
    Insert a custom stage at ``position``.

    Every stage at or after ``position`` moves up by one.

    Args:
        db: Database handle
        job_id: Owning job
        name: Stage name
        position: Target position, between 0 and the current stage count
        is_mandatory: Whether the stage may be skipped
        parent_id: Optional parent stage for sub-stages

    Returns:
        The new stage
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError({"name": ["Stage name is required"]})

    async with db.unit_of_work() as session:
        if not await session.get(Job, job_id):
            raise NotFoundError("Job")

        stages = await _load_stages(session, job_id)
        if position < 0 or position > len(stages):
            raise ValidationError(
                {"position": [f"Position must be between 0 and {len(stages)}"]}
            )

        if parent_id is not None and parent_id not in {s.id for s in stages}:
            raise ValidationError({"parentId": ["Parent stage must belong to the same job"]})

        for stage in stages:
            if stage.position >= position:
                stage.position += 1

        new_stage = PipelineStage(
            job_id=job_id,
            name=name,
            position=position,
            is_default=False,
            is_mandatory=is_mandatory,
            parent_id=parent_id,
        )
        session.add(new_stage)
        await session.flush()

    logger.info(f"Inserted stage '{name}' at position {position} for job {job_id}")
    return new_stage


async def reorder_stage(db: Database, stage_id: int, new_position: int) -> List[PipelineStage]:
    """
    Move one stage to ``new_position``.

    Stages strictly between the old and new position shift by one toward
    the vacated slot. Moving to the current position changes nothing.

    Returns:
        The job's stages ordered by position after the move
    """
    async with db.unit_of_work() as session:
        stage = await session.get(PipelineStage, stage_id)
        if not stage:
            raise NotFoundError("Stage")

        stages = await _load_stages(session, stage.job_id)
        if new_position < 0 or new_position > len(stages) - 1:
            raise ValidationError(
                {"position": [f"Position must be between 0 and {len(stages) - 1}"]}
            )

        old_position = stage.position
        if old_position == new_position:
            return stages

        for sibling in stages:
            if sibling.id == stage.id:
                continue
            if old_position < new_position and old_position < sibling.position <= new_position:
                sibling.position -= 1
            elif new_position < old_position and new_position <= sibling.position < old_position:
                sibling.position += 1
        stage.position = new_position
        await session.flush()

        reordered = sorted(stages, key=lambda s: s.position)

    logger.info(f"Moved stage {stage_id} from position {old_position} to {new_position}")
    return reordered


async def rename_stage(db: Database, stage_id: int, name: str) -> PipelineStage:
    name = (name or "").strip()
    if not name:
        raise ValidationError({"name": ["Stage name is required"]})

    async with db.unit_of_work() as session:
        stage = await session.get(PipelineStage, stage_id)
        if not stage:
            raise NotFoundError("Stage")
        stage.name = name
    return stage


async def delete_stage(db: Database, stage_id: int) -> List[PipelineStage]:
    """
    Delete a custom stage and close the gap it leaves.

    Raises:
        NotFoundError: Unknown stage
        ValidationError: The stage was created with the job
        ConflictError: Applications currently sit in the stage
    """
    async with db.unit_of_work() as session:
        stage = await session.get(PipelineStage, stage_id)
        if not stage:
            raise NotFoundError("Stage")
        if stage.is_default:
            raise ValidationError({"stageId": ["Default stages cannot be deleted"]})

        occupied = await session.execute(
            select(func.count())
            .select_from(JobCandidate)
            .where(JobCandidate.current_stage_id == stage_id)
        )
        occupied_count = occupied.scalar() or 0
        if occupied_count:
            raise ConflictError(
                "Cannot delete a stage that still has candidates",
                {"candidateCount": occupied_count},
            )

        job_id = stage.job_id
        removed_position = stage.position
        await session.delete(stage)
        await session.flush()

        stages = await _load_stages(session, job_id)
        for sibling in stages:
            if sibling.position > removed_position:
                sibling.position -= 1
        await session.flush()

    logger.info(f"Deleted stage {stage_id} from job {job_id}")
    return stages
