"""
SLA configuration service functions.

A company can set, per stage name, how many days an application may sit in
that stage. Stage names are matched case-insensitively.
"""

from datetime import datetime
from typing import Dict, List, Optional
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from api.schemas.sla import SLABreach
from api.services import notifications
from core.exceptions import NotFoundError, ValidationError
from core.utils.datetime import days_between, ensure_aware, now
from database.engine import Database
from database.models.candidates import JobCandidate
from database.models.jobs import Job, JobStatus
from database.models.pipelines import StageHistory
from database.models.sla import SLAConfig

logger = logging.getLogger(__name__)


async def load_thresholds(session: AsyncSession, company_id: int) -> Dict[str, int]:
    """Lower-cased stage name to threshold days for a company."""
    result = await session.execute(select(SLAConfig).where(SLAConfig.company_id == company_id))
    return {config.stage_name.lower(): config.threshold_days for config in result.scalars().all()}


async def load_open_entry_times(
    session: AsyncSession, job_candidate_ids: List[int]
) -> Dict[int, datetime]:
    """Entry time of the open ledger entry of each application, when there is one."""
    if not job_candidate_ids:
        return {}
    result = await session.execute(
        select(StageHistory.job_candidate_id, func.max(StageHistory.entered_at))
        .where(
            StageHistory.job_candidate_id.in_(job_candidate_ids),
            StageHistory.exited_at.is_(None),
        )
        .group_by(StageHistory.job_candidate_id)
    )
    return {jc_id: ensure_aware(entered_at) for jc_id, entered_at in result.all()}


async def get_sla_configs(db: Database, company_id: int) -> List[SLAConfig]:
    async with db.session() as session:
        result = await session.execute(
            select(SLAConfig)
            .where(SLAConfig.company_id == company_id)
            .order_by(SLAConfig.stage_name.asc())
        )
        return list(result.scalars().all())


async def upsert_sla_config(
    db: Database, company_id: int, stage_name: str, threshold_days: int
) -> SLAConfig:
    """
    Create or update the threshold of one stage name.

    Args:
        db: Database handle
        company_id: Owning company
        stage_name: Stage name, matched case-insensitively
        threshold_days: Whole number of days, at least 1

    Returns:
        The stored configuration
    """
    errors = {}
    if not (stage_name or "").strip():
        errors["stageName"] = ["Stage name is required"]
    if threshold_days is None:
        errors["thresholdDays"] = ["Threshold days is required"]
    elif isinstance(threshold_days, bool) or not isinstance(threshold_days, int):
        errors["thresholdDays"] = ["Threshold days must be a whole number"]
    elif threshold_days < 1:
        errors["thresholdDays"] = ["Threshold days must be at least 1"]
    if errors:
        raise ValidationError(errors)

    stage_name = stage_name.strip()
    async with db.unit_of_work() as session:
        result = await session.execute(
            select(SLAConfig).where(
                SLAConfig.company_id == company_id,
                func.lower(SLAConfig.stage_name) == stage_name.lower(),
            )
        )
        config = result.scalar_one_or_none()
        if config:
            config.threshold_days = threshold_days
        else:
            config = SLAConfig(
                company_id=company_id, stage_name=stage_name, threshold_days=threshold_days
            )
            session.add(config)
        await session.flush()

    logger.info(f"SLA for '{stage_name}' in company {company_id} set to {threshold_days} days")
    return config


async def delete_sla_config(db: Database, company_id: int, stage_name: str) -> None:
    async with db.unit_of_work() as session:
        result = await session.execute(
            select(SLAConfig).where(
                SLAConfig.company_id == company_id,
                func.lower(SLAConfig.stage_name) == (stage_name or "").strip().lower(),
            )
        )
        config = result.scalar_one_or_none()
        if not config:
            raise NotFoundError("SLA configuration")
        await session.delete(config)


async def check_sla_breaches(
    db: Database, company_id: int, at: Optional[datetime] = None
) -> List[SLABreach]:
    """
    Applications of active jobs that exceeded their stage's threshold.

    Only stages with a configured threshold are checked. The time in stage
    starts at the open ledger entry, or at ``applied_at`` when there is none.

    Returns:
        Breaches, most overdue first
    """
    at = at or now()
    async with db.session() as session:
        thresholds = await load_thresholds(session, company_id)
        if not thresholds:
            return []

        result = await session.execute(
            select(JobCandidate)
            .join(Job, Job.id == JobCandidate.job_id)
            .options(
                selectinload(JobCandidate.candidate),
                selectinload(JobCandidate.job),
                selectinload(JobCandidate.current_stage),
            )
            .where(Job.company_id == company_id, Job.status == JobStatus.ACTIVE)
        )
        job_candidates = result.scalars().all()
        entry_times = await load_open_entry_times(session, [jc.id for jc in job_candidates])

    breaches = []
    for jc in job_candidates:
        threshold = thresholds.get(jc.current_stage.name.lower())
        if not threshold:
            continue
        entered_at = entry_times.get(jc.id) or ensure_aware(jc.applied_at)
        days_in_stage = days_between(entered_at, at)
        if days_in_stage > threshold:
            breaches.append(
                SLABreach(
                    job_candidate_id=jc.id,
                    candidate_id=jc.candidate_id,
                    candidate_name=jc.candidate.name,
                    job_id=jc.job_id,
                    job_title=jc.job.title,
                    stage_name=jc.current_stage.name,
                    entered_at=entered_at,
                    days_in_stage=int(days_in_stage),
                    threshold_days=threshold,
                    days_overdue=int(days_in_stage - threshold),
                )
            )

    breaches.sort(key=lambda b: b.days_overdue, reverse=True)
    return breaches


async def notify_sla_breaches(db: Database, company_id: int) -> int:
    """Send an ``sla_breach`` notification for every current breach. Never raises."""
    try:
        breaches = await check_sla_breaches(db, company_id)
    except Exception as e:
        logger.warning(f"SLA breach check failed for company {company_id}: {e}")
        return 0

    sent = 0
    for breach in breaches:
        sent += await notifications.notify_sla_breach(
            db,
            job_id=breach.job_id,
            candidate_id=breach.candidate_id,
            message=(
                f"{breach.candidate_name} has been in {breach.stage_name} for "
                f"{breach.days_in_stage} days ({breach.days_overdue} days overdue) "
                f"for {breach.job_title}"
            ),
        )
    return sent
