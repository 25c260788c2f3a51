"""
Analytics aggregation service.

Every function reads the stage history ledger and related rows for the jobs
the caller may see and reduces them into a dashboard summary. Nothing here
writes to the database.

Scoping: recruiters only see jobs assigned to them; admins and hiring
managers see the whole company. Optional filters narrow further. Empty data
yields zeros and empty lists, never an error.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple
import logging
import math
import re

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.analytics import (
    AnalyticsFilters,
    DepartmentOffers,
    DepartmentTimeToFill,
    DropOffData,
    FunnelData,
    FunnelStage,
    KPIMetrics,
    OfferData,
    OfferTotals,
    PanelData,
    RecruiterData,
    RejectionData,
    RejectionReason,
    RoleOffers,
    RoleSLAStatus,
    RoleTimeToFill,
    SLAStatusData,
    SLASummary,
    SourceData,
    StageDropOff,
    StageDuration,
    TimeInStageData,
    TimeToFillData,
    TimeToFillOverall,
)
from api.services.candidates import is_rejection_stage
from api.services.sla import load_open_entry_times, load_thresholds
from core.config import get_settings
from core.utils.datetime import (
    HOURS_PER_DAY,
    days_between,
    ensure_aware,
    hours_between,
    now,
    start_of_day,
    start_of_week,
)
from database.engine import Database
from database.models.candidates import Candidate, JobCandidate
from database.models.companies import User, UserRole
from database.models.interviews import Interview, InterviewFeedback, InterviewPanel
from database.models.jobs import Job, JobStatus, PipelineStage
from database.models.pipelines import StageHistory

logger = logging.getLogger(__name__)


HIRED_STAGE = "Hired"
OFFER_STAGE = "Offer"
REJECTION_COLORS = ("#ef4444", "#f97316", "#eab308", "#22c55e")


# ==================== Helpers ===================== #
def _is_hired(stage_name: Optional[str]) -> bool:
    return bool(stage_name) and stage_name.lower() == HIRED_STAGE.lower()


def _round1(value: float) -> float:
    """Round half up to one decimal."""
    return math.floor(value * 10 + 0.5) / 10


def _round0(value: float) -> int:
    return math.floor(value + 0.5)


def _pct(part: int, whole: int) -> float:
    return _round1(part / whole * 100) if whole else 0


def _normalize_role(role) -> UserRole:
    return role if isinstance(role, UserRole) else UserRole(role)


def build_job_filter(
    company_id: int,
    user_id: int,
    role,
    filters: Optional[AnalyticsFilters] = None,
) -> List[ColumnElement[bool]]:
    """
    WHERE clauses on ``Job`` for the jobs a caller may aggregate over.

    Args:
        company_id: Caller's company
        user_id: Caller
        role: Caller's role; recruiters are limited to their assigned jobs
        filters: Optional job, department, location and recruiter filters

    Returns:
        List of clauses to pass to ``where``
    """
    filters = filters or AnalyticsFilters()
    clauses: List[ColumnElement[bool]] = [Job.company_id == company_id]

    if _normalize_role(role) == UserRole.RECRUITER:
        clauses.append(Job.assigned_recruiter_id == user_id)
    elif filters.recruiter_id:
        clauses.append(Job.assigned_recruiter_id == filters.recruiter_id)

    if filters.job_id:
        clauses.append(Job.id == filters.job_id)
    if filters.department:
        clauses.append(Job.department == filters.department)
    if filters.location:
        clauses.append(Job.location == filters.location)
    return clauses


def build_date_filter(column, filters: Optional[AnalyticsFilters]) -> List[ColumnElement[bool]]:
    """Inclusive start/end clauses on ``column``."""
    clauses: List[ColumnElement[bool]] = []
    if filters is None:
        return clauses
    if filters.start_date:
        clauses.append(column >= filters.start_date)
    if filters.end_date:
        clauses.append(column <= filters.end_date)
    return clauses


def _scoped_job_ids(job_filter: List[ColumnElement[bool]]):
    return select(Job.id).where(*job_filter).scalar_subquery()


def _in_window(value: Optional[datetime], filters: Optional[AnalyticsFilters]) -> bool:
    if value is None:
        return False
    if filters is None:
        return True
    value = ensure_aware(value)
    if filters.start_date and value < ensure_aware(filters.start_date):
        return False
    if filters.end_date and value > ensure_aware(filters.end_date):
        return False
    return True


async def _stage_groups(
    session: AsyncSession, job_filter: List[ColumnElement[bool]]
) -> Tuple[Dict[str, Dict], Dict[int, str]]:
    """
    Group the stages of every scoped job by name.

    Returns:
        (groups keyed by name in position order, stage id to name)
    """
    result = await session.execute(
        select(PipelineStage.id, PipelineStage.name, PipelineStage.position)
        .where(PipelineStage.job_id.in_(_scoped_job_ids(job_filter)))
        .order_by(PipelineStage.position.asc(), PipelineStage.id.asc())
    )
    groups: Dict[str, Dict] = {}
    names_by_id: Dict[int, str] = {}
    for stage_id, name, position in result.all():
        names_by_id[stage_id] = name
        if name not in groups:
            groups[name] = {"id": stage_id, "position": position}
    ordered = dict(sorted(groups.items(), key=lambda item: item[1]["position"]))
    return ordered, names_by_id


async def _hired_applications(
    session: AsyncSession,
    job_filter: List[ColumnElement[bool]],
    filters: Optional[AnalyticsFilters],
):
    """Applications currently in a Hired stage, with their job."""
    result = await session.execute(
        select(
            JobCandidate.id,
            JobCandidate.updated_at,
            Job.id,
            Job.title,
            Job.department,
            Job.created_at,
        )
        .join(Job, Job.id == JobCandidate.job_id)
        .join(PipelineStage, PipelineStage.id == JobCandidate.current_stage_id)
        .where(
            *job_filter,
            func.lower(PipelineStage.name) == HIRED_STAGE.lower(),
            *build_date_filter(JobCandidate.updated_at, filters),
        )
        .order_by(JobCandidate.id.asc())
    )
    return result.all()


def _days_to_fill(hired_at: datetime, job_created_at: datetime) -> int:
    return max(0, _round0(days_between(job_created_at, hired_at)))


async def _offer_applications(
    session: AsyncSession,
    job_filter: List[ColumnElement[bool]],
    filters: Optional[AnalyticsFilters],
):
    """Applications currently in an Offer or Hired stage."""
    result = await session.execute(
        select(JobCandidate.id, PipelineStage.name, Job.id, Job.title, Job.department)
        .join(Job, Job.id == JobCandidate.job_id)
        .join(PipelineStage, PipelineStage.id == JobCandidate.current_stage_id)
        .where(
            *job_filter,
            func.lower(PipelineStage.name).in_([OFFER_STAGE.lower(), HIRED_STAGE.lower()]),
            *build_date_filter(JobCandidate.updated_at, filters),
        )
        .order_by(JobCandidate.id.asc())
    )
    return result.all()


# ==================== KPI ===================== #
async def get_kpi_metrics(
    db: Database,
    company_id: int,
    user_id: int,
    role,
    filters: Optional[AnalyticsFilters] = None,
) -> KPIMetrics:
    """Headline numbers for the dashboard."""
    job_filter = build_job_filter(company_id, user_id, role, filters)
    scoped_jobs = _scoped_job_ids(job_filter)
    today = start_of_day(now())
    week = start_of_week(now())

    async with db.session() as session:
        active_roles = (
            await session.execute(
                select(func.count()).select_from(Job).where(*job_filter, Job.status == JobStatus.ACTIVE)
            )
        ).scalar() or 0

        active_candidates = (
            await session.execute(
                select(func.count())
                .select_from(JobCandidate)
                .where(JobCandidate.job_id.in_(scoped_jobs))
            )
        ).scalar() or 0

        async def count_interviews(start: datetime, end: datetime) -> int:
            result = await session.execute(
                select(func.count())
                .select_from(Interview)
                .join(JobCandidate, JobCandidate.id == Interview.job_candidate_id)
                .where(
                    JobCandidate.job_id.in_(scoped_jobs),
                    Interview.scheduled_at >= start,
                    Interview.scheduled_at < end,
                )
            )
            return result.scalar() or 0

        interviews_today = await count_interviews(today, today + timedelta(days=1))
        interviews_this_week = await count_interviews(week, week + timedelta(days=7))

        offers_pending = (
            await session.execute(
                select(func.count())
                .select_from(JobCandidate)
                .join(PipelineStage, PipelineStage.id == JobCandidate.current_stage_id)
                .where(
                    JobCandidate.job_id.in_(scoped_jobs),
                    func.lower(PipelineStage.name) == OFFER_STAGE.lower(),
                )
            )
        ).scalar() or 0

        hired_in_window = await _hired_applications(session, job_filter, filters)
        hired_all = await _hired_applications(session, job_filter, None)
        offers = await _offer_applications(session, job_filter, None)

    avg_time_to_fill = 0
    if hired_all:
        total_days = sum(
            days_between(ensure_aware(created_at), ensure_aware(updated_at))
            for _, updated_at, _, _, _, created_at in hired_all
        )
        avg_time_to_fill = _round0(total_days / len(hired_all))

    accepted = sum(1 for _, stage_name, *_ in offers if _is_hired(stage_name))
    offer_acceptance_rate = _round0(accepted / len(offers) * 100) if offers else 0

    sla = await get_sla_status(db, company_id, user_id, role, filters)

    return KPIMetrics(
        active_roles=active_roles,
        active_candidates=active_candidates,
        interviews_today=interviews_today,
        interviews_this_week=interviews_this_week,
        offers_pending=offers_pending,
        total_hires=len(hired_in_window),
        avg_time_to_fill=avg_time_to_fill,
        offer_acceptance_rate=offer_acceptance_rate,
        roles_on_track=sla.summary.on_track,
        roles_at_risk=sla.summary.at_risk,
        roles_breached=sla.summary.breached,
    )


# ==================== Funnel ===================== #
async def get_funnel_analytics(
    db: Database,
    company_id: int,
    user_id: int,
    role,
    filters: Optional[AnalyticsFilters] = None,
) -> FunnelData:
    """
    Candidates reaching each stage name, in pipeline order.

    An application counts for a stage when it sits there now or has a ledger
    entry for it. Applications are windowed by ``applied_at``.
    """
    job_filter = build_job_filter(company_id, user_id, role, filters)
    async with db.session() as session:
        groups, names_by_id = await _stage_groups(session, job_filter)

        applications = (
            await session.execute(
                select(JobCandidate.id, JobCandidate.current_stage_id)
                .join(Job, Job.id == JobCandidate.job_id)
                .where(*job_filter, *build_date_filter(JobCandidate.applied_at, filters))
            )
        ).all()

        visited = (
            await session.execute(
                select(StageHistory.job_candidate_id, StageHistory.stage_name)
                .join(JobCandidate, JobCandidate.id == StageHistory.job_candidate_id)
                .join(Job, Job.id == JobCandidate.job_id)
                .where(*job_filter, *build_date_filter(JobCandidate.applied_at, filters))
            )
        ).all()

        durations = (
            await session.execute(
                select(StageHistory.stage_name, func.avg(StageHistory.duration_hours))
                .join(JobCandidate, JobCandidate.id == StageHistory.job_candidate_id)
                .join(Job, Job.id == JobCandidate.job_id)
                .where(
                    *job_filter,
                    StageHistory.exited_at.is_not(None),
                    *build_date_filter(StageHistory.entered_at, filters),
                )
                .group_by(StageHistory.stage_name)
            )
        ).all()

    reached: Dict[int, Set[str]] = defaultdict(set)
    for jc_id, stage_id in applications:
        if stage_id in names_by_id:
            reached[jc_id].add(names_by_id[stage_id])
    application_ids = {jc_id for jc_id, _ in applications}
    for jc_id, stage_name in visited:
        if jc_id in application_ids:
            reached[jc_id].add(stage_name)

    avg_days = {
        name: _round1(avg_hours / HOURS_PER_DAY) for name, avg_hours in durations if avg_hours
    }

    total_applicants = len(applications)
    names = list(groups)
    counts = [sum(1 for stages in reached.values() if name in stages) for name in names]

    stages = []
    for index, name in enumerate(names):
        count = counts[index]
        conversion = 0
        if index < len(names) - 1 and count > 0:
            conversion = _pct(counts[index + 1], count)
        stages.append(
            FunnelStage(
                id=groups[name]["id"],
                name=name,
                count=count,
                percentage=_pct(count, total_applicants),
                conversion_to_next=conversion,
                avg_days_in_stage=avg_days.get(name, 0),
            )
        )

    total_hired = next((s.count for s in stages if _is_hired(s.name)), 0)
    return FunnelData(
        stages=stages,
        total_applicants=total_applicants,
        total_hired=total_hired,
        overall_conversion_rate=_pct(total_hired, total_applicants),
    )


# ==================== Time ===================== #
async def get_time_to_fill(
    db: Database,
    company_id: int,
    user_id: int,
    role,
    filters: Optional[AnalyticsFilters] = None,
) -> TimeToFillData:
    """Days from job creation to hire, overall and per department and role."""
    target = get_settings().time_to_fill_target_days
    job_filter = build_job_filter(company_id, user_id, role, filters)
    async with db.session() as session:
        hired = await _hired_applications(session, job_filter, filters)

    if not hired:
        return TimeToFillData(overall=TimeToFillOverall(average=0, median=0, target=target))

    rows = [
        (job_id, title, department, _days_to_fill(ensure_aware(updated_at), ensure_aware(created_at)))
        for _, updated_at, job_id, title, department, created_at in hired
    ]
    all_days = sorted(days for *_, days in rows)
    middle = len(all_days) // 2
    if len(all_days) % 2 == 0:
        median = _round0((all_days[middle - 1] + all_days[middle]) / 2)
    else:
        median = all_days[middle]

    by_department: Dict[str, List[int]] = {}
    by_role: Dict[int, Tuple[str, List[int]]] = {}
    for job_id, title, department, days in rows:
        by_department.setdefault(department, []).append(days)
        by_role.setdefault(job_id, (title, []))[1].append(days)

    role_rows = []
    for job_id, (title, days) in by_role.items():
        average = _round0(sum(days) / len(days))
        role_rows.append(
            RoleTimeToFill(role_id=job_id, role_name=title, average=average, is_over_target=average > target)
        )

    return TimeToFillData(
        overall=TimeToFillOverall(
            average=_round0(sum(all_days) / len(all_days)), median=median, target=target
        ),
        by_department=[
            DepartmentTimeToFill(department=dept, average=_round0(sum(days) / len(days)), count=len(days))
            for dept, days in by_department.items()
        ],
        by_role=role_rows,
    )


def _bottleneck_suggestion(stage_name: str, days: float) -> str:
    if days > 14:
        return (
            f'The "{stage_name}" stage is taking {days} days on average, which is significantly '
            "longer than other stages. Consider streamlining this process or adding more "
            "resources to reduce delays."
        )
    if days > 7:
        return (
            f'The "{stage_name}" stage is taking {days} days on average. This could be optimized '
            "by setting clearer timelines or improving communication with stakeholders."
        )
    if days > 3:
        return (
            f'The "{stage_name}" stage is taking {days} days on average. Consider if this '
            "timeline can be reduced while maintaining quality."
        )
    return (
        f'Your pipeline stages are moving efficiently. The longest stage "{stage_name}" '
        f"takes only {days} days on average."
    )


async def get_time_in_stage(
    db: Database,
    company_id: int,
    user_id: int,
    role,
    filters: Optional[AnalyticsFilters] = None,
) -> TimeInStageData:
    """
    Mean days spent per stage name over closed ledger entries.

    The slowest stage is flagged as the bottleneck and drives the suggestion.
    Stages come back slowest first.
    """
    job_filter = build_job_filter(company_id, user_id, role, filters)
    async with db.session() as session:
        rows = (
            await session.execute(
                select(StageHistory.stage_name, func.avg(StageHistory.duration_hours))
                .join(JobCandidate, JobCandidate.id == StageHistory.job_candidate_id)
                .join(Job, Job.id == JobCandidate.job_id)
                .where(
                    *job_filter,
                    StageHistory.exited_at.is_not(None),
                    StageHistory.duration_hours.is_not(None),
                    *build_date_filter(StageHistory.entered_at, filters),
                )
                .group_by(StageHistory.stage_name)
                .order_by(StageHistory.stage_name.asc())
            )
        ).all()

    if not rows:
        return TimeInStageData(suggestion="No stage history data available for the selected criteria.")

    stages = [
        StageDuration(stage_name=name, avg_days=_round1(avg_hours / HOURS_PER_DAY) if avg_hours else 0)
        for name, avg_hours in rows
    ]
    stages = [stage for stage in stages if stage.avg_days > 0]
    if not stages:
        return TimeInStageData(
            suggestion="No completed stage transitions found for the selected criteria."
        )

    bottleneck = stages[0]
    for stage in stages[1:]:
        if stage.avg_days > bottleneck.avg_days:
            bottleneck = stage
    bottleneck.is_bottleneck = True

    stages.sort(key=lambda s: s.avg_days, reverse=True)
    return TimeInStageData(
        stages=stages,
        bottleneck_stage=bottleneck.stage_name,
        suggestion=_bottleneck_suggestion(bottleneck.stage_name, bottleneck.avg_days),
    )


# ==================== Sources ===================== #
async def get_source_performance(
    db: Database,
    company_id: int,
    user_id: int,
    role,
    filters: Optional[AnalyticsFilters] = None,
) -> List[SourceData]:
    """Applications and hires per candidate source, best hire rate first."""
    job_filter = build_job_filter(company_id, user_id, role, filters)
    async with db.session() as session:
        rows = (
            await session.execute(
                select(Candidate.source, PipelineStage.name, JobCandidate.updated_at, Job.created_at)
                .select_from(JobCandidate)
                .join(Job, Job.id == JobCandidate.job_id)
                .join(Candidate, Candidate.id == JobCandidate.candidate_id)
                .join(PipelineStage, PipelineStage.id == JobCandidate.current_stage_id)
                .where(*job_filter, *build_date_filter(JobCandidate.applied_at, filters))
                .order_by(JobCandidate.id.asc())
            )
        ).all()

    if not rows:
        return []

    groups: Dict[str, Dict[str, list]] = {}
    for source, stage_name, updated_at, job_created_at in rows:
        group = groups.setdefault(source or "Unknown", {"all": [], "hired": []})
        group["all"].append(updated_at)
        if _is_hired(stage_name):
            group["hired"].append(
                max(0.0, days_between(ensure_aware(job_created_at), ensure_aware(updated_at)))
            )

    total = len(rows)
    results = []
    for source, group in groups.items():
        candidate_count = len(group["all"])
        hire_count = len(group["hired"])
        results.append(
            SourceData(
                source=source,
                candidate_count=candidate_count,
                percentage=_pct(candidate_count, total),
                hire_count=hire_count,
                hire_rate=_pct(hire_count, candidate_count),
                avg_time_to_hire=_round0(sum(group["hired"]) / hire_count) if hire_count else 0,
            )
        )

    results.sort(key=lambda s: s.hire_rate, reverse=True)
    return results


# ==================== Drop-off and rejections ===================== #
async def get_drop_off_analysis(
    db: Database,
    company_id: int,
    user_id: int,
    role,
    filters: Optional[AnalyticsFilters] = None,
) -> DropOffData:
    """
    Exits per stage relative to the applications that reached it.

    An exit is a closed ledger entry. Reach counts both closed entries and
    the applications currently in the stage.
    """
    job_filter = build_job_filter(company_id, user_id, role, filters)
    async with db.session() as session:
        groups, names_by_id = await _stage_groups(session, job_filter)

        exits = (
            await session.execute(
                select(StageHistory.stage_name, StageHistory.job_candidate_id)
                .join(JobCandidate, JobCandidate.id == StageHistory.job_candidate_id)
                .join(Job, Job.id == JobCandidate.job_id)
                .where(
                    *job_filter,
                    StageHistory.exited_at.is_not(None),
                    *build_date_filter(StageHistory.entered_at, filters),
                )
            )
        ).all()

        current = (
            await session.execute(
                select(JobCandidate.id, JobCandidate.current_stage_id)
                .join(Job, Job.id == JobCandidate.job_id)
                .where(*job_filter, *build_date_filter(JobCandidate.applied_at, filters))
            )
        ).all()

    reached: Dict[str, Set[int]] = defaultdict(set)
    exit_counts: Dict[str, int] = defaultdict(int)
    for stage_name, jc_id in exits:
        reached[stage_name].add(jc_id)
        exit_counts[stage_name] += 1
    for jc_id, stage_id in current:
        if stage_id in names_by_id:
            reached[names_by_id[stage_id]].add(jc_id)

    by_stage = [
        StageDropOff(
            stage_name=name,
            drop_off_count=exit_counts.get(name, 0),
            drop_off_percentage=_pct(exit_counts.get(name, 0), len(reached.get(name, ()))),
        )
        for name in groups
    ]

    highest = by_stage[0] if by_stage else None
    for stage in by_stage[1:]:
        if stage.drop_off_percentage > highest.drop_off_percentage:
            highest = stage

    return DropOffData(by_stage=by_stage, highest_drop_off_stage=highest.stage_name if highest else "")


def _normalize_reason(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip().lower()


async def get_rejection_reasons(
    db: Database,
    company_id: int,
    user_id: int,
    role,
    filters: Optional[AnalyticsFilters] = None,
) -> RejectionData:
    """
    Rejection reasons grouped by normalized text.

    Reasons are the comments stored on ledger entries of rejection-like
    stages that the candidate has since left. The most frequent reason comes first and takes the first color.
    """
    job_filter = build_job_filter(company_id, user_id, role, filters)
    async with db.session() as session:
        rows = (
            await session.execute(
                select(StageHistory.stage_name, StageHistory.comment)
                .join(JobCandidate, JobCandidate.id == StageHistory.job_candidate_id)
                .join(Job, Job.id == JobCandidate.job_id)
                .where(
                    *job_filter,
                    StageHistory.comment.is_not(None),
                    StageHistory.exited_at.is_not(None),
                    *build_date_filter(StageHistory.entered_at, filters),
                )
                .order_by(StageHistory.entered_at.asc(), StageHistory.id.asc())
            )
        ).all()

    labels: Dict[str, str] = {}
    reason_counts: Dict[str, int] = defaultdict(int)
    stage_counts: Dict[str, int] = {}
    for stage_name, comment in rows:
        if not is_rejection_stage(stage_name) or not comment.strip():
            continue
        key = _normalize_reason(comment)
        labels.setdefault(key, re.sub(r"\s+", " ", comment).strip())
        reason_counts[key] += 1
        stage_counts[stage_name] = stage_counts.get(stage_name, 0) + 1

    total = sum(reason_counts.values())
    ranked = sorted(reason_counts.items(), key=lambda item: (-item[1], item[0]))
    reasons = [
        RejectionReason(
            reason=labels[key],
            count=count,
            percentage=_pct(count, total),
            color=REJECTION_COLORS[index % len(REJECTION_COLORS)],
        )
        for index, (key, count) in enumerate(ranked)
    ]

    top_stage = ""
    top_count = 0
    for stage_name, count in stage_counts.items():
        if count > top_count:
            top_stage, top_count = stage_name, count

    return RejectionData(reasons=reasons, total_rejections=total, top_stage_for_rejection=top_stage)


# ==================== Offers ===================== #
async def get_offer_acceptance_rate(
    db: Database,
    company_id: int,
    user_id: int,
    role,
    filters: Optional[AnalyticsFilters] = None,
) -> OfferData:
    """
    Share of offers that turned into hires.

    Applications in an Offer stage count as open offers and applications in
    a Hired stage as accepted ones.
    """
    threshold = get_settings().offer_acceptance_threshold
    job_filter = build_job_filter(company_id, user_id, role, filters)
    async with db.session() as session:
        rows = await _offer_applications(session, job_filter, filters)

    if not rows:
        return OfferData()

    def totals(items: Iterable[Tuple]) -> Tuple[int, int]:
        items = list(items)
        return len(items), sum(1 for item in items if _is_hired(item[1]))

    total, accepted = totals(rows)

    by_department: Dict[str, list] = {}
    by_role: Dict[int, list] = {}
    for row in rows:
        by_department.setdefault(row[4], []).append(row)
        by_role.setdefault(row[2], []).append(row)

    department_rows = []
    for department, items in by_department.items():
        dept_total, dept_accepted = totals(items)
        department_rows.append(
            DepartmentOffers(
                department=department,
                acceptance_rate=_pct(dept_accepted, dept_total),
                total_offers=dept_total,
                accepted_offers=dept_accepted,
            )
        )

    role_rows = []
    for job_id, items in by_role.items():
        role_total, role_accepted = totals(items)
        rate = _pct(role_accepted, role_total)
        role_rows.append(
            RoleOffers(
                role_id=job_id,
                role_name=items[0][3],
                acceptance_rate=rate,
                total_offers=role_total,
                accepted_offers=role_accepted,
                is_under_threshold=rate < threshold,
            )
        )

    return OfferData(
        overall=OfferTotals(
            acceptance_rate=_pct(accepted, total), total_offers=total, accepted_offers=accepted
        ),
        by_department=department_rows,
        by_role=role_rows,
    )


# ==================== SLA ===================== #
async def get_sla_status(
    db: Database,
    company_id: int,
    user_id: int,
    role,
    filters: Optional[AnalyticsFilters] = None,
    at: Optional[datetime] = None,
) -> SLAStatusData:
    """
    Classify every active job by its longest-waiting application.

    The wait is compared with the company threshold for that application's
    stage, or the default threshold when the stage has none. ``at_risk``
    starts at the configured share of the threshold; anything over the
    threshold is ``breached``.
    """
    settings = get_settings()
    default_threshold = settings.sla_default_threshold_days
    at_risk_ratio = settings.sla_at_risk_ratio
    at = at or now()

    job_filter = build_job_filter(company_id, user_id, role, filters)
    async with db.session() as session:
        jobs = (
            await session.execute(
                select(Job.id, Job.title)
                .where(*job_filter, Job.status == JobStatus.ACTIVE)
                .order_by(Job.created_at.asc(), Job.id.asc())
            )
        ).all()
        thresholds = await load_thresholds(session, company_id)

        applications = (
            await session.execute(
                select(JobCandidate.id, JobCandidate.job_id, JobCandidate.applied_at, PipelineStage.name)
                .join(PipelineStage, PipelineStage.id == JobCandidate.current_stage_id)
                .where(JobCandidate.job_id.in_([job_id for job_id, _ in jobs]))
            )
        ).all() if jobs else []
        entry_times = await load_open_entry_times(session, [row[0] for row in applications])

    by_job: Dict[int, list] = defaultdict(list)
    for jc_id, job_id, applied_at, stage_name in applications:
        entered_at = entry_times.get(jc_id) or ensure_aware(applied_at)
        elapsed = max(0.0, days_between(entered_at, at))
        threshold = thresholds.get(stage_name.lower(), default_threshold)
        by_job[job_id].append((elapsed, stage_name, threshold))

    summary = SLASummary()
    roles = []
    for job_id, title in jobs:
        waiting = by_job.get(job_id, [])
        if not waiting:
            status, stage_name, elapsed, threshold, breaching = "on_track", None, 0.0, default_threshold, 0
        else:
            elapsed, stage_name, threshold = max(waiting, key=lambda item: item[0])
            breaching = sum(1 for days, _, limit in waiting if days > limit)
            if elapsed > threshold:
                status = "breached"
            elif elapsed >= threshold * at_risk_ratio:
                status = "at_risk"
            else:
                status = "on_track"

        setattr(summary, status, getattr(summary, status) + 1)
        roles.append(
            RoleSLAStatus(
                role_id=job_id,
                role_name=title,
                status=status,
                stage_name=stage_name,
                days_in_stage=_round1(elapsed),
                threshold=threshold,
                candidates_breaching=breaching,
            )
        )

    return SLAStatusData(summary=summary, roles=roles)


# ==================== Team performance ===================== #
async def get_recruiter_productivity(
    db: Database,
    company_id: int,
    user_id: int,
    role,
    filters: Optional[AnalyticsFilters] = None,
) -> List[RecruiterData]:
    """
    Per-recruiter activity within the window.

    ``candidates_added`` counts applications the recruiter created,
    ``interviews_scheduled`` interviews they booked, and ``offers_made`` /
    ``hires`` the moves into Offer / Hired stages they performed.
    """
    filters = filters or AnalyticsFilters()
    job_filter = build_job_filter(company_id, user_id, role, filters)
    scoped_jobs = _scoped_job_ids(job_filter)

    recruiter_query = select(User.id, User.name).where(
        User.company_id == company_id, User.role == UserRole.RECRUITER
    )
    if _normalize_role(role) == UserRole.RECRUITER:
        recruiter_query = recruiter_query.where(User.id == user_id)
    elif filters.recruiter_id:
        recruiter_query = recruiter_query.where(User.id == filters.recruiter_id)

    async with db.session() as session:
        recruiters = (await session.execute(recruiter_query.order_by(User.name.asc()))).all()
        if not recruiters:
            return []
        recruiter_ids = [rid for rid, _ in recruiters]

        active_roles = dict(
            (
                await session.execute(
                    select(Job.assigned_recruiter_id, func.count())
                    .where(
                        *job_filter,
                        Job.status == JobStatus.ACTIVE,
                        Job.assigned_recruiter_id.in_(recruiter_ids),
                    )
                    .group_by(Job.assigned_recruiter_id)
                )
            ).all()
        )
        added = dict(
            (
                await session.execute(
                    select(JobCandidate.added_by, func.count())
                    .where(
                        JobCandidate.job_id.in_(scoped_jobs),
                        JobCandidate.added_by.in_(recruiter_ids),
                        *build_date_filter(JobCandidate.applied_at, filters),
                    )
                    .group_by(JobCandidate.added_by)
                )
            ).all()
        )
        scheduled = dict(
            (
                await session.execute(
                    select(Interview.scheduled_by, func.count())
                    .join(JobCandidate, JobCandidate.id == Interview.job_candidate_id)
                    .where(
                        JobCandidate.job_id.in_(scoped_jobs),
                        Interview.scheduled_by.in_(recruiter_ids),
                        *build_date_filter(Interview.created_at, filters),
                    )
                    .group_by(Interview.scheduled_by)
                )
            ).all()
        )
        moves = (
            await session.execute(
                select(StageHistory.moved_by, func.lower(StageHistory.stage_name), func.count())
                .join(JobCandidate, JobCandidate.id == StageHistory.job_candidate_id)
                .where(
                    JobCandidate.job_id.in_(scoped_jobs),
                    StageHistory.moved_by.in_(recruiter_ids),
                    func.lower(StageHistory.stage_name).in_([OFFER_STAGE.lower(), HIRED_STAGE.lower()]),
                    *build_date_filter(StageHistory.entered_at, filters),
                )
                .group_by(StageHistory.moved_by, func.lower(StageHistory.stage_name))
            )
        ).all()

    move_counts: Dict[Tuple[int, str], int] = {(mover, stage): count for mover, stage, count in moves}
    results = [
        RecruiterData(
            id=rid,
            name=name,
            active_roles=active_roles.get(rid, 0),
            candidates_added=added.get(rid, 0),
            interviews_scheduled=scheduled.get(rid, 0),
            offers_made=move_counts.get((rid, OFFER_STAGE.lower()), 0),
            hires=move_counts.get((rid, HIRED_STAGE.lower()), 0),
        )
        for rid, name in recruiters
    ]
    results.sort(key=lambda r: (-r.hires, -r.offers_made, r.name))
    return results


async def get_panel_performance(
    db: Database,
    company_id: int,
    user_id: int,
    role,
    filters: Optional[AnalyticsFilters] = None,
) -> List[PanelData]:
    """
    Per-panel-member interview load, feedback and outcomes.

    Interviews are windowed by ``scheduled_at``. ``offers_made`` and
    ``hires`` count interviewed applications that reached an Offer or Hired
    stage. ``avg_feedback_hours`` is the mean of submitted_at minus
    scheduled_at over the member's feedback.
    """
    job_filter = build_job_filter(company_id, user_id, role, filters)
    scoped_jobs = _scoped_job_ids(job_filter)

    async with db.session() as session:
        assignments = (
            await session.execute(
                select(InterviewPanel.user_id, Interview.id, Interview.job_candidate_id, Interview.scheduled_at)
                .join(Interview, Interview.id == InterviewPanel.interview_id)
                .join(JobCandidate, JobCandidate.id == Interview.job_candidate_id)
                .where(
                    JobCandidate.job_id.in_(scoped_jobs),
                    *build_date_filter(Interview.scheduled_at, filters),
                )
            )
        ).all()
        if not assignments:
            return []

        interview_ids = {interview_id for _, interview_id, _, _ in assignments}
        feedback = (
            await session.execute(
                select(InterviewFeedback.panel_member_id, InterviewFeedback.interview_id, InterviewFeedback.submitted_at)
                .where(InterviewFeedback.interview_id.in_(list(interview_ids)))
            )
        ).all()

        job_candidate_ids = {jc_id for _, _, jc_id, _ in assignments}
        current = (
            await session.execute(
                select(JobCandidate.id, PipelineStage.name)
                .join(PipelineStage, PipelineStage.id == JobCandidate.current_stage_id)
                .where(JobCandidate.id.in_(list(job_candidate_ids)))
            )
        ).all()
        history = (
            await session.execute(
                select(StageHistory.job_candidate_id, StageHistory.stage_name)
                .where(StageHistory.job_candidate_id.in_(list(job_candidate_ids)))
            )
        ).all()

        member_ids = {member for member, _, _, _ in assignments}
        names = dict(
            (await session.execute(select(User.id, User.name).where(User.id.in_(list(member_ids))))).all()
        )

    reached: Dict[int, Set[str]] = defaultdict(set)
    for jc_id, stage_name in list(current) + list(history):
        reached[jc_id].add(stage_name.lower())

    scheduled_at = {interview_id: ensure_aware(at) for _, interview_id, _, at in assignments}
    per_member: Dict[int, Dict] = {}
    for member, interview_id, jc_id, _ in assignments:
        stats = per_member.setdefault(
            member, {"interviews": 0, "applications": set(), "turnaround": []}
        )
        stats["interviews"] += 1
        stats["applications"].add(jc_id)

    for member, interview_id, submitted_at in feedback:
        if member in per_member:
            per_member[member]["turnaround"].append(
                hours_between(scheduled_at[interview_id], ensure_aware(submitted_at))
            )

    results = []
    for member, stats in per_member.items():
        turnaround = stats["turnaround"]
        results.append(
            PanelData(
                id=member,
                name=names.get(member, "Unknown"),
                interviews_assigned=stats["interviews"],
                feedback_submitted=len(turnaround),
                offers_made=sum(1 for jc in stats["applications"] if OFFER_STAGE.lower() in reached[jc]),
                hires=sum(1 for jc in stats["applications"] if HIRED_STAGE.lower() in reached[jc]),
                avg_feedback_hours=_round1(sum(turnaround) / len(turnaround)) if turnaround else 0,
            )
        )

    results.sort(key=lambda p: (-p.interviews_assigned, p.name))
    return results
