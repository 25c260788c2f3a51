"""
Hiring analytics endpoints.

Every endpoint accepts the same optional filters (startDate, endDate,
department, location, jobId, recruiterId). Recruiters are scoped to their
assigned jobs by the service, so authentication is the only gate here.
"""

from typing import List

from fastapi import APIRouter, Depends

from api.dependencies import get_analytics_filters, get_database
from api.schemas.analytics import (
    AnalyticsFilters,
    DropOffData,
    FunnelData,
    KPIMetrics,
    OfferData,
    PanelData,
    RecruiterData,
    RejectionData,
    SLAStatusData,
    SourceData,
    TimeInStageData,
    TimeToFillData,
)
from api.services import analytics as analytics_service
from core.middleware.authentication import get_current_user
from core.security import CurrentUser
from database.engine import Database

router = APIRouter(prefix="/analytics")


@router.get("/kpis", response_model=KPIMetrics, summary="Dashboard KPIs")
async def get_kpis(
    filters: AnalyticsFilters = Depends(get_analytics_filters),
    user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return await analytics_service.get_kpi_metrics(db, user.company_id, user.id, user.role, filters)


@router.get("/funnel", response_model=FunnelData, summary="Pipeline Funnel")
async def get_funnel(
    filters: AnalyticsFilters = Depends(get_analytics_filters),
    user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return await analytics_service.get_funnel_analytics(db, user.company_id, user.id, user.role, filters)


@router.get("/time-to-fill", response_model=TimeToFillData, summary="Time To Fill")
async def get_time_to_fill(
    filters: AnalyticsFilters = Depends(get_analytics_filters),
    user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return await analytics_service.get_time_to_fill(db, user.company_id, user.id, user.role, filters)


@router.get("/time-in-stage", response_model=TimeInStageData, summary="Time In Stage")
async def get_time_in_stage(
    filters: AnalyticsFilters = Depends(get_analytics_filters),
    user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return await analytics_service.get_time_in_stage(db, user.company_id, user.id, user.role, filters)


@router.get("/sources", response_model=List[SourceData], summary="Source Performance")
async def get_sources(
    filters: AnalyticsFilters = Depends(get_analytics_filters),
    user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return await analytics_service.get_source_performance(db, user.company_id, user.id, user.role, filters)


@router.get("/drop-off", response_model=DropOffData, summary="Stage Drop-off")
async def get_drop_off(
    filters: AnalyticsFilters = Depends(get_analytics_filters),
    user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return await analytics_service.get_drop_off_analysis(db, user.company_id, user.id, user.role, filters)


@router.get("/rejection-reasons", response_model=RejectionData, summary="Rejection Reasons")
async def get_rejection_reasons(
    filters: AnalyticsFilters = Depends(get_analytics_filters),
    user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return await analytics_service.get_rejection_reasons(db, user.company_id, user.id, user.role, filters)


@router.get("/offer-acceptance", response_model=OfferData, summary="Offer Acceptance")
async def get_offer_acceptance(
    filters: AnalyticsFilters = Depends(get_analytics_filters),
    user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return await analytics_service.get_offer_acceptance_rate(db, user.company_id, user.id, user.role, filters)


@router.get("/sla-status", response_model=SLAStatusData, summary="SLA Status")
async def get_sla_status(
    filters: AnalyticsFilters = Depends(get_analytics_filters),
    user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return await analytics_service.get_sla_status(db, user.company_id, user.id, user.role, filters)


@router.get("/recruiters", response_model=List[RecruiterData], summary="Recruiter Productivity")
async def get_recruiters(
    filters: AnalyticsFilters = Depends(get_analytics_filters),
    user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return await analytics_service.get_recruiter_productivity(db, user.company_id, user.id, user.role, filters)


@router.get("/panel", response_model=List[PanelData], summary="Panel Performance")
async def get_panel(
    filters: AnalyticsFilters = Depends(get_analytics_filters),
    user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return await analytics_service.get_panel_performance(db, user.company_id, user.id, user.role, filters)
