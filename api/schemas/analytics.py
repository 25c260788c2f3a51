"""Analytics filter and summary schemas."""

from datetime import datetime
from typing import Literal, Optional
from pydantic import Field, field_validator, model_validator

from api.schemas.common import CamelModel
from core.utils.datetime import ensure_aware


SLAStatus = Literal["on_track", "at_risk", "breached"]


class AnalyticsFilters(CamelModel):
    """Optional narrowing applied on top of role scoping."""

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    department: Optional[str] = None
    location: Optional[str] = None
    job_id: Optional[int] = None
    recruiter_id: Optional[int] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def assume_utc(cls, v):
        """Bare dates and naive datetimes are read as UTC."""
        return ensure_aware(v)

    @model_validator(mode="after")
    def check_range(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("startDate must not be after endDate")
        return self


# ==================== KPI ===================== #
class KPIMetrics(CamelModel):
    active_roles: int = 0
    active_candidates: int = 0
    interviews_today: int = 0
    interviews_this_week: int = 0
    offers_pending: int = 0
    total_hires: int = 0
    avg_time_to_fill: float = 0
    offer_acceptance_rate: float = 0
    roles_on_track: int = 0
    roles_at_risk: int = 0
    roles_breached: int = 0


# ==================== Funnel ===================== #
class FunnelStage(CamelModel):
    id: int
    name: str
    count: int
    percentage: float
    conversion_to_next: float
    avg_days_in_stage: float


class FunnelData(CamelModel):
    stages: list[FunnelStage] = Field(default_factory=list)
    total_applicants: int = 0
    total_hired: int = 0
    overall_conversion_rate: float = 0


# ==================== Time ===================== #
class TimeToFillOverall(CamelModel):
    average: float = 0
    median: float = 0
    target: int


class DepartmentTimeToFill(CamelModel):
    department: str
    average: float
    count: int


class RoleTimeToFill(CamelModel):
    role_id: int
    role_name: str
    average: float
    is_over_target: bool


class TimeToFillData(CamelModel):
    overall: TimeToFillOverall
    by_department: list[DepartmentTimeToFill] = Field(default_factory=list)
    by_role: list[RoleTimeToFill] = Field(default_factory=list)


class StageDuration(CamelModel):
    stage_name: str
    avg_days: float
    is_bottleneck: bool = False


class TimeInStageData(CamelModel):
    stages: list[StageDuration] = Field(default_factory=list)
    bottleneck_stage: str = ""
    suggestion: str = ""


# ==================== Sources ===================== #
class SourceData(CamelModel):
    source: str
    candidate_count: int
    percentage: float
    hire_count: int
    hire_rate: float
    avg_time_to_hire: float


# ==================== Drop-off and rejections ===================== #
class StageDropOff(CamelModel):
    stage_name: str
    drop_off_count: int
    drop_off_percentage: float


class DropOffData(CamelModel):
    by_stage: list[StageDropOff] = Field(default_factory=list)
    highest_drop_off_stage: str = ""


class RejectionReason(CamelModel):
    reason: str
    count: int
    percentage: float
    color: str


class RejectionData(CamelModel):
    reasons: list[RejectionReason] = Field(default_factory=list)
    total_rejections: int = 0
    top_stage_for_rejection: str = ""


# ==================== Offers ===================== #
class OfferTotals(CamelModel):
    acceptance_rate: float = 0
    total_offers: int = 0
    accepted_offers: int = 0


class DepartmentOffers(OfferTotals):
    department: str


class RoleOffers(OfferTotals):
    role_id: int
    role_name: str
    is_under_threshold: bool


class OfferData(CamelModel):
    overall: OfferTotals = Field(default_factory=OfferTotals)
    by_department: list[DepartmentOffers] = Field(default_factory=list)
    by_role: list[RoleOffers] = Field(default_factory=list)


# ==================== SLA ===================== #
class SLASummary(CamelModel):
    on_track: int = 0
    at_risk: int = 0
    breached: int = 0


class RoleSLAStatus(CamelModel):
    role_id: int
    role_name: str
    status: SLAStatus
    stage_name: Optional[str] = None
    days_in_stage: float = 0
    threshold: int
    candidates_breaching: int = 0


class SLAStatusData(CamelModel):
    summary: SLASummary = Field(default_factory=SLASummary)
    roles: list[RoleSLAStatus] = Field(default_factory=list)


# ==================== Team performance ===================== #
class RecruiterData(CamelModel):
    id: int
    name: str
    active_roles: int = 0
    candidates_added: int = 0
    interviews_scheduled: int = 0
    offers_made: int = 0
    hires: int = 0


class PanelData(CamelModel):
    id: int
    name: str
    interviews_assigned: int = 0
    feedback_submitted: int = 0
    offers_made: int = 0
    hires: int = 0
    avg_feedback_hours: float = 0
