"""SLA configuration and breach schemas."""

from datetime import datetime
from pydantic import Field

from api.schemas.common import CamelModel


class SLAConfigUpsert(CamelModel):
    stage_name: str = Field(min_length=1, max_length=100)
    threshold_days: int


class SLAConfigResponse(CamelModel):
    id: int
    company_id: int
    stage_name: str
    threshold_days: int
    updated_at: datetime


class SLABreach(CamelModel):
    job_candidate_id: int
    candidate_id: int
    candidate_name: str
    job_id: int
    job_title: str
    stage_name: str
    entered_at: datetime
    days_in_stage: int
    threshold_days: int
    days_overdue: int
