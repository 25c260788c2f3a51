"""Candidate, application, stage movement and scoring schemas."""

from datetime import datetime
from typing import Any, Optional
from pydantic import EmailStr, Field, field_validator

from api.schemas.common import CamelModel
from database.models.candidates import ActivityType


Score = Optional[int]


class CandidateBase(CamelModel):
    """Base candidate schema."""

    name: str = Field(min_length=1, max_length=255, description="Full name")
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)
    location: str = Field(min_length=1, max_length=255)
    experience_years: float = Field(default=0, ge=0)
    current_company: Optional[str] = Field(None, max_length=255)
    source: str = Field(min_length=1, max_length=100, description="Where the candidate came from")
    skills: list[str] = Field(default_factory=list)
    education: Optional[str] = Field(None, max_length=255)
    salary_expectation: Optional[float] = Field(None, ge=0)

    @field_validator("name", "location", "source", mode="before")
    @classmethod
    def strip_text(cls, v):
        """Strip whitespace from required text fields."""
        if isinstance(v, str):
            return v.strip()
        return v


class CandidateCreate(CandidateBase):
    score: Score = Field(None, ge=0, le=100)
    domain_score: Score = Field(None, ge=0, le=100)
    industry_score: Score = Field(None, ge=0, le=100)
    key_responsibilities_score: Score = Field(None, ge=0, le=100)


class CandidateUpdate(CamelModel):
    """Partial update. Scores go through the score endpoint."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    experience_years: Optional[float] = Field(None, ge=0)
    current_company: Optional[str] = Field(None, max_length=255)
    source: Optional[str] = Field(None, min_length=1, max_length=100)
    skills: Optional[list[str]] = None
    education: Optional[str] = Field(None, max_length=255)
    salary_expectation: Optional[float] = Field(None, ge=0)


class CandidateResponse(CandidateBase):
    id: int
    company_id: int
    email: str
    score: Score = None
    domain_score: Score = None
    industry_score: Score = None
    key_responsibilities_score: Score = None
    created_at: datetime
    updated_at: datetime


class ScoreUpdateRequest(CamelModel):
    """Score write. Omitted scores keep their stored value."""

    score: Score = Field(None, ge=0, le=100)
    domain_score: Score = Field(None, ge=0, le=100)
    industry_score: Score = Field(None, ge=0, le=100)
    key_responsibilities_score: Score = Field(None, ge=0, le=100)


class AddToJobRequest(CamelModel):
    job_id: int
    stage_id: Optional[int] = Field(None, description="Defaults to the first stage")


class JobCandidateResponse(CamelModel):
    id: int
    job_id: int
    candidate_id: int
    current_stage_id: int
    applied_at: datetime
    updated_at: datetime


class StageChangeRequest(CamelModel):
    stage_id: int
    rejection_reason: Optional[str] = Field(None, max_length=2000)
    comment: Optional[str] = Field(None, max_length=2000)


class BulkMoveRequest(CamelModel):
    job_id: int
    job_candidate_ids: list[int] = Field(min_length=1)
    target_stage_id: int
    comment: Optional[str] = Field(None, max_length=2000)


class StageChangeMetadata(CamelModel):
    """Structured payload stored on ``stage_change`` activities."""

    from_stage_id: Optional[int] = None
    from_stage_name: Optional[str] = None
    to_stage_id: int
    to_stage_name: str
    rejection_reason: Optional[str] = None
    comment: Optional[str] = None
    bulk_move: bool = False
    auto_rejected: bool = False
    triggered_rule: Optional[dict[str, Any]] = None


class ScoreUpdateMetadata(CamelModel):
    """Structured payload stored on ``score_updated`` activities."""

    old_score: Score = None
    new_score: Score = None
    domain_score: Score = None
    industry_score: Score = None
    key_responsibilities_score: Score = None


class StageChangeResult(CamelModel):
    job_candidate: JobCandidateResponse
    from_stage: Optional[str] = None
    to_stage: str


class BulkMoveFailure(CamelModel):
    job_candidate_id: int
    candidate_name: Optional[str] = None
    error: str


class BulkMoveResult(CamelModel):
    """
    Partial-failure report. Candidates already at the target stage are
    counted in ``skipped_count`` only.
    """

    success: bool
    moved_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    failures: list[BulkMoveFailure] = Field(default_factory=list)


class ActivityResponse(CamelModel):
    id: int
    candidate_id: int
    job_candidate_id: Optional[int] = None
    user_id: Optional[int] = None
    activity_type: ActivityType
    description: str
    metadata: Optional[dict[str, Any]] = Field(
        None, validation_alias="activity_metadata"
    )
    created_at: datetime


class StageHistoryResponse(CamelModel):
    id: int
    job_candidate_id: int
    stage_id: Optional[int] = None
    stage_name: str
    entered_at: datetime
    exited_at: Optional[datetime] = None
    duration_hours: Optional[float] = None
    comment: Optional[str] = None
    moved_by: Optional[int] = None
