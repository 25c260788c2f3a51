"""Interview and feedback schemas."""

from datetime import datetime
from typing import Optional
from pydantic import Field

from api.schemas.common import CamelModel
from database.models.interviews import InterviewMode, InterviewStatus, Recommendation


class InterviewCreate(CamelModel):
    job_candidate_id: int
    scheduled_at: datetime
    duration_minutes: int = Field(default=60, gt=0, le=480)
    mode: InterviewMode = InterviewMode.VIDEO
    meeting_link: Optional[str] = Field(None, max_length=2048)
    location: Optional[str] = Field(None, max_length=255)
    panel_member_ids: list[int] = Field(min_length=1)


class PanelMemberResponse(CamelModel):
    user_id: int


class InterviewResponse(CamelModel):
    id: int
    job_candidate_id: int
    scheduled_at: datetime
    duration_minutes: int
    mode: InterviewMode
    meeting_link: Optional[str] = None
    location: Optional[str] = None
    status: InterviewStatus
    scheduled_by: Optional[int] = None
    panel: list[PanelMemberResponse] = Field(default_factory=list)


class Rating(CamelModel):
    criterion: str = Field(min_length=1, max_length=100)
    score: int


class FeedbackCreate(CamelModel):
    """Range and presence checks run in the service."""

    ratings: list[Rating] = Field(default_factory=list)
    overall_comments: str = ""
    recommendation: str


class FeedbackResponse(CamelModel):
    id: int
    interview_id: int
    panel_member_id: int
    ratings: list[Rating]
    overall_comments: str
    recommendation: Recommendation
    submitted_at: datetime


class PendingFeedback(CamelModel):
    """A past interview still missing scorecards."""

    interview_id: int
    candidate_name: str
    job_title: str
    scheduled_at: datetime
    feedback_percentage: int
    pending_count: int
