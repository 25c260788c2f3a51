"""ORM models. Importing this package registers every table on Base.metadata."""

from database.models.companies import Company, User, UserRole
from database.models.jobs import Job, JobStatus, PipelineStage
from database.models.candidates import (
    ActivityType,
    Candidate,
    CandidateActivity,
    JobCandidate,
)
from database.models.pipelines import StageHistory
from database.models.interviews import (
    Interview,
    InterviewFeedback,
    InterviewMode,
    InterviewPanel,
    InterviewStatus,
    Recommendation,
)
from database.models.sla import SLAConfig
from database.models.notifications import Notification, NotificationType

__all__ = [
    "Company",
    "User",
    "UserRole",
    "Job",
    "JobStatus",
    "PipelineStage",
    "ActivityType",
    "Candidate",
    "CandidateActivity",
    "JobCandidate",
    "StageHistory",
    "Interview",
    "InterviewFeedback",
    "InterviewMode",
    "InterviewPanel",
    "InterviewStatus",
    "Recommendation",
    "SLAConfig",
    "Notification",
    "NotificationType",
]
