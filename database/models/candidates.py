"""
Candidates Module

Candidate records, their applications to jobs, and the append-only
activity timeline.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    BigInteger,
    Integer,
    Float,
    DateTime,
    Text,
    JSON,
    Enum as SQLEnum,
    Index,
    UniqueConstraint,
)
from database.engine import Base, BigIntPK
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.jobs import Job, PipelineStage


# ==================== Enums ===================== #
class ActivityType(str, PyEnum):
    """Kinds of timeline entries."""

    STAGE_CHANGE = "stage_change"
    SCORE_UPDATED = "score_updated"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    ADDED_TO_JOB = "added_to_job"
    NOTE_ADDED = "note_added"


# ==================== Candidate Model ===================== #
class Candidate(Base):
    """A person record scoped to one company."""

    __tablename__ = "candidates"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    company_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Contact
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone: Mapped[str | None] = mapped_column(String(50))
    location: Mapped[str] = mapped_column(String(255), nullable=False)

    # Profile
    experience_years: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    current_company: Mapped[str | None] = mapped_column(String(255))
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    skills: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    education: Mapped[str | None] = mapped_column(String(255))
    salary_expectation: Mapped[float | None] = mapped_column(Float)

    # Scores (0-100)
    score: Mapped[int | None] = mapped_column(Integer)
    domain_score: Mapped[int | None] = mapped_column(Integer)
    industry_score: Mapped[int | None] = mapped_column(Integer)
    key_responsibilities_score: Mapped[int | None] = mapped_column(Integer)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    applications: Mapped[list["JobCandidate"]] = relationship(
        "JobCandidate", back_populates="candidate", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_candidate_company_source", "company_id", "source"),
        Index("idx_candidate_company_score", "company_id", "score"),
    )

    def __repr__(self) -> str:
        return f"<Candidate(id={self.id}, email={self.email})>"


# ==================== JobCandidate Model ===================== #
class JobCandidate(Base):
    """
    A candidate's application to one job.

    ``current_stage_id`` together with the stage history is the only record
    of where the application stands.
    """

    __tablename__ = "job_candidates"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    job_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    candidate_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("candidates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    current_stage_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("pipeline_stages.id"), nullable=False, index=True
    )
    added_by: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL")
    )
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    candidate: Mapped["Candidate"] = relationship(
        "Candidate", back_populates="applications"
    )
    job: Mapped["Job"] = relationship("Job")
    current_stage: Mapped["PipelineStage"] = relationship("PipelineStage")

    __table_args__ = (
        UniqueConstraint("job_id", "candidate_id", name="uq_job_candidate"),
        Index("idx_job_candidate_stage", "job_id", "current_stage_id"),
    )


# ==================== CandidateActivity Model ===================== #
class CandidateActivity(Base):
    """Timeline entry. Rows are only ever inserted."""

    __tablename__ = "candidate_activities"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    candidate_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("candidates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    job_candidate_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("job_candidates.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL")
    )
    activity_type: Mapped[ActivityType] = mapped_column(
        SQLEnum(ActivityType, native_enum=False, length=50), nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    activity_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )

    __table_args__ = (
        Index("idx_activity_candidate_created", "candidate_id", "created_at"),
    )
