"""
Interviews Module

Interview scheduling, panel membership and per-panelist feedback.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    BigInteger,
    Integer,
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
    from database.models.candidates import JobCandidate


# ==================== Enums ===================== #
class InterviewStatus(str, PyEnum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InterviewMode(str, PyEnum):
    VIDEO = "video"
    PHONE = "phone"
    IN_PERSON = "in_person"


class Recommendation(str, PyEnum):
    """Panel member's hiring recommendation."""

    STRONG_HIRE = "strong_hire"
    HIRE = "hire"
    NO_HIRE = "no_hire"
    STRONG_NO_HIRE = "strong_no_hire"


# ==================== Interview Model ===================== #
class Interview(Base):
    """An interview round for one application."""

    __tablename__ = "interviews"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    job_candidate_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("job_candidates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    scheduled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    duration_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    mode: Mapped[InterviewMode] = mapped_column(
        SQLEnum(InterviewMode, native_enum=False, length=50),
        nullable=False,
        default=InterviewMode.VIDEO,
    )
    meeting_link: Mapped[str | None] = mapped_column(String(2048))
    location: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[InterviewStatus] = mapped_column(
        SQLEnum(InterviewStatus, native_enum=False, length=50),
        nullable=False,
        default=InterviewStatus.SCHEDULED,
    )
    scheduled_by: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )

    job_candidate: Mapped["JobCandidate"] = relationship("JobCandidate")
    panel: Mapped[list["InterviewPanel"]] = relationship(
        "InterviewPanel", cascade="all, delete-orphan"
    )
    feedback: Mapped[list["InterviewFeedback"]] = relationship(
        "InterviewFeedback", cascade="all, delete-orphan"
    )


# ==================== InterviewPanel Model ===================== #
class InterviewPanel(Base):
    """Membership of a user on an interview panel."""

    __tablename__ = "interview_panels"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    interview_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("interviews.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("interview_id", "user_id", name="uq_interview_panel_member"),
    )


# ==================== InterviewFeedback Model ===================== #
class InterviewFeedback(Base):
    """Scorecard submitted by one panel member."""

    __tablename__ = "interview_feedback"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    interview_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("interviews.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    panel_member_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # [{"criterion": "Communication", "score": 4}, ...]
    ratings: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    overall_comments: Mapped[str] = mapped_column(Text, nullable=False)
    recommendation: Mapped[Recommendation] = mapped_column(
        SQLEnum(Recommendation, native_enum=False, length=50), nullable=False
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )

    __table_args__ = (
        UniqueConstraint(
            "interview_id", "panel_member_id", name="uq_interview_feedback_member"
        ),
        Index("idx_feedback_member_submitted", "panel_member_id", "submitted_at"),
    )
