"""
Jobs Module

Job requisitions and the ordered pipeline stages each job owns.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    BigInteger,
    Integer,
    DateTime,
    Enum as SQLEnum,
    Index,
    JSON,
)
from database.engine import Base, BigIntPK
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.companies import Company


# ==================== Job Enums ===================== #
class JobStatus(str, PyEnum):
    """Job requisition status. Closed jobs are kept, never deleted."""

    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"


# ==================== Job Model ===================== #
class Job(Base):
    """A requisition owning an ordered collection of pipeline stages."""

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    company_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Basic info
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    department: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255))
    openings: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    # {"enabled": bool, "rules": [...]}, evaluated when a candidate joins the job
    auto_rejection_rules: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(JobStatus, native_enum=False, length=50),
        nullable=False,
        default=JobStatus.ACTIVE,
        index=True,
    )

    # Ownership
    assigned_recruiter_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    # Relationships
    company: Mapped["Company"] = relationship("Company", back_populates="jobs")
    stages: Mapped[list["PipelineStage"]] = relationship(
        "PipelineStage",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="PipelineStage.position",
    )

    __table_args__ = (
        Index("idx_job_company_status", "company_id", "status"),
        Index("idx_job_company_department", "company_id", "department"),
    )

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, title={self.title}, status={self.status})>"


# ==================== PipelineStage Model ===================== #
class PipelineStage(Base):
    """
    One step of a job's hiring funnel.

    Positions within a job form the contiguous sequence 0..N-1. They are
    renumbered row by row inside one transaction, which is why (job_id,
    position) is indexed but not declared unique.
    """

    __tablename__ = "pipeline_stages"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    job_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_mandatory: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    parent_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("pipeline_stages.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )

    job: Mapped["Job"] = relationship("Job", back_populates="stages")

    __table_args__ = (
        Index("idx_stage_job_position", "job_id", "position"),
        Index("idx_stage_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<PipelineStage(id={self.id}, name={self.name}, position={self.position})>"
