"""
Pipelines Module

Stage history ledger: one row per visit of an application to a stage.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    ForeignKey,
    BigInteger,
    Float,
    DateTime,
    Text,
    Index,
)
from database.engine import Base, BigIntPK
from core.utils.datetime import now
from datetime import datetime


# ==================== StageHistory Model ===================== #
class StageHistory(Base):
    """
    Append-only record of time spent in a stage.

    ``exited_at`` is null while the application still sits in the stage.
    At most one open row per application is kept by the transition code;
    the schema does not enforce it. ``stage_name`` is copied at entry time
    so analytics survive stage renames and deletes.
    """

    __tablename__ = "stage_history"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    job_candidate_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("job_candidates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    stage_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("pipeline_stages.id", ondelete="SET NULL")
    )
    stage_name: Mapped[str] = mapped_column(String(100), nullable=False)
    entered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    exited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    duration_hours: Mapped[float | None] = mapped_column(Float)
    comment: Mapped[str | None] = mapped_column(Text)
    moved_by: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL")
    )

    __table_args__ = (
        Index("idx_stage_history_open", "job_candidate_id", "exited_at"),
        Index("idx_stage_history_name", "stage_name"),
    )

    def __repr__(self) -> str:
        return (
            f"<StageHistory(job_candidate_id={self.job_candidate_id}, "
            f"stage={self.stage_name}, exited_at={self.exited_at})>"
        )
