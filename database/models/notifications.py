"""
Notifications Module

In-app notifications. Delivery beyond the inbox (email, push) is handled
elsewhere.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    BigInteger,
    DateTime,
    Text,
    Enum as SQLEnum,
    Index,
)
from database.engine import Base, BigIntPK
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum


# ==================== Enums ===================== #
class NotificationType(str, PyEnum):
    STAGE_CHANGE = "stage_change"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    FEEDBACK_PENDING = "feedback_pending"
    SLA_BREACH = "sla_breach"
    OFFER_PENDING = "offer_pending"


# ==================== Notification Model ===================== #
class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[NotificationType] = mapped_column(
        SQLEnum(NotificationType, native_enum=False, length=50), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(50))
    entity_id: Mapped[int | None] = mapped_column(BigInteger)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )

    __table_args__ = (
        Index("idx_notification_user_unread", "user_id", "is_read"),
    )
