"""Notification schemas."""

from datetime import datetime
from typing import Optional
from pydantic import Field

from api.schemas.common import CamelModel
from database.models.notifications import NotificationType


class NotificationResponse(CamelModel):
    id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    is_read: bool
    created_at: datetime


class NotificationList(CamelModel):
    items: list[NotificationResponse] = Field(default_factory=list)
    unread_count: int = 0
