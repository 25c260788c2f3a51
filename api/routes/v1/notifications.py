"""In-app notification endpoints for the calling user."""

from fastapi import APIRouter, Depends, Path, Query

from api.dependencies import get_database
from api.schemas.notifications import NotificationList, NotificationResponse
from api.services import notifications as notification_service
from core.middleware.authentication import get_current_user
from core.security import CurrentUser
from database.engine import Database

router = APIRouter(prefix="/notifications")


@router.get("", response_model=NotificationList, summary="List Notifications")
async def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(50, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return await notification_service.get_notifications(
        db, user.id, unread_only=unread_only, limit=limit
    )


@router.post("/read-all", summary="Mark All Read")
async def mark_all_read(
    user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    updated = await notification_service.mark_all_as_read(db, user.id)
    return {"updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationResponse, summary="Mark Read")
async def mark_read(
    notification_id: int = Path(..., description="Notification ID"),
    user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return await notification_service.mark_as_read(db, notification_id, user.id)
