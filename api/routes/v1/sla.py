"""
SLA configuration endpoints.

Reading thresholds and breaches needs settings:read; changing them needs
settings:update.
"""

from typing import List

from fastapi import APIRouter, Depends, Path, status

from api.dependencies import get_database
from api.schemas.sla import SLABreach, SLAConfigResponse, SLAConfigUpsert
from api.services import sla as sla_service
from core.middleware.authorization import Permission, require_permission
from core.security import CurrentUser
from database.engine import Database

router = APIRouter(prefix="/sla")


@router.get("/configs", response_model=List[SLAConfigResponse], summary="List SLA Thresholds")
async def list_configs(
    user: CurrentUser = Depends(require_permission(Permission.SETTINGS_READ)),
    db: Database = Depends(get_database),
):
    return await sla_service.get_sla_configs(db, user.company_id)


@router.put("/configs", response_model=SLAConfigResponse, summary="Set SLA Threshold")
async def upsert_config(
    body: SLAConfigUpsert,
    user: CurrentUser = Depends(require_permission(Permission.SETTINGS_UPDATE)),
    db: Database = Depends(get_database),
):
    return await sla_service.upsert_sla_config(
        db, user.company_id, body.stage_name, body.threshold_days
    )


@router.delete(
    "/configs/{stage_name}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove SLA Threshold",
)
async def delete_config(
    stage_name: str = Path(..., description="Stage name, case-insensitive"),
    user: CurrentUser = Depends(require_permission(Permission.SETTINGS_UPDATE)),
    db: Database = Depends(get_database),
):
    await sla_service.delete_sla_config(db, user.company_id, stage_name)


@router.get("/breaches", response_model=List[SLABreach], summary="Current SLA Breaches")
async def list_breaches(
    user: CurrentUser = Depends(require_permission(Permission.SETTINGS_READ)),
    db: Database = Depends(get_database),
):
    return await sla_service.check_sla_breaches(db, user.company_id)


@router.post("/breaches/notify", summary="Notify SLA Breaches")
async def notify_breaches(
    user: CurrentUser = Depends(require_permission(Permission.SETTINGS_UPDATE)),
    db: Database = Depends(get_database),
):
    sent = await sla_service.notify_sla_breaches(db, user.company_id)
    return {"notificationsSent": sent}
