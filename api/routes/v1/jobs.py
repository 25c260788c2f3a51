"""
Job and pipeline stage endpoints.

Jobs are created with the default pipeline; stages can then be inserted,
reordered, renamed and deleted while positions stay contiguous.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status

from api.dependencies import get_database
from api.schemas.candidates import JobCandidateResponse
from api.schemas.jobs import (
    AutoRejectionRules,
    JobCreate,
    JobDetailResponse,
    JobResponse,
    JobStatusUpdate,
    StageCreate,
    StageRename,
    StageReorder,
    StageResponse,
)
from api.services import candidates as candidate_service
from api.services import jobs as job_service
from api.services import pipelines as pipeline_service
from core.middleware.authorization import Permission, require_job_access, require_permission
from core.security import CurrentUser
from database.engine import Database
from database.models.jobs import JobStatus

router = APIRouter()


# ==================== Jobs ===================== #
@router.post(
    "/jobs",
    response_model=JobDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Job",
    description="Create a job with the default pipeline. Requires job:create permission.",
)
async def create_job(
    body: JobCreate,
    user: CurrentUser = Depends(require_permission(Permission.JOB_CREATE)),
    db: Database = Depends(get_database),
):
    return await job_service.create_job(
        db,
        company_id=user.company_id,
        title=body.title,
        department=body.department,
        location=body.location,
        openings=body.openings,
        assigned_recruiter_id=body.assigned_recruiter_id,
        auto_rejection_rules=body.auto_rejection_rules,
    )


@router.get(
    "/jobs",
    response_model=List[JobResponse],
    summary="List Jobs",
    description="Jobs visible to the caller. Recruiters only see assigned jobs.",
)
async def list_jobs(
    job_status: Optional[JobStatus] = Query(None, alias="status"),
    department: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(require_permission(Permission.JOB_READ)),
    db: Database = Depends(get_database),
):
    return await job_service.list_accessible_jobs(
        db, user, status=job_status, department=department, limit=limit, offset=offset
    )


@router.get("/jobs/{job_id}", response_model=JobDetailResponse, summary="Get Job Details")
async def get_job(
    job_id: int = Path(..., description="Job ID"),
    user: CurrentUser = Depends(require_permission(Permission.JOB_READ)),
    db: Database = Depends(get_database),
):
    return await job_service.get_job(db, job_id, user)


@router.patch("/jobs/{job_id}/status", response_model=JobResponse, summary="Update Job Status")
async def update_job_status(
    body: JobStatusUpdate,
    job_id: int = Path(..., description="Job ID"),
    user: CurrentUser = Depends(require_permission(Permission.JOB_UPDATE)),
    db: Database = Depends(get_database),
):
    return await job_service.update_job_status(db, job_id, body.status.value, user)


@router.put(
    "/jobs/{job_id}/auto-rejection-rules",
    response_model=JobResponse,
    summary="Set Auto-Rejection Rules",
    description="Replace the screening rules evaluated when candidates are added to the job.",
)
async def update_auto_rejection_rules(
    body: AutoRejectionRules,
    job_id: int = Path(..., description="Job ID"),
    user: CurrentUser = Depends(require_permission(Permission.JOB_UPDATE)),
    db: Database = Depends(get_database),
):
    return await job_service.update_auto_rejection_rules(db, job_id, body, user)


@router.get(
    "/jobs/{job_id}/candidates",
    response_model=List[JobCandidateResponse],
    summary="List Job Candidates",
)
async def list_job_candidates(
    job_id: int = Path(..., description="Job ID"),
    stage_id: Optional[int] = Query(None, alias="stageId"),
    user: CurrentUser = Depends(require_permission(Permission.CANDIDATE_READ)),
    db: Database = Depends(get_database),
):
    await job_service.get_job(db, job_id, user)
    return await candidate_service.get_job_candidates(db, job_id, stage_id=stage_id)


# ==================== Stages ===================== #
@router.get("/jobs/{job_id}/stages", response_model=List[StageResponse], summary="List Stages")
async def list_stages(
    job_id: int = Path(..., description="Job ID"),
    user: CurrentUser = Depends(require_permission(Permission.PIPELINE_READ)),
    db: Database = Depends(get_database),
):
    job = await job_service.get_job(db, job_id, user)
    return job.stages


@router.post(
    "/jobs/{job_id}/stages",
    response_model=StageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Insert Stage",
    description="Insert a stage at a position, shifting later stages. Requires pipeline:create.",
)
async def insert_stage(
    body: StageCreate,
    job_id: int = Path(..., description="Job ID"),
    user: CurrentUser = Depends(require_permission(Permission.PIPELINE_CREATE)),
    db: Database = Depends(get_database),
):
    await job_service.get_job(db, job_id, user)
    return await pipeline_service.insert_stage(
        db,
        job_id,
        name=body.name,
        position=body.position,
        is_mandatory=body.is_mandatory,
        parent_id=body.parent_id,
    )


async def _authorized_stage(db: Database, stage_id: int, user: CurrentUser):
    stage = await pipeline_service.get_stage(db, stage_id)
    require_job_access(stage.job, user)
    return stage


@router.patch(
    "/stages/{stage_id}/position",
    response_model=List[StageResponse],
    summary="Reorder Stage",
)
async def reorder_stage(
    body: StageReorder,
    stage_id: int = Path(..., description="Stage ID"),
    user: CurrentUser = Depends(require_permission(Permission.PIPELINE_UPDATE)),
    db: Database = Depends(get_database),
):
    await _authorized_stage(db, stage_id, user)
    return await pipeline_service.reorder_stage(db, stage_id, body.position)


@router.patch("/stages/{stage_id}", response_model=StageResponse, summary="Rename Stage")
async def rename_stage(
    body: StageRename,
    stage_id: int = Path(..., description="Stage ID"),
    user: CurrentUser = Depends(require_permission(Permission.PIPELINE_UPDATE)),
    db: Database = Depends(get_database),
):
    await _authorized_stage(db, stage_id, user)
    return await pipeline_service.rename_stage(db, stage_id, body.name)


@router.delete(
    "/stages/{stage_id}",
    response_model=List[StageResponse],
    summary="Delete Stage",
    description="Delete an empty custom stage. Requires pipeline:delete.",
)
async def delete_stage(
    stage_id: int = Path(..., description="Stage ID"),
    user: CurrentUser = Depends(require_permission(Permission.PIPELINE_DELETE)),
    db: Database = Depends(get_database),
):
    await _authorized_stage(db, stage_id, user)
    return await pipeline_service.delete_stage(db, stage_id)
