"""
Candidate management endpoints.

Candidate records, applications to jobs, stage moves (single and bulk),
scores and the activity timeline.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from fastapi.responses import JSONResponse

from api.dependencies import get_database
from api.schemas.candidates import (
    ActivityResponse,
    AddToJobRequest,
    BulkMoveRequest,
    CandidateCreate,
    CandidateResponse,
    CandidateUpdate,
    JobCandidateResponse,
    ScoreUpdateRequest,
    StageChangeRequest,
    StageChangeResult,
    StageHistoryResponse,
)
from api.schemas.jobs import StageResponse
from api.services import bulk as bulk_service
from api.services import candidates as candidate_service
from api.services import jobs as job_service
from api.services import stage_history as history_service
from core.middleware.authorization import Permission, require_permission
from core.security import CurrentUser
from database.engine import Database

router = APIRouter()


# ==================== Candidates ===================== #
@router.post(
    "/candidates",
    response_model=CandidateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Candidate",
    description="Create a candidate in the caller's company. Requires candidate:create permission.",
)
async def create_candidate(
    body: CandidateCreate,
    user: CurrentUser = Depends(require_permission(Permission.CANDIDATE_CREATE)),
    db: Database = Depends(get_database),
):
    return await candidate_service.create_candidate(
        db,
        company_id=user.company_id,
        **body.model_dump(),
    )


@router.get(
    "/candidates",
    response_model=List[CandidateResponse],
    summary="Search Candidates",
    description="Search the caller's company candidates by text, location, experience, source and score.",
)
async def search_candidates(
    q: Optional[str] = Query(None, description="Name, email or phone"),
    location: Optional[str] = Query(None),
    experience_min: Optional[float] = Query(None, alias="experienceMin", ge=0),
    experience_max: Optional[float] = Query(None, alias="experienceMax", ge=0),
    source: Optional[str] = Query(None),
    score_min: Optional[int] = Query(None, alias="scoreMin", ge=0, le=100),
    score_max: Optional[int] = Query(None, alias="scoreMax", ge=0, le=100),
    sort_by: str = Query("updated", alias="sortBy"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(require_permission(Permission.CANDIDATE_READ)),
    db: Database = Depends(get_database),
):
    return await candidate_service.search_candidates(
        db,
        user.company_id,
        query=q,
        location=location,
        experience_min=experience_min,
        experience_max=experience_max,
        source=source,
        score_min=score_min,
        score_max=score_max,
        sort_by=sort_by,
        limit=limit,
        offset=offset,
    )


@router.get("/candidates/{candidate_id}", response_model=CandidateResponse, summary="Get Candidate")
async def get_candidate(
    candidate_id: int = Path(..., description="Candidate ID"),
    user: CurrentUser = Depends(require_permission(Permission.CANDIDATE_READ)),
    db: Database = Depends(get_database),
):
    return await candidate_service.get_candidate(db, candidate_id, company_id=user.company_id)


@router.patch("/candidates/{candidate_id}", response_model=CandidateResponse, summary="Update Candidate")
async def update_candidate(
    body: CandidateUpdate,
    candidate_id: int = Path(..., description="Candidate ID"),
    user: CurrentUser = Depends(require_permission(Permission.CANDIDATE_UPDATE)),
    db: Database = Depends(get_database),
):
    await candidate_service.get_candidate(db, candidate_id, company_id=user.company_id)
    return await candidate_service.update_candidate(
        db, candidate_id, **body.model_dump(exclude_unset=True)
    )


@router.put(
    "/candidates/{candidate_id}/score",
    response_model=CandidateResponse,
    summary="Update Candidate Score",
    description="Set the overall score or sub-scores; the overall score is recomputed from sub-scores.",
)
async def update_score(
    body: ScoreUpdateRequest,
    candidate_id: int = Path(..., description="Candidate ID"),
    user: CurrentUser = Depends(require_permission(Permission.CANDIDATE_UPDATE)),
    db: Database = Depends(get_database),
):
    await candidate_service.get_candidate(db, candidate_id, company_id=user.company_id)
    return await candidate_service.update_score(
        db,
        candidate_id,
        score=body.score,
        domain_score=body.domain_score,
        industry_score=body.industry_score,
        key_responsibilities_score=body.key_responsibilities_score,
        updated_by=user.id,
    )


@router.get(
    "/candidates/{candidate_id}/activities",
    response_model=List[ActivityResponse],
    summary="Candidate Activity Timeline",
)
async def get_activity_timeline(
    candidate_id: int = Path(..., description="Candidate ID"),
    user: CurrentUser = Depends(require_permission(Permission.CANDIDATE_READ)),
    db: Database = Depends(get_database),
):
    await candidate_service.get_candidate(db, candidate_id, company_id=user.company_id)
    return await candidate_service.get_activity_timeline(db, candidate_id)


@router.get(
    "/candidates/{candidate_id}/stage-history",
    response_model=List[StageHistoryResponse],
    summary="Candidate Stage History",
)
async def get_candidate_stage_history(
    candidate_id: int = Path(..., description="Candidate ID"),
    user: CurrentUser = Depends(require_permission(Permission.PIPELINE_READ)),
    db: Database = Depends(get_database),
):
    await candidate_service.get_candidate(db, candidate_id, company_id=user.company_id)
    return await history_service.get_candidate_stage_history(db, candidate_id)


@router.post(
    "/candidates/{candidate_id}/jobs",
    response_model=JobCandidateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add Candidate To Job",
)
async def add_candidate_to_job(
    body: AddToJobRequest,
    candidate_id: int = Path(..., description="Candidate ID"),
    user: CurrentUser = Depends(require_permission(Permission.PIPELINE_UPDATE)),
    db: Database = Depends(get_database),
):
    await candidate_service.get_candidate(db, candidate_id, company_id=user.company_id)
    await job_service.get_job(db, body.job_id, user)
    return await candidate_service.add_candidate_to_job(
        db, candidate_id, body.job_id, stage_id=body.stage_id, added_by=user.id
    )


# ==================== Stage moves ===================== #
@router.post(
    "/job-candidates/bulk-move",
    summary="Bulk Move Candidates",
    description=(
        "Move several applications of one job to a stage. Returns 207 when "
        "some moves succeeded and others failed."
    ),
)
async def bulk_move(
    body: BulkMoveRequest,
    user: CurrentUser = Depends(require_permission(Permission.PIPELINE_UPDATE)),
    db: Database = Depends(get_database),
):
    await job_service.get_job(db, body.job_id, user)
    result = await bulk_service.bulk_move(
        db,
        body.job_id,
        body.job_candidate_ids,
        body.target_stage_id,
        comment=body.comment,
        moved_by=user.id,
    )
    partial = result.failed_count > 0 and result.moved_count > 0
    return JSONResponse(
        status_code=status.HTTP_207_MULTI_STATUS if partial else status.HTTP_200_OK,
        content=result.to_json_dict(),
    )


@router.get(
    "/job-candidates/{job_candidate_id}/stages",
    response_model=List[StageResponse],
    summary="Available Stages",
)
async def get_available_stages(
    job_candidate_id: int = Path(..., description="Job candidate ID"),
    user: CurrentUser = Depends(require_permission(Permission.PIPELINE_READ)),
    db: Database = Depends(get_database),
):
    job_candidate = await candidate_service.get_job_candidate(db, job_candidate_id, user)
    return job_candidate.job.stages


@router.patch(
    "/job-candidates/{job_candidate_id}/stage",
    response_model=StageChangeResult,
    summary="Change Stage",
    description="Move an application to another stage of its job. Rejections need a reason.",
)
async def change_stage(
    body: StageChangeRequest,
    job_candidate_id: int = Path(..., description="Job candidate ID"),
    user: CurrentUser = Depends(require_permission(Permission.PIPELINE_UPDATE)),
    db: Database = Depends(get_database),
):
    await candidate_service.get_job_candidate(db, job_candidate_id, user)
    return await candidate_service.change_stage(
        db,
        job_candidate_id,
        body.stage_id,
        rejection_reason=body.rejection_reason,
        comment=body.comment,
        moved_by=user.id,
    )


@router.get(
    "/job-candidates/{job_candidate_id}/history",
    response_model=List[StageHistoryResponse],
    summary="Stage History",
)
async def get_stage_history(
    job_candidate_id: int = Path(..., description="Job candidate ID"),
    user: CurrentUser = Depends(require_permission(Permission.PIPELINE_READ)),
    db: Database = Depends(get_database),
):
    await candidate_service.get_job_candidate(db, job_candidate_id, user)
    return await history_service.get_stage_history(db, job_candidate_id)
