"""
Interview scheduling and feedback endpoints.
"""

from typing import List

from fastapi import APIRouter, Depends, Path, status

from api.dependencies import get_database
from api.schemas.interviews import (
    FeedbackCreate,
    FeedbackResponse,
    InterviewCreate,
    InterviewResponse,
    PendingFeedback,
)
from api.services import candidates as candidate_service
from api.services import interviews as interview_service
from api.services import notifications as notification_service
from core.middleware.authorization import CompanyAccessDenied, Permission, require_permission
from core.security import CurrentUser
from database.engine import Database

router = APIRouter()


@router.post(
    "/interviews",
    response_model=InterviewResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule Interview",
    description="Schedule an interview with a panel. Requires interview:create permission.",
)
async def schedule_interview(
    body: InterviewCreate,
    user: CurrentUser = Depends(require_permission(Permission.INTERVIEW_CREATE)),
    db: Database = Depends(get_database),
):
    await candidate_service.get_job_candidate(db, body.job_candidate_id, user)
    return await interview_service.schedule_interview(
        db,
        body.job_candidate_id,
        scheduled_at=body.scheduled_at,
        panel_member_ids=body.panel_member_ids,
        duration_minutes=body.duration_minutes,
        mode=body.mode,
        meeting_link=body.meeting_link,
        location=body.location,
        scheduled_by=user.id,
    )


@router.get(
    "/interviews/pending-feedback",
    response_model=List[PendingFeedback],
    summary="Interviews Missing Feedback",
)
async def pending_feedback(
    user: CurrentUser = Depends(require_permission(Permission.INTERVIEW_READ)),
    db: Database = Depends(get_database),
):
    return await notification_service.get_pending_feedback_interviews(db, user.company_id)


@router.get(
    "/job-candidates/{job_candidate_id}/interviews",
    response_model=List[InterviewResponse],
    summary="List Interviews",
)
async def list_interviews(
    job_candidate_id: int = Path(..., description="Job candidate ID"),
    user: CurrentUser = Depends(require_permission(Permission.INTERVIEW_READ)),
    db: Database = Depends(get_database),
):
    await candidate_service.get_job_candidate(db, job_candidate_id, user)
    return await interview_service.list_interviews(db, job_candidate_id)


@router.post(
    "/interviews/{interview_id}/cancel",
    response_model=InterviewResponse,
    summary="Cancel Interview",
)
async def cancel_interview(
    interview_id: int = Path(..., description="Interview ID"),
    user: CurrentUser = Depends(require_permission(Permission.INTERVIEW_UPDATE)),
    db: Database = Depends(get_database),
):
    await interview_service.get_interview(db, interview_id, user)
    return await interview_service.cancel_interview(db, interview_id)


@router.post(
    "/interviews/{interview_id}/feedback",
    response_model=FeedbackResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Feedback",
    description="Submit the caller's scorecard. Only panel members may submit, once each.",
)
async def submit_feedback(
    body: FeedbackCreate,
    interview_id: int = Path(..., description="Interview ID"),
    user: CurrentUser = Depends(require_permission(Permission.INTERVIEW_READ)),
    db: Database = Depends(get_database),
):
    interview = await interview_service.get_interview(db, interview_id)
    # Panel members need not be assigned to the job; the service checks membership
    if interview.job_candidate.job.company_id != user.company_id:
        raise CompanyAccessDenied("You do not have access to this interview")
    return await interview_service.submit_feedback(
        db,
        interview_id,
        panel_member_id=user.id,
        ratings=[rating.model_dump() for rating in body.ratings],
        overall_comments=body.overall_comments,
        recommendation=body.recommendation,
    )


@router.get(
    "/interviews/{interview_id}/feedback",
    response_model=List[FeedbackResponse],
    summary="List Feedback",
)
async def list_feedback(
    interview_id: int = Path(..., description="Interview ID"),
    user: CurrentUser = Depends(require_permission(Permission.INTERVIEW_READ)),
    db: Database = Depends(get_database),
):
    await interview_service.get_interview(db, interview_id, user)
    return await interview_service.list_feedback(db, interview_id)
