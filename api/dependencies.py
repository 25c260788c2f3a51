"""FastAPI dependencies for dependency injection."""

from typing import Optional

from fastapi import Query, Request
from pydantic import ValidationError as PydanticValidationError

from api.schemas.analytics import AnalyticsFilters
from core.exceptions import ValidationError
from core.middleware.authentication import get_current_user
from core.middleware.authorization import require_permission
from database.engine import Database, DatabaseNotOpenError

__all__ = [
    "get_database",
    "get_current_user",
    "require_permission",
    "get_analytics_filters",
]


def get_database(request: Request) -> Database:
    """The application's database handle, opened in the lifespan hook."""
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise DatabaseNotOpenError("Database has not been opened")
    return db


def get_analytics_filters(
    start_date: Optional[str] = Query(None, alias="startDate", description="ISO start of the window"),
    end_date: Optional[str] = Query(None, alias="endDate", description="ISO end of the window"),
    department: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    job_id: Optional[int] = Query(None, alias="jobId"),
    recruiter_id: Optional[int] = Query(None, alias="recruiterId"),
) -> AnalyticsFilters:
    """
    Build analytics filters from query parameters.

    Raises:
        ValidationError: Unparseable dates or a start after the end
    """
    try:
        return AnalyticsFilters(
            start_date=start_date,
            end_date=end_date,
            department=department,
            location=location,
            job_id=job_id,
            recruiter_id=recruiter_id,
        )
    except PydanticValidationError as e:
        details = {}
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"]) or "filters"
            details.setdefault(field, []).append(error["msg"])
        raise ValidationError(details) from e
