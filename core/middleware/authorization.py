"""
Role-based access control.

A static table maps each company role to the ``resource:action``
permissions it holds. Job-level access additionally requires the caller to
belong to the job's company and, for recruiters, to be the job's assigned
recruiter.
"""

import logging
from enum import Enum
from types import MappingProxyType
from typing import Callable, FrozenSet, Iterable, Mapping, Protocol

from fastapi import Depends

from core.exceptions import AuthorizationError
from core.middleware.authentication import get_current_user
from core.security import CurrentUser
from database.models.companies import UserRole

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    """System-wide permissions."""

    # Company Management
    COMPANY_READ = "company:read"
    COMPANY_CREATE = "company:create"
    COMPANY_UPDATE = "company:update"
    COMPANY_DELETE = "company:delete"

    # User Management
    USER_READ = "user:read"
    USER_CREATE = "user:create"
    USER_UPDATE = "user:update"
    USER_DELETE = "user:delete"

    # Job Management
    JOB_READ = "job:read"
    JOB_CREATE = "job:create"
    JOB_UPDATE = "job:update"
    JOB_DELETE = "job:delete"

    # Candidate Management
    CANDIDATE_READ = "candidate:read"
    CANDIDATE_CREATE = "candidate:create"
    CANDIDATE_UPDATE = "candidate:update"
    CANDIDATE_DELETE = "candidate:delete"

    # Pipeline (stages and stage moves)
    PIPELINE_READ = "pipeline:read"
    PIPELINE_CREATE = "pipeline:create"
    PIPELINE_UPDATE = "pipeline:update"
    PIPELINE_DELETE = "pipeline:delete"

    # Interview/Scheduling
    INTERVIEW_READ = "interview:read"
    INTERVIEW_CREATE = "interview:create"
    INTERVIEW_UPDATE = "interview:update"
    INTERVIEW_DELETE = "interview:delete"

    # Settings
    SETTINGS_READ = "settings:read"
    SETTINGS_UPDATE = "settings:update"

    # Reporting
    REPORTS_READ = "reports:read"
    REPORTS_EXPORT = "reports:export"


# Role to permission mapping
ROLE_PERMISSIONS: Mapping[UserRole, FrozenSet[Permission]] = MappingProxyType({
    UserRole.ADMIN: frozenset(Permission),
    UserRole.HIRING_MANAGER: frozenset({
        Permission.JOB_READ, Permission.JOB_CREATE, Permission.JOB_UPDATE,
        Permission.CANDIDATE_READ, Permission.CANDIDATE_UPDATE,
        Permission.PIPELINE_READ, Permission.PIPELINE_UPDATE,
        Permission.INTERVIEW_READ, Permission.INTERVIEW_CREATE, Permission.INTERVIEW_UPDATE,
        Permission.REPORTS_READ,
    }),
    UserRole.RECRUITER: frozenset({
        Permission.JOB_READ,
        Permission.CANDIDATE_READ, Permission.CANDIDATE_CREATE, Permission.CANDIDATE_UPDATE,
        Permission.PIPELINE_READ, Permission.PIPELINE_UPDATE,
        Permission.INTERVIEW_READ, Permission.INTERVIEW_CREATE, Permission.INTERVIEW_UPDATE,
    }),
})

ROLE_HIERARCHY: Mapping[UserRole, int] = MappingProxyType({
    UserRole.ADMIN: 3,
    UserRole.HIRING_MANAGER: 2,
    UserRole.RECRUITER: 1,
})


class CompanyAccessDenied(AuthorizationError):
    """Raised when a resource belongs to another company."""


class InsufficientPermissions(AuthorizationError):
    """Raised when user lacks required permission."""


class JobScoped(Protocol):
    """Anything carrying the two job fields access checks look at."""

    company_id: int
    assigned_recruiter_id: int | None


def get_permissions_for_role(role: UserRole) -> FrozenSet[Permission]:
    return ROLE_PERMISSIONS.get(role, frozenset())


def has_permission(role: UserRole, permission: Permission | str) -> bool:
    """Check if a role holds a permission. Unknown strings are never held."""
    try:
        permission = Permission(permission)
    except ValueError:
        return False
    return permission in get_permissions_for_role(role)


def has_all_permissions(role: UserRole, permissions: Iterable[Permission | str]) -> bool:
    return all(has_permission(role, p) for p in permissions)


def has_any_permission(role: UserRole, permissions: Iterable[Permission | str]) -> bool:
    return any(has_permission(role, p) for p in permissions)


def can_access_resource(role: UserRole, resource: str, action: str) -> bool:
    """Check a ``resource:action`` pair, e.g. ``("candidate", "create")``."""
    return has_permission(role, f"{resource}:{action}")


def is_role_higher_or_equal(role: UserRole, target_role: UserRole) -> bool:
    return ROLE_HIERARCHY[role] >= ROLE_HIERARCHY[target_role]


def can_access_job(job: JobScoped, user: CurrentUser) -> bool:
    """
    Check job-level access.

    A job owned by another company is denied for every role. Admins and
    hiring managers see every job of their company; recruiters only the
    jobs assigned to them.

    Args:
        job: Job (or any object with company_id and assigned_recruiter_id)
        user: Calling user

    Returns:
        True if the user may access the job
    """
    if job.company_id != user.company_id:
        return False
    if user.role in (UserRole.ADMIN, UserRole.HIRING_MANAGER):
        return True
    return job.assigned_recruiter_id == user.id


def require_job_access(job: JobScoped, user: CurrentUser) -> None:
    """
    Raise unless ``user`` may access ``job``.

    Raises:
        CompanyAccessDenied: If the job belongs to another company
        InsufficientPermissions: If a recruiter is not assigned to the job
    """
    if job.company_id != user.company_id:
        logger.warning(
            f"User {user.id} of company {user.company_id} attempted to access "
            f"a job of company {job.company_id}"
        )
        raise CompanyAccessDenied("You do not have access to this job")
    if not can_access_job(job, user):
        logger.warning(f"Recruiter {user.id} attempted to access an unassigned job")
        raise InsufficientPermissions("You are not assigned to this job")


def check_permission(user: CurrentUser, permission: Permission) -> None:
    """
    Raise unless the user's role holds ``permission``.

    Raises:
        InsufficientPermissions: If the role lacks the permission
    """
    if has_permission(user.role, permission):
        return
    logger.warning(
        f"User {user.id} with role {user.role.value} lacks permission {permission.value}"
    )
    raise InsufficientPermissions(f"User does not have permission: {permission.value}")


def require_permission(*required_permissions: Permission) -> Callable:
    """
    Dependency to require specific permissions.

    Args:
        required_permissions: Every one of these must be held

    Returns:
        FastAPI dependency resolving to the current user
    """
    async def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        for permission in required_permissions:
            check_permission(user, permission)
        return user

    return dependency


def require_minimum_role(minimum_role: UserRole) -> Callable:
    """Dependency to require a role at or above ``minimum_role``."""
    async def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not is_role_higher_or_equal(user.role, minimum_role):
            logger.warning(
                f"User {user.id} with role {user.role.value} attempted action "
                f"requiring {minimum_role.value}"
            )
            raise InsufficientPermissions(
                f"User role {user.role.value} not authorized. Required: {minimum_role.value}"
            )
        return user

    return dependency
