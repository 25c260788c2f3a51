"""
Core middleware package.

This package provides the request pipeline pieces:
- Error handling with sensitive data sanitization
- Structured logging with PII masking
- Bearer token authentication
- Role-based authorization
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    sanitize_error_message,
)

from core.middleware.logging import (
    StructuredLoggingMiddleware,
    setup_logging,
)

from core.middleware.authentication import (
    get_current_user,
    AuthenticationError,
)

from core.middleware.authorization import (
    Permission,
    ROLE_PERMISSIONS,
    can_access_job,
    check_permission,
    has_permission,
    require_job_access,
    require_permission,
    require_minimum_role,
    CompanyAccessDenied,
    InsufficientPermissions,
)

__all__ = [
    # Error handling
    "ErrorHandlingMiddleware",
    "setup_error_handlers",
    "sanitize_error_message",
    # Logging
    "StructuredLoggingMiddleware",
    "setup_logging",
    # Authentication
    "get_current_user",
    "AuthenticationError",
    # Authorization
    "Permission",
    "ROLE_PERMISSIONS",
    "can_access_job",
    "check_permission",
    "has_permission",
    "require_job_access",
    "require_permission",
    "require_minimum_role",
    "CompanyAccessDenied",
    "InsufficientPermissions",
]
