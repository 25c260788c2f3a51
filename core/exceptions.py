"""
Typed domain errors raised by the service layer.

The HTTP boundary (core.middleware.error_handling) maps each one to a status
code and the standard error envelope. Services never build HTTP responses
themselves.
"""

from typing import Any, Dict, List, Optional


class ATSError(Exception):
    """Base class for every error a service function raises on purpose."""

    status_code: int = 500
    code: str = "ATS_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(ATSError):
    """A referenced entity does not exist."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found")
        self.resource = resource


class ValidationError(ATSError):
    """
    Malformed input or a failed business rule.

    Args:
        details: Field name to list of messages, e.g.
            ``{"position": ["Position must be between 0 and 4"]}``
        message: Optional summary, defaults to the first field message
    """

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(
        self,
        details: Dict[str, List[str]],
        message: Optional[str] = None,
    ):
        if message is None:
            first = next(iter(details.values()), None) or ["Validation failed"]
            message = first[0]
        super().__init__(message, details)


class ConflictError(ATSError):
    """A unique key would be duplicated (email, job application, feedback)."""

    status_code = 409
    code = "CONFLICT"

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(message, data)
        self.data = data or {}


class AuthorizationError(ATSError):
    """Role or ownership check failed."""

    status_code = 403
    code = "AUTHORIZATION_ERROR"

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message)
