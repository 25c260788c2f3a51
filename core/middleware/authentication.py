"""
Authentication dependency.

Reads the bearer token from the Authorization header, verifies it and
exposes the caller as a ``CurrentUser``. Login, sessions and token issuing
live in the identity service.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import get_settings
from core.exceptions import ATSError
from core.security import CurrentUser, TokenInvalidError, decode_access_token
from database.models.companies import UserRole

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class AuthenticationError(ATSError):
    """Missing or invalid credentials."""

    status_code = 401
    code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    """
    Resolve the calling user from the bearer token.

    Raises:
        AuthenticationError: If the header is absent or the token is invalid
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()

    settings = get_settings()
    try:
        claims = decode_access_token(
            credentials.credentials,
            settings.jwt_secret_key,
            settings.jwt_algorithm,
        )
    except TokenInvalidError as e:
        logger.warning(f"Rejected token on {request.method} {request.url.path}: {e}")
        raise AuthenticationError(str(e)) from e

    try:
        role = UserRole(claims.role)
    except ValueError as e:
        raise AuthenticationError("Token carries an unknown role") from e

    user = CurrentUser(id=claims.user_id, company_id=claims.company_id, role=role)
    request.state.user_id = user.id
    request.state.company_id = user.company_id
    return user
