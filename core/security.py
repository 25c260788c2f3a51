"""
Access token helpers.

Tokens are issued by the identity service; this process only verifies them
and reads the claims it needs for tenant scoping and role checks.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional

import jwt

from core.utils.datetime import now
from database.models.companies import UserRole

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ("sub", "company_id", "role")


class TokenInvalidError(Exception):
    """Token is malformed, expired, badly signed or missing claims."""


@dataclass(frozen=True)
class TokenClaims:
    """Claims carried by an access token."""

    user_id: int
    company_id: int
    role: str


@dataclass(frozen=True)
class CurrentUser:
    """The authenticated caller, as seen by permission checks and services."""

    id: int
    company_id: int
    role: UserRole


def create_access_token(
    user_id: int,
    company_id: int,
    role: str,
    secret: str,
    algorithm: str = "HS256",
    expires_in: Optional[timedelta] = timedelta(hours=1),
) -> str:
    """
    Encode an access token.

    Used by development tooling and tests; production tokens come from the
    identity service with the same claim layout.
    """
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "company_id": company_id,
        "role": role,
        "iat": now(),
    }
    if expires_in is not None:
        payload["exp"] = now() + expires_in
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(token: str, secret: str, algorithm: str = "HS256") -> TokenClaims:
    """
    Verify a token and extract its claims.

    Args:
        token: Encoded JWT
        secret: Signing key
        algorithm: Expected algorithm

    Returns:
        Parsed claims

    Raises:
        TokenInvalidError: If verification fails or a claim is missing
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError as e:
        raise TokenInvalidError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise TokenInvalidError("Token is invalid") from e

    missing = [claim for claim in REQUIRED_CLAIMS if claim not in payload]
    if missing:
        raise TokenInvalidError(f"Token is missing claims: {', '.join(missing)}")

    try:
        return TokenClaims(
            user_id=int(payload["sub"]),
            company_id=int(payload["company_id"]),
            role=str(payload["role"]),
        )
    except (TypeError, ValueError) as e:
        raise TokenInvalidError("Token claims are malformed") from e
