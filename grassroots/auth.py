"""
Grassroots Hub Backend — Bearer Token Authentication
======================================================

What:  FastAPI dependencies that verify the caller's JWT and check their role.
How:   HS256 signature and expiry are checked with PyJWT against
       settings.jwt_secret. Tokens are issued elsewhere; this service only
       verifies them.

Claims:
    user_id   integer id of the caller (`userId` or `id` also accepted)
    role      "Coach", "Player", "Parent", "Admin", ...
"""

import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from grassroots.config import settings
from grassroots.exceptions import AuthenticationError, PermissionDeniedError

logger = logging.getLogger(__name__)

COACH_ROLE = "Coach"

# auto_error=False: a missing header is reported through our 401 envelope
_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: str


def decode_token(token: str) -> Principal:
    """Verify `token` and return its principal; AuthenticationError if it is unusable."""
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError(message="Token has expired") from e
    except jwt.InvalidTokenError as e:
        logger.info("Rejected bearer token: %s", str(e))
        raise AuthenticationError(message="Invalid token") from e

    raw_id = claims.get("user_id", claims.get("userId", claims.get("id")))
    role = claims.get("role")
    if isinstance(raw_id, bool) or not isinstance(raw_id, (int, str)) or not isinstance(role, str):
        raise AuthenticationError(message="Token is missing the user_id or role claim")
    try:
        user_id = int(raw_id)
    except ValueError as e:
        raise AuthenticationError(message="Token user_id claim is not an integer") from e
    return Principal(user_id=user_id, role=role)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError(message="Access token required")
    return decode_token(credentials.credentials)


async def require_coach(user: Principal = Depends(get_current_user)) -> Principal:
    if user.role != COACH_ROLE:
        raise PermissionDeniedError(
            message="Only coaches can manage trials",
            context={"role": user.role},
        )
    return user
