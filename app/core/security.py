"""
Authentication helpers.

Tokens are issued by the identity provider (a collaborator). This module only
decodes bearer tokens into ``TokenData`` and offers role guards for routes.
"""

from typing import Annotated, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

http_bearer = HTTPBearer(auto_error=False)


class TokenData(BaseModel):
    """Claims extracted from an access token."""

    sub: str
    email: Optional[str] = None
    groups: list[str] = []

    @property
    def is_reviewer(self) -> bool:
        return any(group in settings.REVIEWER_GROUPS for group in self.groups)


def decode_token(token: str) -> TokenData:
    """
    Decode and validate a bearer token.

    Raises:
        HTTPException: 401 if the token is expired or invalid
    """
    options = {"verify_aud": settings.JWT_AUDIENCE is not None}
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired"
        )
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected invalid token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        )

    groups = payload.get("groups") or payload.get("roles") or []
    if isinstance(groups, str):
        groups = [groups]
    return TokenData(sub=str(payload["sub"]), email=payload.get("email"), groups=groups)


def get_current_active_user(
    credentials: Annotated[
        Optional[HTTPAuthorizationCredentials], Depends(http_bearer)
    ],
) -> TokenData:
    """Resolve the bearer token of the current request."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return decode_token(credentials.credentials)


def require_role(*roles: str):
    """
    Dependency factory restricting a route to members of the given groups.

    Usage:
        current_user: Annotated[TokenData, Depends(require_role("HR-Managers"))]
    """

    def _checker(
        current_user: Annotated[TokenData, Depends(get_current_active_user)],
    ) -> TokenData:
        if not any(role in current_user.groups for role in roles):
            logger.warning(
                f"User {current_user.email or current_user.sub} lacks roles {roles}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker
