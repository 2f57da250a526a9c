"""
Bearer tokens shared with the external sign-in service.

The sign-in service issues HS256 tokens whose ``sub`` is a user id; this
backend only verifies them. ``issue_token`` is used by tests and local
tooling.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Union
from uuid import UUID

from jose import ExpiredSignatureError, JWTError, jwt

from meetingai.core.config import settings
from meetingai.schemas.auth import TokenData

logger = logging.getLogger(__name__)


def issue_token(
    user_id: Union[UUID, str],
    email: Optional[str] = None,
    expires_in: Optional[timedelta] = None,
) -> str:
    lifetime = expires_in or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {"sub": str(user_id), "exp": datetime.now(timezone.utc) + lifetime}
    if email:
        claims["email"] = email
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def read_token(token: str) -> Optional[TokenData]:
    """
    Verify a bearer token.

    Returns:
        TokenData with a UUID user id, or None if the token is expired,
        forged, or its subject is not a user id
    """
    try:
        claims = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        logger.debug("Rejected expired bearer token")
        return None
    except JWTError:
        return None

    try:
        user_id = UUID(str(claims.get("sub")))
    except ValueError:
        return None
    return TokenData(user_id=user_id, email=claims.get("email"))
