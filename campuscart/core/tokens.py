"""
core/tokens.py

Access token utilities:
- JWT access token creation with expiration and JTI
- Access token decoding into a user id

Tokens are issued by the external login flow; this module only shares
the signing convention so the API can verify them.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from campuscart.core.config import settings
from campuscart.core.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)


# ------------------------------------------------------
# --- Access Token ---
# ------------------------------------------------------
def create_access_token(user_id: UUID, expires_delta: timedelta | None = None) -> str:
    """
    Create a JWT access token with expiration and unique JTI.

    Args:
        user_id (UUID): Identity placed in the `sub` claim.
        expires_delta (timedelta | None): Optional custom expiration time. Defaults to settings.

    Returns:
        str: Encoded JWT access token.
    """
    expire: datetime = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload: dict[str, Any] = {"sub": str(user_id), "exp": expire, "jti": str(uuid.uuid4())}
    logger.debug(f"Issuing access token for sub={user_id} exp={expire}")
    return str(jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM))


def decode_access_token(token: str) -> UUID:
    """
    Decode an access token and return the user id in its `sub` claim.

    Raises:
        UnauthorizedError: If the token is invalid, expired, or carries no usable subject.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return UUID(str(payload["sub"]))
    except (JWTError, KeyError, ValueError) as e:
        logger.warning(f"[AUTH] JWT decoding/validation failed: {e}")
        raise UnauthorizedError("Could not validate credentials.")
