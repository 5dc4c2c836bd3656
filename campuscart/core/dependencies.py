"""
campuscart/core/dependencies.py

Caller Identity Dependencies

Resolves the authenticated caller for FastAPI routes:
- Validates JWT tokens from the Bearer header
- Falls back to the signed session cookie (`user_id` key)
- Raises 401 when an endpoint requires an identity and none is present
"""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from campuscart.core.exceptions import UnauthorizedError
from campuscart.core.tokens import decode_access_token

# ---------------------------------------------------
# Logger Configuration
# ---------------------------------------------------
logger = logging.getLogger(__name__)

# ---------------------------------------------------
# OAuth2 Configuration
# ---------------------------------------------------
# auto_error=False so a missing header falls through to the session cookie
oauth2_scheme: OAuth2PasswordBearer = OAuth2PasswordBearer(
    tokenUrl="/api/login", auto_error=False
)

SESSION_USER_KEY = "user_id"


# ---------------------------------------------------
# Authentication Functions
# ---------------------------------------------------
async def get_optional_user_id(
    request: Request,
    token: Annotated[str | None, Depends(oauth2_scheme)] = None,
) -> UUID | None:
    """
    Return the caller's user id, checking the Bearer header first and then the
    session cookie. Returns None when neither carries an identity.

    Raises:
        UnauthorizedError: If a Bearer token is present but invalid.
    """
    if token:
        user_id = decode_access_token(token)
        logger.debug(f"[AUTH] User {user_id} authenticated via Header.")
        return user_id

    if "session" not in request.scope:
        return None

    raw_user_id = request.session.get(SESSION_USER_KEY)
    if not raw_user_id:
        return None
    try:
        user_id = UUID(str(raw_user_id))
    except ValueError:
        logger.warning(f"[AUTH] Malformed user id in session: {raw_user_id!r}")
        return None
    logger.debug(f"[AUTH] User {user_id} authenticated via Session.")
    return user_id


async def get_current_user_id(
    user_id: Annotated[UUID | None, Depends(get_optional_user_id)],
) -> UUID:
    """
    Require an authenticated caller.

    Raises:
        UnauthorizedError: 401 if no identity was supplied.
    """
    if user_id is None:
        logger.debug("[AUTH] No token found in Authorization header or session cookie.")
        raise UnauthorizedError()
    return user_id


CurrentUserIdDep = Annotated[UUID, Depends(get_current_user_id)]
OptionalUserIdDep = Annotated[UUID | None, Depends(get_optional_user_id)]
