"""
campuscart/users/routes.py

User API Routes

Account endpoints that sit beside the external login flow:
- Update the caller's approximate location
- Report whether the caller is logged in
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from campuscart.core.dependencies import CurrentUserIdDep, OptionalUserIdDep
from campuscart.core.limiter import limiter
from campuscart.core.schemas import MessageResponse
from campuscart.database.session import get_db
from campuscart.users import schemas
from campuscart.users.services import UserDirectory

# ---------------------------------------------------
# Router Configuration
# ---------------------------------------------------
router = APIRouter(prefix="/api/user", tags=["Users"])

DBDep = Annotated[AsyncSession, Depends(get_db)]


@router.post(
    "/location",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Update My Location",
    description="Store the authenticated user's approximate latitude and longitude.",
)
@limiter.limit("10/minute")
async def update_location(
    request: Request,
    data: schemas.LocationUpdate,
    db: DBDep,
    current_user_id: CurrentUserIdDep,
) -> MessageResponse:
    return await UserDirectory(db).update_location(current_user_id, data)


@router.get(
    "/status",
    response_model=schemas.UserStatus,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="Login Status",
    description="Report whether the caller is logged in, with their account when they are.",
)
@limiter.limit("30/minute")
async def get_status(
    request: Request,
    db: DBDep,
    user_id: OptionalUserIdDep,
) -> schemas.UserStatus:
    return await UserDirectory(db).get_status(user_id)
