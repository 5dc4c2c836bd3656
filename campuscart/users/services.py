"""
campuscart/users/services.py

User Directory Service Layer
Resolves user identities for other modules and manages the small
amount of profile state users can change themselves (shared location).
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campuscart.core.exceptions import StoreError, UserNotFound, ValidationError
from campuscart.core.schemas import MessageResponse
from campuscart.database.models import User
from campuscart.users import schemas

logger = logging.getLogger(__name__)


class UserDirectory:
    """Looks up users by id."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_user(self, user_id: UUID) -> User:
        try:
            result = await self.db.execute(select(User).filter_by(id=user_id))
            user = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"[USER ERROR] Failed to load user {user_id}: {e}")
            raise StoreError("Server error while fetching user.")
        if user is None:
            raise UserNotFound()
        return user

    async def resolve_email(self, user_id: UUID) -> str:
        """Return the email of an existing user, raising UserNotFound otherwise."""
        try:
            result = await self.db.execute(select(User.email).filter_by(id=user_id))
            email = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"[USER ERROR] Failed to resolve email of {user_id}: {e}")
            raise StoreError("Server error while fetching user.")
        if email is None:
            raise UserNotFound()
        return email

    async def get_status(self, user_id: UUID | None) -> schemas.UserStatus:
        """Login status for the current caller; unknown ids read as logged out."""
        if user_id is None:
            return schemas.UserStatus(logged_in=False)
        try:
            user = await self.get_user(user_id)
        except UserNotFound:
            logger.info(f"[USER] Caller identity {user_id} has no matching user")
            return schemas.UserStatus(logged_in=False)
        return schemas.UserStatus(logged_in=True, user=schemas.UserRead.model_validate(user))

    async def update_location(
        self, user_id: UUID, data: schemas.LocationUpdate
    ) -> MessageResponse:
        """Store the caller's approximate location."""
        if data.latitude is None or data.longitude is None:
            raise ValidationError("Invalid location data provided.")
        user = await self.get_user(user_id)
        user.latitude = data.latitude
        user.longitude = data.longitude
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[USER ERROR] Failed to update location for {user_id}: {e}")
            raise StoreError("Server error while updating location.")
        logger.info(f"[USER] Location updated for user {user_id}")
        return MessageResponse(message="Your location has been updated successfully!")
