"""
campuscart/users/schemas.py

User Schemas

Defines Pydantic schemas for user-facing account endpoints:
- Public user read model (with GeoJSON location)
- Location update request
- Login status response
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from campuscart.core.schemas import CamelModel


class UserRead(CamelModel):
    """Public view of a user account."""

    id: UUID = Field(..., description="User ID")
    email: str = Field(..., description="Institutional email address")
    created_at: datetime = Field(..., description="Account creation timestamp")
    location: dict[str, Any] | None = Field(
        None, description="GeoJSON point with coordinates [longitude, latitude]"
    )


class LocationUpdate(CamelModel):
    """Body for POST /api/user/location."""

    latitude: float | None = Field(None, ge=-90, le=90, description="Latitude in degrees")
    longitude: float | None = Field(None, ge=-180, le=180, description="Longitude in degrees")


class UserStatus(CamelModel):
    """Response for GET /api/user/status."""

    logged_in: bool = Field(..., description="Whether the caller is logged in")
    user: UserRead | None = Field(None, description="The caller, when logged in")
