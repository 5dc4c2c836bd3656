"""
campuscart/core/schemas.py

Core Schemas

Defines core Pydantic models used across the application, including:
- CamelModel: base model exposing camelCase field names on the wire.
- Generic message response schema.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base schema serialised with camelCase aliases and populated by either name.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(BaseModel):
    """
    Generic response schema for simple success or informational messages.
    """

    message: str = Field(..., description="Human-readable response message")
