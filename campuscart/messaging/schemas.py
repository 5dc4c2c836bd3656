"""
campuscart/messaging/schemas.py

Messaging Schemas

Defines Pydantic schemas for the messaging system, including:
- Request bodies for starting and replying to conversations
- Message and conversation read models
- Push channel frames (auth handshake and newMessage)

All schemas are exposed with camelCase field names on the wire.
"""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import Field

from campuscart.core.schemas import CamelModel


# ---------------------------------------------------
# Partial Schemas for Embedding
# ---------------------------------------------------
class ParticipantInfo(CamelModel):
    """Basic information about a user involved in a conversation."""

    id: UUID = Field(..., description="User ID")
    email: str | None = Field(None, description="User's email address")


class ConversationProductInfo(CamelModel):
    """Partial product information for embedding in conversation views."""

    id: UUID = Field(..., description="Product's unique identifier")
    name: str = Field(..., description="Product name")
    image_url: str = Field(..., description="Product image location")


# ---------------------------------------------------
# Request Schemas
# ---------------------------------------------------
class MessageCreate(CamelModel):
    """
    Body for POST /api/messages. Both fields are validated by the service so
    that missing and empty values produce the same 400 message.
    """

    product_id: UUID | None = Field(None, description="Product the buyer is asking about")
    message_body: str | None = Field(None, description="Content of the first message")


class ReplyCreate(CamelModel):
    """Body for POST /api/conversations/{id}/messages."""

    message_body: str | None = Field(None, description="Content of the reply")


# ---------------------------------------------------
# Message Response Schema
# ---------------------------------------------------
class MessageRead(CamelModel):
    """
    Schema for reading a message, including sender information.
    """

    id: UUID = Field(..., description="Unique identifier for the message")
    conversation_id: UUID = Field(..., description="Conversation the message belongs to")
    sender_id: UUID = Field(..., description="User who sent the message")
    sender: ParticipantInfo | None = Field(None, description="Sender details when loaded")
    body: str = Field(..., description="Content of the message")
    timestamp: datetime = Field(..., description="Timestamp when the message was appended")


# ---------------------------------------------------
# Conversation Response Schemas
# ---------------------------------------------------
class ConversationSummary(CamelModel):
    """
    Inbox entry: participants, product, and latest activity.
    """

    id: UUID = Field(..., description="Unique identifier for the conversation")
    product_id: UUID | None = Field(None, description="Product the conversation is about")
    product: ConversationProductInfo | None = Field(
        None, description="Product details, absent if the listing was removed"
    )
    participants: list[ParticipantInfo] = Field(
        ..., description="The two users involved in the conversation"
    )
    message_count: int = Field(..., description="Number of messages in the conversation")
    created_at: datetime = Field(..., description="Timestamp when the conversation was created")
    last_updated: datetime = Field(..., description="Timestamp of the latest message")


class ConversationRead(ConversationSummary):
    """
    Detailed view of a conversation, including its ordered messages.
    """

    messages: list[MessageRead] = Field(
        ..., description="Messages in the conversation, in append order"
    )


class SendMessageResponse(CamelModel):
    """Response for POST /api/messages."""

    message: str = Field(..., description="Human-readable result")
    conversation: ConversationRead = Field(..., description="The conversation after the append")


class ReplyResponse(CamelModel):
    """Response for POST /api/conversations/{id}/messages."""

    message: str = Field(..., description="Human-readable result")
    data: MessageRead = Field(..., description="The message that was appended")


# ---------------------------------------------------
# Push Channel Frames
# ---------------------------------------------------
class AuthFrame(CamelModel):
    """Client handshake: {"type": "auth", "userId": "<uuid>"}."""

    type: Literal["auth"]
    user_id: UUID


class PushedMessage(MessageRead):
    """Message as pushed to the recipient, with the sender's email inlined."""

    sender_email: str | None = None


class PushMessagePayload(CamelModel):
    conversation_id: UUID
    message: PushedMessage


class NewMessageFrame(CamelModel):
    """Server push: {"type": "newMessage", "data": {...}}."""

    type: Literal["newMessage"] = "newMessage"
    data: PushMessagePayload

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
