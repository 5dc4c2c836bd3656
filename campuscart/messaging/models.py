"""
campuscart/messaging/models.py

Messaging Models

Defines SQLAlchemy models for the messaging system:
- Conversation: A thread between a buyer and a seller about one product.
  The participant pair is stored in canonical order (one < two) so that a
  unique constraint can guarantee a single conversation per product and pair.
- Message: An immutable entry appended to a conversation.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campuscart.database.base import Base, utcnow

if TYPE_CHECKING:
    from campuscart.database.models import User
    from campuscart.products.models import Product


# ---------------------------------------------------
# Message Model
# ---------------------------------------------------
class Message(Base):
    """
    Represents an individual message appended to a conversation.
    """

    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("conversation_id", "position", name="uq_messages_conversation_position"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the message",
    )
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        comment="Conversation this message belongs to",
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="User who sent this message",
    )
    body: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Content of the message",
    )
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="1-based append index within the conversation",
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Timestamp when the message was appended",
    )

    # Relationships
    conversation: Mapped["Conversation"] = relationship(
        "Conversation",
        back_populates="messages",
    )
    sender: Mapped["User"] = relationship(
        "User",
        back_populates="sent_messages",
    )


# ---------------------------------------------------
# Conversation Model
# ---------------------------------------------------
class Conversation(Base):
    """
    Represents a conversation between two users about a product.
    """

    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint(
            "product_id",
            "participant_one_id",
            "participant_two_id",
            name="uq_conversations_product_pair",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the conversation",
    )
    product_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        comment="Product the conversation is about (kept after the listing is removed)",
    )
    participant_one_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Lower participant id of the canonical pair",
    )
    participant_two_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Higher participant id of the canonical pair",
    )
    message_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Number of messages appended so far",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Timestamp when the conversation was created",
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
        comment="Timestamp of the latest append",
    )

    # Relationships
    product: Mapped[Optional["Product"]] = relationship("Product")
    participant_one: Mapped["User"] = relationship("User", foreign_keys=[participant_one_id])
    participant_two: Mapped["User"] = relationship("User", foreign_keys=[participant_two_id])
    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by=Message.position.asc(),
    )

    @property
    def participant_ids(self) -> frozenset[uuid.UUID]:
        return frozenset((self.participant_one_id, self.participant_two_id))

    @property
    def participants(self) -> list["User"]:
        return [self.participant_one, self.participant_two]

    def has_participant(self, user_id: uuid.UUID) -> bool:
        return user_id in self.participant_ids

    def other_participant(self, user_id: uuid.UUID) -> uuid.UUID:
        """Return the participant id that is not `user_id`."""
        if user_id == self.participant_one_id:
            return self.participant_two_id
        if user_id == self.participant_two_id:
            return self.participant_one_id
        raise ValueError(f"User {user_id} is not a participant of conversation {self.id}")


def canonical_pair(user_a: uuid.UUID, user_b: uuid.UUID) -> tuple[uuid.UUID, uuid.UUID]:
    """Order a participant pair so (a, b) and (b, a) map to the same key."""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)
