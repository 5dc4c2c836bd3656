"""
campuscart/messaging/store.py

Conversation Store

Durable storage of conversations and their appended messages:
- Atomic find-or-create keyed on (product, unordered participant pair)
- Serialized, append-only message writes with a monotonic last_updated
- Participant-scoped reads that never reveal conversations a user is not part of
"""

import logging
from typing import Any, NoReturn
from uuid import UUID, uuid4

from sqlalchemy import case, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from campuscart.core.exceptions import (
    ConversationNotFound,
    NotParticipantError,
    SelfMessageError,
    StoreError,
)
from campuscart.database.base import as_utc, utcnow
from campuscart.messaging.models import Conversation, Message, canonical_pair

logger = logging.getLogger(__name__)

_DIALECT_INSERTS: dict[str, Any] = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class ConversationStore:
    """Reads and writes conversations through one AsyncSession."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    def _insert(self) -> Any:
        dialect = self.db.get_bind().dialect.name
        try:
            return _DIALECT_INSERTS[dialect]
        except KeyError:
            raise StoreError(f"Unsupported database dialect for conversations: {dialect}")

    # ---------------------------------------------------
    # Writes
    # ---------------------------------------------------
    async def find_or_create(
        self, product_id: UUID, participant_a: UUID, participant_b: UUID
    ) -> Conversation:
        """
        Return the conversation for (product, {a, b}), creating it if absent.

        The insert is a conditional upsert on the composite unique key, so two
        concurrent first messages resolve to the same row. Nothing is committed
        here; the following append commits the conversation with its message.
        """
        if participant_a == participant_b:
            raise SelfMessageError()
        one, two = canonical_pair(participant_a, participant_b)
        now = utcnow()

        stmt = (
            self._insert()(Conversation)
            .values(
                id=uuid4(),
                product_id=product_id,
                participant_one_id=one,
                participant_two_id=two,
                message_count=0,
                created_at=now,
                last_updated=now,
            )
            .on_conflict_do_nothing(
                index_elements=["product_id", "participant_one_id", "participant_two_id"]
            )
        )
        try:
            result = await self.db.execute(stmt)
            conversation = (
                await self.db.execute(
                    select(Conversation).filter_by(
                        product_id=product_id,
                        participant_one_id=one,
                        participant_two_id=two,
                    )
                )
            ).scalar_one()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[CONVERSATION] find_or_create failed for product {product_id}: {e}")
            raise StoreError("Server error while sending message.")

        if result.rowcount:
            logger.info(
                f"[CONVERSATION] Created conversation {conversation.id} for product {product_id} "
                f"between {one} and {two}"
            )
        return conversation

    async def append_message(
        self, conversation_id: UUID, caller_id: UUID, message: Message
    ) -> Conversation:
        """
        Append `message` to the conversation as `caller_id` and commit.

        The counter bump is a single conditional UPDATE ... RETURNING, which
        takes the conversation's write lock for the rest of the transaction,
        so concurrent appends to one conversation are serialized and receive
        gapless positions. On failure the transaction is rolled back: no
        message row is left behind and last_updated is unchanged.
        """
        now = utcnow()
        bump = (
            update(Conversation)
            .where(
                Conversation.id == conversation_id,
                or_(
                    Conversation.participant_one_id == caller_id,
                    Conversation.participant_two_id == caller_id,
                ),
            )
            .values(
                message_count=Conversation.message_count + 1,
                last_updated=case(
                    (Conversation.last_updated > now, Conversation.last_updated), else_=now
                ),
            )
            .returning(Conversation.message_count, Conversation.last_updated)
            .execution_options(synchronize_session=False)
        )
        try:
            bumped = (await self.db.execute(bump)).one_or_none()
            if bumped is None:
                await self._reject_append(conversation_id, caller_id)

            position, stamp = bumped
            message.conversation_id = conversation_id
            message.sender_id = caller_id
            message.position = position
            message.timestamp = as_utc(stamp)
            self.db.add(message)

            conversation = (
                await self.db.execute(
                    select(Conversation)
                    .where(Conversation.id == conversation_id)
                    .execution_options(populate_existing=True)
                )
            ).scalar_one()
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(
                f"[MESSAGE] Failed to append message in conversation {conversation_id}: {e}",
                exc_info=True,
            )
            await self.db.rollback()
            raise StoreError("Server error while sending message.")

        logger.info(
            f"[MESSAGE] Appended message {message.id} (#{message.position}) "
            f"to conversation {conversation_id} by {caller_id}"
        )
        return conversation

    async def _reject_append(self, conversation_id: UUID, caller_id: UUID) -> NoReturn:
        """Roll back a refused append and raise the matching error."""
        await self.db.rollback()
        exists = (
            await self.db.execute(select(Conversation.id).where(Conversation.id == conversation_id))
        ).scalar_one_or_none()
        if exists is None:
            raise ConversationNotFound()
        logger.warning(
            f"[MESSAGE] User {caller_id} is not a participant of conversation {conversation_id}"
        )
        raise NotParticipantError()

    # ---------------------------------------------------
    # Reads
    # ---------------------------------------------------
    async def list_for_user(self, user_id: UUID) -> list[Conversation]:
        """All conversations involving `user_id`, most recently updated first."""
        stmt = (
            select(Conversation)
            .where(
                or_(
                    Conversation.participant_one_id == user_id,
                    Conversation.participant_two_id == user_id,
                )
            )
            .options(
                selectinload(Conversation.participant_one),
                selectinload(Conversation.participant_two),
                selectinload(Conversation.product),
            )
            .order_by(Conversation.last_updated.desc(), Conversation.created_at.desc())
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.db.execute(stmt)
            conversations = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"[CONVERSATION] Failed to list conversations for user {user_id}: {e}")
            raise StoreError("Server error while fetching conversations.")
        logger.info(f"[CONVERSATION] Found {len(conversations)} conversations for user {user_id}")
        return conversations

    async def get_for_user(self, conversation_id: UUID, user_id: UUID) -> Conversation:
        """
        Load one conversation with its messages.

        Raises ConversationNotFound both when the conversation does not exist
        and when `user_id` is not a participant.
        """
        stmt = (
            select(Conversation)
            .where(
                Conversation.id == conversation_id,
                or_(
                    Conversation.participant_one_id == user_id,
                    Conversation.participant_two_id == user_id,
                ),
            )
            .options(
                selectinload(Conversation.participant_one),
                selectinload(Conversation.participant_two),
                selectinload(Conversation.product),
                selectinload(Conversation.messages).selectinload(Message.sender),
            )
            .execution_options(populate_existing=True)
        )
        try:
            conversation = (await self.db.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"[CONVERSATION] Failed to load conversation {conversation_id}: {e}")
            raise StoreError("Server error while fetching conversation.")
        if conversation is None:
            raise ConversationNotFound()
        return conversation

    async def message_count(self, conversation_id: UUID) -> int | None:
        """Current message count, or None if the conversation is gone."""
        try:
            result = await self.db.execute(
                select(Conversation.message_count).where(Conversation.id == conversation_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"[CONVERSATION] Failed to read message count of {conversation_id}: {e}")
            raise StoreError("Server error while fetching conversation.")
