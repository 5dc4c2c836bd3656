"""
campuscart/messaging/services.py

Messaging Service Logic

Handles core business operations for the messaging system:
- Start a conversation about a product, or reply to an existing one
- Persist every message through the ConversationStore before anything else
- Push new messages to the recipient's live connection, best effort
- Serve (and cache) the inbox and conversation views
"""

import json
import logging
from typing import Any
from uuid import UUID

from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from campuscart.core.cache import (
    CACHE_PREFIX,
    DEFAULT_CACHE_TTL,
    SHORT_CACHE_TTL,
    cache_key,
    invalidate_pattern,
    redis_client,
    user_cache_key,
)
from campuscart.core.exceptions import (
    ConversationNotFound,
    SelfMessageError,
    UserNotFound,
    ValidationError,
)
from campuscart.database.base import as_utc
from campuscart.messaging import models, schemas
from campuscart.messaging.manager import ConnectionRegistry
from campuscart.messaging.store import ConversationStore
from campuscart.products.services import ProductCatalog
from campuscart.users.services import UserDirectory

logger = logging.getLogger(__name__)

CONVERSATION_DETAIL_NS = "message:conversation"
CONVERSATION_LIST_USER_NS = "message:list:user"


# ---------------------------------------------------
# Response Builders
# ---------------------------------------------------
def _construct_participant_info(user: Any) -> schemas.ParticipantInfo:
    return schemas.ParticipantInfo(id=user.id, email=user.email)


def _construct_product_info(
    conversation: models.Conversation,
) -> schemas.ConversationProductInfo | None:
    product = conversation.product
    if product is None:
        return None
    return schemas.ConversationProductInfo(
        id=product.id, name=product.name, image_url=product.image_url
    )


def _construct_message_read(
    message: models.Message, sender: schemas.ParticipantInfo | None = None
) -> schemas.MessageRead:
    return schemas.MessageRead(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        sender=sender,
        body=message.body,
        timestamp=as_utc(message.timestamp),
    )


def _construct_conversation_summary(
    conversation: models.Conversation,
) -> schemas.ConversationSummary:
    return schemas.ConversationSummary(
        id=conversation.id,
        product_id=conversation.product_id,
        product=_construct_product_info(conversation),
        participants=[_construct_participant_info(u) for u in conversation.participants],
        message_count=conversation.message_count,
        created_at=as_utc(conversation.created_at),
        last_updated=as_utc(conversation.last_updated),
    )


def _construct_conversation_read(conversation: models.Conversation) -> schemas.ConversationRead:
    summary = _construct_conversation_summary(conversation)
    messages = [
        _construct_message_read(m, _construct_participant_info(m.sender))
        for m in conversation.messages
    ]
    return schemas.ConversationRead(**summary.model_dump(), messages=messages)


# ---------------------------------------------------
# MessageDeliveryService
# ---------------------------------------------------
class MessageDeliveryService:
    """
    Validates, persists, and pushes messages; serves conversation reads.

    The durable append is the only consistency boundary: once it commits the
    request succeeds, whatever happens to the live push afterwards.
    """

    def __init__(
        self,
        db: AsyncSession,
        registry: ConnectionRegistry,
        users: UserDirectory | None = None,
        products: ProductCatalog | None = None,
    ) -> None:
        self.db = db
        self.registry = registry
        self.store = ConversationStore(db)
        self.users = users or UserDirectory(db)
        self.products = products or ProductCatalog(db)
        self.cache = redis_client

    # ---------------------------------------------------
    # Writes
    # ---------------------------------------------------
    async def send_first_message(
        self, caller_id: UUID, product_id: UUID | None, body: str | None
    ) -> tuple[schemas.MessageRead, schemas.ConversationRead]:
        """
        Message the seller of a product, creating the conversation on first contact.
        """
        if product_id is None or not _has_text(body):
            raise ValidationError("Product ID and message body are required.")
        seller_id = await self.products.resolve_seller(product_id)
        if seller_id == caller_id:
            logger.info(f"[MESSAGE] User {caller_id} tried to message themselves on {product_id}")
            raise SelfMessageError()

        conversation = await self.store.find_or_create(product_id, caller_id, seller_id)
        message = models.Message(body=body)
        conversation = await self.store.append_message(conversation.id, caller_id, message)

        await self._invalidate_conversation_caches(conversation)
        message_read = await self._attempt_delivery(conversation, caller_id, message)

        conversation_read = _construct_conversation_read(
            await self.store.get_for_user(conversation.id, caller_id)
        )
        return message_read, conversation_read

    async def reply_to_conversation(
        self, caller_id: UUID, conversation_id: UUID, body: str | None
    ) -> schemas.MessageRead:
        """
        Append a reply to a conversation the caller participates in.
        """
        if not _has_text(body):
            raise ValidationError("Message body is required.")
        message = models.Message(body=body)
        conversation = await self.store.append_message(conversation_id, caller_id, message)

        await self._invalidate_conversation_caches(conversation)
        return await self._attempt_delivery(conversation, caller_id, message)

    async def _attempt_delivery(
        self, conversation: models.Conversation, sender_id: UUID, message: models.Message
    ) -> schemas.MessageRead:
        """
        Push the committed message to the other participant if they are
        connected. Never raises; returns the message view for the REST reply.
        """
        sender_email: str | None = None
        try:
            sender_email = await self.users.resolve_email(sender_id)
        except UserNotFound:
            logger.warning(f"[MESSAGE] Sender {sender_id} has no directory entry")
        except Exception as e:
            logger.warning(f"[MESSAGE] Could not resolve sender {sender_id} email: {e}")

        message_read = _construct_message_read(
            message, schemas.ParticipantInfo(id=sender_id, email=sender_email)
        )
        try:
            recipient_id = conversation.other_participant(sender_id)
            pushed = schemas.PushedMessage(**message_read.model_dump(), sender_email=sender_email)
            frame = schemas.NewMessageFrame(
                data=schemas.PushMessagePayload(conversation_id=conversation.id, message=pushed)
            )
            if self.registry.push(recipient_id, frame.to_wire()):
                logger.info(
                    f"[MESSAGE] Live push scheduled for message {message.id} to {recipient_id}"
                )
        except Exception as e:
            logger.warning(f"[MESSAGE] Live delivery of message {message.id} failed: {e}")
        return message_read

    # ---------------------------------------------------
    # Reads
    # ---------------------------------------------------
    async def list_conversations(self, user_id: UUID) -> list[schemas.ConversationSummary]:
        """Conversation summaries for the user, most recently updated first."""
        key = user_cache_key(CONVERSATION_LIST_USER_NS, user_id)
        cached = await self._cache_get(key)
        if cached is not None:
            logger.info(f"[CACHE ASYNC HIT] Conversation list for user {user_id}")
            return [schemas.ConversationSummary.model_validate(i) for i in json.loads(cached)]

        summaries = [
            _construct_conversation_summary(c) for c in await self.store.list_for_user(user_id)
        ]
        await self._cache_set(
            key,
            json.dumps([s.model_dump(mode="json") for s in summaries]),
            SHORT_CACHE_TTL,
        )
        return summaries

    async def get_conversation(
        self, conversation_id: UUID, user_id: UUID
    ) -> schemas.ConversationRead:
        """Full conversation view for a participant."""
        key = cache_key(CONVERSATION_DETAIL_NS, conversation_id)
        cached = await self._cache_get(key)
        if cached is not None:
            conversation_read = schemas.ConversationRead.model_validate_json(cached)
            if user_id not in {p.id for p in conversation_read.participants}:
                logger.warning(
                    f"[CACHE ASYNC AUTH] User {user_id} unauthorized for cached conversation "
                    f"{conversation_id}"
                )
                raise ConversationNotFound()
            # A view cached by a read that raced an append may miss messages.
            if await self.store.message_count(conversation_id) == conversation_read.message_count:
                logger.info(f"[CACHE ASYNC HIT] Conversation detail {conversation_id}")
                return conversation_read
            logger.info(f"[CACHE ASYNC STALE] Conversation detail {conversation_id}, reloading")

        conversation_read = _construct_conversation_read(
            await self.store.get_for_user(conversation_id, user_id)
        )
        await self._cache_set(key, conversation_read.model_dump_json(), DEFAULT_CACHE_TTL)
        return conversation_read

    # ---------------------------------------------------
    # Cache Helpers
    # ---------------------------------------------------
    async def _cache_get(self, key: str) -> str | None:
        if not self.cache:
            return None
        try:
            return await self.cache.get(key)
        except RedisError as e:
            logger.error(f"[CACHE ASYNC READ ERROR] {key}: {e}")
            return None

    async def _cache_set(self, key: str, value: str, ttl: int) -> None:
        if not self.cache:
            return
        try:
            await self.cache.set(key, value, ex=ttl)
        except RedisError as e:
            logger.error(f"[CACHE ASYNC WRITE ERROR] {key}: {e}")

    async def _invalidate_conversation_caches(self, conversation: models.Conversation) -> None:
        if not self.cache:
            return
        logger.info(f"[CACHE ASYNC MSG] Invalidating caches for conversation {conversation.id}")
        try:
            await self.cache.delete(cache_key(CONVERSATION_DETAIL_NS, conversation.id))
        except RedisError as e:
            logger.error(f"[CACHE ASYNC MSG ERROR] Failed invalidating {conversation.id}: {e}")
        for user_id in conversation.participant_ids:
            await invalidate_pattern(
                self.cache, f"{CACHE_PREFIX}{CONVERSATION_LIST_USER_NS}:{user_id}:*"
            )


def _has_text(body: str | None) -> bool:
    return bool(body and body.strip())
