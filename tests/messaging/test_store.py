"""
tests/messaging/test_store.py

Unit tests for ConversationStore against SQLite: in-memory for behaviour,
file-backed for concurrent writers.
"""

import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from campuscart.core.exceptions import (
    ConversationNotFound,
    NotParticipantError,
    SelfMessageError,
    StoreError,
)
from campuscart.database.base import Base, as_utc
from campuscart.database.models import User
from campuscart.messaging.models import Conversation, Message
from campuscart.messaging.store import ConversationStore
from campuscart.products.models import Product


async def _count_conversations(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(Conversation))).scalar_one()


# --- find_or_create ---


@pytest.mark.asyncio
async def test_find_or_create_creates_once_per_product_and_pair(
    db_session: AsyncSession, seed: SimpleNamespace
):
    store = ConversationStore(db_session)

    first = await store.find_or_create(seed.product_id, seed.buyer_id, seed.seller_id)
    again = await store.find_or_create(seed.product_id, seed.buyer_id, seed.seller_id)
    swapped = await store.find_or_create(seed.product_id, seed.seller_id, seed.buyer_id)

    assert first.id == again.id == swapped.id
    assert first.participant_ids == frozenset({seed.buyer_id, seed.seller_id})
    assert first.participant_one_id < first.participant_two_id
    assert first.message_count == 0
    assert await _count_conversations(db_session) == 1


@pytest.mark.asyncio
async def test_find_or_create_separates_products(
    db_session: AsyncSession, seed: SimpleNamespace
):
    other = Product(
        seller_id=seed.seller_id,
        name="Chair",
        description="Wooden chair",
        price=20.0,
        image_url="uploads/image-chair.jpg",
    )
    db_session.add(other)
    await db_session.commit()

    store = ConversationStore(db_session)
    lamp = await store.find_or_create(seed.product_id, seed.buyer_id, seed.seller_id)
    chair = await store.find_or_create(other.id, seed.buyer_id, seed.seller_id)

    assert lamp.id != chair.id
    assert await _count_conversations(db_session) == 2


@pytest.mark.asyncio
async def test_find_or_create_rejects_self_conversation(
    db_session: AsyncSession, seed: SimpleNamespace
):
    store = ConversationStore(db_session)

    with pytest.raises(SelfMessageError):
        await store.find_or_create(seed.product_id, seed.seller_id, seed.seller_id)

    assert await _count_conversations(db_session) == 0


# --- append_message ---


@pytest.mark.asyncio
async def test_append_assigns_gapless_positions_and_monotonic_timestamps(
    db_session: AsyncSession, seed: SimpleNamespace
):
    store = ConversationStore(db_session)
    conversation = await store.find_or_create(seed.product_id, seed.buyer_id, seed.seller_id)

    senders = [seed.buyer_id, seed.seller_id, seed.buyer_id, seed.buyer_id]
    for index, sender in enumerate(senders):
        await store.append_message(conversation.id, sender, Message(body=f"msg {index}"))

    loaded = await store.get_for_user(conversation.id, seed.buyer_id)
    assert [m.position for m in loaded.messages] == [1, 2, 3, 4]
    assert [m.body for m in loaded.messages] == ["msg 0", "msg 1", "msg 2", "msg 3"]
    assert [m.sender_id for m in loaded.messages] == senders
    assert loaded.message_count == 4

    stamps = [as_utc(m.timestamp) for m in loaded.messages]
    assert stamps == sorted(stamps)
    assert as_utc(loaded.last_updated) == stamps[-1]
    assert as_utc(loaded.last_updated) >= as_utc(loaded.created_at)


@pytest.mark.asyncio
async def test_append_never_moves_last_updated_backwards(
    db_session: AsyncSession, seed: SimpleNamespace
):
    store = ConversationStore(db_session)
    conversation = await store.find_or_create(seed.product_id, seed.buyer_id, seed.seller_id)
    first = await store.append_message(conversation.id, seed.buyer_id, Message(body="hi"))
    before = as_utc(first.last_updated)

    # Wall clock stepping backwards must not reorder the conversation.
    earlier = before.replace(year=before.year - 1)
    with patch("campuscart.messaging.store.utcnow", return_value=earlier):
        message = Message(body="from the past")
        second = await store.append_message(conversation.id, seed.seller_id, message)

    assert as_utc(second.last_updated) == before
    assert as_utc(message.timestamp) == before
    assert message.position == 2


@pytest.mark.asyncio
async def test_append_by_non_participant_is_rejected(
    db_session: AsyncSession, seed: SimpleNamespace
):
    store = ConversationStore(db_session)
    conversation = await store.find_or_create(seed.product_id, seed.buyer_id, seed.seller_id)
    conversation_id = conversation.id
    await store.append_message(conversation_id, seed.buyer_id, Message(body="hi"))

    # The rejected append rolls back, expiring instances held by the session.
    with pytest.raises(NotParticipantError):
        await store.append_message(conversation_id, seed.outsider_id, Message(body="me too"))

    loaded = await store.get_for_user(conversation_id, seed.seller_id)
    assert loaded.message_count == 1
    assert len(loaded.messages) == 1


@pytest.mark.asyncio
async def test_append_to_missing_conversation(db_session: AsyncSession, seed: SimpleNamespace):
    store = ConversationStore(db_session)

    with pytest.raises(ConversationNotFound):
        await store.append_message(uuid4(), seed.buyer_id, Message(body="hello?"))


@pytest.mark.asyncio
async def test_failed_append_leaves_no_partial_state(
    session_factory: async_sessionmaker[AsyncSession], seed: SimpleNamespace
):
    async with session_factory() as db:
        store = ConversationStore(db)
        conversation = await store.find_or_create(
            seed.product_id, seed.buyer_id, seed.seller_id
        )
        await store.append_message(conversation.id, seed.buyer_id, Message(body="kept"))
        committed_stamp = as_utc(conversation.last_updated)

    async with session_factory() as db:
        failing_commit = AsyncMock(
            side_effect=OperationalError("COMMIT", {}, Exception("disk I/O error"))
        )
        with patch.object(db, "commit", failing_commit):
            with pytest.raises(StoreError):
                await ConversationStore(db).append_message(
                    conversation.id, seed.seller_id, Message(body="lost")
                )

    async with session_factory() as db:
        loaded = await ConversationStore(db).get_for_user(conversation.id, seed.buyer_id)
        assert loaded.message_count == 1
        assert [m.body for m in loaded.messages] == ["kept"]
        assert as_utc(loaded.last_updated) == committed_stamp


# --- Concurrent writers ---


@pytest_asyncio.fixture
async def file_session_factory(
    tmp_path: Path,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    File-backed SQLite with one connection per session, so concurrent
    sessions contend for the database lock like separate requests do.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'concurrency.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(
        bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
    )
    await engine.dispose()


async def _seed_listing(factory: async_sessionmaker[AsyncSession]) -> SimpleNamespace:
    async with factory() as db:
        seller = User(email="seller@campus.edu")
        buyer = User(email="buyer@campus.edu")
        db.add_all([seller, buyer])
        await db.flush()
        product = Product(
            seller_id=seller.id,
            name="Desk Lamp",
            description="Barely used LED desk lamp.",
            price=15.0,
            image_url="uploads/image-lamp.jpg",
        )
        db.add(product)
        await db.commit()
        return SimpleNamespace(seller_id=seller.id, buyer_id=buyer.id, product_id=product.id)


async def _positions(factory: async_sessionmaker[AsyncSession]) -> list[int]:
    async with factory() as db:
        result = await db.execute(select(Message.position).order_by(Message.position))
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_concurrent_first_messages_share_one_conversation(
    file_session_factory: async_sessionmaker[AsyncSession],
):
    listing = await _seed_listing(file_session_factory)

    async def first_message(index: int) -> UUID:
        async with file_session_factory() as db:
            store = ConversationStore(db)
            conversation = await store.find_or_create(
                listing.product_id, listing.buyer_id, listing.seller_id
            )
            conversation_id = conversation.id
            await store.append_message(
                conversation_id, listing.buyer_id, Message(body=f"first {index}")
            )
            return conversation_id

    ids = await asyncio.gather(*(first_message(i) for i in range(5)))

    assert len(set(ids)) == 1
    async with file_session_factory() as db:
        assert await _count_conversations(db) == 1
    assert await _positions(file_session_factory) == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_concurrent_appends_get_unique_gapless_positions(
    file_session_factory: async_sessionmaker[AsyncSession],
):
    listing = await _seed_listing(file_session_factory)
    async with file_session_factory() as db:
        store = ConversationStore(db)
        conversation = await store.find_or_create(
            listing.product_id, listing.buyer_id, listing.seller_id
        )
        conversation_id = conversation.id
        await store.append_message(conversation_id, listing.buyer_id, Message(body="opening"))

    async def append(index: int) -> None:
        sender = listing.seller_id if index % 2 else listing.buyer_id
        async with file_session_factory() as db:
            await ConversationStore(db).append_message(
                conversation_id, sender, Message(body=f"burst {index}")
            )

    await asyncio.gather(*(append(i) for i in range(6)))

    assert await _positions(file_session_factory) == [1, 2, 3, 4, 5, 6, 7]
    async with file_session_factory() as db:
        loaded = await ConversationStore(db).get_for_user(conversation_id, listing.buyer_id)
        assert loaded.message_count == 7
        stamps = [as_utc(m.timestamp) for m in loaded.messages]
        assert stamps == sorted(stamps)
        assert as_utc(loaded.last_updated) == stamps[-1]


# --- Reads ---


@pytest.mark.asyncio
async def test_list_for_user_orders_by_latest_activity(
    db_session: AsyncSession, seed: SimpleNamespace
):
    other = Product(
        seller_id=seed.outsider_id,
        name="Bike",
        description="Commuter bike",
        price=80.0,
        image_url="uploads/image-bike.jpg",
    )
    db_session.add(other)
    await db_session.commit()

    store = ConversationStore(db_session)
    lamp = await store.find_or_create(seed.product_id, seed.buyer_id, seed.seller_id)
    await store.append_message(lamp.id, seed.buyer_id, Message(body="lamp?"))
    bike = await store.find_or_create(other.id, seed.buyer_id, seed.outsider_id)
    await store.append_message(bike.id, seed.buyer_id, Message(body="bike?"))

    assert [c.id for c in await store.list_for_user(seed.buyer_id)] == [bike.id, lamp.id]

    await store.append_message(lamp.id, seed.seller_id, Message(body="still available"))

    assert [c.id for c in await store.list_for_user(seed.buyer_id)] == [lamp.id, bike.id]
    assert [c.id for c in await store.list_for_user(seed.seller_id)] == [lamp.id]
    assert [c.id for c in await store.list_for_user(seed.outsider_id)] == [bike.id]


@pytest.mark.asyncio
async def test_get_for_user_hides_conversation_from_non_participants(
    db_session: AsyncSession, seed: SimpleNamespace
):
    store = ConversationStore(db_session)
    conversation = await store.find_or_create(seed.product_id, seed.buyer_id, seed.seller_id)
    await store.append_message(conversation.id, seed.buyer_id, Message(body="hi"))

    with pytest.raises(ConversationNotFound):
        await store.get_for_user(conversation.id, seed.outsider_id)
    with pytest.raises(ConversationNotFound):
        await store.get_for_user(uuid4(), seed.buyer_id)


@pytest.mark.asyncio
async def test_read_failures_surface_as_store_errors(
    db_session: AsyncSession, seed: SimpleNamespace
):
    store = ConversationStore(db_session)
    broken = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("database is locked")))

    with patch.object(db_session, "execute", broken):
        with pytest.raises(StoreError, match="Server error while fetching conversations."):
            await store.list_for_user(seed.buyer_id)
        with pytest.raises(StoreError, match="Server error while fetching conversation."):
            await store.get_for_user(uuid4(), seed.buyer_id)
        with pytest.raises(StoreError):
            await store.message_count(uuid4())
