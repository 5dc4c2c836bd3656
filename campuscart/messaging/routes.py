"""
campuscart/messaging/routes.py

Messaging API Routes

Defines all routes for the messaging system, including:
- Messaging a seller about a product (starts or reuses a conversation)
- Replying to existing conversations
- Listing all conversations involving the authenticated user
- Retrieving a single conversation with its messages

All operations require user authentication and participant access control.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from campuscart.core.dependencies import CurrentUserIdDep
from campuscart.core.limiter import limiter
from campuscart.database.session import get_db
from campuscart.messaging import schemas
from campuscart.messaging.manager import ConnectionRegistry, get_connection_registry
from campuscart.messaging.services import MessageDeliveryService

# ---------------------------------------------------
# Router Configuration
# ---------------------------------------------------
router = APIRouter(prefix="/api", tags=["Messaging"])

# ---------------------------------------------------
# Dependencies
# ---------------------------------------------------
DBDep = Annotated[AsyncSession, Depends(get_db)]
RegistryDep = Annotated[ConnectionRegistry, Depends(get_connection_registry)]

# ---------------------------------------------------
# Messaging Endpoints (Authenticated Users Only)
# ---------------------------------------------------


@router.post(
    "/messages",
    response_model=schemas.SendMessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Message Seller",
    description="Send a message to a product's seller, creating the conversation on first contact.",
)
@limiter.limit("20/minute")
async def send_message(
    request: Request,
    message_data: schemas.MessageCreate,
    db: DBDep,
    registry: RegistryDep,
    current_user_id: CurrentUserIdDep,
) -> schemas.SendMessageResponse:
    """
    Start (or continue) the conversation about a product.
    """
    _, conversation = await MessageDeliveryService(db, registry).send_first_message(
        caller_id=current_user_id,
        product_id=message_data.product_id,
        body=message_data.message_body,
    )
    return schemas.SendMessageResponse(
        message="Message sent successfully!", conversation=conversation
    )


@router.get(
    "/conversations",
    response_model=list[schemas.ConversationSummary],
    status_code=status.HTTP_200_OK,
    summary="List My Conversations",
    description="Retrieve all conversations involving the authenticated user, ordered by latest activity.",
)
@limiter.limit("30/minute")
async def list_my_conversations(
    request: Request,
    db: DBDep,
    registry: RegistryDep,
    current_user_id: CurrentUserIdDep,
) -> list[schemas.ConversationSummary]:
    """
    Retrieve all conversations involving the authenticated user.
    """
    return await MessageDeliveryService(db, registry).list_conversations(current_user_id)


@router.get(
    "/conversations/{conversation_id}",
    response_model=schemas.ConversationRead,
    status_code=status.HTTP_200_OK,
    summary="Get Conversation",
    description="Retrieve messages and participants of a conversation. Requires participation.",
)
@limiter.limit("60/minute")
async def get_conversation(
    request: Request,
    conversation_id: UUID,
    db: DBDep,
    registry: RegistryDep,
    current_user_id: CurrentUserIdDep,
) -> schemas.ConversationRead:
    """
    Retrieve a conversation and its messages.
    """
    return await MessageDeliveryService(db, registry).get_conversation(
        conversation_id, current_user_id
    )


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=schemas.ReplyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Reply to Conversation",
    description="Reply to an existing conversation. User must be authenticated and a participant.",
)
@limiter.limit("30/minute")
async def reply_to_conversation(
    request: Request,
    conversation_id: UUID,
    message_data: schemas.ReplyCreate,
    db: DBDep,
    registry: RegistryDep,
    current_user_id: CurrentUserIdDep,
) -> schemas.ReplyResponse:
    """
    Reply to an existing conversation.
    """
    message = await MessageDeliveryService(db, registry).reply_to_conversation(
        caller_id=current_user_id,
        conversation_id=conversation_id,
        body=message_data.message_body,
    )
    return schemas.ReplyResponse(message="Reply sent successfully.", data=message)
