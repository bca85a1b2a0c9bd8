# backend/creatorlink/routes/v1/conversations.py
"""
Conversations routes - API v1

Versioned conversation endpoints under /api/v1/conversations.
All business logic delegated to ConversationService, MessageService and
RecruitmentService; routes only translate, serialize and publish.

Realtime events are published after the service call returns, i.e. after
the transaction has committed. Publish problems never fail a request.

Endpoints:
    POST /                                          -> Initiate (or fetch) a conversation
    GET /                                           -> Inbox, paginated, filter by status
    GET /stats/overview                             -> Per-user chat statistics
    GET /{conversation_id}                          -> Conversation details
    GET /{conversation_id}/messages                 -> Message history, paginated
    POST /{conversation_id}/messages                -> Send a message
    PATCH /{conversation_id}/messages/{id}/read     -> Mark one message read
    PATCH /{conversation_id}/read-all               -> Mark every message read
    PATCH /{conversation_id}/status                 -> Connection / recruitment status
"""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status

from ...api.dependencies.auth import get_current_identity
from ...api.dependencies.services import (
    get_conversation_service,
    get_message_service,
    get_recruitment_service,
    get_registry,
    get_router,
)
from ...core.enums import ConnectionStatus
from ...core.exceptions import DomainException
from ...schemas.conversation import (
    ChatStatsResponse,
    ConversationListResponse,
    ConversationResponse,
    InitiateConversationRequest,
    InitiateConversationResponse,
    UpdateConversationStatusRequest,
    participant_summary,
    serialize_conversation,
    serialize_view,
)
from ...schemas.message import (
    MarkAllReadResponse,
    MarkReadResponse,
    MessageResponse,
    MessagesResponse,
    SendMessageRequest,
    build_pagination,
    serialize_message,
    serialize_messages,
)
from ...services.conversation_service import ConversationService, InitiateResult
from ...services.directory_service import IdentityRecord
from ...services.message_service import MessageService, OfferTerms
from ...services.messaging.publisher import (
    publish_mark_all_read,
    publish_new_chat,
    publish_new_message,
    publish_receipt_result,
    publish_status_update,
)
from ...services.messaging.registry import ConnectionRegistry
from ...services.messaging.router import RoomRouter
from ...services.recruitment_service import RecruitmentService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["conversations-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _creator_view(result: InitiateResult, registry: ConnectionRegistry) -> ConversationResponse:
    """The new conversation as the creator will see it in their inbox."""
    conversation = result.conversation
    brand = result.participants.get(str(conversation.brand_id))
    last_message = next(
        (m for m in result.messages if str(m.id) == str(conversation.last_message_id)), None
    )
    return serialize_conversation(
        conversation,
        unread_count=len(result.messages),
        other_participant=participant_summary(brand, registry.is_online),
        last_message=serialize_message(last_message) if last_message else None,
    )


# =============================================================================
# Conversation Endpoints
# =============================================================================


@router.post(
    "",
    response_model=InitiateConversationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def initiate_conversation(
    request: InitiateConversationRequest,
    response: Response,
    current_identity: IdentityRecord = Depends(get_current_identity),
    service: ConversationService = Depends(get_conversation_service),
    registry: ConnectionRegistry = Depends(get_registry),
    room_router: RoomRouter = Depends(get_router),
) -> InitiateConversationResponse:
    """
    Open the conversation between a campaign's brand and an applicant.

    Returns 201 with the new conversation, or 200 with the existing one
    when the brand already started a conversation with this creator.
    """
    try:
        result = await asyncio.to_thread(
            service.initiate_conversation,
            current_identity.id,
            request.campaign_id,
            request.creator_id,
            request.initial_message,
        )
    except DomainException as e:
        handle_domain_exception(e)

    conversation = result.conversation
    if result.created:
        publish_new_chat(room_router, result.creator_id, _creator_view(result, registry))
    else:
        response.status_code = status.HTTP_200_OK

    other = result.participants.get(conversation.get_other_participant_id(current_identity.id))
    last_message = next(
        (m for m in result.messages if str(m.id) == str(conversation.last_message_id)), None
    )
    return InitiateConversationResponse(
        conversation=serialize_conversation(
            conversation,
            other_participant=participant_summary(other, registry.is_online),
            last_message=serialize_message(last_message) if last_message else None,
        ),
        created=result.created,
        messages=[serialize_message(m) for m in result.messages],
    )


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    status_filter: Optional[ConnectionStatus] = Query(ConnectionStatus.ACTIVE, alias="status"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_identity: IdentityRecord = Depends(get_current_identity),
    service: ConversationService = Depends(get_conversation_service),
    registry: ConnectionRegistry = Depends(get_registry),
) -> ConversationListResponse:
    """
    List the caller's conversations, most recent activity first.

    limit is clamped to the configured inbox maximum.
    """
    try:
        inbox = await asyncio.to_thread(
            service.list_inbox, current_identity.id, status_filter, page, limit
        )
    except DomainException as e:
        handle_domain_exception(e)

    return ConversationListResponse(
        conversations=[serialize_view(view, registry.is_online) for view in inbox.items],
        pagination=build_pagination(inbox.page, inbox.page_size, inbox.total),
    )


@router.get("/stats/overview", response_model=ChatStatsResponse)
async def get_chat_stats(
    current_identity: IdentityRecord = Depends(get_current_identity),
    service: ConversationService = Depends(get_conversation_service),
) -> ChatStatsResponse:
    """Totals per connection status plus unread messages for the caller."""
    try:
        stats = await asyncio.to_thread(service.get_stats, current_identity.id)
    except DomainException as e:
        handle_domain_exception(e)
    return ChatStatsResponse(**stats)


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    current_identity: IdentityRecord = Depends(get_current_identity),
    service: ConversationService = Depends(get_conversation_service),
    registry: ConnectionRegistry = Depends(get_registry),
) -> ConversationResponse:
    try:
        view = await asyncio.to_thread(
            service.get_conversation, current_identity.id, conversation_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return serialize_view(view, registry.is_online)


@router.patch("/{conversation_id}/status", response_model=ConversationResponse)
async def update_conversation_status(
    request: UpdateConversationStatusRequest,
    conversation_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    current_identity: IdentityRecord = Depends(get_current_identity),
    service: RecruitmentService = Depends(get_recruitment_service),
    room_router: RoomRouter = Depends(get_router),
) -> ConversationResponse:
    """
    Change connection status and/or recruitment status.

    Publishes chat_status_update to the conversation channel when
    anything actually changed.
    """
    try:
        result = await asyncio.to_thread(
            service.update_status,
            current_identity.id,
            conversation_id,
            request.status,
            request.recruitment_status,
        )
    except DomainException as e:
        handle_domain_exception(e)

    publish_status_update(room_router, result)
    return serialize_conversation(result.conversation)


# =============================================================================
# Message Endpoints
# =============================================================================


@router.get("/{conversation_id}/messages", response_model=MessagesResponse)
async def get_messages(
    conversation_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_identity: IdentityRecord = Depends(get_current_identity),
    service: MessageService = Depends(get_message_service),
) -> MessagesResponse:
    """
    Get one page of history.

    Page 1 holds the most recent messages; each page is ordered oldest
    first. Fetching acknowledges delivery of the other participant's messages.
    """
    try:
        result = await asyncio.to_thread(
            service.list_messages, current_identity.id, conversation_id, page, limit
        )
    except DomainException as e:
        handle_domain_exception(e)

    return MessagesResponse(
        messages=serialize_messages(result.messages, result.receipts),
        pagination=build_pagination(result.page, result.page_size, result.total),
        unread_count=result.unread_count,
    )


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    request: SendMessageRequest,
    conversation_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    current_identity: IdentityRecord = Depends(get_current_identity),
    service: MessageService = Depends(get_message_service),
    room_router: RoomRouter = Depends(get_router),
) -> MessageResponse:
    """
    Send a text or offer message.

    Success depends on persistence only; realtime fan-out is best effort.
    """
    offer = None
    if request.offer is not None:
        offer = OfferTerms(
            amount=request.offer.amount,
            currency=request.offer.currency or "USD",
            description=request.offer.description,
            deadline=request.offer.deadline,
        )
    try:
        context = await asyncio.to_thread(
            service.send_message,
            current_identity.id,
            conversation_id,
            request.content,
            request.kind,
            offer,
        )
    except DomainException as e:
        handle_domain_exception(e)

    message = serialize_message(context.message)
    publish_new_message(room_router, context, message)
    return message


@router.patch(
    "/{conversation_id}/messages/{message_id}/read",
    response_model=MarkReadResponse,
)
async def mark_message_read(
    conversation_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    message_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    current_identity: IdentityRecord = Depends(get_current_identity),
    service: MessageService = Depends(get_message_service),
    room_router: RoomRouter = Depends(get_router),
) -> MarkReadResponse:
    """Mark one message read; repeating the call is a no-op."""
    try:
        result = await asyncio.to_thread(
            service.mark_read, current_identity.id, conversation_id, message_id
        )
    except DomainException as e:
        handle_domain_exception(e)

    publish_receipt_result(room_router, result)
    return MarkReadResponse(
        message_id=result.message_id,
        read_by=result.reader_id,
        read_at=result.read_at,
        newly_read=result.newly_read,
    )


@router.patch("/{conversation_id}/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    conversation_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    current_identity: IdentityRecord = Depends(get_current_identity),
    service: MessageService = Depends(get_message_service),
    room_router: RoomRouter = Depends(get_router),
) -> MarkAllReadResponse:
    try:
        result = await asyncio.to_thread(service.mark_all_read, current_identity.id, conversation_id)
    except DomainException as e:
        handle_domain_exception(e)

    publish_mark_all_read(room_router, result)
    return MarkAllReadResponse(
        conversation_id=conversation_id,
        marked_count=result.count,
        message_ids=result.marked_message_ids,
    )
