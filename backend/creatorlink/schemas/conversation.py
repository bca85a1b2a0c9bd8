# backend/creatorlink/schemas/conversation.py
"""
Pydantic schemas for conversation API.

Provides request/response models for the campaign conversation endpoints.
"""

from datetime import datetime
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from ..core.enums import ConnectionStatus, RecruitmentStatus, RoleName
from ..core.timezone_utils import ensure_utc
from ..models.conversation import Conversation
from ..services.conversation_service import ConversationView
from ..services.directory_service import IdentityRecord
from ._strict_base import StrictRequestModel
from .message import MessageResponse, PaginationMeta, serialize_message

ULID_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


class ParticipantSummary(BaseModel):
    """Minimal identity info for conversation views."""

    id: str
    role: RoleName
    display_label: str
    is_online: bool = False


class ConversationResponse(BaseModel):
    """A conversation as seen by the requesting participant."""

    id: str
    campaign_id: str
    brand_id: str
    creator_id: str
    initiator_id: str
    participant_ids: List[str]
    connection_status: ConnectionStatus
    recruitment_status: RecruitmentStatus
    last_message_id: Optional[str] = None
    last_message: Optional[MessageResponse] = None
    last_activity_at: datetime
    created_at: datetime
    unread_count: int = 0
    other_participant: Optional[ParticipantSummary] = None


class InitiateConversationRequest(StrictRequestModel):
    """Request to open a conversation with a creator about a campaign."""

    campaign_id: str = Field(..., pattern=ULID_PATTERN)
    creator_id: str = Field(..., pattern=ULID_PATTERN)
    initial_message: Optional[str] = None


class InitiateConversationResponse(BaseModel):
    """Response for POST /conversations."""

    conversation: ConversationResponse
    created: bool  # False if conversation already existed
    messages: List[MessageResponse] = Field(default_factory=list)


class ConversationListResponse(BaseModel):
    """Response for GET /conversations."""

    conversations: List[ConversationResponse]
    pagination: PaginationMeta


class UpdateConversationStatusRequest(StrictRequestModel):
    status: Optional[ConnectionStatus] = None
    recruitment_status: Optional[RecruitmentStatus] = None


class ChatStatsResponse(BaseModel):
    total: int
    active: int
    archived: int
    blocked: int
    unread_messages: int


def participant_summary(
    identity: Optional[IdentityRecord], is_online: Callable[[str], bool]
) -> Optional[ParticipantSummary]:
    if identity is None:
        return None
    return ParticipantSummary(
        id=identity.id,
        role=identity.role,
        display_label=identity.display_label,
        is_online=is_online(identity.id),
    )


def serialize_conversation(
    conversation: Conversation,
    *,
    unread_count: int = 0,
    other_participant: Optional[ParticipantSummary] = None,
    last_message: Optional[MessageResponse] = None,
) -> ConversationResponse:
    return ConversationResponse(
        id=str(conversation.id),
        campaign_id=str(conversation.campaign_id),
        brand_id=str(conversation.brand_id),
        creator_id=str(conversation.creator_id),
        initiator_id=str(conversation.initiator_id),
        participant_ids=list(conversation.participant_ids),
        connection_status=ConnectionStatus(conversation.connection_status),
        recruitment_status=RecruitmentStatus(conversation.recruitment_status),
        last_message_id=conversation.last_message_id,
        last_message=last_message,
        last_activity_at=ensure_utc(conversation.last_activity_at),
        created_at=ensure_utc(conversation.created_at),
        unread_count=unread_count,
        other_participant=other_participant,
    )


def serialize_view(view: ConversationView, is_online: Callable[[str], bool]) -> ConversationResponse:
    return serialize_conversation(
        view.conversation,
        unread_count=view.unread_count,
        other_participant=participant_summary(view.other_participant, is_online),
        last_message=serialize_message(view.last_message) if view.last_message else None,
    )
