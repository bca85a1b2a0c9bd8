# backend/creatorlink/services/conversation_service.py
"""
Conversation Service for campaign-scoped brand/creator messaging.

Handles business logic for the chat lifecycle including:
- Initiating the single conversation for a campaign/brand/creator triple
- Listing the inbox for a user
- Getting conversation details
- Per-user chat statistics
"""

from dataclasses import dataclass, field
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import ConnectionStatus, MessageKind, RoleName, SystemMessageKind
from ..core.exceptions import (
    ConversationExistsException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
)
from ..models.conversation import Conversation
from ..models.message import Message
from ..repositories.conversation_repository import ConversationRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.message_repository import MessageRepository
from .base import BaseService
from .directory_service import DirectoryService, IdentityRecord
from .message_service import append_message, normalize_content

logger = logging.getLogger(__name__)


@dataclass
class InitiateResult:
    """Outcome of initiate_conversation, with fan-out context."""

    conversation: Conversation
    created: bool
    messages: List[Message] = field(default_factory=list)
    participants: Dict[str, IdentityRecord] = field(default_factory=dict)

    @property
    def creator_id(self) -> str:
        return str(self.conversation.creator_id)


@dataclass
class ConversationView:
    """A conversation as seen by one participant."""

    conversation: Conversation
    viewer_id: str
    unread_count: int
    other_participant: Optional[IdentityRecord]
    last_message: Optional[Message] = None


@dataclass
class InboxPage:
    items: List[ConversationView]
    total: int
    page: int
    page_size: int


def chat_started_text(brand_label: str, campaign_name: str) -> str:
    return f'{brand_label} started a conversation about "{campaign_name}"'


class ConversationService(BaseService):
    """
    Service for managing campaign conversations.

    Handles conversation creation, lookup and inbox listing
    with proper access control.
    """

    def __init__(
        self,
        db: Session,
        conversation_repository: Optional[ConversationRepository] = None,
        message_repository: Optional[MessageRepository] = None,
        directory: Optional[DirectoryService] = None,
    ):
        """
        Initialize conversation service.

        Args:
            db: Database session
            conversation_repository: Optional repository for conversations
            message_repository: Optional repository for messages
            directory: Optional identity/campaign lookup service
        """
        super().__init__(db)
        self.conversation_repository = (
            conversation_repository or RepositoryFactory.create_conversation_repository(db)
        )
        self.message_repository = message_repository or RepositoryFactory.create_message_repository(
            db
        )
        self.directory = directory or DirectoryService(db)
        self.logger = logging.getLogger(__name__)

    @BaseService.measure_operation("initiate_conversation")
    def initiate_conversation(
        self,
        requester_id: str,
        campaign_id: str,
        creator_id: str,
        first_message: Optional[str] = None,
    ) -> InitiateResult:
        """
        Open the conversation between a campaign's brand and an applicant.

        Preconditions are checked in order, first failure wins:
        campaign exists, requester owns it, creator applied, creator is an
        approved creator. An existing conversation for the triple is
        returned with created=False instead of raising.

        Raises:
            NotFoundException: campaign or creator missing / not in standing
            ForbiddenException: requester does not own the campaign
            InvalidStateException: creator has not applied
            ValidationException: first message too long (only when creating)
        """
        campaign = self.directory.get_campaign(campaign_id)
        if campaign is None:
            raise NotFoundException("Campaign not found", code="CAMPAIGN_NOT_FOUND")
        if campaign.owner_id != requester_id:
            raise ForbiddenException(
                "Only the brand that owns this campaign can start a conversation",
                code="NOT_CAMPAIGN_OWNER",
            )
        if creator_id not in campaign.applied_creator_ids:
            raise InvalidStateException(
                "Creator has not applied to this campaign",
                code="CREATOR_NOT_APPLIED",
                details={"campaign_id": campaign_id, "creator_id": creator_id},
            )
        identities = self.directory.get_identities([requester_id, creator_id])
        creator = identities.get(creator_id)
        if creator is None or creator.role != RoleName.CREATOR or not creator.is_approved:
            raise NotFoundException("Creator not found or not approved", code="CREATOR_NOT_FOUND")
        brand = identities.get(requester_id)
        brand_label = brand.display_label if brand else requester_id

        existing = self.conversation_repository.find_by_triple(campaign_id, requester_id, creator_id)
        if existing is not None:
            return InitiateResult(conversation=existing, created=False, participants=identities)

        # Only a conversation about to be created validates its first message.
        first_text = None
        if first_message and first_message.strip():
            first_text = normalize_content(first_message, settings.message_max_length)

        try:
            with self.transaction():
                conversation = self.conversation_repository.create_conversation(
                    campaign_id=campaign_id,
                    brand_id=requester_id,
                    creator_id=creator_id,
                    initiator_id=requester_id,
                )
                messages = [
                    append_message(
                        self.message_repository,
                        conversation,
                        requester_id,
                        chat_started_text(brand_label, campaign.name),
                        kind=MessageKind.SYSTEM,
                        system_kind=SystemMessageKind.CHAT_STARTED,
                    )
                ]
                if first_text:
                    messages.append(
                        append_message(
                            self.message_repository, conversation, requester_id, first_text
                        )
                    )
        except ConversationExistsException as exc:
            winner = (
                self.conversation_repository.get_by_id(exc.conversation_id, load_relationships=False)
                if exc.conversation_id
                else self.conversation_repository.find_by_triple(campaign_id, requester_id, creator_id)
            )
            if winner is None:
                raise
            return InitiateResult(conversation=winner, created=False, participants=identities)

        self.logger.info(
            "Conversation started",
            extra={
                "conversation_id": conversation.id,
                "campaign_id": campaign_id,
                "creator_id": creator_id,
            },
        )
        return InitiateResult(
            conversation=conversation,
            created=True,
            messages=messages,
            participants=identities,
        )

    def _view(
        self,
        conversation: Conversation,
        viewer_id: str,
        unread_count: int,
        identities: Dict[str, IdentityRecord],
        last_messages: Dict[str, Message],
    ) -> ConversationView:
        other_id = conversation.get_other_participant_id(viewer_id)
        return ConversationView(
            conversation=conversation,
            viewer_id=viewer_id,
            unread_count=unread_count,
            other_participant=identities.get(other_id),
            last_message=last_messages.get(str(conversation.last_message_id)),
        )

    def _load_last_messages(self, conversations: List[Conversation]) -> Dict[str, Message]:
        ids = [str(c.last_message_id) for c in conversations if c.last_message_id]
        return self.message_repository.get_by_ids(ids)

    @BaseService.measure_operation("get_conversation")
    def get_conversation(self, user_id: str, conversation_id: str) -> ConversationView:
        conversation = self.conversation_repository.get_with_participant_info(conversation_id)
        if conversation is None:
            raise NotFoundException("Conversation not found", code="CONVERSATION_NOT_FOUND")
        if not conversation.is_participant(user_id):
            raise ForbiddenException(
                "You are not a participant in this conversation", code="NOT_PARTICIPANT"
            )
        identities = self.directory.get_identities(list(conversation.participant_ids))
        unread = self.conversation_repository.get_unread_count(conversation_id, user_id)
        return self._view(
            conversation, user_id, unread, identities, self._load_last_messages([conversation])
        )

    @BaseService.measure_operation("list_inbox")
    def list_inbox(
        self,
        user_id: str,
        connection_status: Optional[ConnectionStatus] = ConnectionStatus.ACTIVE,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> InboxPage:
        """
        List a user's conversations, most recent activity first.

        Args:
            user_id: Participant whose inbox to list
            connection_status: Filter (None lists every status)
            page: 1-based page number
            page_size: Clamped to the configured inbox maximum
        """
        page = max(int(page or 1), 1)
        page_size = page_size or settings.inbox_default_page_size
        page_size = min(max(int(page_size), 1), settings.inbox_max_page_size)

        conversations = list(
            self.conversation_repository.find_for_user(
                user_id,
                connection_status=connection_status,
                limit=page_size,
                offset=(page - 1) * page_size,
            )
        )
        total = self.conversation_repository.count_for_user(user_id, connection_status)
        unread = self.conversation_repository.get_unread_counts(
            [str(c.id) for c in conversations], user_id
        )
        other_ids = list({c.get_other_participant_id(user_id) for c in conversations})
        identities = self.directory.get_identities(other_ids)
        last_messages = self._load_last_messages(conversations)

        items = [
            self._view(c, user_id, unread.get(str(c.id), 0), identities, last_messages)
            for c in conversations
        ]
        return InboxPage(items=items, total=total, page=page, page_size=page_size)

    @BaseService.measure_operation("get_stats")
    def get_stats(self, user_id: str) -> Dict[str, int]:
        """Conversation totals per status plus unread messages across all of them."""
        by_status = self.conversation_repository.count_by_status_for_user(user_id)
        return {
            "total": sum(by_status.values()),
            "active": by_status[ConnectionStatus.ACTIVE],
            "archived": by_status[ConnectionStatus.ARCHIVED],
            "blocked": by_status[ConnectionStatus.BLOCKED],
            "unread_messages": self.conversation_repository.get_total_unread_for_user(user_id),
        }
