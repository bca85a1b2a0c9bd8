# backend/creatorlink/services/message_service.py
"""
Message Service for chat functionality.

Handles business logic for the message pipeline including:
- Message validation and persistence
- Ordered append under the per-conversation lock
- Delivery and read receipt tracking
- Paginated history with unread aggregates

Services never publish realtime events. They return context dataclasses
so callers can fan out after the transaction has committed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.conversation_lock import conversation_lock
from ..core.enums import MessageKind, SystemMessageKind
from ..core.exceptions import (
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.conversation import Conversation
from ..models.message import Message
from ..repositories.conversation_repository import ConversationRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.message_repository import MessageRepository
from .base import BaseService

logger = logging.getLogger(__name__)

DEFAULT_OFFER_CURRENCY = "USD"


@dataclass
class OfferTerms:
    """Offer payload supplied with a kind=offer message."""

    amount: Decimal
    currency: str = DEFAULT_OFFER_CURRENCY
    description: Optional[str] = None
    deadline: Optional[datetime] = None


@dataclass
class MessageWithContext:
    """Message with fan-out context for callers to use without DB access."""

    message: Message
    conversation_id: str
    sender_id: str
    participant_ids: List[str]

    @property
    def recipient_ids(self) -> List[str]:
        return [pid for pid in self.participant_ids if pid != self.sender_id]


@dataclass
class ReadReceiptResult:
    message_id: str
    conversation_id: str
    reader_id: str
    read_at: datetime
    newly_read: bool
    participant_ids: List[str]


@dataclass
class MarkReadResult:
    """Result of marking messages as read, with notification context."""

    count: int
    receipts: List[Tuple[str, datetime]]
    conversation_id: str
    reader_id: str
    participant_ids: List[str]

    @property
    def marked_message_ids(self) -> List[str]:
        return [message_id for message_id, _ in self.receipts]


@dataclass
class MessagePage:
    messages: List[Message]
    receipts: Dict[str, List[Tuple[str, datetime]]]
    total: int
    page: int
    page_size: int
    unread_count: int = 0
    delivered_ids: List[str] = field(default_factory=list)


def normalize_content(content: Optional[str], max_length: int) -> str:
    """Trim and validate message content."""
    text = (content or "").strip()
    if not text:
        raise ValidationException("Message content is required", code="EMPTY_CONTENT")
    if len(text) > max_length:
        raise ValidationException(
            f"Message content cannot exceed {max_length} characters",
            code="CONTENT_TOO_LONG",
            details={"max_length": max_length, "length": len(text)},
        )
    return text


def append_message(
    repository: MessageRepository,
    conversation: Conversation,
    sender_id: str,
    content: str,
    *,
    kind: MessageKind = MessageKind.TEXT,
    system_kind: Optional[SystemMessageKind] = None,
    offer: Optional[OfferTerms] = None,
) -> Message:
    """
    Append a message and move the conversation's last-message pointer.

    Caller must hold the conversation lock (or own a conversation nobody
    else can see yet) and run inside a transaction.
    """
    now = utc_now()
    last_activity = ensure_utc(conversation.last_activity_at)
    created_at = max(now, last_activity) if last_activity else now
    sequence = int(conversation.message_seq or 0) + 1

    message = repository.create_conversation_message(
        conversation_id=str(conversation.id),
        sender_id=sender_id,
        content=content,
        sequence=sequence,
        created_at=created_at,
        kind=kind,
        system_kind=system_kind,
        offer_amount=offer.amount if offer else None,
        offer_currency=(offer.currency or DEFAULT_OFFER_CURRENCY).upper() if offer else None,
        offer_description=offer.description if offer else None,
        offer_deadline=offer.deadline if offer else None,
    )
    conversation.message_seq = sequence
    conversation.last_message_id = message.id
    conversation.last_activity_at = created_at
    repository.flush()
    return message


class MessageService(BaseService):
    """
    Service for managing chat messages in conversations.

    Handles message creation, retrieval and read receipts
    with proper access control and validation.
    """

    def __init__(
        self,
        db: Session,
        message_repository: Optional[MessageRepository] = None,
        conversation_repository: Optional[ConversationRepository] = None,
        max_length: Optional[int] = None,
    ):
        """Initialize message service."""
        super().__init__(db)
        self.repository: MessageRepository = (
            message_repository or RepositoryFactory.create_message_repository(db)
        )
        self.conversation_repository = (
            conversation_repository or RepositoryFactory.create_conversation_repository(db)
        )
        self.max_length = max_length or settings.message_max_length
        self.logger = logging.getLogger(__name__)

    def _require_participant(
        self, conversation: Optional[Conversation], user_id: str
    ) -> Conversation:
        if conversation is None:
            raise NotFoundException("Conversation not found", code="CONVERSATION_NOT_FOUND")
        if not conversation.is_participant(user_id):
            raise ForbiddenException(
                "You are not a participant in this conversation", code="NOT_PARTICIPANT"
            )
        return conversation

    def _validate_payload(
        self, kind: MessageKind, offer: Optional[OfferTerms]
    ) -> None:
        if kind == MessageKind.SYSTEM:
            raise ValidationException(
                "System messages cannot be sent by participants", code="INVALID_MESSAGE_KIND"
            )
        if kind == MessageKind.OFFER and offer is None:
            raise ValidationException("Offer details are required", code="OFFER_REQUIRED")
        if kind == MessageKind.TEXT and offer is not None:
            raise ValidationException(
                "Offer details are only allowed on offer messages", code="UNEXPECTED_OFFER"
            )
        if offer is not None and offer.amount is not None and offer.amount < 0:
            raise ValidationException("Offer amount cannot be negative", code="INVALID_OFFER")

    @BaseService.measure_operation("send_message")
    def send_message(
        self,
        sender_id: str,
        conversation_id: str,
        content: str,
        kind: MessageKind = MessageKind.TEXT,
        offer: Optional[OfferTerms] = None,
    ) -> MessageWithContext:
        """
        Validate, persist and return a new message.

        Checks run in order, first failure wins: participant, conversation
        active, content, payload shape. The insert and the last-message
        pointer update happen under the conversation lock in one transaction.

        Raises:
            NotFoundException: conversation does not exist
            ForbiddenException: sender is not a participant
            InvalidStateException: conversation is archived or blocked
            ValidationException: bad content or payload
        """
        with conversation_lock(conversation_id):
            with self.transaction():
                conversation = self._require_participant(
                    self.conversation_repository.get_for_update(conversation_id), sender_id
                )
                if not conversation.is_active:
                    raise InvalidStateException(
                        "Conversation is not active",
                        code="CONVERSATION_NOT_ACTIVE",
                        details={"connection_status": conversation.connection_status.value},
                    )
                text = normalize_content(content, self.max_length)
                self._validate_payload(kind, offer)

                message = append_message(
                    self.repository, conversation, sender_id, text, kind=kind, offer=offer
                )
                participant_ids = list(conversation.participant_ids)

        self.logger.info(
            "Message sent",
            extra={
                "conversation_id": conversation_id,
                "message_id": message.id,
                "sender_id": sender_id,
            },
        )
        return MessageWithContext(
            message=message,
            conversation_id=conversation_id,
            sender_id=sender_id,
            participant_ids=participant_ids,
        )

    @BaseService.measure_operation("mark_read")
    def mark_read(self, reader_id: str, conversation_id: str, message_id: str) -> ReadReceiptResult:
        """
        Record that reader_id has read one message.

        Re-marking is a no-op: the original read_at is returned and
        newly_read is False so callers skip the receipt broadcast.
        """
        with conversation_lock(conversation_id):
            with self.transaction():
                conversation = self._require_participant(
                    self.conversation_repository.get_by_id(conversation_id, load_relationships=False),
                    reader_id,
                )
                message = self.repository.get_in_conversation(message_id, conversation_id)
                if message is None:
                    raise NotFoundException("Message not found", code="MESSAGE_NOT_FOUND")
                if message.sender_id == reader_id:
                    raise ForbiddenException(
                        "You cannot mark your own message as read", code="OWN_MESSAGE"
                    )

                receipt = self.repository.add_read_receipt(message, reader_id, utc_now())
                if receipt is None:
                    existing = self.repository.get_receipt(message_id, reader_id)
                    read_at = ensure_utc(existing.read_at) if existing else utc_now()
                    newly_read = False
                else:
                    read_at = ensure_utc(receipt.read_at)
                    newly_read = True
                participant_ids = list(conversation.participant_ids)

        return ReadReceiptResult(
            message_id=message_id,
            conversation_id=conversation_id,
            reader_id=reader_id,
            read_at=read_at,
            newly_read=newly_read,
            participant_ids=participant_ids,
        )

    @BaseService.measure_operation("mark_all_read")
    def mark_all_read(self, reader_id: str, conversation_id: str) -> MarkReadResult:
        """
        Mark every message from other participants as read by reader_id.

        Runs as one transaction under the conversation lock, so a concurrent
        reader sees either none or all of the receipts.
        """
        with conversation_lock(conversation_id):
            with self.transaction():
                conversation = self._require_participant(
                    self.conversation_repository.get_for_update(conversation_id), reader_id
                )
                read_at = utc_now()
                receipts: List[Tuple[str, datetime]] = []
                for message in self.repository.find_unread_for_reader(conversation_id, reader_id):
                    if self.repository.add_read_receipt(message, reader_id, read_at) is not None:
                        receipts.append((str(message.id), read_at))
                participant_ids = list(conversation.participant_ids)

        if receipts:
            self.logger.info(
                f"Marked {len(receipts)} messages as read",
                extra={"conversation_id": conversation_id, "reader_id": reader_id},
            )
        return MarkReadResult(
            count=len(receipts),
            receipts=receipts,
            conversation_id=conversation_id,
            reader_id=reader_id,
            participant_ids=participant_ids,
        )

    @BaseService.measure_operation("list_messages")
    def list_messages(
        self,
        requester_id: str,
        conversation_id: str,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> MessagePage:
        """
        Return one page of history.

        Page 1 holds the most recent page_size messages; each page is
        returned oldest-first. Pulling messages marks those sent by the
        other participant as delivered.
        """
        page = max(int(page or 1), 1)
        page_size = page_size or settings.messages_default_page_size
        page_size = min(max(int(page_size), 1), settings.messages_max_page_size)

        with self.transaction():
            self._require_participant(
                self.conversation_repository.get_by_id(conversation_id, load_relationships=False),
                requester_id,
            )
            rows = self.repository.find_page_by_conversation(
                conversation_id, limit=page_size, offset=(page - 1) * page_size
            )
            messages = list(reversed(rows))
            delivered_ids = [
                str(message.id) for message in messages if message.sender_id != requester_id
            ]
            self.repository.mark_delivered(delivered_ids)
            total = self.repository.count_by_conversation(conversation_id)
            receipts = self.repository.get_read_receipts_for_message_ids(
                [str(message.id) for message in messages]
            )
            unread = self.conversation_repository.get_unread_count(conversation_id, requester_id)

        return MessagePage(
            messages=messages,
            receipts=receipts,
            total=total,
            page=page,
            page_size=page_size,
            unread_count=unread,
            delivered_ids=delivered_ids,
        )

    @BaseService.measure_operation("get_unread_count")
    def get_unread_count(self, user_id: str, conversation_id: str) -> int:
        self._require_participant(
            self.conversation_repository.get_by_id(conversation_id, load_relationships=False),
            user_id,
        )
        return self.conversation_repository.get_unread_count(conversation_id, user_id)
