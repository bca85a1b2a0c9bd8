# backend/creatorlink/repositories/message_repository.py
"""
Message Repository for the chat system.

Implements data access for messages and read receipts. Ordering within a
conversation is by sequence, which is assigned under the conversation
lock and therefore agrees with created_at.
"""

from datetime import datetime
from decimal import Decimal
import logging
from typing import Dict, List, Optional, Sequence, Tuple, cast

from sqlalchemy import and_, exists, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import DeliveryStatus, MessageKind, SystemMessageKind
from ..core.exceptions import RepositoryException
from ..core.ulid_helper import generate_ulid
from ..models.message import Message, MessageReadReceipt
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class MessageRepository(BaseRepository[Message]):
    """
    Repository for message data access.

    Handles all database operations for the chat system,
    including messages and read receipts.
    """

    def __init__(self, db: Session):
        """Initialize with Message model."""
        super().__init__(db, Message)
        self.logger = logging.getLogger(__name__)

    def create_conversation_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        *,
        sequence: int,
        created_at: datetime,
        kind: MessageKind = MessageKind.TEXT,
        system_kind: Optional[SystemMessageKind] = None,
        offer_amount: Optional[Decimal] = None,
        offer_currency: Optional[str] = None,
        offer_description: Optional[str] = None,
        offer_deadline: Optional[datetime] = None,
    ) -> Message:
        """
        Create a new message in a conversation.

        The caller holds the conversation lock and supplies the sequence
        number and timestamp; this method only persists.

        Raises:
            RepositoryException: If creation fails
        """
        try:
            message = Message(
                id=generate_ulid(),
                conversation_id=conversation_id,
                sender_id=sender_id,
                content=content,
                kind=kind,
                system_kind=system_kind,
                offer_amount=offer_amount,
                offer_currency=offer_currency,
                offer_description=offer_description,
                offer_deadline=offer_deadline,
                delivery_status=DeliveryStatus.SENT,
                sequence=sequence,
                created_at=created_at,
            )
            self.db.add(message)
            self.db.flush()

            self.logger.info(
                f"Created message {message.id} in conversation {conversation_id}",
                extra={"conversation_id": conversation_id, "message_id": message.id},
            )
            return message
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating conversation message: {str(e)}")
            raise RepositoryException(f"Failed to create conversation message: {str(e)}") from e

    def get_in_conversation(self, message_id: str, conversation_id: str) -> Optional[Message]:
        result = (
            self.db.query(Message)
            .filter(Message.id == message_id, Message.conversation_id == conversation_id)
            .populate_existing()
            .first()
        )
        return cast(Optional[Message], result)

    def find_page_by_conversation(
        self, conversation_id: str, limit: int, offset: int = 0
    ) -> List[Message]:
        """
        Fetch one page of messages, newest page first.

        Rows come back newest-first; the caller reverses them to present the
        page chronologically.
        """
        try:
            query = (
                self.db.query(Message)
                .filter(Message.conversation_id == conversation_id)
                .order_by(Message.sequence.desc())
            )
            if offset > 0:
                query = query.offset(offset)
            return cast(List[Message], query.limit(limit).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching messages for conversation: {str(e)}")
            raise RepositoryException(f"Failed to fetch messages for conversation: {str(e)}") from e

    def count_by_conversation(self, conversation_id: str) -> int:
        result = (
            self.db.query(func.count(Message.id))
            .filter(Message.conversation_id == conversation_id)
            .scalar()
        )
        return int(result or 0)

    def mark_delivered(self, message_ids: Sequence[str]) -> int:
        """Promote sent messages to delivered. Read messages are left alone."""
        if not message_ids:
            return 0
        count = (
            self.db.query(Message)
            .filter(
                Message.id.in_(list(message_ids)),
                Message.delivery_status == DeliveryStatus.SENT,
            )
            .update({Message.delivery_status: DeliveryStatus.DELIVERED}, synchronize_session="fetch")
        )
        return int(count or 0)

    def get_receipt(self, message_id: str, reader_id: str) -> Optional[MessageReadReceipt]:
        result = (
            self.db.query(MessageReadReceipt)
            .filter(
                MessageReadReceipt.message_id == message_id,
                MessageReadReceipt.reader_id == reader_id,
            )
            .first()
        )
        return cast(Optional[MessageReadReceipt], result)

    def add_read_receipt(
        self, message: Message, reader_id: str, read_at: datetime
    ) -> Optional[MessageReadReceipt]:
        """
        Record a receipt and mark the message read.

        Returns None when the reader already has a receipt for the message,
        whether found up front or rejected by the unique constraint.
        """
        if self.get_receipt(message.id, reader_id) is not None:
            return None

        savepoint = self.db.begin_nested()
        try:
            receipt = MessageReadReceipt(
                message_id=message.id,
                reader_id=reader_id,
                read_at=read_at,
            )
            self.db.add(receipt)
            message.delivery_status = DeliveryStatus.READ
            self.db.flush()
        except IntegrityError:
            savepoint.rollback()
            self.logger.debug(
                "Duplicate read receipt ignored",
                extra={"message_id": message.id, "reader_id": reader_id},
            )
            return None
        savepoint.commit()
        return receipt

    def find_unread_for_reader(self, conversation_id: str, reader_id: str) -> List[Message]:
        """Messages from other participants with no receipt from reader_id, oldest first."""
        receipt_exists = exists().where(
            and_(
                MessageReadReceipt.message_id == Message.id,
                MessageReadReceipt.reader_id == reader_id,
            )
        )
        return cast(
            List[Message],
            self.db.query(Message)
            .filter(
                Message.conversation_id == conversation_id,
                Message.sender_id != reader_id,
                ~receipt_exists,
            )
            .order_by(Message.sequence.asc())
            .all(),
        )

    def get_by_ids(self, message_ids: Sequence[str]) -> Dict[str, Message]:
        """Return {message_id: message} for the ids that exist."""
        if not message_ids:
            return {}
        messages = self.db.query(Message).filter(Message.id.in_(list(message_ids))).all()
        return {str(message.id): message for message in messages}

    def get_read_receipts_for_message_ids(
        self, message_ids: Sequence[str]
    ) -> Dict[str, List[Tuple[str, datetime]]]:
        """Return {message_id: [(reader_id, read_at), ...]} for the given messages."""
        if not message_ids:
            return {}
        rows = (
            self.db.query(
                MessageReadReceipt.message_id,
                MessageReadReceipt.reader_id,
                MessageReadReceipt.read_at,
            )
            .filter(MessageReadReceipt.message_id.in_(list(message_ids)))
            .order_by(MessageReadReceipt.read_at.asc())
            .all()
        )
        receipts: Dict[str, List[Tuple[str, datetime]]] = {}
        for message_id, reader_id, read_at in rows:
            receipts.setdefault(message_id, []).append((reader_id, read_at))
        return receipts
