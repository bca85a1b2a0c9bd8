# backend/creatorlink/repositories/conversation_repository.py
"""
Conversation Repository for campaign-scoped brand/creator messaging.

Provides data access methods for conversations and their unread
aggregates. Follows the repository pattern with clean separation from
business logic.
"""

from typing import Dict, List, Optional, Sequence, cast

from sqlalchemy import and_, exists, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.enums import ConnectionStatus
from ..core.exceptions import ConversationExistsException
from ..models.conversation import Conversation
from ..models.message import Message, MessageReadReceipt
from .base_repository import BaseRepository


class ConversationRepository(BaseRepository[Conversation]):
    """
    Repository for Conversation entity operations.

    Handles all database operations for conversations including:
    - Finding or creating the conversation for a campaign/brand/creator triple
    - Listing conversations for a user (inbox)
    - Locking a conversation row for serialized mutation
    - Unread counts backed by read receipts
    """

    def __init__(self, db: Session):
        """Initialize with database session."""
        super().__init__(db, Conversation)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(Conversation.brand),
            joinedload(Conversation.creator),
            joinedload(Conversation.campaign),
        )

    def find_by_triple(
        self, campaign_id: str, brand_id: str, creator_id: str
    ) -> Optional[Conversation]:
        """
        Find the conversation for a campaign between a brand and a creator.

        Brand and creator columns are role-fixed, so a single equality match
        covers the unordered participant pair.
        """
        result = (
            self.db.query(Conversation)
            .filter(
                Conversation.campaign_id == campaign_id,
                Conversation.brand_id == brand_id,
                Conversation.creator_id == creator_id,
            )
            .first()
        )
        return cast(Optional[Conversation], result)

    def create_conversation(
        self, campaign_id: str, brand_id: str, creator_id: str, initiator_id: str
    ) -> Conversation:
        """
        Insert a conversation inside a savepoint.

        Raises:
            ConversationExistsException: when the uniqueness constraint rejects
                the insert; carries the id of the conversation that won the race.
        """
        savepoint = self.db.begin_nested()
        try:
            conversation = Conversation(
                campaign_id=campaign_id,
                brand_id=brand_id,
                creator_id=creator_id,
                initiator_id=initiator_id,
                connection_status=ConnectionStatus.ACTIVE,
            )
            self.db.add(conversation)
            self.db.flush()
        except IntegrityError:
            savepoint.rollback()
            existing = self.find_by_triple(campaign_id, brand_id, creator_id)
            self.logger.info(
                "Conversation insert lost uniqueness race",
                extra={"campaign_id": campaign_id, "creator_id": creator_id},
            )
            raise ConversationExistsException(existing.id if existing else None)
        savepoint.commit()
        return conversation

    def get_for_update(self, conversation_id: str) -> Optional[Conversation]:
        """
        Load a conversation with a row lock where the dialect supports it.

        populate_existing refreshes an identity-mapped instance so counters
        read inside the lock are current.
        """
        query = self.db.query(Conversation).filter(Conversation.id == conversation_id)
        if self.supports_row_locks:
            query = query.with_for_update()
        return cast(Optional[Conversation], query.populate_existing().first())

    def get_with_participant_info(self, conversation_id: str) -> Optional[Conversation]:
        """
        Get a conversation with eagerly loaded participants and campaign.
        """
        return self.get_by_id(conversation_id, load_relationships=True)

    def _user_filter(self, user_id: str):
        return or_(Conversation.brand_id == user_id, Conversation.creator_id == user_id)

    def find_for_user(
        self,
        user_id: str,
        connection_status: Optional[ConnectionStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Sequence[Conversation]:
        """
        Find conversations where a user is a participant (inbox order).

        Args:
            user_id: The user ID to find conversations for
            connection_status: Optional filter by connection status
            limit: Maximum number of conversations to return
            offset: Number of conversations to skip

        Returns:
            Conversations ordered by last_activity_at desc
        """
        query: Query = self._apply_eager_loading(
            self.db.query(Conversation).filter(self._user_filter(user_id))
        )
        if connection_status is not None:
            query = query.filter(Conversation.connection_status == connection_status)

        query = query.order_by(Conversation.last_activity_at.desc(), Conversation.id.desc())
        if offset > 0:
            query = query.offset(offset)
        return cast(Sequence[Conversation], query.limit(limit).all())

    def count_for_user(
        self, user_id: str, connection_status: Optional[ConnectionStatus] = None
    ) -> int:
        query = self.db.query(func.count(Conversation.id)).filter(self._user_filter(user_id))
        if connection_status is not None:
            query = query.filter(Conversation.connection_status == connection_status)
        return int(query.scalar() or 0)

    def count_by_status_for_user(self, user_id: str) -> Dict[ConnectionStatus, int]:
        rows = (
            self.db.query(Conversation.connection_status, func.count(Conversation.id))
            .filter(self._user_filter(user_id))
            .group_by(Conversation.connection_status)
            .all()
        )
        counts = {status: 0 for status in ConnectionStatus}
        for status, total in rows:
            counts[ConnectionStatus(status)] = int(total)
        return counts

    def _unread_clause(self, user_id: str):
        receipt_exists = exists().where(
            and_(
                MessageReadReceipt.message_id == Message.id,
                MessageReadReceipt.reader_id == user_id,
            )
        )
        return and_(Message.sender_id != user_id, ~receipt_exists)

    def get_unread_count(self, conversation_id: str, user_id: str) -> int:
        """
        Count unread messages in a conversation for a specific user.

        A message is unread if it was sent by someone else and carries no
        read receipt from user_id.
        """
        result = (
            self.db.query(func.count(Message.id))
            .filter(Message.conversation_id == conversation_id, self._unread_clause(user_id))
            .scalar()
        )
        return int(result or 0)

    def get_unread_counts(self, conversation_ids: List[str], user_id: str) -> Dict[str, int]:
        """Batch unread counts for an inbox page, keyed by conversation id."""
        if not conversation_ids:
            return {}
        rows = (
            self.db.query(Message.conversation_id, func.count(Message.id))
            .filter(Message.conversation_id.in_(conversation_ids), self._unread_clause(user_id))
            .group_by(Message.conversation_id)
            .all()
        )
        counts = {conversation_id: 0 for conversation_id in conversation_ids}
        counts.update({conversation_id: int(total) for conversation_id, total in rows})
        return counts

    def get_total_unread_for_user(self, user_id: str) -> int:
        result = (
            self.db.query(func.count(Message.id))
            .join(Conversation, Conversation.id == Message.conversation_id)
            .filter(self._user_filter(user_id), self._unread_clause(user_id))
            .scalar()
        )
        return int(result or 0)
