# backend/creatorlink/models/conversation.py
"""
Conversation model for campaign-scoped brand/creator messaging.

Each conversation binds exactly one brand and one creator to one campaign.

Design decisions:
- One conversation per (campaign, brand, creator); the brand and creator
  columns are role-fixed, so the unordered participant pair maps onto a
  plain unique constraint
- last_message_id is a weak pointer: no foreign key, no cascade
- message_seq is the per-conversation insertion counter used as the
  ordering tie-breaker for messages
- Conversations are never deleted, only archived or blocked
"""

from datetime import datetime, timezone
from typing import Tuple

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import ConnectionStatus, RecruitmentStatus
from ..database import Base
from .base_enum import create_safe_enum


class Conversation(Base):
    """
    Chat aggregate between a brand and a creator about one campaign.

    Attributes:
        id: ULID primary key
        campaign_id: Campaign the negotiation is about
        brand_id: Owning brand of the campaign
        creator_id: Creator who applied to the campaign
        initiator_id: Who opened the conversation (always the brand)
        last_message_id: Most recent message (weak reference)
        last_activity_at: Drives inbox ordering; bumped by messages and status changes
        connection_status: active, archived or blocked
        recruitment_status: Negotiation phase
        message_seq: Last sequence number handed to a message
    """

    __tablename__ = "conversations"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    campaign_id = Column(String(26), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)
    brand_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    creator_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    initiator_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    last_message_id = Column(String(26), nullable=True)
    last_activity_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    connection_status = Column(
        create_safe_enum(ConnectionStatus, "connection_status_enum"),
        nullable=False,
        default=ConnectionStatus.ACTIVE,
    )
    recruitment_status = Column(
        create_safe_enum(RecruitmentStatus, "recruitment_status_enum"),
        nullable=False,
        default=RecruitmentStatus.DISCUSSING,
    )
    message_seq = Column(Integer, nullable=False, default=0)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    campaign = relationship("Campaign", foreign_keys=[campaign_id])
    brand = relationship("User", foreign_keys=[brand_id])
    creator = relationship("User", foreign_keys=[creator_id])
    last_message = relationship(
        "Message",
        primaryjoin="foreign(Conversation.last_message_id) == Message.id",
        uselist=False,
        viewonly=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "campaign_id", "brand_id", "creator_id", name="uq_conversations_campaign_pair"
        ),
        Index("idx_conversations_brand_activity", "brand_id", "last_activity_at"),
        Index("idx_conversations_creator_activity", "creator_id", "last_activity_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Conversation(id={self.id}, campaign={self.campaign_id}, "
            f"brand={self.brand_id}, creator={self.creator_id})>"
        )

    @property
    def participant_ids(self) -> Tuple[str, str]:
        return (str(self.brand_id), str(self.creator_id))

    def get_other_participant_id(self, current_user_id: str) -> str:
        """
        Get the ID of the other participant in the conversation.

        Args:
            current_user_id: The ID of the current user

        Returns:
            The ID of the other participant
        """
        if current_user_id == self.brand_id:
            return str(self.creator_id)
        return str(self.brand_id)

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.brand_id, self.creator_id)

    @property
    def is_active(self) -> bool:
        return self.connection_status == ConnectionStatus.ACTIVE
