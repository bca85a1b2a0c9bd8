# backend/creatorlink/models/message.py
"""
Message and read receipt models for the chat system.

Messages are append-only. The kind column selects which optional column
group is meaningful: offer_* for offers, system_kind for system messages.
The API layer exposes this as a tagged payload so illegal combinations
cannot be sent in the first place.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import DeliveryStatus, MessageKind, SystemMessageKind
from ..database import Base
from .base_enum import create_safe_enum


class Message(Base):
    """
    Append-only entry owned by exactly one conversation.

    Ordering key is (created_at, sequence); sequence is unique per
    conversation and strictly increasing in insertion order.
    """

    __tablename__ = "messages"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    conversation_id = Column(
        String(26), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(String(2000), nullable=False)
    kind = Column(
        create_safe_enum(MessageKind, "message_kind_enum"),
        nullable=False,
        default=MessageKind.TEXT,
    )
    # Offer payload (kind = offer)
    offer_amount = Column(Numeric(12, 2), nullable=True)
    offer_currency = Column(String(3), nullable=True)
    offer_description = Column(Text, nullable=True)
    offer_deadline = Column(DateTime(timezone=True), nullable=True)
    # System payload (kind = system)
    system_kind = Column(create_safe_enum(SystemMessageKind, "system_message_kind_enum"), nullable=True)

    delivery_status = Column(
        create_safe_enum(DeliveryStatus, "delivery_status_enum"),
        nullable=False,
        default=DeliveryStatus.SENT,
    )
    sequence = Column(Integer, nullable=False)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    conversation = relationship("Conversation", foreign_keys=[conversation_id])
    sender = relationship("User", foreign_keys=[sender_id])
    read_receipts = relationship(
        "MessageReadReceipt",
        back_populates="message",
        cascade="all, delete-orphan",
        order_by="MessageReadReceipt.read_at",
    )

    __table_args__ = (
        UniqueConstraint("conversation_id", "sequence", name="uq_messages_conversation_sequence"),
        Index("idx_messages_conversation_sender", "conversation_id", "sender_id"),
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, conversation={self.conversation_id}, kind={self.kind})>"


class MessageReadReceipt(Base):
    """
    One reader's receipt for one message.

    The unique (message_id, reader_id) pair keeps concurrent markRead and
    markAllRead from recording the same reader twice.
    """

    __tablename__ = "message_read_receipts"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    message_id = Column(String(26), ForeignKey("messages.id", ondelete="CASCADE"), nullable=False)
    reader_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    read_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    message = relationship("Message", back_populates="read_receipts")

    __table_args__ = (
        UniqueConstraint("message_id", "reader_id", name="uq_message_read_receipts_reader"),
        Index("idx_message_read_receipts_reader", "reader_id"),
    )
