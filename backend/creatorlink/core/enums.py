# backend/creatorlink/core/enums.py
"""
Core enums for the CreatorLink messaging platform.

All enums inherit from (str, Enum) so the persisted value is the
lowercase wire value, never the member name.
"""

from enum import Enum


class RoleName(str, Enum):
    """Account roles known to the messaging core."""

    BRAND = "brand"
    CREATOR = "creator"
    ADMIN = "admin"


class StandingStatus(str, Enum):
    """Approval standing of an account."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ConnectionStatus(str, Enum):
    """Conversation lifecycle flag gating whether new messages may be sent."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    BLOCKED = "blocked"


class RecruitmentStatus(str, Enum):
    """Negotiation phase of a conversation, independent of message content."""

    DISCUSSING = "discussing"
    OFFER_SENT = "offer_sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COMPLETED = "completed"


class MessageKind(str, Enum):
    TEXT = "text"
    OFFER = "offer"
    SYSTEM = "system"


class SystemMessageKind(str, Enum):
    """Synthetic messages injected by the platform itself."""

    CHAT_STARTED = "chat_started"
    OFFER_SENT = "offer_sent"
    OFFER_ACCEPTED = "offer_accepted"
    OFFER_DECLINED = "offer_declined"


class DeliveryStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
