# backend/creatorlink/models/__init__.py
"""
SQLAlchemy models for the CreatorLink messaging core.

Importing this package registers every table on Base.metadata.
"""

from .campaign import Campaign, CampaignApplication
from .conversation import Conversation
from .message import Message, MessageReadReceipt
from .user import User

__all__ = [
    "Campaign",
    "CampaignApplication",
    "Conversation",
    "Message",
    "MessageReadReceipt",
    "User",
]
