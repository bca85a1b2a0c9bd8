# backend/creatorlink/repositories/__init__.py
"""Repository layer: data access only, no commits, no business rules."""

from .base_repository import BaseRepository
from .campaign_repository import CampaignRepository
from .conversation_repository import ConversationRepository
from .factory import RepositoryFactory
from .message_repository import MessageRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "CampaignRepository",
    "ConversationRepository",
    "MessageRepository",
    "RepositoryFactory",
    "UserRepository",
]
