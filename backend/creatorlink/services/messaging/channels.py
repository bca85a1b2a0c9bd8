# backend/creatorlink/services/messaging/channels.py
"""
Typed channel identifiers for realtime fan-out.

A channel is either a user's personal channel or a conversation channel.
The string key is derived in exactly one place so routing never depends
on ad-hoc concatenation.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class PersonalChannel:
    """Per-identity channel; every connection joins its own on connect."""

    identity_id: str

    @property
    def key(self) -> str:
        return f"user_{self.identity_id}"

    @property
    def kind(self) -> str:
        return "personal"


@dataclass(frozen=True)
class ConversationChannel:
    """Per-conversation channel; joined and left explicitly by clients."""

    conversation_id: str

    @property
    def key(self) -> str:
        return f"chat_{self.conversation_id}"

    @property
    def kind(self) -> str:
        return "conversation"


Channel = Union[PersonalChannel, ConversationChannel]
