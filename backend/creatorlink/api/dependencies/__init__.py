# backend/creatorlink/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_credential_verifier, get_current_identity
from .database import get_db
from .services import (
    get_conversation_service,
    get_gateway,
    get_message_service,
    get_recruitment_service,
    get_registry,
    get_router,
)

__all__ = [
    # Auth
    "get_current_identity",
    "get_credential_verifier",
    # Database
    "get_db",
    # Services
    "get_conversation_service",
    "get_message_service",
    "get_recruitment_service",
    # Realtime
    "get_registry",
    "get_router",
    "get_gateway",
]
