# backend/creatorlink/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected, plus accessors for
the realtime components the application owns.
"""

from fastapi import Depends
from sqlalchemy.orm import Session
from starlette.requests import HTTPConnection

from ...services.conversation_service import ConversationService
from ...services.message_service import MessageService
from ...services.messaging.gateway import RealtimeGateway
from ...services.messaging.registry import ConnectionRegistry
from ...services.messaging.router import RoomRouter
from ...services.recruitment_service import RecruitmentService
from .database import get_db


def get_conversation_service(db: Session = Depends(get_db)) -> ConversationService:
    """Get conversation service instance for dependency injection."""
    return ConversationService(db)


def get_message_service(db: Session = Depends(get_db)) -> MessageService:
    """Get message service instance for dependency injection."""
    return MessageService(db)


def get_recruitment_service(db: Session = Depends(get_db)) -> RecruitmentService:
    return RecruitmentService(db)


def get_registry(connection: HTTPConnection) -> ConnectionRegistry:
    return connection.app.state.connection_registry


def get_router(connection: HTTPConnection) -> RoomRouter:
    return connection.app.state.room_router


def get_gateway(connection: HTTPConnection) -> RealtimeGateway:
    return connection.app.state.realtime_gateway
