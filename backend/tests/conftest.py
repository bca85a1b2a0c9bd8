# backend/tests/conftest.py
"""
Pytest configuration for the messaging core.

Every test gets its own in-memory SQLite engine (StaticPool, so every
session shares the one connection) with the schema created up front.
Factories commit, so the test session never holds an open transaction
while the application under test is working on the same connection.
"""

import os

# Set testing mode BEFORE any creatorlink imports
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")

from typing import Any, Callable, Dict, List, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session
import ulid

import creatorlink.models  # noqa: F401
from creatorlink.core.config import Settings
from creatorlink.core.enums import CampaignStatus, RoleName, StandingStatus
from creatorlink.database import Base, build_engine, build_session_factory
from creatorlink.main import create_app
from creatorlink.models.campaign import Campaign, CampaignApplication
from creatorlink.models.user import User
from creatorlink.services.conversation_service import ConversationService
from creatorlink.services.messaging.connection import next_connection_id
from creatorlink.services.messaging.registry import ConnectionRegistry
from creatorlink.services.messaging.router import RoomRouter


class FakeVerifier:
    """Credential verifier backed by a token -> identity id map."""

    def __init__(self) -> None:
        self.tokens: Dict[str, str] = {}

    def issue(self, identity_id: str) -> str:
        token = f"token-{identity_id}"
        self.tokens[token] = identity_id
        return token

    def verify(self, token: str) -> Optional[str]:
        return self.tokens.get(token)


class RecordingHandle:
    """Connection handle that keeps every delivered event in memory."""

    def __init__(self, identity_id: str, accept: bool = True) -> None:
        self.identity_id = identity_id
        self.connection_id = next_connection_id()
        self.accept = accept
        self.events: List[Dict[str, Any]] = []

    def deliver(self, event: Dict[str, Any]) -> bool:
        if not self.accept:
            return False
        self.events.append(event)
        return True

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e["type"] == event_type]

    @property
    def types(self) -> List[str]:
        return [e["type"] for e in self.events]


@pytest.fixture
def engine():
    test_engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    def _make_user(
        role: RoleName = RoleName.CREATOR,
        status: StandingStatus = StandingStatus.APPROVED,
        label: Optional[str] = None,
    ) -> User:
        user_id = str(ulid.ULID())
        user = User(
            id=user_id,
            email=f"{user_id.lower()}@example.com",
            role=role,
            status=status,
            brand_name=label if role == RoleName.BRAND else None,
            insta_username=label if role == RoleName.CREATOR else None,
        )
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def make_campaign(db: Session) -> Callable[..., Campaign]:
    def _make_campaign(brand: User, name: str = "Summer Launch", applicants=()) -> Campaign:
        campaign = Campaign(
            id=str(ulid.ULID()),
            brand_id=brand.id,
            name=name,
            status=CampaignStatus.ACTIVE,
        )
        db.add(campaign)
        db.flush()
        for creator in applicants:
            db.add(CampaignApplication(campaign_id=campaign.id, creator_id=creator.id))
        db.commit()
        return campaign

    return _make_campaign


@pytest.fixture
def brand(make_user) -> User:
    return make_user(RoleName.BRAND, label="Acme Studio")


@pytest.fixture
def creator(make_user) -> User:
    return make_user(RoleName.CREATOR, label="jane.creates")


@pytest.fixture
def campaign(make_campaign, brand, creator) -> Campaign:
    return make_campaign(brand, applicants=[creator])


@pytest.fixture
def conversation(db, brand, creator, campaign):
    """An active conversation started by the brand, holding only the system message."""
    result = ConversationService(db).initiate_conversation(brand.id, campaign.id, creator.id)
    return result.conversation


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def room_router(registry) -> RoomRouter:
    return RoomRouter(registry)


@pytest.fixture
def recording_handle() -> Callable[..., RecordingHandle]:
    return RecordingHandle


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        create_tables_on_startup=False,
        realtime_heartbeat_interval=3600,
    )


@pytest.fixture
def app(engine, verifier, test_settings):
    return create_app(credential_verifier=verifier, settings=test_settings, engine=engine)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(verifier) -> Callable[[User], Dict[str, str]]:
    def _auth_headers(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {verifier.issue(user.id)}"}

    return _auth_headers
