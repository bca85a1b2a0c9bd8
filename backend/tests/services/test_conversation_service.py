"""
Tests for ConversationService.

Covers initiation preconditions (and their order), idempotent initiation,
the synthesized system message, inbox ordering and statistics.
"""

import pytest

from creatorlink.core.enums import (
    ConnectionStatus,
    MessageKind,
    RecruitmentStatus,
    RoleName,
    StandingStatus,
    SystemMessageKind,
)
from creatorlink.core.exceptions import (
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from creatorlink.models.conversation import Conversation
from creatorlink.models.message import Message
from creatorlink.services.conversation_service import ConversationService
from creatorlink.services.message_service import MessageService
from creatorlink.services.recruitment_service import RecruitmentService


class TestInitiateConversation:
    def test_creates_conversation_with_system_message(self, db, brand, creator, campaign):
        result = ConversationService(db).initiate_conversation(brand.id, campaign.id, creator.id)

        conversation = result.conversation
        assert result.created is True
        assert conversation.connection_status == ConnectionStatus.ACTIVE
        assert conversation.recruitment_status == RecruitmentStatus.DISCUSSING
        assert conversation.initiator_id == brand.id
        assert set(conversation.participant_ids) == {brand.id, creator.id}

        assert len(result.messages) == 1
        system = result.messages[0]
        assert system.kind == MessageKind.SYSTEM
        assert system.system_kind == SystemMessageKind.CHAT_STARTED
        assert system.sender_id == brand.id
        assert system.content == 'Acme Studio started a conversation about "Summer Launch"'
        assert conversation.last_message_id == system.id

    def test_first_message_becomes_last_message(self, db, brand, creator, campaign):
        result = ConversationService(db).initiate_conversation(
            brand.id, campaign.id, creator.id, first_message="  Hi Jane, love your work!  "
        )

        assert [m.kind for m in result.messages] == [MessageKind.SYSTEM, MessageKind.TEXT]
        first = result.messages[1]
        assert first.content == "Hi Jane, love your work!"
        assert first.sender_id == brand.id
        assert result.conversation.last_message_id == first.id
        assert result.messages[0].sequence < first.sequence

    def test_blank_first_message_is_ignored(self, db, brand, creator, campaign):
        result = ConversationService(db).initiate_conversation(
            brand.id, campaign.id, creator.id, first_message="   "
        )

        assert len(result.messages) == 1

    def test_first_message_too_long(self, db, brand, creator, campaign):
        with pytest.raises(ValidationException) as exc_info:
            ConversationService(db).initiate_conversation(
                brand.id, campaign.id, creator.id, first_message="x" * 2001
            )
        assert exc_info.value.code == "CONTENT_TOO_LONG"
        assert db.query(Conversation).count() == 0

    def test_repeat_initiation_returns_existing(self, db, brand, creator, campaign):
        service = ConversationService(db)
        first = service.initiate_conversation(brand.id, campaign.id, creator.id)

        second = service.initiate_conversation(
            brand.id, campaign.id, creator.id, first_message="Hello again"
        )

        assert second.created is False
        assert second.conversation.id == first.conversation.id
        assert second.messages == []
        assert db.query(Conversation).count() == 1
        assert db.query(Message).count() == 1

    def test_repeat_initiation_ignores_oversized_first_message(self, db, brand, creator, campaign):
        service = ConversationService(db)
        first = service.initiate_conversation(brand.id, campaign.id, creator.id)

        second = service.initiate_conversation(brand.id, campaign.id, creator.id, "x" * 2001)

        assert second.created is False
        assert second.conversation.id == first.conversation.id
        assert db.query(Message).count() == 1

    def test_missing_campaign(self, db, brand, creator):
        with pytest.raises(NotFoundException) as exc_info:
            ConversationService(db).initiate_conversation(
                brand.id, "01HZZZZZZZZZZZZZZZZZZZZZZZ", creator.id
            )
        assert exc_info.value.code == "CAMPAIGN_NOT_FOUND"

    def test_requester_must_own_campaign(self, db, make_user, creator, campaign):
        other_brand = make_user(RoleName.BRAND, label="Other Co")

        with pytest.raises(ForbiddenException) as exc_info:
            ConversationService(db).initiate_conversation(other_brand.id, campaign.id, creator.id)
        assert exc_info.value.code == "NOT_CAMPAIGN_OWNER"

    def test_creator_must_have_applied(self, db, make_user, brand, campaign):
        outsider = make_user(RoleName.CREATOR, label="not.applied")

        with pytest.raises(InvalidStateException) as exc_info:
            ConversationService(db).initiate_conversation(brand.id, campaign.id, outsider.id)
        assert exc_info.value.code == "CREATOR_NOT_APPLIED"

    def test_creator_must_be_approved(self, db, make_user, make_campaign, brand):
        pending = make_user(RoleName.CREATOR, status=StandingStatus.PENDING, label="pending.one")
        campaign = make_campaign(brand, applicants=[pending])

        with pytest.raises(NotFoundException) as exc_info:
            ConversationService(db).initiate_conversation(brand.id, campaign.id, pending.id)
        assert exc_info.value.code == "CREATOR_NOT_FOUND"

    def test_precondition_order_ownership_before_application(self, db, make_user, campaign):
        # Neither owner nor applicant: ownership is reported first
        other_brand = make_user(RoleName.BRAND, label="Other Co")
        outsider = make_user(RoleName.CREATOR, label="outsider")

        with pytest.raises(ForbiddenException):
            ConversationService(db).initiate_conversation(other_brand.id, campaign.id, outsider.id)

    def test_same_creator_different_campaigns(self, db, make_campaign, brand, creator, campaign):
        second_campaign = make_campaign(brand, name="Winter Drop", applicants=[creator])
        service = ConversationService(db)

        first = service.initiate_conversation(brand.id, campaign.id, creator.id)
        second = service.initiate_conversation(brand.id, second_campaign.id, creator.id)

        assert second.created is True
        assert first.conversation.id != second.conversation.id


class TestConversationViews:
    def test_get_conversation_for_participant(self, db, brand, creator, conversation):
        view = ConversationService(db).get_conversation(creator.id, conversation.id)

        assert view.conversation.id == conversation.id
        assert view.other_participant.id == brand.id
        assert view.other_participant.display_label == "Acme Studio"
        assert view.unread_count == 1
        assert view.last_message.kind == MessageKind.SYSTEM

    def test_get_conversation_rejects_outsider(self, db, make_user, conversation):
        outsider = make_user(RoleName.CREATOR, label="outsider")

        with pytest.raises(ForbiddenException):
            ConversationService(db).get_conversation(outsider.id, conversation.id)

    def test_get_missing_conversation(self, db, brand):
        with pytest.raises(NotFoundException):
            ConversationService(db).get_conversation(brand.id, "01HZZZZZZZZZZZZZZZZZZZZZZZ")

    def test_inbox_is_ordered_by_recent_activity(
        self, db, make_user, make_campaign, brand, creator
    ):
        other_creator = make_user(RoleName.CREATOR, label="other.creator")
        campaign = make_campaign(brand, applicants=[creator, other_creator])
        service = ConversationService(db)
        older = service.initiate_conversation(brand.id, campaign.id, creator.id).conversation
        newer = service.initiate_conversation(brand.id, campaign.id, other_creator.id).conversation

        MessageService(db).send_message(creator.id, older.id, "bumping this one")

        inbox = service.list_inbox(brand.id)
        assert [view.conversation.id for view in inbox.items] == [older.id, newer.id]
        assert inbox.total == 2
        assert inbox.items[0].unread_count == 1
        assert inbox.items[1].unread_count == 0

    def test_inbox_filters_by_connection_status(self, db, brand, creator, conversation):
        RecruitmentService(db).set_connection_status(
            brand.id, conversation.id, ConnectionStatus.ARCHIVED
        )
        service = ConversationService(db)

        assert service.list_inbox(brand.id).total == 0
        archived = service.list_inbox(brand.id, connection_status=ConnectionStatus.ARCHIVED)
        assert [view.conversation.id for view in archived.items] == [conversation.id]
        assert service.list_inbox(creator.id, connection_status=None).total == 1

    def test_inbox_page_size_is_clamped(self, db, brand, conversation):
        inbox = ConversationService(db).list_inbox(brand.id, page=1, page_size=500)

        assert inbox.page_size == 50

    def test_stats(self, db, brand, creator, conversation):
        MessageService(db).send_message(brand.id, conversation.id, "Are you available?")

        stats = ConversationService(db).get_stats(creator.id)

        assert stats == {
            "total": 1,
            "active": 1,
            "archived": 0,
            "blocked": 0,
            "unread_messages": 2,
        }
