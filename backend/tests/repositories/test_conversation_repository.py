"""
Tests for ConversationRepository: uniqueness, inbox queries, unread aggregates.
"""

import pytest

from creatorlink.core.enums import ConnectionStatus, RoleName
from creatorlink.core.exceptions import ConversationExistsException
from creatorlink.models.conversation import Conversation
from creatorlink.repositories.conversation_repository import ConversationRepository
from creatorlink.services.message_service import MessageService


class TestConversationRepository:
    def test_duplicate_triple_raises_with_existing_id(self, db, brand, creator, campaign):
        repo = ConversationRepository(db)
        first = repo.create_conversation(campaign.id, brand.id, creator.id, brand.id)
        db.commit()

        with pytest.raises(ConversationExistsException) as exc_info:
            repo.create_conversation(campaign.id, brand.id, creator.id, brand.id)

        assert exc_info.value.conversation_id == first.id
        assert exc_info.value.code == "CONVERSATION_EXISTS"
        db.rollback()
        assert db.query(Conversation).count() == 1

    def test_find_by_triple(self, db, brand, creator, campaign, conversation):
        repo = ConversationRepository(db)

        assert repo.find_by_triple(campaign.id, brand.id, creator.id).id == conversation.id
        assert repo.find_by_triple(campaign.id, creator.id, brand.id) is None

    def test_find_for_user_and_counts(self, db, make_user, make_campaign, brand, creator):
        other = make_user(RoleName.CREATOR, label="second.creator")
        campaign = make_campaign(brand, applicants=[creator, other])
        repo = ConversationRepository(db)
        a = repo.create_conversation(campaign.id, brand.id, creator.id, brand.id)
        b = repo.create_conversation(campaign.id, brand.id, other.id, brand.id)
        b.connection_status = ConnectionStatus.ARCHIVED
        db.commit()

        assert {c.id for c in repo.find_for_user(brand.id)} == {a.id, b.id}
        assert [c.id for c in repo.find_for_user(brand.id, ConnectionStatus.ACTIVE)] == [a.id]
        assert [c.id for c in repo.find_for_user(other.id)] == [b.id]
        assert repo.count_for_user(brand.id) == 2
        assert repo.count_for_user(creator.id, ConnectionStatus.ARCHIVED) == 0
        by_status = repo.count_by_status_for_user(brand.id)
        assert by_status[ConnectionStatus.ACTIVE] == 1
        assert by_status[ConnectionStatus.ARCHIVED] == 1
        assert by_status[ConnectionStatus.BLOCKED] == 0

    def test_unread_counts(self, db, brand, creator, conversation):
        service = MessageService(db)
        first = service.send_message(brand.id, conversation.id, "one")
        service.send_message(brand.id, conversation.id, "two")
        service.send_message(creator.id, conversation.id, "reply")
        service.mark_read(creator.id, conversation.id, first.message.id)
        repo = ConversationRepository(db)

        # system message + "two"
        assert repo.get_unread_count(conversation.id, creator.id) == 2
        assert repo.get_unread_count(conversation.id, brand.id) == 1
        assert repo.get_unread_counts([conversation.id], creator.id) == {conversation.id: 2}
        assert repo.get_total_unread_for_user(creator.id) == 2
        assert repo.get_unread_counts([], creator.id) == {}
