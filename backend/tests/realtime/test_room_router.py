"""
Tests for RoomRouter fan-out semantics.
"""

from creatorlink.services.messaging.channels import ConversationChannel, PersonalChannel
from creatorlink.services.messaging.events import SCHEMA_VERSION, EventType


class TestChannels:
    def test_channel_keys(self):
        assert PersonalChannel("01ABC").key == "user_01ABC"
        assert ConversationChannel("01XYZ").key == "chat_01XYZ"
        assert PersonalChannel("01ABC").kind == "personal"
        assert ConversationChannel("01XYZ").kind == "conversation"

    def test_channels_are_value_objects(self):
        assert ConversationChannel("c1") == ConversationChannel("c1")
        assert PersonalChannel("c1").key != ConversationChannel("c1").key


class TestRoomRouter:
    def test_publish_reaches_every_subscriber(self, registry, room_router, recording_handle):
        alice = recording_handle("alice")
        bob = recording_handle("bob")
        registry.register("alice", alice)
        registry.register("bob", bob)
        channel = ConversationChannel("conv-1")
        room_router.subscribe(alice, channel)
        room_router.subscribe(bob, channel)

        delivered = room_router.publish(channel, EventType.USER_TYPING, {"identity_id": "x"})

        assert delivered == 2
        event = alice.events[0]
        assert event["type"] == "user_typing"
        assert event["schema_version"] == SCHEMA_VERSION
        assert event["payload"] == {"identity_id": "x"}
        assert "timestamp" in event
        assert bob.events == [event]

    def test_publish_without_subscribers_is_dropped(self, room_router):
        assert room_router.publish(ConversationChannel("empty"), EventType.NEW_MESSAGE, {}) == 0

    def test_exclude_identity(self, registry, room_router, recording_handle):
        alice = recording_handle("alice")
        bob = recording_handle("bob")
        registry.register("alice", alice)
        registry.register("bob", bob)
        channel = ConversationChannel("conv-1")
        room_router.subscribe(alice, channel)
        room_router.subscribe(bob, channel)

        delivered = room_router.publish(
            channel, EventType.USER_ONLINE, {"identity_id": "alice"}, exclude_identity="alice"
        )

        assert delivered == 1
        assert alice.events == []
        assert bob.types == ["user_online"]

    def test_replaced_handle_no_longer_receives(self, registry, room_router, recording_handle):
        old = recording_handle("alice")
        new = recording_handle("alice")
        channel = PersonalChannel("alice")
        registry.register("alice", old)
        room_router.subscribe(old, channel)
        registry.register("alice", new)
        room_router.subscribe(new, channel)

        room_router.publish(channel, EventType.NEW_CHAT, {"conversation": {}})

        assert old.events == []
        assert new.types == ["new_chat"]

    def test_subscribe_is_idempotent(self, registry, room_router, recording_handle):
        alice = recording_handle("alice")
        registry.register("alice", alice)
        channel = ConversationChannel("conv-1")

        assert room_router.subscribe(alice, channel) is True
        assert room_router.subscribe(alice, channel) is False
        assert room_router.subscriber_count(channel) == 1

        room_router.publish(channel, EventType.USER_TYPING, {})
        assert len(alice.events) == 1

    def test_unsubscribe(self, registry, room_router, recording_handle):
        alice = recording_handle("alice")
        registry.register("alice", alice)
        channel = ConversationChannel("conv-1")
        room_router.subscribe(alice, channel)

        assert room_router.unsubscribe(alice, channel) is True
        assert room_router.unsubscribe(alice, channel) is False
        assert not room_router.is_subscribed(alice, channel)
        assert room_router.publish(channel, EventType.USER_TYPING, {}) == 0

    def test_unsubscribe_all_returns_left_channels(self, registry, room_router, recording_handle):
        alice = recording_handle("alice")
        registry.register("alice", alice)
        personal = PersonalChannel("alice")
        chat = ConversationChannel("conv-1")
        room_router.subscribe(alice, personal)
        room_router.subscribe(alice, chat)

        left = room_router.unsubscribe_all(alice)

        assert set(left) == {personal, chat}
        assert room_router.channels_for(alice) == []
        assert room_router.subscriber_count(chat) == 0

    def test_failing_handle_does_not_block_others(self, registry, room_router, recording_handle):
        class ExplodingHandle:
            identity_id = "boom"
            connection_id = "conn-boom"

            def deliver(self, event):
                raise RuntimeError("socket gone")

        broken = ExplodingHandle()
        bob = recording_handle("bob")
        registry.register("boom", broken)
        registry.register("bob", bob)
        channel = ConversationChannel("conv-1")
        room_router.subscribe(broken, channel)
        room_router.subscribe(bob, channel)

        delivered = room_router.publish(channel, EventType.USER_TYPING, {})

        assert delivered == 1
        assert bob.types == ["user_typing"]

    def test_rejected_delivery_is_not_counted(self, registry, room_router, recording_handle):
        full = recording_handle("alice", accept=False)
        registry.register("alice", full)
        channel = ConversationChannel("conv-1")
        room_router.subscribe(full, channel)

        assert room_router.publish(channel, EventType.USER_TYPING, {}) == 0
