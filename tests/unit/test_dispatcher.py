"""Unit tests for gchat.dispatcher."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from gchat.dispatcher import (
    NotificationDispatcher,
    compute_reaction_deltas,
    message_body,
    message_title,
    truncate,
)
from gchat.errors import ConversationNotFound
from gchat.models.directory import Conversation, ConversationType, MessageType, UserRecord
from gchat.models.events import MessageCreatedEvent, MessageSnapshot, ReactionUpdatedEvent
from gchat.models.notifications import DispatchState, PayloadKind, ReactionDelta

if TYPE_CHECKING:
    from conftest import FakeTransport

    from gchat.directory import Directory


@pytest.fixture()
def dispatcher(seeded_directory: Directory, transport: FakeTransport) -> NotificationDispatcher:
    return NotificationDispatcher(seeded_directory, transport)


def _reaction_event(
    before: dict[str, list[str]],
    after: dict[str, list[str]],
    *,
    conversation_id: str = "direct-1",
    owner: str = "u1",
    text: str = "See you at 8",
) -> ReactionUpdatedEvent:
    return ReactionUpdatedEvent(
        conversation_id=conversation_id,
        message_id="m1",
        before=MessageSnapshot(sender_id=owner, text=text, reactions=before),
        after=MessageSnapshot(sender_id=owner, text=text, reactions=after),
    )


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestComputeReactionDeltas:
    def test_added_reactor(self) -> None:
        deltas = compute_reaction_deltas({"👍": ["u1"]}, {"👍": ["u1", "u2"]})
        assert deltas == [ReactionDelta(emoji="👍", user_id="u2")]

    def test_new_emoji(self) -> None:
        deltas = compute_reaction_deltas({}, {"❤️": ["u3"], "😂": ["u2"]})
        assert deltas == [
            ReactionDelta(emoji="❤️", user_id="u3"),
            ReactionDelta(emoji="😂", user_id="u2"),
        ]

    def test_removals_ignored(self) -> None:
        assert compute_reaction_deltas({"👍": ["u1", "u2"]}, {"👍": ["u1"]}) == []

    def test_duplicate_ids_counted_once(self) -> None:
        deltas = compute_reaction_deltas({}, {"👍": ["u2", "u2"]})
        assert deltas == [ReactionDelta(emoji="👍", user_id="u2")]


class TestFormatting:
    def test_direct_title_is_sender(self) -> None:
        conversation = Conversation(conversation_id="c", participants=["a", "b"])
        assert message_title(conversation, "Alice") == "Alice"

    def test_group_title_names_group(self) -> None:
        conversation = Conversation(
            conversation_id="c", type=ConversationType.GROUP, name="Team"
        )
        assert message_title(conversation, "Alice") == "Alice in Team"

    def test_unnamed_group(self) -> None:
        conversation = Conversation(conversation_id="c", type=ConversationType.GROUP)
        assert message_title(conversation, "Alice") == "Alice in Group chat"

    def test_bodies(self) -> None:
        assert message_body(MessageType.IMAGE, None) == "📷 Sent an image"
        assert message_body(MessageType.AUDIO, None) == "🎤 Voice message"
        assert message_body(MessageType.TEXT, "hi") == "hi"
        assert message_body(MessageType.TEXT, None) == "New message"

    def test_truncate(self) -> None:
        assert truncate("short") == "short"
        long = truncate("x" * 150)
        assert len(long) == 100
        assert long.endswith("…")


# ---------------------------------------------------------------------------
# Message created
# ---------------------------------------------------------------------------


class TestMessageCreated:
    async def test_notifies_everyone_but_sender(
        self, dispatcher: NotificationDispatcher, transport: FakeTransport
    ) -> None:
        receipt = await dispatcher.on_message_created(
            MessageCreatedEvent(
                conversation_id="group-1", message_id="m9", sender_id="u1", text="Hi all"
            )
        )
        # u3 has no token and is dropped silently
        assert [token for token, _ in transport.sent] == ["tok-u2"]
        assert receipt.state is DispatchState.DONE
        assert receipt.recipients == 2
        assert receipt.sent == 1

        data = transport.sent[0][1]
        assert data["type"] == PayloadKind.NEW_MESSAGE
        assert data["title"] == "Alice in Weekend trip"
        assert data["senderName"] == "Alice"
        assert data["messageText"] == "Hi all"
        assert data["isGroup"] == "true"
        assert all(isinstance(v, str) for v in data.values())

    async def test_image_body(
        self, dispatcher: NotificationDispatcher, transport: FakeTransport
    ) -> None:
        await dispatcher.on_message_created(
            MessageCreatedEvent(
                conversation_id="direct-1",
                message_id="m9",
                sender_id="u2",
                type=MessageType.IMAGE,
            )
        )
        token, data = transport.sent[0]
        assert token == "tok-u1"
        assert data["messageText"] == "📷 Sent an image"
        assert data["title"] == "Bob"

    async def test_unknown_sender_named_someone(
        self, dispatcher: NotificationDispatcher, transport: FakeTransport
    ) -> None:
        await dispatcher.on_message_created(
            MessageCreatedEvent(
                conversation_id="group-1", message_id="m9", sender_id="ghost", text="boo"
            )
        )
        assert {data["senderName"] for _, data in transport.sent} == {"Someone"}

    async def test_no_tokens_no_sends(
        self,
        directory: Directory,
        transport: FakeTransport,
    ) -> None:
        await directory.put_user(UserRecord(user_id="a"))
        await directory.put_user(UserRecord(user_id="b"))
        await directory.put_conversation(Conversation(conversation_id="c", participants=["a", "b"]))
        dispatcher = NotificationDispatcher(directory, transport)

        receipt = await dispatcher.on_message_created(
            MessageCreatedEvent(conversation_id="c", message_id="m", sender_id="a", text="hi")
        )
        assert transport.sent == []
        assert receipt.state is DispatchState.SKIPPED

    async def test_missing_conversation_aborts(
        self, dispatcher: NotificationDispatcher, transport: FakeTransport
    ) -> None:
        with pytest.raises(ConversationNotFound):
            await dispatcher.on_message_created(
                MessageCreatedEvent(conversation_id="nope", message_id="m", sender_id="u1")
            )
        assert transport.sent == []

    async def test_clears_reaction_previews(
        self, dispatcher: NotificationDispatcher, seeded_directory: Directory
    ) -> None:
        await dispatcher.on_reaction_updated(_reaction_event({}, {"👍": ["u2"]}))
        conversation = await seeded_directory.get_conversation("direct-1")
        assert conversation is not None
        assert "u1" in conversation.reaction_previews

        await dispatcher.on_message_created(
            MessageCreatedEvent(conversation_id="direct-1", message_id="m9", sender_id="u2")
        )
        conversation = await seeded_directory.get_conversation("direct-1")
        assert conversation is not None
        assert conversation.reaction_previews == {}

    async def test_failed_token_cleared(
        self, seeded_directory: Directory, transport: FakeTransport
    ) -> None:
        transport.failing.add("tok-u2")
        dispatcher = NotificationDispatcher(seeded_directory, transport)

        receipt = await dispatcher.on_message_created(
            MessageCreatedEvent(conversation_id="direct-1", message_id="m9", sender_id="u1")
        )
        assert receipt.failed == 1
        assert receipt.cleared_tokens == 1
        assert await seeded_directory.get_delivery_token("u2") is None
        # The sender's own token is untouched
        assert await seeded_directory.get_delivery_token("u1") == "tok-u1"

    async def test_newer_token_survives_cleanup(
        self, seeded_directory: Directory, transport: FakeTransport
    ) -> None:
        class RotatingTransport(type(transport)):
            async def send(self, token, data):
                # The user re-registers while the send is in flight
                await seeded_directory.put_user(
                    UserRecord(user_id="u2", display_name="Bob", fcm_token="tok-u2-new")
                )
                return await super().send(token, data)

        rotating = RotatingTransport(failing={"tok-u2"})
        dispatcher = NotificationDispatcher(seeded_directory, rotating)

        receipt = await dispatcher.on_message_created(
            MessageCreatedEvent(conversation_id="direct-1", message_id="m9", sender_id="u1")
        )
        assert receipt.cleared_tokens == 0
        assert await seeded_directory.get_delivery_token("u2") == "tok-u2-new"

    async def test_shared_token_cleared_for_every_holder(
        self, seeded_directory: Directory, transport: FakeTransport
    ) -> None:
        # Carol registered on Bob's old device, so both records hold the same token
        await seeded_directory.put_user(
            UserRecord(user_id="u3", display_name="Carol", fcm_token="tok-u2")
        )
        transport.failing.add("tok-u2")
        dispatcher = NotificationDispatcher(seeded_directory, transport)

        receipt = await dispatcher.on_message_created(
            MessageCreatedEvent(conversation_id="group-1", message_id="m9", sender_id="u1")
        )
        assert [token for token, _ in transport.sent] == ["tok-u2"]
        assert receipt.failed == 1
        assert receipt.cleared_tokens == 2
        assert await seeded_directory.get_delivery_token("u2") is None
        assert await seeded_directory.get_delivery_token("u3") is None


# ---------------------------------------------------------------------------
# Reaction updated
# ---------------------------------------------------------------------------


class TestReactionUpdated:
    async def test_one_notification_per_new_reactor(
        self, dispatcher: NotificationDispatcher, transport: FakeTransport
    ) -> None:
        receipt = await dispatcher.on_reaction_updated(
            _reaction_event({"👍": ["u1"]}, {"👍": ["u1", "u2"]})
        )
        assert len(transport.sent) == 1
        token, data = transport.sent[0]
        assert token == "tok-u1"
        assert data["type"] == PayloadKind.REACTION
        assert data["reactorId"] == "u2"
        assert data["reactorName"] == "Bob"
        assert data["emoji"] == "👍"
        assert data["messageText"] == "See you at 8"
        assert receipt.sent == 1

    async def test_self_reaction_sends_nothing(
        self, dispatcher: NotificationDispatcher, transport: FakeTransport
    ) -> None:
        receipt = await dispatcher.on_reaction_updated(_reaction_event({}, {"👍": ["u1"]}))
        assert transport.sent == []
        assert receipt.state is DispatchState.SKIPPED

    async def test_removal_sends_nothing(
        self, dispatcher: NotificationDispatcher, transport: FakeTransport
    ) -> None:
        await dispatcher.on_reaction_updated(_reaction_event({"👍": ["u2"]}, {}))
        assert transport.sent == []

    async def test_nickname_used_in_group(
        self,
        dispatcher: NotificationDispatcher,
        transport: FakeTransport,
        seeded_directory: Directory,
    ) -> None:
        await dispatcher.on_reaction_updated(
            _reaction_event({}, {"❤️": ["u2"]}, conversation_id="group-1")
        )
        assert transport.sent[0][1]["reactorName"] == "Bobby"

        conversation = await seeded_directory.get_conversation("group-1")
        assert conversation is not None
        preview = conversation.reaction_previews["u1"]
        assert preview.text == "❤️ Bobby reacted to your message"
        assert preview.reactor_id == "u2"
        assert preview.message_id == "m1"

    async def test_owner_without_token_still_gets_preview(
        self,
        dispatcher: NotificationDispatcher,
        transport: FakeTransport,
        seeded_directory: Directory,
    ) -> None:
        await dispatcher.on_reaction_updated(
            _reaction_event({}, {"😂": ["u1"]}, conversation_id="group-1", owner="u3")
        )
        assert transport.sent == []
        conversation = await seeded_directory.get_conversation("group-1")
        assert conversation is not None
        assert conversation.reaction_previews["u3"].text == "😂 Alice reacted to your message"

    async def test_multiple_reactors(
        self, dispatcher: NotificationDispatcher, transport: FakeTransport
    ) -> None:
        receipt = await dispatcher.on_reaction_updated(
            _reaction_event({}, {"👍": ["u2", "u3"], "🔥": ["u1"]}, conversation_id="group-1")
        )
        assert sorted(data["reactorId"] for _, data in transport.sent) == ["u2", "u3"]
        assert receipt.sent == 2

    async def test_long_text_truncated(
        self, dispatcher: NotificationDispatcher, transport: FakeTransport
    ) -> None:
        await dispatcher.on_reaction_updated(
            _reaction_event({}, {"👍": ["u2"]}, text="word " * 60)
        )
        assert len(transport.sent[0][1]["messageText"]) <= 100

    async def test_no_owner_skipped(
        self, dispatcher: NotificationDispatcher, transport: FakeTransport
    ) -> None:
        event = ReactionUpdatedEvent(
            conversation_id="direct-1",
            message_id="m1",
            after=MessageSnapshot(reactions={"👍": ["u2"]}),
        )
        receipt = await dispatcher.on_reaction_updated(event)
        assert receipt.state is DispatchState.SKIPPED
        assert transport.sent == []

    async def test_missing_conversation_aborts(self, dispatcher: NotificationDispatcher) -> None:
        with pytest.raises(ConversationNotFound):
            await dispatcher.on_reaction_updated(
                _reaction_event({}, {"👍": ["u2"]}, conversation_id="nope")
            )

    async def test_failed_delta_does_not_block_others(
        self,
        seeded_directory: Directory,
        transport: FakeTransport,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        real_get_user = seeded_directory.get_user

        async def _get_user(user_id: str) -> UserRecord | None:
            if user_id == "u3":
                raise RuntimeError("user lookup failed")
            return await real_get_user(user_id)

        monkeypatch.setattr(seeded_directory, "get_user", _get_user)
        dispatcher = NotificationDispatcher(seeded_directory, transport)

        receipt = await dispatcher.on_reaction_updated(
            _reaction_event({}, {"👍": ["u2", "u3"]}, conversation_id="group-1")
        )
        assert receipt.state is DispatchState.DONE
        assert receipt.sent == 1
        assert [data["reactorId"] for _, data in transport.sent] == ["u2"]
