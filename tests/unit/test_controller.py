"""
Unit Tests for the Session Controller

Tests the send pipeline and conversation management against a scripted
chat client and in-memory persistence.
"""

import asyncio
import json

import pytest

from helpdesk.controller import (
    SendState,
    SendStatus,
    SessionController,
    make_title,
)
from helpdesk.conversations.models import Conversation, Message, SessionState
from helpdesk.conversations.persistence import ACTIVE_ID_KEY, CONVERSATIONS_KEY
from helpdesk.conversations.store import DEFAULT_GREETING
from helpdesk.errors import (
    DEFAULT_RATE_LIMIT_MESSAGE,
    DEFAULT_UNAVAILABLE_MESSAGE,
    RateLimitedError,
    UnavailableError,
    ValidationError,
)


class TestMakeTitle:
    """Test title derivation from the first user message."""

    def test_short_message_is_kept(self):
        assert make_title("Hello") == "Hello"

    def test_exactly_forty_characters_not_truncated(self):
        text = "x" * 40
        assert make_title(text) == text

    def test_long_message_truncated_with_ellipsis(self):
        text = "a" * 41
        assert make_title(text) == "a" * 40 + "…"


class TestSendPipeline:
    """Test suite for SessionController.send()."""

    @pytest.mark.asyncio
    async def test_first_send_sets_title_and_appends_reply(self, controller, fake_chat_client):
        fake_chat_client.replies.append("Hi! How can I help?")

        result = await controller.send("Hello")

        conversation = controller.active_conversation
        assert result.status is SendStatus.SENT
        assert conversation.title == "Hello"
        assert conversation.messages == (
            Message(role="assistant", text=DEFAULT_GREETING),
            Message(role="user", text="Hello"),
            Message(role="assistant", text="Hi! How can I help?"),
        )
        assert controller.send_state() is SendState.IDLE

    @pytest.mark.asyncio
    async def test_send_trims_input(self, controller, fake_chat_client):
        await controller.send("   Hello there  \n")

        assert fake_chat_client.calls[0][0] == "Hello there"
        assert controller.active_conversation.messages[1].text == "Hello there"

    @pytest.mark.asyncio
    async def test_title_is_set_only_once(self, controller):
        await controller.send("First question")
        await controller.send("Second question that is much longer than forty characters")

        assert controller.active_conversation.title == "First question"

    @pytest.mark.asyncio
    async def test_long_first_message_is_truncated_for_title(self, controller):
        await controller.send("Can you explain how the billing cycle works for annual plans?")

        assert controller.active_conversation.title == "Can you explain how the billing cycle wo…"

    @pytest.mark.asyncio
    async def test_context_excludes_greeting_and_outgoing_message(
        self, controller, fake_chat_client
    ):
        fake_chat_client.replies.extend(["A1", "A2"])

        await controller.send("Q1")
        await controller.send("Q2")

        first_message, first_history = fake_chat_client.calls[0]
        second_message, second_history = fake_chat_client.calls[1]
        assert first_message == "Q1"
        assert first_history == []
        assert second_message == "Q2"
        assert [m.text for m in second_history] == ["Q1", "A1"]

    @pytest.mark.asyncio
    async def test_history_window_caps_context(
        self, fake_chat_client, memory_persistence, id_factory
    ):
        from helpdesk.config import WidgetSettings

        controller = SessionController(
            fake_chat_client,
            memory_persistence,
            settings=WidgetSettings(history_window=2),
            id_factory=id_factory,
        )
        for text in ("Q1", "Q2", "Q3"):
            await controller.send(text)

        _, history = fake_chat_client.calls[-1]
        assert [m.text for m in history] == ["Q2", "echo: Q2"]

    @pytest.mark.asyncio
    async def test_rate_limited_send_appends_quota_message(self, controller, fake_chat_client):
        fake_chat_client.errors.append(RateLimitedError())

        result = await controller.send("Hello")

        assert result.status is SendStatus.FAILED
        assert isinstance(result.error, RateLimitedError)
        last = controller.active_conversation.messages[-1]
        assert last.role == "assistant"
        assert last.text == DEFAULT_RATE_LIMIT_MESSAGE
        assert controller.send_state() is SendState.IDLE

    @pytest.mark.asyncio
    async def test_unavailable_send_appends_server_error_text(self, controller, fake_chat_client):
        fake_chat_client.errors.append(UnavailableError("Failed to get response from AI"))

        await controller.send("Hello")

        assert controller.active_conversation.messages[-1].text == "Failed to get response from AI"

    @pytest.mark.asyncio
    async def test_unexpected_client_error_is_contained(self, controller, fake_chat_client):
        fake_chat_client.errors.append(RuntimeError("boom"))

        result = await controller.send("Hello")

        assert result.status is SendStatus.FAILED
        assert controller.active_conversation.messages[-1].text == DEFAULT_UNAVAILABLE_MESSAGE
        assert not controller.is_sending()

    @pytest.mark.asyncio
    async def test_whitespace_submission_is_a_no_op(
        self, controller, fake_chat_client, memory_persistence
    ):
        state_before = controller.state
        stored_before = dict(memory_persistence.values)

        result = await controller.send("   \n\t ")

        assert result.status is SendStatus.REJECTED
        assert isinstance(result.error, ValidationError)
        assert controller.state is state_before
        assert fake_chat_client.calls == []
        assert memory_persistence.values == stored_before

    @pytest.mark.asyncio
    async def test_second_send_while_sending_is_rejected(self, controller, fake_chat_client):
        release = asyncio.Event()

        async def slow_send(message, history):
            fake_chat_client.calls.append((message, history))
            await release.wait()
            return "done"

        fake_chat_client.send = slow_send

        first = asyncio.create_task(controller.send("First"))
        await asyncio.sleep(0)
        assert controller.is_sending()

        second = await controller.send("Second")
        release.set()
        first_result = await first

        assert second.status is SendStatus.REJECTED
        assert first_result.status is SendStatus.SENT
        assert len(fake_chat_client.calls) == 1
        assert [m.text for m in controller.active_conversation.messages] == [
            DEFAULT_GREETING,
            "First",
            "done",
        ]

    @pytest.mark.asyncio
    async def test_reply_lands_in_original_conversation_after_switch(
        self, controller, fake_chat_client
    ):
        release = asyncio.Event()

        async def slow_send(message, history):
            await release.wait()
            return "late reply"

        fake_chat_client.send = slow_send
        original_id = controller.active_conversation.id

        task = asyncio.create_task(controller.send("Question"))
        await asyncio.sleep(0)
        other = controller.new_conversation()
        release.set()
        await task

        assert controller.active_conversation.id == other.id
        assert len(controller.active_conversation.messages) == 1
        original = controller.store.get(original_id)
        assert original.messages[-1].text == "late reply"

    @pytest.mark.asyncio
    async def test_sends_to_different_conversations_may_overlap(
        self, controller, fake_chat_client
    ):
        release = asyncio.Event()

        async def slow_send(message, history):
            await release.wait()
            return f"re: {message}"

        fake_chat_client.send = slow_send
        first_id = controller.active_conversation.id

        first = asyncio.create_task(controller.send("one"))
        await asyncio.sleep(0)
        second_id = controller.new_conversation().id
        second = asyncio.create_task(controller.send("two"))
        await asyncio.sleep(0)

        assert controller.is_sending(first_id)
        assert controller.is_sending(second_id)
        release.set()
        results = await asyncio.gather(first, second)

        assert [r.status for r in results] == [SendStatus.SENT, SendStatus.SENT]
        assert controller.store.get(first_id).messages[-1].text == "re: one"
        assert controller.store.get(second_id).messages[-1].text == "re: two"

    @pytest.mark.asyncio
    async def test_reply_for_deleted_conversation_is_dropped(self, controller, fake_chat_client):
        release = asyncio.Event()

        async def slow_send(message, history):
            await release.wait()
            return "orphan"

        fake_chat_client.send = slow_send
        original_id = controller.active_conversation.id

        task = asyncio.create_task(controller.send("Question"))
        await asyncio.sleep(0)
        controller.delete_conversation(original_id)
        release.set()
        result = await task

        assert result.status is SendStatus.SENT
        assert result.reply is None
        assert all(c.id != original_id for c in controller.conversations)


class TestConversationManagement:
    """Test create/select/delete through the controller."""

    def test_fresh_controller_has_one_default_conversation(self, controller):
        assert len(controller.conversations) == 1
        assert controller.active_conversation.messages == (
            Message(role="assistant", text=DEFAULT_GREETING),
        )

    @pytest.mark.asyncio
    async def test_deleting_non_active_conversation_keeps_active(self, controller):
        first_id = controller.active_conversation.id
        controller.new_conversation()
        await controller.send("Hello")
        active_before = controller.active_conversation

        assert controller.delete_conversation(first_id) is True

        assert len(controller.conversations) == 1
        assert controller.active_conversation == active_before

    def test_deleting_only_conversation_yields_fresh_default(self, controller):
        only_id = controller.active_conversation.id

        controller.delete_conversation(only_id)

        assert len(controller.conversations) == 1
        assert controller.active_conversation.id != only_id
        assert len(controller.active_conversation.messages) == 1

    def test_delete_unknown_conversation_returns_false(self, controller):
        assert controller.delete_conversation("missing") is False

    def test_select_unknown_conversation_returns_none(self, controller):
        active_id = controller.active_conversation.id
        assert controller.select_conversation("missing") is None
        assert controller.active_conversation.id == active_id

    def test_dangling_active_id_self_heals(self, controller):
        conversation = Conversation.fresh("c1", "Hi!", "New Chat")
        controller.store._state = SessionState.model_construct(
            conversations=(conversation,), active_id="gone", version=7
        )

        assert controller.active_conversation.id == "c1"
        assert controller.state.active_id == "c1"

    def test_subscribers_see_new_versions(self, controller):
        versions = []
        controller.subscribe(lambda state: versions.append(state.version))

        controller.new_conversation()
        controller.new_conversation()

        assert versions == sorted(versions)
        assert len(versions) == 2


class TestPersistenceIntegration:
    """Test that the controller flushes and restores session state."""

    @pytest.mark.asyncio
    async def test_every_append_is_persisted(self, controller, memory_persistence):
        await controller.send("Hello")

        stored = json.loads(memory_persistence.values[CONVERSATIONS_KEY])
        assert [m["text"] for m in stored[0]["messages"]][1:] == ["Hello", "echo: Hello"]
        assert memory_persistence.values[ACTIVE_ID_KEY] == controller.active_conversation.id

    @pytest.mark.asyncio
    async def test_new_activation_resumes_previous_session(
        self, controller, fake_chat_client, memory_persistence, widget_settings, id_factory
    ):
        await controller.send("Hello")
        second = controller.new_conversation()
        controller.select_conversation(controller.conversations[1].id)
        expected = controller.state

        resumed = SessionController(
            fake_chat_client, memory_persistence, settings=widget_settings, id_factory=id_factory
        )

        assert resumed.conversations == expected.conversations
        assert resumed.active_conversation.id == expected.active_id
        assert resumed.active_conversation.id != second.id

    def test_corrupt_storage_starts_fresh(
        self, fake_chat_client, memory_persistence, widget_settings, id_factory
    ):
        memory_persistence.values[CONVERSATIONS_KEY] = "[{broken"

        controller = SessionController(
            fake_chat_client, memory_persistence, settings=widget_settings, id_factory=id_factory
        )

        assert len(controller.conversations) == 1
        assert controller.active_conversation.messages == (
            Message(role="assistant", text=DEFAULT_GREETING),
        )
