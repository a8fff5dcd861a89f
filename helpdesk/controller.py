"""
Session Controller

Orchestrates the chat widget: loads the persisted session, creates, selects
and deletes conversations, and drives the send pipeline.

Send pipeline (per conversation):
    IDLE -> SENDING -> (reply or error appended) -> IDLE

    1. Reject empty input, or a send while this conversation is SENDING
    2. Append the user message (optimistic)
    3. On the first user message, set the title in the same state version
    4. Build the context window from the state as of step 2
    5. Call the remote chat client
    6. Append the reply, or the user-facing error text

Nothing raised by the remote client or the storage layer escapes: every
failure ends as an assistant message or a recovered default state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from helpdesk.client import RemoteChatClient
from helpdesk.config import WidgetSettings
from helpdesk.conversations.context import build_context
from helpdesk.conversations.ids import new_id
from helpdesk.conversations.models import Conversation, Message, SessionState
from helpdesk.conversations.persistence import PersistenceAdapter
from helpdesk.conversations.store import ConversationStore, StateListener
from helpdesk.errors import (
    ConversationNotFoundError,
    InvariantViolationError,
    RemoteChatError,
    UnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)

TITLE_ELLIPSIS = "…"


class SendState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"


class SendStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class SendResult:
    """Outcome of one send() call."""

    status: SendStatus
    conversation_id: str | None = None
    reply: Message | None = None
    error: Exception | None = None


def make_title(text: str, max_length: int = 40) -> str:
    """Title from the first user message: a prefix, with an ellipsis if cut."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + TITLE_ELLIPSIS


class SessionController:
    """
    Owns one widget activation's session.

    Attributes:
        store: Conversation store holding the current SessionState
        client: Remote chat collaborator
        persistence: Storage adapter flushed after every mutation
    """

    def __init__(
        self,
        client: RemoteChatClient,
        persistence: PersistenceAdapter,
        *,
        settings: WidgetSettings | None = None,
        id_factory: Callable[[], str] = new_id,
    ):
        self.client = client
        self.persistence = persistence
        self.settings = settings or WidgetSettings()

        state = persistence.load_state(
            greeting=self.settings.greeting,
            title=self.settings.new_chat_title,
            id_factory=id_factory,
        )
        self.store = ConversationStore(
            state,
            greeting=self.settings.greeting,
            new_chat_title=self.settings.new_chat_title,
            id_factory=id_factory,
        )
        self._sending: set[str] = set()
        self.store.subscribe(self._persist)
        self._persist(state)

        logger.info(
            "Session controller ready",
            extra={
                "conversations": len(state.conversations),
                "active_id": state.active_id,
            },
        )

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self.store.state

    @property
    def conversations(self) -> tuple[Conversation, ...]:
        return self.store.conversations

    @property
    def active_conversation(self) -> Conversation:
        """The displayed conversation; a dangling active id is repaired, never raised."""
        try:
            return self.store.get_active()
        except InvariantViolationError as exc:
            logger.error(f"Session invariant violated: {exc}", extra=exc.context)
            return self.store.repair_active()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self.store.subscribe(listener)

    def send_state(self, conversation_id: str | None = None) -> SendState:
        target = conversation_id or self.active_conversation.id
        return SendState.SENDING if target in self._sending else SendState.IDLE

    def is_sending(self, conversation_id: str | None = None) -> bool:
        return self.send_state(conversation_id) is SendState.SENDING

    # ------------------------------------------------------------------
    # Conversation management
    # ------------------------------------------------------------------

    def new_conversation(self) -> Conversation:
        return self.store.create_conversation()

    def select_conversation(self, conversation_id: str) -> Conversation | None:
        try:
            return self.store.select_conversation(conversation_id)
        except ConversationNotFoundError:
            logger.warning(f"Cannot select unknown conversation: {conversation_id}")
            return None

    def delete_conversation(self, conversation_id: str) -> bool:
        try:
            self.store.delete_conversation(conversation_id)
        except ConversationNotFoundError:
            logger.warning(f"Conversation not found for deletion: {conversation_id}")
            return False
        return True

    # ------------------------------------------------------------------
    # Send pipeline
    # ------------------------------------------------------------------

    async def send(self, text: str) -> SendResult:
        """Send text in the active conversation and append the outcome."""
        try:
            trimmed = self._validate_input(text)
        except ValidationError as exc:
            logger.debug(f"Rejected submission: {exc}")
            return SendResult(status=SendStatus.REJECTED, error=exc)

        conversation = self.active_conversation
        conversation_id = conversation.id
        if conversation_id in self._sending:
            logger.debug("Send already in flight", extra={"conversation_id": conversation_id})
            return SendResult(status=SendStatus.REJECTED, conversation_id=conversation_id)

        title = None
        if not conversation.has_user_messages:
            title = make_title(trimmed, self.settings.title_max_length)
        updated = self.store.append_message(
            conversation_id, Message(role="user", text=trimmed), title=title
        )
        history = build_context(updated, max_messages=self.settings.history_window)

        self._sending.add(conversation_id)
        try:
            reply_text = await self.client.send(trimmed, history)
        except RemoteChatError as exc:
            logger.warning(
                f"Chat request failed: {exc}",
                extra={"conversation_id": conversation_id, "error_type": type(exc).__name__},
            )
            return self._finish(conversation_id, exc.user_message, SendStatus.FAILED, exc)
        except Exception as exc:
            logger.error(
                f"Unexpected error from chat client: {exc}",
                exc_info=True,
                extra={"conversation_id": conversation_id},
            )
            fallback = UnavailableError(context={"reason": type(exc).__name__})
            return self._finish(conversation_id, fallback.user_message, SendStatus.FAILED, exc)
        finally:
            self._sending.discard(conversation_id)

        return self._finish(conversation_id, reply_text, SendStatus.SENT)

    @staticmethod
    def _validate_input(text: str) -> str:
        trimmed = (text or "").strip()
        if not trimmed:
            raise ValidationError("Message is empty")
        return trimmed

    def _finish(
        self,
        conversation_id: str,
        text: str,
        status: SendStatus,
        error: Exception | None = None,
    ) -> SendResult:
        reply = Message(role="assistant", text=text)
        try:
            self.store.append_message(conversation_id, reply)
        except ConversationNotFoundError:
            logger.info(
                "Dropping reply for deleted conversation",
                extra={"conversation_id": conversation_id},
            )
            return SendResult(status=status, conversation_id=conversation_id, error=error)
        return SendResult(
            status=status, conversation_id=conversation_id, reply=reply, error=error
        )

    def _persist(self, state: SessionState) -> None:
        self.persistence.save_state(state)
