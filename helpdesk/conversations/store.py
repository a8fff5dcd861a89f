"""In-memory conversation store, the single source of truth for rendering."""

from __future__ import annotations

import logging
from collections.abc import Callable

from helpdesk.conversations.ids import new_id
from helpdesk.conversations.models import Conversation, Message, SessionState
from helpdesk.errors import ConversationNotFoundError, InvariantViolationError

logger = logging.getLogger(__name__)

DEFAULT_GREETING = "Hi! I'm your helpdesk assistant. How can I help you today?"
DEFAULT_TITLE = "New Chat"

StateListener = Callable[[SessionState], None]


class ConversationStore:
    """
    Holds the current SessionState and replaces it on every mutation.

    Listeners registered with subscribe() receive each new state version,
    which is how persistence and the UI follow changes.
    """

    def __init__(
        self,
        state: SessionState | None = None,
        *,
        greeting: str = DEFAULT_GREETING,
        new_chat_title: str = DEFAULT_TITLE,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self._greeting = greeting
        self._new_chat_title = new_chat_title
        self._id_factory = id_factory
        self._state = state or SessionState.default(greeting, new_chat_title, id_factory)
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def conversations(self) -> tuple[Conversation, ...]:
        return self._state.conversations

    @property
    def active_id(self) -> str:
        return self._state.active_id

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register listener for new states; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def get(self, conversation_id: str) -> Conversation:
        conversation = self._state.find(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def get_active(self) -> Conversation:
        conversation = self._state.find(self._state.active_id)
        if conversation is None:
            raise InvariantViolationError(
                "Active conversation does not exist",
                context={"active_id": self._state.active_id},
            )
        return conversation

    def create_conversation(self) -> Conversation:
        conversation = self._fresh_conversation()
        self._commit(
            self._state.evolve(
                conversations=(conversation, *self._state.conversations),
                active_id=conversation.id,
            )
        )
        logger.info("Created conversation", extra={"conversation_id": conversation.id})
        return conversation

    def delete_conversation(self, conversation_id: str) -> None:
        """
        Remove a conversation.

        If it was active, the new first conversation becomes active. Deleting
        the last conversation replaces it with a fresh one in the same state
        version, so an empty list is never observable.
        """
        self.get(conversation_id)
        remaining = tuple(c for c in self._state.conversations if c.id != conversation_id)
        if not remaining:
            replacement = self._fresh_conversation()
            next_state = self._state.evolve(conversations=(replacement,), active_id=replacement.id)
        elif self._state.active_id == conversation_id:
            next_state = self._state.evolve(conversations=remaining, active_id=remaining[0].id)
        else:
            next_state = self._state.evolve(conversations=remaining)
        self._commit(next_state)
        logger.info(
            "Deleted conversation",
            extra={"conversation_id": conversation_id, "active_id": next_state.active_id},
        )

    def select_conversation(self, conversation_id: str) -> Conversation:
        conversation = self.get(conversation_id)
        if self._state.active_id != conversation_id:
            self._commit(self._state.evolve(active_id=conversation_id))
        return conversation

    def append_message(
        self, conversation_id: str, message: Message, *, title: str | None = None
    ) -> Conversation:
        """Append message; an optional title lands in the same state version."""
        updated = self.get(conversation_id).with_message(message, title=title)
        self._replace(updated)
        return updated

    def set_title(self, conversation_id: str, title: str) -> Conversation:
        updated = self.get(conversation_id).with_title(title)
        self._replace(updated)
        return updated

    def repair_active(self) -> Conversation:
        """Point the active id at the first conversation."""
        first = self._state.conversations[0]
        logger.warning(
            "Repairing dangling active conversation id",
            extra={"active_id": self._state.active_id, "repaired_id": first.id},
        )
        self._commit(
            SessionState(
                conversations=self._state.conversations,
                active_id=first.id,
                version=self._state.version + 1,
            )
        )
        return first

    def _fresh_conversation(self) -> Conversation:
        return Conversation.fresh(self._id_factory(), self._greeting, self._new_chat_title)

    def _replace(self, updated: Conversation) -> None:
        self._commit(
            self._state.evolve(
                conversations=tuple(
                    updated if c.id == updated.id else c for c in self._state.conversations
                )
            )
        )

    def _commit(self, state: SessionState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)
