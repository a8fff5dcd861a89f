"""Context window sent with each outbound chat request."""

from helpdesk.conversations.models import Conversation, Message

WIRE_ROLES = {"user": "user", "assistant": "model"}


def build_context(conversation: Conversation, *, max_messages: int | None = None) -> list[Message]:
    """
    Messages to send as conversational memory.

    Called after the outgoing user message has been appended, so the window
    skips both the leading greeting and that last message. With max_messages
    set, only the trailing max_messages of the window are kept.
    """
    history = list(conversation.messages[1:-1])
    if max_messages is not None:
        history = history[-max_messages:] if max_messages > 0 else []
    return history


def to_wire_history(messages: list[Message]) -> list[dict[str, str]]:
    """Serialize messages for POST /api/chat, where the assistant role is 'model'."""
    return [{"role": WIRE_ROLES[message.role], "text": message.text} for message in messages]
