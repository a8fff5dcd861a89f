"""
Error Taxonomy

Exceptions raised across the helpdesk session manager and chat service.

The session controller never lets any of these escape to the UI: remote
failures become assistant-role chat messages, storage failures fall back to a
fresh default session, and invariant violations are repaired in place.
"""

from typing import Any

DEFAULT_UNAVAILABLE_MESSAGE = "Sorry, something went wrong. Please try again."
DEFAULT_RATE_LIMIT_MESSAGE = "API quota exceeded. Please try again later or update the API key."


class HelpdeskError(Exception):
    """
    Base exception for helpdesk errors.

    Attributes:
        message: Error description
        context: Additional context for debugging
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/API responses."""
        return {
            "message": self.message,
            "context": self.context,
            "type": self.__class__.__name__,
        }


class ValidationError(HelpdeskError):
    """Submitted input is empty or whitespace-only."""


class ConversationNotFoundError(HelpdeskError):
    """No conversation exists with the requested id."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(
            f"Conversation not found: {conversation_id}",
            context={"conversation_id": conversation_id},
        )


class InvariantViolationError(HelpdeskError):
    """Session state no longer satisfies its invariants (e.g. dangling active id)."""


class StorageCorruptError(HelpdeskError):
    """Persisted session data could not be decoded."""


class RemoteChatError(HelpdeskError):
    """
    Failure reported by the remote chat collaborator.

    Attributes:
        user_message: Text shown to the user as an assistant-role message
        status_code: HTTP status returned by the service, if any
    """

    default_message = DEFAULT_UNAVAILABLE_MESSAGE

    def __init__(
        self,
        user_message: str | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        self.user_message = user_message or self.default_message
        self.status_code = status_code
        super().__init__(self.user_message, context=context)


class RateLimitedError(RemoteChatError):
    """Remote collaborator signalled quota exhaustion (HTTP 429)."""

    default_message = DEFAULT_RATE_LIMIT_MESSAGE


class UnavailableError(RemoteChatError):
    """Any other remote failure: network, 5xx, or a malformed response."""


class LLMError(HelpdeskError):
    """Error during an LLM provider call."""

    def __init__(self, provider: str, message: str, context: dict[str, Any] | None = None):
        self.provider = provider
        super().__init__(f"[{provider}] {message}", context=context)


class LLMRateLimitError(LLMError):
    """LLM provider rejected the call because the quota is exhausted."""
