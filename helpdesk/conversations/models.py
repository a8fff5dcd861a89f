"""
Conversation Models

Immutable pydantic models for the widget's session state.

Every mutation of a SessionState produces a new instance with a higher
version; nothing is edited in place. The presentation layer observes those
versions instead of relying on ambient reactivity.
"""

from collections.abc import Callable
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Storage and wire formats name the assistant role "model".
_ROLE_ALIASES = {"model": "assistant"}


class Message(BaseModel):
    """Single chat message. Inline markup is interpreted at render time only."""

    role: Literal["user", "assistant"] = Field(..., description="Message author")
    text: str = Field(..., description="Message text as typed or received")

    model_config = ConfigDict(frozen=True)

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v: str) -> str:
        """Accept the wire alias 'model' for assistant messages."""
        if isinstance(v, str):
            return _ROLE_ALIASES.get(v, v)
        return v


class Conversation(BaseModel):
    """One independent thread of messages."""

    id: str = Field(..., min_length=1, description="Opaque, never reused identifier")
    title: str = Field(..., description="Sidebar label")
    messages: tuple[Message, ...] = Field(
        ...,
        min_length=1,
        description="Messages in insertion order, starting with the assistant greeting",
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("messages")
    @classmethod
    def validate_greeting_first(cls, v: tuple[Message, ...]) -> tuple[Message, ...]:
        """The first message is always the assistant greeting."""
        if v[0].role != "assistant":
            raise ValueError("Conversation must start with the assistant greeting")
        return v

    @classmethod
    def fresh(cls, conversation_id: str, greeting: str, title: str) -> "Conversation":
        """Create a conversation holding only the greeting."""
        return cls(
            id=conversation_id,
            title=title,
            messages=(Message(role="assistant", text=greeting),),
        )

    @property
    def has_user_messages(self) -> bool:
        return any(message.role == "user" for message in self.messages)

    def with_message(self, message: Message, title: str | None = None) -> "Conversation":
        return Conversation(
            id=self.id,
            title=self.title if title is None else title,
            messages=(*self.messages, message),
        )

    def with_title(self, title: str) -> "Conversation":
        return Conversation(id=self.id, title=title, messages=self.messages)


class SessionState(BaseModel):
    """
    All conversations plus the active one.

    Invariants:
        - conversations is never empty
        - conversation ids are unique
        - active_id references a member of conversations
    """

    conversations: tuple[Conversation, ...] = Field(..., min_length=1)
    active_id: str = Field(..., description="Conversation currently displayed")
    version: int = Field(default=0, ge=0, description="Incremented by every mutation")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_invariants(self) -> "SessionState":
        ids = [conversation.id for conversation in self.conversations]
        if len(ids) != len(set(ids)):
            raise ValueError("Conversation ids must be unique")
        if self.active_id not in ids:
            raise ValueError(f"Active id {self.active_id!r} does not match any conversation")
        return self

    @classmethod
    def default(
        cls, greeting: str, title: str, id_factory: Callable[[], str]
    ) -> "SessionState":
        """A session holding a single fresh conversation."""
        conversation = Conversation.fresh(id_factory(), greeting, title)
        return cls(conversations=(conversation,), active_id=conversation.id)

    def find(self, conversation_id: str) -> Conversation | None:
        for conversation in self.conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    def evolve(
        self,
        conversations: tuple[Conversation, ...] | None = None,
        active_id: str | None = None,
    ) -> "SessionState":
        """Return the next version with the given fields replaced."""
        return SessionState(
            conversations=self.conversations if conversations is None else conversations,
            active_id=self.active_id if active_id is None else active_id,
            version=self.version + 1,
        )
