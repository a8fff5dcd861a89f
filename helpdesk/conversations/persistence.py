"""
Persistence Adapters

Durable key/value storage for the conversation list and the active
conversation id. Two fixed logical keys are used; no transaction spans them,
so a stale active id is resolved on load by checking it still exists.

Loading fails soft: missing or unreadable data yields an empty result and the
caller synthesizes a fresh session. Saving is best-effort and never raises.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from pathlib import Path

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from helpdesk.conversations.ids import new_id
from helpdesk.conversations.models import Conversation, SessionState
from helpdesk.errors import StorageCorruptError

logger = logging.getLogger(__name__)

CONVERSATIONS_KEY = "chatbot_conversations"
ACTIVE_ID_KEY = "chatbot_active_id"

_CONVERSATION_LIST = TypeAdapter(list[Conversation])


class PersistenceAdapter(ABC):
    """
    Storage interface the session controller depends on.

    Concrete adapters only provide raw string get/set for a key; decoding,
    validation and fail-soft behavior live here.
    """

    @abstractmethod
    def _read(self, key: str) -> str | None:
        """Return the raw value stored under key, or None."""
        pass  # pragma: no cover - abstract method

    @abstractmethod
    def _write(self, key: str, value: str) -> None:
        """Store the raw value under key, replacing any previous value."""
        pass  # pragma: no cover - abstract method

    @abstractmethod
    def clear(self) -> None:
        """Forget everything this adapter stored."""
        pass  # pragma: no cover - abstract method

    def load_conversations(self) -> list[Conversation]:
        try:
            raw = self._read(CONVERSATIONS_KEY)
            if raw is None:
                return []
            return self._decode_conversations(raw)
        except (OSError, ValueError, StorageCorruptError) as exc:
            logger.warning(f"Ignoring unreadable conversation data: {exc}")
            return []

    def save_conversations(self, conversations: Sequence[Conversation]) -> None:
        self._safe_write(CONVERSATIONS_KEY, self._encode_conversations(conversations))

    def load_active_id(self, conversations: Sequence[Conversation], default: str) -> str:
        """Persisted active id if it still names one of conversations, else default."""
        try:
            stored = self._read(ACTIVE_ID_KEY)
        except (OSError, ValueError) as exc:
            logger.warning(f"Ignoring unreadable active conversation id: {exc}")
            return default
        if stored and any(conversation.id == stored for conversation in conversations):
            return stored
        return default

    def save_active_id(self, active_id: str) -> None:
        self._safe_write(ACTIVE_ID_KEY, active_id)

    def load_state(
        self,
        greeting: str,
        title: str,
        id_factory: Callable[[], str] = new_id,
    ) -> SessionState:
        """Rebuild the session, or synthesize a default one when nothing usable is stored."""
        conversations = self.load_conversations()
        if conversations:
            active_id = self.load_active_id(conversations, conversations[0].id)
            try:
                return SessionState(conversations=tuple(conversations), active_id=active_id)
            except PydanticValidationError as exc:
                logger.warning(f"Stored conversations violate session invariants: {exc}")
        logger.info("Starting a fresh session")
        return SessionState.default(greeting, title, id_factory)

    def save_state(self, state: SessionState) -> None:
        self.save_conversations(state.conversations)
        self.save_active_id(state.active_id)

    def _safe_write(self, key: str, value: str) -> None:
        try:
            self._write(key, value)
        except (OSError, ValueError) as exc:
            logger.error(f"Failed to persist {key}: {exc}", extra={"key": key})

    @staticmethod
    def _encode_conversations(conversations: Sequence[Conversation]) -> str:
        return json.dumps(
            [conversation.model_dump(mode="json") for conversation in conversations],
            ensure_ascii=False,
        )

    @staticmethod
    def _decode_conversations(raw: str) -> list[Conversation]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageCorruptError(f"Invalid JSON: {exc}") from exc
        if not isinstance(data, list):
            raise StorageCorruptError("Conversation list must be a JSON array")
        try:
            return _CONVERSATION_LIST.validate_python(data)
        except PydanticValidationError as exc:
            raise StorageCorruptError(
                "Malformed conversation entry", context={"errors": exc.error_count()}
            ) from exc


class InMemoryPersistence(PersistenceAdapter):
    """Process-local storage, used by tests and embedders without a disk."""

    def __init__(self, values: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(values or {})

    def _read(self, key: str) -> str | None:
        return self.values.get(key)

    def _write(self, key: str, value: str) -> None:
        self.values[key] = value

    def clear(self) -> None:
        self.values.clear()


class JsonFilePersistence(PersistenceAdapter):
    """
    Stores both keys in one JSON document on disk (default ~/.helpdesk/session.json).

    Writes go to a temporary file beside the target and are swapped in with
    os.replace, so a crash mid-write leaves the previous document intact.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _load_document(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                document = json.load(handle)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise StorageCorruptError(f"Invalid session file: {exc}") from exc
        if not isinstance(document, dict):
            raise StorageCorruptError("Session file must hold a JSON object")
        return document

    def _read(self, key: str) -> str | None:
        try:
            value = self._load_document().get(key)
        except StorageCorruptError as exc:
            logger.warning(f"Ignoring corrupt session file {self.path}: {exc}")
            return None
        return value if isinstance(value, str) else None

    def _write(self, key: str, value: str) -> None:
        self._update({key: value})

    def save_state(self, state: SessionState) -> None:
        """Write both keys with a single read and a single replace."""
        values = {
            CONVERSATIONS_KEY: self._encode_conversations(state.conversations),
            ACTIVE_ID_KEY: state.active_id,
        }
        try:
            self._update(values)
        except (OSError, ValueError) as exc:
            logger.error(
                f"Failed to persist session state: {exc}",
                extra={"path": str(self.path), "version": state.version},
            )

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.error(f"Failed to remove session file {self.path}: {exc}")

    def _update(self, values: dict[str, str]) -> None:
        try:
            document = self._load_document()
        except StorageCorruptError:
            document = {}
        document.update(values)
        self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)

        fd, temp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, ensure_ascii=False)
            os.replace(temp_name, self.path)
        except OSError:
            Path(temp_name).unlink(missing_ok=True)
            raise
