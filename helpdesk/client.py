"""
Remote Chat Client

Sends one user message plus its context window to the chat service and
returns the assistant reply, or raises a classified RemoteChatError.

Retries are deliberately absent: failures surface to the user as chat
messages and the user decides whether to send again.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from helpdesk.conversations.context import to_wire_history
from helpdesk.conversations.models import Message
from helpdesk.errors import RateLimitedError, UnavailableError

logger = logging.getLogger(__name__)

CHAT_PATH = "/api/chat"


class RemoteChatClient(ABC):
    """Contract for anything that can produce an assistant reply."""

    @abstractmethod
    async def send(self, message: str, history: list[Message]) -> str:
        """
        Send message with its history and return the reply text.

        Raises:
            RateLimitedError: The service signalled quota exhaustion
            UnavailableError: Any other failure
        """
        pass  # pragma: no cover - abstract method

    async def close(self) -> None:
        """Release underlying resources."""


class HttpChatClient(RemoteChatClient):
    """
    RemoteChatClient talking to POST /api/chat over HTTP.

    Attributes:
        base_url: Chat service base URL (no trailing slash)
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    async def send(self, message: str, history: list[Message]) -> str:
        payload = {"message": message, "history": to_wire_history(history)}
        logger.debug(
            "Sending chat request",
            extra={"history_length": len(history), "message_length": len(message)},
        )
        try:
            response = await self._client.post(CHAT_PATH, json=payload)
        except httpx.HTTPError as exc:
            logger.warning(f"Chat request failed: {exc}")
            raise UnavailableError(context={"reason": type(exc).__name__}) from exc

        body = self._decode_body(response)
        if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
            logger.warning("Chat service rate limited the request")
            raise RateLimitedError(self._error_text(body), status_code=response.status_code)
        if response.is_error:
            logger.warning(
                "Chat service returned an error",
                extra={"status_code": response.status_code},
            )
            raise UnavailableError(self._error_text(body), status_code=response.status_code)

        reply = body.get("reply") if isinstance(body, dict) else None
        if not isinstance(reply, str):
            logger.warning("Chat service returned a malformed response")
            raise UnavailableError(
                status_code=response.status_code, context={"reason": "malformed_response"}
            )
        return reply

    async def close(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _decode_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    @staticmethod
    def _error_text(body: Any) -> str | None:
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, str) and error.strip():
                return error
        return None
