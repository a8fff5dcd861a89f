"""
Chat Routes

FastAPI endpoint the chat widget posts each message to.
"""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from helpdesk.config import get_settings
from helpdesk.errors import DEFAULT_RATE_LIMIT_MESSAGE, LLMError, LLMRateLimitError
from helpdesk.llm.models import LLMMessage, LLMRequest
from helpdesk.models.api import ChatRequest, ChatResponse, ErrorResponse, HistoryItem

logger = logging.getLogger(__name__)

router = APIRouter()

MESSAGE_REQUIRED = "Message is required"
PROVIDER_FAILED = "Failed to get response from AI"
PROVIDER_NOT_CONFIGURED = "Chat service is not configured. Set GEMINI_API_KEY."

_HISTORY_ROLES = {"user": "user", "model": "assistant"}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def build_llm_request(message: str, history: list[HistoryItem]) -> LLMRequest:
    """Prime the model with the site context, then replay history and the new message."""
    assistant = get_settings().assistant
    messages = [
        LLMMessage(role="system", content=assistant.site_context),
        LLMMessage(role="assistant", content=assistant.acknowledgement),
    ]
    messages.extend(
        LLMMessage(role=_HISTORY_ROLES[item.role], content=item.text)
        for item in history
        if item.text
    )
    messages.append(LLMMessage(role="user", content=message))
    return LLMRequest(messages=messages)


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def chat(chat_request: ChatRequest) -> ChatResponse | JSONResponse:
    """
    Answer one widget message.

    Args:
        chat_request: New message plus prior history

    Returns:
        ChatResponse with the reply, or an {"error": ...} body with
        400 (empty message), 429 (quota exhausted), 500 (provider failure)
        or 503 (no provider configured)
    """
    if not (chat_request.message or "").strip():
        return _error(status.HTTP_400_BAD_REQUEST, MESSAGE_REQUIRED)

    from helpdesk.api.main import app_state

    provider = app_state.get("llm_provider")
    if provider is None:
        logger.error("Chat request received but no LLM provider is configured")
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, PROVIDER_NOT_CONFIGURED)

    logger.info(
        "Processing chat request",
        extra={"history_length": len(chat_request.history)},
    )
    try:
        response = await provider.generate(
            build_llm_request(chat_request.message, chat_request.history)
        )
    except LLMRateLimitError as exc:
        logger.warning(f"LLM quota exhausted: {exc}")
        return _error(status.HTTP_429_TOO_MANY_REQUESTS, DEFAULT_RATE_LIMIT_MESSAGE)
    except LLMError as exc:
        logger.error(f"LLM error: {exc}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, PROVIDER_FAILED)

    logger.info(
        "AI response generated successfully",
        extra={"finish_reason": response.finish_reason, "model": response.model},
    )
    return ChatResponse(reply=response.content)
