"""
Google LLM Provider

Implementation of BaseLLMProvider for Google's Gemini models, using the
google-generativeai SDK's multi-turn chat sessions.
"""

import logging
import warnings
from typing import Any

from helpdesk.errors import LLMError, LLMRateLimitError
from helpdesk.llm.base import BaseLLMProvider
from helpdesk.llm.models import LLMMessage, LLMRequest, LLMResponse, LLMUsage, ModelInfo

with warnings.catch_warnings():
    warnings.simplefilter("ignore", FutureWarning)
    import google.generativeai as genai

logger = logging.getLogger(__name__)

# Gemini has no system role; the preamble is sent as a user turn.
_GEMINI_ROLES = {"system": "user", "user": "user", "assistant": "model"}


class GoogleProvider(BaseLLMProvider):
    """
    Google (Gemini) LLM provider implementation.

    The request's last message is sent to a chat session primed with every
    earlier message as history.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash-lite",
        temperature: float = 0.7,
        max_tokens: int = 2000,
        timeout: int = 30,
    ):
        """Initialize Google provider."""
        super().__init__(
            provider_name="google",
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )

        self.model = model
        self.api_key = api_key
        self.genai = genai
        self.genai.configure(api_key=api_key)

        logger.info(f"Google provider initialized with model: {model}", extra={"model": model})

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate a reply using a Gemini chat session."""
        request = self._apply_defaults(request)
        self._log_request(request)

        model_name = request.model or self.model
        history, prompt = self._build_chat(request.messages)

        try:
            client = self.genai.GenerativeModel(model_name)
            chat = client.start_chat(history=history)
            response = await chat.send_message_async(
                prompt,
                generation_config=self.genai.types.GenerationConfig(
                    temperature=request.temperature,
                    max_output_tokens=request.max_tokens,
                ),
                request_options={"timeout": self.timeout},
            )
        except Exception as exc:
            if self._is_rate_limited(exc):
                raise LLMRateLimitError("google", str(exc), context={"model": model_name}) from exc
            raise LLMError("google", str(exc), context={"model": model_name}) from exc

        response_text = self._extract_response_text(response)
        finish_reason = self._extract_finish_reason(response)

        # Estimate token usage (Gemini doesn't always provide exact counts)
        prompt_tokens = sum(self.count_tokens(msg.content) for msg in request.messages)
        completion_tokens = self.count_tokens(response_text)

        llm_response = LLMResponse(
            content=response_text,
            model=model_name,
            usage=LLMUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
            finish_reason=finish_reason,
            provider="google",
            metadata={"raw_finish_reason": self._extract_raw_finish_reason(response)},
        )

        self._log_response(llm_response)
        return llm_response

    def count_tokens(self, text: str) -> int:
        """Count tokens for Google models."""
        # Rough approximation
        return len(text) // 4

    def list_models(self) -> list[ModelInfo]:
        """List Gemini models that support content generation."""
        models = []
        for model in self.genai.list_models():
            methods = list(getattr(model, "supported_generation_methods", None) or [])
            if "generateContent" not in methods:
                continue
            models.append(
                ModelInfo(
                    name=str(model.name).removeprefix("models/"),
                    provider="google",
                    display_name=getattr(model, "display_name", None),
                    context_window=getattr(model, "input_token_limit", None) or 1,
                    max_output=getattr(model, "output_token_limit", None) or 1,
                    capabilities=methods,
                )
            )
        return models

    @staticmethod
    def _build_chat(messages: list[LLMMessage]) -> tuple[list[dict[str, Any]], str]:
        *earlier, last = messages
        history = [
            {"role": _GEMINI_ROLES[msg.role], "parts": [msg.content]} for msg in earlier
        ]
        return history, last.content

    @staticmethod
    def _is_rate_limited(exc: Exception) -> bool:
        code = getattr(exc, "code", None)
        if code == 429 or type(exc).__name__ == "ResourceExhausted":
            return True
        return "429" in str(exc)

    def _extract_response_text(self, response: Any) -> str:
        text = getattr(response, "text", "")
        if isinstance(text, str):
            return text
        if text is None:
            return ""
        return str(text)

    def _extract_raw_finish_reason(self, response: Any) -> str:
        candidates = getattr(response, "candidates", None)
        if not candidates:
            return ""
        first = candidates[0] if len(candidates) > 0 else None
        if first is None:
            return ""
        reason = getattr(first, "finish_reason", "")
        return str(reason or "")

    def _extract_finish_reason(self, response: Any) -> str:
        raw_reason = self._extract_raw_finish_reason(response).lower()
        if any(token in raw_reason for token in ("max_tokens", "length")):
            return "length"
        if any(token in raw_reason for token in ("safety", "blocked", "recitation")):
            return "content_filter"
        if "error" in raw_reason:
            return "error"
        return "stop"
