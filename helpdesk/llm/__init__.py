"""
LLM Provider Module

Gemini-backed provider used by the chat service to answer widget messages.

Usage:
    from helpdesk.llm import GoogleProvider, LLMRequest, LLMMessage

    provider = GoogleProvider(api_key="...")
    request = LLMRequest(messages=[LLMMessage(role="user", content="Hello!")])
    response = await provider.generate(request)
    print(response.content)
"""

from helpdesk.llm.base import BaseLLMProvider
from helpdesk.llm.google import GoogleProvider
from helpdesk.llm.models import (
    LLMMessage,
    LLMRequest,
    LLMResponse,
    LLMUsage,
    ModelInfo,
)

__all__ = [
    "BaseLLMProvider",
    "GoogleProvider",
    "LLMMessage",
    "LLMRequest",
    "LLMResponse",
    "LLMUsage",
    "ModelInfo",
]
