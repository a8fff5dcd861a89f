"""
Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import itertools
import logging

import pytest

# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """
    Configure logging for tests.

    Sets up log capture and configures log levels.
    This fixture runs automatically for all tests.
    """
    caplog.set_level(logging.DEBUG)
    yield


# ============================================================================
# Environment and Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """
    Keep every test away from the real environment and home directory.

    Runs automatically for all tests: no Gemini key, no project .env
    precedence, and widget state stored under tmp_path.
    """
    from helpdesk.config import clear_settings_cache

    clear_settings_cache()
    monkeypatch.setenv("HELPDESK_ENV_SOURCE", "environment")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("LLM_GOOGLE_API_KEY", raising=False)
    monkeypatch.setenv("WIDGET_STORAGE_PATH", str(tmp_path / "session.json"))
    yield tmp_path / "session.json"

    clear_settings_cache()
    logging.disable(logging.NOTSET)


# ============================================================================
# Session Manager Fixtures
# ============================================================================


@pytest.fixture
def id_factory():
    """Deterministic conversation ids: conv-1, conv-2, ..."""
    counter = itertools.count(1)
    return lambda: f"conv-{next(counter)}"


@pytest.fixture
def memory_persistence():
    """Fresh in-memory persistence adapter."""
    from helpdesk.conversations.persistence import InMemoryPersistence

    return InMemoryPersistence()


@pytest.fixture
def widget_settings():
    """Widget settings with the default greeting and title rules."""
    from helpdesk.config import WidgetSettings

    return WidgetSettings()


@pytest.fixture
def fake_chat_client():
    """
    Scriptable RemoteChatClient.

    Usage:
        async def test_send(fake_chat_client):
            fake_chat_client.replies.append("Hi there")
            fake_chat_client.errors.append(RateLimitedError())
    """
    from helpdesk.client import RemoteChatClient

    class FakeChatClient(RemoteChatClient):
        def __init__(self):
            self.replies: list[str] = []
            self.errors: list[Exception] = []
            self.calls: list[tuple[str, list]] = []
            self.closed = False

        async def send(self, message, history):
            self.calls.append((message, list(history)))
            if self.errors:
                raise self.errors.pop(0)
            if self.replies:
                return self.replies.pop(0)
            return f"echo: {message}"

        async def close(self):
            self.closed = True

    return FakeChatClient()


@pytest.fixture
def controller(fake_chat_client, memory_persistence, widget_settings, id_factory):
    """SessionController wired to the fake client and in-memory storage."""
    from helpdesk.controller import SessionController

    return SessionController(
        fake_chat_client,
        memory_persistence,
        settings=widget_settings,
        id_factory=id_factory,
    )


# ============================================================================
# Mock LLM Provider
# ============================================================================


@pytest.fixture
def mock_llm_provider():
    """
    Mock LLM provider for testing the chat route.

    Usage:
        def test_route(mock_llm_provider):
            mock_llm_provider.set_response("test response")
    """
    from unittest.mock import AsyncMock

    from helpdesk.llm.models import LLMResponse, LLMUsage

    class MockLLMProvider:
        def __init__(self):
            self.generate = AsyncMock()

        def set_response(self, response: str):
            """Set the response that generate() will return."""
            self.generate.return_value = LLMResponse(
                content=response,
                model="mock-model",
                usage=LLMUsage(prompt_tokens=1, completion_tokens=1, total_tokens=2),
                finish_reason="stop",
                provider="mock",
                metadata={},
            )

    return MockLLMProvider()
