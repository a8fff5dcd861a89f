"""
Application Configuration

Pydantic-based settings management using environment variables.
Supports nested configuration, validation, and caching.

Usage:
    from helpdesk.config import get_settings

    settings = get_settings()
    print(settings.llm.google_model)
    print(settings.widget.api_url)
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from helpdesk.conversations.store import DEFAULT_GREETING, DEFAULT_TITLE

DEFAULT_SITE_CONTEXT = """
You are a helpful helpdesk assistant embedded in a website chat widget.

Instructions:
- If the user asks about the website, its features, or its owner, answer from the site context you were given.
- For general questions, answer helpfully like a normal AI assistant.
- Keep responses concise and friendly.
"""


class LLMSettings(BaseSettings):
    """Gemini provider configuration for the chat service."""

    google_api_key: str | None = Field(
        None,
        description="Google AI (Gemini) API key",
        validation_alias=AliasChoices("LLM_GOOGLE_API_KEY", "GEMINI_API_KEY"),
    )
    google_model: str = Field(
        default="gemini-2.5-flash-lite", description="Gemini model used for replies"
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Temperature for LLM responses",
    )
    max_tokens: int = Field(
        default=2000,
        gt=0,
        le=16000,
        description="Maximum tokens per LLM response",
    )
    timeout: int = Field(
        default=30,
        gt=0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("google_api_key", mode="before")
    @classmethod
    def normalize_api_key(cls, v: str | None) -> str | None:
        """Treat empty strings as missing."""
        if isinstance(v, str) and not v.strip():
            return None
        return v


class AssistantSettings(BaseSettings):
    """Prompt priming sent ahead of every conversation."""

    site_context: str = Field(
        default=DEFAULT_SITE_CONTEXT,
        description="System preamble describing the site the assistant serves",
    )
    acknowledgement: str = Field(
        default=(
            "Understood! I am ready to help users with questions about the website "
            "and general queries."
        ),
        description="Model turn that acknowledges the site context",
    )

    model_config = SettingsConfigDict(
        env_prefix="ASSISTANT_",
        env_file=".env",
        extra="ignore",
    )


class WidgetSettings(BaseSettings):
    """Chat widget (session manager) configuration."""

    api_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the chat service exposing POST /api/chat",
    )
    request_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Timeout in seconds for one chat request",
    )
    greeting: str = Field(
        default=DEFAULT_GREETING,
        min_length=1,
        description="Assistant greeting seeded into every new conversation",
    )
    new_chat_title: str = Field(
        default=DEFAULT_TITLE,
        min_length=1,
        description="Placeholder title of a conversation without user messages",
    )
    title_max_length: int = Field(
        default=40,
        gt=0,
        le=200,
        description="Characters of the first user message kept as the title",
    )
    history_window: int | None = Field(
        default=None,
        ge=0,
        description="Trailing number of messages sent as context (None = unbounded)",
    )
    storage_path: Path = Field(
        default=Path.home() / ".helpdesk" / "session.json",
        description="File holding persisted conversations and the active id",
    )

    model_config = SettingsConfigDict(
        env_prefix="WIDGET_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("history_window", mode="before")
    @classmethod
    def normalize_history_window(cls, v: str | int | None) -> str | int | None:
        """Treat empty strings as unbounded."""
        if v == "":
            return None
        return v

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Store the base URL without a trailing slash."""
        return v.rstrip("/")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log timestamp format",
    )
    file: Path | None = Field(
        default=None,
        description="Optional log file path (None = stdout only)",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    def configure(self) -> None:
        """Configure Python logging with these settings."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]

        if self.file:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.file))

        logging.basicConfig(
            level=getattr(logging, self.level),
            format=self.format,
            datefmt=self.date_format,
            handlers=handlers,
            force=True,  # Override any existing configuration
        )


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    Settings are nested by domain (llm, assistant, widget, logging).

    Environment Variables:
        ENVIRONMENT: Deployment environment (development, staging, production)
        APP_NAME: Application name for logging
        DEBUG: Enable debug mode
        API_HOST: API server host
        API_PORT: API server port
        CORS_ORIGINS: Comma-separated origins allowed to call the chat API
        LLM_*: Gemini provider configuration (see LLMSettings)
        ASSISTANT_*: Prompt priming (see AssistantSettings)
        WIDGET_*: Chat widget configuration (see WidgetSettings)
        LOG_*: Logging configuration (see LoggingSettings)

    Example:
        >>> settings = get_settings()
        >>> settings.widget.title_max_length
        40
        >>> settings.is_production
        False
    """

    # Application settings
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    app_name: str = Field(
        default="Helpdesk",
        description="Application name",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        gt=0,
        le=65535,
        description="API server port",
    )
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of origins allowed by CORS",
    )

    # Nested settings
    llm: LLMSettings = Field(default_factory=LLMSettings)
    assistant: AssistantSettings = Field(default_factory=AssistantSettings)
    widget: WidgetSettings = Field(default_factory=WidgetSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def cors_origin_list(self) -> list[str]:
        """CORS origins as a list, ignoring blanks."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def model_post_init(self, __context) -> None:
        """Configure logging and log configuration on initialization."""
        self.logging.configure()
        logger = logging.getLogger(__name__)
        logger.info(
            f"Settings loaded for {self.app_name} ({self.environment})",
            extra={
                "environment": self.environment,
                "debug": self.debug,
                "llm_model": self.llm.google_model,
                "llm_configured": self.llm.google_api_key is not None,
                "history_window": self.widget.history_window,
            },
        )


_DOTENV_PATH = Path(__file__).resolve().parents[1] / ".env"


def _apply_dotenv_precedence() -> None:
    env_source = os.getenv("HELPDESK_ENV_SOURCE", "dotenv").lower()
    if env_source not in {"dotenv", "envfile", "file"}:
        return
    if _DOTENV_PATH.exists():
        load_dotenv(_DOTENV_PATH, override=True)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses functools.lru_cache to ensure settings are loaded only once.

    Returns:
        Settings: Singleton settings instance
    """
    _apply_dotenv_precedence()
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.
    """
    get_settings.cache_clear()
