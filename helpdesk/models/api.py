"""
API Request/Response Models

Pydantic models for FastAPI endpoints.
"""

from typing import Literal

from pydantic import BaseModel, Field


class HistoryItem(BaseModel):
    """Prior message sent as conversational memory."""

    role: Literal["user", "model"] = Field(..., description="Message role: 'user' or 'model'")
    text: str = Field(..., description="Message text")


class ChatRequest(BaseModel):
    """Request model for chat endpoint."""

    message: str | None = Field(default=None, description="The visitor's new message")
    history: list[HistoryItem] = Field(
        default_factory=list,
        description="Previous messages in the conversation, oldest first",
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "message": "What can you help me with?",
                "history": [
                    {"role": "user", "text": "Hi"},
                    {"role": "model", "text": "Hello! How can I help?"},
                ],
            }
        }
    }


class ChatResponse(BaseModel):
    """Response model for chat endpoint."""

    reply: str = Field(..., description="Assistant reply text")


class ErrorResponse(BaseModel):
    """Error body returned with 4xx/5xx statuses."""

    error: str = Field(..., description="Human-readable error message")


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""

    status: str = Field(..., description="Service status: 'healthy' or 'unhealthy'")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="Current timestamp (ISO 8601)")


class ReadinessResponse(BaseModel):
    """Response model for readiness check endpoint."""

    status: str = Field(..., description="'ready' or 'not_ready'")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="Current timestamp (ISO 8601)")
    checks: dict[str, bool] = Field(default_factory=dict, description="Per-dependency checks")
