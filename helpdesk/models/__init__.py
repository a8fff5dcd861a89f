"""
Helpdesk API Models

Pydantic models for the chat service's HTTP contract.

Available Models:
    - HistoryItem: One prior message in wire format
    - ChatRequest: POST /api/chat request body
    - ChatResponse: Successful reply
    - ErrorResponse: Error body for 4xx/5xx replies
    - HealthResponse / ReadinessResponse: Health check responses
"""

from helpdesk.models.api import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    HealthResponse,
    HistoryItem,
    ReadinessResponse,
)

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "ErrorResponse",
    "HealthResponse",
    "HistoryItem",
    "ReadinessResponse",
]
