"""
FastAPI Application

Chat service backing the helpdesk widget with:
- Lifespan management for the Gemini provider
- CORS middleware for the embedding site
- Global exception handler for provider errors
- Health and chat endpoints

Usage:
    uvicorn helpdesk.api.main:app --reload --port 8000
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from helpdesk import __version__
from helpdesk.api.routes import chat, health
from helpdesk.api.routes.chat import MESSAGE_REQUIRED
from helpdesk.config import get_settings
from helpdesk.errors import LLMError
from helpdesk.llm.google import GoogleProvider

logger = logging.getLogger(__name__)

# Global state for long-lived components
app_state = {
    "llm_provider": None,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Lifespan context manager for startup and shutdown.

    Initializes the Gemini provider when an API key is configured; without
    one the service still starts and /api/chat answers 503.
    """
    config = get_settings()
    logger.info("Starting Helpdesk chat service...")

    try:
        if config.llm.google_api_key:
            app_state["llm_provider"] = GoogleProvider(
                api_key=config.llm.google_api_key,
                model=config.llm.google_model,
                temperature=config.llm.temperature,
                max_tokens=config.llm.max_tokens,
                timeout=config.llm.timeout,
            )
        else:
            logger.warning("GEMINI_API_KEY not set; chat endpoint will answer 503.")
            app_state["llm_provider"] = None

        logger.info("Helpdesk chat service started successfully")

        yield  # Application runs here

    finally:
        logger.info("Shutting down Helpdesk chat service...")
        app_state["llm_provider"] = None
        logger.info("Helpdesk chat service shut down complete")


# Create FastAPI app
app = FastAPI(
    title="Helpdesk Chat API",
    description="Chat service for the embeddable helpdesk widget",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for the embedding site
config = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed bodies with the same {"error": ...} shape as every other failure."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    parts = [str(part) for part in first.get("loc", ()) if part != "body"]
    location = ".".join(parts)
    detail = first.get("msg", "Invalid request")
    logger.warning(f"Rejected malformed request: {detail}", extra={"field": location})
    if parts[:1] == ["message"]:
        message = MESSAGE_REQUIRED
    elif location:
        message = f"Invalid request: {location}: {detail}"
    else:
        message = f"Invalid request: {detail}"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": message},
    )


@app.exception_handler(LLMError)
async def llm_error_handler(request: Request, exc: LLMError) -> JSONResponse:
    """Handle provider errors that escape a route."""
    logger.error(f"LLM error: {exc}", extra={"provider": exc.provider})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Failed to get response from AI"},
    )


# Include routers
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(chat.router, prefix="/api", tags=["chat"])


# Root endpoint
@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": "Helpdesk Chat API",
        "version": __version__,
        "description": "Chat service for the embeddable helpdesk widget",
        "docs": "/docs",
    }
