"""FastAPI application main file."""
from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.models import ChatRequestBody, ChatResponse, ErrorResponse, HistoryResponse
from app.errors import ChatServiceError, UpstreamFatal, ValidationError
from app.services.guardrails import GuardrailGate
from app.services.rag.main_chat_service import MainChatService
from app.database.db import init_db
from app.config import settings
from app.logging_config import configure_logging
from typing import Optional
from contextlib import asynccontextmanager
import logging

configure_logging(settings.log_level, settings.app_insights_connection_string)

logger = logging.getLogger(__name__)

_chat_service: Optional[MainChatService] = None
_guardrail_gate: Optional[GuardrailGate] = None


def get_chat_service() -> MainChatService:
    """Shared pipeline service; it holds collaborators only, no per-request state."""
    global _chat_service
    if _chat_service is None:
        _chat_service = MainChatService()
    return _chat_service


def get_guardrail_gate() -> GuardrailGate:
    global _guardrail_gate
    if _guardrail_gate is None:
        _guardrail_gate = GuardrailGate()
    return _guardrail_gate


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown."""
    # Startup: Initialize database
    await init_db()
    yield
    # Shutdown: let detached history writes finish
    if _chat_service is not None:
        await _chat_service.recorder.wait_pending()


# Initialize FastAPI app with lifespan handler
app = FastAPI(
    title="Scholarship Assistant API",
    description="Conversational assistant for scholarship announcements",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify actual origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChatServiceError)
async def chat_service_error_handler(request: Request, exc: ChatServiceError):
    """Map pipeline errors to {error: {kind, message}} bodies."""
    if isinstance(exc, UpstreamFatal):
        body = {"error": {"kind": exc.kind, "message": settings.upstream_failure_message}}
    else:
        body = exc.to_dict()
    logger.info(
        "Request rejected",
        extra={"error_kind": exc.kind, "error": exc.message},
    )
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    error = ValidationError("Invalid request body")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error", extra={"error": str(exc)}, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": {"kind": "internal_error", "message": "Internal server error"}},
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Scholarship Assistant API",
        "version": "1.0.0"
    }


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "scholarship-assistant"
    }


@app.post(
    "/api/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def chat(
    body: ChatRequestBody,
    authorization: Optional[str] = Header(None),
    chat_service: MainChatService = Depends(get_chat_service),
    gate: GuardrailGate = Depends(get_guardrail_gate),
):
    """
    Chat endpoint for processing user messages.

    Args:
        body: message, optional history and optional sessionId

    Returns:
        ChatResponse with the assistant's reply and the session id
    """
    caller, request = gate.admit(authorization, body)

    logger.info(
        "Chat request received",
        extra={
            "caller_id": caller.caller_id,
            "session_id": request.session_id,
            "user_message": request.message,
            "message_length": len(request.message),
        }
    )

    envelope = await chat_service.process_message(request, caller.caller_id)
    return ChatResponse(
        response=envelope.text,
        session_id=envelope.session_id,
        source_type=envelope.source_type,
        citations=envelope.citations,
    )


@app.get("/api/chat/history", response_model=HistoryResponse)
async def get_history(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    authorization: Optional[str] = Header(None),
    chat_service: MainChatService = Depends(get_chat_service),
    gate: GuardrailGate = Depends(get_guardrail_gate),
):
    """Stored turns for the caller, oldest first, optionally limited to one session."""
    caller = gate.auth_provider.authenticate(authorization)
    turns = await chat_service.store.list_turns(caller.caller_id, session_id)
    return HistoryResponse(data=turns)


@app.delete("/api/chat/history")
async def clear_history(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    authorization: Optional[str] = Header(None),
    chat_service: MainChatService = Depends(get_chat_service),
    gate: GuardrailGate = Depends(get_guardrail_gate),
):
    """Delete the caller's stored turns."""
    caller = gate.auth_provider.authenticate(authorization)
    removed = await chat_service.store.clear(caller.caller_id, session_id)
    return {"success": True, "removed": removed}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
