"""Health check and shared route dependencies."""

from fastapi import APIRouter, HTTPException, Request

from persona_chat import errors
from persona_chat.orchestrator import ConversationOrchestrator

router = APIRouter()


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    return request.app.state.orchestrator


def to_http_error(e: errors.ChatError) -> HTTPException:
    """Translate an engine error into the HTTP status the API promises."""
    if isinstance(e, errors.NotFoundError):
        return HTTPException(404, str(e))
    if isinstance(e, errors.ValidationError):
        return HTTPException(400, str(e))
    if isinstance(e, errors.GenerationFailure):
        return HTTPException(502, "Failed to generate response")
    if isinstance(e, errors.StorageFailure):
        return HTTPException(503, "Storage unavailable")
    return HTTPException(500, "Internal error")


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}
