"""Character registry endpoints (read-only)."""

from fastapi import APIRouter, Depends, HTTPException

from persona_chat import errors
from persona_chat.orchestrator import ConversationOrchestrator

from .settings import get_orchestrator, to_http_error

router = APIRouter()


@router.get("/characters")
async def list_characters(orch: ConversationOrchestrator = Depends(get_orchestrator)):
    """List all characters, ordered by id."""
    try:
        return await orch.characters.list_all()
    except errors.ChatError as e:
        raise to_http_error(e) from e


@router.get("/characters/{character_id}")
async def get_character(
    character_id: int, orch: ConversationOrchestrator = Depends(get_orchestrator)
):
    """Get a single character by id."""
    try:
        char = await orch.characters.get_by_id(character_id)
    except errors.ChatError as e:
        raise to_http_error(e) from e
    if not char:
        raise HTTPException(404, "Character not found")
    return char
