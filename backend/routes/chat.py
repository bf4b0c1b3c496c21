"""Chat endpoints: send a message, read history, provider info and switch."""

from fastapi import APIRouter, Depends

from persona_chat import errors
from persona_chat.orchestrator import ConversationOrchestrator

from .models import SendMessageBody, SwitchProviderBody, SwitchProviderResult
from .settings import get_orchestrator, to_http_error

router = APIRouter()


@router.post("/chat")
async def send_message(
    body: SendMessageBody, orch: ConversationOrchestrator = Depends(get_orchestrator)
):
    """Send a user message to a character and return both persisted messages."""
    try:
        return await orch.handle(body.character_id, body.message, body.conversation_id)
    except errors.ChatError as e:
        raise to_http_error(e) from e


@router.get("/chat/conversation/{conversation_id}")
async def conversation_history(
    conversation_id: str, orch: ConversationOrchestrator = Depends(get_orchestrator)
):
    """Full message history of a conversation, oldest first."""
    try:
        return await orch.conversation_history(conversation_id)
    except errors.ChatError as e:
        raise to_http_error(e) from e


@router.get("/chat/character/{character_id}/latest-conversation")
async def latest_conversation(
    character_id: str, orch: ConversationOrchestrator = Depends(get_orchestrator)
):
    """Most recently active conversation with a character, or null."""
    try:
        return await orch.latest_conversation(character_id)
    except errors.ChatError as e:
        raise to_http_error(e) from e


@router.get("/chat/ai/info")
async def provider_info(orch: ConversationOrchestrator = Depends(get_orchestrator)):
    """Active backend and model."""
    return orch.provider_info()


@router.post("/chat/ai/switch")
async def switch_provider(
    body: SwitchProviderBody, orch: ConversationOrchestrator = Depends(get_orchestrator)
) -> SwitchProviderResult:
    """Switch the active backend; the model defaults to the backend's configured one."""
    try:
        state = orch.switch_provider(body.provider, body.model)
    except errors.ChatError as e:
        raise to_http_error(e) from e
    suffix = f" with model {body.model}" if body.model else ""
    return SwitchProviderResult(
        success=True,
        message=f"Switched to {state.backend}{suffix}",
        backend=state.backend,
        model=state.model,
    )
