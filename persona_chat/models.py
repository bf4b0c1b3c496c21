"""Core domain models.

Every engine component passes these types across its boundaries.
Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MessageRole = Literal["user", "character", "system"]
TurnRole = Literal["user", "assistant", "system"]
PromptStyle = Literal["chat", "text"]


class Message(BaseModel):
    """A single persisted entry in a conversation's append-only log."""

    model_config = ConfigDict(frozen=True)

    id: int
    conversation_id: str
    role: MessageRole
    content: str
    created_at: datetime
    character_id: int | None = None


class Persona(BaseModel):
    """A fixed character definition, owned by the character registry."""

    id: int
    slug: str
    name: str
    avatar: str = ""
    description: str = ""
    prompt_template: str


class PersonaSummary(BaseModel):
    """Display fields returned alongside a reply."""

    id: int
    name: str
    avatar: str


class Turn(BaseModel):
    """One (role, content) pair fed to a backend.

    `summary` marks the synthetic entry the budgeter inserts in place of
    dropped turns.
    """

    model_config = ConfigDict(frozen=True)

    role: TurnRole
    content: str
    summary: bool = False

    @classmethod
    def from_message(cls, message: Message) -> Turn:
        role: TurnRole = {
            "user": "user",
            "character": "assistant",
            "system": "system",
        }[message.role]
        return cls(role=role, content=message.content)


# Budgeted, transient slice of history; never persisted.
HistoryWindow = list[Turn]


class GenerationParams(BaseModel):
    """Sampling parameters. Fields a backend does not understand stay None."""

    model_config = ConfigDict(frozen=True)

    temperature: float = 0.8
    top_p: float = 0.9
    max_tokens: int = 300
    context_window: int | None = None
    repeat_penalty: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None


class ChatEntry(BaseModel):
    """One element of a structured-message request."""

    role: TurnRole
    content: str


class GenerationRequest(BaseModel):
    """Backend-neutral request produced by the prompt assembler.

    Exactly one of `messages` (structured-message backends) or `prompt`
    (flat-text backends) is set, according to `style`.
    """

    style: PromptStyle
    persona_prompt: str
    instruction: str
    history: list[Turn]
    user_text: str
    params: GenerationParams
    messages: list[ChatEntry] | None = None
    prompt: str | None = None


class ProviderState(BaseModel):
    """Active backend and model, swapped as one immutable value."""

    model_config = ConfigDict(frozen=True)

    backend: str
    model: str


class ChatResult(BaseModel):
    """Outcome of one orchestrated user message."""

    conversation_id: str
    user_message: Message
    character_message: Message
    character: PersonaSummary


class ConversationHistory(BaseModel):
    conversation_id: str
    messages: list[Message] = Field(default_factory=list)


class ConversationSummary(BaseModel):
    conversation_id: str
    message_count: int
    last_message_at: datetime
