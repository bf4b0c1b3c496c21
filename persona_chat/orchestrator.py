"""Conversation orchestrator: handles one user message end-to-end.

Turn flow:
  1. Validate input, resolve the persona, render its prompt template.
  2. Resolve the conversation id (mint a UUID4 when absent).
  3. Append the user message to the log.
  4. Read back the 20 most recent messages, minus the one just appended.
  5. Budget the history for the active backend, assemble, generate.
  6. Sanitize the reply and append it as a character message.

Steps 3–6 run under a per-conversation lock, so requests for the same
conversation are handled one at a time in arrival order.

A failure after step 3 does not roll the user message back: the log keeps an
orphan user turn with no reply, and readers of history must tolerate that.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
import weakref

from persona_chat.errors import GenerationFailure, NotFoundError, ValidationError
from persona_chat.gateway import ProviderGateway
from persona_chat.models import (
    ChatResult,
    ConversationHistory,
    ConversationSummary,
    Persona,
    PersonaSummary,
    ProviderState,
    Turn,
)
from persona_chat.prompts import render_persona_prompt
from persona_chat.sanitize import sanitize_response
from persona_chat.storage import CharacterRegistry, MessageLog, check_conversation_id

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 20
LATEST_CANDIDATES = 10


class ConversationOrchestrator:
    def __init__(
        self,
        messages: MessageLog,
        characters: CharacterRegistry,
        gateway: ProviderGateway,
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self.messages = messages
        self.characters = characters
        self.gateway = gateway
        self.history_limit = history_limit
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _conversation_lock(self, conversation_id: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    async def _resolve_persona(self, character_id: str | int) -> Persona:
        try:
            key = int(str(character_id).strip())
        except ValueError:
            raise NotFoundError(f"Character {character_id!r} not found") from None
        persona = await self.characters.get_by_id(key)
        if persona is None:
            raise NotFoundError(f"Character {character_id!r} not found")
        return persona

    async def handle(
        self,
        character_id: str | int,
        user_text: str,
        conversation_id: str | None = None,
    ) -> ChatResult:
        """Persist a user message, generate the character's reply, persist it."""
        if not str(character_id).strip():
            raise ValidationError("character_id must not be empty")
        if not user_text or not user_text.strip():
            raise ValidationError("message must not be empty")
        if conversation_id:
            check_conversation_id(conversation_id)

        persona = await self._resolve_persona(character_id)
        persona_prompt = render_persona_prompt(persona)
        conversation_id = conversation_id or str(uuid.uuid4())

        async with self._conversation_lock(conversation_id):
            user_message = await self.messages.append(
                conversation_id, "user", user_text, character_id=persona.id
            )

            recent = await self.messages.read_ordered(conversation_id, limit=self.history_limit)
            history = [Turn.from_message(m) for m in recent if m.id != user_message.id]

            state = self.gateway.get_active()
            window = self.gateway.budget(history, persona_prompt, state=state)
            logger.debug(
                "conversation=%s backend=%s history=%d window=%d",
                conversation_id, state.backend, len(history), len(window),
            )

            try:
                raw = await self.gateway.generate(
                    persona_prompt, window, user_text, state=state
                )
            except GenerationFailure as e:
                logger.error(
                    "generation failed conversation=%s backend=%s cause=%s",
                    conversation_id, e.backend, e.cause,
                )
                raise

            reply = sanitize_response(raw)
            character_message = await self.messages.append(
                conversation_id, "character", reply, character_id=persona.id
            )

        return ChatResult(
            conversation_id=conversation_id,
            user_message=user_message,
            character_message=character_message,
            character=PersonaSummary(id=persona.id, name=persona.name, avatar=persona.avatar),
        )

    async def conversation_history(self, conversation_id: str) -> ConversationHistory:
        """Every message of a conversation, oldest first."""
        check_conversation_id(conversation_id)
        messages = await self.messages.read_ordered(conversation_id)
        return ConversationHistory(conversation_id=conversation_id, messages=messages)

    async def latest_conversation(self, character_id: str | int) -> ConversationSummary | None:
        """Most recently active conversation with a character that has a reply in it.

        Only the character's LATEST_CANDIDATES most recently active
        conversations are considered.
        """
        persona = await self._resolve_persona(character_id)
        candidates = 0
        for conversation_id in await self.messages.conversation_ids():
            messages = await self.messages.read_ordered(conversation_id)
            if not any(m.character_id == persona.id for m in messages):
                continue
            if {"user", "character"} <= {m.role for m in messages}:
                return ConversationSummary(
                    conversation_id=conversation_id,
                    message_count=len(messages),
                    last_message_at=messages[-1].created_at,
                )
            candidates += 1
            if candidates >= LATEST_CANDIDATES:
                break
        return None

    def provider_info(self) -> ProviderState:
        return self.gateway.get_active()

    def switch_provider(self, backend: str, model: str | None = None) -> ProviderState:
        return self.gateway.switch_active(backend, model)
