"""Prompt assembly: persona prompt + budgeted history + new user text.

Structured-message backends ("chat") get a list of role-tagged entries:

    system     persona prompt + continuity instruction
    <history>  one entry per window turn, role preserved
    user       new user text

Flat-text backends ("text") get one string:

    System: <persona prompt>

    <continuity instruction>

    Human: ...
    Assistant: ...
    Human: <new user text>
    Assistant: <response cue>

Persona templates are Handlebars (pybars) and are rendered once per request
with the persona's own display fields before assembly.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import pybars

from persona_chat.errors import PromptError
from persona_chat.models import (
    ChatEntry,
    GenerationParams,
    GenerationRequest,
    Persona,
    PromptStyle,
    Turn,
)

CONTINUITY_INSTRUCTION = (
    "CONTEXT INSTRUCTIONS: You are in an ongoing conversation. Maintain "
    "character consistency, reference previous exchanges when relevant, and "
    "build naturally upon established rapport. Stay true to your character "
    "traits and speaking style at all times."
)

RESPONSE_CUE = "\nAssistant: [Stay in character and respond naturally based on the conversation context]"

_TEXT_SPEAKERS = {"user": "Human", "assistant": "Assistant", "system": "System"}

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


def _verbatim(value: str) -> pybars.strlist | str:
    # pybars emits strlist values as-is; "" stays falsy for {{#if}}
    return pybars.strlist([value]) if value else ""


def render_persona_prompt(persona: Persona) -> str:
    """Render a persona's Handlebars prompt template.

    Context: name, slug, description, avatar. Templates are cached by source.
    Prompts are plain text, so values are inserted without HTML escaping
    (`{{name}}` behaves like `{{{name}}}`).
    """
    context: dict[str, Any] = {
        key: _verbatim(value)
        for key, value in (
            ("name", persona.name),
            ("slug", persona.slug),
            ("description", persona.description),
            ("avatar", persona.avatar),
        )
    }
    try:
        compiled = _cache.get(persona.prompt_template)
        if compiled is None:
            compiled = _compiler.compile(persona.prompt_template)
            _cache[persona.prompt_template] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Persona {persona.id} template error: {e}") from e


def build_chat_messages(
    persona_prompt: str, window: Sequence[Turn], user_text: str
) -> list[ChatEntry]:
    entries = [
        ChatEntry(role="system", content=f"{persona_prompt}\n\n{CONTINUITY_INSTRUCTION}")
    ]
    entries.extend(ChatEntry(role=t.role, content=t.content) for t in window)
    entries.append(ChatEntry(role="user", content=user_text))
    return entries


def build_text_prompt(
    persona_prompt: str, window: Sequence[Turn], user_text: str
) -> str:
    parts = [f"System: {persona_prompt}\n\n", f"{CONTINUITY_INSTRUCTION}\n\n"]
    for turn in window:
        parts.append(f"{_TEXT_SPEAKERS[turn.role]}: {turn.content}\n")
    parts.append(f"Human: {user_text}{RESPONSE_CUE}")
    return "".join(parts)


def assemble_request(
    style: PromptStyle,
    persona_prompt: str,
    window: Sequence[Turn],
    user_text: str,
    params: GenerationParams,
) -> GenerationRequest:
    """Build the request in the calling convention a backend expects."""
    request = GenerationRequest(
        style=style,
        persona_prompt=persona_prompt,
        instruction=CONTINUITY_INSTRUCTION,
        history=list(window),
        user_text=user_text,
        params=params,
    )
    if style == "chat":
        request.messages = build_chat_messages(persona_prompt, window, user_text)
    else:
        request.prompt = build_text_prompt(persona_prompt, window, user_text)
    return request
