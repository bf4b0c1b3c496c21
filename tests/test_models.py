"""Tests for persona_chat.models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from persona_chat.models import GenerationParams, Message, Persona, ProviderState, Turn


def _message(role: str, content: str = "x") -> Message:
    return Message(
        id=1, conversation_id="c", role=role, content=content,
        created_at=datetime.now(timezone.utc),
    )


class TestMessage:
    def test_character_id_defaults_to_none(self) -> None:
        assert _message("user").character_id is None

    def test_invalid_role_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _message("narrator")

    def test_frozen(self) -> None:
        m = _message("user")
        with pytest.raises(ValidationError):
            m.content = "changed"  # type: ignore[misc]

    def test_serialise_roundtrip(self) -> None:
        m = _message("character", "Well met.")
        assert Message.model_validate_json(m.model_dump_json()) == m


class TestTurn:
    def test_character_becomes_assistant(self) -> None:
        turn = Turn.from_message(_message("character", "Aye"))
        assert turn.role == "assistant"
        assert turn.content == "Aye"
        assert turn.summary is False

    def test_user_and_system_keep_role(self) -> None:
        assert Turn.from_message(_message("user")).role == "user"
        assert Turn.from_message(_message("system")).role == "system"


class TestPersona:
    def test_optional_display_fields(self) -> None:
        p = Persona(id=1, slug="x", name="X", prompt_template="You are X.")
        assert p.avatar == ""
        assert p.description == ""

    def test_prompt_template_required(self) -> None:
        with pytest.raises(ValidationError):
            Persona(id=1, slug="x", name="X")


class TestGenerationParams:
    def test_backend_specific_fields_default_to_none(self) -> None:
        params = GenerationParams()
        assert params.repeat_penalty is None
        assert params.frequency_penalty is None
        assert params.context_window is None

    def test_model_copy_override(self) -> None:
        params = GenerationParams(max_tokens=400)
        tuned = params.model_copy(update={"temperature": 0.2})
        assert tuned.temperature == 0.2
        assert tuned.max_tokens == 400
        assert params.temperature == 0.8


class TestProviderState:
    def test_hashable_and_comparable(self) -> None:
        a = ProviderState(backend="ollama", model="m")
        assert a == ProviderState(backend="ollama", model="m")
        assert len({a, ProviderState(backend="ollama", model="m")}) == 1
