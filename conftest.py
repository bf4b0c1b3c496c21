from pathlib import Path

import pytest

from persona_chat.budget import TokenBudgetPolicy, TurnCountPolicy
from persona_chat.errors import GenerationFailure
from persona_chat.gateway import ProviderGateway
from persona_chat.models import GenerationParams, GenerationRequest
from persona_chat.orchestrator import ConversationOrchestrator
from persona_chat.storage import init_storage

PRESETS_DIR = Path(__file__).parent / "presets"


class StubBackend:
    """Backend double: records every request and returns `reply`.

    Set `error` to make the next calls fail with GenerationFailure.
    """

    def __init__(self, name: str, prompt_style: str = "chat", context_policy=None) -> None:
        self.name = name
        self.prompt_style = prompt_style
        self.defaults = GenerationParams(temperature=0.5, top_p=0.5, max_tokens=50)
        self.context_policy = context_policy or TokenBudgetPolicy(ceiling=1500)
        self.reply = "Greetings, traveller. What brings you here?"
        self.error: str | None = None
        self.calls: list[tuple[GenerationRequest, str]] = []

    async def complete(self, request: GenerationRequest, model: str) -> str:
        self.calls.append((request, model))
        if self.error:
            raise GenerationFailure(self.name, self.error)
        return self.reply


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Per-test data directory; stores seeds it from presets."""
    return tmp_path / "data"


@pytest.fixture
def stores(data_dir: Path):
    return init_storage(data_dir, presets_dir=PRESETS_DIR)


@pytest.fixture
def chat_backend() -> StubBackend:
    return StubBackend("openai", prompt_style="chat", context_policy=TokenBudgetPolicy())


@pytest.fixture
def text_backend() -> StubBackend:
    return StubBackend("ollama", prompt_style="text", context_policy=TurnCountPolicy())


@pytest.fixture
def gateway(chat_backend: StubBackend, text_backend: StubBackend) -> ProviderGateway:
    return ProviderGateway(
        {"openai": chat_backend, "ollama": text_backend},
        default_models={"openai": "gpt-3.5-turbo", "ollama": "llama3.1:8b"},
        active="openai",
        timeout=5.0,
    )


@pytest.fixture
def orchestrator(stores, gateway: ProviderGateway) -> ConversationOrchestrator:
    messages, characters = stores
    return ConversationOrchestrator(messages, characters, gateway)
