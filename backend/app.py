import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.routes import router
from persona_chat.config import Settings, load_settings
from persona_chat.gateway import ProviderGateway
from persona_chat.llm import OllamaClient, OpenAIClient
from persona_chat.orchestrator import ConversationOrchestrator
from persona_chat.storage import init_storage

load_dotenv(Path(__file__).parent.parent / ".env")


def build_gateway(settings: Settings) -> ProviderGateway:
    """One client per backend; the configured provider starts active."""
    backends = {
        "ollama": OllamaClient(settings.ollama_url, timeout=settings.llm_timeout),
        "openai": OpenAIClient(
            settings.openai_url,
            api_key=settings.openai_api_key,
            timeout=settings.llm_timeout,
        ),
    }
    return ProviderGateway(
        backends,
        default_models={name: settings.default_model(name) for name in backends},
        active=settings.ai_provider,
        timeout=settings.llm_timeout,
    )


def create_app(
    data_dir: Path | None = None,
    settings: Settings | None = None,
    gateway: ProviderGateway | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(settings.data_dir)))
    messages, characters = init_storage(resolved)

    app = FastAPI(title="Persona Chat")
    app.state.orchestrator = ConversationOrchestrator(
        messages, characters, gateway or build_gateway(settings)
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
