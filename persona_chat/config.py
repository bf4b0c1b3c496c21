"""Process settings, read from the environment (and `.env` via python-dotenv)."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel

BACKENDS = ("ollama", "openai")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:8081,exp://localhost:8081"


class Settings(BaseModel):
    ai_provider: str = "ollama"
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.1:8b"
    openai_url: str = "https://api.openai.com"
    openai_api_key: str = ""
    openai_model: str = "gpt-3.5-turbo"
    llm_timeout: float = 120.0
    data_dir: Path = DEFAULT_DATA_DIR
    cors_origins: list[str] = DEFAULT_CORS_ORIGINS.split(",")

    def default_model(self, backend: str) -> str:
        """Configured default model for a backend name."""
        if backend == "ollama":
            return self.ollama_model
        if backend == "openai":
            return self.openai_model
        raise ValueError(f"Unknown AI provider {backend!r}")


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from environment variables.

    Call load_dotenv() first if a `.env` file should be honoured.
    """
    env = os.environ if env is None else env

    provider = env.get("AI_PROVIDER", "ollama").strip().lower() or "ollama"
    if provider not in BACKENDS:
        raise ValueError(
            f"AI_PROVIDER must be one of {', '.join(BACKENDS)}, got {provider!r}"
        )

    raw_timeout = env.get("LLM_TIMEOUT", "120")
    try:
        timeout = float(raw_timeout)
    except ValueError as e:
        raise ValueError(f"LLM_TIMEOUT must be a number, got {raw_timeout!r}") from e

    origins = env.get("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)

    return Settings(
        ai_provider=provider,
        ollama_url=env.get("OLLAMA_URL") or "http://localhost:11434",
        ollama_model=env.get("OLLAMA_MODEL") or "llama3.1:8b",
        openai_url=env.get("OPENAI_URL") or "https://api.openai.com",
        openai_api_key=env.get("OPENAI_API_KEY", ""),
        openai_model=env.get("OPENAI_MODEL") or "gpt-3.5-turbo",
        llm_timeout=timeout,
        data_dir=Path(env.get("DATA_DIR") or DEFAULT_DATA_DIR),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
    )
