"""LLM clients: HTTP connections to the generation backends.

The gateway drives any object matching the Backend protocol:

    name          : identifier used in ProviderState and logs
    prompt_style  : "chat" (structured messages) or "text" (one flat prompt)
    defaults      : GenerationParams used when the caller sets none
    context_policy: budgeting policy applied to history for this backend

    async def complete(self, request: GenerationRequest, model: str) -> str

Two implementations are provided:

    OllamaClient : self-hosted Ollama, POST /api/generate with a flat prompt.
                    Turn-count budgeting (8 turns), 3072-token context window.
    OpenAIClient : hosted OpenAI chat completions, POST /v1/chat/completions.
                    Token budgeting (1500-token ceiling).

Every transport or protocol failure is raised as GenerationFailure carrying
the backend name; nothing is retried here.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from persona_chat.budget import TokenBudgetPolicy, TurnCountPolicy
from persona_chat.errors import GenerationFailure
from persona_chat.models import GenerationParams, GenerationRequest, PromptStyle

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol: every backend client must match this shape
# ---------------------------------------------------------------------------

class ContextPolicy(Protocol):
    def apply(self, history: list, persona_prompt: str = "") -> list: ...


class Backend(Protocol):
    name: str
    prompt_style: PromptStyle
    defaults: GenerationParams
    context_policy: ContextPolicy

    async def complete(self, request: GenerationRequest, model: str) -> str: ...


OLLAMA_DEFAULTS = GenerationParams(
    temperature=0.8,
    top_p=0.9,
    max_tokens=300,
    context_window=3072,
    repeat_penalty=1.1,
)

OPENAI_DEFAULTS = GenerationParams(
    temperature=0.8,
    top_p=0.9,
    max_tokens=400,
    frequency_penalty=0.3,
    presence_penalty=0.1,
)


# ---------------------------------------------------------------------------
# Shared HTTP plumbing
# ---------------------------------------------------------------------------

class _HttpBackend:
    """POSTs JSON to a backend and maps httpx failures to GenerationFailure."""

    name = "http"

    def __init__(self, base_url: str, api_key: str = "", timeout: float = 120.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise GenerationFailure(self.name, f"Cannot connect to {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise GenerationFailure(
                self.name, f"Backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise GenerationFailure(self.name, f"Timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise GenerationFailure(self.name, f"Transport error: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise GenerationFailure(self.name, "Response body is not JSON") from e
        if not isinstance(data, dict):
            raise GenerationFailure(self.name, "Unexpected response format")
        return data


# ---------------------------------------------------------------------------
# OllamaClient: flat text, turn-count budgeting
# ---------------------------------------------------------------------------

class OllamaClient(_HttpBackend):
    """Self-hosted Ollama.

    Request:  POST {base}/api/generate
              {"model", "prompt", "stream": false, "options": {...}}
    Response: {"response": "..."}
    """

    name = "ollama"
    prompt_style: PromptStyle = "text"
    defaults = OLLAMA_DEFAULTS
    context_policy = TurnCountPolicy(max_turns=8, keep_first=2, keep_last=6)

    def build_body(self, request: GenerationRequest, model: str) -> dict[str, Any]:
        p = request.params
        options: dict[str, Any] = {
            "temperature": p.temperature,
            "top_p": p.top_p,
            "num_predict": p.max_tokens,
        }
        if p.context_window is not None:
            options["num_ctx"] = p.context_window
        if p.repeat_penalty is not None:
            options["repeat_penalty"] = p.repeat_penalty
        return {
            "model": model,
            "prompt": request.prompt or "",
            "stream": False,
            "options": options,
        }

    async def complete(self, request: GenerationRequest, model: str) -> str:
        body = self.build_body(request, model)
        logger.debug("ollama call model=%s prompt_len=%d", model, len(body["prompt"]))
        data = await self._post("/api/generate", body)
        text = data.get("response")
        if not isinstance(text, str):
            raise GenerationFailure(self.name, "Unexpected response format from Ollama")
        logger.debug("ollama response model=%s len=%d", model, len(text))
        return text


# ---------------------------------------------------------------------------
# OpenAIClient: structured messages, token budgeting
# ---------------------------------------------------------------------------

class OpenAIClient(_HttpBackend):
    """Hosted OpenAI chat completions (or any compatible server).

    Request:  POST {base}/v1/chat/completions
              {"model", "messages", "temperature", "top_p", "max_tokens", ...}
    Response: {"choices": [{"message": {"content": "..."}}]}
    """

    name = "openai"
    prompt_style: PromptStyle = "chat"
    defaults = OPENAI_DEFAULTS
    context_policy = TokenBudgetPolicy(ceiling=1500)

    def build_body(self, request: GenerationRequest, model: str) -> dict[str, Any]:
        p = request.params
        body: dict[str, Any] = {
            "model": model,
            "messages": [m.model_dump() for m in request.messages or []],
            "temperature": p.temperature,
            "top_p": p.top_p,
            "max_tokens": p.max_tokens,
        }
        if p.frequency_penalty is not None:
            body["frequency_penalty"] = p.frequency_penalty
        if p.presence_penalty is not None:
            body["presence_penalty"] = p.presence_penalty
        return body

    async def complete(self, request: GenerationRequest, model: str) -> str:
        body = self.build_body(request, model)
        logger.debug("openai call model=%s messages=%d", model, len(body["messages"]))
        data = await self._post("/v1/chat/completions", body)
        choices = data.get("choices")
        try:
            text = choices[0]["message"]["content"]
        except (TypeError, LookupError) as e:
            raise GenerationFailure(
                self.name, "Unexpected response format from OpenAI"
            ) from e
        # content is null when the model refuses or only calls tools
        if text is None:
            text = ""
        if not isinstance(text, str):
            raise GenerationFailure(self.name, "Unexpected response format from OpenAI")
        logger.debug("openai response model=%s len=%d", model, len(text))
        return text
