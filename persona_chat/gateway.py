"""Provider gateway: one entry point over every generation backend.

Holds one client per backend and the process-wide ProviderState (active
backend + model). The state is an immutable value replaced as a whole under
a lock, so readers never see backend A paired with backend B's model.

A request that snapshotted the state before a switch finishes against the
old backend. That is accepted; callers who need budgeting and dispatch to
agree pass the same snapshot to budget() and generate().
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Mapping, Sequence
from typing import Any

from persona_chat.errors import GenerationFailure, ValidationError
from persona_chat.llm import Backend
from persona_chat.models import HistoryWindow, ProviderState, Turn
from persona_chat.prompts import assemble_request

logger = logging.getLogger(__name__)


class ProviderGateway:
    """Dispatches generation to the active backend.

    Args:
        backends:       Clients keyed by backend name.
        default_models: Configured default model per backend name; used at
                        startup and whenever a switch omits the model.
        active:         Initial backend name.
        timeout:        Upper bound in seconds for a single generate() call.
    """

    def __init__(
        self,
        backends: Mapping[str, Backend],
        default_models: Mapping[str, str],
        active: str,
        timeout: float = 120.0,
    ) -> None:
        if active not in backends:
            raise ValueError(f"Unknown backend {active!r}")
        missing = set(backends) - set(default_models)
        if missing:
            raise ValueError(f"No default model for {', '.join(sorted(missing))}")
        self._backends = dict(backends)
        self._default_models = dict(default_models)
        self._timeout = timeout
        self._lock = threading.Lock()
        self._state = ProviderState(backend=active, model=self._default_models[active])

    @property
    def backends(self) -> list[str]:
        return list(self._backends)

    def get_active(self) -> ProviderState:
        with self._lock:
            return self._state

    def switch_active(self, backend: str, model: str | None = None) -> ProviderState:
        """Make `backend` active; `model` verbatim, else that backend's default."""
        if backend not in self._backends:
            raise ValidationError(
                f"Unknown provider {backend!r}; expected one of {', '.join(self._backends)}"
            )
        state = ProviderState(
            backend=backend,
            model=model if model else self._default_models[backend],
        )
        with self._lock:
            self._state = state
        logger.info("switched provider backend=%s model=%s", state.backend, state.model)
        return state

    def budget(
        self,
        history: Sequence[Turn],
        persona_prompt: str,
        state: ProviderState | None = None,
    ) -> HistoryWindow:
        """Fit history with the context policy of the (snapshotted) backend."""
        state = state or self.get_active()
        return self._backends[state.backend].context_policy.apply(history, persona_prompt)

    async def generate(
        self,
        persona_prompt: str,
        window: Sequence[Turn],
        user_text: str,
        *,
        state: ProviderState | None = None,
        **overrides: Any,
    ) -> str:
        """Generate a reply on the active backend.

        `overrides` replace individual default GenerationParams fields.
        Raises GenerationFailure on any backend error or timeout.
        """
        state = state or self.get_active()
        backend = self._backends[state.backend]
        params = backend.defaults.model_copy(update=overrides) if overrides else backend.defaults
        request = assemble_request(backend.prompt_style, persona_prompt, window, user_text, params)

        try:
            return await asyncio.wait_for(
                backend.complete(request, state.model), timeout=self._timeout
            )
        except asyncio.TimeoutError as e:
            raise GenerationFailure(
                state.backend, f"Timed out after {self._timeout}s"
            ) from e
