"""Context budgeting: fit conversation history into a bounded window.

Two policies, chosen by the active backend:

    TurnCountPolicy  : over `max_turns` turns, keep the first `keep_first`
                        and the last `keep_last` verbatim and replace the
                        middle with one synthetic summary turn.
    TokenBudgetPolicy: walk history newest → oldest, keeping turns while
                        their estimated cost fits the budget. When turns were
                        dropped and less than 80% of the budget is used,
                        prepend a summary turn if it still fits.

Both are pure functions of their input and never raise on odd budgets:
a budget of zero or less yields an empty window.

Token counts are estimated as ceil(len(text) / 4). This is a fixed heuristic,
not a tokenizer; it over- or under-counts for non-English text, code and
unusual whitespace. Keep it as is so windows stay reproducible.

Summaries are placeholders too: a single topical hint pulled from the most
recent user turn in the dropped span. They are not semantic summaries and
carry no guarantee of topical accuracy.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from persona_chat.models import HistoryWindow, Turn

CHARS_PER_TOKEN = 4

STOPWORDS = frozenset({
    "that", "this", "with", "have", "they", "were",
    "been", "from", "would", "could", "should",
})


def estimate_tokens(text: str) -> int:
    """Approximate token count: ceil(characters / 4)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def window_cost(window: Sequence[Turn]) -> int:
    """Summed estimated tokens of every turn in a window."""
    return sum(estimate_tokens(t.content) for t in window)


def topic_hint(turns: Sequence[Turn]) -> str | None:
    """First word longer than 4 characters, outside the stoplist, of the
    latest user turn that has one."""
    hint = None
    for turn in turns:
        if turn.role != "user":
            continue
        keywords = [
            w for w in turn.content.lower().split()
            if len(w) > 4 and w not in STOPWORDS
        ]
        if keywords:
            hint = keywords[0]
    return hint


def summarize(turns: Sequence[Turn]) -> str:
    """Best-effort one-line placeholder for a dropped span of turns."""
    hint = topic_hint(turns) or "general discussion"
    return f"The conversation covered topics including {hint}."


@dataclass(frozen=True)
class TurnCountPolicy:
    max_turns: int = 8
    keep_first: int = 2
    keep_last: int = 6

    def apply(self, history: Sequence[Turn], persona_prompt: str = "") -> HistoryWindow:
        return fit_turn_count(
            history,
            max_turns=self.max_turns,
            keep_first=self.keep_first,
            keep_last=self.keep_last,
        )


@dataclass(frozen=True)
class TokenBudgetPolicy:
    ceiling: int = 1500
    summary_threshold: float = 0.8

    def budget_for(self, persona_prompt: str) -> int:
        """History budget left once the persona prompt is paid for."""
        return self.ceiling - estimate_tokens(persona_prompt)

    def apply(self, history: Sequence[Turn], persona_prompt: str = "") -> HistoryWindow:
        return fit_token_budget(
            history,
            self.budget_for(persona_prompt),
            summary_threshold=self.summary_threshold,
        )


def fit_turn_count(
    history: Sequence[Turn],
    max_turns: int = 8,
    keep_first: int = 2,
    keep_last: int = 6,
) -> HistoryWindow:
    """Apply the turn-count policy. History within `max_turns` is returned verbatim."""
    if max_turns <= 0:
        return []
    if len(history) <= max_turns:
        return list(history)

    head = list(history[:keep_first])
    tail_start = max(len(history) - keep_last, keep_first)
    middle = history[keep_first:tail_start]
    tail = list(history[tail_start:])
    if not middle:
        return head + tail

    summary = Turn(
        role="assistant",
        content=f"[Previous conversation summary: {summarize(middle)}]",
        summary=True,
    )
    return head + [summary] + tail


def fit_token_budget(
    history: Sequence[Turn],
    budget: int,
    summary_threshold: float = 0.8,
) -> HistoryWindow:
    """Apply the token-budget policy. The window's total cost never exceeds `budget`."""
    if budget <= 0 or not history:
        return []

    kept: list[Turn] = []
    used = 0
    cut = len(history)
    for i in range(len(history) - 1, -1, -1):
        cost = estimate_tokens(history[i].content)
        if used + cost > budget:
            break
        kept.append(history[i])
        used += cost
        cut = i
    kept.reverse()

    dropped = history[:cut]
    if dropped and used < budget * summary_threshold:
        summary = Turn(
            role="assistant",
            content=f"[Earlier conversation: {summarize(dropped)}]",
            summary=True,
        )
        if used + estimate_tokens(summary.content) <= budget:
            kept.insert(0, summary)

    return kept
