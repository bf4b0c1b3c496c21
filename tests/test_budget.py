"""Tests for persona_chat.budget: turn-count and token-budget policies."""

import pytest

from persona_chat.budget import (
    TokenBudgetPolicy,
    TurnCountPolicy,
    estimate_tokens,
    fit_token_budget,
    fit_turn_count,
    summarize,
    topic_hint,
    window_cost,
)
from persona_chat.models import Turn


def _history(n: int, size: int = 8) -> list[Turn]:
    """n alternating user/assistant turns, each `size` characters long."""
    turns = []
    for i in range(n):
        role = "user" if i % 2 == 0 else "assistant"
        turns.append(Turn(role=role, content=f"{i:0{size}d}"))
    return turns


# ---------------------------------------------------------------------------
# Token estimation
# ---------------------------------------------------------------------------

class TestEstimateTokens:
    def test_empty_is_zero(self) -> None:
        assert estimate_tokens("") == 0

    def test_rounds_up(self) -> None:
        assert estimate_tokens("a") == 1
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_window_cost_sums_turns(self) -> None:
        window = [Turn(role="user", content="x" * 8), Turn(role="assistant", content="y" * 5)]
        assert window_cost(window) == 2 + 2


# ---------------------------------------------------------------------------
# Summary placeholder
# ---------------------------------------------------------------------------

class TestSummarize:
    def test_hint_from_latest_user_turn(self) -> None:
        turns = [
            Turn(role="user", content="tell me about dragons"),
            Turn(role="assistant", content="Dragons are ancient beasts."),
            Turn(role="user", content="and wizards then"),
        ]
        assert topic_hint(turns) == "wizards"
        assert summarize(turns) == "The conversation covered topics including wizards."

    def test_assistant_turns_ignored(self) -> None:
        turns = [Turn(role="assistant", content="Treasure awaits beyond the horizon")]
        assert topic_hint(turns) is None

    def test_stopwords_skipped(self) -> None:
        turns = [Turn(role="user", content="would could should castles")]
        assert topic_hint(turns) == "castles"

    def test_user_turn_without_keywords_keeps_earlier_hint(self) -> None:
        turns = [
            Turn(role="user", content="the navigation"),
            Turn(role="user", content="ok yes"),
        ]
        assert topic_hint(turns) == "navigation"

    def test_falls_back_to_general_discussion(self) -> None:
        assert summarize([]) == "The conversation covered topics including general discussion."
        turns = [Turn(role="user", content="hi")]
        assert "general discussion" in summarize(turns)


# ---------------------------------------------------------------------------
# Turn-count policy
# ---------------------------------------------------------------------------

class TestTurnCount:
    def test_empty_history(self) -> None:
        assert fit_turn_count([]) == []

    @pytest.mark.parametrize("n", [1, 5, 7, 8])
    def test_within_limit_is_verbatim(self, n: int) -> None:
        history = _history(n)
        window = fit_turn_count(history, max_turns=8)
        assert window == history
        assert not any(t.summary for t in window)

    @pytest.mark.parametrize("n", [9, 12, 19])
    def test_over_limit_keeps_first_two_and_last_six(self, n: int) -> None:
        history = _history(n)
        window = fit_turn_count(history, max_turns=8)
        assert len(window) == 9
        assert window[:2] == history[:2]
        assert window[3:] == history[-6:]
        summary = window[2]
        assert summary.summary is True
        assert summary.role == "assistant"
        assert summary.content.startswith("[Previous conversation summary: ")
        assert summary.content.endswith("]")

    def test_summary_covers_dropped_middle(self) -> None:
        history = _history(12)
        history[4] = Turn(role="user", content="any lighthouses here")
        window = fit_turn_count(history)
        assert window[2].content == (
            "[Previous conversation summary: "
            "The conversation covered topics including lighthouses.]"
        )

    def test_zero_budget_is_empty(self) -> None:
        assert fit_turn_count(_history(10), max_turns=0) == []
        assert fit_turn_count(_history(10), max_turns=-3) == []

    def test_policy_object_uses_defaults(self) -> None:
        history = _history(10)
        assert TurnCountPolicy().apply(history, "persona") == fit_turn_count(history)


# ---------------------------------------------------------------------------
# Token-budget policy
# ---------------------------------------------------------------------------

class TestTokenBudget:
    def test_empty_history(self) -> None:
        assert fit_token_budget([], 100) == []

    def test_fits_entirely_is_verbatim(self) -> None:
        history = _history(6)  # 6 turns x 2 tokens
        window = fit_token_budget(history, 100)
        assert window == history

    @pytest.mark.parametrize("budget", [0, -1, -500])
    def test_non_positive_budget_is_empty(self, budget: int) -> None:
        assert fit_token_budget(_history(4), budget) == []

    def test_keeps_most_recent_turns(self) -> None:
        history = _history(10, size=40)  # 10 tokens each
        window = fit_token_budget(history, 35)
        verbatim = [t for t in window if not t.summary]
        assert verbatim == history[-3:]

    def test_stops_at_first_overflow(self) -> None:
        history = [
            Turn(role="user", content="a" * 4),
            Turn(role="assistant", content="b" * 400),  # 100 tokens, cannot fit
            Turn(role="user", content="c" * 4),
        ]
        window = fit_token_budget(history, 50)
        verbatim = [t for t in window if not t.summary]
        # the small first turn is not reached once the big one overflows
        assert verbatim == history[-1:]

    def test_summary_prepended_when_under_threshold(self) -> None:
        history = [
            Turn(role="user", content="mountains " * 30),
            Turn(role="assistant", content="x" * 40),
        ]
        window = fit_token_budget(history, 40)
        assert window[0].summary is True
        assert window[0].content.startswith("[Earlier conversation: ")
        assert "mountains" in window[0].content
        assert window[1:] == history[1:]

    def test_no_summary_when_budget_mostly_used(self) -> None:
        history = [
            Turn(role="user", content="y" * 400),
            Turn(role="assistant", content="x" * 36),  # 9 tokens of 10 = 90%
        ]
        window = fit_token_budget(history, 10)
        assert window == history[1:]

    def test_summary_skipped_when_it_would_overflow(self) -> None:
        history = [
            Turn(role="user", content="y" * 400),
            Turn(role="assistant", content="x" * 4),
        ]
        # 1 token used of 5: under threshold, but the summary costs far more
        window = fit_token_budget(history, 5)
        assert window == history[1:]

    @pytest.mark.parametrize("budget", [1, 7, 20, 33, 60, 150])
    def test_never_exceeds_budget(self, budget: int) -> None:
        history = [
            Turn(role="user" if i % 2 == 0 else "assistant", content="word " * (i + 1))
            for i in range(15)
        ]
        window = fit_token_budget(history, budget)
        assert window_cost(window) <= budget

    def test_policy_budget_subtracts_persona_cost(self) -> None:
        policy = TokenBudgetPolicy(ceiling=1500)
        assert policy.budget_for("p" * 400) == 1400

    def test_policy_with_huge_persona_is_empty(self) -> None:
        policy = TokenBudgetPolicy(ceiling=10)
        assert policy.apply(_history(4), "p" * 400) == []
