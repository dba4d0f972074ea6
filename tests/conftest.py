"""Scripted collaborators for draft-guard tests."""

from __future__ import annotations

from collections.abc import Callable, Sequence

import pytest

from draft_guard.analysis import TARGETS
from draft_guard.enforcer import EnforcementOutcome
from draft_guard.evaluator import MetricsReport
from draft_guard.rewriter import RewriteRequest, RewriteResult, Rewriter


class ScriptedRewriter(Rewriter):
    """Rewriter that replays canned responses and records every request.

    Each response is either replacement text or an exception to raise. The
    last response repeats once the script runs out.
    """

    def __init__(self, responses: Sequence[str | Exception]) -> None:
        self.responses = list(responses)
        self.requests: list[RewriteRequest] = []

    async def rewrite(self, request: RewriteRequest) -> RewriteResult:
        self.requests.append(request)
        if len(self.responses) > 1:
            response = self.responses.pop(0)
        else:
            response = self.responses[0]
        if isinstance(response, Exception):
            raise response
        return RewriteResult(text=response, units_consumed=7, generator="scripted")


class WordCountEnforcer:
    """Enforcer stand-in that appends a word per pass and scores by length.

    Every other metric sits at a passing value, so only the composite score
    moves between iterations.
    """

    targets = TARGETS

    def __init__(self, base: float, step: float) -> None:
        self.base = base
        self.step = step
        self.calls = 0
        self.target_scores: list[float | None] = []

    def evaluate(self, text: str) -> MetricsReport:
        score = min(self.base + self.step * len(text.split()), 100.0)
        return MetricsReport(
            dialogue_balance=40.0,
            dynamic_content=80.0,
            overall_score=score,
        )

    async def enforce_excellence(
        self,
        text: str,
        domain_tag: str,
        max_strategies: int = 3,
        *,
        target_score: float | None = None,
    ) -> EnforcementOutcome:
        self.calls += 1
        self.target_scores.append(target_score)
        return EnforcementOutcome(
            final_text=f"{text} word",
            attempts=[],
            total_improvement=self.step,
        )


@pytest.fixture
def scripted_rewriter() -> Callable[..., ScriptedRewriter]:
    """Factory for rewriters that replay the given responses."""

    def build(*responses: str | Exception) -> ScriptedRewriter:
        return ScriptedRewriter(responses)

    return build


@pytest.fixture
def word_count_enforcer() -> Callable[[float, float], WordCountEnforcer]:
    """Factory for length-scored enforcer stand-ins."""
    return WordCountEnforcer
