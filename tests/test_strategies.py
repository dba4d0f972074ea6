"""Tests for strategy selection and the strategy catalog."""

from __future__ import annotations

import pytest

from draft_guard.analysis import Metric
from draft_guard.evaluator import MetricsReport, evaluate
from draft_guard.patterns import PatternMatch, Severity
from draft_guard.strategies import (
    STRATEGIES,
    determine_strategies,
    strategy_for_metric,
)
from drafts import SATURATED_TEXT, WEAK_TEXT

_ONE_PATTERN = (
    PatternMatch(pattern="robust", severity=Severity.HIGH, count=1, examples=()),
)


def test_orders_pattern_then_telling_then_glue() -> None:
    """Simultaneous pattern, telling and glue failures sort by priority."""
    metrics = MetricsReport(
        glue_words=45.0,
        telling=12.0,
        dynamic_content=80.0,
        dialogue_balance=40.0,
        patterns=_ONE_PATTERN,
        overall_score=60.0,
    )

    names = [strategy.name for strategy in determine_strategies(metrics)]

    assert names == [
        "pattern_elimination",
        "telling_conversion",
        "glue_word_reduction",
        "sentence_variation",
        "sensory_detail",
    ]
    assert [STRATEGIES[name].priority for name in names[:3]] == [10, 9, 7]


def test_equal_priorities_keep_rule_table_order() -> None:
    """Glue reduction precedes dynamic boost; sentence variation precedes sensory."""
    metrics = MetricsReport(
        glue_words=45.0,
        dialogue_balance=40.0,
        dynamic_content=60.0,
        overall_score=70.0,
    )

    names = [strategy.name for strategy in determine_strategies(metrics)]

    assert names == [
        "glue_word_reduction",
        "dynamic_content_boost",
        "sentence_variation",
        "sensory_detail",
    ]


def test_saturated_metrics_need_no_strategies() -> None:
    """A draft that meets every target with a high score gets an empty plan."""
    metrics = evaluate(SATURATED_TEXT)

    assert metrics.dynamic_content >= 75
    assert metrics.telling <= 8
    assert determine_strategies(metrics) == []


def test_sensory_detail_triggers_independently() -> None:
    """Dynamic content between 70 and 75 only asks for sensory detail."""
    metrics = MetricsReport(dialogue_balance=40.0, dynamic_content=72.0, overall_score=92.0)

    assert [s.name for s in determine_strategies(metrics)] == ["sensory_detail"]


def test_weak_draft_plan_covers_every_failing_metric() -> None:
    """The feelings-heavy draft needs every non-pattern strategy."""
    names = [s.name for s in determine_strategies(evaluate(WEAK_TEXT))]

    assert names == [
        "telling_conversion",
        "dialogue_fix",
        "glue_word_reduction",
        "dynamic_content_boost",
        "passive_voice_fix",
        "sentence_variation",
        "sensory_detail",
    ]


def test_strategy_for_metric_returns_first_catalog_match() -> None:
    """Metric lookups resolve to the first strategy targeting that metric."""
    assert strategy_for_metric(Metric.TELLING).name == "telling_conversion"
    assert strategy_for_metric("dynamic_content").name == "dynamic_content_boost"
    assert strategy_for_metric("word_repetition").name == "sentence_variation"


@pytest.mark.parametrize("metric", ["bogus", "reflective_content"])
def test_strategy_for_metric_rejects_untargeted_metrics(metric: str) -> None:
    """Unknown metrics and metrics no strategy targets raise ``KeyError``."""
    with pytest.raises(KeyError):
        strategy_for_metric(metric)


def test_strategy_payload_names_target_metrics() -> None:
    """Strategy payloads serialize metric names as plain strings."""
    payload = STRATEGIES["sensory_detail"].to_payload()

    assert payload["target_metrics"] == ["dynamic_content", "telling"]
    assert payload["weakness"] == "sensory_details"
