"""Tests for deterministic draft evaluation and the composite score."""

from __future__ import annotations

import pytest

from draft_guard.analysis import TARGETS, AnalysisDocument, Metric
from draft_guard.evaluator import (
    CoherenceIssue,
    band_for_score,
    coherence_penalty,
    composite_score,
    content_split,
    evaluate,
)
from draft_guard.patterns import Severity
from drafts import CALM_TEXT, PATTERNED_TEXT, SATURATED_TEXT, WEAK_TEXT


def test_composite_score_matches_worked_example() -> None:
    """80*0.15 + 95*0.25 + 80*0.25 + 15 + 20 = 90.75 rounds half-up to 90.8."""
    score = composite_score(
        glue_words=20.0,
        telling=5.0,
        dynamic_content=80.0,
        dialogue_balance=40.0,
        ai_pattern_count=0,
        coherence_penalty=0,
    )

    assert score == 90.8


def test_composite_score_drops_bonuses_outside_targets() -> None:
    """Dialogue outside 30-50% and any detected phrase forfeit their bonuses."""
    score = composite_score(
        glue_words=20.0,
        telling=5.0,
        dynamic_content=80.0,
        dialogue_balance=55.0,
        ai_pattern_count=1,
        coherence_penalty=0,
    )

    assert score == 55.8


@pytest.mark.parametrize("text", ["", "   \n\t", "?!..."])
def test_empty_input_yields_zero_report(text: str) -> None:
    """Text without word tokens must score 0 with every ratio at 0."""
    report = evaluate(text)

    assert report.overall_score == 0.0
    for metric in Metric:
        assert report.value(metric) == 0.0
    assert report.patterns == ()
    assert report.coherence_issues == ()
    assert report.band == "needs_work"


@pytest.mark.parametrize(
    "text",
    [
        SATURATED_TEXT,
        PATTERNED_TEXT,
        WEAK_TEXT,
        CALM_TEXT,
        "word " * 500,
        "a. " * 100,
        "Moreover, furthermore, thus, hence. It is important to note.",
    ],
)
def test_overall_score_stays_within_bounds(text: str) -> None:
    """The composite score is clamped into [0, 100] for any input."""
    assert 0.0 <= evaluate(text).overall_score <= 100.0


def test_evaluate_is_deterministic() -> None:
    """Two evaluations of the same text produce identical reports."""
    assert evaluate(PATTERNED_TEXT) == evaluate(PATTERNED_TEXT)


def test_saturated_draft_meets_every_target() -> None:
    """The reference action scene should clear every threshold."""
    report = evaluate(SATURATED_TEXT)

    assert report.word_count == 41
    assert report.sentence_count == 6
    assert report.glue_words == pytest.approx(10 / 41 * 100)
    assert report.dialogue_balance == pytest.approx(14 / 41 * 100)
    assert report.passive_voice == 0.0
    assert report.telling == 0.0
    assert report.dynamic_content == 100.0
    assert report.reflective_content == 0.0
    assert report.ai_pattern_count == 0
    assert report.coherence_issues == ()
    assert report.overall_score == 96.3
    assert report.band == "excellent"
    assert report.suggestions == ("Excellent! Meets publication standards.",)


def test_weak_draft_reports_telling_and_passive_per_sentence() -> None:
    """Indicator hits are summed and divided by the sentence count."""
    report = evaluate(WEAK_TEXT)

    assert report.sentence_count == 1
    assert report.telling == 400.0
    assert report.passive_voice == 200.0
    assert report.glue_words == pytest.approx(55.0)
    assert report.dynamic_content == 0.0
    assert report.reflective_content == 100.0
    assert report.overall_score == 0.0
    assert "Show more, tell less (currently 400.0% telling, target: <10%)" in (
        report.suggestions
    )
    assert report.suggestions[-1] == "Significant improvements required to meet 90%+ standard."


def test_detects_patterns_in_table_order_with_examples() -> None:
    """Each phrase is reported once with its hit count and example sentences."""
    report = evaluate(
        "The robust plan failed. It is important to note that the robust team left."
    )

    assert report.ai_pattern_count == 2
    first, second = report.patterns
    assert first.pattern == "robust"
    assert first.count == 2
    assert first.severity == Severity.HIGH
    assert first.examples == (
        "The robust plan failed",
        "It is important to note that the robust team left",
    )
    assert second.pattern == "it is important to note"
    assert second.count == 1


def test_pattern_matching_is_case_insensitive_on_word_boundaries() -> None:
    """Upper-case phrases match; longer words containing a phrase do not."""
    assert [p.pattern for p in evaluate("MOREOVER, she ran.").patterns] == ["moreover"]
    assert evaluate("The robustness test failed twice.").ai_pattern_count == 0


def test_fragment_runs_raise_a_high_coherence_issue() -> None:
    """More than 30% of sentences under five words is flagged as fragmented."""
    report = evaluate("Run. Hide. Now. Go. Fast.")

    assert [issue.kind for issue in report.coherence_issues] == ["fragment"]
    assert report.coherence_penalty == 20


def test_repeated_openings_raise_a_medium_coherence_issue() -> None:
    """The same three-word opening used more than three times is flagged."""
    report = evaluate(
        "He ran to the car. He ran to the door. He ran to the gate. He ran to the road."
    )

    assert [issue.kind for issue in report.coherence_issues] == ["repetitive"]
    assert report.coherence_issues[0].severity == Severity.MEDIUM
    assert report.coherence_penalty == 10


def test_coherence_penalty_is_capped() -> None:
    """Summed severities never exceed the cap."""
    issues = tuple(
        CoherenceIssue(kind="fragment", severity=Severity.HIGH, description="x")
        for _ in range(3)
    )

    assert coherence_penalty(issues) == 40


def test_dialogue_counts_curly_quotes() -> None:
    """Typographic quotes delimit dialogue the same as straight quotes."""
    report = evaluate("“Run,” she said.")

    assert report.dialogue_balance == pytest.approx(100 / 3)


def test_action_marker_makes_long_sentence_dynamic() -> None:
    """A long sentence still counts as dynamic when it carries an action verb."""
    document = AnalysisDocument.from_text(
        "He grabbed the heavy iron bar from the cluttered workbench and turned "
        "toward the narrow doorway."
    )

    assert document.sentence_word_counts == (16,)
    assert content_split(document) == (100.0, 0.0)


def test_glue_ratio_at_threshold_is_not_passing() -> None:
    """Upper bounds are strict: exactly 40% glue words still fails."""
    assert not TARGETS.meets(Metric.GLUE_WORDS, 40.0)
    assert TARGETS.meets(Metric.GLUE_WORDS, 39.9)
    assert TARGETS.meets(Metric.DIALOGUE_BALANCE, 30.0)
    assert TARGETS.meets(Metric.DIALOGUE_BALANCE, 50.0)


@pytest.mark.parametrize(
    ("score", "band"),
    [(100.0, "excellent"), (90.0, "excellent"), (89.9, "good"), (80.0, "good"), (79.9, "needs_work")],
)
def test_band_for_score(score: float, band: str) -> None:
    """Scores map onto excellent, good, and needs-work bands."""
    assert band_for_score(score) == band


def test_report_payload_is_json_ready() -> None:
    """The payload exposes every metric plus pattern and coherence detail."""
    payload = evaluate(PATTERNED_TEXT).to_payload()

    assert payload["ai_pattern_count"] == 1
    assert payload["patterns"][0]["pattern"] == "crucial"
    assert set(payload["breakdown"]) == {
        "glue_words_score",
        "telling_score",
        "dynamic_content_score",
        "dialogue_bonus",
        "ai_pattern_bonus",
        "coherence_penalty",
    }
