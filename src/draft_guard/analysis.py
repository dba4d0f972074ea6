"""Core metric vocabulary, scoring constants, and text projections."""


import math
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeAlias

MetricValues: TypeAlias = dict[str, float]


class Metric(StrEnum):
    """Named dimensions reported by the evaluator."""

    OVERALL_SCORE = "overall_score"
    GLUE_WORDS = "glue_words"
    PASSIVE_VOICE = "passive_voice"
    DIALOGUE_BALANCE = "dialogue_balance"
    TELLING = "telling"
    WORD_REPETITION = "word_repetition"
    DYNAMIC_CONTENT = "dynamic_content"
    REFLECTIVE_CONTENT = "reflective_content"
    AI_PATTERN_COUNT = "ai_pattern_count"


class Direction(StrEnum):
    """Which way a metric moves when the prose gets better."""

    MINIMIZE = "minimize"
    MAXIMIZE = "maximize"
    TARGET = "target"


METRIC_DIRECTIONS: dict[Metric, Direction] = {
    Metric.OVERALL_SCORE: Direction.MAXIMIZE,
    Metric.GLUE_WORDS: Direction.MINIMIZE,
    Metric.PASSIVE_VOICE: Direction.MINIMIZE,
    Metric.DIALOGUE_BALANCE: Direction.TARGET,
    Metric.TELLING: Direction.MINIMIZE,
    Metric.WORD_REPETITION: Direction.MINIMIZE,
    Metric.DYNAMIC_CONTENT: Direction.MAXIMIZE,
    Metric.REFLECTIVE_CONTENT: Direction.MAXIMIZE,
    Metric.AI_PATTERN_COUNT: Direction.MINIMIZE,
}


@dataclass(frozen=True)
class Targets:
    """Thresholds a draft must satisfy on each dimension."""

    glue_words_max: float = 40.0
    passive_voice_max: float = 5.0
    dialogue_min: float = 30.0
    dialogue_max: float = 50.0
    dialogue_optimum: float = 40.0
    telling_max: float = 10.0
    word_repetition_max: float = 2.0
    dynamic_content_min: float = 70.0
    ai_pattern_count_max: int = 0
    overall_score_min: float = 90.0
    minor_band_min: float = 80.0

    def meets(self, metric: Metric, value: float) -> bool:
        """Return whether ``value`` satisfies the threshold for ``metric``."""
        if metric == Metric.OVERALL_SCORE:
            return value >= self.overall_score_min
        if metric == Metric.GLUE_WORDS:
            return value < self.glue_words_max
        if metric == Metric.PASSIVE_VOICE:
            return value < self.passive_voice_max
        if metric == Metric.DIALOGUE_BALANCE:
            return self.dialogue_min <= value <= self.dialogue_max
        if metric == Metric.TELLING:
            return value < self.telling_max
        if metric == Metric.WORD_REPETITION:
            return value < self.word_repetition_max
        if metric == Metric.DYNAMIC_CONTENT:
            return value > self.dynamic_content_min
        if metric == Metric.AI_PATTERN_COUNT:
            return value <= self.ai_pattern_count_max
        raise KeyError(f"No target defined for metric '{metric}'")

    def threshold(self, metric: Metric) -> float:
        """Return the single reference value recorded on a metric lock."""
        return {
            Metric.OVERALL_SCORE: self.overall_score_min,
            Metric.GLUE_WORDS: self.glue_words_max,
            Metric.PASSIVE_VOICE: self.passive_voice_max,
            Metric.DIALOGUE_BALANCE: self.dialogue_optimum,
            Metric.TELLING: self.telling_max,
            Metric.WORD_REPETITION: self.word_repetition_max,
            Metric.DYNAMIC_CONTENT: self.dynamic_content_min,
            Metric.AI_PATTERN_COUNT: float(self.ai_pattern_count_max),
        }[metric]


@dataclass(frozen=True)
class ScoreWeights:
    """Weights and bonuses of the composite score formula."""

    glue_words_weight: float = 0.15
    telling_weight: float = 0.25
    dynamic_content_weight: float = 0.25
    dialogue_bonus: float = 15.0
    pattern_bonus: float = 20.0
    coherence_high: int = 20
    coherence_medium: int = 10
    coherence_low: int = 5
    coherence_cap: int = 40
    score_min: float = 0.0
    score_max: float = 100.0


TARGETS = Targets()
SCORE_WEIGHTS = ScoreWeights()

_NON_WORD_RE = re.compile(r"[^\w\s'-]")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


@dataclass(frozen=True)
class AnalysisDocument:
    """Precomputed text views consumed by the metric functions."""

    text: str
    lower_text: str
    tokens: tuple[str, ...]
    sentences: tuple[str, ...]
    sentence_word_counts: tuple[int, ...]
    word_count: int

    @classmethod
    def from_text(cls, text: str) -> "AnalysisDocument":
        """Build a document with token/sentence projections."""
        sentences = split_sentences(text)
        return cls(
            text=text,
            lower_text=text.lower(),
            tokens=tokenize(text),
            sentences=sentences,
            sentence_word_counts=tuple(len(s.split()) for s in sentences),
            word_count=word_count(text),
        )

    @property
    def is_empty(self) -> bool:
        """Whether the text carries no word tokens at all."""
        return not self.tokens


def tokenize(text: str) -> tuple[str, ...]:
    """Lower-case and split on non-word boundaries, keeping ``'`` and ``-``."""
    return tuple(_NON_WORD_RE.sub(" ", text.lower()).split())


def split_sentences(text: str) -> tuple[str, ...]:
    """Split on runs of terminal punctuation and drop empty pieces."""
    return tuple(s.strip() for s in _SENTENCE_SPLIT_RE.split(text) if s.strip())


def word_count(text: str) -> int:
    """Return the whitespace-delimited word count for a text blob."""
    return len(text.split())


def percentage(part: float, whole: float) -> float:
    """Return ``part / whole * 100`` or zero when ``whole`` is empty."""
    if whole <= 0:
        return 0.0
    return part / whole * 100.0


def round_half_up(value: float, digits: int = 1) -> float:
    """Round with ties away from zero for non-negative inputs."""
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def clamp_float(value: float, lower: float, upper: float) -> float:
    """Clamp a float into ``[lower, upper]``."""
    if lower > upper:
        raise ValueError("lower must be <= upper")
    return max(lower, min(upper, value))


def improvement_delta(
    metric: Metric,
    before: float,
    after: float,
    targets: Targets = TARGETS,
) -> float:
    """Signed change where positive always means the metric got better."""
    direction = METRIC_DIRECTIONS[metric]
    if direction == Direction.MAXIMIZE:
        delta = after - before
    elif direction == Direction.MINIMIZE:
        delta = before - after
    else:
        delta = abs(before - targets.dialogue_optimum) - abs(
            after - targets.dialogue_optimum
        )
    return round(delta, 4)


def is_better(
    metric: Metric,
    candidate: float,
    reference: float,
    targets: Targets = TARGETS,
) -> bool:
    """Return whether ``candidate`` strictly improves on ``reference``."""
    return improvement_delta(metric, reference, candidate, targets) > 0
