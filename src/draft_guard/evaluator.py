"""Deterministic writing-quality evaluation for unstructured prose."""


import re
from collections import Counter
from dataclasses import dataclass, field, replace

from .analysis import (
    SCORE_WEIGHTS,
    TARGETS,
    AnalysisDocument,
    Metric,
    ScoreWeights,
    Targets,
    clamp_float,
    percentage,
    round_half_up,
)
from .patterns import DEFAULT_PATTERNS, PatternMatch, PatternTable, Severity

GLUE_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
        "be", "have", "has", "had", "do", "does", "did", "will", "would",
        "should", "could", "may", "might", "must", "can", "that", "which",
        "who", "whom", "this", "these", "those", "it", "its", "it's",
        "very", "really", "quite", "rather", "somewhat", "just", "even",
        "still", "also", "too", "so", "then", "now", "here", "there",
    }
)

PASSIVE_INDICATORS: tuple[str, ...] = (
    "was", "were", "been", "being", "is", "are", "am",
    "was able", "were able", "has been", "have been", "had been",
    "will be", "would be", "could be", "should be", "might be",
)

TELLING_INDICATORS: tuple[str, ...] = (
    "felt", "thought", "knew", "realized", "understood", "believed",
    "wondered", "imagined", "remembered", "forgot", "decided",
    "seemed", "appeared", "looked like", "sounded like",
    "was angry", "was sad", "was happy", "was afraid", "was nervous",
    "was excited", "was worried", "was confused", "was surprised",
    "he felt", "she felt", "they felt", "i felt",
    "he thought", "she thought", "they thought", "i thought",
)

ACTION_MARKERS: tuple[str, ...] = (
    "grabbed", "ran", "jumped", "fired", "struck", "crashed", "exploded",
    "charged", "lunged", "dove", "slammed", "burst", "raced", "fought",
    "attacked",
)

INTROSPECTIVE_MARKERS: tuple[str, ...] = (
    "pondered", "considered", "reflected", "contemplated", "mused",
    "wondered", "thought", "realized", "understood", "remembered",
)


def _word_boundary_re(phrases: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(rf"\b{re.escape(p)}\b") for p in phrases)


_PASSIVE_RES = _word_boundary_re(PASSIVE_INDICATORS)
_TELLING_RES = _word_boundary_re(TELLING_INDICATORS)
_ACTION_RE = re.compile(r"\b(?:" + "|".join(ACTION_MARKERS) + r")\b")
_INTROSPECTIVE_RE = re.compile(r"\b(?:" + "|".join(INTROSPECTIVE_MARKERS) + r")\b")
_DIALOGUE_RE = re.compile(r"\"[^\"]+\"|“[^”]+”")

SHORT_SENTENCE_WORDS = 15
LONG_SENTENCE_WORDS = 20
FRAGMENT_WORDS = 5
FRAGMENT_SHARE = 0.3
OPENING_WORDS = 3
OPENING_REPEAT_LIMIT = 3
DIVERSITY_RATIO = 0.8
DIVERSITY_MIN_TOKENS = 50
REPETITION_MIN_LENGTH = 4
REPETITION_FREE_OCCURRENCES = 2


@dataclass(frozen=True)
class CoherenceIssue:
    """A structural problem that suggests broken or rambling text."""

    kind: str
    severity: Severity
    description: str

    def to_payload(self) -> dict[str, object]:
        """Serialize an issue for tool output."""
        return {
            "type": self.kind,
            "severity": str(self.severity),
            "description": self.description,
        }


@dataclass(frozen=True)
class ScoreBreakdown:
    """Additive components of the composite score."""

    glue_words_score: float = 0.0
    telling_score: float = 0.0
    dynamic_content_score: float = 0.0
    dialogue_bonus: float = 0.0
    ai_pattern_bonus: float = 0.0
    coherence_penalty: float = 0.0

    def to_payload(self) -> dict[str, float]:
        """Serialize the breakdown for tool output."""
        return {
            "glue_words_score": self.glue_words_score,
            "telling_score": self.telling_score,
            "dynamic_content_score": self.dynamic_content_score,
            "dialogue_bonus": self.dialogue_bonus,
            "ai_pattern_bonus": self.ai_pattern_bonus,
            "coherence_penalty": self.coherence_penalty,
        }


@dataclass(frozen=True)
class MetricsReport:
    """Full evaluation of a single text."""

    glue_words: float = 0.0
    passive_voice: float = 0.0
    dialogue_balance: float = 0.0
    telling: float = 0.0
    word_repetition: float = 0.0
    dynamic_content: float = 0.0
    reflective_content: float = 0.0
    patterns: tuple[PatternMatch, ...] = ()
    coherence_issues: tuple[CoherenceIssue, ...] = ()
    coherence_penalty: int = 0
    overall_score: float = 0.0
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)
    band: str = "needs_work"
    suggestions: tuple[str, ...] = ()
    word_count: int = 0
    sentence_count: int = 0

    @property
    def ai_pattern_count(self) -> int:
        """Number of distinct configured phrases detected."""
        return len(self.patterns)

    def value(self, metric: Metric) -> float:
        """Return the numeric value of one named metric."""
        return float(getattr(self, str(metric)))

    def to_payload(self) -> dict[str, object]:
        """Serialize the report for tool output."""
        return {
            "overall_score": self.overall_score,
            "band": self.band,
            "word_count": self.word_count,
            "sentence_count": self.sentence_count,
            "glue_words": round(self.glue_words, 2),
            "passive_voice": round(self.passive_voice, 2),
            "dialogue_balance": round(self.dialogue_balance, 2),
            "telling": round(self.telling, 2),
            "word_repetition": round(self.word_repetition, 2),
            "dynamic_content": round(self.dynamic_content, 2),
            "reflective_content": round(self.reflective_content, 2),
            "ai_pattern_count": self.ai_pattern_count,
            "patterns": [pattern.to_payload() for pattern in self.patterns],
            "coherence_issues": [issue.to_payload() for issue in self.coherence_issues],
            "coherence_penalty": self.coherence_penalty,
            "breakdown": self.breakdown.to_payload(),
            "suggestions": list(self.suggestions),
        }


def evaluate(
    text: str,
    patterns: PatternTable | None = None,
    *,
    targets: Targets = TARGETS,
    weights: ScoreWeights = SCORE_WEIGHTS,
) -> MetricsReport:
    """Score ``text`` and return a full metrics report.

    Never raises for string input. Text without word tokens yields an
    all-zero report with a score of 0.
    """
    document = AnalysisDocument.from_text(text)
    if document.is_empty:
        report = MetricsReport(sentence_count=len(document.sentences))
        return _with_suggestions(report, targets)

    table = DEFAULT_PATTERNS if patterns is None else patterns
    dynamic, reflective = content_split(document)
    detected = table.detect(document)
    issues = coherence_issues(document)
    penalty = coherence_penalty(issues, weights)
    glue = glue_word_ratio(document)
    telling = telling_ratio(document)
    dialogue = dialogue_ratio(document)

    breakdown, raw_score = score_breakdown(
        glue_words=glue,
        telling=telling,
        dynamic_content=dynamic,
        dialogue_balance=dialogue,
        ai_pattern_count=len(detected),
        coherence_penalty=penalty,
        targets=targets,
        weights=weights,
    )
    overall = round_half_up(clamp_float(raw_score, weights.score_min, weights.score_max))

    report = MetricsReport(
        glue_words=glue,
        passive_voice=passive_voice_ratio(document),
        dialogue_balance=dialogue,
        telling=telling,
        word_repetition=word_repetition_ratio(document),
        dynamic_content=dynamic,
        reflective_content=reflective,
        patterns=detected,
        coherence_issues=issues,
        coherence_penalty=penalty,
        overall_score=overall,
        breakdown=breakdown,
        band=band_for_score(overall, targets),
        word_count=document.word_count,
        sentence_count=len(document.sentences),
    )
    return _with_suggestions(report, targets)


def glue_word_ratio(document: AnalysisDocument) -> float:
    """Share of tokens drawn from the glue-word set."""
    glue = sum(1 for token in document.tokens if token in GLUE_WORDS)
    return percentage(glue, len(document.tokens))


def passive_voice_ratio(document: AnalysisDocument) -> float:
    """Passive-auxiliary matches per sentence, as a percentage."""
    hits = sum(len(pattern.findall(document.lower_text)) for pattern in _PASSIVE_RES)
    return percentage(hits, len(document.sentences))


def dialogue_ratio(document: AnalysisDocument) -> float:
    """Share of words that sit inside double-quoted spans."""
    spans = _DIALOGUE_RE.findall(document.text)
    dialogue_words = len(" ".join(spans).split())
    return percentage(dialogue_words, document.word_count)


def telling_ratio(document: AnalysisDocument) -> float:
    """Interior-state naming matches per sentence, as a percentage."""
    hits = sum(len(pattern.findall(document.lower_text)) for pattern in _TELLING_RES)
    return percentage(hits, len(document.sentences))


def word_repetition_ratio(document: AnalysisDocument) -> float:
    """Excess occurrences of content words used more than twice."""
    counts = Counter(
        token
        for token in document.tokens
        if len(token) > REPETITION_MIN_LENGTH and token not in GLUE_WORDS
    )
    excess = sum(
        count - REPETITION_FREE_OCCURRENCES
        for count in counts.values()
        if count > REPETITION_FREE_OCCURRENCES
    )
    return percentage(excess, len(document.tokens))


def content_split(document: AnalysisDocument) -> tuple[float, float]:
    """Return ``(dynamic, reflective)`` sentence percentages.

    A sentence may count toward both sides or neither.
    """
    dynamic = 0
    reflective = 0
    for sentence, length in zip(document.sentences, document.sentence_word_counts):
        lowered = sentence.lower()
        if length < SHORT_SENTENCE_WORDS or _ACTION_RE.search(lowered):
            dynamic += 1
        if length > LONG_SENTENCE_WORDS or _INTROSPECTIVE_RE.search(lowered):
            reflective += 1
    total = len(document.sentences)
    return percentage(dynamic, total), percentage(reflective, total)


def coherence_issues(document: AnalysisDocument) -> tuple[CoherenceIssue, ...]:
    """Flag fragment runs, repeated openings, and anomalous word diversity."""
    issues: list[CoherenceIssue] = []
    total = len(document.sentences)

    fragments = sum(1 for n in document.sentence_word_counts if n < FRAGMENT_WORDS)
    if fragments > total * FRAGMENT_SHARE:
        issues.append(
            CoherenceIssue(
                kind="fragment",
                severity=Severity.HIGH,
                description=f"Too many sentence fragments detected ({fragments}/{total})",
            )
        )

    openings = Counter(
        " ".join(sentence.split()[:OPENING_WORDS]).lower()
        for sentence in document.sentences
    )
    for opening, count in openings.items():
        if count > OPENING_REPEAT_LIMIT:
            issues.append(
                CoherenceIssue(
                    kind="repetitive",
                    severity=Severity.MEDIUM,
                    description=f'Repetitive sentence structure: "{opening}..." ({count} times)',
                )
            )

    tokens = document.tokens
    if len(tokens) > DIVERSITY_MIN_TOKENS and len(set(tokens)) / len(tokens) > DIVERSITY_RATIO:
        issues.append(
            CoherenceIssue(
                kind="nonsensical",
                severity=Severity.HIGH,
                description="Text appears to contain random or nonsensical word combinations",
            )
        )
    return tuple(issues)


def coherence_penalty(
    issues: tuple[CoherenceIssue, ...], weights: ScoreWeights = SCORE_WEIGHTS
) -> int:
    """Sum issue severities and cap the total."""
    points = {
        Severity.HIGH: weights.coherence_high,
        Severity.MEDIUM: weights.coherence_medium,
        Severity.LOW: weights.coherence_low,
    }
    return min(sum(points[issue.severity] for issue in issues), weights.coherence_cap)


def score_breakdown(
    *,
    glue_words: float,
    telling: float,
    dynamic_content: float,
    dialogue_balance: float,
    ai_pattern_count: int,
    coherence_penalty: int,
    targets: Targets = TARGETS,
    weights: ScoreWeights = SCORE_WEIGHTS,
) -> tuple[ScoreBreakdown, float]:
    """Return the rounded breakdown and the unclamped, unrounded score.

    score = (100 - glue) * 0.15 + (100 - telling) * 0.25 + dynamic * 0.25
            + dialogue bonus + pattern bonus - coherence penalty
    """
    glue_score = (100.0 - glue_words) * weights.glue_words_weight
    telling_score = (100.0 - telling) * weights.telling_weight
    dynamic_score = dynamic_content * weights.dynamic_content_weight
    dialogue_bonus = (
        weights.dialogue_bonus
        if targets.meets(Metric.DIALOGUE_BALANCE, dialogue_balance)
        else 0.0
    )
    pattern_bonus = (
        weights.pattern_bonus
        if targets.meets(Metric.AI_PATTERN_COUNT, ai_pattern_count)
        else 0.0
    )
    raw = (
        glue_score
        + telling_score
        + dynamic_score
        + dialogue_bonus
        + pattern_bonus
        - coherence_penalty
    )
    breakdown = ScoreBreakdown(
        glue_words_score=round_half_up(glue_score),
        telling_score=round_half_up(telling_score),
        dynamic_content_score=round_half_up(dynamic_score),
        dialogue_bonus=dialogue_bonus,
        ai_pattern_bonus=pattern_bonus,
        coherence_penalty=float(coherence_penalty),
    )
    return breakdown, raw


def composite_score(
    *,
    glue_words: float,
    telling: float,
    dynamic_content: float,
    dialogue_balance: float,
    ai_pattern_count: int,
    coherence_penalty: int,
    targets: Targets = TARGETS,
    weights: ScoreWeights = SCORE_WEIGHTS,
) -> float:
    """Compute the clamped composite score rounded to one decimal."""
    _, raw = score_breakdown(
        glue_words=glue_words,
        telling=telling,
        dynamic_content=dynamic_content,
        dialogue_balance=dialogue_balance,
        ai_pattern_count=ai_pattern_count,
        coherence_penalty=coherence_penalty,
        targets=targets,
        weights=weights,
    )
    return round_half_up(clamp_float(raw, weights.score_min, weights.score_max))


def band_for_score(score: float, targets: Targets = TARGETS) -> str:
    """Map a numeric score into its quality band."""
    if score >= targets.overall_score_min:
        return "excellent"
    if score >= targets.minor_band_min:
        return "good"
    return "needs_work"


def generate_suggestions(
    metrics: MetricsReport, targets: Targets = TARGETS
) -> list[str]:
    """Return one line per failing metric plus a summary line for the band."""
    suggestions: list[str] = []

    if not targets.meets(Metric.GLUE_WORDS, metrics.glue_words):
        suggestions.append(
            f"Reduce glue words (currently {metrics.glue_words:.1f}%, "
            f"target: <{targets.glue_words_max:g}%)"
        )
    if not targets.meets(Metric.PASSIVE_VOICE, metrics.passive_voice):
        suggestions.append(
            f"Reduce passive voice (currently {metrics.passive_voice:.1f}%, "
            f"target: <{targets.passive_voice_max:g}%)"
        )
    if not targets.meets(Metric.DIALOGUE_BALANCE, metrics.dialogue_balance):
        suggestions.append(
            f"Adjust dialogue balance (currently {metrics.dialogue_balance:.1f}%, "
            f"optimal: {targets.dialogue_min:g}-{targets.dialogue_max:g}%)"
        )
    if not targets.meets(Metric.TELLING, metrics.telling):
        suggestions.append(
            f"Show more, tell less (currently {metrics.telling:.1f}% telling, "
            f"target: <{targets.telling_max:g}%)"
        )
    if not targets.meets(Metric.DYNAMIC_CONTENT, metrics.dynamic_content):
        suggestions.append(
            f"Increase dynamic content (currently {metrics.dynamic_content:.1f}%, "
            f"target: >{targets.dynamic_content_min:g}%)"
        )
    if not targets.meets(Metric.AI_PATTERN_COUNT, metrics.ai_pattern_count):
        suggestions.append(
            f"Remove {metrics.ai_pattern_count} AI-detectable pattern(s)"
        )
    if metrics.coherence_issues:
        suggestions.append(
            f"Address {len(metrics.coherence_issues)} coherence issue(s)"
        )

    if metrics.overall_score >= targets.overall_score_min:
        suggestions.append("Excellent! Meets publication standards.")
    elif metrics.overall_score >= targets.minor_band_min:
        suggestions.append("Good progress! Minor improvements needed.")
    else:
        suggestions.append(
            f"Significant improvements required to meet "
            f"{targets.overall_score_min:g}%+ standard."
        )
    return suggestions


def _with_suggestions(report: MetricsReport, targets: Targets) -> MetricsReport:
    """Attach suggestions computed from the report's own values."""
    return replace(report, suggestions=tuple(generate_suggestions(report, targets)))
