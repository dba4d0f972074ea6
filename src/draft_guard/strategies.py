"""Static strategy catalog and the rule table that selects from it."""


from collections.abc import Callable
from dataclasses import dataclass
from types import MappingProxyType
from typing import TypeAlias

from .analysis import TARGETS, Metric, Targets
from .evaluator import MetricsReport


@dataclass(frozen=True)
class Strategy:
    """A named, prioritized remediation intent carried out by the rewriter."""

    name: str
    title: str
    description: str
    target_metrics: tuple[Metric, ...]
    priority: int
    weakness: str

    def to_payload(self) -> dict[str, object]:
        """Serialize a strategy for tool output."""
        return {
            "name": self.name,
            "title": self.title,
            "description": self.description,
            "target_metrics": [str(metric) for metric in self.target_metrics],
            "priority": self.priority,
            "weakness": self.weakness,
        }


PATTERN_ELIMINATION = Strategy(
    name="pattern_elimination",
    title="AI Pattern Eliminator",
    description="Removes all AI-detectable language patterns",
    target_metrics=(Metric.AI_PATTERN_COUNT,),
    priority=10,
    weakness="ai_patterns",
)
TELLING_CONVERSION = Strategy(
    name="telling_conversion",
    title="Show vs Tell Converter",
    description="Converts telling to showing through action and behavior",
    target_metrics=(Metric.TELLING,),
    priority=9,
    weakness="show_vs_tell",
)
DIALOGUE_FIX = Strategy(
    name="dialogue_fix",
    title="Dialogue Fixer",
    description="Adds natural dialogue and conversational flow",
    target_metrics=(Metric.DIALOGUE_BALANCE,),
    priority=8,
    weakness="dialogue_balance",
)
GLUE_WORD_REDUCTION = Strategy(
    name="glue_word_reduction",
    title="Glue Word Reducer",
    description="Eliminates weak filler words and strengthens prose",
    target_metrics=(Metric.GLUE_WORDS,),
    priority=7,
    weakness="glue_words",
)
DYNAMIC_CONTENT_BOOST = Strategy(
    name="dynamic_content_boost",
    title="Dynamic Content Booster",
    description="Increases action, conflict, and tension",
    target_metrics=(Metric.DYNAMIC_CONTENT,),
    priority=7,
    weakness="dynamic_content",
)
PASSIVE_VOICE_FIX = Strategy(
    name="passive_voice_fix",
    title="Passive Voice Eliminator",
    description="Converts passive constructions to active voice",
    target_metrics=(Metric.PASSIVE_VOICE,),
    priority=6,
    weakness="passive_voice",
)
SENTENCE_VARIATION = Strategy(
    name="sentence_variation",
    title="Sentence Variation Enhancer",
    description="Improves sentence rhythm and structural diversity",
    target_metrics=(Metric.WORD_REPETITION, Metric.OVERALL_SCORE),
    priority=5,
    weakness="sentence_variation",
)
SENSORY_DETAIL = Strategy(
    name="sensory_detail",
    title="Sensory Detail Enhancer",
    description="Adds concrete sensory details and specific nouns",
    target_metrics=(Metric.DYNAMIC_CONTENT, Metric.TELLING),
    priority=5,
    weakness="sensory_details",
)

STRATEGIES: MappingProxyType[str, Strategy] = MappingProxyType(
    {
        strategy.name: strategy
        for strategy in (
            PATTERN_ELIMINATION,
            TELLING_CONVERSION,
            DIALOGUE_FIX,
            GLUE_WORD_REDUCTION,
            DYNAMIC_CONTENT_BOOST,
            PASSIVE_VOICE_FIX,
            SENTENCE_VARIATION,
            SENSORY_DETAIL,
        )
    }
)

SENSORY_DYNAMIC_FLOOR = 75.0
SENSORY_TELLING_CEILING = 8.0

Trigger: TypeAlias = Callable[[MetricsReport, Targets], bool]


def _deficient(metric: Metric) -> Trigger:
    def trigger(metrics: MetricsReport, targets: Targets) -> bool:
        return not targets.meets(metric, metrics.value(metric))

    return trigger


def _below_target_score(metrics: MetricsReport, targets: Targets) -> bool:
    return metrics.overall_score < targets.overall_score_min


def _needs_sensory_detail(metrics: MetricsReport, targets: Targets) -> bool:
    return (
        metrics.dynamic_content < SENSORY_DYNAMIC_FLOOR
        or metrics.telling > SENSORY_TELLING_CEILING
    )


# Declaration order breaks priority ties.
STRATEGY_RULES: tuple[tuple[Trigger, Strategy], ...] = (
    (_deficient(Metric.AI_PATTERN_COUNT), PATTERN_ELIMINATION),
    (_deficient(Metric.TELLING), TELLING_CONVERSION),
    (_deficient(Metric.DIALOGUE_BALANCE), DIALOGUE_FIX),
    (_deficient(Metric.GLUE_WORDS), GLUE_WORD_REDUCTION),
    (_deficient(Metric.DYNAMIC_CONTENT), DYNAMIC_CONTENT_BOOST),
    (_deficient(Metric.PASSIVE_VOICE), PASSIVE_VOICE_FIX),
    (_below_target_score, SENTENCE_VARIATION),
    (_needs_sensory_detail, SENSORY_DETAIL),
)


def determine_strategies(
    metrics: MetricsReport, targets: Targets = TARGETS
) -> list[Strategy]:
    """Return the strategies a report calls for, most urgent first."""
    needed = [strategy for trigger, strategy in STRATEGY_RULES if trigger(metrics, targets)]
    return sorted(needed, key=lambda strategy: -strategy.priority)


def strategy_for_metric(metric: Metric | str) -> Strategy:
    """Return the first catalog strategy that targets ``metric``."""
    try:
        wanted = Metric(metric)
    except ValueError as exc:
        raise KeyError(f"Unknown metric: {metric}") from exc
    for strategy in STRATEGIES.values():
        if wanted in strategy.target_metrics:
            return strategy
    raise KeyError(f"No strategy found for metric: {wanted}")
