"""Strategy application against the rewriter with a score-delta acceptance gate."""


import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from .analysis import TARGETS, Metric, Targets, improvement_delta
from .evaluator import MetricsReport, evaluate
from .patterns import PatternTable
from .rewriter import RewriteRequest, Rewriter
from .strategies import Strategy, determine_strategies, strategy_for_metric

log = logging.getLogger(__name__)

TRACKED_METRICS: tuple[Metric, ...] = (
    Metric.OVERALL_SCORE,
    Metric.GLUE_WORDS,
    Metric.PASSIVE_VOICE,
    Metric.TELLING,
    Metric.DYNAMIC_CONTENT,
    Metric.DIALOGUE_BALANCE,
    Metric.AI_PATTERN_COUNT,
)

NO_STRATEGY = "none"
MAX_SCORE_DROP = 2.0
MAX_NEW_COHERENCE_ISSUES = 2


def metric_deltas(
    before: MetricsReport,
    after: MetricsReport,
    targets: Targets = TARGETS,
) -> dict[str, float]:
    """Per-metric improvement, positive when ``after`` is better."""
    return {
        str(metric): improvement_delta(
            metric, before.value(metric), after.value(metric), targets
        )
        for metric in TRACKED_METRICS
    }


def _zero_deltas() -> dict[str, float]:
    return {str(metric): 0.0 for metric in TRACKED_METRICS}


@dataclass
class ImprovementAttempt:
    """Outcome of running one strategy through the rewriter."""

    strategy: str
    original_text: str
    improved_text: str
    metrics_before: MetricsReport
    metrics_after: MetricsReport
    deltas: dict[str, float] = field(default_factory=_zero_deltas)
    success: bool = True
    error: str | None = None
    units_consumed: int = 0
    generator: str | None = None

    @property
    def score_delta(self) -> float:
        """Change in composite score produced by this attempt."""
        return self.deltas.get(str(Metric.OVERALL_SCORE), 0.0)

    def to_payload(self) -> dict[str, object]:
        """Serialize an attempt for tool output."""
        return {
            "strategy": self.strategy,
            "success": self.success,
            "error": self.error,
            "score_before": self.metrics_before.overall_score,
            "score_after": self.metrics_after.overall_score,
            "deltas": dict(self.deltas),
            "units_consumed": self.units_consumed,
            "generator": self.generator,
            "improved_text": self.improved_text,
        }


@dataclass
class EnforcementOutcome:
    """Final text of an enforcement pass and every attempt made on the way."""

    final_text: str
    attempts: list[ImprovementAttempt]
    total_improvement: float

    @property
    def strategy_names(self) -> list[str]:
        """Names of every attempted strategy, in order."""
        return [attempt.strategy for attempt in self.attempts]

    def to_payload(self) -> dict[str, object]:
        """Serialize the outcome for tool output."""
        return {
            "final_text": self.final_text,
            "attempts": [attempt.to_payload() for attempt in self.attempts],
            "total_improvement": self.total_improvement,
        }


@dataclass(frozen=True)
class ImprovementSummary:
    """Aggregate statistics over a list of attempts."""

    total_strategies: int
    successful_strategies: int
    failed_strategies: int
    total_score_improvement: float
    best_strategy: str | None
    worst_strategy: str | None


def target_description(
    metric: Metric, metrics: MetricsReport, targets: Targets = TARGETS
) -> str:
    """Human-readable goal for the rewriter, built from current values."""
    if metric == Metric.AI_PATTERN_COUNT:
        return (
            f"Eliminate all {metrics.ai_pattern_count} AI patterns. "
            f"Target: {targets.ai_pattern_count_max} patterns."
        )
    if metric == Metric.TELLING:
        return (
            f"Reduce telling from {metrics.telling:.1f}% to "
            f"<{targets.telling_max:g}%. Show through action."
        )
    if metric == Metric.DIALOGUE_BALANCE:
        return (
            f"Adjust dialogue from {metrics.dialogue_balance:.1f}% to "
            f"{targets.dialogue_min:g}-{targets.dialogue_max:g}% range."
        )
    if metric == Metric.GLUE_WORDS:
        return (
            f"Reduce glue words from {metrics.glue_words:.1f}% to "
            f"<{targets.glue_words_max:g}%."
        )
    if metric == Metric.DYNAMIC_CONTENT:
        return (
            f"Increase dynamic content from {metrics.dynamic_content:.1f}% to "
            f">{targets.dynamic_content_min:g}%."
        )
    if metric == Metric.PASSIVE_VOICE:
        return (
            f"Reduce passive voice from {metrics.passive_voice:.1f}% to "
            f"<{targets.passive_voice_max:g}%."
        )
    if metric == Metric.WORD_REPETITION:
        return (
            f"Reduce word repetition from {metrics.word_repetition:.1f}% to "
            f"<{targets.word_repetition_max:g}%."
        )
    if metric == Metric.OVERALL_SCORE:
        return (
            f"Improve overall score from {metrics.overall_score:.1f} to "
            f"{targets.overall_score_min:g}%+."
        )
    return f"Improve {metric}"


class ExcellenceEnforcer:
    """Select strategies for a draft and keep only non-regressive rewrites."""

    def __init__(
        self,
        rewriter: Rewriter,
        *,
        patterns: PatternTable | None = None,
        targets: Targets = TARGETS,
    ) -> None:
        self.rewriter = rewriter
        self.patterns = patterns
        self.targets = targets

    def evaluate(self, text: str) -> MetricsReport:
        """Evaluate text with this enforcer's pattern table and targets."""
        return evaluate(text, self.patterns, targets=self.targets)

    def determine_strategies(self, metrics: MetricsReport) -> list[Strategy]:
        """Return the strategies the report calls for, most urgent first."""
        return determine_strategies(metrics, self.targets)

    async def apply_strategy(
        self,
        text: str,
        strategy: Strategy,
        domain_tag: str,
        *,
        metrics_before: MetricsReport | None = None,
    ) -> ImprovementAttempt:
        """Run one strategy through the rewriter and measure the result.

        Rewriter failures do not propagate: the attempt comes back with the
        original text, ``success=False`` and the error message.
        """
        original = metrics_before if metrics_before is not None else self.evaluate(text)
        request = RewriteRequest(
            text=text,
            weakness=strategy.weakness,
            target_description=target_description(
                strategy.target_metrics[0], original, self.targets
            ),
            domain_tag=domain_tag,
        )

        try:
            result = await self.rewriter.rewrite(request)
        except Exception as exc:  # noqa: BLE001 - failure is recorded on the attempt
            log.warning("Strategy %s failed: %s", strategy.name, exc)
            return ImprovementAttempt(
                strategy=strategy.name,
                original_text=text,
                improved_text=text,
                metrics_before=original,
                metrics_after=original,
                success=False,
                error=str(exc) or type(exc).__name__,
            )

        improved = self.evaluate(result.text)
        return ImprovementAttempt(
            strategy=strategy.name,
            original_text=text,
            improved_text=result.text,
            metrics_before=original,
            metrics_after=improved,
            deltas=metric_deltas(original, improved, self.targets),
            units_consumed=result.units_consumed,
            generator=result.generator,
        )

    async def enforce_excellence(
        self,
        text: str,
        domain_tag: str,
        max_strategies: int = 3,
        *,
        target_score: float | None = None,
    ) -> EnforcementOutcome:
        """Apply up to ``max_strategies`` strategies in priority order.

        An attempt's text replaces the current text only when it succeeded and
        did not lower the composite score. Stops once the target score holds;
        ``target_score`` overrides ``targets.overall_score_min`` for this pass.
        """
        targets = self.targets
        if target_score is not None:
            targets = replace(targets, overall_score_min=target_score)
        current_text = text
        current_metrics = self.evaluate(text)
        strategies = determine_strategies(current_metrics, targets)[: max(max_strategies, 0)]
        attempts: list[ImprovementAttempt] = []
        total_improvement = 0.0

        for strategy in strategies:
            if current_metrics.overall_score >= targets.overall_score_min:
                log.info("Target score reached: %.1f", current_metrics.overall_score)
                break

            log.info("Applying strategy: %s", strategy.name)
            attempt = await self.apply_strategy(
                current_text, strategy, domain_tag, metrics_before=current_metrics
            )
            attempts.append(attempt)

            if attempt.success and attempt.score_delta >= 0:
                current_text = attempt.improved_text
                current_metrics = attempt.metrics_after
                total_improvement += attempt.score_delta
                log.info("Accepted %s: %+.1f points", strategy.name, attempt.score_delta)
            else:
                log.info("Rejected %s: no improvement or failed", strategy.name)

        return EnforcementOutcome(
            final_text=current_text,
            attempts=attempts,
            total_improvement=round(total_improvement, 4),
        )

    async def apply_most_critical(self, text: str, domain_tag: str) -> ImprovementAttempt:
        """Apply only the highest-priority strategy, if any is needed."""
        metrics = self.evaluate(text)
        strategies = self.determine_strategies(metrics)
        if not strategies:
            return ImprovementAttempt(
                strategy=NO_STRATEGY,
                original_text=text,
                improved_text=text,
                metrics_before=metrics,
                metrics_after=metrics,
            )
        return await self.apply_strategy(
            text, strategies[0], domain_tag, metrics_before=metrics
        )

    async def target_metric(
        self, text: str, metric: Metric | str, domain_tag: str
    ) -> ImprovementAttempt:
        """Apply the catalog strategy aimed at one metric.

        Raises:
            KeyError: No strategy targets ``metric``.
        """
        return await self.apply_strategy(text, strategy_for_metric(metric), domain_tag)

    async def batch_enforce(
        self,
        segments: Iterable[str],
        domain_tag: str,
        max_strategies_per_segment: int = 2,
    ) -> list[EnforcementOutcome]:
        """Enforce each segment independently, in order."""
        outcomes: list[EnforcementOutcome] = []
        for segment in segments:
            outcomes.append(
                await self.enforce_excellence(
                    segment, domain_tag, max_strategies_per_segment
                )
            )
        return outcomes


def improvement_summary(attempts: list[ImprovementAttempt]) -> ImprovementSummary:
    """Summarize which strategies worked and by how much."""
    successful = [attempt for attempt in attempts if attempt.success]
    best = max(successful, key=lambda attempt: attempt.score_delta, default=None)
    worst = min(successful, key=lambda attempt: attempt.score_delta, default=None)
    return ImprovementSummary(
        total_strategies=len(attempts),
        successful_strategies=len(successful),
        failed_strategies=len(attempts) - len(successful),
        total_score_improvement=round(
            sum(attempt.score_delta for attempt in successful), 4
        ),
        best_strategy=best.strategy if best is not None else None,
        worst_strategy=worst.strategy if worst is not None else None,
    )


def validate_improvement(attempt: ImprovementAttempt) -> list[str]:
    """Return problems a rewrite introduced; an empty list means valid."""
    issues: list[str] = []
    if attempt.score_delta < -MAX_SCORE_DROP:
        issues.append(f"Score decreased by {abs(attempt.score_delta):.1f} points")

    pattern_delta = attempt.deltas.get(str(Metric.AI_PATTERN_COUNT), 0.0)
    if pattern_delta < 0:
        issues.append(f"Introduced {abs(int(pattern_delta))} AI patterns")

    before_issues = len(attempt.metrics_before.coherence_issues)
    after_issues = len(attempt.metrics_after.coherence_issues)
    if after_issues > before_issues + MAX_NEW_COHERENCE_ISSUES:
        issues.append(f"Introduced {after_issues - before_issues} coherence issues")
    return issues
