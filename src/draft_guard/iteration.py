"""Iterative refinement loop with metric locks and best-ever tracking.

One :class:`IterationController` owns the evolving text of a single run. Each
call to :meth:`IterationController.run_iteration` asks the enforcer for a
candidate, rejects it when a locked metric regresses beyond its tolerance, and
otherwise commits a snapshot. Concurrent runs need separate controllers.
"""


import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType

from .analysis import METRIC_DIRECTIONS, Direction, Metric, improvement_delta, is_better
from .enforcer import TRACKED_METRICS, ExcellenceEnforcer
from .evaluator import MetricsReport

log = logging.getLogger(__name__)

LOCKABLE_METRICS: tuple[Metric, ...] = (
    Metric.OVERALL_SCORE,
    Metric.GLUE_WORDS,
    Metric.PASSIVE_VOICE,
    Metric.DIALOGUE_BALANCE,
    Metric.TELLING,
    Metric.DYNAMIC_CONTENT,
    Metric.AI_PATTERN_COUNT,
)

BEST_EVER_METRICS: tuple[Metric, ...] = (
    Metric.OVERALL_SCORE,
    Metric.GLUE_WORDS,
    Metric.PASSIVE_VOICE,
    Metric.DIALOGUE_BALANCE,
    Metric.TELLING,
    Metric.WORD_REPETITION,
    Metric.DYNAMIC_CONTENT,
    Metric.REFLECTIVE_CONTENT,
    Metric.AI_PATTERN_COUNT,
)

DEFAULT_TOLERANCES: Mapping[str, float] = MappingProxyType(
    {
        Metric.OVERALL_SCORE: 1.0,
        Metric.GLUE_WORDS: 2.0,
        Metric.PASSIVE_VOICE: 1.0,
        Metric.TELLING: 2.0,
        Metric.DYNAMIC_CONTENT: 3.0,
        Metric.AI_PATTERN_COUNT: 0.0,
    }
)

_SETTINGS_KEYS = frozenset(
    {"max_iterations", "target_score", "iteration_delay_seconds", "tolerances"}
)


@dataclass(frozen=True)
class LoopSettings:
    """Budget, stop condition, pacing, and lock slack for one run."""

    max_iterations: int = 15
    target_score: float = 90.0
    iteration_delay_seconds: float = 1.5
    tolerances: Mapping[str, float] = field(default_factory=lambda: DEFAULT_TOLERANCES)

    def tolerance(self, metric: Metric) -> float:
        """Allowed regression for a locked metric before it counts as violated."""
        return float(self.tolerances.get(str(metric), 0.0))

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "LoopSettings":
        """Build settings from a decoded JSON object.

        Missing keys keep their defaults. ``tolerances`` entries are merged
        over the default tolerances.

        Raises:
            TypeError: ``data`` or a value has the wrong type.
            KeyError: An unknown setting or metric name is present.
            ValueError: A value is out of range.
        """
        if not isinstance(data, Mapping):
            raise TypeError("Loop settings must be a JSON object")
        unknown = sorted(set(data) - _SETTINGS_KEYS)
        if unknown:
            raise KeyError(f"Unknown loop setting(s): {', '.join(unknown)}")

        defaults = cls()
        max_iterations = data.get("max_iterations", defaults.max_iterations)
        if isinstance(max_iterations, bool) or not isinstance(max_iterations, int):
            raise TypeError("max_iterations must be an integer")
        if max_iterations < 0:
            raise ValueError("max_iterations must be >= 0")

        target_score = _number(data.get("target_score", defaults.target_score), "target_score")
        if not 0.0 <= target_score <= 100.0:
            raise ValueError("target_score must be within [0, 100]")

        delay = _number(
            data.get("iteration_delay_seconds", defaults.iteration_delay_seconds),
            "iteration_delay_seconds",
        )
        if delay < 0:
            raise ValueError("iteration_delay_seconds must be >= 0")

        raw_tolerances = data.get("tolerances", {})
        if not isinstance(raw_tolerances, Mapping):
            raise TypeError("tolerances must be a JSON object")
        tolerances = dict(DEFAULT_TOLERANCES)
        for name, value in raw_tolerances.items():
            try:
                metric = Metric(name)
            except ValueError as exc:
                raise KeyError(f"Unknown metric in tolerances: {name}") from exc
            slack = _number(value, f"tolerances.{name}")
            if slack < 0:
                raise ValueError(f"tolerances.{name} must be >= 0")
            tolerances[metric] = slack

        return cls(
            max_iterations=max_iterations,
            target_score=target_score,
            iteration_delay_seconds=delay,
            tolerances=MappingProxyType(tolerances),
        )

    def to_payload(self) -> dict[str, object]:
        """Serialize settings for history export."""
        return {
            "max_iterations": self.max_iterations,
            "target_score": self.target_score,
            "iteration_delay_seconds": self.iteration_delay_seconds,
            "tolerances": {str(k): v for k, v in self.tolerances.items()},
        }


def _number(value: object, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise TypeError(f"{name} must be a number")
    return float(value)


@dataclass(frozen=True)
class MetricChange:
    """Movement of one metric between two snapshots."""

    metric: Metric
    before: float
    after: float
    delta: float
    improved: bool

    def to_payload(self) -> dict[str, object]:
        return {
            "metric": str(self.metric),
            "before": self.before,
            "after": self.after,
            "delta": self.delta,
            "improved": self.improved,
        }


def metric_changes(before: MetricsReport, after: MetricsReport) -> list[MetricChange]:
    """Direction-aware changes for the metrics enforcement attempts track."""
    changes = []
    for metric in TRACKED_METRICS:
        old, new = before.value(metric), after.value(metric)
        changes.append(
            MetricChange(
                metric=metric,
                before=old,
                after=new,
                delta=improvement_delta(metric, old, new),
                improved=is_better(metric, new, old),
            )
        )
    return changes


@dataclass(frozen=True)
class IterationSnapshot:
    """Committed state after one iteration (iteration 0 is the input)."""

    iteration: int
    timestamp: datetime
    text: str
    metrics: MetricsReport
    strategies: tuple[str, ...] = ()
    changes: tuple[MetricChange, ...] = ()
    locked: tuple[str, ...] = ()
    adopted: bool = True

    def to_payload(self) -> dict[str, object]:
        return {
            "iteration": self.iteration,
            "timestamp": self.timestamp.isoformat(),
            "text": self.text,
            "metrics": self.metrics.to_payload(),
            "strategies": list(self.strategies),
            "changes": [change.to_payload() for change in self.changes],
            "locked": list(self.locked),
            "adopted": self.adopted,
        }


@dataclass
class MetricLock:
    """Regression guard for one metric once it first meets its threshold."""

    metric: Metric
    target_value: float
    current_value: float
    locked: bool = False
    locked_at: int | None = None

    def to_payload(self) -> dict[str, object]:
        return {
            "metric": str(self.metric),
            "target_value": self.target_value,
            "current_value": self.current_value,
            "locked": self.locked,
            "locked_at": self.locked_at,
        }


@dataclass
class BestEver:
    """Most favorable value seen per metric, whether or not it was kept."""

    values: dict[Metric, float]
    iteration: int = 0

    @classmethod
    def from_metrics(cls, metrics: MetricsReport) -> "BestEver":
        return cls(values={metric: metrics.value(metric) for metric in BEST_EVER_METRICS})

    def update(self, metrics: MetricsReport, iteration: int) -> None:
        """Fold in a new report; ``iteration`` tracks the best overall score."""
        for metric in BEST_EVER_METRICS:
            value = metrics.value(metric)
            if is_better(metric, value, self.values[metric]):
                self.values[metric] = value
                if metric == Metric.OVERALL_SCORE:
                    self.iteration = iteration

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {str(k): v for k, v in self.values.items()}
        payload["iteration"] = self.iteration
        return payload


@dataclass
class RunHistory:
    """Everything a run has recorded so far."""

    snapshots: list[IterationSnapshot]
    best_ever: BestEver
    locks: list[MetricLock]
    target_reached: bool
    total_iterations: int = 0
    final_score: float = 0.0
    total_improvement: float = 0.0

    @property
    def locked_metrics(self) -> list[str]:
        return [str(lock.metric) for lock in self.locks if lock.locked]

    def to_payload(self) -> dict[str, object]:
        return {
            "snapshots": [snapshot.to_payload() for snapshot in self.snapshots],
            "best_ever": self.best_ever.to_payload(),
            "locks": [lock.to_payload() for lock in self.locks],
            "target_reached": self.target_reached,
            "total_iterations": self.total_iterations,
            "final_score": self.final_score,
            "total_improvement": self.total_improvement,
        }


@dataclass(frozen=True)
class IterationOutcome:
    """Result of a single ``run_iteration`` call."""

    success: bool
    improved: bool
    snapshot: IterationSnapshot
    should_continue: bool
    message: str
    violations: tuple[str, ...] = ()

    def to_payload(self) -> dict[str, object]:
        return {
            "success": self.success,
            "improved": self.improved,
            "iteration": self.snapshot.iteration,
            "score": self.snapshot.metrics.overall_score,
            "should_continue": self.should_continue,
            "message": self.message,
            "violations": list(self.violations),
        }


@dataclass(frozen=True)
class RunSummary:
    """Headline numbers for a run."""

    initial_score: float
    final_score: float
    total_improvement: float
    iterations: int
    target_reached: bool
    best_iteration: int
    locked_metrics: tuple[str, ...] = field(default_factory=tuple)

    def to_payload(self) -> dict[str, object]:
        return {
            "initial_score": self.initial_score,
            "final_score": self.final_score,
            "total_improvement": self.total_improvement,
            "iterations": self.iterations,
            "target_reached": self.target_reached,
            "best_iteration": self.best_iteration,
            "locked_metrics": list(self.locked_metrics),
        }


@dataclass(frozen=True)
class IterationComparison:
    """Two snapshots and the metric changes between them."""

    first: IterationSnapshot
    second: IterationSnapshot
    changes: tuple[MetricChange, ...]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class IterationController:
    """Drive repeated enforcement passes against one evolving text."""

    def __init__(
        self,
        text: str,
        domain_tag: str,
        enforcer: ExcellenceEnforcer,
        settings: LoopSettings | None = None,
    ) -> None:
        self.domain_tag = domain_tag
        self.enforcer = enforcer
        self.settings = settings or LoopSettings()
        self._current_text = text
        self._current_metrics = enforcer.evaluate(text)

        locks = []
        for metric in LOCKABLE_METRICS:
            value = self._current_metrics.value(metric)
            holds = self._meets(metric, value)
            locks.append(
                MetricLock(
                    metric=metric,
                    target_value=self._lock_target(metric),
                    current_value=value,
                    locked=holds,
                    locked_at=0 if holds else None,
                )
            )
        score = self._current_metrics.overall_score
        self._history = RunHistory(
            snapshots=[
                IterationSnapshot(
                    iteration=0,
                    timestamp=_now(),
                    text=text,
                    metrics=self._current_metrics,
                    locked=tuple(str(lock.metric) for lock in locks if lock.locked),
                )
            ],
            best_ever=BestEver.from_metrics(self._current_metrics),
            locks=locks,
            target_reached=score >= self.settings.target_score,
            final_score=score,
        )

    # -----------------------------------------------------------------------
    # Read-only views
    # -----------------------------------------------------------------------

    @property
    def current_text(self) -> str:
        """Best committed text so far."""
        return self._current_text

    @property
    def current_metrics(self) -> MetricsReport:
        return self._current_metrics

    @property
    def history(self) -> RunHistory:
        """The run's history; treat as read-only."""
        return self._history

    @property
    def iterations(self) -> int:
        return self._history.total_iterations

    @property
    def target_reached(self) -> bool:
        return self._history.target_reached

    # -----------------------------------------------------------------------
    # Threshold helpers
    # -----------------------------------------------------------------------

    def _meets(self, metric: Metric, value: float) -> bool:
        if metric == Metric.OVERALL_SCORE:
            return value >= self.settings.target_score
        return self.enforcer.targets.meets(metric, value)

    def _lock_target(self, metric: Metric) -> float:
        if metric == Metric.OVERALL_SCORE:
            return self.settings.target_score
        return self.enforcer.targets.threshold(metric)

    def lock_violations(self, metrics: MetricsReport) -> list[str]:
        """Names of locked metrics that ``metrics`` regresses past tolerance."""
        violations = []
        for lock in self._history.locks:
            if not lock.locked:
                continue
            value = metrics.value(lock.metric)
            direction = METRIC_DIRECTIONS[lock.metric]
            slack = self.settings.tolerance(lock.metric)
            if direction == Direction.TARGET:
                violated = not self.enforcer.targets.meets(lock.metric, value)
            elif direction == Direction.MAXIMIZE:
                violated = value < lock.current_value - slack
            else:
                violated = value > lock.current_value + slack
            if violated:
                violations.append(str(lock.metric))
        return violations

    def _update_locks(self, metrics: MetricsReport, iteration: int) -> None:
        for lock in self._history.locks:
            value = metrics.value(lock.metric)
            if lock.locked:
                # Locked values only move in the improving direction.
                if is_better(lock.metric, value, lock.current_value, self.enforcer.targets):
                    lock.current_value = value
                continue
            lock.current_value = value
            if self._meets(lock.metric, value):
                lock.locked = True
                lock.locked_at = iteration
                log.info("Metric locked: %s at %.1f", lock.metric, value)

    # -----------------------------------------------------------------------
    # Loop
    # -----------------------------------------------------------------------

    def _latest_snapshot(self) -> IterationSnapshot:
        return self._history.snapshots[-1]

    async def run_iteration(self, max_strategies: int = 3) -> IterationOutcome:
        """Run one enforcement pass and commit or reject its result.

        Never raises. A rejected pass (lock violation or enforcement fault)
        leaves every piece of state untouched and does not use up budget.
        """
        history = self._history
        if history.total_iterations >= self.settings.max_iterations:
            return IterationOutcome(
                success=False,
                improved=False,
                snapshot=self._latest_snapshot(),
                should_continue=False,
                message=f"Maximum iterations reached ({self.settings.max_iterations})",
            )
        if history.target_reached:
            return IterationOutcome(
                success=True,
                improved=False,
                snapshot=self._latest_snapshot(),
                should_continue=False,
                message=f"Target score {self.settings.target_score:g} already reached",
            )

        iteration = history.total_iterations + 1
        previous = self._current_metrics
        log.info("Iteration %d: current score %.1f", iteration, previous.overall_score)

        try:
            result = await self.enforcer.enforce_excellence(
                self._current_text,
                self.domain_tag,
                max_strategies,
                target_score=self.settings.target_score,
            )
            candidate = self.enforcer.evaluate(result.final_text)
        except Exception as exc:  # noqa: BLE001 - a faulty pass must not corrupt the run
            log.error("Iteration %d failed: %s", iteration, exc)
            return IterationOutcome(
                success=False,
                improved=False,
                snapshot=self._latest_snapshot(),
                should_continue=True,
                message=f"Error: {str(exc) or type(exc).__name__}",
            )

        violations = self.lock_violations(candidate)
        if violations:
            log.warning("Lock violations detected: %s", ", ".join(violations))
            return IterationOutcome(
                success=False,
                improved=False,
                snapshot=self._latest_snapshot(),
                should_continue=True,
                message=f"Lock violations: {', '.join(violations)}. Reverted changes.",
                violations=tuple(violations),
            )

        improved = candidate.overall_score > previous.overall_score
        if improved:
            self._current_text = result.final_text
            self._current_metrics = candidate

        history.best_ever.update(candidate, iteration)
        self._update_locks(self._current_metrics, iteration)

        snapshot = IterationSnapshot(
            iteration=iteration,
            timestamp=_now(),
            text=result.final_text,
            metrics=candidate,
            strategies=tuple(result.strategy_names),
            changes=tuple(metric_changes(previous, candidate)),
            locked=tuple(history.locked_metrics),
            adopted=improved,
        )
        history.snapshots.append(snapshot)
        history.total_iterations = iteration
        history.total_improvement = round(
            history.total_improvement + result.total_improvement, 4
        )
        history.final_score = self._current_metrics.overall_score
        history.target_reached = history.final_score >= self.settings.target_score

        should_continue = (
            not history.target_reached and iteration < self.settings.max_iterations
        )
        if improved:
            message = (
                f"Improved: {previous.overall_score:.1f} -> "
                f"{candidate.overall_score:.1f} ({result.total_improvement:+.1f})"
            )
        else:
            message = (
                f"No improvement: {previous.overall_score:.1f} "
                "(strategies had no positive effect)"
            )
        log.info(message)
        return IterationOutcome(
            success=True,
            improved=improved,
            snapshot=snapshot,
            should_continue=should_continue,
            message=message,
        )

    async def run_until_target(self, max_strategies: int = 3) -> RunHistory:
        """Iterate until the target holds, the budget runs out, or a pass fails."""
        while True:
            outcome = await self.run_iteration(max_strategies)
            if not (outcome.should_continue and outcome.success):
                log.info("Stopping: %s", outcome.message)
                return self._history
            await asyncio.sleep(self.settings.iteration_delay_seconds)

    # -----------------------------------------------------------------------
    # Reporting
    # -----------------------------------------------------------------------

    def summary(self) -> RunSummary:
        history = self._history
        return RunSummary(
            initial_score=history.snapshots[0].metrics.overall_score,
            final_score=history.final_score,
            total_improvement=history.total_improvement,
            iterations=history.total_iterations,
            target_reached=history.target_reached,
            best_iteration=history.best_ever.iteration,
            locked_metrics=tuple(history.locked_metrics),
        )

    def export_history(self) -> str:
        """Return the full history as a JSON document."""
        payload = self._history.to_payload()
        payload["current_text"] = self._current_text
        payload["settings"] = self.settings.to_payload()
        return json.dumps(payload, indent=2)

    def compare_iterations(self, first: int, second: int) -> IterationComparison | None:
        """Changes between two snapshots, or ``None`` when either is missing."""
        snapshots = self._history.snapshots
        if not (0 <= first < len(snapshots) and 0 <= second < len(snapshots)):
            return None
        a, b = snapshots[first], snapshots[second]
        return IterationComparison(
            first=a, second=b, changes=tuple(metric_changes(a.metrics, b.metrics))
        )
