"""Public package interface for draft-guard."""

from .cli import cli_main
from .enforcer import EnforcementOutcome, ExcellenceEnforcer, ImprovementAttempt
from .evaluator import MetricsReport, evaluate
from .iteration import IterationController, LoopSettings
from .patterns import DEFAULT_PATTERNS, PatternTable
from .rewriter import OpenAIRewriter, RewriteError, RewriteRequest, RewriteResult, Rewriter
from .server import main
from .strategies import Strategy, determine_strategies

__all__ = [
    "DEFAULT_PATTERNS",
    "EnforcementOutcome",
    "ExcellenceEnforcer",
    "ImprovementAttempt",
    "IterationController",
    "LoopSettings",
    "MetricsReport",
    "OpenAIRewriter",
    "PatternTable",
    "RewriteError",
    "RewriteRequest",
    "RewriteResult",
    "Rewriter",
    "Strategy",
    "cli_main",
    "determine_strategies",
    "evaluate",
    "main",
]
