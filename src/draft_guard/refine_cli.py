"""CLI entry point for iterative LLM refinement of a single draft."""


import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from .enforcer import ExcellenceEnforcer
from .iteration import IterationController, LoopSettings
from .patterns import PatternTable
from .prompts import DEFAULT_GENRE, GENRE_GUIDELINES
from .rewriter import OpenAIRewriter, Rewriter, RewriterSettings, check_openai_config
from .version import PACKAGE_VERSION

EXIT_OK = 0
EXIT_TARGET_MISSED = 1
EXIT_ERROR = 2


def _build_parser() -> argparse.ArgumentParser:
    """Construct the ``dg-refine`` argument parser."""
    parser = argparse.ArgumentParser(
        prog="dg-refine",
        description="Rewrite a draft with an LLM until it reaches the target score.",
        epilog=(
            "Requires OPENAI_API_KEY. Known genres: "
            + ", ".join(sorted(GENRE_GUIDELINES))
            + "."
        ),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=PACKAGE_VERSION,
        help="Show package version and exit.",
    )
    parser.add_argument(
        "input",
        metavar="INPUT",
        help="Draft file to refine, or '-' for stdin.",
    )
    parser.add_argument(
        "--genre",
        default=DEFAULT_GENRE,
        help=f"Genre used to shape rewrite instructions (default: {DEFAULT_GENRE}).",
    )
    parser.add_argument(
        "--model",
        default=RewriterSettings().model,
        help="Chat-completions model name.",
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        metavar="JSON",
        help="JSON file with loop settings (max_iterations, target_score, "
        "iteration_delay_seconds, tolerances).",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        metavar="N",
        help="Maximum committed iterations (default: 15).",
    )
    parser.add_argument(
        "--strategies",
        type=int,
        default=3,
        metavar="N",
        help="Maximum strategies applied per iteration (default: 3).",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Pause between iterations (default: 1.5).",
    )
    parser.add_argument(
        "--target",
        type=float,
        default=None,
        metavar="SCORE",
        help="Score that ends the run (default: 90).",
    )
    parser.add_argument(
        "-p", "--patterns",
        default=None,
        metavar="JSONL",
        help="Path to a JSONL pattern table. Defaults to the packaged table.",
    )
    parser.add_argument(
        "-o", "--output",
        default=None,
        metavar="JSON",
        help="Write the full iteration history to this path.",
    )
    parser.add_argument(
        "-j", "--json",
        action="store_true",
        default=False,
        help="Print the refined text and summary as JSON.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for progress messages on stderr.",
    )
    return parser


def _load_settings(args: argparse.Namespace) -> LoopSettings:
    """Merge the optional config file with command-line overrides."""
    settings = LoopSettings()
    if args.config is not None:
        data = json.loads(Path(args.config).read_text(encoding="utf-8"))
        settings = LoopSettings.from_dict(data)

    overrides: dict[str, object] = {}
    if args.max_iterations is not None:
        if args.max_iterations < 0:
            raise ValueError("--max-iterations must be >= 0")
        overrides["max_iterations"] = args.max_iterations
    if args.delay is not None:
        if args.delay < 0:
            raise ValueError("--delay must be >= 0")
        overrides["iteration_delay_seconds"] = args.delay
    if args.target is not None:
        if not 0.0 <= args.target <= 100.0:
            raise ValueError("--target must be within [0, 100]")
        overrides["target_score"] = args.target
    return replace(settings, **overrides) if overrides else settings


def _read_input(raw: str) -> str:
    """Read the draft from a file path or stdin."""
    if raw == "-":
        return sys.stdin.read()
    return Path(raw).read_text(encoding="utf-8")


def _build_rewriter(args: argparse.Namespace, patterns: PatternTable) -> Rewriter:
    """Construct the rewriter for this run."""
    return OpenAIRewriter(RewriterSettings(model=args.model), patterns=patterns)


def refine_main(argv: list[str] | None = None) -> int:
    """Run ``dg-refine`` and return a process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    config_error = check_openai_config()
    if config_error is not None:
        print(f"dg-refine: {config_error}", file=sys.stderr)
        return EXIT_ERROR

    try:
        settings = _load_settings(args)
        patterns = PatternTable.from_jsonl(args.patterns)
        text = _read_input(args.input)
    except (OSError, KeyError, TypeError, ValueError) as exc:
        print(f"dg-refine: {exc}", file=sys.stderr)
        return EXIT_ERROR

    enforcer = ExcellenceEnforcer(_build_rewriter(args, patterns), patterns=patterns)
    controller = IterationController(text, args.genre, enforcer, settings)
    asyncio.run(controller.run_until_target(args.strategies))
    summary = controller.summary()

    if args.output is not None:
        try:
            Path(args.output).write_text(controller.export_history(), encoding="utf-8")
        except OSError as exc:
            print(f"dg-refine: {exc}", file=sys.stderr)
            return EXIT_ERROR

    if args.json:
        out = {"text": controller.current_text, "summary": summary.to_payload()}
        json.dump(out, sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        print(controller.current_text)
        print(
            f"\nscore {summary.initial_score:.1f} -> {summary.final_score:.1f} "
            f"after {summary.iterations} iterations "
            f"(target {'reached' if summary.target_reached else 'not reached'}; "
            f"locked: {', '.join(summary.locked_metrics) or 'none'})",
            file=sys.stderr,
        )

    return EXIT_OK if summary.target_reached else EXIT_TARGET_MISSED


def main() -> None:
    """Call :func:`refine_main` and exit."""
    sys.exit(refine_main())
