"""CLI entry point for the ``dg`` draft evaluator.

Usage examples::

    # Evaluate files by name
    dg chapter1.txt chapter2.txt

    # Evaluate inline text
    dg "She ran. The door slammed behind her."

    # Evaluate from stdin
    cat scene.txt | dg -

    # Machine-readable JSON output
    dg -j scene.txt

    # Verbose: show detected patterns, coherence issues, and suggestions
    dg -v scene.txt

    # Show the improvement strategies each input calls for
    dg --plan scene.txt

    # Exit 1 if any input scores below 90
    dg -t 90 drafts/*.txt
"""


import argparse
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, TextIO, TypeAlias

from .patterns import PatternTable
from .server import _evaluate, _plan
from .version import PACKAGE_VERSION

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_OK = 0
EXIT_THRESHOLD_FAILURE = 1
EXIT_ERROR = 2

# ---------------------------------------------------------------------------
# Band decorations for terminal output
# ---------------------------------------------------------------------------

_BAND_SYMBOLS: dict[str, str] = {
    "excellent": "+",
    "good": "~",
    "needs_work": "!",
}

InputValue: TypeAlias = str | Path


@dataclass(frozen=True)
class InputTarget:
    """Typed representation of a CLI input target."""

    kind: Literal["file", "stdin", "text"]
    value: InputValue
    label: str


def _format_score_line(label: str, result: dict) -> str:
    """Build a one-line summary for a single evaluated input."""
    score = result["overall_score"]
    band = result["band"]
    wc = result["word_count"]
    sym = _BAND_SYMBOLS.get(band, "?")
    return f"{label}: {score}/100 [{band}] ({wc} words) {sym}"


def _print_details(result: dict, file: TextIO = sys.stdout) -> None:
    """Print metric ratios, detected patterns, and coherence issues."""
    print(
        f"  glue={result['glue_words']}% passive={result['passive_voice']}% "
        f"dialogue={result['dialogue_balance']}% telling={result['telling']}% "
        f"dynamic={result['dynamic_content']}%",
        file=file,
    )
    for pattern in result["patterns"]:
        print(
            f"  pattern: \"{pattern['pattern']}\" x{pattern['count']} "
            f"[{pattern['severity']}]",
            file=file,
        )
    for issue in result["coherence_issues"]:
        print(f"  coherence: {issue['description']} [{issue['severity']}]", file=file)


def _print_suggestions(result: dict, file: TextIO = sys.stdout) -> None:
    """Print the suggestion list."""
    for item in result["suggestions"]:
        print(f"  - {item}", file=file)


def _print_strategies(result: dict, file: TextIO = sys.stdout) -> None:
    """Print planned strategies in priority order."""
    if not result["strategies"]:
        print("  (no strategies needed)", file=file)
        return
    for strategy in result["strategies"]:
        print(
            f"  [{strategy['priority']}] {strategy['name']}: {strategy['description']}",
            file=file,
        )


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Construct the CLI argument parser."""
    p = argparse.ArgumentParser(
        prog="dg",
        description="Evaluate prose drafts against publication-quality targets.",
        epilog="Pass file paths, '-' for stdin, or quoted inline text.",
    )
    p.add_argument(
        "--version",
        action="version",
        version=PACKAGE_VERSION,
        help="Show package version and exit.",
    )
    p.add_argument(
        "inputs",
        nargs="+",
        metavar="INPUT",
        help="Inputs to evaluate: files, '-' for stdin, or quoted inline text.",
    )
    p.add_argument(
        "-j", "--json",
        action="store_true",
        default=False,
        help="Output results as JSON.",
    )
    p.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Show metric ratios, detected patterns, coherence issues, and suggestions.",
    )
    p.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Only print sources that fail the threshold.",
    )
    p.add_argument(
        "-t", "--threshold",
        type=float,
        default=0.0,
        metavar="SCORE",
        help="Minimum passing score (0-100). Exit 1 if any input scores below this.",
    )
    p.add_argument(
        "-p", "--patterns",
        default=None,
        metavar="JSONL",
        help="Path to a JSONL pattern table. Defaults to the packaged table.",
    )
    p.add_argument(
        "-s", "--score-only",
        action="store_true",
        default=False,
        help="Print score only.",
    )
    p.add_argument(
        "--plan",
        action="store_true",
        default=False,
        help="Show the improvement strategies each input calls for.",
    )
    return p


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def _is_inline_text_argument(value: str) -> bool:
    """Return whether a positional argument should be treated as inline text."""
    return any(ch.isspace() for ch in value)


def _resolve_inputs(args: argparse.Namespace) -> list[InputTarget]:
    """Resolve positional args into typed input targets."""
    inputs: list[InputTarget] = []
    for index, raw in enumerate(args.inputs, start=1):
        if raw == "-":
            inputs.append(InputTarget(kind="stdin", value=raw, label="<stdin>"))
            continue
        candidate_path = Path(raw)
        if candidate_path.is_file():
            inputs.append(
                InputTarget(kind="file", value=candidate_path, label=str(candidate_path))
            )
            continue
        if _is_inline_text_argument(raw):
            inputs.append(InputTarget(kind="text", value=raw, label=f"<text:{index}>"))
            continue
        inputs.append(InputTarget(kind="file", value=candidate_path, label=str(candidate_path)))
    return inputs


def _read_target(target: InputTarget) -> str | None:
    """Return the text behind a target, or ``None`` after reporting a read error."""
    if target.kind == "stdin":
        return sys.stdin.read()
    if target.kind == "text":
        assert isinstance(target.value, str)
        return target.value
    assert isinstance(target.value, Path)
    path = target.value
    if not path.is_file():
        print(f"dg: {path}: No such file", file=sys.stderr)
        return None
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        print(f"dg: {path}: {exc}", file=sys.stderr)
        return None


def _emit_result(result: dict, args: argparse.Namespace) -> None:
    """Print one evaluated result immediately."""
    fails_threshold = args.threshold > 0 and result["overall_score"] < args.threshold
    if args.quiet and not fails_threshold:
        return
    if args.score_only:
        print(result["overall_score"], flush=True)
        return

    print(_format_score_line(result["source"], result), flush=True)
    if args.verbose:
        _print_details(result)
        _print_suggestions(result)
    if args.plan:
        _print_strategies(result)


def cli_main(argv: list[str] | None = None) -> int:
    """Entry point for the ``dg`` command.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).

    Returns:
        Exit code suitable for ``sys.exit``.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        patterns = PatternTable.from_jsonl(args.patterns)
    except (OSError, ValueError, TypeError) as exc:
        print(f"dg: {exc}", file=sys.stderr)
        return EXIT_ERROR

    results: list[dict] = []
    threshold_failed = False

    for target in _resolve_inputs(args):
        text = _read_target(target)
        if text is None:
            continue

        result = _plan(text, patterns) if args.plan else _evaluate(text, patterns)
        result["source"] = target.label
        results.append(result)
        if args.threshold > 0 and result["overall_score"] < args.threshold:
            threshold_failed = True

        if not args.json:
            _emit_result(result, args)

    if not results:
        return EXIT_ERROR

    # --- Output ---
    if args.json:
        out = results if len(results) > 1 else results[0]
        json.dump(out, sys.stdout, indent=2)
        sys.stdout.write("\n")

    # --- Exit code ---
    if threshold_failed:
        return EXIT_THRESHOLD_FAILURE

    return EXIT_OK


def main() -> None:
    """Thin wrapper that calls ``sys.exit`` with the CLI return code."""
    sys.exit(cli_main())
