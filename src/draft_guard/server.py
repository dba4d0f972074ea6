"""MCP server for draft evaluation and iterative refinement."""


import argparse
import json
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from .enforcer import ExcellenceEnforcer
from .evaluator import evaluate
from .iteration import IterationController, LoopSettings
from .patterns import DEFAULT_PATTERNS, PatternTable
from .prompts import DEFAULT_GENRE
from .rewriter import OpenAIRewriter, Rewriter, check_openai_config
from .strategies import determine_strategies
from .version import PACKAGE_VERSION

MCP_SERVER_NAME = "draft-guard"
mcp_server = FastMCP(MCP_SERVER_NAME)
ACTIVE_PATTERNS = DEFAULT_PATTERNS


def _evaluate(text: str, patterns: PatternTable | None = None) -> dict:
    """Evaluate text and return the report payload."""
    active_patterns = ACTIVE_PATTERNS if patterns is None else patterns
    return evaluate(text, active_patterns).to_payload()


def _plan(text: str, patterns: PatternTable | None = None) -> dict:
    """Evaluate text and attach the strategies its report calls for."""
    active_patterns = ACTIVE_PATTERNS if patterns is None else patterns
    report = evaluate(text, active_patterns)
    result = report.to_payload()
    result["strategies"] = [s.to_payload() for s in determine_strategies(report)]
    return result


def _build_rewriter() -> Rewriter:
    """Construct the rewriter used by ``refine_draft``."""
    return OpenAIRewriter(patterns=ACTIVE_PATTERNS)


@mcp_server.tool()
def evaluate_draft(text: str) -> str:
    """Score a prose draft for publication readiness.

    Returns a JSON object with an overall score (0-100), band label, per-metric
    ratios (glue words, passive voice, dialogue, telling, repetition, dynamic
    content), detected AI phrasing, coherence issues, and suggestions.
    """
    return json.dumps(_evaluate(text), indent=2)


@mcp_server.tool()
def evaluate_draft_file(file_path: str) -> str:
    """Score a prose draft stored in a file.

    Reads the file at the given path and runs the same evaluation as
    evaluate_draft.
    """
    path = Path(file_path)
    if not path.is_file():
        return json.dumps({"error": f"File not found: {file_path}"})

    try:
        text = path.read_text(encoding="utf-8")
    except Exception as exc:  # noqa: BLE001 - returning tool-safe error payload
        return json.dumps({"error": f"Could not read file: {exc}"})

    result = _evaluate(text)
    result["file"] = file_path
    return json.dumps(result, indent=2)


@mcp_server.tool()
def plan_improvements(text: str) -> str:
    """List the improvement strategies a draft needs, most urgent first.

    Returns the evaluation report plus an ordered ``strategies`` list. An empty
    list means the draft already meets every threshold.
    """
    return json.dumps(_plan(text), indent=2)


@mcp_server.tool()
async def refine_draft(
    text: str,
    genre: str = DEFAULT_GENRE,
    max_iterations: int = 5,
    max_strategies: int = 3,
) -> str:
    """Iteratively rewrite a draft toward a score of 90 with an LLM.

    Requires OPENAI_API_KEY. Returns the refined text, a run summary, and the
    final evaluation report.
    """
    config_error = check_openai_config()
    if config_error is not None:
        return json.dumps({"error": config_error})

    enforcer = ExcellenceEnforcer(_build_rewriter(), patterns=ACTIVE_PATTERNS)
    controller = IterationController(
        text,
        genre,
        enforcer,
        LoopSettings(max_iterations=max_iterations),
    )
    await controller.run_until_target(max_strategies)
    result = {
        "text": controller.current_text,
        "summary": controller.summary().to_payload(),
        "metrics": controller.current_metrics.to_payload(),
    }
    return json.dumps(result, indent=2)


def _build_parser() -> argparse.ArgumentParser:
    """Construct the MCP server CLI parser."""
    parser = argparse.ArgumentParser(
        prog="draft-guard",
        description="Run the draft-guard MCP server on stdio.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=PACKAGE_VERSION,
        help="Show package version and exit.",
    )
    parser.add_argument(
        "-p", "--patterns",
        default=None,
        metavar="JSONL",
        help="Path to a JSONL pattern table. Defaults to the packaged table.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Run the draft-guard MCP server on stdio."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    global ACTIVE_PATTERNS
    ACTIVE_PATTERNS = PatternTable.from_jsonl(args.patterns)
    mcp_server.run()
