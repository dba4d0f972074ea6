"""Detect stock machine-prose phrases from a severity-tiered table.

Objective: Catch jargon, canned transitions, and filler idioms whose presence
marks a draft as generated rather than authored.

Example Pattern Hits:
    - "Furthermore, the plan plays a crucial role in the outcome."
      Canned transition plus a stock importance phrase.
    - "At the end of the day, she decided to leave."
      Filler idiom that pads the sentence.

Example Non-Hits:
    - "She slammed the door and left."
      Concrete action with no templated phrasing.
    - "The robustness test failed twice."
      ``robust`` only matches as a whole word.

Severity: Grouping only. Every detected phrase counts once toward the pattern
count regardless of tier; the tier shapes reporting and prompts.
"""


import json
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import StrEnum
from importlib.resources import files
from pathlib import Path

from .analysis import AnalysisDocument

_PHRASE_FIELD = "phrase"
_SEVERITY_FIELD = "severity"
_EXAMPLE_LIMIT = 2
_EXAMPLE_CHARS = 100


class Severity(StrEnum):
    """Reporting tier for a pattern or coherence issue."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class PatternEntry:
    """One configured phrase and its reporting tier."""

    phrase: str
    severity: Severity


@dataclass(frozen=True)
class PatternMatch:
    """Detection record for one phrase found in a draft."""

    pattern: str
    severity: Severity
    count: int
    examples: tuple[str, ...]

    def to_payload(self) -> dict[str, object]:
        """Serialize a match for tool output."""
        return {
            "pattern": self.pattern,
            "severity": str(self.severity),
            "count": self.count,
            "examples": list(self.examples),
        }


class PatternTable:
    """Immutable ordered phrase table with precompiled matchers."""

    def __init__(self, entries: Iterable[PatternEntry]) -> None:
        """Initialize from entries in reporting order."""
        self.entries: tuple[PatternEntry, ...] = tuple(entries)
        self._matchers: tuple[re.Pattern[str], ...] = tuple(
            re.compile(rf"\b{re.escape(entry.phrase)}\b", re.IGNORECASE)
            for entry in self.entries
        )

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[PatternEntry]:
        return iter(self.entries)

    @classmethod
    def from_jsonl(cls, path: str | Path | None = None) -> "PatternTable":
        """Build a table from a JSONL file.

        Args:
            path: JSONL path. If omitted, loads the packaged defaults.
        """
        entries = _parse_entries(_read_jsonl_lines(path))
        if not entries:
            source = "<package default>" if path is None else str(path)
            raise ValueError(f"JSONL pattern table is empty: {source}")
        return cls(entries)

    def to_jsonl(self, path: str | Path) -> None:
        """Write the table to a JSONL file."""
        with Path(path).open("w", encoding="utf-8") as handle:
            for entry in self.entries:
                payload = {
                    _PHRASE_FIELD: entry.phrase,
                    _SEVERITY_FIELD: str(entry.severity),
                }
                handle.write(json.dumps(payload))
                handle.write("\n")

    def phrases(self, severity: Severity | None = None) -> list[str]:
        """Return phrases in table order, optionally for one tier."""
        return [
            entry.phrase
            for entry in self.entries
            if severity is None or entry.severity == severity
        ]

    def detect(self, document: AnalysisDocument) -> tuple[PatternMatch, ...]:
        """Scan a document and return one match record per detected phrase."""
        matches: list[PatternMatch] = []
        for entry, matcher in zip(self.entries, self._matchers):
            count = len(matcher.findall(document.text))
            if not count:
                continue
            examples: list[str] = []
            for sentence in document.sentences:
                if matcher.search(sentence):
                    examples.append(sentence[:_EXAMPLE_CHARS])
                    if len(examples) >= _EXAMPLE_LIMIT:
                        break
            matches.append(
                PatternMatch(
                    pattern=entry.phrase,
                    severity=entry.severity,
                    count=count,
                    examples=tuple(examples),
                )
            )
        return tuple(matches)


def _read_jsonl_lines(path: str | Path | None) -> list[str]:
    """Read raw JSONL lines from a path or packaged defaults."""
    if path is None:
        raw_text = (
            files("draft_guard")
            .joinpath("assets/patterns.jsonl")
            .read_text(encoding="utf-8")
        )
        return raw_text.splitlines()
    return Path(path).read_text(encoding="utf-8").splitlines()


def _parse_entries(lines: Iterable[str]) -> list[PatternEntry]:
    """Parse pattern entries from JSONL lines."""
    entries: list[PatternEntry] = []
    for line_number, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped:
            continue

        try:
            payload = json.loads(stripped)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON on line {line_number}: {exc.msg}") from exc

        if not isinstance(payload, dict):
            raise TypeError(f"Line {line_number} must be a JSON object")

        phrase = payload.get(_PHRASE_FIELD)
        if not isinstance(phrase, str) or not phrase.strip():
            raise TypeError(f"Line {line_number} must contain string '{_PHRASE_FIELD}'")

        severity_raw = payload.get(_SEVERITY_FIELD)
        try:
            severity = Severity(severity_raw)
        except ValueError as exc:
            known = ", ".join(str(s) for s in Severity)
            raise ValueError(
                f"Line {line_number} has unknown severity {severity_raw!r}. "
                f"Known severities: {known}"
            ) from exc

        entries.append(PatternEntry(phrase=phrase.strip().lower(), severity=severity))
    return entries


DEFAULT_PATTERNS = PatternTable.from_jsonl()
