"""Tests for rewrite prompt rendering."""

from __future__ import annotations

from draft_guard.patterns import DEFAULT_PATTERNS, PatternEntry, PatternTable, Severity
from draft_guard.prompts import (
    GENRE_GUIDELINES,
    build_system_prompt,
    build_user_prompt,
    genre_guidelines,
)


def test_unknown_genre_falls_back_to_thriller() -> None:
    """Genres without guidelines reuse the thriller conventions."""
    assert genre_guidelines("Space Western") == GENRE_GUIDELINES["thriller"]
    assert genre_guidelines("  Romance ") == GENRE_GUIDELINES["romance"]


def test_system_prompt_lists_leading_forbidden_phrases() -> None:
    """The standing prompt names the first twenty table phrases and the genre."""
    prompt = build_system_prompt("mystery")
    phrases = DEFAULT_PATTERNS.phrases()

    assert ", ".join(phrases[:20]) in prompt
    assert phrases[20] not in prompt
    assert "GENRE CONVENTIONS (MYSTERY)" in prompt
    assert GENRE_GUIDELINES["mystery"] in prompt


def test_pattern_prompt_forbids_every_table_phrase() -> None:
    """The pattern-elimination request lists the whole configured table."""
    table = PatternTable(
        [
            PatternEntry(phrase="suddenly", severity=Severity.LOW),
            PatternEntry(phrase="in the blink of an eye", severity=Severity.MEDIUM),
        ]
    )

    prompt = build_user_prompt("Text.", "ai_patterns", "Eliminate all 1 AI patterns.", table)

    assert "suddenly, in the blink of an eye" in prompt
    assert "{forbidden}" not in prompt
    assert prompt.endswith("IMPROVED TEXT (maintain exact plot/meaning, improve style only):")


def test_unknown_weakness_uses_show_dont_tell() -> None:
    """Unmapped weakness tags fall back to the show-don't-tell instruction."""
    prompt = build_user_prompt("Text.", "mystery_weakness", "Improve it.")

    assert prompt.startswith("TASK: Show, don't tell.")
    assert "TARGET METRIC: Improve it." in prompt
