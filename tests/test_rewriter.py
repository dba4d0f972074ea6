"""Tests for the OpenAI-backed rewriter and its retry policy."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import httpx
import pytest
from openai import OpenAIError, RateLimitError

from draft_guard import rewriter
from draft_guard.rewriter import (
    OpenAIRewriter,
    RewriteError,
    RewriteRequest,
    RewriterSettings,
    check_openai_config,
)

_FAST = RewriterSettings(retry_delay_seconds=0.0, request_delay_seconds=0.0)
_REQUEST = RewriteRequest(
    text="He felt afraid.",
    weakness="show_vs_tell",
    target_description="Reduce telling from 100.0% to <10%. Show through action.",
    domain_tag="horror",
)


def _rate_limit_error() -> RateLimitError:
    """Build the SDK's 429 error the way the client raises it."""
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(429, request=request)
    return RateLimitError("Rate limit reached", response=response, body=None)


def _completion(content: str | None, total_tokens: int = 42) -> SimpleNamespace:
    """Build a minimal chat-completions response object."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=total_tokens),
        model="gpt-4o-2024-08-06",
    )


class _FakeCompletions:
    """Replays queued completion results or errors."""

    def __init__(self, outcomes: list[object]) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[dict[str, object]] = []

    async def create(self, **kwargs: object) -> object:
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(*outcomes: object) -> SimpleNamespace:
    """Build an object shaped like ``AsyncOpenAI`` for the parts in use."""
    return SimpleNamespace(chat=SimpleNamespace(completions=_FakeCompletions(list(outcomes))))


def test_rewrite_returns_text_usage_and_model() -> None:
    """A successful completion yields stripped text plus usage metadata."""
    client = _client(_completion("  Her hands shook.  "))
    result = asyncio.run(OpenAIRewriter(_FAST, client=client).rewrite(_REQUEST))

    assert result.text == "Her hands shook."
    assert result.units_consumed == 42
    assert result.generator == "gpt-4o-2024-08-06"

    (call,) = client.chat.completions.calls
    assert call["model"] == "gpt-4o"
    assert call["temperature"] == 0.7
    assert call["max_tokens"] == 2000
    system, user = call["messages"]
    assert system["role"] == "system"
    assert "GENRE CONVENTIONS (HORROR)" in system["content"]
    assert user["role"] == "user"
    assert "TARGET METRIC: Reduce telling from 100.0%" in user["content"]
    assert "ORIGINAL TEXT:\nHe felt afraid." in user["content"]


def test_rate_limits_are_retried_with_linear_backoff(monkeypatch: pytest.MonkeyPatch) -> None:
    """Each retry waits retry_delay * attempt; success still pays the request delay."""
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    monkeypatch.setattr(rewriter.asyncio, "sleep", fake_sleep)
    client = _client(_rate_limit_error(), _rate_limit_error(), _completion("Done."))

    result = asyncio.run(OpenAIRewriter(client=client).rewrite(_REQUEST))

    assert result.text == "Done."
    assert len(client.chat.completions.calls) == 3
    assert delays == [2.0, 4.0, 1.0]


def test_rate_limit_retries_are_bounded() -> None:
    """After max_retries the failure is surfaced as retryable."""
    client = _client(*[_rate_limit_error() for _ in range(4)])

    with pytest.raises(RewriteError) as raised:
        asyncio.run(OpenAIRewriter(_FAST, client=client).rewrite(_REQUEST))

    assert raised.value.retryable is True
    assert len(client.chat.completions.calls) == 4


def test_other_api_errors_fail_immediately() -> None:
    """Non rate-limit API errors are terminal and never retried."""
    client = _client(OpenAIError("invalid api key"))

    with pytest.raises(RewriteError, match="invalid api key") as raised:
        asyncio.run(OpenAIRewriter(_FAST, client=client).rewrite(_REQUEST))

    assert raised.value.retryable is False
    assert len(client.chat.completions.calls) == 1


@pytest.mark.parametrize("content", [None, "", "   "])
def test_empty_completion_is_a_failure(content: str | None) -> None:
    """A completion without text cannot stand in for the draft."""
    client = _client(_completion(content))

    with pytest.raises(RewriteError, match="no text"):
        asyncio.run(OpenAIRewriter(_FAST, client=client).rewrite(_REQUEST))


@pytest.mark.parametrize(
    ("environ", "expected"),
    [
        ({}, "OPENAI_API_KEY environment variable is not set"),
        ({"OPENAI_API_KEY": "abc123"}, "OPENAI_API_KEY appears to be invalid (should start with sk-)"),
        ({"OPENAI_API_KEY": "sk-test"}, None),
    ],
)
def test_check_openai_config(environ: dict[str, str], expected: str | None) -> None:
    """The key must be present and look like an OpenAI secret key."""
    assert check_openai_config(environ) == expected


def test_sdk_retries_do_not_multiply_rate_limit_retries(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """With max_retries=3 a permanently rate-limited endpoint sees 4 requests."""
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            429,
            json={"error": {"message": "Rate limit reached", "type": "requests"}},
        )

    async def run() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            writer = OpenAIRewriter(_FAST, http_client=http_client)
            await writer.rewrite(_REQUEST)

    with pytest.raises(RewriteError, match="rate limited after 3 retries") as raised:
        asyncio.run(run())

    assert raised.value.retryable is True
    assert len(requests) == 4
