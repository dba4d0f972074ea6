"""Rewriter contract and the OpenAI chat-completions implementation.

The core treats a rewrite as all-or-nothing: ``rewrite`` either returns new
text or raises. Retries, backoff, and the retryable/terminal split live here,
never in the enforcer or the iteration controller.
"""


import asyncio
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from openai import AsyncOpenAI, OpenAIError, RateLimitError

from .patterns import PatternTable
from .prompts import build_system_prompt, build_user_prompt

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewriteRequest:
    """What the enforcer asks the rewriter to change."""

    text: str
    weakness: str
    target_description: str
    domain_tag: str


@dataclass(frozen=True)
class RewriteResult:
    """Successful rewrite plus the resources it consumed."""

    text: str
    units_consumed: int = 0
    generator: str = "unknown"


class RewriteError(Exception):
    """Raised when a rewrite cannot produce new text."""

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class Rewriter(ABC):
    """Narrow interface to an external text generator."""

    @abstractmethod
    async def rewrite(self, request: RewriteRequest) -> RewriteResult:
        """Return rewritten text or raise on failure."""


@dataclass(frozen=True)
class RewriterSettings:
    """Model parameters and rate-limit handling for :class:`OpenAIRewriter`."""

    model: str = "gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 2000
    presence_penalty: float = 0.6
    frequency_penalty: float = 0.8
    max_retries: int = 3
    retry_delay_seconds: float = 2.0
    request_delay_seconds: float = 1.0


class OpenAIRewriter(Rewriter):
    """Rewriter backed by an OpenAI-compatible chat-completions endpoint."""

    def __init__(
        self,
        settings: RewriterSettings | None = None,
        *,
        client: Any | None = None,
        http_client: Any | None = None,
        patterns: PatternTable | None = None,
    ) -> None:
        self.settings = settings or RewriterSettings()
        if client is None:
            # Reads OPENAI_API_KEY from the environment. SDK retries stay off so
            # settings.max_retries is the only bound on rate-limit retries.
            client = AsyncOpenAI(max_retries=0, http_client=http_client)
        self.client = client
        self.patterns = patterns

    async def rewrite(self, request: RewriteRequest) -> RewriteResult:
        """Send one improvement request and return the model's text."""
        messages = [
            {
                "role": "system",
                "content": build_system_prompt(request.domain_tag, self.patterns),
            },
            {
                "role": "user",
                "content": build_user_prompt(
                    request.text,
                    request.weakness,
                    request.target_description,
                    self.patterns,
                ),
            },
        ]
        response = await self._complete_with_backoff(messages)
        await asyncio.sleep(self.settings.request_delay_seconds)

        text = (response.choices[0].message.content or "").strip()
        if not text:
            raise RewriteError("Text improvement failed: model returned no text")
        usage = getattr(response, "usage", None)
        return RewriteResult(
            text=text,
            units_consumed=getattr(usage, "total_tokens", 0) or 0,
            generator=getattr(response, "model", None) or self.settings.model,
        )

    async def _complete_with_backoff(self, messages: list[dict[str, str]]) -> Any:
        """Call the API, retrying only rate-limit failures with linear backoff."""
        retries = 0
        while True:
            try:
                return await self.client.chat.completions.create(
                    model=self.settings.model,
                    messages=messages,
                    temperature=self.settings.temperature,
                    max_tokens=self.settings.max_tokens,
                    presence_penalty=self.settings.presence_penalty,
                    frequency_penalty=self.settings.frequency_penalty,
                )
            except RateLimitError as exc:
                if retries >= self.settings.max_retries:
                    raise RewriteError(
                        f"Text improvement failed: rate limited after {retries} retries",
                        retryable=True,
                    ) from exc
                retries += 1
                delay = self.settings.retry_delay_seconds * retries
                log.warning(
                    "Rate limited; retrying in %.1fs (%d retries left)",
                    delay,
                    self.settings.max_retries - retries,
                )
                await asyncio.sleep(delay)
            except OpenAIError as exc:
                log.error("Rewrite request failed: %s", exc)
                raise RewriteError(f"Text improvement failed: {exc}") from exc


def check_openai_config(environ: Mapping[str, str] | None = None) -> str | None:
    """Return a configuration error message, or ``None`` when usable."""
    env = os.environ if environ is None else environ
    api_key = env.get("OPENAI_API_KEY", "")
    if not api_key:
        return "OPENAI_API_KEY environment variable is not set"
    if not api_key.startswith("sk-"):
        return "OPENAI_API_KEY appears to be invalid (should start with sk-)"
    return None
