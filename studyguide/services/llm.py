"""
Completion provider for an OpenAI-compatible chat endpoint, plus the
retry policy wrapped around each call.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import structlog
from openai import APIConnectionError, APIStatusError, OpenAI, RateLimitError

from studyguide import config

logger = structlog.get_logger(__name__)


class CompletionProvider(Protocol):
    def complete(self, prompt: str, *, temperature: float = 0.4, max_tokens: int = 4096) -> str:
        ...


class OpenAICompletionProvider:
    """Chat completions against OpenAI or a local Ollama ``/v1`` endpoint."""

    def __init__(
        self,
        model: str,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        client: Optional[OpenAI] = None,
    ):
        self.model = model
        # Retries are owned by RetryPolicy
        self.client = client or OpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0
        )

    def complete(self, prompt: str, *, temperature: float = 0.4, max_tokens: int = 4096) -> str:
        rsp = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return rsp.choices[0].message.content or ""


def is_transient(error: Exception) -> bool:
    if isinstance(error, (APIConnectionError, RateLimitError)):
        return True
    return isinstance(error, APIStatusError) and error.status_code >= 500


@dataclass
class RetryPolicy:
    """Exponential backoff for transient provider failures: base, 2*base, 4*base ..."""
    max_retries: int = 2
    base_delay: float = 1.0
    sleep: Callable[[float], None] = time.sleep

    @classmethod
    def from_env(cls) -> "RetryPolicy":
        return cls(max_retries=config.llm_max_retries(), base_delay=config.llm_retry_base_delay())

    def call(self, fn: Callable[[], str], context: str = "completion") -> str:
        attempt = 0
        while True:
            try:
                return fn()
            except Exception as e:
                if not is_transient(e) or attempt >= self.max_retries:
                    raise
                wait_time = self.base_delay * (2 ** attempt)
                attempt += 1
                logger.warning(
                    "llm_retry",
                    context=context,
                    error=type(e).__name__,
                    attempt=attempt,
                    max_retries=self.max_retries,
                    wait_seconds=wait_time,
                )
                self.sleep(wait_time)


def get_completion_provider() -> Optional[CompletionProvider]:
    """Provider from environment settings, or None when no endpoint is configured."""
    if not config.llm_configured():
        return None
    provider = OpenAICompletionProvider(
        model=config.llm_model(),
        api_key=config.llm_api_key(),
        base_url=config.llm_base_url(),
        timeout=config.llm_timeout(),
    )
    logger.info("llm_provider_configured", model=provider.model, base_url=config.llm_base_url())
    return provider
