"""
Unit tests for the completion provider and retry policy
"""
from unittest.mock import MagicMock, patch

import httpx
import pytest
from openai import APIConnectionError, BadRequestError, InternalServerError

from studyguide.services.llm import (
    OpenAICompletionProvider,
    RetryPolicy,
    get_completion_provider,
    is_transient,
)


def _request():
    return httpx.Request("POST", "http://localhost:11434/v1/chat/completions")


def _status_error(cls, status):
    response = httpx.Response(status, request=_request())
    return cls("boom", response=response, body=None)


class TestTransientErrors:
    def test_classification(self):
        """Connection problems and 5xx are transient, 4xx are not"""
        assert is_transient(APIConnectionError(request=_request()))
        assert is_transient(_status_error(InternalServerError, 503))
        assert not is_transient(_status_error(BadRequestError, 400))
        assert not is_transient(ValueError("bad"))


class TestRetryPolicy:
    def test_returns_first_success(self):
        """No retry when the call succeeds"""
        policy = RetryPolicy(max_retries=2, base_delay=1.0, sleep=MagicMock())
        assert policy.call(lambda: "ok") == "ok"
        policy.sleep.assert_not_called()

    def test_exponential_backoff(self):
        """Transient failures are retried with doubling delays"""
        sleep = MagicMock()
        fn = MagicMock(side_effect=[APIConnectionError(request=_request()), _status_error(InternalServerError, 500), "done"])
        policy = RetryPolicy(max_retries=2, base_delay=0.5, sleep=sleep)
        assert policy.call(fn, context="sections") == "done"
        assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0]

    def test_gives_up_after_max_retries(self):
        """The last transient error propagates"""
        fn = MagicMock(side_effect=APIConnectionError(request=_request()))
        policy = RetryPolicy(max_retries=2, base_delay=0.0, sleep=lambda _: None)
        with pytest.raises(APIConnectionError):
            policy.call(fn)
        assert fn.call_count == 3

    def test_permanent_errors_not_retried(self):
        """Client errors fail immediately"""
        fn = MagicMock(side_effect=_status_error(BadRequestError, 400))
        policy = RetryPolicy(max_retries=3, base_delay=0.0, sleep=lambda _: None)
        with pytest.raises(BadRequestError):
            policy.call(fn)
        assert fn.call_count == 1

    def test_from_env(self, monkeypatch):
        """Retry settings come from the environment"""
        monkeypatch.setenv("LLM_MAX_RETRIES", "5")
        monkeypatch.setenv("LLM_RETRY_BASE_DELAY", "0.25")
        policy = RetryPolicy.from_env()
        assert policy.max_retries == 5
        assert policy.base_delay == 0.25


class TestOpenAICompletionProvider:
    def test_complete_uses_chat_completions(self):
        """The prompt is sent as a single user message"""
        client = MagicMock()
        client.chat.completions.create.return_value.choices = [
            MagicMock(message=MagicMock(content='[{"term": "Cell"}]'))
        ]
        provider = OpenAICompletionProvider(model="llama3.1:8b", api_key="ollama", client=client)

        assert provider.complete("Extract concepts", temperature=0.3, max_tokens=100) == '[{"term": "Cell"}]'
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "llama3.1:8b"
        assert kwargs["messages"] == [{"role": "user", "content": "Extract concepts"}]
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 100

    def test_empty_content(self):
        """A missing message body is an empty string"""
        client = MagicMock()
        client.chat.completions.create.return_value.choices = [MagicMock(message=MagicMock(content=None))]
        provider = OpenAICompletionProvider(model="m", api_key="k", client=client)
        assert provider.complete("x") == ""


class TestProviderFactory:
    def test_unconfigured(self):
        """No endpoint and no key means no provider"""
        assert get_completion_provider() is None

    def test_ollama_base_url(self, monkeypatch):
        """A base URL alone is enough; model defaults to llama3.1:8b"""
        monkeypatch.setenv("LLM_BASE_URL", "http://localhost:11434/v1")
        with patch("studyguide.services.llm.OpenAI") as openai_cls:
            provider = get_completion_provider()
        assert provider.model == "llama3.1:8b"
        kwargs = openai_cls.call_args.kwargs
        assert kwargs["base_url"] == "http://localhost:11434/v1"
        assert kwargs["api_key"] == "ollama"
        assert kwargs["max_retries"] == 0

    def test_openai_key(self, monkeypatch):
        """An API key alone targets the default endpoint"""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("LLM_MODEL", "gpt-4o-mini")
        with patch("studyguide.services.llm.OpenAI") as openai_cls:
            provider = get_completion_provider()
        assert provider.model == "gpt-4o-mini"
        assert openai_cls.call_args.kwargs["api_key"] == "sk-test"
        assert openai_cls.call_args.kwargs["base_url"] is None
