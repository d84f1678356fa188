# tests/test_llm_client.py

from __future__ import annotations

import dataclasses
from types import SimpleNamespace
from typing import Any

import httpx
import openai
import pytest

from aclio.config import Settings
from aclio.errors import LLMError, LLMNotConfiguredError, LLMRateLimitedError
from aclio.llm import client as client_mod
from aclio.llm.client import OpenAICompatibleLLMClient, friendly_llm_error_message
from aclio.llm.offline import OfflineLLMClient


def _status_error(cls: type[openai.APIStatusError], status: int) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
    return cls("error", response=httpx.Response(status, request=request), body=None)


def _completion(text: str) -> Any:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def _chunk(text: str | None) -> Any:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


class FakeCompletions:
    """Per-model scripted outcomes: a string, a list of chunk texts, or an exception."""

    def __init__(self, outcomes: dict[str, Any]) -> None:
        self.outcomes = outcomes
        self.calls: list[dict[str, Any]] = []

    def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        outcome = self.outcomes[kwargs["model"]]
        if isinstance(outcome, Exception):
            raise outcome
        if kwargs.get("stream"):
            return iter([_chunk(t) for t in outcome])
        return _completion(outcome)


def _client(settings: Settings, outcomes: dict[str, Any]) -> tuple[OpenAICompatibleLLMClient, FakeCompletions]:
    completions = FakeCompletions(outcomes)
    sdk = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAICompatibleLLMClient(settings, client=sdk), completions


@pytest.fixture(autouse=True)
def _fresh_model_parking(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(client_mod, "_BAD_MODELS", {})


def test_complete_uses_first_model(settings: Settings) -> None:
    llm, completions = _client(settings, {"model-a": "hello", "model-b": "unused"})

    assert llm.complete([{"role": "user", "content": "hi"}], "system", max_tokens=500) == "hello"
    call = completions.calls[0]
    assert call["model"] == "model-a"
    assert call["max_tokens"] == 500
    assert call["messages"][0] == {"role": "system", "content": "system"}


def test_complete_falls_back_and_parks_missing_model(settings: Settings) -> None:
    llm, completions = _client(settings, {
        "model-a": _status_error(openai.NotFoundError, 404),
        "model-b": "from b",
    })

    assert llm.complete([], "system") == "from b"
    assert llm.complete([], "system") == "from b"
    assert [c["model"] for c in completions.calls] == ["model-a", "model-b", "model-b"]


def test_complete_empty_reply_tries_next(settings: Settings) -> None:
    llm, _ = _client(settings, {"model-a": "   ", "model-b": "real"})
    assert llm.complete([], "system") == "real"


def test_rate_limit_on_all_models(settings: Settings) -> None:
    err = _status_error(openai.RateLimitError, 429)
    llm, _ = _client(settings, {"model-a": err, "model-b": err})
    with pytest.raises(LLMRateLimitedError):
        llm.complete([], "system")


def test_auth_error_fails_fast(settings: Settings) -> None:
    llm, completions = _client(settings, {
        "model-a": _status_error(openai.AuthenticationError, 401),
        "model-b": "unused",
    })
    with pytest.raises(LLMNotConfiguredError):
        llm.complete([], "system")
    assert len(completions.calls) == 1


def test_missing_key_is_reported(settings: Settings) -> None:
    llm = OpenAICompatibleLLMClient(dataclasses.replace(settings, llm_api_key=None))
    with pytest.raises(LLMNotConfiguredError):
        llm.complete([], "system")


def test_stream_skips_empty_chunks(settings: Settings) -> None:
    llm, _ = _client(settings, {"model-a": ["Hel", None, "", "lo"], "model-b": ["unused"]})
    assert list(llm.stream_chat([], "system")) == ["Hel", "lo"]


def test_stream_falls_back_when_model_is_silent(settings: Settings) -> None:
    llm, completions = _client(settings, {"model-a": [None], "model-b": ["from b"]})
    assert list(llm.stream_chat([], "system")) == ["from b"]
    assert all(c["stream"] for c in completions.calls)


def test_stream_all_models_fail(settings: Settings) -> None:
    llm, _ = _client(settings, {"model-a": [], "model-b": []})
    with pytest.raises(LLMError, match="All LLM models failed"):
        list(llm.stream_chat([], "system"))


def test_friendly_messages() -> None:
    assert "missing API key" in friendly_llm_error_message(LLMNotConfiguredError("x"))
    assert "busy" in friendly_llm_error_message(LLMRateLimitedError("x"))
    assert friendly_llm_error_message(LLMError("")) == "AI service error."


def test_offline_client_answers_by_prompt() -> None:
    llm = OfflineLLMClient()
    assert '"steps"' in llm.complete([], "creates step-by-step action plans")
    assert "You said: hello" in "".join(llm.stream_chat([{"role": "user", "content": "hello"}], "chat"))
