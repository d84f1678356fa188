# src/aclio/llm/client.py

from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterable, Iterator
from typing import Any

import httpx
import openai
from openai import OpenAI

from ..config import Settings
from ..core.ports import ChatMessage
from ..errors import LLMConnectionError, LLMError, LLMNotConfiguredError, LLMRateLimitedError

logger = logging.getLogger(__name__)

# model -> retry_at (monotonic), shared by all clients in the process
_BAD_MODELS: dict[str, float] = {}
_BAD_MODEL_PARK_SECONDS = 3600.0


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _timeouts_from_env() -> dict[str, float]:
    """
    Timeouts are configurable via env so a slow model cannot hang a request.

    - connect timeout: 5s
    - read timeout: 60s (step generation with many tokens is slow)
    - first token timeout: 20s (streams only)
    """
    first_token = _env_float("ACLIO_LLM_FIRST_TOKEN_TIMEOUT_SECONDS", 20.0)
    read_timeout = _env_float("ACLIO_LLM_READ_TIMEOUT_SECONDS", 60.0)
    connect_timeout = _env_float("ACLIO_LLM_CONNECT_TIMEOUT_SECONDS", 5.0)

    # keep read >= first_token as a sane baseline
    read_timeout = max(read_timeout, first_token)

    return {
        "first_token": first_token,
        "read": read_timeout,
        "connect": connect_timeout,
    }


def _is_auth_error(exc: Exception) -> bool:
    return isinstance(exc, openai.AuthenticationError | openai.PermissionDeniedError)


def _is_rate_limit_error(exc: Exception) -> bool:
    return isinstance(exc, openai.RateLimitError)


def _is_connection_error(exc: Exception) -> bool:
    return isinstance(exc, openai.APIConnectionError | httpx.TimeoutException | TimeoutError)


def _is_not_found_error(exc: Exception) -> bool:
    return isinstance(exc, openai.NotFoundError)


def friendly_llm_error_message(err: Exception) -> str:
    if isinstance(err, LLMNotConfiguredError):
        return "AI is not configured (missing API key). Set ACLIO_LLM_API_KEY or GROQ_API_KEY in .env."
    if isinstance(err, LLMRateLimitedError):
        return "The AI service is busy right now. Please wait a moment and try again."
    if isinstance(err, LLMConnectionError):
        return "Could not reach the AI service. Check your connection and try again."
    return str(err).strip() or "AI service error."


def _close_stream(stream: Any) -> None:
    close = getattr(stream, "close", None)
    if callable(close):
        try:
            close()
        except (httpx.HTTPError, OSError):
            logger.debug("Ignoring error while closing LLM stream.", exc_info=True)


def _delta_content(chunk: Any) -> str | None:
    choices = getattr(chunk, "choices", None) or []
    if not choices:
        return None
    delta = getattr(choices[0], "delta", None)
    return getattr(delta, "content", None) if delta is not None else None


class OpenAICompatibleLLMClient:
    """
    Chat completions against an OpenAI-compatible endpoint (Groq by default).

    Behavior for both streaming and one-shot calls:
    - Tries models in the configured order.
    - 404 (model not available) -> model parked for an hour, try next.
    - Rate limit / network issues -> try next.
    - Auth issues -> fail fast (no retries across models).
    Streams additionally abort a model that produces no content within the
    first-token timeout.
    """

    def __init__(self, settings: Settings, *, client: OpenAI | None = None) -> None:
        self.settings = settings
        self.models: list[str] = [m.strip() for m in settings.llm_models if m and m.strip()]
        self.temperature = settings.llm_temperature
        self._timeouts = _timeouts_from_env()
        self._client = client

    # ---- setup ----

    def _timeout_obj(self) -> httpx.Timeout:
        t = self._timeouts
        return httpx.Timeout(connect=t["connect"], read=t["read"], write=10.0, pool=t["connect"])

    def _get_client(self) -> OpenAI:
        """
        Lazily create the SDK client.

        No secrets required at construction; automatic SDK retries are disabled
        so fallback across models stays quick.
        """
        if self._client is not None:
            return self._client

        if not self.settings.llm_configured:
            raise LLMNotConfiguredError("LLM API key is not set.")
        if not self.settings.llm_base_url.strip():
            raise LLMNotConfiguredError("LLM base URL is not set.")

        self._client = OpenAI(
            base_url=self.settings.llm_base_url,
            api_key=str(self.settings.llm_api_key),
            timeout=self._timeout_obj(),
            max_retries=0,
        )
        return self._client

    def _candidate_models(self) -> list[str]:
        if not self.models:
            raise LLMNotConfiguredError("LLM model list is empty.")
        now = time.monotonic()
        return [m for m in self.models if _BAD_MODELS.get(m, 0.0) <= now]

    @staticmethod
    def _final_error(last_error: Exception | None) -> LLMError:
        if last_error is not None:
            if _is_rate_limit_error(last_error):
                return LLMRateLimitedError("LLM is rate-limited. Try again later.")
            if _is_connection_error(last_error):
                return LLMConnectionError("LLM network/timeout error. Try again later or change models.")
        return LLMError("All LLM models failed.")

    def _handle_model_error(self, model: str, e: Exception) -> None:
        """Log/park a failing model; raise when retrying other models makes no sense."""
        if _is_auth_error(e):
            raise LLMNotConfiguredError("LLM authentication failed. Check your API key.") from e
        if _is_not_found_error(e):
            _BAD_MODELS[model] = time.monotonic() + _BAD_MODEL_PARK_SECONDS
            logger.info("LLM: model not available (404): %s", model)
        elif _is_rate_limit_error(e):
            logger.info("LLM: rate-limited on model=%s, trying next", model)
        elif _is_connection_error(e):
            logger.info("LLM: network/timeout error on model=%s, trying next", model)
        else:
            logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)

    # ---- one-shot ----

    def complete(
            self,
            messages: list[ChatMessage],
            system_prompt: str,
            *,
            max_tokens: int = 2000,
    ) -> str:
        client = self._get_client()
        last_error: Exception | None = None

        for model in self._candidate_models():
            t0 = time.monotonic()
            try:
                resp = client.chat.completions.create(
                    model=model,
                    messages=[{"role": "system", "content": system_prompt}, *messages],
                    temperature=self.temperature,
                    max_tokens=max_tokens,
                )
            except openai.OpenAIError as e:
                last_error = e
                self._handle_model_error(model, e)
                continue

            content = (resp.choices[0].message.content or "") if resp.choices else ""
            if content.strip():
                logger.info("LLM: completion from model=%s (%.2fs)", model, time.monotonic() - t0)
                return content
            last_error = LLMError(f"Model returned no content: {model}")

        raise self._final_error(last_error) from last_error

    # ---- streaming ----

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        return self._stream(messages, system_prompt)

    def _stream(self, messages: list[ChatMessage], system_prompt: str) -> Iterator[str]:
        client = self._get_client()
        first_token_timeout = self._timeouts["first_token"]
        last_error: Exception | None = None

        for model in self._candidate_models():
            logger.info(
                "LLM: trying model=%s (first_token_timeout=%.1fs, read_timeout=%.1fs)",
                model,
                first_token_timeout,
                self._timeouts["read"],
            )
            t0 = time.monotonic()
            deadline = t0 + first_token_timeout
            stream = None
            used_any = False

            try:
                stream = client.chat.completions.create(
                    model=model,
                    stream=True,
                    messages=[{"role": "system", "content": system_prompt}, *messages],
                    temperature=self.temperature,
                )

                for chunk in stream:
                    # Chunks without content still count against the first-token deadline.
                    if not used_any and time.monotonic() > deadline:
                        last_error = TimeoutError(f"First token timeout on model: {model}")
                        logger.info("LLM: first token timeout on model=%s -> trying next", model)
                        break

                    content = _delta_content(chunk)
                    if content:
                        if not used_any:
                            logger.info("LLM: first token from model=%s (%.2fs)", model, time.monotonic() - t0)
                        used_any = True
                        yield content

                if used_any:
                    logger.debug("LLM: completed with model=%s", model)
                    return

                if last_error is None:
                    last_error = LLMError(f"Model returned no content: {model}")

            except openai.OpenAIError as e:
                if used_any:
                    # Partial output already reached the caller; switching models would garble it.
                    raise LLMConnectionError("LLM stream interrupted.") from e
                last_error = e
                self._handle_model_error(model, e)
                continue

            finally:
                if stream is not None:
                    _close_stream(stream)

        raise self._final_error(last_error) from last_error
