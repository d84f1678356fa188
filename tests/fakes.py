# tests/fakes.py

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from aclio.core.ports import ChatMessage

PLAN_JSON = json.dumps({
    "category": "Health & Fitness",
    "steps": [
        {"id": 1, "title": "Buy running shoes", "description": "Visit a store.", "duration": "1 hour",
         "mapSearch": "running shoe store"},
        {"id": 2, "title": "Run 1 km", "description": "Easy pace.", "duration": "15 mins"},
        {"id": 3, "title": "Run 3 km", "description": "Keep breathing steady.", "duration": "25 mins"},
    ],
})

QUESTIONS_JSON = json.dumps([
    {"id": 1, "question": "How fit are you now?", "placeholder": "I walk daily"},
    {"id": 2, "question": "How many days per week?", "placeholder": "3"},
    {"id": 3, "question": "Any injuries?", "placeholder": "None"},
])

EXPAND_JSON = json.dumps({
    "detailedGuide": "Go to a running store and ask for a gait analysis.",
    "resources": [{"name": "Runner's World", "description": "Guides", "type": "website",
                   "url": "https://www.runnersworld.com", "cost": "Free"}],
    "tips": ["Try shoes in the afternoon", "Bring your socks"],
    "searchQuery": "running shoe store",
})

EXTEND_JSON = json.dumps({"steps": [
    {"id": 1, "title": "Run 5 km", "description": "Slow and steady.", "duration": "35 mins"},
    {"id": 2, "title": "Sign up for a race", "description": "Pick a local 5k.", "duration": "10 mins"},
]})

# Keyed by a phrase from each system prompt.
DEFAULT_REPLIES: dict[str, str] = {
    "action plans": PLAN_JSON,
    "gather context": QUESTIONS_JSON,
    "detailedguide": EXPAND_JSON,
    "extend it with new steps": EXTEND_JSON,
}


class FakeLLMClient:
    """
    Deterministic LLM client for unit tests.

    - Captures calls for assertions
    - Picks a canned reply by a phrase in the system prompt, else `default`
    - stream_chat yields `chunks` (or the reply as a single chunk)
    - raises `error` from both methods when set
    """

    def __init__(
        self,
        default: str = "ok",
        *,
        replies: dict[str, str] | None = None,
        chunks: list[str] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.default = default
        self.replies = dict(DEFAULT_REPLIES if replies is None else replies)
        self.chunks = chunks
        self.error = error
        self.calls: list[tuple[list[ChatMessage], str]] = []
        self.max_tokens: list[int] = []

    def _reply(self, system_prompt: str) -> str:
        sp = system_prompt.lower()
        for phrase, reply in self.replies.items():
            if phrase in sp:
                return reply
        return self.default

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        self.calls.append((messages, system_prompt))
        if self.error is not None:
            raise self.error
        yield from (self.chunks if self.chunks is not None else [self._reply(system_prompt)])

    def complete(self, messages: list[ChatMessage], system_prompt: str, *, max_tokens: int = 2000) -> str:
        self.calls.append((messages, system_prompt))
        self.max_tokens.append(max_tokens)
        if self.error is not None:
            raise self.error
        return self._reply(system_prompt)


@dataclass(slots=True)
class FakeClock:
    """Injectable "today" for storage; advance() moves it forward by days."""

    current: date = date(2025, 3, 10)

    def __call__(self) -> date:
        return self.current

    def advance(self, days: int = 1) -> None:
        self.current = self.current + timedelta(days=days)


@dataclass(slots=True)
class RecordingExecutor:
    """Offline queue executor that records operations and fails the ones listed in `fail_ids`."""

    executed: list[Any] = field(default_factory=list)
    fail_ids: set[str] = field(default_factory=set)

    async def __call__(self, op: Any) -> None:
        if op.id in self.fail_ids:
            raise ConnectionError("still offline")
        self.executed.append(op)
