# src/aclio/llm/offline.py

from __future__ import annotations

import json
from collections.abc import Iterable

from ..core.ports import ChatMessage


def _last_user_text(messages: list[ChatMessage]) -> str:
    for m in reversed(messages):
        if m.get("role") == "user":
            return m.get("content", "")
    return ""


_DEMO_STEPS = [
    {"id": 1, "title": "Write down your goal",
     "description": "Open a notes app and write your goal in one sentence, plus why it matters to you.",
     "duration": "5 mins"},
    {"id": 2, "title": "Pick a first tiny action",
     "description": "Choose one action you can finish in 15 minutes today and put it in your calendar.",
     "duration": "10 mins"},
    {"id": 3, "title": "Do the first action",
     "description": "Set a timer for 15 minutes and complete the action you picked. Nothing else.",
     "duration": "15 mins"},
]


class OfflineLLMClient:
    """
    Offline deterministic LLM client used for demos when no external API is configured.

    Behavior (decided by the system prompt):
    - step plan prompts -> a small JSON plan
    - context question prompts -> a JSON array of 3 questions
    - expand step prompts -> a JSON guide
    - goal extension prompts -> a JSON object with steps
    - anything else -> a friendly offline text reply
    """

    def _reply(self, messages: list[ChatMessage], system_prompt: str) -> str:
        sp = (system_prompt or "").lower()

        if "action plans" in sp:
            return json.dumps({"category": "Personal Growth", "steps": _DEMO_STEPS})

        if "gather context" in sp:
            return json.dumps([
                {"id": 1, "question": "What is your current level?", "placeholder": "Complete beginner"},
                {"id": 2, "question": "How much time per week?", "placeholder": "3 hours"},
                {"id": 3, "question": "When do you want to finish?", "placeholder": "In 3 months"},
            ])

        if "detailedguide" in sp:
            return json.dumps({
                "detailedGuide": "Offline demo mode: break this step into a 15 minute block and start now.",
                "resources": [],
                "tips": ["Start small", "Remove distractions"],
                "searchQuery": _last_user_text(messages)[:80],
            })

        if "extend" in sp and "steps" in sp:
            return json.dumps({"steps": [
                {"id": 1, "title": "Review your progress",
                 "description": "List what you have finished so far and what felt hardest.",
                 "duration": "10 mins"},
            ]})

        return (
            "Offline demo mode: no external LLM is configured.\n"
            "Set ACLIO_LLM_API_KEY (or GROQ_API_KEY) to enable real responses.\n\n"
            f"You said: {_last_user_text(messages)}"
        )

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        yield self._reply(messages, system_prompt)

    def complete(
            self,
            messages: list[ChatMessage],
            system_prompt: str,
            *,
            max_tokens: int = 2000,
    ) -> str:
        return self._reply(messages, system_prompt)
