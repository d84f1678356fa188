# src/aclio/coach/service.py

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..core.ports import ChatMessage, LLMClient
from ..errors import LLMResponseError
from ..goals.models import GOAL_CATEGORIES, Goal, Step
from . import prompts

logger = logging.getLogger(__name__)

CHAT_HISTORY_LIMIT = 6

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?", re.IGNORECASE)


def parse_json_payload(text: str) -> Any:
    """
    Parse the JSON object/array a model was asked to return.

    Markdown code fences are stripped and any chatter before the first
    '{' or '[' is skipped; trailing text after the value is ignored.
    """
    cleaned = _FENCE_RE.sub("", text or "").strip()
    starts = [i for i in (cleaned.find("{"), cleaned.find("[")) if i >= 0]
    if not starts:
        raise LLMResponseError("AI response did not contain JSON.")
    try:
        value, _ = json.JSONDecoder().raw_decode(cleaned[min(starts):])
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"AI response was not valid JSON: {e.msg}") from e
    return value


@dataclass(slots=True)
class StepPlan:
    category: str | None
    steps: list[Step]
    map_search: dict[int, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ContextQuestion:
    id: int
    question: str
    placeholder: str = ""


@dataclass(frozen=True, slots=True)
class Resource:
    name: str
    description: str = ""
    type: str | None = None
    url: str | None = None
    cost: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "url": self.url,
            "cost": self.cost,
        }


@dataclass(slots=True)
class ExpandedStep:
    detailed_guide: str = ""
    resources: list[Resource] = field(default_factory=list)
    tips: list[str] = field(default_factory=list)
    search_query: str | None = None

    @property
    def content(self) -> str:
        """Plain-text rendering: guide, then tips, then resources with cost."""
        out = self.detailed_guide
        if self.tips:
            out += "\n\n**Tips:**\n"
            for tip in self.tips:
                out += f"• {tip}\n"
        if self.resources:
            out += "\n**Resources:**\n"
            for r in self.resources:
                out += f"• {r.name}"
                if r.cost:
                    out += f" ({r.cost})"
                out += "\n"
        return out.strip()

    def to_dict(self) -> dict[str, Any]:
        return {
            "detailedGuide": self.detailed_guide,
            "resources": [r.to_dict() for r in self.resources],
            "tips": list(self.tips),
            "searchQuery": self.search_query,
        }


@dataclass(slots=True)
class ChatRequest:
    message: str
    goal_name: str = "General"
    goal_category: str = "Personal"
    steps: list[dict[str, Any]] = field(default_factory=list)
    completed_steps: list[int] = field(default_factory=list)
    chat_history: list[ChatMessage] = field(default_factory=list)
    profile: dict[str, Any] | None = None

    @classmethod
    def for_goal(
            cls,
            message: str,
            goal: Goal | None,
            *,
            chat_history: list[ChatMessage] | None = None,
            profile: dict[str, Any] | None = None,
    ) -> ChatRequest:
        if goal is None:
            return cls(message=message, chat_history=list(chat_history or []), profile=profile)
        return cls(
            message=message,
            goal_name=goal.name,
            goal_category=goal.category or "Personal",
            steps=[s.to_dict() for s in goal.steps],
            completed_steps=list(goal.completed_steps),
            chat_history=list(chat_history or []),
            profile=profile,
        )


def _as_int(raw: Any) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


def _as_text(raw: Any) -> str | None:
    if raw is None or raw == "":
        return None
    return str(raw)


def _parse_steps(raw_steps: Any) -> tuple[list[Step], dict[int, str]]:
    if not isinstance(raw_steps, list):
        raise LLMResponseError("AI response is missing the steps list.")

    items = [s for s in raw_steps if isinstance(s, dict) and str(s.get("title") or "").strip()]
    ids = [_as_int(s.get("id")) for s in items]
    renumber = any(i is None for i in ids) or len(set(ids)) != len(ids)

    steps: list[Step] = []
    map_search: dict[int, str] = {}
    for idx, item in enumerate(items, start=1):
        step_id = idx if renumber else ids[idx - 1]
        duration = item.get("duration")
        steps.append(Step(
            id=step_id,
            title=str(item.get("title")).strip(),
            description=str(item.get("description") or "").strip(),
            duration=str(duration) if duration else None,
        ))
        if item.get("mapSearch"):
            map_search[step_id] = str(item["mapSearch"])
    return steps, map_search


def _normalize_category(raw: Any) -> str | None:
    if not raw:
        return None
    text = str(raw).strip()
    for cat in GOAL_CATEGORIES:
        if cat.lower() == text.lower():
            return cat
    return text


class CoachService:
    """AI coach operations on top of an LLMClient."""

    def __init__(self, llm: LLMClient) -> None:
        self.llm = llm

    def _ask(self, system_prompt: str, user_text: str, *, max_tokens: int) -> str:
        return self.llm.complete([{"role": "user", "content": user_text}], system_prompt, max_tokens=max_tokens)

    # ---- plan ----

    def generate_steps(
            self,
            goal: str,
            *,
            profile: Mapping[str, Any] | None = None,
            location: Mapping[str, Any] | None = None,
            additional_context: str | None = None,
            categories: str | None = None,
    ) -> StepPlan:
        system = prompts.generate_steps_system(profile, location, additional_context, categories)
        raw = parse_json_payload(self._ask(system, prompts.generate_steps_user(goal), max_tokens=8000))

        # Some models answer with the bare steps array.
        if isinstance(raw, list):
            raw = {"steps": raw}
        if not isinstance(raw, dict):
            raise LLMResponseError("AI response is not a step plan.")

        steps, map_search = _parse_steps(raw.get("steps"))
        logger.info("Generated %d steps for goal=%r", len(steps), goal[:60])
        return StepPlan(category=_normalize_category(raw.get("category")), steps=steps, map_search=map_search)

    def generate_questions(self, goal: str) -> list[ContextQuestion]:
        raw = parse_json_payload(self._ask(
            prompts.GENERATE_QUESTIONS_SYSTEM, prompts.generate_questions_user(goal), max_tokens=500,
        ))
        if isinstance(raw, dict) and isinstance(raw.get("questions"), list):
            raw = raw["questions"]
        if not isinstance(raw, list):
            raise LLMResponseError("AI response is not a list of questions.")

        out: list[ContextQuestion] = []
        for idx, item in enumerate(raw, start=1):
            if not isinstance(item, dict) or not item.get("question"):
                continue
            out.append(ContextQuestion(
                id=_as_int(item.get("id")) or idx,
                question=str(item["question"]),
                placeholder=str(item.get("placeholder") or ""),
            ))
        return out

    # ---- step helpers ----

    def expand_step(self, goal_name: str, step: Step) -> ExpandedStep:
        raw = parse_json_payload(self._ask(
            prompts.EXPAND_STEP_SYSTEM,
            prompts.expand_step_user(goal_name, step.title, step.description),
            max_tokens=2000,
        ))
        if not isinstance(raw, dict):
            raise LLMResponseError("AI response is not an expanded step.")

        resources = [
            Resource(
                name=str(r.get("name")),
                description=str(r.get("description") or ""),
                type=_as_text(r.get("type")),
                url=_as_text(r.get("url")),
                cost=_as_text(r.get("cost")),
            )
            for r in raw.get("resources") or []
            if isinstance(r, dict) and r.get("name")
        ]
        return ExpandedStep(
            detailed_guide=str(raw.get("detailedGuide") or ""),
            resources=resources,
            tips=[str(t) for t in raw.get("tips") or [] if t],
            search_query=_as_text(raw.get("searchQuery")),
        )

    def do_it_for_me(self, goal_name: str, step: Step, profile: Mapping[str, Any] | None = None) -> str:
        return self._ask(
            prompts.do_it_for_me_system(profile),
            prompts.do_it_for_me_user(goal_name, step.title, step.description),
            max_tokens=3000,
        ).strip()

    def extend_goal(
            self,
            goal: Goal,
            extension_text: str,
            profile: Mapping[str, Any] | None = None,
    ) -> list[Step]:
        raw = parse_json_payload(self._ask(
            prompts.extend_goal_system(profile),
            prompts.extend_goal_user(goal.name, [s.title for s in goal.steps], extension_text),
            max_tokens=4000,
        ))
        if isinstance(raw, list):
            raw = {"steps": raw}
        if not isinstance(raw, dict):
            raise LLMResponseError("AI response is not a list of steps.")
        steps, _ = _parse_steps(raw.get("steps"))
        return steps

    # ---- chat ----

    def _chat_messages(self, request: ChatRequest) -> tuple[list[ChatMessage], str]:
        history = [
            {"role": m["role"], "content": m["content"]}
            for m in request.chat_history[-CHAT_HISTORY_LIMIT:]
            if m.get("role") in ("user", "assistant") and m.get("content")
        ]
        system = prompts.chat_system(
            request.goal_name,
            request.goal_category,
            request.steps,
            request.completed_steps,
            request.profile,
        )
        return [*history, {"role": "user", "content": request.message}], system

    def talk(self, request: ChatRequest) -> str:
        messages, system = self._chat_messages(request)
        return self.llm.complete(messages, system, max_tokens=1000).strip()

    def stream_talk(self, request: ChatRequest) -> Iterator[str]:
        messages, system = self._chat_messages(request)
        yield from self.llm.stream_chat(messages, system)
