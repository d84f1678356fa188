# src/aclio/server/schemas.py

"""
Pydantic request/response models for the HTTP backend.

Field names are snake_case in Python and camelCase on the wire, matching what
the mobile and web clients send.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============ Request Schemas ============

class StepIn(CamelModel):
    id: int | None = None
    title: str = ""
    description: str = ""
    duration: str | None = None


class GenerateStepsRequest(CamelModel):
    goal: str | None = None
    profile: dict[str, Any] | None = None
    location: dict[str, Any] | None = None
    additional_context: str | None = None
    categories: str | None = None


class GenerateQuestionsRequest(CamelModel):
    goal: str | None = None
    profile: dict[str, Any] | None = None


class StepActionRequest(CamelModel):
    """Body of expand-step and do-it-for-me; clients send either goalName or goal."""

    goal_name: str | None = None
    goal: str | dict[str, Any] | None = None
    step: StepIn | None = None
    profile: dict[str, Any] | None = None

    def resolved_goal_name(self) -> str:
        if self.goal_name:
            return self.goal_name
        if isinstance(self.goal, dict):
            return str(self.goal.get("name") or "")
        return self.goal or ""


class ExtendGoalRequest(CamelModel):
    goal_name: str | None = None
    goal: str | None = None
    steps: list[StepIn] = Field(default_factory=list)
    extension: str | None = None
    profile: dict[str, Any] | None = None


class ChatHistoryItem(CamelModel):
    role: str
    content: str


class TalkRequest(CamelModel):
    message: str | None = None
    goal_name: str = "General"
    goal_category: str = "Personal"
    steps: list[StepIn] = Field(default_factory=list)
    completed_steps: list[int] = Field(default_factory=list)
    chat_history: list[ChatHistoryItem] = Field(default_factory=list)
    profile: dict[str, Any] | None = None


# ============ Response Schemas ============

class StepOut(CamelModel):
    id: int
    title: str
    description: str
    duration: str | None = None
    map_search: str | None = None


class GenerateStepsResponse(CamelModel):
    category: str | None = None
    steps: list[StepOut]


class QuestionOut(CamelModel):
    id: int
    question: str
    placeholder: str = ""


class GenerateQuestionsResponse(CamelModel):
    questions: list[QuestionOut]


class ResourceOut(CamelModel):
    name: str
    description: str = ""
    type: str | None = None
    url: str | None = None
    cost: str | None = None


class ExpandStepResponse(CamelModel):
    detailed_guide: str
    resources: list[ResourceOut]
    tips: list[str]
    search_query: str | None = None


class DoItForMeResponse(CamelModel):
    result: str


class ExtendGoalResponse(CamelModel):
    steps: list[StepOut]


class TalkResponse(CamelModel):
    response: str


class HealthResponse(CamelModel):
    status: str
    timestamp: str
    api_key_configured: bool
