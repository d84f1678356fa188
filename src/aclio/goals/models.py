# src/aclio/goals/models.py

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Any

GOAL_ICON_KEYS: tuple[str, ...] = (
    "target", "fitness", "book", "dollar", "palette", "rocket",
    "run", "music", "code", "plane", "home", "heart", "brain", "pencil",
)

GOAL_CATEGORIES: tuple[str, ...] = (
    "Health & Fitness",
    "Career",
    "Education",
    "Finance",
    "Creative",
    "Personal Growth",
    "Relationships",
    "Travel",
    "Home & Living",
    "Technology",
)


_last_goal_id = 0


def new_goal_id() -> int:
    """Goal ids are epoch milliseconds, like the clients generate them, bumped to stay unique within a process."""
    global _last_goal_id
    candidate = int(time.time() * 1000)
    if candidate <= _last_goal_id:
        candidate = _last_goal_id + 1
    _last_goal_id = candidate
    return candidate


@dataclass(frozen=True, slots=True)
class IconColor:
    name: str
    primary: str
    secondary: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "primary": self.primary, "secondary": self.secondary}

    @classmethod
    def from_dict(cls, raw: Any) -> IconColor:
        if not isinstance(raw, dict):
            return ICON_COLOR_OPTIONS[0]
        return cls(
            name=str(raw.get("name") or ICON_COLOR_OPTIONS[0].name),
            primary=str(raw.get("primary") or ICON_COLOR_OPTIONS[0].primary),
            secondary=str(raw.get("secondary") or ICON_COLOR_OPTIONS[0].secondary),
        )


ICON_COLOR_OPTIONS: tuple[IconColor, ...] = (
    IconColor("Orange", "#FF6B35", "#FFE5DB"),
    IconColor("Blue", "#3B82F6", "#DBEAFE"),
    IconColor("Purple", "#8B5CF6", "#EDE9FE"),
    IconColor("Green", "#22C55E", "#DCFCE7"),
    IconColor("Pink", "#EC4899", "#FCE7F3"),
    IconColor("Teal", "#14B8A6", "#CCFBF1"),
)


@dataclass(slots=True)
class Step:
    id: int
    title: str
    description: str = ""
    duration: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "title": self.title, "description": self.description}
        if self.duration is not None:
            out["duration"] = self.duration
        return out

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Step:
        duration = raw.get("duration")
        return cls(
            id=int(raw["id"]),
            title=str(raw.get("title") or ""),
            description=str(raw.get("description") or ""),
            duration=str(duration) if duration is not None else None,
        )


class DueDateKind(StrEnum):
    OVERDUE = "overdue"
    TODAY = "today"
    SOON = "soon"
    NORMAL = "normal"


@dataclass(frozen=True, slots=True)
class DueDateStatus:
    kind: DueDateKind
    days: int = 0

    @property
    def text(self) -> str:
        if self.kind is DueDateKind.OVERDUE:
            return "Overdue"
        if self.kind is DueDateKind.TODAY:
            return "Due today"
        return f"{self.days}d left"

    @property
    def is_urgent(self) -> bool:
        return self.kind is not DueDateKind.NORMAL


@dataclass(slots=True)
class Goal:
    name: str
    id: int = field(default_factory=new_goal_id)
    category: str | None = None
    icon_key: str = "target"
    icon_color: IconColor = ICON_COLOR_OPTIONS[0]
    due_date: date | None = None
    steps: list[Step] = field(default_factory=list)
    completed_steps: list[int] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)

    # ---- derived ----

    @property
    def progress(self) -> int:
        if not self.steps:
            return 0
        return int(len(self.completed_steps) / len(self.steps) * 100)

    @property
    def is_completed(self) -> bool:
        return self.progress == 100

    @property
    def next_step(self) -> Step | None:
        done = set(self.completed_steps)
        for step in self.steps:
            if step.id not in done:
                return step
        return None

    @property
    def completed_steps_count(self) -> int:
        return len(self.completed_steps)

    @property
    def total_steps_count(self) -> int:
        return len(self.steps)

    def due_date_status(self, today: date | None = None) -> DueDateStatus | None:
        if self.due_date is None:
            return None
        today = today or date.today()
        days = (self.due_date - today).days
        if days < 0:
            return DueDateStatus(DueDateKind.OVERDUE, days)
        if days == 0:
            return DueDateStatus(DueDateKind.TODAY, 0)
        if days <= 3:
            return DueDateStatus(DueDateKind.SOON, days)
        return DueDateStatus(DueDateKind.NORMAL, days)

    def find_step(self, step_id: int) -> Step | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    # ---- mutations ----

    def toggle_step(self, step_id: int) -> None:
        if step_id in self.completed_steps:
            self.completed_steps = [s for s in self.completed_steps if s != step_id]
        else:
            self.completed_steps.append(step_id)

    def is_step_completed(self, step_id: int) -> bool:
        return step_id in self.completed_steps

    # ---- serialization (camelCase, as stored by the clients) ----

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "iconKey": self.icon_key,
            "iconColor": self.icon_color.to_dict(),
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "steps": [s.to_dict() for s in self.steps],
            "completedSteps": list(self.completed_steps),
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Goal:
        due_raw = raw.get("dueDate")
        created_raw = raw.get("createdAt")
        return cls(
            id=int(raw["id"]),
            name=str(raw.get("name") or ""),
            category=raw.get("category"),
            icon_key=str(raw.get("iconKey") or "target"),
            icon_color=IconColor.from_dict(raw.get("iconColor")),
            due_date=_parse_date(due_raw),
            steps=[Step.from_dict(s) for s in raw.get("steps") or [] if isinstance(s, dict)],
            completed_steps=[int(s) for s in raw.get("completedSteps") or []],
            created_at=_parse_datetime(created_raw),
        )


def _parse_date(raw: Any) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(str(raw)[:10])
    except ValueError:
        return None


def _parse_datetime(raw: Any) -> datetime:
    if isinstance(raw, int | float):
        return datetime.fromtimestamp(float(raw))
    if isinstance(raw, str) and raw:
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            pass
    return datetime.now()


class Gender(StrEnum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


@dataclass(slots=True)
class UserProfile:
    name: str = ""
    age: str = ""
    gender: Gender | None = None

    @property
    def is_empty(self) -> bool:
        return not self.name.strip()

    @property
    def display_name(self) -> str:
        return "Achiever" if self.is_empty else self.name

    @property
    def age_int(self) -> int | None:
        try:
            return int(self.age)
        except ValueError:
            return None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "age": self.age, "gender": self.gender.value if self.gender else None}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> UserProfile:
        gender_raw = raw.get("gender")
        try:
            gender = Gender(gender_raw) if gender_raw else None
        except ValueError:
            gender = None
        return cls(name=str(raw.get("name") or ""), age=str(raw.get("age") or ""), gender=gender)


@dataclass(slots=True)
class LocationData:
    latitude: float
    longitude: float
    city: str | None = None
    country: str | None = None
    display_name: str | None = None

    @property
    def short_display(self) -> str:
        return self.city or "Location enabled"

    def to_dict(self) -> dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "city": self.city,
            "country": self.country,
            "displayName": self.display_name,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> LocationData:
        return cls(
            latitude=float(raw.get("latitude") or 0.0),
            longitude=float(raw.get("longitude") or 0.0),
            city=raw.get("city"),
            country=raw.get("country"),
            display_name=raw.get("displayName"),
        )


def greeting(hour: int | None = None) -> str:
    if hour is None:
        hour = datetime.now().hour
    if hour < 12:
        return "Good morning"
    if hour < 18:
        return "Good afternoon"
    return "Good evening"
