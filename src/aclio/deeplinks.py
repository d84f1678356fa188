# src/aclio/deeplinks.py

"""
Deep links.

Supported forms:
- custom scheme: aclio://app/goal/123
- universal link: https://aclio.app/goal/123 (also www.aclio.app)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from urllib.parse import parse_qs, urlsplit

from .goals.models import Goal
from .telemetry.analytics import AnalyticsService

logger = logging.getLogger(__name__)

URL_SCHEME = "aclio"
HOST = "app"
UNIVERSAL_LINK_HOST = "aclio.app"


class RouteKind(StrEnum):
    DASHBOARD = "dashboard"
    NEW_GOAL = "new_goal"
    GOAL_DETAIL = "goal_detail"
    CHAT = "chat"
    SETTINGS = "settings"
    PREMIUM = "premium"
    PROFILE = "profile"


@dataclass(frozen=True, slots=True)
class DeepLinkRoute:
    kind: RouteKind
    goal_id: int | None = None

    @classmethod
    def dashboard(cls) -> DeepLinkRoute:
        return cls(RouteKind.DASHBOARD)

    @classmethod
    def new_goal(cls) -> DeepLinkRoute:
        return cls(RouteKind.NEW_GOAL)

    @classmethod
    def goal_detail(cls, goal_id: int) -> DeepLinkRoute:
        return cls(RouteKind.GOAL_DETAIL, goal_id)

    @classmethod
    def chat(cls, goal_id: int | None = None) -> DeepLinkRoute:
        return cls(RouteKind.CHAT, goal_id)

    @property
    def path(self) -> str:
        if self.kind is RouteKind.NEW_GOAL:
            return "/goal/new"
        if self.kind is RouteKind.GOAL_DETAIL:
            return f"/goal/{self.goal_id}"
        if self.kind is RouteKind.CHAT:
            return f"/chat/{self.goal_id}" if self.goal_id is not None else "/chat"
        return f"/{self.kind.value}"

    def url(self, scheme: str = URL_SCHEME) -> str:
        return f"{scheme}://{HOST}{self.path}"


def _to_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def parse_path(components: list[str], query: dict[str, list[str]] | None = None) -> DeepLinkRoute | None:
    if not components:
        return DeepLinkRoute.dashboard()

    head = components[0]
    if head == "dashboard":
        return DeepLinkRoute.dashboard()

    if head == "goal":
        if len(components) > 1:
            if components[1] == "new":
                return DeepLinkRoute.new_goal()
            goal_id = _to_int(components[1])
            if goal_id is not None:
                return DeepLinkRoute.goal_detail(goal_id)
        return DeepLinkRoute.new_goal()

    if head == "chat":
        if len(components) > 1:
            goal_id = _to_int(components[1])
            if goal_id is not None:
                return DeepLinkRoute.chat(goal_id)
        values = (query or {}).get("goal") or []
        goal_id = _to_int(values[0]) if values else None
        return DeepLinkRoute.chat(goal_id)

    if head == "settings":
        return DeepLinkRoute(RouteKind.SETTINGS)
    if head in ("premium", "upgrade"):
        return DeepLinkRoute(RouteKind.PREMIUM)
    if head == "profile":
        return DeepLinkRoute(RouteKind.PROFILE)
    return None


def parse_deep_link(url: str) -> DeepLinkRoute | None:
    parts = urlsplit(url.strip())
    host = (parts.hostname or "").lower()

    is_custom = parts.scheme == URL_SCHEME
    is_universal = parts.scheme in ("http", "https") and host in (UNIVERSAL_LINK_HOST, f"www.{UNIVERSAL_LINK_HOST}")
    if not (is_custom or is_universal):
        return None

    components = [c for c in parts.path.split("/") if c]
    return parse_path(components, parse_qs(parts.query))


def share_url(goal: Goal) -> str:
    return DeepLinkRoute.goal_detail(goal.id).url()


def universal_share_url(goal: Goal) -> str:
    return f"https://{UNIVERSAL_LINK_HOST}/goal/{goal.id}"


# Home screen shortcut routes, as path strings.
SHORTCUT_ROUTES: dict[str, str] = {
    "new_goal": "goal/new",
    "chat": "chat",
}


class DeepLinkService:
    def __init__(self, analytics: AnalyticsService | None = None) -> None:
        self.analytics = analytics
        self.pending_route: DeepLinkRoute | None = None
        self.last_handled_url: str | None = None

    def handle(self, url: str) -> DeepLinkRoute | None:
        route = parse_deep_link(url)
        if route is None:
            logger.warning("Unable to parse deep link: %s", url)
            return None

        self.last_handled_url = url
        self.pending_route = route
        logger.info("Deep link -> %s", route.path)
        if self.analytics is not None:
            self.analytics.track("deep_link_opened", {"url": url, "route": route.path})
        return route

    def handle_shortcut(self, name: str) -> DeepLinkRoute | None:
        path = SHORTCUT_ROUTES.get(name)
        if path is None:
            return None
        route = parse_path([c for c in path.split("/") if c])
        self.pending_route = route
        return route

    def clear_pending_route(self) -> None:
        self.pending_route = None
