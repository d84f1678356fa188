# tests/test_deeplinks.py

from __future__ import annotations

import pytest

from aclio.deeplinks import (
    DeepLinkRoute,
    DeepLinkService,
    RouteKind,
    parse_deep_link,
    share_url,
    universal_share_url,
)
from aclio.goals.models import Goal
from aclio.telemetry.analytics import AnalyticsService


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("aclio://app", DeepLinkRoute.dashboard()),
        ("aclio://app/dashboard", DeepLinkRoute.dashboard()),
        ("aclio://app/goal/new", DeepLinkRoute.new_goal()),
        ("aclio://app/goal", DeepLinkRoute.new_goal()),
        ("aclio://app/goal/42", DeepLinkRoute.goal_detail(42)),
        ("aclio://app/goal/abc", DeepLinkRoute.new_goal()),
        ("aclio://app/chat", DeepLinkRoute.chat()),
        ("aclio://app/chat/7", DeepLinkRoute.chat(7)),
        ("aclio://app/chat?goal=9", DeepLinkRoute.chat(9)),
        ("aclio://app/upgrade", DeepLinkRoute(RouteKind.PREMIUM)),
        ("https://aclio.app/goal/42", DeepLinkRoute.goal_detail(42)),
        ("https://www.aclio.app/settings", DeepLinkRoute(RouteKind.SETTINGS)),
        ("http://aclio.app/profile", DeepLinkRoute(RouteKind.PROFILE)),
    ],
)
def test_parse_known_links(url: str, expected: DeepLinkRoute) -> None:
    assert parse_deep_link(url) == expected


@pytest.mark.parametrize(
    "url",
    ["https://example.com/goal/1", "aclio://app/nowhere", "mailto:someone@aclio.app", ""],
)
def test_parse_rejects_foreign_or_unknown(url: str) -> None:
    assert parse_deep_link(url) is None


def test_route_paths_round_trip() -> None:
    for route in (DeepLinkRoute.goal_detail(5), DeepLinkRoute.chat(3), DeepLinkRoute.new_goal()):
        assert parse_deep_link(route.url()) == route


def test_share_urls() -> None:
    goal = Goal(name="Run a 5k", id=123)
    assert share_url(goal) == "aclio://app/goal/123"
    assert universal_share_url(goal) == "https://aclio.app/goal/123"


def test_service_tracks_and_keeps_pending_route(analytics: AnalyticsService) -> None:
    service = DeepLinkService(analytics)

    route = service.handle("aclio://app/goal/42")
    assert route == DeepLinkRoute.goal_detail(42)
    assert service.pending_route == route
    assert service.last_handled_url == "aclio://app/goal/42"
    assert analytics.all_events[-1].name == "deep_link_opened"

    service.clear_pending_route()
    assert service.pending_route is None
    assert service.handle("nonsense") is None


def test_shortcuts() -> None:
    service = DeepLinkService()
    assert service.handle_shortcut("new_goal") == DeepLinkRoute.new_goal()
    assert service.handle_shortcut("chat") == DeepLinkRoute.chat()
    assert service.handle_shortcut("unknown") is None
