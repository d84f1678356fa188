# src/aclio/premium/models.py

from __future__ import annotations

import sys
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import Any

UNLIMITED = sys.maxsize


class PremiumConfig:
    FREE_GOAL_LIMIT = 3
    FREE_DO_IT_FOR_ME_DAILY = 2
    FREE_EXPAND_DAILY = 3


class PremiumFeatureType(StrEnum):
    CREATE_GOAL = "create_goal"
    DO_IT_FOR_ME = "do_it_for_me"
    EXPAND_STEP = "expand_step"
    CHAT = "chat"

    @property
    def daily_limit(self) -> int:
        if self is PremiumFeatureType.CREATE_GOAL:
            return PremiumConfig.FREE_GOAL_LIMIT
        if self is PremiumFeatureType.DO_IT_FOR_ME:
            return PremiumConfig.FREE_DO_IT_FOR_ME_DAILY
        if self is PremiumFeatureType.EXPAND_STEP:
            return PremiumConfig.FREE_EXPAND_DAILY
        return UNLIMITED

    @property
    def storage_key(self) -> str:
        return {
            PremiumFeatureType.CREATE_GOAL: "goals_created",
            PremiumFeatureType.DO_IT_FOR_ME: "doitforme_uses",
            PremiumFeatureType.EXPAND_STEP: "expand_uses",
            PremiumFeatureType.CHAT: "chat_messages",
        }[self]


@dataclass(slots=True)
class DailyUsage:
    """Per-feature usage counter; a record from another day counts as zero."""

    date: str = ""
    count: int = 0

    def is_on(self, day: date) -> bool:
        return self.date == day.isoformat()

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "count": self.count}

    @classmethod
    def from_dict(cls, raw: Any) -> DailyUsage:
        if not isinstance(raw, dict):
            return cls()
        try:
            count = int(raw.get("count") or 0)
        except (TypeError, ValueError):
            count = 0
        return cls(date=str(raw.get("date") or ""), count=count)


@dataclass(frozen=True, slots=True)
class SubscriptionPlan:
    id: str
    period: str
    price: str
    price_value: float
    product_id: str
    is_best_value: bool = False

    @property
    def period_label(self) -> str:
        return {"weekly": "week", "monthly": "month", "yearly": "year"}.get(self.id, "month")


WEEKLY = SubscriptionPlan("weekly", "Weekly", "$2.99", 2.99, "aclio_premium_weekly")
MONTHLY = SubscriptionPlan("monthly", "Monthly", "$7.99", 7.99, "aclio_premium_monthly")
YEARLY = SubscriptionPlan("yearly", "Yearly", "$49.99", 49.99, "aclio_premium_yearly", is_best_value=True)

# Smallest to largest.
SUBSCRIPTION_PLANS: tuple[SubscriptionPlan, ...] = (WEEKLY, MONTHLY, YEARLY)


def find_plan(plan_id: str) -> SubscriptionPlan | None:
    for plan in SUBSCRIPTION_PLANS:
        if plan.id == plan_id or plan.product_id == plan_id:
            return plan
    return None
