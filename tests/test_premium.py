# tests/test_premium.py

from __future__ import annotations

import pytest

from aclio.premium.models import UNLIMITED, PremiumFeatureType, find_plan
from aclio.premium.service import PremiumService


class FakeEntitlements:
    def __init__(self, *, purchase_ok: bool = True, entitled: bool = False) -> None:
        self.purchase_ok = purchase_ok
        self.entitled = entitled
        self.purchased: list[str] = []

    def purchase(self, product_id: str) -> bool:
        self.purchased.append(product_id)
        return self.purchase_ok

    def restore(self) -> bool:
        return self.entitled

    def is_entitled(self) -> bool:
        return self.entitled


def test_free_goal_limit(premium) -> None:
    assert premium.can_create_goal(0)
    assert premium.can_create_goal(2)
    assert not premium.can_create_goal(3)
    assert premium.get_goals_remaining(1) == 2
    assert premium.get_goals_remaining(5) == 0


def test_do_it_for_me_daily_limit_and_paywall(premium, clock) -> None:
    seen = []
    assert premium.use_premium_feature(PremiumFeatureType.DO_IT_FOR_ME)
    assert premium.use_premium_feature(PremiumFeatureType.DO_IT_FOR_ME)
    assert premium.get_do_it_for_me_remaining() == 0
    assert not premium.paywall_requested

    assert not premium.use_premium_feature(PremiumFeatureType.DO_IT_FOR_ME, on_blocked=lambda: seen.append(1))
    assert premium.paywall_requested
    assert seen == [1]

    clock.advance()
    assert premium.can_use_do_it_for_me()


def test_expand_limit_is_three_per_day(premium) -> None:
    results = [premium.use_premium_feature(PremiumFeatureType.EXPAND_STEP) for _ in range(4)]
    assert results == [True, True, True, False]


def test_chat_is_never_gated(premium) -> None:
    assert all(premium.use_premium_feature(PremiumFeatureType.CHAT) for _ in range(20))


def test_premium_users_are_unlimited(premium, storage) -> None:
    premium.set_premium(True)
    for _ in range(10):
        assert premium.use_premium_feature(PremiumFeatureType.EXPAND_STEP)
    assert storage.get_daily_uses(PremiumFeatureType.EXPAND_STEP) == 0
    assert premium.get_expand_remaining() == UNLIMITED
    assert premium.can_create_goal(100)


def test_handle_purchase_activates_premium(storage) -> None:
    ent = FakeEntitlements()
    premium = PremiumService(storage, ent)
    premium.paywall_requested = True

    assert premium.handle_purchase("yearly")
    assert ent.purchased == ["aclio_premium_yearly"]
    assert premium.is_premium
    assert not premium.paywall_requested


def test_failed_or_unknown_purchase(storage) -> None:
    premium = PremiumService(storage, FakeEntitlements(purchase_ok=False))
    assert not premium.handle_purchase("monthly")
    assert not premium.is_premium

    with pytest.raises(ValueError):
        premium.handle_purchase("lifetime")


def test_restore_and_subscription_status_sync(storage) -> None:
    ent = FakeEntitlements(entitled=True)
    premium = PremiumService(storage, ent)
    assert premium.restore_purchases()
    assert premium.is_premium

    ent.entitled = False
    assert not premium.check_subscription_status()
    assert not premium.is_premium


def test_plans() -> None:
    yearly = find_plan("yearly")
    assert yearly is not None and yearly.is_best_value
    assert find_plan("nope") is None
