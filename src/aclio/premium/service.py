# src/aclio/premium/service.py

from __future__ import annotations

import logging
from collections.abc import Callable

from ..core.ports import EntitlementProvider
from ..storage.local_storage import LocalStorageService
from .models import UNLIMITED, PremiumConfig, PremiumFeatureType, find_plan

logger = logging.getLogger(__name__)


class LocalEntitlementProvider:
    """
    Entitlement backend without a store SDK: purchases always succeed and the
    entitlement is whatever premium flag is already persisted.
    """

    def __init__(self, storage: LocalStorageService) -> None:
        self._storage = storage

    def purchase(self, product_id: str) -> bool:
        logger.info("Local entitlement granted for product=%s", product_id)
        return True

    def restore(self) -> bool:
        return self._storage.is_premium

    def is_entitled(self) -> bool:
        return self._storage.is_premium


class PremiumService:
    """
    Free-tier limits and premium status.

    Blocked uses set `paywall_requested` so a front-end can show its paywall;
    the flag is cleared by a successful purchase.
    """

    def __init__(
            self,
            storage: LocalStorageService,
            entitlements: EntitlementProvider | None = None,
    ) -> None:
        self.storage = storage
        self.entitlements: EntitlementProvider = entitlements or LocalEntitlementProvider(storage)
        self.paywall_requested = False

    # ---- status ----

    @property
    def is_premium(self) -> bool:
        return self.storage.is_premium

    def set_premium(self, value: bool) -> None:
        self.storage.is_premium = value
        logger.info("Premium status set to %s", value)

    # ---- gating ----

    def can_create_goal(self, current_count: int) -> bool:
        if self.is_premium:
            return True
        return current_count < PremiumConfig.FREE_GOAL_LIMIT

    def can_use_do_it_for_me(self) -> bool:
        if self.is_premium:
            return True
        return self.storage.get_remaining_uses(PremiumFeatureType.DO_IT_FOR_ME) > 0

    def can_expand_step(self) -> bool:
        if self.is_premium:
            return True
        return self.storage.get_remaining_uses(PremiumFeatureType.EXPAND_STEP) > 0

    def use_premium_feature(
            self,
            feature: PremiumFeatureType,
            on_blocked: Callable[[], None] | None = None,
    ) -> bool:
        """
        Try to consume one use of `feature`.

        Free users spend one daily use of do_it_for_me / expand_step per call.
        create_goal through this path is premium-only (goal count limits go
        through can_create_goal). Chat is never gated.
        """
        if feature is PremiumFeatureType.CREATE_GOAL:
            allowed = self.is_premium
        elif feature is PremiumFeatureType.DO_IT_FOR_ME:
            allowed = self.can_use_do_it_for_me()
            if allowed and not self.is_premium:
                self.storage.increment_daily_uses(feature)
        elif feature is PremiumFeatureType.EXPAND_STEP:
            allowed = self.can_expand_step()
            if allowed and not self.is_premium:
                self.storage.increment_daily_uses(feature)
        else:
            allowed = True

        if not allowed:
            logger.info("Premium feature blocked: %s", feature.value)
            self.paywall_requested = True
            if on_blocked is not None:
                on_blocked()
        return allowed

    # ---- remaining ----

    def get_remaining_uses(self, feature: PremiumFeatureType) -> int:
        if self.is_premium:
            return UNLIMITED
        return self.storage.get_remaining_uses(feature)

    def get_do_it_for_me_remaining(self) -> int:
        return self.get_remaining_uses(PremiumFeatureType.DO_IT_FOR_ME)

    def get_expand_remaining(self) -> int:
        return self.get_remaining_uses(PremiumFeatureType.EXPAND_STEP)

    def get_goals_remaining(self, current_count: int) -> int:
        if self.is_premium:
            return UNLIMITED
        return max(0, PremiumConfig.FREE_GOAL_LIMIT - current_count)

    # ---- purchases ----

    def handle_purchase(self, plan_id: str) -> bool:
        plan = find_plan(plan_id)
        if plan is None:
            raise ValueError(f"Unknown subscription plan: {plan_id!r}")

        ok = self.entitlements.purchase(plan.product_id)
        if ok:
            self.set_premium(True)
            self.paywall_requested = False
        return ok

    def restore_purchases(self) -> bool:
        restored = self.entitlements.restore()
        if restored:
            self.set_premium(True)
        return restored

    def check_subscription_status(self) -> bool:
        active = self.entitlements.is_entitled()
        if active != self.is_premium:
            self.set_premium(active)
        return active
