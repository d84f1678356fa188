# src/aclio/goals/service.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from ..coach.service import CoachService
from ..errors import NotFoundError, PremiumRequiredError
from ..gamification.models import Achievement
from ..gamification.service import GamificationService
from ..offline_queue import OfflineQueueService
from ..premium.models import PremiumFeatureType
from ..premium.service import PremiumService
from ..storage.local_storage import LocalStorageService
from ..telemetry.analytics import AnalyticsService
from ..validation import InputValidator
from .models import GOAL_ICON_KEYS, ICON_COLOR_OPTIONS, Goal, IconColor, Step

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToggleResult:
    goal: Goal
    step_id: int
    completed: bool
    goal_completed: bool = False
    new_achievements: list[Achievement] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class DoItForMeResult:
    content: str
    toggle: ToggleResult | None = None


class GoalService:
    """
    Goal operations over local storage.

    Wires premium limits, gamification, analytics and the offline queue so the
    console and any other front-end share the same rules.
    """

    def __init__(
            self,
            storage: LocalStorageService,
            premium: PremiumService,
            gamification: GamificationService,
            coach: CoachService | None = None,
            *,
            analytics: AnalyticsService | None = None,
            offline_queue: OfflineQueueService | None = None,
    ) -> None:
        self.storage = storage
        self.premium = premium
        self.gamification = gamification
        self.coach = coach
        self.analytics = analytics
        self.offline_queue = offline_queue

    # ---- helpers ----

    def _require_coach(self) -> CoachService:
        if self.coach is None:
            raise RuntimeError("GoalService has no coach configured.")
        return self.coach

    def _is_offline(self) -> bool:
        return self.offline_queue is not None and not self.offline_queue.is_connected()

    def _profile_dict(self) -> dict | None:
        profile = self.storage.load_profile()
        return profile.to_dict() if profile is not None and not profile.is_empty else None

    def _location_dict(self) -> dict | None:
        loc = self.storage.load_location()
        if loc is None:
            return None
        return {"display": loc.city or loc.display_name, "country": loc.country}

    def _find(self, goals: list[Goal], goal_id: int) -> Goal:
        for g in goals:
            if g.id == goal_id:
                return g
        raise NotFoundError(f"Goal {goal_id} not found")

    @staticmethod
    def _find_step(goal: Goal, step_id: int) -> Step:
        step = goal.find_step(step_id)
        if step is None:
            raise NotFoundError(f"Step {step_id} not found in goal {goal.id}")
        return step

    # ---- queries ----

    def list_goals(self) -> list[Goal]:
        return self.storage.load_goals()

    def get_goal(self, goal_id: int) -> Goal | None:
        for g in self.storage.load_goals():
            if g.id == goal_id:
                return g
        return None

    # ---- create / update / delete ----

    def create_goal(
            self,
            name: str,
            *,
            additional_context: str | None = None,
            due_date: date | None = None,
            icon_key: str | None = None,
            icon_color: IconColor | None = None,
    ) -> Goal:
        name = name.strip()
        InputValidator.validate_goal(name).raise_if_invalid()

        goals = self.storage.load_goals()
        if not self.premium.can_create_goal(len(goals)):
            self.premium.paywall_requested = True
            raise PremiumRequiredError(PremiumFeatureType.CREATE_GOAL.value)

        plan = self._require_coach().generate_steps(
            name,
            profile=self._profile_dict(),
            location=self._location_dict(),
            additional_context=additional_context,
        )

        goal = Goal(
            name=name,
            category=plan.category,
            icon_key=icon_key if icon_key in GOAL_ICON_KEYS else "target",
            icon_color=icon_color or ICON_COLOR_OPTIONS[0],
            due_date=due_date,
            steps=plan.steps,
        )
        self.add_goal(goal)
        if self._is_offline():
            self.offline_queue.enqueue_goal_create(goal)
        return goal

    def add_goal(self, goal: Goal) -> list[Achievement]:
        goals = self.storage.load_goals()
        goals.insert(0, goal)
        self.storage.save_goals(goals)
        logger.info("Goal added id=%s steps=%d", goal.id, len(goal.steps))

        if len(goals) == 1:
            self.gamification.award_goal_points(is_first_goal=True)

        if self.analytics is not None:
            self.analytics.track_goal_created(goal.id, goal.name, goal.category)
        return self.gamification.check_achievements(goals)

    def update_goal(self, goal: Goal) -> bool:
        goals = self.storage.load_goals()
        for idx, g in enumerate(goals):
            if g.id == goal.id:
                goals[idx] = goal
                self.storage.save_goals(goals)
                if self._is_offline():
                    self.offline_queue.enqueue_goal_update(goal)
                return True
        return False

    def delete_goal(self, goal_id: int) -> bool:
        goals = self.storage.load_goals()
        kept = [g for g in goals if g.id != goal_id]
        if len(kept) == len(goals):
            return False

        self.storage.save_goals(kept)
        self.storage.drop_expanded_steps(goal_id)
        logger.info("Goal deleted id=%s", goal_id)

        if self.analytics is not None:
            self.analytics.track_goal_deleted(goal_id)
        if self._is_offline():
            self.offline_queue.enqueue_goal_delete(goal_id)
        return True

    # ---- steps ----

    def toggle_step(self, goal_id: int, step_id: int) -> ToggleResult:
        goals = self.storage.load_goals()
        goal = self._find(goals, goal_id)
        self._find_step(goal, step_id)

        was_completed = goal.is_step_completed(step_id)
        goal.toggle_step(step_id)
        self.storage.save_goals(goals)
        if self._is_offline():
            self.offline_queue.enqueue_toggle_step(goal_id, step_id)

        if was_completed:
            if self.analytics is not None:
                self.analytics.track_step_uncompleted(goal_id, step_id)
            return ToggleResult(goal=goal, step_id=step_id, completed=False)

        self.gamification.award_step_points()
        goal_completed = goal.is_completed
        if goal_completed:
            self.gamification.award_goal_points()

        if self.analytics is not None:
            self.analytics.track_step_completed(goal_id, step_id, goal.progress)
            if goal_completed:
                self.analytics.track_goal_completed(goal_id, goal.name)

        achievements = self.gamification.check_achievements(goals)
        return ToggleResult(
            goal=goal,
            step_id=step_id,
            completed=True,
            goal_completed=goal_completed,
            new_achievements=achievements,
        )

    def expand_step(self, goal_id: int, step_id: int) -> str:
        cached = self.storage.load_expanded_step(goal_id, step_id)
        if cached is not None:
            return cached

        goal = self._find(self.storage.load_goals(), goal_id)
        step = self._find_step(goal, step_id)
        coach = self._require_coach()

        if not self.premium.use_premium_feature(PremiumFeatureType.EXPAND_STEP):
            raise PremiumRequiredError(PremiumFeatureType.EXPAND_STEP.value)

        content = coach.expand_step(goal.name, step).content
        self.storage.save_expanded_step(goal_id, step_id, content)
        if self.analytics is not None:
            self.analytics.track_step_expanded(goal_id, step_id)
        return content

    def get_expanded_content(self, goal_id: int, step_id: int) -> str | None:
        return self.storage.load_expanded_step(goal_id, step_id)

    def do_it_for_me(self, goal_id: int, step_id: int) -> DoItForMeResult:
        goal = self._find(self.storage.load_goals(), goal_id)
        step = self._find_step(goal, step_id)
        coach = self._require_coach()

        if not self.premium.use_premium_feature(PremiumFeatureType.DO_IT_FOR_ME):
            raise PremiumRequiredError(PremiumFeatureType.DO_IT_FOR_ME.value)

        content = coach.do_it_for_me(goal.name, step, self._profile_dict())
        if self.analytics is not None:
            self.analytics.track_step_do_it_for_me(goal_id, step_id)

        toggle = None
        if not goal.is_step_completed(step_id):
            toggle = self.toggle_step(goal_id, step_id)
        return DoItForMeResult(content=content, toggle=toggle)

    def extend_goal(self, goal_id: int, extension_text: str) -> list[Step]:
        goals = self.storage.load_goals()
        goal = self._find(goals, goal_id)
        InputValidator.validate_chat_message(extension_text).raise_if_invalid()

        new_steps = self._require_coach().extend_goal(goal, extension_text.strip(), self._profile_dict())
        next_id = max((s.id for s in goal.steps), default=0) + 1
        renumbered = [
            Step(id=next_id + i, title=s.title, description=s.description, duration=s.duration)
            for i, s in enumerate(new_steps)
        ]
        goal.steps.extend(renumbered)
        self.storage.save_goals(goals)
        logger.info("Goal extended id=%s +%d steps", goal_id, len(renumbered))

        if self._is_offline():
            self.offline_queue.enqueue_goal_extend(goal)
        return renumbered
