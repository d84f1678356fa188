# src/aclio/cli/commands.py

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.state import AppState
from ..deeplinks import share_url, universal_share_url
from ..errors import AclioError, LLMError, NotFoundError, PremiumRequiredError, ValidationError
from ..flags import FeatureFlag
from ..gamification.models import ACHIEVEMENTS, PointsConfig
from ..goals.models import Gender, Goal, UserProfile
from ..llm.client import friendly_llm_error_message
from ..premium.models import SUBSCRIPTION_PLANS
from ..validation import InputValidator

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /goals, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Domain errors raised by a handler are turned into a user-facing reply.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                return cast(CommandHandler3, handler)(state, args, emit)
            return cast(CommandHandler2, handler)(state, args)
        except PremiumRequiredError as e:
            return _paywall_text(e.feature)
        except (ValidationError, NotFoundError) as e:
            return str(e)
        except LLMError as e:
            logger.info("LLM error in /%s: %s", name, e)
            return f"[LLM] {friendly_llm_error_message(e)}"
        except AclioError as e:
            logger.warning("Command /%s failed: %s", name, e)
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ============ helpers ============

def _paywall_text(feature: str) -> str:
    reason = {
        "create_goal": "You've reached the free goal limit.",
        "do_it_for_me": "You've used today's free 'Do it for me' requests.",
        "expand_step": "You've used today's free step expansions.",
    }.get(feature, "This is a premium feature.")
    lines = [f"[PREMIUM] {reason} Upgrade to Aclio Premium:"]
    for plan in SUBSCRIPTION_PLANS:
        best = " (best value)" if plan.is_best_value else ""
        lines.append(f"  {plan.id}: {plan.period} {plan.price}{best}")
    lines.append("Use /premium buy <plan> to upgrade.")
    return "\n".join(lines)


def _parse_int(raw: str, what: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{what} must be a number, got {raw!r}.") from None


def _goal_at(state: AppState, position: int) -> Goal:
    goals = state.goals.list_goals()
    if position < 1 or position > len(goals):
        raise NotFoundError(f"No goal #{position}. Use /goals to list your goals.")
    return goals[position - 1]


def _current_goal(state: AppState) -> Goal:
    if state.current_goal_id is None:
        raise NotFoundError("No goal selected. Use /goal <n> first.")
    goal = state.goals.get_goal(state.current_goal_id)
    if goal is None:
        state.current_goal_id = None
        raise NotFoundError("The selected goal no longer exists. Use /goals.")
    return goal


def _format_goal(goal: Goal, state: AppState) -> str:
    header = f"{goal.name} [{goal.category or 'Personal'}] {goal.progress}%"
    status = goal.due_date_status(state.storage.today())
    if status is not None:
        header += f" | {status.text}"
    lines = [header]
    for step in goal.steps:
        mark = "x" if goal.is_step_completed(step.id) else " "
        duration = f" ({step.duration})" if step.duration else ""
        lines.append(f"  [{mark}] {step.id}. {step.title}{duration}")
    nxt = goal.next_step
    if nxt is not None:
        lines.append(f"Next: {nxt.id}. {nxt.title}")
    elif goal.steps:
        lines.append("All steps done!")
    return "\n".join(lines)


def _emit(emit: CommandEmitter | None, text: str) -> None:
    if emit is not None:
        emit(text)


# ============ general ============

def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    models = ", ".join(state.settings.llm_models)
    llm_mode = "online" if state.settings.llm_configured else "offline demo"
    current = state.goals.get_goal(state.current_goal_id) if state.current_goal_id is not None else None
    return (
        "Status:\n"
        f"  LLM: {llm_mode}\n"
        f"  Models (priority -> fallback): {models}\n"
        f"  Premium: {'yes' if state.premium.is_premium else 'no'}\n"
        f"  Level: {state.gamification.current_level.name} ({state.gamification.points} pts)\n"
        f"  Dialog history: {'ON' if state.save_history else 'OFF'}\n"
        f"  Connectivity: {'online' if state.offline_queue.is_connected() else 'offline'}"
        f" ({state.offline_queue.pending_count} queued)\n"
        f"  Current goal: {current.name if current else '-'}"
    )


# ============ goals ============

def cmd_goals(state: AppState, args: list[str]) -> str:
    goals = state.goals.list_goals()
    if not goals:
        return "No goals yet. Create one with /new <goal>."
    lines = ["Your goals:"]
    for i, goal in enumerate(goals, start=1):
        marker = "*" if goal.id == state.current_goal_id else " "
        lines.append(f" {marker}{i}. {goal.name} - {goal.progress}% ({len(goal.completed_steps)}/{len(goal.steps)})")
    if not state.premium.is_premium:
        lines.append(f"Free goals left: {state.premium.get_goals_remaining(len(goals))}")
    return "\n".join(lines)


def cmd_new(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /new <goal text>    -> generate a step plan and save the goal
    """
    text = " ".join(args).strip()
    if not text:
        return "Usage: /new <your goal>"

    _emit(emit, "[ACLIO] Building your plan...")
    goal = state.goals.create_goal(text)
    state.current_goal_id = goal.id
    return "Goal created!\n" + _format_goal(goal, state)


def cmd_goal(state: AppState, args: list[str]) -> str:
    """
    /goal        -> show the selected goal
    /goal <n>    -> select goal #n from /goals
    """
    if args:
        goal = _goal_at(state, _parse_int(args[0], "Goal number"))
        state.current_goal_id = goal.id
    else:
        goal = _current_goal(state)
    return _format_goal(goal, state)


def cmd_done(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /done <step id>"
    goal = _current_goal(state)
    result = state.goals.toggle_step(goal.id, _parse_int(args[0], "Step id"))

    if not result.completed:
        return f"Step {result.step_id} marked as not done."

    lines = [f"Step {result.step_id} done! +{PointsConfig.STEP_COMPLETE} points"]
    if result.goal_completed:
        lines.append(f"Goal achieved! +{PointsConfig.GOAL_COMPLETE} points")
    for achievement in result.new_achievements:
        lines.append(f"Achievement unlocked: {achievement.name} - {achievement.desc}")
    return "\n".join(lines)


def cmd_expand(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /expand <step id>"
    goal = _current_goal(state)
    step_id = _parse_int(args[0], "Step id")
    if state.goals.get_expanded_content(goal.id, step_id) is None:
        _emit(emit, "[ACLIO] Expanding step...")
    return state.goals.expand_step(goal.id, step_id)


def cmd_doit(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /doit <step id>"
    goal = _current_goal(state)
    _emit(emit, "[ACLIO] Working on it...")
    result = state.goals.do_it_for_me(goal.id, _parse_int(args[0], "Step id"))
    if result.toggle is not None:
        return f"{result.content}\n\n(Step marked as done.)"
    return result.content


def cmd_extend(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    text = " ".join(args).strip()
    if not text:
        return "Usage: /extend <what you want to add to the plan>"
    goal = _current_goal(state)
    _emit(emit, "[ACLIO] Extending your plan...")
    new_steps = state.goals.extend_goal(goal.id, text)
    lines = [f"Added {len(new_steps)} step(s):"]
    lines.extend(f"  {s.id}. {s.title}" for s in new_steps)
    return "\n".join(lines)


def cmd_delete(state: AppState, args: list[str]) -> str:
    goal = _goal_at(state, _parse_int(args[0], "Goal number")) if args else _current_goal(state)
    state.goals.delete_goal(goal.id)
    if state.current_goal_id == goal.id:
        state.current_goal_id = None
    state.dialog_histories.pop(f"goal:{goal.id}", None)
    return f"Deleted goal: {goal.name}"


def cmd_share(state: AppState, args: list[str]) -> str:
    goal = _current_goal(state)
    return f"App link: {share_url(goal)}\nWeb link: {universal_share_url(goal)}"


def cmd_open(state: AppState, args: list[str]) -> str:
    """
    /open <link>    -> follow an aclio:// or https://aclio.app link
    """
    if not args:
        return "Usage: /open <link>"
    route = state.deeplinks.handle(args[0])
    if route is None:
        return "That link doesn't point anywhere in Aclio."
    state.deeplinks.clear_pending_route()

    if route.goal_id is None:
        return f"Opened {route.path}."
    goal = state.goals.get_goal(route.goal_id)
    if goal is None:
        return f"Goal {route.goal_id} not found."
    state.current_goal_id = goal.id
    return _format_goal(goal, state)


# ============ profile / progress ============

def cmd_profile(state: AppState, args: list[str]) -> str:
    """
    /profile                  -> show profile
    /profile name <name>
    /profile age <age>
    /profile gender <Male|Female|Other>
    """
    profile = state.storage.load_profile() or UserProfile()
    if not args:
        gender = profile.gender.value if profile.gender else "-"
        return f"Profile:\n  Name: {profile.name or '-'}\n  Age: {profile.age or '-'}\n  Gender: {gender}"

    field_name, value = args[0].lower(), " ".join(args[1:]).strip()
    if field_name == "name":
        InputValidator.validate_name(value).raise_if_invalid()
        profile.name = value
    elif field_name == "age":
        InputValidator.validate_age(value).raise_if_invalid()
        profile.age = value
    elif field_name == "gender":
        try:
            profile.gender = Gender(value.capitalize())
        except ValueError:
            return "Gender must be one of: " + ", ".join(g.value for g in Gender)
    else:
        return "Usage: /profile [name <name> | age <age> | gender <value>]"

    state.storage.save_profile(profile)
    return "Profile saved."


def cmd_stats(state: AppState, args: list[str]) -> str:
    g = state.gamification
    nxt = g.next_level
    lines = [
        f"Level {g.current_level.level}: {g.current_level.name}",
        f"Points: {g.points}" + (f" (next: {nxt.name} at {nxt.min_points})" if nxt else " (max level)"),
        f"Streak: {g.streak.current} day(s), best {g.streak.best}",
        f"Achievements: {len(g.unlocked_achievements)}/{len(ACHIEVEMENTS)}",
    ]
    unlocked = set(g.unlocked_achievements)
    for achievement in ACHIEVEMENTS:
        mark = "x" if achievement.id in unlocked else " "
        lines.append(f"  [{mark}] {achievement.name} - {achievement.desc}")
    return "\n".join(lines)


def cmd_bonus(state: AppState, args: list[str]) -> str:
    if not state.gamification.claim_daily_bonus():
        return "Daily bonus already claimed today. Come back tomorrow!"
    return f"Daily bonus claimed! +{PointsConfig.DAILY_BONUS} points (total {state.gamification.points})"


# ============ premium ============

def cmd_premium(state: AppState, args: list[str]) -> str:
    """
    /premium               -> show status and remaining free uses
    /premium buy <plan>    -> weekly | monthly | yearly
    /premium restore
    """
    premium = state.premium
    if not args:
        if premium.is_premium:
            return "Aclio Premium is active. Enjoy unlimited goals and AI help!"
        goals = state.goals.list_goals()
        return (
            "Free plan:\n"
            f"  Goals left: {premium.get_goals_remaining(len(goals))}\n"
            f"  'Do it for me' left today: {premium.get_do_it_for_me_remaining()}\n"
            f"  Step expansions left today: {premium.get_expand_remaining()}\n"
            "Use /premium buy <weekly|monthly|yearly> to upgrade."
        )

    sub = args[0].lower()
    if sub == "buy":
        if len(args) < 2:
            return "Usage: /premium buy <weekly|monthly|yearly>"
        try:
            ok = premium.handle_purchase(args[1].lower())
        except ValueError as e:
            return str(e)
        return "Welcome to Aclio Premium!" if ok else "Purchase was not completed."

    if sub == "restore":
        return "Purchases restored. Premium is active." if premium.restore_purchases() else "No purchases to restore."

    return "Usage: /premium [buy <plan> | restore]"


# ============ flags / diagnostics ============

def cmd_flags(state: AppState, args: list[str]) -> str:
    """
    /flags                       -> list flags by category
    /flags set <flag> on|off     -> local override
    /flags reset <flag|all>      -> drop override(s)
    /flags fetch                 -> refresh remote flags
    """
    flags = state.flags
    if not args:
        lines = ["Feature flags:"]
        for category, entries in flags.flags_by_category().items():
            lines.append(f"  {category.value}:")
            for flag, enabled, overridden in entries:
                suffix = " (override)" if overridden else ""
                lines.append(f"    {flag.value}: {'on' if enabled else 'off'}{suffix}")
        return "\n".join(lines)

    sub = args[0].lower()
    if sub == "fetch":
        return "Remote flags updated." if flags.fetch_remote_flags() else "Could not fetch remote flags."

    if sub == "reset" and len(args) >= 2 and args[1].lower() == "all":
        flags.clear_all_overrides()
        return "All flag overrides cleared."

    if sub in ("set", "reset") and len(args) >= 2:
        try:
            flag = FeatureFlag(args[1].lower())
        except ValueError:
            return f"Unknown flag: {args[1]}"

        if sub == "reset":
            flags.remove_override(flag)
            return f"{flag.value}: override removed ({'on' if flags.is_enabled(flag) else 'off'})."

        if len(args) < 3 or args[2].lower() not in ("on", "off"):
            return "Usage: /flags set <flag> on|off"
        flags.set_override(flag, args[2].lower() == "on")
        return f"{flag.value}: {args[2].lower()} (override)."

    return "Usage: /flags [set <flag> on|off | reset <flag|all> | fetch]"


def cmd_online(state: AppState, args: list[str]) -> str:
    """
    /online on|off    -> simulate connectivity; going online replays the offline queue
    """
    queue = state.offline_queue
    if not args:
        return f"{'Online' if queue.is_connected() else 'Offline'}, {queue.pending_count} operation(s) queued."

    arg = args[0].lower()
    if arg not in ("on", "off"):
        return "Usage: /online on|off"
    asyncio.run(queue.set_connected(arg == "on"))
    return f"{'Online' if queue.is_connected() else 'Offline'}, {queue.pending_count} operation(s) queued."


def cmd_errors(state: AppState, args: list[str]) -> str:
    """
    /errors          -> recent error log entries and pending crash reports
    /errors export   -> full JSON report
    /errors clear
    """
    crash = state.crash
    if args and args[0].lower() == "export":
        return crash.export_report()
    if args and args[0].lower() == "clear":
        crash.clear_all()
        return "Crash reports and error logs cleared."

    lines = [f"Pending crash reports: {len(crash.pending_reports())}"]
    recent = crash.error_logs[-10:]
    if not recent:
        lines.append("No logged errors.")
    for entry in recent:
        lines.append(f"  {entry.timestamp:%Y-%m-%d %H:%M:%S} {entry.level.value.upper()} {entry.message}")
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show current settings and progress.")
registry.register("goals", cmd_goals, help_text="List your goals.", aliases=["ls"])
registry.register("new", cmd_new, help_text="Create a goal with an AI step plan: /new <goal>.")
registry.register("goal", cmd_goal, help_text="Select/show a goal: /goal <n>.")
registry.register("done", cmd_done, help_text="Toggle a step of the selected goal: /done <step id>.")
registry.register("expand", cmd_expand, help_text="Detailed guide for a step: /expand <step id>.")
registry.register("doit", cmd_doit, help_text="Let Aclio do a step for you: /doit <step id>.")
registry.register("extend", cmd_extend, help_text="Add steps to the selected goal: /extend <text>.")
registry.register("delete", cmd_delete, help_text="Delete a goal: /delete [n].")
registry.register("share", cmd_share, help_text="Share links for the selected goal.")
registry.register("open", cmd_open, help_text="Open an Aclio link: /open <link>.")
registry.register("profile", cmd_profile, help_text="Show/edit your profile.")
registry.register("stats", cmd_stats, help_text="Points, level, streak and achievements.")
registry.register("bonus", cmd_bonus, help_text="Claim the daily login bonus.")
registry.register("premium", cmd_premium, help_text="Premium status: /premium [buy <plan> | restore].")
registry.register("flags", cmd_flags, help_text="Feature flags: /flags [set <flag> on|off | reset <flag> | fetch].")
registry.register("online", cmd_online, help_text="Simulate connectivity: /online on|off.")
registry.register("errors", cmd_errors, help_text="Error log diagnostics: /errors [export | clear].")
