# src/aclio/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..coach.service import CHAT_HISTORY_LIMIT, ChatRequest
from ..core.ports import ChatMessage
from ..core.state import AppState
from ..errors import AclioError, LLMError
from ..goals.models import greeting
from ..llm.client import friendly_llm_error_message
from ..validation import InputValidator

logger = logging.getLogger(__name__)

# Messages kept per dialog on disk; the prompt itself only sees the last CHAT_HISTORY_LIMIT.
MAX_STORED_HISTORY = 40


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    If stdout is not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def stream_reply(state: AppState, user_text: str) -> Iterable[str]:
    """
    Stream Aclio's reply for the selected goal (or a general chat) and record
    both turns in the dialog history once the stream completes.
    """
    goal = state.goals.get_goal(state.current_goal_id) if state.current_goal_id is not None else None
    history = state.history_for(goal.id if goal else None)
    profile = state.storage.load_profile()

    request = ChatRequest.for_goal(
        user_text,
        goal,
        chat_history=history[-CHAT_HISTORY_LIMIT:],
        profile=profile.to_dict() if profile is not None and not profile.is_empty else None,
    )

    parts: list[str] = []
    for piece in state.coach.stream_talk(request):
        parts.append(piece)
        yield piece

    reply = "".join(parts).strip()
    if reply:
        user_msg: ChatMessage = {"role": "user", "content": user_text}
        assistant_msg: ChatMessage = {"role": "assistant", "content": reply}
        history.extend([user_msg, assistant_msg])
        del history[:-MAX_STORED_HISTORY]


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (llm=%s).", state.llm.__class__.__name__)

    profile = state.storage.load_profile()
    name = profile.display_name if profile is not None else "Achiever"
    _print_ts(f"[CONSOLE] {greeting()}, {name}! Use /help for commands, /exit to quit.\n")

    app_name = state.settings.app_name

    def emit(text: str) -> None:
        # Immediate user-visible feedback for long operations (LLM calls).
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            user_input = input(">>> You: ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> You: {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        # Commands (/help, /goals, ...)
        try:
            with state.lock:
                cmd_response = command_registry.handle(state, user_input, emit=emit)
        except Exception as e:
            logger.exception("Command handler crashed.")
            state.crash.record_error(e, {"command": user_input.split()[0]})
            cmd_response = "Internal error while handling a command."

        if cmd_response is not None:
            print(f"[{_ts_local()}] {cmd_response}")
            continue

        check = InputValidator.validate_chat_message(user_input)
        if not check.is_valid:
            _print_ts(check.error_message or "Invalid message.")
            continue

        # Normal chat: stream chunks and print them as they arrive.
        assistant_printed = False
        try:
            with state.lock:
                for piece in stream_reply(state, user_input):
                    if not piece:
                        continue
                    if not assistant_printed:
                        print(f"[{_ts_local()}] <<< {app_name}: ", end="", flush=True)
                        assistant_printed = True
                    print(piece, end="", flush=True)
        except LLMError as e:
            msg = friendly_llm_error_message(e)
            logger.info("LLM error: %s", msg)
            print(f"\n[{_ts_local()}] [LLM] {msg}")
            continue
        except AclioError as e:
            logger.warning("Chat failed: %s", e)
            _print_ts(f"Error: {e}")
            continue
        except Exception as e:
            logger.exception("Console chat handler crashed.")
            state.crash.record_error(e, {"action": "chat"})
            _print_ts("Internal error while generating a reply.")
            continue

        if not assistant_printed:
            print(f"[{_ts_local()}] [LLM] No output (model produced no content).")
            continue

        print("\n")

    logger.info("Console connector finished.")
