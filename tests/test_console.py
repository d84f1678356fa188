# tests/test_console.py

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path

import pytest

from aclio.cli.bootstrap import create_initial_state, load_dialog_histories, save_dialog_histories
from aclio.config import Settings
from aclio.connectors.console_connector import MAX_STORED_HISTORY, run_console_loop, stream_reply
from aclio.core.state import AppState, dialog_key
from aclio.errors import LLMConnectionError
from aclio.llm.offline import OfflineLLMClient
from aclio.storage.kv_store import InMemoryKVStore, SQLiteKVStore

from .fakes import FakeClock, FakeLLMClient


def _state(settings: Settings, llm: FakeLLMClient) -> AppState:
    return create_initial_state(settings=settings, store=InMemoryKVStore(), llm=llm, today=FakeClock())


def _feed(monkeypatch: pytest.MonkeyPatch, lines: list[str]) -> None:
    it: Iterator[str] = iter(lines)

    def fake_input(prompt: str = "") -> str:
        try:
            return next(it)
        except StopIteration:
            raise EOFError from None

    monkeypatch.setattr("builtins.input", fake_input)


def test_dialog_keys() -> None:
    assert dialog_key(None) == "general"
    assert dialog_key(12) == "goal:12"


def test_stream_reply_records_both_turns(settings: Settings) -> None:
    state = _state(settings, FakeLLMClient(chunks=["Keep ", "going!"]))

    assert list(stream_reply(state, "I ran today")) == ["Keep ", "going!"]
    assert state.dialog_histories["general"] == [
        {"role": "user", "content": "I ran today"},
        {"role": "assistant", "content": "Keep going!"},
    ]


def test_stream_reply_uses_goal_dialog_and_caps_history(settings: Settings) -> None:
    llm = FakeLLMClient(chunks=["ok"])
    state = _state(settings, llm)
    goal = state.goals.create_goal("Run a 5k")
    state.current_goal_id = goal.id
    history = state.history_for(goal.id)
    history.extend({"role": "user", "content": f"m{i}"} for i in range(MAX_STORED_HISTORY))

    list(stream_reply(state, "next?"))

    messages, system = llm.calls[-1]
    assert len(messages) == 7
    assert "Run a 5k" in system
    assert len(state.dialog_histories[f"goal:{goal.id}"]) == MAX_STORED_HISTORY
    assert state.dialog_histories[f"goal:{goal.id}"][-1] == {"role": "assistant", "content": "ok"}


def test_stream_reply_empty_output_is_not_recorded(settings: Settings) -> None:
    state = _state(settings, FakeLLMClient(chunks=[]))
    assert list(stream_reply(state, "hello")) == []
    assert state.history_for(None) == []


def test_console_loop(settings: Settings, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    state = _state(settings, FakeLLMClient(chunks=["Hi ", "there!"]))
    _feed(monkeypatch, ["", "/goals", "hello", "/exit", "never read"])

    run_console_loop(state)

    out = capsys.readouterr().out
    assert "No goals yet. Create one with /new <goal>." in out
    assert "<<< aclio: Hi there!" in out
    assert state.history_for(None)[-1]["content"] == "Hi there!"


def test_console_loop_reports_llm_errors(
        settings: Settings, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture,
) -> None:
    state = _state(settings, FakeLLMClient(error=LLMConnectionError("down")))
    _feed(monkeypatch, ["hello"])

    run_console_loop(state)

    assert "[LLM] Could not reach the AI service." in capsys.readouterr().out
    assert state.history_for(None) == []


def test_histories_round_trip(settings: Settings) -> None:
    state = _state(settings, FakeLLMClient())
    state.history_for(None).append({"role": "user", "content": "hi"})
    state.history_for(3).append({"role": "assistant", "content": "hello"})

    save_dialog_histories(state)

    assert load_dialog_histories(state) == {
        "general": [{"role": "user", "content": "hi"}],
        "goal:3": [{"role": "assistant", "content": "hello"}],
    }


def test_load_histories_cleans_bad_entries(settings: Settings) -> None:
    state = _state(settings, FakeLLMClient())
    Path(settings.dialog_history_path).write_text(json.dumps({
        "general": [{"role": "system", "content": "x"}, "junk", {"content": 5}],
        "empty": [],
        "bad": "not a list",
    }), "utf-8")

    assert load_dialog_histories(state) == {
        "general": [{"role": "user", "content": "x"}, {"role": "user", "content": "5"}],
    }

    Path(settings.dialog_history_path).write_text("{not json", "utf-8")
    assert load_dialog_histories(state) == {}


def test_history_disabled(settings: Settings) -> None:
    state = _state(settings, FakeLLMClient())
    state.save_history = False
    state.history_for(None).append({"role": "user", "content": "hi"})
    save_dialog_histories(state)
    assert not Path(settings.dialog_history_path).exists()


def test_default_wiring_without_api_key(settings: Settings) -> None:
    state = create_initial_state(settings=settings)
    try:
        assert isinstance(state.llm, OfflineLLMClient)
        assert isinstance(state.store, SQLiteKVStore)
        assert settings.store_db_path.exists()
    finally:
        state.store.close()
