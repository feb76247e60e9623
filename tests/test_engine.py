from __future__ import annotations

import pytest

from ucilink.config import Settings
from ucilink.dispatcher import CommandExecuted
from ucilink.engine import UciEngine
from ucilink.errors import ConfigurationError, EngineUnresponsiveError
from ucilink.selfplay import play_self


def test_engine_handshake_and_search(fake_engine_settings: Settings) -> None:
    events: list[CommandExecuted] = []
    with UciEngine(fake_engine_settings) as engine:
        engine.on_command_executed(events.append)
        assert engine.send("isready", "readyok") == "readyok"
        assert engine.send("uci", "uciok") == "uciok"
        assert engine.send("ucinewgame") == "readyok"
        assert engine.send("go movetime 10", "bestmove") == "bestmove e2e4"

    assert [event.response for event in events] == ["readyok", "uciok", "readyok", "bestmove e2e4"]
    assert engine.channel.returncode == 0


def test_engine_quit_and_wait_for_exit(fake_engine_settings: Settings) -> None:
    engine = UciEngine(fake_engine_settings)
    engine.send("uci", "uciok")

    engine.quit()

    assert engine.wait_for_exit(timeout=5) == 0
    engine.close()


def test_engine_applies_command_timeout(fake_engine_settings: Settings) -> None:
    settings = fake_engine_settings.model_copy(update={"command_timeout": 0.2})
    with UciEngine(settings) as engine, pytest.raises(EngineUnresponsiveError):
        engine.send("uci", "bestmove")


def test_engine_self_play_until_no_move(monkeypatch: pytest.MonkeyPatch, fake_engine_settings: Settings) -> None:
    monkeypatch.setenv("FAKE_ENGINE_PLIES", "3")
    with UciEngine(fake_engine_settings) as engine:
        result = play_self(engine, movetime_ms=10, max_plies=50)

    assert result.reason == "no_move"
    assert result.moves == ["e2e4", "e7e5", "g1f3"]


def test_engine_with_missing_binary(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        UciEngine(Settings(engine_path=str(tmp_path / "missing")))
