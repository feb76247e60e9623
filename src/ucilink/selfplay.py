"""Let an engine play a game against itself."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal, Protocol

from loguru import logger

BESTMOVE = "bestmove"
NO_MOVE = "(none)"

StopReason = Literal["no_move", "max_plies"]


class CommandSender(Protocol):
    def send(self, command_text: str, expected_prefix: str = "", timeout: float | None = None) -> str: ...


@dataclass
class SelfPlayResult:
    moves: list[str] = field(default_factory=list)
    reason: StopReason = "max_plies"

    @property
    def plies(self) -> int:
        return len(self.moves)


def parse_bestmove(line: str) -> str | None:
    """Return the move of a ``bestmove`` line, or ``None`` when there is none."""
    parts = line.split()
    if len(parts) < 2 or parts[0] != BESTMOVE or parts[1] == NO_MOVE:
        return None
    return parts[1]


def position_command(moves: list[str]) -> str:
    if not moves:
        return "position startpos"
    return "position startpos moves " + " ".join(moves)


def play_self(
    engine: CommandSender,
    *,
    movetime_ms: int,
    max_plies: int,
    show_board: bool = False,
    timeout: float | None = None,
    on_move: Callable[[int, str], None] | None = None,
) -> SelfPlayResult:
    """Play from the start position until the engine has no move or ``max_plies`` is reached.

    The whole move list is resent with every ``position`` command, so the
    engine never needs a FEN.
    """
    engine.send("isready", "readyok", timeout=timeout)
    engine.send("uci", "uciok", timeout=timeout)
    engine.send("ucinewgame", timeout=timeout)
    if show_board:
        engine.send("d", timeout=timeout)

    result = SelfPlayResult()
    while result.plies < max_plies:
        response = engine.send(f"go movetime {movetime_ms}", BESTMOVE, timeout=timeout)
        move = parse_bestmove(response)
        if move is None:
            logger.info("selfplay.no_move plies={} response={}", result.plies, response)
            result.reason = "no_move"
            return result
        result.moves.append(move)
        if on_move is not None:
            on_move(result.plies, move)
        engine.send(position_command(result.moves), timeout=timeout)
        if show_board:
            engine.send("d", timeout=timeout)

    logger.info("selfplay.max_plies plies={}", result.plies)
    return result
