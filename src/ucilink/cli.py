"""Command line entry points for ucilink."""

from __future__ import annotations

import typer

from ucilink.config import Settings, get_settings
from ucilink.dispatcher import CommandExecuted
from ucilink.engine import UciEngine
from ucilink.errors import UciLinkError
from ucilink.logging_utils import configure_logging
from ucilink.selfplay import play_self

app = typer.Typer(name="ucilink", help="Drive a UCI engine one command at a time", add_completion=False)


def _settings(**overrides) -> Settings:
    settings = get_settings(**overrides)
    configure_logging(level=settings.log_level, profile="cli")
    return settings


def _echo_completion(event: CommandExecuted) -> None:
    typer.echo(f"< {event.response}")


@app.command()
def selfplay(
    engine: str | None = typer.Option(None, "--engine", "-e", help="Engine executable"),
    engine_arg: list[str] | None = typer.Option(None, "--engine-arg", help="Extra engine argument"),  # noqa: B008
    movetime: int | None = typer.Option(None, "--movetime", "-t", help="Search time per move in ms"),
    max_plies: int | None = typer.Option(None, "--max-plies", "-n", help="Stop after this many half moves"),
    board: bool = typer.Option(False, "--board", help="Ask the engine to print the board after each move"),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds to wait for each reply"),
) -> None:
    """Let the engine play a game against itself."""
    settings = _settings(
        engine_path=engine,
        engine_args=engine_arg or None,
        movetime_ms=movetime,
        max_plies=max_plies,
        command_timeout=timeout,
    )
    try:
        with UciEngine(settings) as uci:
            uci.on_command_executed(_echo_completion)
            result = play_self(
                uci,
                movetime_ms=settings.movetime_ms,
                max_plies=settings.max_plies,
                show_board=board,
            )
    except UciLinkError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(1) from exc

    if result.reason == "no_move":
        typer.echo("No more moves!")
    typer.echo(f"moves ({result.plies}): {' '.join(result.moves)}")


@app.command()
def send(
    command: str = typer.Argument(..., help="Command line to send"),
    expect: str = typer.Option("", "--expect", "-x", help="Prefix of the completion line; empty syncs on readyok"),
    engine: str | None = typer.Option(None, "--engine", "-e", help="Engine executable"),
    engine_arg: list[str] | None = typer.Option(None, "--engine-arg", help="Extra engine argument"),  # noqa: B008
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds to wait for the reply"),
) -> None:
    """Send one command and print the line that completes it."""
    settings = _settings(engine_path=engine, engine_args=engine_arg or None, command_timeout=timeout)
    try:
        with UciEngine(settings) as uci:
            response = uci.send(command, expect)
    except UciLinkError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(1) from exc
    typer.echo(response)
