"""ucilink CLI bootstrap."""

from __future__ import annotations

from ucilink.cli import app

if __name__ == "__main__":
    app()
