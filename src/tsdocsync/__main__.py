"""Module entrypoint for ``python -m tsdocsync``."""

from __future__ import annotations

from tsdocsync.cli import app


def run() -> None:
    """Invoke the Typer application (it exits with the command's status)."""
    app(prog_name="tsdocsync")


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    run()
