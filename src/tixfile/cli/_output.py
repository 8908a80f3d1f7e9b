"""Output mode and message helpers for the tix CLI."""

from __future__ import annotations

import sys
from typing import Any

import orjson
import typer

_json_mode: bool = False


def set_json_mode(value: bool) -> None:
    """Switch every command to JSON output (global ``--json``)."""
    global _json_mode  # noqa: PLW0603
    _json_mode = value


def wants_json(local_flag: bool = False) -> bool:
    """Check the per-command ``--json`` flag against the global one.

    A per-command flag also turns on JSON mode for errors raised later in
    the same command.
    """
    if local_flag:
        set_json_mode(True)
    return _json_mode


def echo_json(data: Any) -> None:
    """Print a JSON document to stdout."""
    typer.echo(orjson.dumps(data, option=orjson.OPT_INDENT_2).decode())


def echo_error(message: str) -> None:
    """Print an error to stderr as ``Error: ...`` or ``{"error": ...}``."""
    if _json_mode:
        sys.stderr.write(orjson.dumps({"error": message}).decode() + "\n")
    else:
        typer.echo(f"Error: {message}", err=True)


def echo_ok(message: str) -> None:
    """Print a success line unless JSON output is active."""
    if not _json_mode:
        typer.echo(f"✓ {message}")
