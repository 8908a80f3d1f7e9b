"""Shared infrastructure for tix CLI commands."""

from __future__ import annotations

import functools
import getpass
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from typer.core import TyperGroup

from tixfile.config import find_config, get_config_path, load_config
from tixfile.index import TicketIndex

from ._output import echo_error

if TYPE_CHECKING:
    import click

    from tixfile.config import TixConfig
    from tixfile.models import Ticket

NOT_INITIALIZED = "tixfile environment not initialized. Run 'tix init' first."


class SortedGroup(TyperGroup):
    """Typer group that lists commands in alphabetical order."""

    def list_commands(self, ctx: click.Context) -> list[str]:
        """Return commands sorted alphabetically."""
        return sorted(super().list_commands(ctx))


@functools.lru_cache(maxsize=1)
def get_default_operator() -> str:
    """Get the default operator (user identifier) for ticket operations.

    Tries to get the git config user.email first, falls back to machine username.

    Returns:
        User email from git config, or machine username as fallback.
    """
    try:
        result = subprocess.run(
            ["git", "config", "user.email"],
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
    except (FileNotFoundError, OSError):
        # git not installed or other OS error
        pass

    return getpass.getuser()


def get_config(root: str | None = None) -> TixConfig:
    """Load the configuration for a project root.

    Without ``root``, searches upward from the current directory for the
    config file (similar to how git finds .git).

    Raises:
        typer.Exit: If no configuration can be found
    """
    if root is not None:
        config_path: Path | None = get_config_path(root)
        if not config_path.is_file():
            config_path = None
    else:
        config_path = find_config()

    if config_path is None:
        echo_error(NOT_INITIALIZED)
        raise typer.Exit(1)
    return load_config(config_path)


def get_index(config: TixConfig) -> TicketIndex:
    """Build and reconcile the ticket index.

    Raises:
        typer.Exit: If the index directories are unusable or a ticket
            directory cannot be read
    """
    try:
        index = TicketIndex.from_config(config)
    except (ValueError, RuntimeError) as e:
        echo_error(str(e))
        raise typer.Exit(1) from e
    if not index.ready:
        echo_error(NOT_INITIALIZED)
        raise typer.Exit(1)
    return index


def resolve_or_exit(
    index: TicketIndex,
    ticket_id: str,
    *,
    for_update: bool = False,
) -> list[Ticket]:
    """Resolve a (partial) ticket id, exiting when nothing matches."""
    tickets = index.resolve(ticket_id, for_update=for_update)
    if not tickets:
        echo_error(f"Ticket {ticket_id} not found")
        raise typer.Exit(1)
    return tickets


def parse_attachment_args(items: list[str]) -> list[tuple[str, Path]]:
    """Pair attachment files with their captions.

    Items that name an existing file are attachments; any other item becomes
    the caption of the files that follow it.

    Example:
        ``["screenshot", "a.png", "b.png", "log", "x.log"]`` gives
        ``[("screenshot", a.png), ("screenshot", b.png), ("log", x.log)]``
    """
    caption = ""
    pairs: list[tuple[str, Path]] = []
    for item in items:
        path = Path(item)
        if path.is_file():
            pairs.append((caption, path))
        else:
            caption = item
    return pairs


def save_and_refresh(index: TicketIndex, ticket: Ticket) -> None:
    """Persist a modified ticket and update its index entry."""
    index.store.save(ticket)
    index.refresh(ticket)
