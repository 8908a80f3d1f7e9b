"""Status and field update commands for the tix CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

import typer

from tixfile.models import InvalidStatusError

from ._formatting import ticket_json
from ._helpers import get_config, get_index, resolve_or_exit, save_and_refresh
from ._output import echo_error, echo_json, echo_ok, wants_json

if TYPE_CHECKING:
    from tixfile.models import Ticket


def register(app: typer.Typer) -> None:
    """Register status and edit commands."""

    @app.command()
    def status(
        ticket_id: str = typer.Argument(..., help="Ticket ID (or prefix)"),
        new_status: str = typer.Argument(..., help="New status"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        root: str | None = typer.Option(None, "--root", help="Project directory"),
    ) -> None:
        """Set the status of every ticket matching an ID."""
        as_json = wants_json(json_output)
        config = get_config(root)
        if new_status not in config.statuses:
            echo_error(
                f"Invalid status '{new_status}'. "
                f"Valid statuses: {', '.join(config.statuses)}",
            )
            raise typer.Exit(1)

        index = get_index(config)
        tickets = resolve_or_exit(index, ticket_id, for_update=True)

        updated: list[Ticket] = []
        try:
            for ticket in tickets:
                ticket.set_status(new_status, config.statuses)
                save_and_refresh(index, ticket)
                updated.append(ticket)
                echo_ok(f"Ticket {ticket.id} is now {new_status}")
        except (InvalidStatusError, ValueError, RuntimeError) as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if as_json:
            echo_json([ticket_json(t) for t in updated])

    @app.command()
    def edit(
        ticket_id: str = typer.Argument(..., help="Ticket ID (or prefix)"),
        name: str | None = typer.Option(None, "--name", "-n", help="New name"),
        description: str | None = typer.Option(
            None,
            "--description",
            "-d",
            help="New description",
        ),
        severity: str | None = typer.Option(
            None,
            "--severity",
            "-s",
            help="New severity",
        ),
        tags: list[str] | None = typer.Option(  # noqa: B008
            None,
            "--tag",
            "-t",
            help="Replace tags (repeatable)",
        ),
        modules: list[str] | None = typer.Option(  # noqa: B008
            None,
            "--module",
            "-m",
            help="Replace modules (repeatable)",
        ),
        clear_tags: bool = typer.Option(
            False,
            "--clear-tags",
            help="Remove all tags",
        ),
        clear_modules: bool = typer.Option(
            False,
            "--clear-modules",
            help="Remove all modules",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        root: str | None = typer.Option(None, "--root", help="Project directory"),
    ) -> None:
        """Edit the fields of every ticket matching an ID."""
        as_json = wants_json(json_output)
        config = get_config(root)

        if severity is not None and severity not in config.severities:
            echo_error(
                f"Invalid severity '{severity}'. "
                f"Valid severities: {', '.join(config.severities)}",
            )
            raise typer.Exit(1)
        if name is not None and not name.strip():
            echo_error("Ticket name cannot be empty")
            raise typer.Exit(1)
        if all(
            v is None for v in (name, description, severity, tags, modules)
        ) and not (clear_tags or clear_modules):
            echo_error("Nothing to edit")
            raise typer.Exit(1)

        index = get_index(config)
        tickets = resolve_or_exit(index, ticket_id, for_update=True)

        try:
            for ticket in tickets:
                if name is not None:
                    ticket.name = name.replace("\r", "").replace("\n", "")
                if description is not None:
                    ticket.description = description
                if severity is not None:
                    ticket.severity = severity
                if clear_tags:
                    ticket.tags = []
                if tags is not None:
                    ticket.tags = list(tags)
                if clear_modules:
                    ticket.modules = []
                if modules is not None:
                    ticket.modules = list(modules)
                save_and_refresh(index, ticket)
                echo_ok(f"Ticket {ticket.id} saved")
        except (ValueError, RuntimeError) as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if as_json:
            echo_json([ticket_json(t) for t in tickets])
