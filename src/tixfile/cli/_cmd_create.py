"""Ticket creation command for the tix CLI."""

from __future__ import annotations

import typer

from tixfile.models import Ticket

from ._formatting import ticket_json
from ._helpers import get_config, get_default_operator, get_index
from ._output import echo_error, echo_json, echo_ok, wants_json


def register(app: typer.Typer) -> None:
    """Register the add command."""

    @app.command()
    def add(
        name: str = typer.Argument(..., help="Ticket name"),
        description: str = typer.Option(
            "",
            "--description",
            "-d",
            help="Detailed description",
        ),
        severity: str | None = typer.Option(
            None,
            "--severity",
            "-s",
            help="Severity (default: first configured severity)",
        ),
        tags: list[str] = typer.Option(  # noqa: B008
            [],
            "--tag",
            "-t",
            help="Tag to add (repeatable)",
        ),
        modules: list[str] = typer.Option(  # noqa: B008
            [],
            "--module",
            "-m",
            help="Module the ticket belongs to (repeatable)",
        ),
        created_by: str | None = typer.Option(
            None,
            "--by",
            help="Who is creating this ticket",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        root: str | None = typer.Option(None, "--root", help="Project directory"),
    ) -> None:
        """Add a ticket to the database."""
        as_json = wants_json(json_output)
        config = get_config(root)

        if severity is not None and severity not in config.severities:
            echo_error(
                f"Invalid severity '{severity}'. "
                f"Valid severities: {', '.join(config.severities)}",
            )
            raise typer.Exit(1)

        try:
            index = get_index(config)
            ticket = Ticket(
                name=name,
                description=description,
                status=config.default_status,
                severity=severity or config.default_severity,
                tags=list(tags),
                modules=list(modules),
                created_by=created_by or get_default_operator(),
            )
            index.store.save(ticket)
            index.refresh(ticket)
        except typer.Exit:
            raise
        except (ValueError, RuntimeError) as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if as_json:
            echo_json(ticket_json(ticket))
        else:
            echo_ok(f"Ticket {ticket.id} saved: {ticket.name}")
