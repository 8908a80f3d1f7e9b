"""Read/display commands for the tix CLI."""

from __future__ import annotations

import typer

from ._formatting import print_ticket_details, print_ticket_list, ticket_json
from ._helpers import get_config, get_index, resolve_or_exit
from ._output import echo_error, echo_json, wants_json


def register(app: typer.Typer) -> None:
    """Register read/display commands."""

    @app.command("list", context_settings={"ignore_unknown_options": True})
    def list_tickets(
        tokens: list[str] | None = typer.Argument(  # noqa: B008
            None,
            help="Statuses to show and +field/-field to sort (e.g. opened -created)",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        root: str | None = typer.Option(None, "--root", help="Project directory"),
    ) -> None:
        """List tickets, filtered by status and sorted by a field.

        Arguments starting with + or - choose the sort field and direction,
        other arguments that name a status restrict the listing to those
        statuses.
        """
        as_json = wants_json(json_output)
        config = get_config(root)
        index = get_index(config)

        try:
            tickets = list(index.enumerate(tokens or []))
        except ValueError as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if as_json:
            echo_json([ticket_json(t) for t in tickets])
            return

        if len(index) == 0:
            typer.echo("No tickets in the database")
            return

        typer.echo(f"Listing tickets from {config.tickets_directory}")
        print_ticket_list(tickets, config.colors)

    @app.command()
    def show(
        ticket_id: str = typer.Argument(..., help="Ticket ID (or unique prefix)"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        root: str | None = typer.Option(None, "--root", help="Project directory"),
    ) -> None:
        """Show tickets matching an ID, with comments and attachments."""
        as_json = wants_json(json_output)
        config = get_config(root)
        index = get_index(config)
        tickets = resolve_or_exit(index, ticket_id)

        try:
            if as_json:
                echo_json([ticket_json(t, full=True) for t in tickets])
                return

            for position, ticket in enumerate(tickets):
                if position:
                    typer.echo("")
                print_ticket_details(ticket, config.colors)
        except (ValueError, RuntimeError) as e:
            echo_error(str(e))
            raise typer.Exit(1) from e
