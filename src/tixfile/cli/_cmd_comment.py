"""Comment and attachment commands for the tix CLI."""

from __future__ import annotations

import typer

from ._formatting import ticket_json
from ._helpers import (
    get_config,
    get_default_operator,
    get_index,
    parse_attachment_args,
    resolve_or_exit,
    save_and_refresh,
)
from ._output import echo_error, echo_json, echo_ok, wants_json


def register(app: typer.Typer) -> None:
    """Register comment and attach commands."""

    @app.command()
    def comment(
        ticket_id: str = typer.Argument(..., help="Ticket ID (or prefix)"),
        text: str = typer.Argument(..., help="Comment text"),
        author: str | None = typer.Option(None, "--by", help="Comment author"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        root: str | None = typer.Option(None, "--root", help="Project directory"),
    ) -> None:
        """Add a comment to every ticket matching an ID."""
        as_json = wants_json(json_output)
        config = get_config(root)
        index = get_index(config)
        tickets = resolve_or_exit(index, ticket_id, for_update=True)

        try:
            for ticket in tickets:
                ticket.add_comment(text, created_by=author or get_default_operator())
                save_and_refresh(index, ticket)
                echo_ok(f"Added comment to ticket {ticket.id}")
        except (ValueError, RuntimeError) as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if as_json:
            echo_json([ticket_json(t, full=True) for t in tickets])

    @app.command()
    def attach(
        ticket_id: str = typer.Argument(..., help="Ticket ID (or prefix)"),
        items: list[str] = typer.Argument(  # noqa: B008
            ...,
            help="Files to attach, each optionally preceded by a caption",
        ),
        author: str | None = typer.Option(None, "--by", help="Attachment author"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        root: str | None = typer.Option(None, "--root", help="Project directory"),
    ) -> None:
        """Attach files to every ticket matching an ID.

        Arguments that are not existing files set the caption for the files
        after them, e.g. ``tix attach 1a2b "crash log" app.log core.txt``.
        """
        as_json = wants_json(json_output)
        pairs = parse_attachment_args(items)
        if not pairs:
            echo_error("No existing files given to attach")
            raise typer.Exit(1)

        config = get_config(root)
        index = get_index(config)
        tickets = resolve_or_exit(index, ticket_id, for_update=True)

        try:
            for ticket in tickets:
                for caption, path in pairs:
                    attachment = index.store.attach(
                        ticket,
                        path,
                        comment=caption,
                        created_by=author or get_default_operator(),
                    )
                    echo_ok(
                        f"Attached {attachment.original_name} to ticket "
                        f"{ticket.id} as {attachment.file_id}",
                    )
                save_and_refresh(index, ticket)
        except (FileNotFoundError, ValueError, RuntimeError) as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if as_json:
            echo_json([ticket_json(t, full=True) for t in tickets])
