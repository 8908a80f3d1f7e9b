"""Display and formatting functions for the tix CLI."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

from rich import box
from rich.console import Console
from rich.table import Table

from tixfile.models import attachment_to_dict, comment_to_dict, ticket_to_dict

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tixfile.models import Ticket


def _stamp(value: Any) -> str:
    return value.strftime("%Y-%m-%d %H:%M")


def ticket_json(ticket: Ticket, *, full: bool = False) -> dict[str, Any]:
    """Serialize a ticket for ``--json`` output.

    Args:
        ticket: The ticket to serialize
        full: Include comments and attachments (reads the side documents)
    """
    data = ticket_to_dict(ticket)
    data["directory"] = str(ticket.directory) if ticket.directory else None
    if full:
        data["comments"] = [comment_to_dict(c) for c in ticket.comments]
        data["attachments"] = [attachment_to_dict(a) for a in ticket.attachments]
    return data


def _table() -> Table:
    return Table(
        show_header=True,
        header_style="bold",
        box=box.ROUNDED,
        pad_edge=False,
        show_edge=False,
    )


def format_ticket_table(tickets: Iterable[Ticket], colors: dict[str, str]) -> Table:
    """Build the listing table, one row per ticket colored by severity."""
    table = _table()
    table.add_column("Id", no_wrap=True)
    table.add_column("Name", overflow="fold")
    table.add_column("Status", no_wrap=True)
    table.add_column("Severity", no_wrap=True)
    table.add_column("Created", no_wrap=True)

    for ticket in tickets:
        table.add_row(
            ticket.id or "",
            ticket.name,
            ticket.status,
            ticket.severity,
            _stamp(ticket.created),
            style=colors.get(ticket.severity),
        )
    return table


def print_ticket_list(tickets: list[Ticket], colors: dict[str, str]) -> None:
    Console().print(format_ticket_table(tickets, colors))


def print_ticket_details(ticket: Ticket, colors: dict[str, str]) -> None:
    """Print a ticket with its comments and attachments."""
    console = Console()

    details = Table.grid(padding=(0, 2))
    details.add_column(justify="right", style="bold", no_wrap=True)
    details.add_column(overflow="fold")
    details.add_row("Id:", ticket.id or "")
    details.add_row("Name:", ticket.name)
    details.add_row("Description:", ticket.description)
    details.add_row("Status:", ticket.status)
    details.add_row("Severity:", ticket.severity, style=colors.get(ticket.severity))
    details.add_row("Tags:", ", ".join(ticket.tags))
    details.add_row("Modules:", ", ".join(ticket.modules))
    details.add_row("Created by:", ticket.created_by or "")
    details.add_row("Created:", _stamp(ticket.created))
    details.add_row("Updated:", _stamp(ticket.updated))
    console.print(details)

    if ticket.comments:
        console.print("\nComments:")
        comments = _table()
        comments.add_column("Comment", overflow="fold")
        comments.add_column("Created", no_wrap=True)
        comments.add_column("Created by", no_wrap=True)
        for comment in ticket.comments:
            comments.add_row(comment.text, _stamp(comment.created), comment.created_by)
        console.print(comments)

    if ticket.attachments:
        console.print("\nAttachments:")
        attachments = _table()
        attachments.add_column("Id", no_wrap=True)
        attachments.add_column("Attachment", overflow="fold")
        attachments.add_column("Attachment comment", overflow="fold")
        attachments.add_column("Created", no_wrap=True)
        attachments.add_column("Created by", no_wrap=True)
        attachments.add_column("Path", overflow="fold")
        for attachment in ticket.attachments:
            path = ""
            if ticket.directory is not None:
                path = os.path.relpath(ticket.directory / attachment.relative_path())
            attachments.add_row(
                attachment.file_id,
                attachment.original_name,
                attachment.comment,
                _stamp(attachment.created),
                attachment.created_by,
                path,
            )
        console.print(attachments)
