"""tix CLI commands for file based ticket tracking."""

from __future__ import annotations

import logging

import typer

from ._helpers import SortedGroup

app = typer.Typer(
    help="tix - file based ticket tracking, one directory per ticket",
    no_args_is_help=True,
    cls=SortedGroup,
)


@app.callback(invoke_without_command=True)
def _global_options(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON for all commands",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log cache and storage activity to stderr",
    ),
) -> None:
    from ._output import set_json_mode

    set_json_mode(json_output)
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)


from . import (  # noqa: E402
    _cmd_comment,
    _cmd_create,
    _cmd_init,
    _cmd_read,
    _cmd_update,
)

for _mod in (
    _cmd_comment,
    _cmd_create,
    _cmd_init,
    _cmd_read,
    _cmd_update,
):
    _mod.register(app)


def main() -> None:
    """Run the tix CLI application."""
    app()
