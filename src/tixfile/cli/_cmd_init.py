"""Initialization commands for the tix CLI."""

from __future__ import annotations

from pathlib import Path

import typer

from tixfile.config import default_config, get_config_path, load_config, save_config
from tixfile.index import TicketIndex

from ._output import echo_error, echo_json, echo_ok, wants_json


def register(app: typer.Typer) -> None:
    """Register init and version commands."""

    @app.command()
    def init(
        root: str = typer.Option(
            ".",
            "--root",
            help="Project directory to initialize",
        ),
        force: bool = typer.Option(
            False,
            "--force",
            help="Overwrite an existing configuration with the defaults",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    ) -> None:
        """Initialize a ticket repository in the project directory.

        Writes a default .tixfile.toml and creates the tickets and cache
        directories it names.
        """
        as_json = wants_json(json_output)
        config_path = get_config_path(root)
        if config_path.exists() and not force:
            echo_ok(f"{config_path} already exists")
        else:
            try:
                save_config(root, default_config())
            except OSError as e:
                echo_error(f"Cannot write {config_path}: {e}")
                raise typer.Exit(1) from e
            echo_ok(f"Created {config_path}")

        config = load_config(config_path)
        try:
            index = TicketIndex.from_config(config)
        except (ValueError, RuntimeError) as e:
            echo_error(str(e))
            raise typer.Exit(1) from e
        if not index.ready:
            echo_error(
                f"Cannot create {config.tickets_directory} "
                f"or {config.cache_directory}",
            )
            raise typer.Exit(1)

        if as_json:
            echo_json(
                {
                    "config": str(Path(config_path).resolve()),
                    "tickets_directory": str(config.tickets_directory),
                    "cache_directory": str(config.cache_directory),
                    "tickets": len(index),
                },
            )
        else:
            echo_ok(f"Tickets stored in {config.tickets_directory}")

    @app.command()
    def version() -> None:
        """Show the tixfile version."""
        from tixfile._version import version as v

        typer.echo(v)
