from typing import Optional

import typer

from noteweave import __version__
from noteweave.config import ConfigManager, init_cli_logging


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:  # pragma: no cover
        typer.echo(f"noteweave version: {__version__}")
        raise typer.Exit()


app = typer.Typer(name="noteweave", no_args_is_help=True)


@app.callback()
def app_callback(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """noteweave - notes with cloze cards, tasks, agent blocks, tags and links"""
    init_cli_logging(ConfigManager().load_config())
