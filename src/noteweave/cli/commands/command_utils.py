"""Utility functions for noteweave CLI commands."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Coroutine, TypeVar

import typer
from rich.console import Console

from noteweave.config import ConfigManager
from noteweave.context import open_context
from noteweave.services.exceptions import NoteweaveError
from noteweave.services.workspace import Workspace

console = Console()

T = TypeVar("T")

DEFAULT_NAMESPACE = "default"


def run_with_cleanup(coro: Coroutine[None, None, T]) -> T:
    """Run an async command to completion; service errors exit with status 1."""
    try:
        return asyncio.run(coro)
    except NoteweaveError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@asynccontextmanager
async def open_workspace() -> AsyncGenerator[Workspace, None]:
    """Open the configured database and yield a Workspace over it."""
    config = ConfigManager().load_config()
    async with open_context(config) as context:
        yield Workspace(context)
