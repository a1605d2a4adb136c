"""Data commands: `noteweave data export|import|info|clear`."""

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from noteweave.cli.app import app
from noteweave.cli.commands.command_utils import console, open_workspace, run_with_cleanup

data_app = typer.Typer(help="Backup and maintenance commands")
app.add_typer(data_app, name="data")


@data_app.command("export")
def export_data(file: Path) -> None:
    """Write every table to a JSON file."""

    async def _export():
        async with open_workspace() as workspace:
            return await workspace.backup.export_all()

    bundle = run_with_cleanup(_export())
    file.write_text(bundle.model_dump_json(indent=2), encoding="utf-8")
    rows = sum(len(table_rows) for table_rows in bundle.data.values())
    console.print(f"[green]Exported {rows} rows to {file}[/green]")


@data_app.command("import")
def import_data(
    file: Path,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Replace the stored data with a JSON file made by `data export`."""
    try:
        payload = json.loads(file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Error: cannot read {file}: {e}[/red]")
        raise typer.Exit(1)
    if not yes:
        typer.confirm("Importing replaces the current data. Continue?", abort=True)

    async def _import():
        async with open_workspace() as workspace:
            return await workspace.backup.import_all(payload)

    written = run_with_cleanup(_import())
    console.print(f"[green]Imported {sum(written.values())} rows from {file}[/green]")


@data_app.command("info")
def info() -> None:
    """Show where the data lives and how many rows each table holds."""

    async def _info():
        async with open_workspace() as workspace:
            return await workspace.backup.get_storage_info()

    storage = run_with_cleanup(_info())
    table = Table(title="Storage")
    table.add_column("Table", style="cyan")
    table.add_column("Rows", justify="right")
    for name, count in storage.row_counts.items():
        table.add_row(name, str(count))
    console.print(table)
    if storage.database_path is not None:
        console.print(f"{storage.database_path} ({storage.size_bytes} bytes)")


@data_app.command("clear")
def clear(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Delete all data."""
    if not yes:
        typer.confirm("This deletes every node, card, task, tag and link. Continue?", abort=True)

    async def _clear():
        async with open_workspace() as workspace:
            return await workspace.backup.clear_all()

    cleared = run_with_cleanup(_clear())
    console.print(f"[green]Deleted {sum(cleared.values())} rows[/green]")
