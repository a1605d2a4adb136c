"""Tag commands: `noteweave tag add|remove|list|rename|delete`."""

from typing import Annotated, Optional

import typer
from rich.table import Table

from noteweave.cli.app import app
from noteweave.cli.commands.command_utils import (
    DEFAULT_NAMESPACE,
    console,
    open_workspace,
    run_with_cleanup,
)

tag_app = typer.Typer(help="Tag commands")
app.add_typer(tag_app, name="tag")


@tag_app.command("add")
def add_tag(
    path: str,
    tag: str,
    namespace: Annotated[str, typer.Option("--namespace", "-n")] = DEFAULT_NAMESPACE,
) -> None:
    """Attach a tag to a node."""

    async def _add():
        async with open_workspace() as workspace:
            node = await workspace.nodes.get_node_by_path(namespace, path)
            await workspace.tags.add_tag_to_node(node.id, tag)

    run_with_cleanup(_add())
    console.print(f"[green]Tagged {path} with {tag}[/green]")


@tag_app.command("remove")
def remove_tag(
    path: str,
    tag: str,
    namespace: Annotated[str, typer.Option("--namespace", "-n")] = DEFAULT_NAMESPACE,
) -> None:
    """Detach a tag from a node."""

    async def _remove():
        async with open_workspace() as workspace:
            node = await workspace.nodes.get_node_by_path(namespace, path)
            return await workspace.tags.remove_tag_from_node(node.id, tag)

    if run_with_cleanup(_remove()):
        console.print(f"[green]Removed {tag} from {path}[/green]")
    else:
        console.print(f"[yellow]{path} is not tagged {tag}[/yellow]")


@tag_app.command("list")
def list_tags(
    tag: Annotated[Optional[str], typer.Argument(help="Show nodes with this tag")] = None,
) -> None:
    """List all tags, or the nodes carrying one tag."""

    async def _list():
        async with open_workspace() as workspace:
            if tag is None:
                return await workspace.tags.get_all_tags()
            return await workspace.tags.find_nodes_by_tag(tag)

    rows = run_with_cleanup(_list())
    if tag is None:
        table = Table(title="Tags")
        table.add_column("Name", style="cyan")
        table.add_column("Color")
        table.add_column("Protected", justify="center")
        for row in rows:
            table.add_row(row.name, row.color or "", "yes" if row.is_protected else "")
    else:
        table = Table(title=f"Nodes tagged {tag}")
        table.add_column("Namespace", style="cyan")
        table.add_column("Path", style="green")
        for row in rows:
            table.add_row(row.namespace, row.path)
    console.print(table)


@tag_app.command("rename")
def rename_tag(old_name: str, new_name: str) -> None:
    """Rename a tag everywhere it is used."""

    async def _rename():
        async with open_workspace() as workspace:
            return await workspace.tags.rename_tag(old_name, new_name)

    run_with_cleanup(_rename())
    console.print(f"[green]Renamed tag {old_name} -> {new_name}[/green]")


@tag_app.command("delete")
def delete_tag(name: str) -> None:
    """Delete a tag and remove it from every node."""

    async def _delete():
        async with open_workspace() as workspace:
            return await workspace.tags.delete_tag(name)

    removed = run_with_cleanup(_delete())
    console.print(f"[green]Deleted tag {name} ({removed} nodes untagged)[/green]")
