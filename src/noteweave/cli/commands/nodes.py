"""Node commands: create, write, show, tree, mv, rename, rm, backlinks."""

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.table import Table
from rich.tree import Tree

from noteweave.cli.app import app
from noteweave.cli.commands.command_utils import (
    DEFAULT_NAMESPACE,
    console,
    open_workspace,
    run_with_cleanup,
)
from noteweave.schemas.tree import TreeNode
from noteweave.services.exceptions import ValidationError

NamespaceOption = Annotated[
    str, typer.Option("--namespace", "-n", help="Namespace the path belongs to")
]


def add_to_tree(tree: Tree, node: TreeNode) -> None:
    for child in node.children:
        if child.type == "directory":
            branch = tree.add(f"[bold blue]{child.name}/[/bold blue]")
            add_to_tree(branch, child)
        else:
            tree.add(f"[green]{child.name}[/green]")


def read_text(text: Optional[str], file: Optional[Path]) -> str:
    if text is not None and file is not None:
        raise ValidationError("Use either --text or --file, not both")
    if file is not None:
        return file.read_text(encoding="utf-8")
    return text or ""


@app.command()
def create(
    path: str,
    namespace: NamespaceOption = DEFAULT_NAMESPACE,
    text: Annotated[Optional[str], typer.Option("--text", "-t", help="Initial content")] = None,
    file: Annotated[
        Optional[Path], typer.Option("--file", "-f", exists=True, help="Read content from a file")
    ] = None,
    tag: Annotated[Optional[list[str]], typer.Option("--tag", help="Tag to attach")] = None,
) -> None:
    """Create a file."""

    async def _create():
        async with open_workspace() as workspace:
            content = read_text(text, file)
            meta = {"tags": tag} if tag else None
            return await workspace.create_file(namespace, path, content, meta=meta)

    node = run_with_cleanup(_create())
    console.print(f"[green]Created {node.path}[/green] ({node.id})")


@app.command()
def mkdir(path: str, namespace: NamespaceOption = DEFAULT_NAMESPACE) -> None:
    """Create a directory."""

    async def _mkdir():
        async with open_workspace() as workspace:
            return await workspace.create_directory(namespace, path)

    node = run_with_cleanup(_mkdir())
    console.print(f"[green]Created {node.path}/[/green] ({node.id})")


@app.command()
def write(
    path: str,
    namespace: NamespaceOption = DEFAULT_NAMESPACE,
    text: Annotated[Optional[str], typer.Option("--text", "-t", help="New content")] = None,
    file: Annotated[
        Optional[Path], typer.Option("--file", "-f", exists=True, help="Read content from a file")
    ] = None,
) -> None:
    """Replace the content of a file."""

    async def _write():
        async with open_workspace() as workspace:
            node = await workspace.nodes.get_node_by_path(namespace, path)
            return await workspace.write(node.id, read_text(text, file))

    result = run_with_cleanup(_write())
    console.print(
        f"[green]Saved[/green] cloze={len(result.cloze_ids)} tasks={len(result.task_ids)} "
        f"agents={len(result.agent_ids)} links={result.link_count}"
    )
    if not result.links_refreshed:
        console.print("[yellow]Link index was not refreshed; save again to retry[/yellow]")


@app.command()
def show(path: str, namespace: NamespaceOption = DEFAULT_NAMESPACE) -> None:
    """Print the content of a file."""

    async def _show():
        async with open_workspace() as workspace:
            return await workspace.nodes.get_node_by_path(namespace, path)

    node = run_with_cleanup(_show())
    if node.is_directory:
        console.print(f"[bold blue]{node.path}[/bold blue] is a directory")
        return
    typer.echo(node.content or "")


@app.command()
def tree(namespace: NamespaceOption = DEFAULT_NAMESPACE) -> None:
    """Show the node tree of a namespace."""

    async def _tree():
        async with open_workspace() as workspace:
            return await workspace.nodes.get_tree(namespace)

    root = run_with_cleanup(_tree())
    if root is None:
        console.print(f"[yellow]Namespace {namespace} is empty[/yellow]")
        return
    rich_tree = Tree(f"[bold]{namespace}[/bold]")
    add_to_tree(rich_tree, root)
    console.print(rich_tree)


@app.command()
def mv(
    path: str,
    destination: Annotated[str, typer.Argument(help="Path of the new parent directory")],
    namespace: NamespaceOption = DEFAULT_NAMESPACE,
) -> None:
    """Move a node into another directory."""

    async def _mv():
        async with open_workspace() as workspace:
            node = await workspace.nodes.get_node_by_path(namespace, path)
            parent = await workspace.nodes.get_node_by_path(namespace, destination)
            return await workspace.nodes.move_node(node.id, parent.id)

    node = run_with_cleanup(_mv())
    console.print(f"[green]Moved to {node.path}[/green]")


@app.command()
def rename(path: str, new_name: str, namespace: NamespaceOption = DEFAULT_NAMESPACE) -> None:
    """Rename a node in place."""

    async def _rename():
        async with open_workspace() as workspace:
            node = await workspace.nodes.get_node_by_path(namespace, path)
            return await workspace.nodes.rename_node(node.id, new_name)

    node = run_with_cleanup(_rename())
    console.print(f"[green]Renamed to {node.path}[/green]")


@app.command()
def rm(path: str, namespace: NamespaceOption = DEFAULT_NAMESPACE) -> None:
    """Delete a node and everything below it."""

    async def _rm():
        async with open_workspace() as workspace:
            node = await workspace.nodes.get_node_by_path(namespace, path)
            return await workspace.nodes.delete_node(node.id)

    result = run_with_cleanup(_rm())
    console.print(f"[green]Deleted {len(result.all_removed_ids)} node(s)[/green]")


@app.command()
def backlinks(path: str, namespace: NamespaceOption = DEFAULT_NAMESPACE) -> None:
    """List nodes that link to a node."""

    async def _backlinks():
        async with open_workspace() as workspace:
            node = await workspace.nodes.get_node_by_path(namespace, path)
            return await workspace.links.get_backlinks(node.id)

    nodes = run_with_cleanup(_backlinks())
    if not nodes:
        console.print("[yellow]No backlinks[/yellow]")
        return
    table = Table(title=f"Backlinks to {path}")
    table.add_column("Namespace", style="cyan")
    table.add_column("Path", style="green")
    for node in nodes:
        table.add_row(node.namespace, node.path)
    console.print(table)
