"""Review commands: `noteweave review due|grade|reset|stats`."""

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
from noteweave.schemas.srs import DueLimits, Rating, ReviewScope
from noteweave.services.workspace import Workspace

review_app = typer.Typer(help="Spaced-repetition review commands")
app.add_typer(review_app, name="review")


async def _scope(workspace: Workspace, namespace: str, path: Optional[str]) -> ReviewScope:
    if path is None:
        return ReviewScope.for_namespace(namespace)
    node = await workspace.nodes.get_node_by_path(namespace, path)
    return ReviewScope.for_subtree(node.id)


@review_app.command("due")
def due(
    path: Annotated[Optional[str], typer.Argument(help="Limit to this subtree")] = None,
    namespace: Annotated[str, typer.Option("--namespace", "-n")] = DEFAULT_NAMESPACE,
    new_limit: Annotated[Optional[int], typer.Option("--new", help="Max new cards")] = None,
    review_limit: Annotated[
        Optional[int], typer.Option("--reviews", help="Max cards already in review")
    ] = None,
) -> None:
    """List cards due for review."""

    async def _due():
        async with open_workspace() as workspace:
            scope = await _scope(workspace, namespace, path)
            defaults = workspace.srs.default_limits()
            limits = DueLimits(
                new=defaults.new if new_limit is None else new_limit,
                review=defaults.review if review_limit is None else review_limit,
            )
            due_cards = await workspace.srs.get_due_cards(scope, limits)
            cards = await workspace.cloze_repository.find_by_ids(due_cards.new + due_cards.review)
            by_id = {card.id: card for card in cards}
            return [by_id[card_id] for card_id in due_cards.new + due_cards.review]

    cards = run_with_cleanup(_due())
    if not cards:
        console.print("[green]Nothing due[/green]")
        return
    table = Table(title="Due cards")
    table.add_column("Card", style="cyan")
    table.add_column("Tier")
    table.add_column("Due")
    table.add_column("Text")
    for card in cards:
        table.add_row(card.id, card.tier, card.due_date.date().isoformat(), card.content)
    console.print(table)


@review_app.command("grade")
def grade(
    card_id: str,
    rating: Annotated[Rating, typer.Argument(help="again, hard, good or easy")],
) -> None:
    """Grade a card and schedule its next review."""

    async def _grade():
        async with open_workspace() as workspace:
            return await workspace.srs.grade_card(card_id, rating)

    card = run_with_cleanup(_grade())
    console.print(
        f"[green]{card.id}[/green] tier={card.tier} interval={card.interval}d "
        f"next={card.due_date.date().isoformat()}"
    )


@review_app.command("reset")
def reset(card_id: str) -> None:
    """Send a card back to new."""

    async def _reset():
        async with open_workspace() as workspace:
            return await workspace.srs.reset_card(card_id)

    card = run_with_cleanup(_reset())
    console.print(f"[green]{card.id}[/green] reset to {card.tier}")


@review_app.command("stats")
def stats(
    path: Annotated[Optional[str], typer.Argument(help="Limit to this subtree")] = None,
    namespace: Annotated[str, typer.Option("--namespace", "-n")] = DEFAULT_NAMESPACE,
) -> None:
    """Show card counts per tier."""

    async def _stats():
        async with open_workspace() as workspace:
            scope = await _scope(workspace, namespace, path)
            return await workspace.srs.get_statistics(scope)

    statistics = run_with_cleanup(_stats())
    table = Table(title="Review statistics")
    table.add_column("Tier", style="cyan")
    table.add_column("Cards", justify="right")
    for tier in ("new", "learning", "review", "mature", "total", "due"):
        table.add_row(tier, str(getattr(statistics, tier)))
    console.print(table)
