"""CLI commands for noteweave."""

from noteweave.cli.commands import data, nodes, review, tags

__all__ = ["data", "nodes", "review", "tags"]
