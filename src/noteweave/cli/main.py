"""Main CLI entry point for noteweave."""  # pragma: no cover

from noteweave.cli.app import app  # pragma: no cover

# Register commands
from noteweave.cli.commands import data, nodes, review, tags  # noqa: F401  # pragma: no cover

if __name__ == "__main__":  # pragma: no cover
    app()
