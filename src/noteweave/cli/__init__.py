"""CLI tools for noteweave."""
