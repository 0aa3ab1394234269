"""Command line interface for portsync."""

from portsync.cli.main import cli, main

__all__ = ["cli", "main"]
