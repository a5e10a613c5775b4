"""Command-line interface for drivesync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- sync: Synchronize a local directory with a drive folder
- authorise: Print the sign-in URL for creating a key file
"""

from __future__ import annotations

import click

from drivesync.client.cli.authorise import authorise
from drivesync.client.cli.config import (
    get_config_dir,
    get_config_file,
    load_config,
    save_config,
)
from drivesync.client.cli.sync import sync


@click.group()
@click.version_option(package_name="drivesync")
def cli() -> None:
    """drivesync - one-way sync between a local directory and a cloud drive."""


cli.add_command(sync)
cli.add_command(authorise)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "get_config_dir",
    "get_config_file",
    "load_config",
    "save_config",
]
