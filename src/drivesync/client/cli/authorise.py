"""Authorise command for the drivesync CLI.

Commands:
- authorise: Print the sign-in URL and explain how to create a key file
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from drivesync.client.auth import authorisation_url
from drivesync.client.cli.config import (
    get_auth_settings,
    get_default_keyfile,
    load_config,
    save_config,
)
from drivesync.core.config import ConfigError


@click.command()
@click.option("--keyfile", type=click.Path(path_type=Path), help="Key file to create.")
@click.option("--client-id", help="OAuth client id; saved to the config file.")
def authorise(keyfile: Path | None, client_id: str | None) -> None:
    """Authorise drivesync to access your drive."""
    config = load_config()
    try:
        settings = get_auth_settings(config, client_id)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if client_id and config.get("client_id") != client_id:
        config["client_id"] = client_id
        save_config(config)

    keyfile = keyfile or get_default_keyfile()

    click.echo("To authorise drivesync, open the following URL in a browser and sign in:")
    click.echo()
    click.echo(authorisation_url(settings))
    click.echo()
    click.echo("You will be redirected to a blank page. Copy the URL of that page")
    click.echo(f"(or just its 'code' parameter) into {keyfile}, then run 'drivesync sync'.")
    click.echo("The code is exchanged for a refresh token on first use.")
