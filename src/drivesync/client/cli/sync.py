"""Sync command for the drivesync CLI.

Commands:
- sync: Synchronize a local directory with a drive folder
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
import httpx

from drivesync.client.cli.config import (
    get_api_url,
    get_auth_settings,
    get_default_keyfile,
    load_config,
)
from drivesync.client.cli.log import setup_logging
from drivesync.core.config import ConfigError, SyncConfig, SyncDirection
from drivesync.core.formatting import readable_file_size

logger = logging.getLogger(__name__)


@click.command()
@click.option(
    "--local", "local_path", required=True,
    type=click.Path(path_type=Path), help="Local directory to synchronize.",
)
@click.option("--remote", "remote_path", required=True, help="Remote folder, e.g. /Documents.")
@click.option(
    "--direction", required=True,
    type=click.Choice(["up", "down"], case_sensitive=False),
    help="up: local to remote, down: remote to local.",
)
@click.option("--recursive", "-r", is_flag=True, help="Descend into sub-directories.")
@click.option("--max-size", default=0, show_default=True, help="Skip files bigger than this (KB, 0 = no limit).")
@click.option(
    "--ignore", "ignore_file",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="File with ignore patterns, one per line.",
)
@click.option("--tries", default=3, show_default=True, help="Attempts per task.")
@click.option("--threads", default=5, show_default=True, help="Number of worker threads.")
@click.option("--split-after", default=5, show_default=True, help="Upload files larger than this (MB) in chunks.")
@click.option("--hash-compare", is_flag=True, help="Always compare content hashes.")
@click.option("--dry-run", is_flag=True, help="Only log what would be done.")
@click.option("--keyfile", type=click.Path(path_type=Path), help="Key file (default ~/.drivesync/keyfile.txt).")
@click.option("--client-id", help="OAuth client id (overrides the config file).")
@click.option("--log-file", type=click.Path(path_type=Path), help="Also write the log to this file.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def sync(
    local_path: Path,
    remote_path: str,
    direction: str,
    recursive: bool,
    max_size: int,
    ignore_file: Path | None,
    tries: int,
    threads: int,
    split_after: int,
    hash_compare: bool,
    dry_run: bool,
    keyfile: Path | None,
    client_id: str | None,
    log_file: Path | None,
    verbose: bool,
) -> None:
    """Synchronize a local directory with a drive folder.

    The direction decides which side is authoritative: the other side is
    made to match it, including deletions.
    """
    from drivesync.client.api import APIError, DriveClient, ReadOnlyDriveClient
    from drivesync.client.auth import AuthorisationError, Authoriser, BearerAuth
    from drivesync.client.sync import (
        IgnorePatterns,
        SyncEngine,
        SyncError,
        check_local_root,
        resolve_remote_root,
    )

    setup_logging(log_file, verbose)

    patterns = IgnorePatterns()
    if ignore_file is not None:
        patterns.load_from_file(ignore_file)

    try:
        sync_config = SyncConfig(
            direction=SyncDirection(direction.lower()),
            local_path=local_path,
            remote_path=remote_path,
            recursive=recursive,
            max_size_kb=max_size,
            ignored=patterns.patterns,
            tries=tries,
            threads=threads,
            split_after=split_after,
            use_hash=hash_compare,
            dry_run=dry_run,
        )
        check_local_root(sync_config.local_path)
    except (ConfigError, SyncError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    config = load_config()
    try:
        settings = get_auth_settings(config, client_id)
        authoriser = Authoriser(settings, keyfile or get_default_keyfile())
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except AuthorisationError as e:
        click.echo(f"Error: Unable to authorise client: {e}", err=True)
        click.echo("Run 'drivesync authorise' to create a key file.", err=True)
        sys.exit(1)

    if dry_run:
        logger.info("Dry run: no changes will be made")

    client_cls = ReadOnlyDriveClient if dry_run else DriveClient
    with client_cls(auth=BearerAuth(authoriser), api_url=get_api_url(config)) as api:
        try:
            drive = api.get_default_drive()
            logger.info(
                "Using drive with id '%s' (%s). Usage %s of %s (%.2f%%)",
                drive.id,
                drive.drive_type,
                readable_file_size(drive.used),
                readable_file_size(drive.total),
                drive.usage_percent,
            )
            remote_root = resolve_remote_root(api, sync_config.remote_path)
        except (APIError, SyncError, httpx.HTTPError) as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

        engine = SyncEngine(api, sync_config)
        try:
            report = engine.run(remote_root)
        except KeyboardInterrupt:
            logger.info("Interrupted - stopping workers")
            engine.stop()
            sys.exit(130)

    if report.errors:
        click.echo(f"Completed with {report.errors} failed task(s).", err=True)
