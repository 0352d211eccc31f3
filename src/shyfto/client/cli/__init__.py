"""Command-line interface for shyfto.

This module provides the main CLI entry point and assembles all commands.

Commands:
- upload: Upload a local file through the storage proxy
- download: Download a stored object to a local file
- url: Print a presigned download URL
- delete: Purge every version of one or more stored objects
- server: Proxy server commands (serve, purge)
"""

from __future__ import annotations

import click

from shyfto.client.cli.server import server
from shyfto.client.cli.transfer import delete, download, upload, url


@click.group()
@click.version_option(package_name="shyfto")
def cli() -> None:
    """Shyfto - object-storage proxy for shareable file transfers."""


# Transfer commands
cli.add_command(upload)
cli.add_command(download)
cli.add_command(url)
cli.add_command(delete)

# Server commands
cli.add_command(server)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = ["cli", "main"]
