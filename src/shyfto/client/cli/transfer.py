"""Transfer commands for shyfto CLI.

Commands:
- upload: Upload a local file through the storage proxy
- download: Download a stored object to a local file
- url: Print a presigned download URL
- delete: Purge every version of one or more stored objects

All commands talk to the proxy given by --proxy-url / SHYFTO_PROXY_URL and
authenticate with --token / SHYFTO_TOKEN.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import click

from shyfto.client.agent import DownloadPolicy, TransferAgent, TransferError
from shyfto.client.api import ProxyClient
from shyfto.core.config import ProxyConfig
from shyfto.core.errors import PartialDeletionError, ShyftoError


def proxy_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add the proxy connection options shared by every transfer command."""
    func = click.option(
        "--bucket",
        default=None,
        help="Bucket override (default: the proxy's bucket).",
    )(func)
    func = click.option(
        "--token",
        envvar="SHYFTO_TOKEN",
        required=True,
        help="Bearer token for the proxy (or SHYFTO_TOKEN).",
    )(func)
    func = click.option(
        "--proxy-url",
        envvar="SHYFTO_PROXY_URL",
        required=True,
        help="Storage proxy base URL (or SHYFTO_PROXY_URL).",
    )(func)
    return func


@contextmanager
def open_agent(
    proxy_url: str, token: str, payload_max_size: int = 0
) -> Iterator[TransferAgent]:
    """Open a proxy client and a transfer agent for one command."""
    config = ProxyConfig(proxy_url=proxy_url, token=token)
    with ProxyClient(config) as proxy:
        policy = DownloadPolicy(payload_max_size=payload_max_size)
        with TransferAgent(proxy, policy=policy) as agent:
            yield agent


@contextmanager
def progress_bar(label: str) -> Iterator[Callable[[int], None]]:
    """Yield a progress callback drawing a click progress bar.

    The bar only moves forward; a reset after a failure is not drawn.
    """
    with click.progressbar(length=100, label=label) as bar:
        shown = 0

        def on_progress(percent: int) -> None:
            nonlocal shown
            if percent > shown:
                bar.update(percent - shown)
                shown = percent

        yield on_progress


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--key",
    default=None,
    help="Storage key (default: the file name).",
)
@click.option(
    "--content-type",
    default=None,
    help="MIME type (default: guessed from the file name).",
)
@proxy_options
def upload(
    path: Path,
    key: str | None,
    content_type: str | None,
    proxy_url: str,
    token: str,
    bucket: str | None,
) -> None:
    """Upload a local file through the storage proxy.

    Examples:

        # Upload under the file name
        shyfto upload report.pdf

        # Upload under an explicit key
        shyfto upload report.pdf --key user-1/2024/report.pdf
    """
    storage_key = key or path.name

    try:
        with open_agent(proxy_url, token) as agent, progress_bar("Uploading") as bar:
            agent.upload_file(path, storage_key, content_type, bar, bucket)
    except TransferError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Uploaded {path} as {storage_key}")


@click.command()
@click.argument("key")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Destination file (default: last segment of the key).",
)
@click.option(
    "--size",
    type=int,
    default=None,
    help="Expected size in bytes, used to pick the download path.",
)
@click.option(
    "--payload-max-size",
    type=int,
    default=0,
    show_default=True,
    help="Files up to this size download through the proxy (0 disables).",
)
@proxy_options
def download(
    key: str,
    output: Path | None,
    size: int | None,
    payload_max_size: int,
    proxy_url: str,
    token: str,
    bucket: str | None,
) -> None:
    """Download a stored object to a local file."""
    destination = output or Path(key.rsplit("/", 1)[-1])

    try:
        with open_agent(proxy_url, token, payload_max_size) as agent:
            with progress_bar("Downloading") as bar:
                agent.download_to_file(key, destination, size, bar, bucket)
    except TransferError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Downloaded {key} to {destination}")


@click.command()
@click.argument("key")
@proxy_options
def url(key: str, proxy_url: str, token: str, bucket: str | None) -> None:
    """Print a presigned download URL for KEY.

    The URL is valid for a limited time (10 minutes by default).
    """
    config = ProxyConfig(proxy_url=proxy_url, token=token)
    try:
        with ProxyClient(config) as proxy:
            click.echo(proxy.get_download_url(key, bucket=bucket))
    except ShyftoError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.command()
@click.argument("keys", nargs=-1, required=True)
@proxy_options
def delete(
    keys: tuple[str, ...], proxy_url: str, token: str, bucket: str | None
) -> None:
    """Purge every version of one or more stored objects.

    Deletion is permanent: all versions and delete markers are removed.
    """
    with open_agent(proxy_url, token) as agent:
        try:
            if len(keys) == 1:
                count = agent.delete(keys[0], bucket=bucket)
                click.echo(f"Deleted {keys[0]} ({count} versions)")
                return

            results = agent.delete_many(list(keys), bucket=bucket)
        except PartialDeletionError as e:
            for result in e.results:
                if result.success:
                    count = result.deleted_versions
                    click.echo(f"Deleted {result.key} ({count} versions)")
                else:
                    click.echo(
                        click.style(f"Failed {result.key}: {result.error}", fg="red"),
                        err=True,
                    )
            sys.exit(1)
        except TransferError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    for result in results:
        click.echo(f"Deleted {result.key} ({result.deleted_versions} versions)")
