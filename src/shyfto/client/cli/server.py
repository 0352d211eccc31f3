"""Server commands for shyfto CLI.

Commands:
- server serve: Run the storage proxy with uvicorn
- server purge: Purge every version of keys directly against the store
"""

from __future__ import annotations

import sys

import click


@click.group()
def server() -> None:
    """Server management commands.

    These commands read the object store settings from SHYFTO_S3_*
    environment variables.
    """


@server.command("serve")
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", type=int, default=8000, show_default=True, help="Bind port.")
@click.option("--reload", is_flag=True, help="Reload on code changes (development).")
def serve(host: str, port: int, reload: bool) -> None:
    """Run the storage proxy.

    Examples:

        # Serve on all interfaces
        SHYFTO_S3_ACCESS_KEY=... SHYFTO_S3_SECRET_KEY=... \\
            shyfto server serve --host 0.0.0.0
    """
    import uvicorn

    uvicorn.run(
        "shyfto.server.app:app_factory",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@server.command("purge")
@click.argument("keys", nargs=-1, required=True)
@click.option(
    "--bucket",
    default=None,
    help="Bucket (default: SHYFTO_S3_BUCKET or shyfto).",
)
@click.option(
    "--workers",
    type=int,
    default=None,
    help="Keys purged in parallel (default: SHYFTO_DELETE_WORKERS or 1).",
)
def purge(keys: tuple[str, ...], bucket: str | None, workers: int | None) -> None:
    """Purge every version and delete marker of KEYS.

    Talks to the object store directly, bypassing the proxy. This command
    can be run manually to clean up objects left behind by failed deletes.

    Examples:

        shyfto server purge user-1/old.pdf user-1/older.pdf
    """
    from shyfto.core.config import StoreSettings
    from shyfto.core.errors import ConfigurationError
    from shyfto.server.deletion import purge_objects
    from shyfto.server.storage import create_store

    settings = StoreSettings.from_env()
    target = bucket or settings.bucket

    try:
        store = create_store(settings)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Store: {store.location}")
    click.echo(f"Purging {len(keys)} keys from {target}...")

    results = purge_objects(
        store, target, list(keys), max_workers=workers or settings.delete_workers
    )
    failed = 0
    for result in results:
        if result.success:
            click.echo(f"Purged {result.key} ({result.deleted_versions} versions)")
        else:
            failed += 1
            click.echo(click.style(f"Failed {result.key}: {result.error}", fg="red"))

    if failed:
        click.echo(f"{failed} of {len(results)} keys failed.", err=True)
        sys.exit(1)
