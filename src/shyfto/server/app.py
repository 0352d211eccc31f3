"""FastAPI application for the shyfto storage proxy.

This module creates and configures the FastAPI application with:
- The storage operations endpoint (upload, download, URLs, deletion)
- CORS for browser clients on any origin
- Health check

Usage:
    uvicorn shyfto.server.app:app_factory --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shyfto.core.config import StoreSettings
from shyfto.server.api.errors import register_error_handlers
from shyfto.server.api.router import router as api_router
from shyfto.server.proxy import TransferProxy
from shyfto.server.storage import create_store

LOG_PATH = Path(os.environ.get("SHYFTO_LOG_PATH", "shyfto-server.log"))

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]

logger = logging.getLogger(__name__)


def setup_logging(log_path: Path | None) -> None:
    """Configure logging to output to stdout and, optionally, a file.

    Args:
        log_path: Path to the log file, or None for stdout only.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    # Root logger for shyfto
    root_logger = logging.getLogger("shyfto")
    root_logger.setLevel(logging.INFO)

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is None:
        return

    # File handler
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(uvicorn_name)
        uvicorn_logger.addHandler(file_handler)


def create_app(proxy: TransferProxy | None) -> FastAPI:
    """Create FastAPI application around a transfer proxy.

    This is primarily used for testing with mocked object stores.

    Args:
        proxy: TransferProxy instance (None disables the storage endpoint).

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        # Startup
        logger.info("=" * 60)
        logger.info("Shyfto Storage Proxy Starting")
        logger.info("=" * 60)
        if proxy:
            logger.info("  Storage:  %s", proxy.store.location)
            logger.info("  Bucket:   %s", proxy.default_bucket)
        else:
            logger.info("  Storage:  None (storage disabled)")
        logger.info("=" * 60)

        yield

        # Shutdown
        logger.info("Shyfto Storage Proxy shutting down")

    application = FastAPI(
        title="Shyfto Storage Proxy",
        description="Object-storage proxy for shareable file transfers",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=CORS_ALLOW_HEADERS,
    )
    register_error_handlers(application)

    application.state.proxy = proxy
    application.include_router(api_router)

    return application


def create_proxy(settings: StoreSettings) -> TransferProxy:
    """Build the transfer proxy from store settings.

    Raises:
        ConfigurationError: If credentials or bucket are missing.
    """
    return TransferProxy(
        store=create_store(settings),
        default_bucket=settings.bucket,
        presign_ttl=settings.presign_ttl,
        delete_workers=settings.delete_workers,
    )


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode.

    Reads SHYFTO_* environment variables and fails fast when the object
    store credentials are missing.
    """
    setup_logging(LOG_PATH)
    return create_app(create_proxy(StoreSettings.from_env()))
