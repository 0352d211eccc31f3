"""Shared configuration classes for shyfto.

This module defines configuration classes used by the proxy server
(StoreSettings) and by the transfer client (ProxyConfig).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

DEFAULT_ENDPOINT_URL = "https://gateway.storjshare.io"
DEFAULT_BUCKET = "shyfto"
DEFAULT_REGION = "us-east-1"

# Presigned download URLs are valid for ten minutes
PRESIGN_TTL_SECONDS = 600


@dataclass
class StoreSettings:
    """Connection settings for the S3-compatible object store.

    Attributes:
        bucket: Default bucket used when a request carries no override.
        endpoint_url: S3 endpoint (None for AWS itself).
        access_key: Access key ID.
        secret_key: Secret access key.
        region: Signing region.
        connect_timeout: Seconds to wait for a connection to the store.
        read_timeout: Seconds to wait for a response from the store.
        presign_ttl: Lifetime of presigned download URLs in seconds.
        delete_workers: Keys purged in parallel by delete-multiple.
    """

    bucket: str = DEFAULT_BUCKET
    endpoint_url: str | None = DEFAULT_ENDPOINT_URL
    access_key: str | None = None
    secret_key: str | None = field(default=None, repr=False)
    region: str = DEFAULT_REGION
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    presign_ttl: int = PRESIGN_TTL_SECONDS
    delete_workers: int = 1

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> StoreSettings:
        """Build settings from SHYFTO_S3_* environment variables.

        Credentials are not validated here; the store client refuses to
        start without them.
        """
        env = os.environ if environ is None else environ
        endpoint = env.get("SHYFTO_S3_ENDPOINT", DEFAULT_ENDPOINT_URL)
        return cls(
            bucket=env.get("SHYFTO_S3_BUCKET", DEFAULT_BUCKET),
            # An empty endpoint selects AWS itself
            endpoint_url=endpoint or None,
            access_key=env.get("SHYFTO_S3_ACCESS_KEY"),
            secret_key=env.get("SHYFTO_S3_SECRET_KEY"),
            region=env.get("SHYFTO_S3_REGION", DEFAULT_REGION),
            connect_timeout=float(env.get("SHYFTO_S3_CONNECT_TIMEOUT", "10")),
            read_timeout=float(env.get("SHYFTO_S3_READ_TIMEOUT", "60")),
            delete_workers=int(env.get("SHYFTO_DELETE_WORKERS", "1")),
        )


@dataclass
class ProxyConfig:
    """Configuration for connecting to a shyfto transfer proxy.

    Attributes:
        proxy_url: Base URL of the proxy (e.g., "https://files.example.com").
        token: Bearer credential issued by the auth provider.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    proxy_url: str
    token: str
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize proxy URL."""
        self.proxy_url = self.proxy_url.rstrip("/")

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS.

        Returns:
            True if proxy uses HTTPS.
        """
        return self.proxy_url.startswith("https://")
