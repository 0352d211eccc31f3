"""Pytest fixtures for S3 tests backed by moto."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

import pytest

from shyfto.server.storage import S3ObjectStore

BUCKET = "test-bucket"


@pytest.fixture
def mock_s3() -> Generator[Any, None, None]:
    """Set up moto mock for S3 with a versioned bucket."""
    pytest.importorskip("moto")
    import boto3
    from moto import mock_aws

    with mock_aws():
        client = boto3.client("s3", region_name="us-east-1")
        client.create_bucket(Bucket=BUCKET)
        client.put_bucket_versioning(
            Bucket=BUCKET, VersioningConfiguration={"Status": "Enabled"}
        )
        yield client


@pytest.fixture
def s3_store(mock_s3: Any) -> S3ObjectStore:
    """Create an S3ObjectStore talking to the moto mock."""
    return S3ObjectStore(access_key="testing", secret_key="testing", endpoint_url=None)
