"""Tests for FastAPI server endpoints."""

import base64
from typing import Any

import pytest
from fastapi.testclient import TestClient

from shyfto.server.app import create_app
from shyfto.server.proxy import TransferProxy
from shyfto.server.storage import S3ObjectStore

OPERATIONS = "/api/storage/operations"


@pytest.fixture
def client(memory_store: Any) -> TestClient:
    """Create a test client around an in-memory store."""
    app = create_app(TransferProxy(memory_store, default_bucket="shyfto"))
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def client_without_storage() -> TestClient:
    """Create a test client with storage disabled."""
    return TestClient(create_app(None))


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    def test_health_check(self, client: TestClient) -> None:
        """Health endpoint should return OK."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestCors:
    """Tests for cross-origin access."""

    def test_preflight(self, client: TestClient) -> None:
        """Preflight requests from any origin should be allowed."""
        response = client.options(
            OPERATIONS,
            headers={
                "Origin": "https://app.example.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization, content-type",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        allowed = response.headers["access-control-allow-headers"].lower()
        assert "authorization" in allowed
        assert "content-type" in allowed

    def test_error_responses_carry_cors_headers(self, client: TestClient) -> None:
        """Failures should still be readable by browsers."""
        response = client.post(
            OPERATIONS,
            json={"operation": "download", "storageKey": "missing"},
            headers={"Origin": "https://app.example.com"},
        )

        assert response.status_code == 404
        assert response.headers["access-control-allow-origin"] == "*"


class TestStorageOperations:
    """Tests for POST /api/storage/operations."""

    def test_upload_then_download(self, client: TestClient) -> None:
        """An uploaded payload should come back unchanged."""
        payload = base64.b64encode(b"hello world").decode()

        upload = client.post(
            OPERATIONS,
            json={
                "operation": "upload",
                "storageKey": "u/hello.txt",
                "payload": payload,
                "contentType": "text/plain",
            },
        )
        download = client.post(
            OPERATIONS, json={"operation": "download", "storageKey": "u/hello.txt"}
        )

        assert upload.status_code == 200
        assert upload.json() == {"success": True}
        assert download.status_code == 200
        assert download.json()["data"] == payload
        assert download.json()["contentType"] == "text/plain"

    def test_get_download_url(self, client: TestClient) -> None:
        """URL responses should include the expiry."""
        response = client.post(
            OPERATIONS, json={"operation": "get-download-url", "storageKey": "a.txt"}
        )

        assert response.status_code == 200
        assert response.json()["expiresIn"] == 600

    def test_delete(self, client: TestClient, memory_store: Any) -> None:
        """Delete should report the number of versions removed."""
        memory_store.add_versions("shyfto", "a.txt", 2, delete_markers=1)

        response = client.post(
            OPERATIONS, json={"operation": "delete", "storageKey": "a.txt"}
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "deletedVersions": 3}

    def test_delete_multiple_partial_failure(
        self, client: TestClient, memory_store: Any
    ) -> None:
        """A partial failure should return 502 with every per-key result."""
        memory_store.add_versions("shyfto", "a", 1)
        memory_store.add_versions("shyfto", "b", 1)
        memory_store.failing_list_keys.add("b")

        response = client.post(
            OPERATIONS, json={"operation": "delete-multiple", "storageKeys": ["a", "b"]}
        )

        assert response.status_code == 502
        body = response.json()
        assert body["errorType"] == "PartialDeletionError"
        assert [r["success"] for r in body["results"]] == [True, False]
        assert "error" in body["results"][1]


class TestErrorResponses:
    """Tests for the shared error shape."""

    def test_unknown_operation(self, client: TestClient) -> None:
        """Unknown operations should return 400 with an error message."""
        response = client.post(OPERATIONS, json={"operation": "rename"})

        assert response.status_code == 400
        assert response.json() == {
            "error": "Invalid operation: rename",
            "errorType": "InvalidOperationError",
        }

    def test_missing_operation(self, client: TestClient) -> None:
        """A body without an operation should return 400."""
        response = client.post(OPERATIONS, json={"storageKey": "a"})

        assert response.status_code == 400
        assert response.json()["errorType"] == "InvalidEnvelopeError"

    def test_invalid_json(self, client: TestClient) -> None:
        """A body that is not JSON should return 400."""
        response = client.post(
            OPERATIONS,
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert "error" in response.json()

    def test_invalid_payload(self, client: TestClient) -> None:
        """Bad base64 should return 400 DecodeError."""
        response = client.post(
            OPERATIONS,
            json={"operation": "upload", "storageKey": "a", "payload": "%%%%"},
        )

        assert response.status_code == 400
        assert response.json()["errorType"] == "DecodeError"

    def test_not_found(self, client: TestClient) -> None:
        """Missing objects should return 404."""
        response = client.post(
            OPERATIONS, json={"operation": "download", "storageKey": "missing"}
        )

        assert response.status_code == 404
        assert response.json()["errorType"] == "NotFoundError"

    def test_store_failure(self, client: TestClient, memory_store: Any) -> None:
        """Store failures should return 502."""
        memory_store.failing_list_keys.add("a.txt")

        response = client.post(
            OPERATIONS, json={"operation": "delete", "storageKey": "a.txt"}
        )

        assert response.status_code == 502
        assert response.json()["errorType"] == "StoreError"

    def test_unexpected_error(self, client: TestClient, memory_store: Any) -> None:
        """Unexpected exceptions should still use the error shape."""

        def explode(*args: object) -> None:
            raise RuntimeError("disk on fire")

        memory_store.get = explode

        response = client.post(
            OPERATIONS, json={"operation": "download", "storageKey": "a"}
        )

        assert response.status_code == 500
        assert response.json() == {"error": "disk on fire", "errorType": "InternalError"}

    def test_unexpected_error_carries_cors_headers(
        self, client: TestClient, memory_store: Any
    ) -> None:
        """Browsers should be able to read unexpected 500 responses too."""

        def explode(*args: object) -> None:
            raise RuntimeError("disk on fire")

        memory_store.get = explode

        response = client.post(
            OPERATIONS,
            json={"operation": "download", "storageKey": "a"},
            headers={"Origin": "https://app.example.com"},
        )

        assert response.status_code == 500
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.json()["errorType"] == "InternalError"

    def test_storage_not_configured(self, client_without_storage: TestClient) -> None:
        """Without a proxy the endpoint should return 503."""
        response = client_without_storage.post(
            OPERATIONS, json={"operation": "download", "storageKey": "a"}
        )

        assert response.status_code == 503
        assert response.json()["error"] == "Object storage not configured"


class TestS3Backend:
    """Tests for the API over a moto S3 bucket."""

    def test_upload_download_delete(self, s3_store: S3ObjectStore) -> None:
        """A full lifecycle should leave no versions behind."""
        client = TestClient(create_app(TransferProxy(s3_store, "test-bucket")))
        payload = base64.b64encode(bytes(range(256))).decode()

        client.post(
            OPERATIONS,
            json={"operation": "upload", "storageKey": "k.bin", "payload": payload},
        )
        client.post(
            OPERATIONS,
            json={"operation": "upload", "storageKey": "k.bin", "payload": payload},
        )
        download = client.post(
            OPERATIONS, json={"operation": "download", "storageKey": "k.bin"}
        )
        delete = client.post(OPERATIONS, json={"operation": "delete", "storageKey": "k.bin"})
        missing = client.post(
            OPERATIONS, json={"operation": "download", "storageKey": "k.bin"}
        )

        assert download.json()["data"] == payload
        assert delete.json() == {"success": True, "deletedVersions": 2}
        assert missing.status_code == 404
        assert s3_store.list_versions("test-bucket", "k.bin").records == []


class TestOpenApi:
    """Tests for the generated API schema."""

    def test_error_schema_documented(self, client: TestClient) -> None:
        """The operations route should document the shared error shape."""
        schema = client.get("/openapi.json").json()

        responses = schema["paths"][OPERATIONS]["post"]["responses"]
        assert "502" in responses
        assert "ErrorResponse" in schema["components"]["schemas"]
        assert "KeyResult" in schema["components"]["schemas"]
