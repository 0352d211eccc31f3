"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# === Transfer envelope ===


class TransferEnvelope(BaseModel):
    """Request body for the storage operations endpoint.

    ``operation`` is kept as a plain string so an unknown value reaches the
    proxy and is reported as an invalid operation rather than a schema error.
    The original field names (filePath, files, fileData) remain accepted.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    operation: str
    storage_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("storageKey", "filePath", "storage_key"),
    )
    storage_keys: list[str] | None = Field(
        default=None,
        validation_alias=AliasChoices("storageKeys", "files", "storage_keys"),
    )
    payload: str | None = Field(
        default=None,
        validation_alias=AliasChoices("payload", "fileData"),
    )
    content_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("contentType", "content_type"),
    )
    size: int | None = Field(default=None, ge=0)
    bucket_override: str | None = Field(
        default=None,
        validation_alias=AliasChoices("bucketOverride", "bucket_override"),
    )


# === Responses ===


class KeyResult(BaseModel):
    """Per-key outcome of delete-multiple."""

    storageKey: str
    success: bool
    deletedVersions: int = 0
    error: str | None = None


class ErrorResponse(BaseModel):
    """Error response shape shared by every failure."""

    error: str
    errorType: str
    results: list[KeyResult] | None = None


# === Health schema ===


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
