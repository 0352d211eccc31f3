"""Storage operations API route."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from shyfto.server.api.deps import get_proxy
from shyfto.server.proxy import TransferProxy
from shyfto.server.schemas import ErrorResponse, TransferEnvelope

router = APIRouter(prefix="/api/storage", tags=["storage"])

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    code: {"model": ErrorResponse} for code in (400, 404, 500, 502, 503, 504)
}


@router.post("/operations", responses=ERROR_RESPONSES)
def storage_operation(
    envelope: TransferEnvelope,
    proxy: TransferProxy = Depends(get_proxy),
) -> dict[str, Any]:
    """Run one storage operation described by a transfer envelope.

    Failures are turned into ``{"error": ...}`` responses by the
    exception handlers registered in shyfto.server.api.errors.
    """
    return proxy.handle(envelope)
