"""FastAPI dependencies for API routes."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from shyfto.server.proxy import TransferProxy


def get_proxy(request: Request) -> TransferProxy:
    """Get transfer proxy from app state."""
    proxy: TransferProxy | None = request.app.state.proxy
    if proxy is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Object storage not configured",
        )
    return proxy
