# src/filepledge/api/routes_public_parts/health.py
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from filepledge.api.routes_public_parts.common import _block_loop, _executor, _view

router = APIRouter()

Json = Dict[str, Any]


@router.get("/health")
def health() -> Json:
    """Liveness only; never touches storage."""
    return {"ok": True}


@router.get("/status")
def status(request: Request) -> Json:
    ex = _executor(request)
    v = _view(request)
    loop = _block_loop(request)
    return {
        "ok": True,
        "chain_id": v.chain_id,
        "node_id": ex.node_id,
        "height": v.height,
        "tip": v.tip,
        "tip_ts_ms": v.tip_ts_ms,
        "admin": v.admin(),
        "block_loop": {
            "running": bool(loop is not None and loop.running),
            "unhealthy": bool(loop is not None and loop.unhealthy),
            "last_error": loop.last_error if loop is not None else "",
        },
    }
