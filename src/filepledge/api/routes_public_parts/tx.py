# src/filepledge/api/routes_public_parts/tx.py
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from filepledge.api.errors import ApiError
from filepledge.api.routes_public_parts.common import _executor
from filepledge.api.schemas import TxSubmitRequest

router = APIRouter()

Json = Dict[str, Any]


@router.post("/tx/submit")
def tx_submit(request: Request, body: TxSubmitRequest) -> Json:
    """Admit and apply one signed tx.

    Returns { ok, tx_id, status: applied, height, result }. A rejected tx
    becomes an error response whose code is the engine's error code.
    """
    ex = _executor(request)
    receipt = ex.submit_tx(body.model_dump())
    if not receipt.get("ok"):
        raise ApiError.from_receipt(receipt)
    return {
        "ok": True,
        "tx_id": receipt["tx_id"],
        "status": receipt["status"],
        "height": receipt["height"],
        "result": receipt.get("result"),
    }


@router.get("/tx/status/{tx_id}")
def tx_status(request: Request, tx_id: str) -> Json:
    receipt = _executor(request).tx_status(tx_id)
    if receipt is None:
        raise ApiError.not_found("not_found", "unknown tx_id", {"tx_id": tx_id})
    return {"ok": True, "receipt": receipt}
