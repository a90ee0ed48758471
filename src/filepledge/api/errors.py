# src/filepledge/api/errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from filepledge.runtime.errors import (
    ALREADY_ACTIVE_OR_EXPIRED,
    ALREADY_CLAIMED,
    ALREADY_EXISTS,
    INSUFFICIENT_BALANCE,
    INVALID_INPUT,
    NOT_FOUND,
    UNAUTHORIZED,
)

# Engine and admission codes -> HTTP status.
_STATUS_BY_CODE: Dict[str, int] = {
    UNAUTHORIZED: 403,
    NOT_FOUND: 404,
    ALREADY_EXISTS: 409,
    ALREADY_ACTIVE_OR_EXPIRED: 409,
    ALREADY_CLAIMED: 409,
    INVALID_INPUT: 422,
    INSUFFICIENT_BALANCE: 402,
    "bad_sig": 401,
    "unknown_signer": 401,
    "bad_nonce": 409,
    "duplicate_tx": 409,
    "invalid_tx": 400,
    "invalid_payload": 400,
    "payload_too_large": 413,
    "tx_unimplemented": 400,
}


def status_for_code(code: str) -> int:
    return int(_STATUS_BY_CODE.get(str(code or ""), 400))


@dataclass(eq=False)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> Dict[str, Any]:
        return {"ok": False, "error": {"code": self.code, "message": self.message, "details": self.details}}

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    @staticmethod
    def from_receipt(receipt: Dict[str, Any]) -> "ApiError":
        """Map a rejected tx receipt onto an HTTP error."""
        err = receipt.get("error") if isinstance(receipt.get("error"), dict) else {}
        code = str(err.get("code") or "tx_rejected")
        details: Dict[str, Any] = {"tx_id": receipt.get("tx_id"), "stage": receipt.get("stage")}
        if isinstance(err.get("details"), dict):
            details.update(err["details"])
        return ApiError(status_for_code(code), code, str(err.get("reason") or "tx rejected"), details)
