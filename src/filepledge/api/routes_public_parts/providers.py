# src/filepledge/api/routes_public_parts/providers.py
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from filepledge.api.routes_public_parts.common import _view

router = APIRouter()

Json = Dict[str, Any]


@router.get("/providers/{principal:path}/balance")
def provider_balance(request: Request, principal: str) -> Json:
    v = _view(request)
    return {
        "ok": True,
        "principal": principal,
        "balance": v.get_provider_balance(principal),
        "native_balance": v.native_balance(principal),
    }


@router.get("/treasury")
def treasury(request: Request) -> Json:
    v = _view(request)
    return {
        "ok": True,
        "balance": v.get_contract_balance(),
        "contract_native_balance": v.get_contract_native_balance(),
    }
