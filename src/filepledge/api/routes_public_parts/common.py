# src/filepledge/api/routes_public_parts/common.py
from __future__ import annotations

from typing import Any, Dict

from fastapi import Request

from filepledge.api.errors import ApiError
from filepledge.ledger.state import IncentiveView

Json = Dict[str, Any]


def _executor(request: Request):
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.internal("not_ready", "executor not attached to app.state", {})
    return ex


def _view(request: Request) -> IncentiveView:
    return _executor(request).view()


def _block_loop(request: Request):
    return getattr(request.app.state, "block_loop", None)
