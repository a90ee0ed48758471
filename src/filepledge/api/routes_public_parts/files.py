# src/filepledge/api/routes_public_parts/files.py
from __future__ import annotations

"""File and commitment reads.

File ids are opaque strings and may contain "/", so they travel as query
parameters rather than path segments.
"""

from typing import Annotated, Any, Dict

from fastapi import APIRouter, Query, Request

from filepledge.api.errors import ApiError
from filepledge.api.routes_public_parts.common import _view
from filepledge.ledger.constants import MAX_FILE_ID_LEN

router = APIRouter()

Json = Dict[str, Any]

FileId = Annotated[str, Query(min_length=1, max_length=MAX_FILE_ID_LEN)]
Seq = Annotated[int, Query(ge=1)]


@router.get("/files")
def get_file(request: Request, file_id: FileId) -> Json:
    v = _view(request)
    rec = v.get_file_info(file_id)
    if rec is None:
        raise ApiError.not_found("not_found", "file not registered", {"file_id": file_id})
    return {"ok": True, "file": rec.to_json(), "commitment_counter": v.get_file_commitment_counter(file_id)}


@router.get("/files/counter")
def get_counter(request: Request, file_id: FileId) -> Json:
    # Unknown files report 0, like a fresh registration.
    return {"ok": True, "file_id": file_id, "counter": _view(request).get_file_commitment_counter(file_id)}


@router.get("/commitments")
def get_commitment(request: Request, file_id: FileId, commitment_id: Seq) -> Json:
    v = _view(request)
    c = v.get_commitment_info(file_id, commitment_id)
    if c is None:
        raise ApiError.not_found("not_found", "commitment not found", {"file_id": file_id, "commitment_id": commitment_id})
    return {"ok": True, "commitment": c.to_json(), "status": c.status, "height": v.height}


@router.get("/commitments/ready")
def commitment_ready(request: Request, file_id: FileId, commitment_id: Seq) -> Json:
    v = _view(request)
    return {"ok": True, "ready": v.is_commitment_ready_for_verification(file_id, commitment_id), "height": v.height}


@router.get("/commitments/claimable")
def commitment_claimable(request: Request, file_id: FileId, commitment_id: Seq) -> Json:
    return {"ok": True, "claimable": _view(request).is_reward_claimable(file_id, commitment_id)}
