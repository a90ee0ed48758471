# src/filepledge/runtime/apply/registry.py
from __future__ import annotations

"""filepledge.runtime.apply.registry

File registry apply semantics.

Key invariants:
  - a file id is registered at most once (re-registration fails with already_exists)
  - owner == signer of REGISTER_FILE
  - the per-file commitment counter starts at 0 on registration
"""

from typing import Any, Dict, Optional, Set

from filepledge.ledger.constants import MAX_FILE_ID_LEN, MAX_FILE_SIZE_MB
from filepledge.ledger.types import FileRecord
from filepledge.runtime.envelope import TxEnvelope
from filepledge.runtime.errors import ALREADY_EXISTS, INVALID_INPUT, ApplyError

Json = Dict[str, Any]


def _as_dict(x: Any) -> Json:
    return x if isinstance(x, dict) else {}


def _height(state: Json) -> int:
    try:
        return int(state.get("height", 0))
    except Exception:
        return 0


def validate_file_id(raw: Any) -> str:
    if not isinstance(raw, str) or not raw:
        raise ApplyError(INVALID_INPUT, "empty_file_id", {"file_id": raw})
    if len(raw) > MAX_FILE_ID_LEN:
        raise ApplyError(INVALID_INPUT, "file_id_too_long", {"len": len(raw), "max_len": MAX_FILE_ID_LEN})
    return raw


def validate_size_mb(raw: Any) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ApplyError(INVALID_INPUT, "bad_size_mb", {"size_mb": raw})
    if raw <= 0:
        raise ApplyError(INVALID_INPUT, "size_must_be_positive", {"size_mb": raw})
    if raw > MAX_FILE_SIZE_MB:
        raise ApplyError(INVALID_INPUT, "size_too_large", {"size_mb": raw, "max_size_mb": MAX_FILE_SIZE_MB})
    return raw


def load_file(state: Json, file_id: str) -> Optional[FileRecord]:
    rec = _as_dict(state.get("files")).get(file_id)
    if not isinstance(rec, dict):
        return None
    return FileRecord.from_json(rec)


def _apply_register_file(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    file_id = validate_file_id(payload.get("file_id"))
    size_mb = validate_size_mb(payload.get("size_mb"))

    files = state["files"]
    if file_id in files:
        raise ApplyError(ALREADY_EXISTS, "file_already_registered", {"file_id": file_id})

    rec = FileRecord(
        file_id=file_id,
        owner=env.signer,
        size_mb=size_mb,
        created_at=_height(state),
        is_active=True,
    )
    files[file_id] = rec.to_json()
    state["commitment_counters"][file_id] = 0

    return {"applied": "REGISTER_FILE", "file_id": file_id, "owner": env.signer, "size_mb": size_mb}


REGISTRY_TX_TYPES: Set[str] = {"REGISTER_FILE"}


def apply_registry(state: Json, env: TxEnvelope) -> Optional[Json]:
    """
    Returns:
      - dict: applied result
      - None: tx_type not in the registry domain
    """
    t = str(env.tx_type or "").strip().upper()
    if t not in REGISTRY_TX_TYPES:
        return None
    return _apply_register_file(state, env)


__all__ = ["apply_registry", "load_file", "validate_file_id", "validate_size_mb"]
