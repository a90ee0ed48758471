# src/filepledge/runtime/gates.py
from __future__ import annotations

"""Capability checks.

Every authorization decision in the engine goes through require_role(), so the
administrator and provider checks cannot drift apart between operations.

Roles:
  - "Any":      any non-empty principal
  - "Admin":    state["params"]["admin"]
  - "Provider": the storage_provider recorded on a commitment (subject)
"""

from typing import Any, Dict, Optional, Tuple

from filepledge.ledger.types import Commitment, CommitmentKey
from filepledge.runtime.errors import UNAUTHORIZED, ApplyError

Json = Dict[str, Any]

ROLE_ANY = "Any"
ROLE_ADMIN = "Admin"
ROLE_PROVIDER = "Provider"

ROLES = (ROLE_ANY, ROLE_ADMIN, ROLE_PROVIDER)


def _as_str(v: Any) -> str:
    return str(v).strip() if v is not None else ""


def same_principal(a: Any, b: Any) -> bool:
    """Exact principal comparison; empty principals never match."""
    sa = _as_str(a)
    sb = _as_str(b)
    return bool(sa) and sa == sb


def admin_of(state: Json) -> str:
    params = state.get("params")
    if not isinstance(params, dict):
        return ""
    return _as_str(params.get("admin"))


def _subject_provider(subject: Any) -> str:
    if isinstance(subject, Commitment):
        return subject.storage_provider
    if isinstance(subject, dict):
        return _as_str(subject.get("storage_provider"))
    return _as_str(subject)


def check_role(state: Json, caller: str, role: str, *, subject: Any = None) -> Tuple[bool, Optional[Json]]:
    caller = _as_str(caller)
    if not caller:
        return False, {"reason": "missing_caller", "role": role}

    if role == ROLE_ANY:
        return True, None

    if role == ROLE_ADMIN:
        admin = admin_of(state)
        if same_principal(caller, admin):
            return True, None
        return False, {"reason": "admin_required", "caller": caller}

    if role == ROLE_PROVIDER:
        provider = _subject_provider(subject)
        if same_principal(caller, provider):
            return True, None
        return False, {"reason": "provider_required", "caller": caller}

    return False, {"reason": "unknown_role", "role": role}


def require_role(state: Json, caller: str, role: str, *, subject: Any = None) -> None:
    ok, meta = check_role(state, caller, role, subject=subject)
    if ok:
        return
    details: Json = {"role": role}
    if isinstance(meta, dict):
        details.update(meta)
    if isinstance(subject, Commitment):
        details["commitment"] = str(subject.key)
    elif isinstance(subject, CommitmentKey):
        details["commitment"] = str(subject)
    raise ApplyError(UNAUTHORIZED, str(details.get("reason", "role_required")), details)


def resolve_signer_gate(state: Json, signer: str, gate: str, payload: Optional[Json] = None) -> Tuple[bool, Optional[Json]]:
    """Admission-time gate check from the tx canon.

    Provider gates depend on a stored commitment; when it cannot be resolved
    here the apply layer makes the final decision (and reports not_found).
    """
    gate = _as_str(gate) or ROLE_ANY
    if gate != ROLE_PROVIDER:
        return check_role(state, signer, gate)

    p = payload if isinstance(payload, dict) else {}
    try:
        key = CommitmentKey(_as_str(p.get("file_id")), int(p.get("commitment_id")))
    except (TypeError, ValueError):
        return True, None
    rec = state.get("commitments", {}).get(key.encode()) if isinstance(state.get("commitments"), dict) else None
    if not isinstance(rec, dict):
        return True, None
    return check_role(state, signer, ROLE_PROVIDER, subject=rec)


__all__ = [
    "ROLES",
    "ROLE_ADMIN",
    "ROLE_ANY",
    "ROLE_PROVIDER",
    "admin_of",
    "check_role",
    "require_role",
    "resolve_signer_gate",
    "same_principal",
]
