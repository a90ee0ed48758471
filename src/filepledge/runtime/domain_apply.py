# src/filepledge/runtime/domain_apply.py
from __future__ import annotations

"""Route an envelope to the applier of its canon domain.

apply_tx mutates state in place; appliers check every precondition before
their first write. apply_tx_atomic works on a copy for callers that must
keep the original whatever happens.
"""

import copy
from typing import Any, Callable, Dict, Optional, Tuple

from filepledge.ledger.arith import ArithError
from filepledge.runtime.apply.accounts import apply_accounts
from filepledge.runtime.apply.commitments import apply_commitments
from filepledge.runtime.apply.registry import apply_registry
from filepledge.runtime.apply.treasury import apply_treasury
from filepledge.runtime.envelope import Json, TxEnvelope
from filepledge.runtime.errors import INVALID_INPUT, UNAUTHORIZED, ApplyError
from filepledge.runtime.state_invariants import ensure_state
from filepledge.tx.canon import TxIndex, default_tx_index

Applier = Callable[[Json, TxEnvelope], Optional[Json]]

DOMAIN_APPLIERS: Dict[str, Applier] = {
    "accounts": apply_accounts,
    "registry": apply_registry,
    "commitments": apply_commitments,
    "treasury": apply_treasury,
}

TX_UNIMPLEMENTED = "tx_unimplemented"


def _envelope(env: Any) -> TxEnvelope:
    try:
        return TxEnvelope.parse(env)
    except ValueError as e:
        raise ApplyError(INVALID_INPUT, "malformed_envelope", {"error": str(e)}) from e


def apply_tx(state: Json, env: Any, *, canon: Optional[TxIndex] = None) -> Json:
    ensure_state(state)
    e = _envelope(env)
    t = e.tx_type.strip().upper()
    if not e.signer.strip():
        raise ApplyError(UNAUTHORIZED, "missing_signer", {"tx_type": t})

    entry = (canon or default_tx_index()).get(t)
    fn = DOMAIN_APPLIERS.get(entry.domain) if entry is not None else None
    if fn is None:
        raise ApplyError(TX_UNIMPLEMENTED, "tx_type_not_implemented", {"tx_type": t})

    try:
        out = fn(state, e)
    except ArithError as err:
        # Checked arithmetic carries engine codes already.
        raise ApplyError(err.code, err.reason, err.details) from err

    if out is None:
        raise ApplyError(TX_UNIMPLEMENTED, "tx_type_not_implemented", {"tx_type": t, "domain": entry.domain})
    return out


def apply_tx_atomic(state: Json, env: Any, *, canon: Optional[TxIndex] = None) -> Tuple[Json, Json]:
    """Apply to a deep copy; returns (new_state, result). `state` is never touched."""
    work = copy.deepcopy(state)
    return work, apply_tx(work, env, canon=canon)


__all__ = ["DOMAIN_APPLIERS", "ApplyError", "apply_tx", "apply_tx_atomic"]
