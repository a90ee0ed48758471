# src/filepledge/runtime/apply/accounts.py
from __future__ import annotations

"""Account onboarding.

ACCOUNT_REGISTER binds a first Ed25519 public key to the signer's principal so
later txs from that principal can be authenticated. Only principals the ledger
has never seen can register; the admin principal never can.
"""

from typing import Any, Dict, List, Optional, Set

from filepledge.ledger.constants import CONTRACT_ACCOUNT_ID
from filepledge.runtime.envelope import TxEnvelope
from filepledge.runtime.errors import ALREADY_EXISTS, INVALID_INPUT, UNAUTHORIZED, ApplyError
from filepledge.runtime.gates import admin_of, same_principal
from filepledge.runtime.transfer import ensure_account

Json = Dict[str, Any]

RESERVED_ACCOUNT_IDS: Set[str] = {CONTRACT_ACCOUNT_ID, "SYSTEM"}


def _as_str(x: Any) -> str:
    return x if isinstance(x, str) else ""


def active_keys(acct: Any) -> List[str]:
    if not isinstance(acct, dict):
        return []
    keys = acct.get("keys")
    if not isinstance(keys, list):
        return []
    out: List[str] = []
    for rec in keys:
        if not isinstance(rec, dict):
            continue
        if rec.get("active", True) is False:
            continue
        pk = _as_str(rec.get("pubkey")).strip()
        if pk and pk not in out:
            out.append(pk)
    return out


def _apply_account_register(state: Json, env: TxEnvelope) -> Json:
    payload = env.payload if isinstance(env.payload, dict) else {}
    account_id = str(env.signer or "").strip()
    if not account_id or account_id in RESERVED_ACCOUNT_IDS:
        raise ApplyError(INVALID_INPUT, "reserved_or_empty_account_id", {"account": account_id})

    pubkey = _as_str(payload.get("pubkey")).strip()
    if not pubkey:
        raise ApplyError(INVALID_INPUT, "missing_pubkey", {"tx_type": env.tx_type})

    # Keyless accounts (genesis balances, the admin) are not open to claim.
    if account_id in state["accounts"]:
        raise ApplyError(ALREADY_EXISTS, "account_already_registered", {"account": account_id})
    if same_principal(account_id, admin_of(state)):
        raise ApplyError(UNAUTHORIZED, "admin_account_reserved", {"account": account_id})

    acct = ensure_account(state, account_id)
    acct["keys"] = [{"pubkey": pubkey, "active": True}]
    acct.setdefault("nonce", 0)
    return {"applied": "ACCOUNT_REGISTER", "account": account_id}


ACCOUNT_TX_TYPES: Set[str] = {"ACCOUNT_REGISTER"}


def apply_accounts(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = str(env.tx_type or "").strip().upper()
    if t not in ACCOUNT_TX_TYPES:
        return None
    return _apply_account_register(state, env)


__all__ = ["RESERVED_ACCOUNT_IDS", "active_keys", "apply_accounts"]
