# src/filepledge/runtime/tx_admission.py
from __future__ import annotations

"""Admission: may this envelope reach the apply layer at all?

Checks run cheapest first: envelope shape, canon lookup, signer, payload size,
payload schema, then identity (account, nonce, signature) and finally the
canon gate. Domain preconditions stay with the appliers.
"""

from typing import Any, List, Optional

from filepledge.crypto.sig import signature_matches
from filepledge.env import env_int
from filepledge.runtime.apply.accounts import RESERVED_ACCOUNT_IDS, active_keys
from filepledge.runtime.envelope import ADMITTED, Json, TxEnvelope, Verdict, canonical_bytes, reject
from filepledge.runtime.errors import UNAUTHORIZED
from filepledge.runtime.gates import resolve_signer_gate
from filepledge.runtime.tx_schema import validate_payload
from filepledge.tx.canon import CanonEntry, TxIndex, default_tx_index

DEFAULT_MAX_PAYLOAD_BYTES = 4 * 1024


def _payload_size(env: TxEnvelope) -> Optional[Verdict]:
    limit = env_int("FILEPLEDGE_MAX_TX_PAYLOAD_BYTES", DEFAULT_MAX_PAYLOAD_BYTES, minimum=1)
    try:
        size = len(canonical_bytes(env.payload))
    except (TypeError, ValueError):
        return reject("invalid_payload", "payload_not_json")
    if size > limit:
        return reject("payload_too_large", "payload_exceeds_size_limit", bytes=size, max_bytes=limit)
    return None


def _candidate_keys(env: TxEnvelope, entry: CanonEntry, acct: Any) -> List[str]:
    keys = active_keys(acct)
    if keys or not entry.bootstrap:
        return keys
    # A bootstrap tx proves possession of the key it is about to register.
    pk = str(env.payload.get("pubkey") or "").strip()
    return [pk] if pk else []


def admit_tx(
    tx: Any,
    state: Json,
    *,
    canon: Optional[TxIndex] = None,
    allow_unsigned: bool = False,
) -> Verdict:
    try:
        env = TxEnvelope.parse(tx)
    except ValueError as e:
        return reject("invalid_tx", "malformed_envelope", error=str(e))

    entry = (canon or default_tx_index()).get(env.tx_type)
    if entry is None:
        return reject("invalid_tx", "unknown_tx_type", tx_type=env.tx_type)

    if not env.signer:
        return reject("invalid_tx", "missing_signer", tx_type=entry.name)
    if env.signer in RESERVED_ACCOUNT_IDS:
        return reject(UNAUTHORIZED, "reserved_signer", signer=env.signer)

    too_big = _payload_size(env)
    if too_big is not None:
        return too_big

    ok, schema_err = validate_payload(entry.name, env.payload)
    if not ok:
        return reject("invalid_payload", "schema_validation_failed", **(schema_err or {"tx_type": entry.name}))

    accounts = state.get("accounts") if isinstance(state.get("accounts"), dict) else {}
    acct = accounts.get(env.signer)
    if acct is None and not (entry.bootstrap or allow_unsigned):
        return reject("unknown_signer", "signer_not_found", signer=env.signer)

    expected = int(acct.get("nonce", 0)) + 1 if isinstance(acct, dict) else 1
    if env.nonce != expected:
        return reject("bad_nonce", "nonce_must_be_next", expected=expected, got=env.nonce)

    if not allow_unsigned:
        keys = _candidate_keys(env, entry, acct)
        if not any(signature_matches(env, pk) for pk in keys):
            return reject("bad_sig", "signature_verification_failed", signer=env.signer, tx_type=entry.name)

    allowed, meta = resolve_signer_gate(state, env.signer, entry.gate, env.payload)
    if not allowed:
        details: Json = dict(meta or {})
        details["gate"] = entry.gate
        return reject(UNAUTHORIZED, str(details.get("reason", "gate_denied")), **details)

    return ADMITTED


__all__ = ["admit_tx"]
