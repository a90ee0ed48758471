# src/filepledge/runtime/apply/commitments.py
from __future__ import annotations

"""
Commitment store apply semantics.

This module implements the commitment lifecycle:
- CREATE_COMMITMENT: a provider pledges to store a registered, active file
- VERIFY_STORAGE_COMMITMENT: the administrator attests an expired pledge was honored
- CLAIM_REWARD: the provider moves the precomputed reward from treasury to its balance

Status only moves forward: pending -> verified -> claimed. Every precondition
is checked before the first write, so a rejected tx leaves state untouched.
"""

from typing import Any, Dict, Optional, Set

from filepledge.ledger.arith import can_add, checked_add, checked_sub
from filepledge.ledger.constants import MAX_REWARD_AMOUNT, MAX_STORAGE_DURATION, MIN_STORAGE_DURATION
from filepledge.ledger.rewards import quote
from filepledge.ledger.types import Commitment, CommitmentKey
from filepledge.runtime.apply.registry import load_file, validate_file_id
from filepledge.runtime.envelope import TxEnvelope
from filepledge.runtime.errors import (
    ALREADY_ACTIVE_OR_EXPIRED,
    ALREADY_CLAIMED,
    INSUFFICIENT_BALANCE,
    INVALID_INPUT,
    NOT_FOUND,
    ApplyError,
)
from filepledge.runtime.gates import ROLE_ADMIN, ROLE_PROVIDER, require_role

Json = Dict[str, Any]


def _as_dict(x: Any) -> Json:
    return x if isinstance(x, dict) else {}


def _as_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except Exception:
        return default


def _height(state: Json) -> int:
    return _as_int(state.get("height"), 0)


def _commitment_key(payload: Json) -> CommitmentKey:
    file_id = validate_file_id(payload.get("file_id"))
    raw = payload.get("commitment_id")
    if isinstance(raw, bool) or not isinstance(raw, int) or raw <= 0:
        raise ApplyError(INVALID_INPUT, "bad_commitment_id", {"commitment_id": raw})
    return CommitmentKey(file_id, raw)


def load_commitment(state: Json, key: CommitmentKey) -> Optional[Commitment]:
    rec = _as_dict(state.get("commitments")).get(key.encode())
    if not isinstance(rec, dict):
        return None
    return Commitment.from_json(rec)


def _require_commitment(state: Json, key: CommitmentKey) -> Commitment:
    c = load_commitment(state, key)
    if c is None:
        raise ApplyError(NOT_FOUND, "commitment_not_found", {"file_id": key.file_id, "commitment_id": key.seq})
    return c


def _store(state: Json, c: Commitment) -> None:
    state["commitments"][c.key.encode()] = c.to_json()


def _apply_create_commitment(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    file_id = validate_file_id(payload.get("file_id"))
    duration = payload.get("duration_blocks")

    f = load_file(state, file_id)
    if f is None:
        raise ApplyError(NOT_FOUND, "file_not_found", {"file_id": file_id})
    if not f.is_active:
        raise ApplyError(INVALID_INPUT, "file_inactive", {"file_id": file_id})

    if isinstance(duration, bool) or not isinstance(duration, int):
        raise ApplyError(INVALID_INPUT, "bad_duration", {"duration_blocks": duration})
    if duration < MIN_STORAGE_DURATION or duration > MAX_STORAGE_DURATION:
        raise ApplyError(
            INVALID_INPUT,
            "duration_out_of_range",
            {"duration_blocks": duration, "min": MIN_STORAGE_DURATION, "max": MAX_STORAGE_DURATION},
        )

    start = _height(state)
    # Raises invalid_input:uint_overflow if the end block would leave u128.
    end = checked_add(start, duration)

    multiplier, reward = quote(f.size_mb, duration)
    if reward > MAX_REWARD_AMOUNT:
        raise ApplyError(INVALID_INPUT, "reward_exceeds_cap", {"reward": reward, "cap": MAX_REWARD_AMOUNT})

    counters = state["commitment_counters"]
    seq = checked_add(_as_int(counters.get(file_id), 0), 1)

    c = Commitment(
        file_id=file_id,
        commitment_id=seq,
        storage_provider=env.signer,
        duration_blocks=duration,
        start_block=start,
        end_block=end,
        bonus_multiplier=multiplier,
        reward_amount=reward,
    )
    _store(state, c)
    counters[file_id] = seq

    return {
        "applied": "CREATE_COMMITMENT",
        "file_id": file_id,
        "commitment_id": seq,
        "end_block": end,
        "bonus_multiplier": multiplier,
        "reward_amount": reward,
    }


def _apply_verify_storage_commitment(state: Json, env: TxEnvelope) -> Json:
    require_role(state, env.signer, ROLE_ADMIN)

    key = _commitment_key(_as_dict(env.payload))
    c = _require_commitment(state, key)

    height = _height(state)
    if not c.expired_at(height):
        raise ApplyError(
            ALREADY_ACTIVE_OR_EXPIRED,
            "commitment_still_active",
            {"commitment": str(key), "height": height, "end_block": c.end_block},
        )
    if c.is_verified:
        raise ApplyError(ALREADY_ACTIVE_OR_EXPIRED, "already_verified", {"commitment": str(key)})

    _store(state, c.mark_verified())
    return {"applied": "VERIFY_STORAGE_COMMITMENT", "file_id": key.file_id, "commitment_id": key.seq}


def _apply_claim_reward(state: Json, env: TxEnvelope) -> Json:
    key = _commitment_key(_as_dict(env.payload))
    c = _require_commitment(state, key)

    require_role(state, env.signer, ROLE_PROVIDER, subject=c)

    if not c.is_verified:
        raise ApplyError(INVALID_INPUT, "not_verified", {"commitment": str(key)})
    if c.is_claimed:
        raise ApplyError(ALREADY_CLAIMED, "reward_already_claimed", {"commitment": str(key)})

    tre = state["treasury"]
    treasury_balance = _as_int(tre.get("balance"), 0)
    amount = c.reward_amount
    if treasury_balance < amount:
        raise ApplyError(
            INSUFFICIENT_BALANCE,
            "treasury_insufficient",
            {"treasury": treasury_balance, "reward_amount": amount},
        )

    balances = state["provider_balances"]
    provider = c.storage_provider
    current = _as_int(balances.get(provider), 0)
    if not can_add(current, amount):
        raise ApplyError(INVALID_INPUT, "balance_overflow", {"provider": provider, "balance": current, "amount": amount})

    _store(state, c.mark_claimed())
    balances[provider] = current + amount
    tre["balance"] = checked_sub(treasury_balance, amount)

    return {
        "applied": "CLAIM_REWARD",
        "file_id": key.file_id,
        "commitment_id": key.seq,
        "provider": provider,
        "reward_amount": amount,
    }


COMMITMENT_TX_TYPES: Set[str] = {
    "CREATE_COMMITMENT",
    "VERIFY_STORAGE_COMMITMENT",
    "CLAIM_REWARD",
}


def apply_commitments(state: Json, env: TxEnvelope) -> Optional[Json]:
    """
    Returns:
      - dict: applied result
      - None: tx_type not in the commitment domain
    """
    t = str(env.tx_type or "").strip().upper()
    if t not in COMMITMENT_TX_TYPES:
        return None

    if t == "CREATE_COMMITMENT":
        return _apply_create_commitment(state, env)

    if t == "VERIFY_STORAGE_COMMITMENT":
        return _apply_verify_storage_commitment(state, env)

    if t == "CLAIM_REWARD":
        return _apply_claim_reward(state, env)

    return None


__all__ = ["apply_commitments", "load_commitment"]
