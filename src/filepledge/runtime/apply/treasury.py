# src/filepledge/runtime/apply/treasury.py
from __future__ import annotations

"""Treasury and provider balance apply semantics.

FUND_CONTRACT moves native funds from the administrator into the CONTRACT
account and credits the treasury. WITHDRAW_REWARDS debits the caller's accrued
balance and pays it out natively from CONTRACT. Claims (see commitments.py)
move value between the two internal ledgers without any native transfer.
"""

from typing import Any, Dict, Optional, Set

from filepledge.ledger.arith import can_add, checked_sub
from filepledge.ledger.constants import CONTRACT_ACCOUNT_ID
from filepledge.runtime.envelope import TxEnvelope
from filepledge.runtime.errors import INSUFFICIENT_BALANCE, INVALID_INPUT, ApplyError
from filepledge.runtime.gates import ROLE_ADMIN, require_role
from filepledge.runtime.transfer import transfer

Json = Dict[str, Any]


def _as_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


def _amount(payload: Json) -> int:
    raw = payload.get("amount")
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ApplyError(INVALID_INPUT, "bad_amount", {"amount": raw})
    if raw <= 0:
        raise ApplyError(INVALID_INPUT, "amount_must_be_positive", {"amount": raw})
    return raw


def _apply_fund_contract(state: Json, env: TxEnvelope) -> Json:
    require_role(state, env.signer, ROLE_ADMIN)
    amount = _amount(_as_dict(env.payload))

    tre = state["treasury"]
    current = _as_int(tre.get("balance"), 0)
    if not can_add(current, amount):
        raise ApplyError(INVALID_INPUT, "treasury_overflow", {"treasury": current, "amount": amount})

    transfer(state, amount, env.signer, CONTRACT_ACCOUNT_ID)
    tre["balance"] = current + amount

    return {"applied": "FUND_CONTRACT", "amount": amount, "treasury": tre["balance"]}


def _apply_withdraw_rewards(state: Json, env: TxEnvelope) -> Json:
    amount = _amount(_as_dict(env.payload))

    balances = state["provider_balances"]
    caller = env.signer
    current = _as_int(balances.get(caller), 0)
    if amount > current:
        raise ApplyError(
            INSUFFICIENT_BALANCE,
            "provider_balance_insufficient",
            {"provider": caller, "balance": current, "amount": amount},
        )

    transfer(state, amount, CONTRACT_ACCOUNT_ID, caller)
    balances[caller] = checked_sub(current, amount)

    return {"applied": "WITHDRAW_REWARDS", "provider": caller, "amount": amount, "balance": balances[caller]}


TREASURY_TX_TYPES: Set[str] = {"FUND_CONTRACT", "WITHDRAW_REWARDS"}


def apply_treasury(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = str(env.tx_type or "").strip().upper()
    if t not in TREASURY_TX_TYPES:
        return None

    if t == "FUND_CONTRACT":
        return _apply_fund_contract(state, env)

    if t == "WITHDRAW_REWARDS":
        return _apply_withdraw_rewards(state, env)

    return None


__all__ = ["apply_treasury"]
