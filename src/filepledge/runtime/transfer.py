# src/filepledge/runtime/transfer.py
from __future__ import annotations

"""Native currency transfer primitive.

Native balances live in state["accounts"][id]["balance"]. A transfer either
moves the full amount or raises ApplyError before touching either account, so
a failed transfer aborts the enclosing operation with no partial effect.
"""

from typing import Any, Dict

from filepledge.ledger.arith import can_add
from filepledge.runtime.errors import INSUFFICIENT_BALANCE, INVALID_INPUT, ApplyError

Json = Dict[str, Any]


def _as_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def new_account() -> Json:
    return {"nonce": 0, "balance": 0, "keys": []}


def ensure_account(state: Json, account_id: str) -> Json:
    accounts = state.get("accounts")
    if not isinstance(accounts, dict):
        accounts = {}
        state["accounts"] = accounts
    acct = accounts.get(account_id)
    if not isinstance(acct, dict):
        acct = new_account()
        accounts[account_id] = acct
    acct.setdefault("balance", 0)
    return acct


def native_balance(state: Json, account_id: str) -> int:
    accounts = state.get("accounts")
    if not isinstance(accounts, dict):
        return 0
    acct = accounts.get(account_id)
    if not isinstance(acct, dict):
        return 0
    return _as_int(acct.get("balance"), 0)


def transfer(state: Json, amount: int, sender: str, recipient: str) -> Json:
    amt = _as_int(amount, 0)
    if amt <= 0:
        raise ApplyError(INVALID_INPUT, "bad_amount", {"amount": amount})
    if not sender or not recipient:
        raise ApplyError(INVALID_INPUT, "missing_party", {"from": sender, "to": recipient})

    fb = native_balance(state, sender)
    if fb < amt:
        raise ApplyError(
            INSUFFICIENT_BALANCE,
            "transfer_failed",
            {"from": sender, "to": recipient, "balance": fb, "amount": amt},
        )

    if sender == recipient:
        return {"from": sender, "to": recipient, "amount": amt}

    tb = native_balance(state, recipient)
    if not can_add(tb, amt):
        raise ApplyError(INVALID_INPUT, "balance_overflow", {"to": recipient, "balance": tb, "amount": amt})

    fa = ensure_account(state, sender)
    ta = ensure_account(state, recipient)
    fa["balance"] = fb - amt
    ta["balance"] = tb + amt
    return {"from": sender, "to": recipient, "amount": amt}


__all__ = ["ensure_account", "native_balance", "new_account", "transfer"]
