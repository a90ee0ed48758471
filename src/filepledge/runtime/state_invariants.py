# src/filepledge/runtime/state_invariants.py
from __future__ import annotations

"""State invariants / normalization helpers.

Ledger state is a nested JSON-like dict mutated by the apply_* modules. This
module is the single place that:

  - validates the state is dict-like
  - ensures the engine's top-level containers exist, so apply modules can
    rely on them without re-checking shapes
  - checks the custody invariant between native contract funds and the
    engine's internal ledgers
"""

from collections.abc import MutableMapping
from typing import Any, Dict

from filepledge.ledger.constants import CONTRACT_ACCOUNT_ID

Json = Dict[str, Any]

_DICT_ROOTS = ("accounts", "params", "files", "commitments", "commitment_counters", "provider_balances")


def ensure_state(st: Any) -> Json:
    """Ensure `st` is a dict and contains core keys.

    Returns the (possibly mutated) dict.

    Raises:
        TypeError: if st or one of its roots has the wrong type
    """
    if not isinstance(st, MutableMapping):
        raise TypeError(f"state must be MutableMapping, got {type(st)}")

    for key in _DICT_ROOTS:
        cur = st.get(key)
        if cur is None:
            st[key] = {}
        elif not isinstance(cur, dict):
            # Fail closed: do not attempt to coerce arbitrary types.
            raise TypeError(f"state[{key!r}] must be dict, got {type(cur)}")

    tre = st.get("treasury")
    if tre is None:
        st["treasury"] = {"balance": 0}
    elif not isinstance(tre, dict):
        raise TypeError(f"state['treasury'] must be dict, got {type(tre)}")
    else:
        tre.setdefault("balance", 0)

    if "height" not in st:
        st["height"] = 0

    return st  # type: ignore[return-value]


def custody_gap(st: Json) -> int:
    """Native contract funds minus everything the engine owes.

    Zero after every successful operation: the contract account holds exactly
    the treasury plus all accrued provider balances.
    """
    accounts = st.get("accounts") if isinstance(st.get("accounts"), dict) else {}
    acct = accounts.get(CONTRACT_ACCOUNT_ID)
    held = int(acct.get("balance", 0)) if isinstance(acct, dict) else 0

    tre = st.get("treasury") if isinstance(st.get("treasury"), dict) else {}
    owed = int(tre.get("balance", 0))
    balances = st.get("provider_balances") if isinstance(st.get("provider_balances"), dict) else {}
    owed += sum(int(v) for v in balances.values())
    return held - owed


__all__ = ["custody_gap", "ensure_state"]
