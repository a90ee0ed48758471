# src/filepledge/runtime/genesis_config.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple

from filepledge.ledger.arith import ArithError, as_uint
from filepledge.runtime.apply.accounts import RESERVED_ACCOUNT_IDS, active_keys
from filepledge.runtime.gates import admin_of
from filepledge.runtime.transfer import ensure_account

Json = Dict[str, Any]


@dataclass(frozen=True, slots=True)
class GenesisAccount:
    account: str
    pubkey: str = ""
    balance: int = 0


@dataclass(frozen=True, slots=True)
class GenesisConfig:
    chain_id: str
    admin: str
    accounts: List[GenesisAccount] = field(default_factory=list)


def genesis_from_dict(obj: Any) -> GenesisConfig:
    """Parse a genesis document.

    Shape:
      {"chain_id": "...", "admin": "alice",
       "accounts": [{"account": "alice", "pubkey": "<hex>", "balance": 1000}, ...]}
    """
    if not isinstance(obj, dict):
        raise ValueError("genesis config must be a JSON object")

    accounts_raw = obj.get("accounts")
    if accounts_raw is None:
        accounts_raw = []
    if not isinstance(accounts_raw, list):
        raise ValueError("genesis accounts must be a list")

    seen: set[str] = set()
    accounts: List[GenesisAccount] = []
    for rec in accounts_raw:
        if not isinstance(rec, dict):
            raise ValueError("genesis account entries must be objects")
        acct = str(rec.get("account") or "").strip()
        if not acct:
            raise ValueError("genesis account entry missing account")
        if acct in RESERVED_ACCOUNT_IDS:
            raise ValueError(f"genesis account id is reserved: {acct}")
        if acct in seen:
            raise ValueError(f"duplicate genesis account: {acct}")
        seen.add(acct)
        try:
            balance = as_uint(rec.get("balance", 0), field=f"{acct}.balance")
        except ArithError as e:
            raise ValueError(f"genesis balance for {acct} must be a u128 integer") from e
        accounts.append(GenesisAccount(account=acct, pubkey=str(rec.get("pubkey") or "").strip(), balance=balance))

    return GenesisConfig(
        chain_id=str(obj.get("chain_id") or "").strip(),
        admin=str(obj.get("admin") or "").strip(),
        accounts=accounts,
    )


def load_genesis(path: str) -> GenesisConfig:
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(str(p))
    with p.open("r", encoding="utf-8") as f:
        return genesis_from_dict(json.load(f))


def unkeyed_principals(state: Json) -> List[str]:
    """The admin and funded accounts that hold no active key.

    With signatures enforced nobody could ever act for such a principal,
    so a signed node refuses to start from a genesis that leaves any.
    """
    accounts = state.get("accounts") if isinstance(state.get("accounts"), dict) else {}
    admin = admin_of(state)
    out: List[str] = []
    if admin and not active_keys(accounts.get(admin)):
        out.append(admin)
    for acct_id, acct in sorted(accounts.items()):
        if acct_id in RESERVED_ACCOUNT_IDS or acct_id in out or not isinstance(acct, dict):
            continue
        if int(acct.get("balance", 0)) > 0 and not active_keys(acct):
            out.append(acct_id)
    return out


def apply_genesis_to_state(state: Json, cfg: GenesisConfig) -> Tuple[bool, Json]:
    """Seed administrator, accounts, keys and native balances.

    Only applies at height 0 and only once; returns (changed, state).
    """
    if int(state.get("height", 0)) != 0:
        return False, state
    params = state.setdefault("params", {})
    if params.get("genesis_applied"):
        return False, state

    if cfg.chain_id and str(state.get("chain_id") or "") not in ("", cfg.chain_id):
        raise ValueError(f"genesis chain_id {cfg.chain_id!r} does not match state {state.get('chain_id')!r}")

    if cfg.admin:
        params["admin"] = cfg.admin
    for ga in cfg.accounts:
        acct = ensure_account(state, ga.account)
        acct["balance"] = int(ga.balance)
        if ga.pubkey:
            acct["keys"] = [{"pubkey": ga.pubkey, "active": True}]

    params["genesis_applied"] = True
    return True, state


__all__ = [
    "GenesisAccount",
    "GenesisConfig",
    "apply_genesis_to_state",
    "genesis_from_dict",
    "load_genesis",
    "unkeyed_principals",
]
