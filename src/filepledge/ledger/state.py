from __future__ import annotations

from dataclasses import dataclass, field
import copy
from typing import Any, Dict, Optional

from filepledge.ledger.constants import CONTRACT_ACCOUNT_ID
from filepledge.ledger.types import Commitment, CommitmentKey, FileRecord


Json = Dict[str, Any]


def _as_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


@dataclass(frozen=True, slots=True)
class IncentiveView:
    """
    Immutable read-only view of the engine state.

    All read-only queries (files, commitments, balances, readiness) are
    answered from here so that API handlers never touch the live state dict.
    """

    chain_id: str = ""
    height: int = 0
    tip: str = ""
    tip_ts_ms: int = 0
    files: Dict[str, Any] = field(default_factory=dict)
    commitments: Dict[str, Any] = field(default_factory=dict)
    commitment_counters: Dict[str, Any] = field(default_factory=dict)
    provider_balances: Dict[str, Any] = field(default_factory=dict)
    treasury_balance: int = 0
    accounts: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_ledger(cls, state: Dict[str, Any]) -> "IncentiveView":
        tre = state.get("treasury") if isinstance(state.get("treasury"), dict) else {}
        return cls(
            chain_id=str(state.get("chain_id") or ""),
            height=_as_int(state.get("height"), 0),
            tip=str(state.get("tip") or ""),
            tip_ts_ms=_as_int(state.get("tip_ts_ms"), 0),
            files=copy.deepcopy(state.get("files", {})),
            commitments=copy.deepcopy(state.get("commitments", {})),
            commitment_counters=copy.deepcopy(state.get("commitment_counters", {})),
            provider_balances=copy.deepcopy(state.get("provider_balances", {})),
            treasury_balance=_as_int(tre.get("balance"), 0),
            accounts=copy.deepcopy(state.get("accounts", {})),
            params=copy.deepcopy(state.get("params", {})) if isinstance(state.get("params"), dict) else {},
        )

    # ---- accounts / params ----

    def get_account(self, account_id: str) -> Dict[str, Any]:
        acct = self.accounts.get(account_id)
        return acct if isinstance(acct, dict) else {}

    def get_nonce(self, account_id: str) -> int:
        return _as_int(self.get_account(account_id).get("nonce", 0), 0)

    def native_balance(self, account_id: str) -> int:
        return _as_int(self.get_account(account_id).get("balance", 0), 0)

    def admin(self) -> str:
        return str(self.params.get("admin") or "").strip()

    # ---- engine queries ----

    def get_file_info(self, file_id: str) -> Optional[FileRecord]:
        rec = self.files.get(file_id)
        return FileRecord.from_json(rec) if isinstance(rec, dict) else None

    def get_commitment_info(self, file_id: str, commitment_id: int) -> Optional[Commitment]:
        rec = self.commitments.get(CommitmentKey(file_id, int(commitment_id)).encode())
        return Commitment.from_json(rec) if isinstance(rec, dict) else None

    def get_provider_balance(self, provider: str) -> int:
        return _as_int(self.provider_balances.get(provider), 0)

    def get_contract_balance(self) -> int:
        return int(self.treasury_balance)

    def get_contract_native_balance(self) -> int:
        return self.native_balance(CONTRACT_ACCOUNT_ID)

    def get_file_commitment_counter(self, file_id: str) -> int:
        return _as_int(self.commitment_counters.get(file_id), 0)

    def is_commitment_ready_for_verification(self, file_id: str, commitment_id: int) -> bool:
        c = self.get_commitment_info(file_id, commitment_id)
        if c is None:
            return False
        return c.expired_at(self.height) and not c.is_verified

    def is_reward_claimable(self, file_id: str, commitment_id: int) -> bool:
        c = self.get_commitment_info(file_id, commitment_id)
        if c is None:
            return False
        return c.is_verified and not c.is_claimed and self.treasury_balance >= c.reward_amount
