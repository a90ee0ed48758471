# tests/test_lifecycle_scenario.py
from __future__ import annotations

import copy

import pytest

from filepledge.ledger.constants import CONTRACT_ACCOUNT_ID, MIN_STORAGE_DURATION
from filepledge.ledger.state import IncentiveView
from filepledge.runtime.domain_apply import ApplyError, apply_tx, apply_tx_atomic
from filepledge.runtime.envelope import TxEnvelope
from filepledge.runtime.state_invariants import custody_gap


def _env(tx_type: str, signer: str, nonce: int, payload: dict | None = None) -> TxEnvelope:
    return TxEnvelope(tx_type=tx_type, signer=signer, nonce=nonce, payload=payload or {}, sig="sig")


def _genesis() -> dict:
    return {
        "height": 0,
        "params": {"admin": "admin"},
        "accounts": {
            "admin": {"nonce": 0, "balance": 1_000_000, "keys": []},
            CONTRACT_ACCOUNT_ID: {"nonce": 0, "balance": 0, "keys": []},
        },
    }


def test_full_lifecycle_register_commit_verify_claim_withdraw() -> None:
    st = _genesis()

    apply_tx(st, _env("FUND_CONTRACT", "admin", 1, {"amount": 200_000}))
    apply_tx(st, _env("REGISTER_FILE", "owner", 1, {"file_id": "f1", "size_mb": 500}))

    st["height"] = 3
    meta = apply_tx(
        st, _env("CREATE_COMMITMENT", "prov", 1, {"file_id": "f1", "duration_blocks": 6 * MIN_STORAGE_DURATION})
    )
    assert meta["bonus_multiplier"] == 200
    assert meta["reward_amount"] == 86_000
    assert meta["end_block"] == 3 + 864

    st["height"] = meta["end_block"]
    apply_tx(st, _env("VERIFY_STORAGE_COMMITMENT", "admin", 2, {"file_id": "f1", "commitment_id": 1}))
    apply_tx(st, _env("CLAIM_REWARD", "prov", 2, {"file_id": "f1", "commitment_id": 1}))

    v = IncentiveView.from_ledger(st)
    assert v.get_provider_balance("prov") == 86_000
    assert v.get_contract_balance() == 114_000
    assert custody_gap(st) == 0

    with pytest.raises(ApplyError) as ei:
        apply_tx(st, _env("CLAIM_REWARD", "prov", 3, {"file_id": "f1", "commitment_id": 1}))
    assert ei.value.code == "already_claimed"

    apply_tx(st, _env("WITHDRAW_REWARDS", "prov", 3, {"amount": 86_000}))
    v = IncentiveView.from_ledger(st)
    assert v.get_provider_balance("prov") == 0
    assert v.native_balance("prov") == 86_000
    assert v.get_contract_native_balance() == 114_000
    assert custody_gap(st) == 0


def test_short_duration_fails_and_stores_nothing() -> None:
    st = _genesis()
    apply_tx(st, _env("REGISTER_FILE", "owner", 1, {"file_id": "f1", "size_mb": 500}))
    before = copy.deepcopy(st)

    with pytest.raises(ApplyError) as ei:
        apply_tx(
            st,
            _env("CREATE_COMMITMENT", "prov", 1, {"file_id": "f1", "duration_blocks": MIN_STORAGE_DURATION - 1}),
        )
    assert ei.value.code == "invalid_input"
    assert st == before
    assert IncentiveView.from_ledger(st).get_file_commitment_counter("f1") == 0


def test_fund_by_non_admin_leaves_treasury_unchanged() -> None:
    st = _genesis()
    st["accounts"]["eve"] = {"nonce": 0, "balance": 1_000, "keys": []}
    with pytest.raises(ApplyError) as ei:
        apply_tx(st, _env("FUND_CONTRACT", "eve", 1, {"amount": 1_000}))
    assert ei.value.code == "unauthorized"
    assert IncentiveView.from_ledger(st).get_contract_balance() == 0
    assert st["accounts"]["eve"]["balance"] == 1_000


def test_apply_tx_atomic_leaves_input_untouched() -> None:
    st = _genesis()
    frozen = copy.deepcopy(st)

    new_state, meta = apply_tx_atomic(st, _env("REGISTER_FILE", "owner", 1, {"file_id": "f1", "size_mb": 5}))
    assert meta["applied"] == "REGISTER_FILE"
    assert "f1" in new_state["files"]
    assert st == frozen

    with pytest.raises(ApplyError):
        apply_tx_atomic(new_state, _env("FUND_CONTRACT", "admin", 1, {"amount": 10**12}))
    assert new_state["treasury"]["balance"] == 0
