# tests/test_apply_treasury.py
from __future__ import annotations

import copy

import pytest

from filepledge.ledger.constants import CONTRACT_ACCOUNT_ID, MAX_UINT
from filepledge.runtime.domain_apply import ApplyError, apply_tx
from filepledge.runtime.envelope import TxEnvelope
from filepledge.runtime.state_invariants import custody_gap
from filepledge.runtime.transfer import transfer


def _env(tx_type: str, signer: str, nonce: int, payload: dict | None = None) -> TxEnvelope:
    return TxEnvelope(tx_type=tx_type, signer=signer, nonce=nonce, payload=payload or {}, sig="sig")


def _state(admin_balance: int = 1_000_000) -> dict:
    return {
        "params": {"admin": "admin"},
        "accounts": {
            "admin": {"nonce": 0, "balance": admin_balance, "keys": []},
            CONTRACT_ACCOUNT_ID: {"nonce": 0, "balance": 0, "keys": []},
        },
    }


def test_fund_contract_moves_native_funds_into_treasury() -> None:
    st = _state()
    meta = apply_tx(st, _env("FUND_CONTRACT", "admin", 1, {"amount": 250_000}))
    assert meta["treasury"] == 250_000
    assert st["accounts"]["admin"]["balance"] == 750_000
    assert st["accounts"][CONTRACT_ACCOUNT_ID]["balance"] == 250_000
    assert custody_gap(st) == 0


def test_fund_contract_by_non_admin_is_unauthorized_and_changes_nothing() -> None:
    st = _state()
    st["accounts"]["bob"] = {"nonce": 0, "balance": 500, "keys": []}
    apply_tx(st, _env("FUND_CONTRACT", "admin", 1, {"amount": 100}))
    before = copy.deepcopy(st)

    with pytest.raises(ApplyError) as ei:
        apply_tx(st, _env("FUND_CONTRACT", "bob", 1, {"amount": 100}))
    assert ei.value.code == "unauthorized"
    assert st == before


@pytest.mark.parametrize("amount,reason", [(0, "amount_must_be_positive"), (-5, "amount_must_be_positive"), ("9", "bad_amount")])
def test_fund_contract_rejects_bad_amounts(amount, reason: str) -> None:
    st = _state()
    with pytest.raises(ApplyError) as ei:
        apply_tx(st, _env("FUND_CONTRACT", "admin", 1, {"amount": amount}))
    assert ei.value.reason == reason


def test_fund_contract_beyond_native_balance_fails_atomically() -> None:
    st = _state(admin_balance=10)
    with pytest.raises(ApplyError) as ei:
        apply_tx(st, _env("FUND_CONTRACT", "admin", 1, {"amount": 11}))
    assert ei.value.code == "insufficient_balance"
    assert st["treasury"]["balance"] == 0
    assert st["accounts"]["admin"]["balance"] == 10


def test_withdraw_pays_out_accrued_balance() -> None:
    st = _state()
    apply_tx(st, _env("FUND_CONTRACT", "admin", 1, {"amount": 1_000}))
    # Simulate a claim: treasury -> provider balance, no native movement.
    st["treasury"]["balance"] -= 600
    st["provider_balances"]["prov"] = 600
    assert custody_gap(st) == 0

    meta = apply_tx(st, _env("WITHDRAW_REWARDS", "prov", 1, {"amount": 250}))
    assert meta["balance"] == 350
    assert st["accounts"]["prov"]["balance"] == 250
    assert st["accounts"][CONTRACT_ACCOUNT_ID]["balance"] == 750
    assert custody_gap(st) == 0


def test_withdraw_more_than_accrued_is_rejected() -> None:
    st = _state()
    apply_tx(st, _env("FUND_CONTRACT", "admin", 1, {"amount": 1_000}))
    with pytest.raises(ApplyError) as ei:
        apply_tx(st, _env("WITHDRAW_REWARDS", "prov", 1, {"amount": 1}))
    assert ei.value.code == "insufficient_balance"
    assert ei.value.reason == "provider_balance_insufficient"
    assert st["accounts"][CONTRACT_ACCOUNT_ID]["balance"] == 1_000


def test_transfer_checks_before_mutating() -> None:
    st = _state(admin_balance=5)
    with pytest.raises(ApplyError):
        transfer(st, 6, "admin", "bob")
    assert "bob" not in st["accounts"]
    assert st["accounts"]["admin"]["balance"] == 5

    with pytest.raises(ApplyError) as ei:
        transfer(st, 0, "admin", "bob")
    assert ei.value.reason == "bad_amount"

    out = transfer(st, 5, "admin", "bob")
    assert out == {"from": "admin", "to": "bob", "amount": 5}
    assert st["accounts"]["bob"]["balance"] == 5


def test_fund_contract_treasury_overflow_changes_nothing() -> None:
    st = _state()
    apply_tx(st, _env("FUND_CONTRACT", "admin", 1, {"amount": 1}))
    st["treasury"]["balance"] = MAX_UINT
    before = copy.deepcopy(st)

    with pytest.raises(ApplyError) as ei:
        apply_tx(st, _env("FUND_CONTRACT", "admin", 2, {"amount": 1}))
    assert (ei.value.code, ei.value.reason) == ("invalid_input", "treasury_overflow")
    assert st == before
