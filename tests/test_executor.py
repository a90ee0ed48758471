# tests/test_executor.py
from __future__ import annotations

import pytest

from filepledge.crypto.sig import new_keypair, sign_tx
from filepledge.ledger.constants import CONTRACT_ACCOUNT_ID
from filepledge.runtime.executor import ExecutorError, IncentiveExecutor
from filepledge.runtime.genesis_config import GenesisAccount, GenesisConfig
from filepledge.runtime.state_invariants import custody_gap


def _tx(tx_type: str, signer: str, nonce: int, payload: dict) -> dict:
    return {"tx_type": tx_type, "signer": signer, "nonce": nonce, "payload": payload}


def _mk(tmp_path, **kw) -> IncentiveExecutor:
    genesis = kw.pop(
        "genesis",
        GenesisConfig(chain_id="test-chain", admin="admin", accounts=[GenesisAccount("admin", balance=1_000_000)]),
    )
    return IncentiveExecutor(
        db_path=str(tmp_path / "node.db"),
        node_id="n1",
        chain_id=kw.pop("chain_id", "test-chain"),
        genesis=genesis,
        allow_unsigned=kw.pop("allow_unsigned", True),
        **kw,
    )


def test_fresh_executor_seeds_genesis(tmp_path) -> None:
    ex = _mk(tmp_path)
    v = ex.view()
    assert v.height == 0
    assert v.admin() == "admin"
    assert v.native_balance("admin") == 1_000_000
    assert CONTRACT_ACCOUNT_ID in ex.read_state()["accounts"]
    assert v.get_contract_balance() == 0


def test_full_lifecycle_through_executor(tmp_path) -> None:
    ex = _mk(tmp_path)

    assert ex.submit_tx(_tx("FUND_CONTRACT", "admin", 1, {"amount": 200_000}))["status"] == "applied"
    assert ex.submit_tx(_tx("REGISTER_FILE", "owner", 1, {"file_id": "f1", "size_mb": 500}))["ok"] is True

    r = ex.submit_tx(_tx("CREATE_COMMITMENT", "prov", 1, {"file_id": "f1", "duration_blocks": 864}))
    assert r["ok"] is True
    assert r["result"]["reward_amount"] == 86_000
    assert r["result"]["end_block"] == 864

    ex.advance_blocks(863)
    assert ex.view().is_commitment_ready_for_verification("f1", 1) is False
    ex.advance_blocks(1)
    assert ex.height() == 864
    assert ex.view().is_commitment_ready_for_verification("f1", 1) is True

    assert ex.submit_tx(_tx("VERIFY_STORAGE_COMMITMENT", "admin", 2, {"file_id": "f1", "commitment_id": 1}))["ok"]
    assert ex.view().is_reward_claimable("f1", 1) is True
    assert ex.submit_tx(_tx("CLAIM_REWARD", "prov", 2, {"file_id": "f1", "commitment_id": 1}))["ok"]
    assert ex.submit_tx(_tx("WITHDRAW_REWARDS", "prov", 3, {"amount": 6_000}))["ok"]

    v = ex.view()
    assert v.get_provider_balance("prov") == 80_000
    assert v.native_balance("prov") == 6_000
    assert v.get_contract_balance() == 114_000
    assert v.get_contract_native_balance() == 194_000
    assert custody_gap(ex.read_state()) == 0


def test_rejection_writes_receipt_and_keeps_nonce(tmp_path) -> None:
    ex = _mk(tmp_path)

    bad = ex.submit_tx(_tx("REGISTER_FILE", "owner", 1, {"file_id": "f1", "size_mb": 0}))
    assert bad["ok"] is False
    assert bad["status"] == "rejected"
    assert bad["stage"] == "apply"
    assert bad["error"]["code"] == "invalid_input"
    assert ex.tx_status(bad["tx_id"])["status"] == "rejected"
    assert ex.view().get_file_info("f1") is None

    good = ex.submit_tx(_tx("REGISTER_FILE", "owner", 1, {"file_id": "f1", "size_mb": 10}))
    assert good["ok"] is True
    assert ex.view().get_nonce("owner") == 1


def test_admission_rejection_reports_stage(tmp_path) -> None:
    ex = _mk(tmp_path)
    r = ex.submit_tx(_tx("REGISTER_FILE", "owner", 5, {"file_id": "f1", "size_mb": 10}))
    assert r["stage"] == "admission"
    assert r["error"]["code"] == "bad_nonce"


def test_applied_tx_is_a_duplicate_but_rejected_tx_can_be_retried(tmp_path) -> None:
    ex = _mk(tmp_path)
    ex.submit_tx(_tx("FUND_CONTRACT", "admin", 1, {"amount": 100_000}))
    ex.submit_tx(_tx("REGISTER_FILE", "owner", 1, {"file_id": "f1", "size_mb": 100}))
    ex.submit_tx(_tx("CREATE_COMMITMENT", "prov", 1, {"file_id": "f1", "duration_blocks": 144}))

    verify = _tx("VERIFY_STORAGE_COMMITMENT", "admin", 2, {"file_id": "f1", "commitment_id": 1})
    early = ex.submit_tx(verify)
    assert early["error"]["code"] == "already_active_or_expired"

    ex.advance_blocks(144)
    again = ex.submit_tx(verify)
    assert again["ok"] is True
    assert again["tx_id"] == early["tx_id"]

    dup = ex.submit_tx(verify)
    assert dup["status"] == "duplicate"
    assert dup["error"]["code"] == "duplicate_tx"
    assert ex.tx_status(again["tx_id"])["status"] == "applied"


def test_non_dict_submission_is_rejected(tmp_path) -> None:
    ex = _mk(tmp_path)
    r = ex.submit_tx(["not", "a", "tx"])  # type: ignore[arg-type]
    assert r["ok"] is False
    assert r["error"]["code"] == "invalid_tx"


def test_produce_block_records_pending_txs(tmp_path) -> None:
    ex = _mk(tmp_path)

    meta = ex.produce_block()
    assert meta.ok is True
    assert meta.height == 0
    assert ex.get_block(1) is None

    r = ex.submit_tx(_tx("REGISTER_FILE", "owner", 1, {"file_id": "f1", "size_mb": 10}))
    meta = ex.produce_block()
    assert meta.height == 1
    assert meta.applied_count == 1

    blk = ex.get_block(1)
    assert blk["tx_ids"] == [r["tx_id"]]
    assert blk["prev_block_id"] == ""
    assert blk["block_id"] == meta.block_id
    assert blk["producer"] == "n1"

    meta2 = ex.produce_block(allow_empty=True)
    assert meta2.height == 2
    assert ex.get_block(2)["prev_block_id"] == meta.block_id
    assert ex.view().tip == meta2.block_id


def test_advance_blocks_requires_positive_count(tmp_path) -> None:
    ex = _mk(tmp_path)
    with pytest.raises(ValueError):
        ex.advance_blocks(0)
    meta = ex.advance_blocks(5)
    assert meta.height == 5
    assert ex.get_block(5)["height"] == 5


def test_state_survives_restart(tmp_path) -> None:
    ex = _mk(tmp_path)
    ex.submit_tx(_tx("REGISTER_FILE", "owner", 1, {"file_id": "f1", "size_mb": 10}))
    ex.advance_blocks(3)

    ex2 = _mk(tmp_path, genesis=None)
    v = ex2.view()
    assert v.height == 3
    assert v.get_file_info("f1") is not None
    assert v.get_nonce("owner") == 1
    assert v.native_balance("admin") == 1_000_000


def test_chain_id_mismatch_refuses_to_start(tmp_path) -> None:
    _mk(tmp_path)
    with pytest.raises(ExecutorError):
        _mk(tmp_path, chain_id="other-chain", genesis=None)


def test_custody_gap_on_disk_refuses_to_start(tmp_path) -> None:
    ex = _mk(tmp_path)
    st = ex.read_state()
    st["treasury"]["balance"] = 5
    ex.store.write(st)

    with pytest.raises(ExecutorError):
        _mk(tmp_path, genesis=None)


def test_signed_flow_with_genesis_keys(tmp_path) -> None:
    admin_priv, admin_pub = new_keypair()
    prov_priv, prov_pub = new_keypair()
    genesis = GenesisConfig(
        chain_id="test-chain",
        admin="admin",
        accounts=[GenesisAccount("admin", pubkey=admin_pub, balance=50_000)],
    )
    ex = _mk(tmp_path, genesis=genesis, allow_unsigned=False)

    fund = sign_tx(_tx("FUND_CONTRACT", "admin", 1, {"amount": 10_000}), admin_priv)
    assert ex.submit_tx(fund)["ok"] is True

    reg = sign_tx(_tx("ACCOUNT_REGISTER", "prov", 1, {"pubkey": prov_pub}), prov_priv)
    assert ex.submit_tx(reg)["ok"] is True

    forged = sign_tx(_tx("WITHDRAW_REWARDS", "prov", 2, {"amount": 1}), admin_priv)
    r = ex.submit_tx(forged)
    assert r["error"]["code"] == "bad_sig"

    unsigned = _tx("REGISTER_FILE", "stranger", 1, {"file_id": "f1", "size_mb": 1})
    assert ex.submit_tx(unsigned)["error"]["code"] == "unknown_signer"
    assert ex.view().get_contract_balance() == 10_000


def test_signed_mode_refuses_keyless_admin_or_funded_genesis(tmp_path) -> None:
    with pytest.raises(ExecutorError):
        _mk(tmp_path / "a", allow_unsigned=False)

    _priv, admin_pub = new_keypair()
    funded_keyless = GenesisConfig(
        chain_id="test-chain",
        admin="admin",
        accounts=[GenesisAccount("admin", pubkey=admin_pub), GenesisAccount("alice", balance=5)],
    )
    with pytest.raises(ExecutorError):
        _mk(tmp_path / "b", genesis=funded_keyless, allow_unsigned=False)


def test_account_register_cannot_take_over_existing_principals(tmp_path) -> None:
    _admin_priv, admin_pub = new_keypair()
    genesis = GenesisConfig(
        chain_id="test-chain",
        admin="admin",
        accounts=[GenesisAccount("admin", pubkey=admin_pub, balance=1_000), GenesisAccount("carol")],
    )
    ex = _mk(tmp_path, genesis=genesis, allow_unsigned=False)
    before = ex.read_state()["accounts"]

    mallory_priv, mallory_pub = new_keypair()
    keyless = ex.submit_tx(sign_tx(_tx("ACCOUNT_REGISTER", "carol", 1, {"pubkey": mallory_pub}), mallory_priv))
    assert keyless["stage"] == "apply"
    assert keyless["error"]["code"] == "already_exists"

    keyed = ex.submit_tx(sign_tx(_tx("ACCOUNT_REGISTER", "admin", 1, {"pubkey": mallory_pub}), mallory_priv))
    assert keyed["stage"] == "admission"
    assert keyed["error"]["code"] == "bad_sig"

    fund = sign_tx(_tx("FUND_CONTRACT", "admin", 1, {"amount": 10}), mallory_priv)
    assert ex.submit_tx(fund)["error"]["code"] == "bad_sig"
    assert ex.read_state()["accounts"] == before
    assert ex.view().get_contract_balance() == 0


def test_unsigned_mode_refuses_registering_the_admin_principal(tmp_path) -> None:
    ex = _mk(tmp_path, genesis=GenesisConfig(chain_id="test-chain", admin="root"))
    _priv, pub = new_keypair()
    r = ex.submit_tx(_tx("ACCOUNT_REGISTER", "root", 1, {"pubkey": pub}))
    assert r["error"]["code"] == "unauthorized"
    assert r["error"]["reason"] == "admin_account_reserved"
    assert "root" not in ex.read_state()["accounts"]
