# tests/test_chain_config.py
from __future__ import annotations

import json
import os

import pytest

from filepledge.runtime.chain_config import (
    apply_chain_config_to_env,
    chain_config_from_dict,
    default_chain_config,
    load_chain_config,
)
from filepledge.runtime.genesis_config import apply_genesis_to_state, genesis_from_dict, load_genesis, unkeyed_principals

_ENV_KEYS = (
    "FILEPLEDGE_CHAIN_ID",
    "FILEPLEDGE_NODE_ID",
    "FILEPLEDGE_MODE",
    "FILEPLEDGE_DB_PATH",
    "FILEPLEDGE_BLOCK_INTERVAL_MS",
    "FILEPLEDGE_PRODUCE_EMPTY_BLOCKS",
    "FILEPLEDGE_LOG_LEVEL",
)


def test_defaults_are_prod_and_valid(monkeypatch) -> None:
    monkeypatch.delenv("FILEPLEDGE_CHAIN_CONFIG_PATH", raising=False)
    cfg = load_chain_config()
    assert cfg == default_chain_config()
    assert cfg.mode == "prod"
    assert cfg.allow_unsigned_txs is False
    assert cfg.produce_empty_blocks is True


def test_load_from_env_path(tmp_path, monkeypatch) -> None:
    p = tmp_path / "chain.json"
    p.write_text(
        json.dumps(
            {
                "chain_id": "c1",
                "mode": "DEV",
                "db_path": str(tmp_path / "db.sqlite"),
                "api_port": "9001",
                "produce_empty_blocks": "false",
                "allow_unsigned_txs": True,
                "log_level": "debug",
            }
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("FILEPLEDGE_CHAIN_CONFIG_PATH", str(p))

    cfg = load_chain_config()
    assert cfg.chain_id == "c1"
    assert cfg.mode == "dev"
    assert cfg.api_port == 9001
    assert cfg.produce_empty_blocks is False
    assert cfg.allow_unsigned_txs is True
    assert cfg.log_level == "DEBUG"
    assert cfg.node_id == "local-node"


@pytest.mark.parametrize(
    "raw",
    [
        {"mode": "staging"},
        {"api_port": 0},
        {"api_port": 70000},
        {"api_port": "eighty"},
        {"block_interval_ms": 10},
        {"allow_unsigned_txs": True},
        {"log_level": "LOUD"},
        {"genesis_path": "/definitely/not/here.json"},
    ],
)
def test_invalid_config_fails_fast(raw) -> None:
    with pytest.raises(ValueError):
        chain_config_from_dict(raw)


def test_non_object_config_rejected() -> None:
    with pytest.raises(ValueError):
        chain_config_from_dict(["chain_id"])  # type: ignore[arg-type]


def test_apply_chain_config_to_env(monkeypatch) -> None:
    # setenv registers each key so the writes below are undone after the test.
    for k in _ENV_KEYS:
        monkeypatch.setenv(k, "")
    cfg = chain_config_from_dict({"mode": "testnet", "produce_empty_blocks": False, "block_interval_ms": 500})
    apply_chain_config_to_env(cfg)
    assert os.environ["FILEPLEDGE_MODE"] == "testnet"
    assert os.environ["FILEPLEDGE_PRODUCE_EMPTY_BLOCKS"] == "0"
    assert os.environ["FILEPLEDGE_BLOCK_INTERVAL_MS"] == "500"


def test_genesis_parse_and_apply_once(tmp_path) -> None:
    p = tmp_path / "genesis.json"
    p.write_text(
        json.dumps({"chain_id": "c1", "admin": "alice", "accounts": [{"account": "alice", "pubkey": "ab", "balance": 10}]}),
        encoding="utf-8",
    )
    g = load_genesis(str(p))
    assert g.admin == "alice"
    assert g.accounts[0].balance == 10

    st = {"chain_id": "c1", "height": 0, "accounts": {}, "params": {}}
    changed, st = apply_genesis_to_state(st, g)
    assert changed is True
    assert st["params"]["admin"] == "alice"
    assert st["accounts"]["alice"]["balance"] == 10
    assert st["accounts"]["alice"]["keys"] == [{"pubkey": "ab", "active": True}]

    st["accounts"]["alice"]["balance"] = 3
    changed, st = apply_genesis_to_state(st, g)
    assert changed is False
    assert st["accounts"]["alice"]["balance"] == 3


def test_genesis_skipped_after_height_zero() -> None:
    g = genesis_from_dict({"admin": "alice"})
    st = {"height": 5, "params": {}}
    assert apply_genesis_to_state(st, g) == (False, st)
    assert "admin" not in st["params"]


def test_genesis_chain_id_mismatch() -> None:
    g = genesis_from_dict({"chain_id": "c2"})
    with pytest.raises(ValueError):
        apply_genesis_to_state({"chain_id": "c1", "height": 0, "params": {}}, g)


@pytest.mark.parametrize(
    "raw",
    [
        [],
        {"accounts": {}},
        {"accounts": [{"balance": 1}]},
        {"accounts": [{"account": "CONTRACT"}]},
        {"accounts": [{"account": "a"}, {"account": "a"}]},
        {"accounts": [{"account": "a", "balance": -1}]},
        {"accounts": [{"account": "a", "balance": "lots"}]},
    ],
)
def test_bad_genesis_documents(raw) -> None:
    with pytest.raises(ValueError):
        genesis_from_dict(raw)


def test_missing_genesis_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_genesis(str(tmp_path / "nope.json"))


def test_blank_values_fall_back_and_unknown_keys_are_rejected() -> None:
    cfg = chain_config_from_dict({"chain_id": "  ", "node_id": None, "mode": "dev"})
    assert cfg.chain_id == default_chain_config().chain_id
    assert cfg.node_id == "local-node"

    with pytest.raises(ValueError):
        chain_config_from_dict({"mode": "dev", "api_prot": 8080})


def test_unkeyed_principals_lists_admin_and_funded_accounts() -> None:
    st = {
        "params": {"admin": "root"},
        "accounts": {
            "CONTRACT": {"balance": 10, "keys": []},
            "alice": {"balance": 5, "keys": []},
            "bob": {"balance": 5, "keys": [{"pubkey": "ab", "active": True}]},
            "carol": {"balance": 0, "keys": []},
        },
    }
    assert unkeyed_principals(st) == ["root", "alice"]
