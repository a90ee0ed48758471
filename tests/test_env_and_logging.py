# tests/test_env_and_logging.py
from __future__ import annotations

import json
import logging
import os

import filepledge.env as env_mod
from filepledge.util.jsonl_log import log_event


def test_dotenv_loads_once_without_overriding(tmp_path, monkeypatch) -> None:
    p = tmp_path / "node.env"
    p.write_text("FILEPLEDGE_TEST_A=from_file\nFILEPLEDGE_TEST_B=from_file\n", encoding="utf-8")
    monkeypatch.setattr(env_mod, "_dotenv_done", False)
    monkeypatch.setenv("FILEPLEDGE_TEST_B", "from_env")
    monkeypatch.setenv("FILEPLEDGE_TEST_A", "")
    monkeypatch.delenv("FILEPLEDGE_TEST_A")

    assert env_mod.load_dotenv_if_present(str(p)) is True
    assert os.environ["FILEPLEDGE_TEST_A"] == "from_file"
    assert os.environ["FILEPLEDGE_TEST_B"] == "from_env"

    assert env_mod.load_dotenv_if_present(str(p)) is False


def test_dotenv_missing_file(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(env_mod, "_dotenv_done", False)
    assert env_mod.load_dotenv_if_present(str(tmp_path / "absent.env")) is False


def test_log_event_emits_one_json_line(caplog) -> None:
    logger = logging.getLogger("filepledge.test")
    with caplog.at_level(logging.INFO, logger="filepledge.test"):
        log_event(logger, "tx_applied", tx_id="abc", height=3)

    rec = json.loads(caplog.records[-1].getMessage())
    assert rec["event"] == "tx_applied"
    assert rec["tx_id"] == "abc"
    assert rec["height"] == 3
    assert isinstance(rec["ts_ms"], int)


def test_log_event_falls_back_for_unserializable_fields(caplog) -> None:
    logger = logging.getLogger("filepledge.test")
    with caplog.at_level(logging.WARNING, logger="filepledge.test"):
        log_event(logger, "odd", level=logging.WARNING, thing=object())

    msg = caplog.records[-1].getMessage()
    assert msg.startswith("event=odd")
    assert caplog.records[-1].levelno == logging.WARNING
