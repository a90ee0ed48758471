# src/filepledge/runtime/executor.py
from __future__ import annotations

import copy
import hashlib
import json
import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from filepledge.ledger.constants import CONTRACT_ACCOUNT_ID
from filepledge.ledger.state import IncentiveView
from filepledge.runtime.domain_apply import ApplyError, apply_tx_atomic
from filepledge.runtime.envelope import TxEnvelope
from filepledge.runtime.genesis_config import GenesisConfig, apply_genesis_to_state, unkeyed_principals
from filepledge.runtime.metrics import inc_counter, set_gauge
from filepledge.runtime.sqlite_db import SqliteLedgerStore
from filepledge.runtime.state_invariants import custody_gap, ensure_state
from filepledge.runtime.transfer import ensure_account
from filepledge.runtime.tx_admission import admit_tx
from filepledge.tx.canon import DEFAULT_CANON_PATH, TxIndex
from filepledge.util.jsonl_log import log_event

Json = Dict[str, Any]

log = logging.getLogger("filepledge.executor")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _safe_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return int(default)


def _block_id(header: Json) -> str:
    raw = json.dumps(header, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


@dataclass
class ExecutorMeta:
    ok: bool
    error: str = ""
    height: int = 0
    block_id: str = ""
    applied_count: int = 0


class ExecutorError(RuntimeError):
    pass


class IncentiveExecutor:
    """Single-writer engine over a SQLite snapshot.

    Each submitted tx is admitted and applied immediately, under one process
    lock and one SQLite write transaction, so operations are strictly
    sequential and a rejected tx leaves no trace besides its receipt.
    Blocks only advance the height clock and record which txs landed
    between two heights.
    """

    def __init__(
        self,
        *,
        db_path: str,
        node_id: str,
        chain_id: str,
        admin_account: str = "",
        genesis: Optional[GenesisConfig] = None,
        allow_unsigned: bool = False,
        tx_index_path: Optional[str] = None,
    ) -> None:
        self.node_id = str(node_id)
        self.chain_id = str(chain_id)
        self.allow_unsigned = bool(allow_unsigned)
        self.tx_index: TxIndex = TxIndex.load_from_file(tx_index_path or DEFAULT_CANON_PATH)

        self._lock = threading.RLock()
        self._store = SqliteLedgerStore(path=str(db_path))

        if self._store.exists():
            self.state = self._store.read()
        else:
            self.state = self._initial_state(admin_account)
            if genesis is not None:
                apply_genesis_to_state(self.state, genesis)
            unkeyed = [] if self.allow_unsigned else unkeyed_principals(self.state)
            if unkeyed:
                raise ExecutorError(f"signed mode needs a pubkey for the admin and funded accounts; missing: {unkeyed}")
            self._store.write(self.state)

        st_chain_id = str(self.state.get("chain_id") or "").strip()
        if st_chain_id != self.chain_id:
            raise ExecutorError(f"chain_id mismatch: db={st_chain_id!r} executor={self.chain_id!r}. Refuse to start.")

        gap = custody_gap(self.state)
        if gap != 0:
            raise ExecutorError(f"custody invariant violated on load (gap={gap}). Refuse to start.")

        set_gauge("height", _safe_int(self.state.get("height"), 0))

    def _initial_state(self, admin_account: str) -> Json:
        st: Json = {
            "chain_id": self.chain_id,
            "height": 0,
            "tip": "",
            "tip_ts_ms": 0,
            "pending_tx_ids": [],
            "created_ms": _now_ms(),
            "params": {"admin": str(admin_account or "").strip()},
        }
        ensure_state(st)
        ensure_account(st, CONTRACT_ACCOUNT_ID)
        return st

    # ----------------------------
    # Reads
    # ----------------------------

    @property
    def store(self) -> SqliteLedgerStore:
        return self._store

    def read_state(self) -> Json:
        with self._lock:
            return copy.deepcopy(self.state)

    def view(self) -> IncentiveView:
        with self._lock:
            return IncentiveView.from_ledger(self.state)

    def height(self) -> int:
        with self._lock:
            return _safe_int(self.state.get("height"), 0)

    def tx_status(self, tx_id: str) -> Optional[Json]:
        return self._store.get_receipt(str(tx_id))

    def get_block(self, height: int) -> Optional[Json]:
        return self._store.get_block(int(height))

    # ----------------------------
    # Tx submission
    # ----------------------------

    def submit_tx(self, env: Json) -> Json:
        """Admit and apply one tx; returns its receipt.

        The receipt has ok=False with an error {code, reason, details} when
        admission or the domain layer rejects the tx.
        """
        try:
            tx = TxEnvelope.parse(env)
        except ValueError as e:
            # Without a well-formed body there is no tx id to file a receipt under.
            return {"ok": False, "status": "rejected", "stage": "admission",
                    "error": {"code": "invalid_tx", "reason": "malformed_envelope", "details": {"error": str(e)}}}

        tx_id = tx.tx_id(self.chain_id)
        committed: List[Json] = []

        def mut(st: Json, con: sqlite3.Connection) -> Json:
            prior = self._store.receipt_status(con, tx_id)
            if prior == "applied":
                return {
                    "ok": False,
                    "tx_id": tx_id,
                    "status": "duplicate",
                    "error": {"code": "duplicate_tx", "reason": "already_applied", "details": {"tx_id": tx_id}},
                }

            base: Json = {
                "tx_id": tx_id,
                "tx_type": tx.tx_type,
                "signer": tx.signer,
                "nonce": tx.nonce,
                "height": _safe_int(st.get("height"), 0),
            }

            verdict = admit_tx(tx, st, canon=self.tx_index, allow_unsigned=self.allow_unsigned)
            if not verdict.ok:
                receipt = dict(base, ok=False, status="rejected", stage="admission",
                               error={"code": verdict.code, "reason": verdict.reason, "details": verdict.details})
                self._store.put_receipt(con, tx_id=tx_id, receipt=receipt)
                return receipt

            try:
                new_state, meta = apply_tx_atomic(st, tx, canon=self.tx_index)
            except ApplyError as e:
                receipt = dict(base, ok=False, status="rejected", stage="apply",
                               error={"code": e.code, "reason": e.reason, "details": e.details})
                self._store.put_receipt(con, tx_id=tx_id, receipt=receipt)
                return receipt

            acct = ensure_account(new_state, base["signer"])
            acct["nonce"] = base["nonce"]
            pending = new_state.setdefault("pending_tx_ids", [])
            pending.append(tx_id)

            gap = custody_gap(new_state)
            if gap != 0:
                # Rolls back the whole write transaction.
                raise ExecutorError(f"custody invariant violated by {base['tx_type']} (gap={gap})")

            st.clear()
            st.update(new_state)
            committed.append(st)

            receipt = dict(base, ok=True, status="applied", result=meta)
            self._store.put_receipt(con, tx_id=tx_id, receipt=receipt)
            return receipt

        with self._lock:
            receipt = self._store.update(mut)
            if committed:
                self.state = committed[0]

        if receipt.get("ok"):
            inc_counter("tx_applied_total", 1)
            log_event(log, "tx_applied", tx_id=tx_id, tx_type=receipt.get("tx_type"), signer=receipt.get("signer"),
                      result=receipt.get("result"))
        else:
            inc_counter("tx_rejected_total", 1)
            err = receipt.get("error") or {}
            log_event(log, "tx_rejected", level=logging.WARNING, tx_id=tx_id, tx_type=receipt.get("tx_type"),
                      signer=receipt.get("signer"), code=err.get("code"), reason=err.get("reason"))
        return receipt

    # ----------------------------
    # Block clock
    # ----------------------------

    def _produce_in(self, st: Json, con: sqlite3.Connection, *, allow_empty: bool) -> Optional[Json]:
        pending = [str(x) for x in (st.get("pending_tx_ids") or [])]
        if not pending and not allow_empty:
            return None

        height = _safe_int(st.get("height"), 0)
        last_ts = _safe_int(st.get("tip_ts_ms"), 0)
        ts_ms = max(_now_ms(), last_ts)
        header: Json = {
            "chain_id": self.chain_id,
            "height": height + 1,
            "prev_block_id": str(st.get("tip") or ""),
            "ts_ms": ts_ms,
            "tx_ids": pending,
        }
        block = dict(header, block_id=_block_id(header), producer=self.node_id)

        self._store.put_block(con, block=block)
        st["height"] = height + 1
        st["tip"] = block["block_id"]
        st["tip_ts_ms"] = ts_ms
        st["pending_tx_ids"] = []
        return block

    def produce_block(self, *, allow_empty: bool = False) -> ExecutorMeta:
        """Seal pending txs into the next block; height advances by one."""
        with self._lock:
            committed: List[Json] = []

            def mut(st: Json, con: sqlite3.Connection) -> Optional[Json]:
                blk = self._produce_in(st, con, allow_empty=allow_empty)
                committed.append(st)
                return blk

            blk = self._store.update(mut)
            self.state = committed[0]

        if blk is None:
            return ExecutorMeta(ok=True, height=self.height(), block_id=str(self.state.get("tip") or ""))

        inc_counter("blocks_produced_total", 1)
        set_gauge("height", int(blk["height"]))
        log_event(log, "block_produced", height=blk["height"], block_id=blk["block_id"], tx_count=len(blk["tx_ids"]))
        return ExecutorMeta(ok=True, height=int(blk["height"]), block_id=str(blk["block_id"]),
                            applied_count=len(blk["tx_ids"]))

    def advance_blocks(self, count: int) -> ExecutorMeta:
        """Produce `count` consecutive blocks in one write transaction."""
        n = int(count)
        if n <= 0:
            raise ValueError("count must be > 0")

        with self._lock:
            committed: List[Json] = []

            def mut(st: Json, con: sqlite3.Connection) -> List[Json]:
                out = [self._produce_in(st, con, allow_empty=True) for _ in range(n)]
                committed.append(st)
                return [b for b in out if b is not None]

            blocks = self._store.update(mut)
            self.state = committed[0]

        last = blocks[-1]
        inc_counter("blocks_produced_total", len(blocks))
        set_gauge("height", int(last["height"]))
        log_event(log, "block_produced", height=last["height"], block_id=last["block_id"], count=len(blocks))
        return ExecutorMeta(ok=True, height=int(last["height"]), block_id=str(last["block_id"]),
                            applied_count=sum(len(b["tx_ids"]) for b in blocks))


__all__ = ["ExecutorError", "ExecutorMeta", "IncentiveExecutor"]
