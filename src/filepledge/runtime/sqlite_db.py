# src/filepledge/runtime/sqlite_db.py
from __future__ import annotations

"""SQLite persistence for the engine: one JSON snapshot row, blocks, receipts.

The file runs in WAL mode. Every read opens its own short-lived connection;
every write holds a BEGIN IMMEDIATE transaction, so at most one writer is
active and a failed mutation leaves nothing behind.
"""

import json
import random
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar

from filepledge.env import env_flag, env_int, env_str

Json = Dict[str, Any]
T = TypeVar("T")

SCHEMA_VERSION = 1

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL)",
    """CREATE TABLE IF NOT EXISTS snapshot (
         id INTEGER PRIMARY KEY CHECK (id = 1),
         height INTEGER NOT NULL,
         body TEXT NOT NULL,
         saved_ms INTEGER NOT NULL)""",
    """CREATE TABLE IF NOT EXISTS blocks (
         height INTEGER PRIMARY KEY,
         block_id TEXT NOT NULL,
         body TEXT NOT NULL)""",
    """CREATE TABLE IF NOT EXISTS receipts (
         tx_id TEXT PRIMARY KEY,
         status TEXT NOT NULL,
         height INTEGER NOT NULL,
         body TEXT NOT NULL)""",
)

_SYNC_LEVELS = ("OFF", "NORMAL", "FULL", "EXTRA")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _dump(obj: Any) -> str:
    # No default=str: a non-JSON value in state is a bug and must fail here.
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _load_obj(text: Any) -> Optional[Json]:
    obj = json.loads(str(text))
    return obj if isinstance(obj, dict) else None


def _locked(e: sqlite3.OperationalError) -> bool:
    msg = str(e).lower()
    return "locked" in msg or "busy" in msg


@dataclass(frozen=True)
class SqliteTuning:
    synchronous: str = "FULL"
    timeout_ms: int = 30_000
    write_deadline_ms: int = 30_000
    backoff_base_ms: int = 5
    backoff_max_ms: int = 250
    allow_non_wal: bool = False

    @classmethod
    def from_env(cls) -> "SqliteTuning":
        """Read FILEPLEDGE_SQLITE_* knobs; synchronous is FULL in prod, NORMAL otherwise."""
        fallback = "FULL" if env_str("FILEPLEDGE_MODE", "prod").lower() == "prod" else "NORMAL"
        sync = env_str("FILEPLEDGE_SQLITE_SYNCHRONOUS", fallback).upper()
        base = env_int("FILEPLEDGE_SQLITE_WRITE_BACKOFF_BASE_MS", 5, minimum=1)
        return cls(
            synchronous=sync if sync in _SYNC_LEVELS else fallback,
            timeout_ms=env_int("FILEPLEDGE_SQLITE_CONNECT_TIMEOUT_MS", 30_000, minimum=0),
            write_deadline_ms=env_int("FILEPLEDGE_SQLITE_WRITE_DEADLINE_MS", 30_000, minimum=250),
            backoff_base_ms=base,
            backoff_max_ms=env_int("FILEPLEDGE_SQLITE_WRITE_BACKOFF_MAX_MS", 250, minimum=base),
            allow_non_wal=env_flag("FILEPLEDGE_SQLITE_ALLOW_NON_WAL"),
        )

    def pause(self, attempt: int) -> None:
        ms = min(self.backoff_max_ms, self.backoff_base_ms * (2 ** min(attempt, 8)))
        time.sleep(ms / 1000.0 * (0.5 + random.random()))


def _retry_locked(con: sqlite3.Connection, sql: str, tuning: SqliteTuning, deadline_ms: int) -> None:
    attempt = 0
    while True:
        try:
            con.execute(sql)
            return
        except sqlite3.OperationalError as e:
            if not _locked(e) or _now_ms() >= deadline_ms:
                raise
            tuning.pause(attempt)
            attempt += 1


class SqliteLedgerStore:
    """Engine snapshot persisted as a single JSON row.

    update(mut) is the executor's only mutation path: the read, the mutation
    and the write share one write transaction, so if mut raises nothing is
    written (receipts and blocks included).
    """

    def __init__(self, *, path: str) -> None:
        self.path = str(path)
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._migrate()

    def _connect(self, tuning: SqliteTuning) -> sqlite3.Connection:
        # BEGIN/COMMIT are issued explicitly.
        con = sqlite3.connect(self.path, timeout=tuning.timeout_ms / 1000.0, isolation_level=None)
        con.row_factory = sqlite3.Row
        journal = str(con.execute("PRAGMA journal_mode=WAL").fetchone()[0]).lower()
        if journal != "wal" and not tuning.allow_non_wal:
            con.close()
            raise RuntimeError(f"sqlite journal_mode is {journal!r}, expected 'wal'")
        con.execute(f"PRAGMA synchronous={tuning.synchronous}")
        con.execute(f"PRAGMA busy_timeout={tuning.timeout_ms}")
        return con

    @contextmanager
    def reading(self) -> Iterator[sqlite3.Connection]:
        con = self._connect(SqliteTuning.from_env())
        try:
            yield con
        finally:
            con.close()

    @contextmanager
    def writing(self) -> Iterator[sqlite3.Connection]:
        """One BEGIN IMMEDIATE transaction; lock contention is retried until
        FILEPLEDGE_SQLITE_WRITE_DEADLINE_MS, any exception rolls back."""
        tuning = SqliteTuning.from_env()
        deadline = _now_ms() + tuning.write_deadline_ms
        con = self._connect(tuning)
        try:
            _retry_locked(con, "BEGIN IMMEDIATE", tuning, deadline)
            try:
                yield con
                _retry_locked(con, "COMMIT", tuning, deadline)
            except BaseException:
                con.execute("ROLLBACK")
                raise
        finally:
            con.close()

    def _migrate(self) -> None:
        with self.writing() as con:
            for ddl in _SCHEMA:
                con.execute(ddl)
            con.execute("INSERT OR IGNORE INTO meta(key, value) VALUES('schema_version', ?)", (str(SCHEMA_VERSION),))
            have = con.execute("SELECT value FROM meta WHERE key='schema_version'").fetchone()["value"]
            if str(have) != str(SCHEMA_VERSION):
                raise RuntimeError(f"sqlite schema_version is {have}, this build needs {SCHEMA_VERSION}; refusing to open")

    # ---- snapshot ----

    @staticmethod
    def _load(con: sqlite3.Connection) -> Json:
        row = con.execute("SELECT body FROM snapshot WHERE id=1").fetchone()
        if row is None:
            raise FileNotFoundError("no ledger snapshot stored")
        st = _load_obj(row["body"])
        if st is None:
            raise ValueError("ledger snapshot is not a JSON object")
        return st

    @staticmethod
    def _save(con: sqlite3.Connection, st: Json) -> None:
        con.execute(
            "INSERT OR REPLACE INTO snapshot(id, height, body, saved_ms) VALUES(1, ?, ?, ?)",
            (int(st.get("height", 0)), _dump(st), _now_ms()),
        )

    def exists(self) -> bool:
        with self.reading() as con:
            return con.execute("SELECT 1 FROM snapshot WHERE id=1").fetchone() is not None

    def read(self) -> Json:
        with self.reading() as con:
            return self._load(con)

    def write(self, st: Json) -> None:
        if not isinstance(st, dict):
            raise ValueError("ledger snapshot must be a dict")
        with self.writing() as con:
            self._save(con, st)

    def update(self, mut: Callable[[Json, sqlite3.Connection], T]) -> T:
        with self.writing() as con:
            st = self._load(con)
            out = mut(st, con)
            self._save(con, st)
            return out

    # ---- receipts ----

    @staticmethod
    def put_receipt(con: sqlite3.Connection, *, tx_id: str, receipt: Json) -> None:
        con.execute(
            "INSERT OR REPLACE INTO receipts(tx_id, status, height, body) VALUES(?, ?, ?, ?)",
            (str(tx_id), str(receipt.get("status") or ""), int(receipt.get("height") or 0), _dump(receipt)),
        )

    @staticmethod
    def receipt_status(con: sqlite3.Connection, tx_id: str) -> str:
        row = con.execute("SELECT status FROM receipts WHERE tx_id=?", (str(tx_id),)).fetchone()
        return str(row["status"]) if row is not None else ""

    def get_receipt(self, tx_id: str) -> Optional[Json]:
        with self.reading() as con:
            row = con.execute("SELECT body FROM receipts WHERE tx_id=?", (str(tx_id),)).fetchone()
        return _load_obj(row["body"]) if row is not None else None

    # ---- blocks ----

    @staticmethod
    def put_block(con: sqlite3.Connection, *, block: Json) -> None:
        """Raises sqlite3.IntegrityError if the height is already taken."""
        con.execute(
            "INSERT INTO blocks(height, block_id, body) VALUES(?, ?, ?)",
            (int(block["height"]), str(block["block_id"]), _dump(block)),
        )

    def get_block(self, height: int) -> Optional[Json]:
        with self.reading() as con:
            row = con.execute("SELECT body FROM blocks WHERE height=?", (int(height),)).fetchone()
        return _load_obj(row["body"]) if row is not None else None


__all__ = ["SCHEMA_VERSION", "SqliteLedgerStore", "SqliteTuning"]
