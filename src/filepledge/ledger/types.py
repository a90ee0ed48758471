"""filepledge.ledger.types

Typed records for the storage-incentive engine.

Records are persisted as plain JSON dicts inside the ledger state. These
dataclasses are the typed view used by apply modules and queries:
  - FileRecord: files[file_id]
  - Commitment: commitments["<file_id>#<seq>"]
  - CommitmentKey: the composite (file_id, seq) key with value semantics
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict

from filepledge.ledger.constants import COMMITMENT_KEY_SEP

Json = Dict[str, Any]


def _coerce_int(v: Any, *, field: str) -> int:
    try:
        # bool is an int subclass; disallow it explicitly
        if isinstance(v, bool):
            raise ValueError("bool is not a valid int")
        return int(v)
    except Exception as e:
        raise ValueError(f"record schema error: field '{field}' must be int-coercible (got {type(v).__name__})") from e


def _coerce_str(v: Any, *, field: str) -> str:
    if not isinstance(v, str):
        raise ValueError(f"record schema error: field '{field}' must be str (got {type(v).__name__})")
    return v


@dataclass(frozen=True, slots=True, order=True)
class CommitmentKey:
    file_id: str
    seq: int

    def encode(self) -> str:
        return f"{self.file_id}{COMMITMENT_KEY_SEP}{int(self.seq)}"

    @classmethod
    def decode(cls, raw: str) -> "CommitmentKey":
        # file ids may themselves contain the separator; the seq is always last
        file_id, sep, seq = str(raw).rpartition(COMMITMENT_KEY_SEP)
        if not sep or not file_id:
            raise ValueError(f"malformed commitment key: {raw!r}")
        return cls(file_id=file_id, seq=_coerce_int(seq, field="seq"))

    def __str__(self) -> str:
        return self.encode()


@dataclass(frozen=True, slots=True)
class FileRecord:
    file_id: str
    owner: str
    size_mb: int
    created_at: int
    is_active: bool = True

    def to_json(self) -> Json:
        return asdict(self)

    @classmethod
    def from_json(cls, j: Json) -> "FileRecord":
        return cls(
            file_id=_coerce_str(j.get("file_id"), field="file_id"),
            owner=_coerce_str(j.get("owner"), field="owner"),
            size_mb=_coerce_int(j.get("size_mb"), field="size_mb"),
            created_at=_coerce_int(j.get("created_at"), field="created_at"),
            is_active=bool(j.get("is_active", True)),
        )


@dataclass(frozen=True, slots=True)
class Commitment:
    file_id: str
    commitment_id: int
    storage_provider: str
    duration_blocks: int
    start_block: int
    end_block: int
    bonus_multiplier: int
    reward_amount: int
    is_verified: bool = False
    is_claimed: bool = False

    @property
    def key(self) -> CommitmentKey:
        return CommitmentKey(self.file_id, self.commitment_id)

    @property
    def status(self) -> str:
        if self.is_claimed:
            return "claimed"
        if self.is_verified:
            return "verified"
        return "pending"

    def expired_at(self, height: int) -> bool:
        return int(height) >= self.end_block

    def mark_verified(self) -> "Commitment":
        return replace(self, is_verified=True)

    def mark_claimed(self) -> "Commitment":
        return replace(self, is_claimed=True)

    def to_json(self) -> Json:
        return asdict(self)

    @classmethod
    def from_json(cls, j: Json) -> "Commitment":
        return cls(
            file_id=_coerce_str(j.get("file_id"), field="file_id"),
            commitment_id=_coerce_int(j.get("commitment_id"), field="commitment_id"),
            storage_provider=_coerce_str(j.get("storage_provider"), field="storage_provider"),
            duration_blocks=_coerce_int(j.get("duration_blocks"), field="duration_blocks"),
            start_block=_coerce_int(j.get("start_block"), field="start_block"),
            end_block=_coerce_int(j.get("end_block"), field="end_block"),
            bonus_multiplier=_coerce_int(j.get("bonus_multiplier"), field="bonus_multiplier"),
            reward_amount=_coerce_int(j.get("reward_amount"), field="reward_amount"),
            is_verified=bool(j.get("is_verified", False)),
            is_claimed=bool(j.get("is_claimed", False)),
        )


__all__ = ["Commitment", "CommitmentKey", "FileRecord"]
