# src/filepledge/tx/canon.py
from __future__ import annotations

"""Canon of engine tx types, loaded from tx_canon.yaml.

Admission reads the gate and bootstrap flag from here, and dispatch reads the
owning domain. A malformed canon is a startup error.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from filepledge.runtime.gates import ROLE_ANY, ROLES

DEFAULT_CANON_PATH = Path(__file__).resolve().parent / "tx_canon.yaml"


class CanonError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class CanonEntry:
    id: int
    name: str
    domain: str
    gate: str = ROLE_ANY
    payload: Tuple[str, ...] = ()
    bootstrap: bool = False
    notes: str = ""

    @classmethod
    def from_yaml(cls, raw: Any) -> "CanonEntry":
        if not isinstance(raw, dict):
            raise CanonError(f"tx entry must be a mapping, got {type(raw).__name__}")
        name = str(raw.get("name") or "").strip().upper()
        if not name:
            raise CanonError("tx entry missing name")

        ident = raw.get("id")
        if isinstance(ident, bool) or not isinstance(ident, int):
            raise CanonError(f"{name}: id must be an int, got {ident!r}")

        gate = str(raw.get("gate") or ROLE_ANY).strip()
        if gate not in ROLES:
            raise CanonError(f"{name}: unknown gate {gate!r}")

        keys = raw.get("payload") or []
        if not isinstance(keys, list) or any(not isinstance(k, str) for k in keys):
            raise CanonError(f"{name}: payload must list key names")

        return cls(
            id=ident,
            name=name,
            domain=str(raw.get("domain") or "").strip(),
            gate=gate,
            payload=tuple(keys),
            bootstrap=raw.get("bootstrap") is True,
            notes=str(raw.get("notes") or ""),
        )


@dataclass(frozen=True)
class TxIndex:
    entries: Tuple[CanonEntry, ...]
    version: int = 1

    def __post_init__(self) -> None:
        names: Dict[str, int] = {}
        ids: Dict[int, str] = {}
        for e in self.entries:
            if e.name in names:
                raise CanonError(f"duplicate tx name: {e.name}")
            if e.id in ids:
                raise CanonError(f"duplicate tx id: {e.id} ({ids[e.id]}, {e.name})")
            names[e.name] = e.id
            ids[e.id] = e.name

    def get(self, name: str) -> Optional[CanonEntry]:
        wanted = str(name or "").strip().upper()
        return next((e for e in self.entries if e.name == wanted), None)

    def names(self) -> list[str]:
        return [e.name for e in self.entries]

    def domains(self) -> set[str]:
        return {e.domain for e in self.entries}

    @classmethod
    def load_from_file(cls, path: str | Path = DEFAULT_CANON_PATH) -> "TxIndex":
        return load_tx_canon_yaml(path)


def load_tx_canon_yaml(path: str | Path = DEFAULT_CANON_PATH) -> TxIndex:
    p = Path(path)
    if not p.is_file():
        raise CanonError(f"canon file not found: {p}")
    try:
        doc = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise CanonError(f"canon file is not valid YAML: {p}") from e
    if not isinstance(doc, dict) or not isinstance(doc.get("tx_types"), list):
        raise CanonError("canon must be a mapping with a tx_types list")

    entries = tuple(CanonEntry.from_yaml(t) for t in doc["tx_types"])
    return TxIndex(entries=entries, version=int(doc.get("version") or 1))


@lru_cache(maxsize=1)
def default_tx_index() -> TxIndex:
    return load_tx_canon_yaml(DEFAULT_CANON_PATH)


__all__ = ["CanonEntry", "CanonError", "DEFAULT_CANON_PATH", "TxIndex", "default_tx_index", "load_tx_canon_yaml"]
