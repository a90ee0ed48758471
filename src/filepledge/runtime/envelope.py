# src/filepledge/runtime/envelope.py
from __future__ import annotations

"""Operation requests and admission verdicts.

A TxEnvelope is the only carrier of caller identity: every applier reads the
invoking principal from `signer`. The same canonical JSON body feeds the
signature and the tx id, so both are independent of key order on the wire.
"""

import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict

Json = Dict[str, Any]


def canonical_bytes(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


@dataclass(frozen=True, slots=True)
class TxEnvelope:
    tx_type: str
    signer: str
    nonce: int
    payload: Json = field(default_factory=dict)
    sig: str = ""

    @classmethod
    def parse(cls, raw: Any) -> "TxEnvelope":
        """Build an envelope from wire JSON.

        tx_type is upper-cased and signer stripped. Raises ValueError when the
        object, nonce or payload has the wrong shape.
        """
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, Mapping):
            raise ValueError(f"tx must be an object, got {type(raw).__name__}")

        nonce = raw.get("nonce", 0)
        if isinstance(nonce, bool) or not isinstance(nonce, int):
            raise ValueError(f"nonce must be an integer, got {nonce!r}")

        payload = raw.get("payload")
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"payload must be an object, got {type(payload).__name__}")

        return cls(
            tx_type=str(raw.get("tx_type") or "").strip().upper(),
            signer=str(raw.get("signer") or "").strip(),
            nonce=nonce,
            payload=dict(payload),
            sig=str(raw.get("sig") or ""),
        )

    def body(self) -> Json:
        """Everything the signer commits to; `sig` is excluded."""
        return {"tx_type": self.tx_type, "signer": self.signer, "nonce": self.nonce, "payload": self.payload}

    def signing_bytes(self) -> bytes:
        return canonical_bytes(self.body())

    def tx_id(self, chain_id: str) -> str:
        # Re-encoding a signature must not yield a second id for one request.
        return hashlib.sha256(canonical_bytes(dict(self.body(), chain_id=str(chain_id)))).hexdigest()

    def to_json(self) -> Json:
        return dict(self.body(), sig=self.sig)


@dataclass(frozen=True, slots=True)
class Verdict:
    """Admission outcome. An empty code means the tx was admitted."""

    code: str = ""
    reason: str = ""
    details: Json = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.code

    def error(self) -> Json:
        return {"code": self.code, "reason": self.reason, "details": dict(self.details)}


ADMITTED = Verdict()


def reject(code: str, reason: str, **details: Any) -> Verdict:
    return Verdict(code=str(code), reason=str(reason), details=details)


__all__ = ["ADMITTED", "Json", "TxEnvelope", "Verdict", "canonical_bytes", "reject"]
