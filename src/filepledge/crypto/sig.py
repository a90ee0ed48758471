# src/filepledge/crypto/sig.py
from __future__ import annotations

"""Ed25519 keys and envelope signatures.

Seeds, public keys and signatures are produced as hex. Verification also
accepts base64 or base64url text for keys and signatures.
"""

import base64
import binascii
from collections.abc import Mapping
from typing import Any, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat, PublicFormat

from filepledge.runtime.envelope import Json, TxEnvelope


def _key_bytes(text: str) -> bytes:
    """Decode hex, then base64/base64url. Raises ValueError."""
    s = str(text or "").strip()
    try:
        return bytes.fromhex(s)
    except ValueError:
        pass
    s = s.replace("+", "-").replace("/", "_")
    try:
        return base64.urlsafe_b64decode(s + "=" * (-len(s) % 4))
    except binascii.Error as e:
        raise ValueError("expected hex or base64 text") from e


def new_keypair() -> Tuple[str, str]:
    """(seed_hex, pubkey_hex) for a fresh Ed25519 key."""
    sk = Ed25519PrivateKey.generate()
    seed = sk.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
    pub = sk.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    return seed.hex(), pub.hex()


def _private_key(seed: str) -> Ed25519PrivateKey:
    raw = _key_bytes(seed)
    if len(raw) != 32:
        raise ValueError("ed25519 seed must be 32 bytes")
    return Ed25519PrivateKey.from_private_bytes(raw)


def sign_tx(tx: Mapping[str, Any] | TxEnvelope, seed: str) -> Json:
    """Return the normalized wire form of `tx` with `sig` filled in."""
    env = TxEnvelope.parse(tx)
    return dict(env.to_json(), sig=_private_key(seed).sign(env.signing_bytes()).hex())


def signature_matches(env: TxEnvelope, pubkey: str) -> bool:
    try:
        key = Ed25519PublicKey.from_public_bytes(_key_bytes(pubkey))
        key.verify(_key_bytes(env.sig), env.signing_bytes())
    except (InvalidSignature, ValueError):
        return False
    return True


__all__ = ["new_keypair", "sign_tx", "signature_matches"]
