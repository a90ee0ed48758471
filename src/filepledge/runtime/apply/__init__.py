# src/filepledge/runtime/apply/__init__.py
"""Domain-specific apply modules.

Each module implements deterministic ledger state transitions for a subset of
tx types and returns None for tx types it does not own. Dispatch lives in
filepledge.runtime.domain_apply.

NOTE: Keep this package import-safe (no imports of the dispatcher here).
"""

from __future__ import annotations

__all__ = [
    "accounts",
    "commitments",
    "registry",
    "treasury",
]
