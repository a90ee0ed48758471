from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Error codes (stable; surfaced over the API)
UNAUTHORIZED = "unauthorized"
NOT_FOUND = "not_found"
INVALID_INPUT = "invalid_input"
ALREADY_EXISTS = "already_exists"
ALREADY_ACTIVE_OR_EXPIRED = "already_active_or_expired"
ALREADY_CLAIMED = "already_claimed"
INSUFFICIENT_BALANCE = "insufficient_balance"

ERROR_CODES = frozenset(
    {
        UNAUTHORIZED,
        NOT_FOUND,
        INVALID_INPUT,
        ALREADY_EXISTS,
        ALREADY_ACTIVE_OR_EXPIRED,
        ALREADY_CLAIMED,
        INSUFFICIENT_BALANCE,
    }
)


@dataclass
class ApplyError(Exception):
    """Canonical error type for domain apply and dispatch failures."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"
