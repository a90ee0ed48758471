# src/filepledge/ledger/arith.py
from __future__ import annotations

"""Checked arithmetic over bounded unsigned integers.

Every ledger amount, height and counter is a u128. Python ints never wrap, so
the bound is enforced explicitly: any result outside [0, MAX_UINT] raises
ArithError instead of silently producing an out-of-range value.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from filepledge.ledger.constants import MAX_UINT

Json = Dict[str, Any]


@dataclass
class ArithError(ArithmeticError):
    code: str
    reason: str
    details: Optional[Json] = None

    def __str__(self) -> str:
        return f"{self.code}:{self.reason}"


def as_uint(v: Any, *, field: str = "value") -> int:
    """Coerce v to a u128 or raise. bool is rejected even though it is an int."""
    if isinstance(v, bool) or not isinstance(v, int):
        raise ArithError("invalid_input", "not_an_integer", {"field": field, "type": type(v).__name__})
    if v < 0 or v > MAX_UINT:
        raise ArithError("invalid_input", "uint_out_of_range", {"field": field, "value": v})
    return v


def checked_add(a: int, b: int) -> int:
    out = as_uint(a, field="lhs") + as_uint(b, field="rhs")
    if out > MAX_UINT:
        raise ArithError("invalid_input", "uint_overflow", {"op": "add", "lhs": a, "rhs": b})
    return out


def checked_sub(a: int, b: int) -> int:
    a = as_uint(a, field="lhs")
    b = as_uint(b, field="rhs")
    if b > a:
        raise ArithError("invalid_input", "uint_underflow", {"op": "sub", "lhs": a, "rhs": b})
    return a - b


def checked_mul(a: int, b: int) -> int:
    out = as_uint(a, field="lhs") * as_uint(b, field="rhs")
    if out > MAX_UINT:
        raise ArithError("invalid_input", "uint_overflow", {"op": "mul", "lhs": a, "rhs": b})
    return out


def checked_div(a: int, b: int) -> int:
    """Truncating (floor) division; division by zero is an error, not a zero."""
    a = as_uint(a, field="lhs")
    b = as_uint(b, field="rhs")
    if b == 0:
        raise ArithError("invalid_input", "division_by_zero", {"op": "div", "lhs": a})
    return a // b


def can_add(a: int, b: int) -> bool:
    """True when a + b stays within the u128 range."""
    return as_uint(b, field="rhs") <= MAX_UINT - as_uint(a, field="lhs")


__all__ = [
    "ArithError",
    "as_uint",
    "can_add",
    "checked_add",
    "checked_div",
    "checked_mul",
    "checked_sub",
]
