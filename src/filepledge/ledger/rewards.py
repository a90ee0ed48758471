# src/filepledge/ledger/rewards.py
from __future__ import annotations

"""Reward calculator.

Pure functions of (size_mb, duration_blocks, multiplier). The calculation is
lossy: size and duration are each scaled down by PRECISION_FACTOR
before they are multiplied, so small pledges can round to zero. The order of
divisions is part of the contract and must not be rearranged.
"""

from filepledge.ledger.arith import checked_div, checked_mul
from filepledge.ledger.constants import (
    BASE_MULTIPLIER,
    BASE_REWARD_RATE,
    BONUS_TIERS,
    MAX_REWARD_AMOUNT,
    MIN_STORAGE_DURATION,
    PRECISION_FACTOR,
)


def bonus_multiplier(duration_blocks: int) -> int:
    """Return the bonus as an integer percentage (100 == 1.0x)."""
    for multiple, pct in BONUS_TIERS:
        if duration_blocks >= checked_mul(MIN_STORAGE_DURATION, multiple):
            return pct
    return BASE_MULTIPLIER


def calculate_reward(size_mb: int, duration_blocks: int, multiplier: int) -> int:
    scaled_size = checked_div(size_mb, PRECISION_FACTOR)
    scaled_duration = checked_div(duration_blocks, PRECISION_FACTOR)
    base = checked_mul(checked_mul(scaled_size, scaled_duration), BASE_REWARD_RATE)
    bonus = checked_div(checked_mul(base, multiplier), 100)
    return min(bonus, MAX_REWARD_AMOUNT)


def quote(size_mb: int, duration_blocks: int) -> tuple[int, int]:
    """(multiplier, reward) for a prospective commitment."""
    mult = bonus_multiplier(duration_blocks)
    return mult, calculate_reward(size_mb, duration_blocks, mult)


__all__ = ["bonus_multiplier", "calculate_reward", "quote"]
