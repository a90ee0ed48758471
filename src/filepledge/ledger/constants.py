# src/filepledge/ledger/constants.py
from __future__ import annotations

"""Storage-incentive engine constants.

Anchors:
- Block cadence is ~10 minutes, so 144 blocks ~ 1 day and 52,560 blocks ~ 1 year.
- Amounts are integer micro-units of the native currency.
- All ledger integers are bounded unsigned 128-bit values.
"""

# Bounded unsigned integer width
UINT_BITS: int = 128
MAX_UINT: int = (1 << UINT_BITS) - 1

# File registry bounds
MAX_FILE_ID_LEN: int = 64
MAX_FILE_SIZE_MB: int = 100_000

# Commitment duration bounds (blocks)
MIN_STORAGE_DURATION: int = 144
MAX_STORAGE_DURATION: int = 52_560

# Reward schedule
BASE_REWARD_RATE: int = 10
PRECISION_FACTOR: int = 10
MAX_REWARD_AMOUNT: int = 1_000_000_000

# Bonus tiers: (minimum multiple of MIN_STORAGE_DURATION, multiplier percent).
# Ordered from the highest tier down; first match wins.
BONUS_TIERS = (
    (12, 300),
    (6, 200),
    (3, 150),
)
BASE_MULTIPLIER: int = 100

# Canonical account id that custodies contract funds in ledger.accounts
CONTRACT_ACCOUNT_ID: str = "CONTRACT"

# Separator for serialized commitment keys ("<file_id>#<seq>")
COMMITMENT_KEY_SEP: str = "#"
