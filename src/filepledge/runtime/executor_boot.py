# src/filepledge/runtime/executor_boot.py
from __future__ import annotations

from typing import Optional

from filepledge.runtime.chain_config import ChainConfig, load_chain_config
from filepledge.runtime.executor import IncentiveExecutor
from filepledge.runtime.genesis_config import load_genesis


def build_executor(cfg: Optional[ChainConfig] = None) -> IncentiveExecutor:
    """Build the executor from an explicit ChainConfig or, if omitted, from
    FILEPLEDGE_CHAIN_CONFIG_PATH / defaults.
    """
    c = cfg or load_chain_config()
    genesis = load_genesis(c.genesis_path) if c.genesis_path else None
    return IncentiveExecutor(
        db_path=c.db_path,
        node_id=c.node_id,
        chain_id=c.chain_id,
        admin_account=c.admin_account,
        genesis=genesis,
        allow_unsigned=c.allow_unsigned_txs,
    )


__all__ = ["build_executor"]
