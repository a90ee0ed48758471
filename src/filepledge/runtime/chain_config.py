# src/filepledge/runtime/chain_config.py
from __future__ import annotations

"""Operator config for one node.

A JSON file named by FILEPLEDGE_CHAIN_CONFIG_PATH (or passed explicitly) is
validated into a frozen ChainConfig. Without a file the node runs on the
defaults below, which are prod and signed.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Json = Dict[str, Any]

Mode = Literal["dev", "testnet", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ChainConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    chain_id: str = Field(default="filepledge-dev", min_length=1)
    node_id: str = Field(default="local-node", min_length=1)
    # Without an explicit config file the node must not start permissive.
    mode: Mode = "prod"

    db_path: str = Field(default="./data/filepledge.db", min_length=1)
    genesis_path: str = ""
    # Used only when the genesis file does not name an administrator.
    admin_account: str = ""

    block_interval_ms: int = Field(default=10_000, ge=250)
    produce_empty_blocks: bool = True

    api_host: str = "127.0.0.1"
    api_port: int = Field(default=8000, ge=1, le=65535)

    allow_unsigned_txs: bool = False
    log_level: LogLevel = "INFO"

    @field_validator("mode", mode="before")
    @classmethod
    def _lower_mode(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("admin_account", "chain_id", "node_id")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    @field_validator("genesis_path")
    @classmethod
    def _genesis_exists(cls, v: str) -> str:
        if v and not Path(v).is_file():
            raise ValueError(f"genesis_path does not exist or is not a file: {v!r}")
        return v

    @model_validator(mode="after")
    def _no_unsigned_in_prod(self) -> "ChainConfig":
        if self.allow_unsigned_txs and self.mode == "prod":
            raise ValueError("allow_unsigned_txs is not permitted in prod mode")
        return self


def default_chain_config() -> ChainConfig:
    return ChainConfig()


def chain_config_from_dict(raw: Json) -> ChainConfig:
    """Validate a config document; blank values fall back to the defaults.

    Raises ValueError (pydantic's ValidationError is one) on any bad field.
    """
    if not isinstance(raw, dict):
        raise ValueError("chain config must be a JSON object")
    given = {k: v for k, v in raw.items() if v is not None and not (isinstance(v, str) and not v.strip())}
    return ChainConfig.model_validate(given)


def read_chain_config_file(path: str) -> ChainConfig:
    return chain_config_from_dict(json.loads(Path(path).read_text(encoding="utf-8")))


def load_chain_config(*, config_path: Optional[str] = None) -> ChainConfig:
    """Config file (argument or FILEPLEDGE_CHAIN_CONFIG_PATH), else defaults."""
    p = config_path or os.environ.get("FILEPLEDGE_CHAIN_CONFIG_PATH")
    return read_chain_config_file(p) if p else default_chain_config()


def apply_chain_config_to_env(cfg: ChainConfig) -> None:
    """Export the knobs that env-driven components (block loop, logging) read."""
    os.environ.update(
        {
            "FILEPLEDGE_CHAIN_ID": cfg.chain_id,
            "FILEPLEDGE_NODE_ID": cfg.node_id,
            "FILEPLEDGE_MODE": cfg.mode,
            "FILEPLEDGE_DB_PATH": cfg.db_path,
            "FILEPLEDGE_BLOCK_INTERVAL_MS": str(cfg.block_interval_ms),
            "FILEPLEDGE_PRODUCE_EMPTY_BLOCKS": "1" if cfg.produce_empty_blocks else "0",
            "FILEPLEDGE_LOG_LEVEL": cfg.log_level,
        }
    )


__all__ = [
    "ChainConfig",
    "apply_chain_config_to_env",
    "chain_config_from_dict",
    "default_chain_config",
    "load_chain_config",
    "read_chain_config_file",
]
