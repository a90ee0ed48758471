# src/filepledge/util/jsonl_log.py
from __future__ import annotations

"""Logging setup and one-JSON-object-per-line event records."""

import json
import logging
import time
from typing import Any, Optional

from filepledge.env import env_str

_CONFIGURED_ATTR = "_filepledge_configured"


def configure_structured_logging(level_name: Optional[str] = None) -> None:
    """Route stdlib logging to stderr, bare messages only.

    Level: the argument, else FILEPLEDGE_LOG_LEVEL, else INFO. A second call
    only changes the level.
    """
    level = logging.getLevelName((level_name or env_str("FILEPLEDGE_LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    if getattr(root, _CONFIGURED_ATTR, False):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.handlers = [handler]
    setattr(root, _CONFIGURED_ATTR, True)


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Log `event` plus fields as one JSON line; non-JSON fields degrade to key=repr text."""
    record = dict(fields, event=str(event), ts_ms=int(time.time() * 1000))
    try:
        msg = json.dumps(record, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        msg = " ".join([f"event={event}"] + [f"{k}={v!r}" for k, v in sorted(fields.items())])
    logger.log(level, msg)


__all__ = ["configure_structured_logging", "log_event"]
