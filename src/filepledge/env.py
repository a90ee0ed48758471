# src/filepledge/env.py
from __future__ import annotations

"""Process environment: optional .env loading and typed FILEPLEDGE_* knobs."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_TRUE = frozenset({"1", "true", "yes", "y", "on"})
_FALSE = frozenset({"0", "false", "no", "n", "off"})

_dotenv_done = False


def env_flag(name: str, default: bool = False) -> bool:
    """Boolean knob; unset or unrecognised values give `default`."""
    raw = (os.environ.get(name) or "").strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    return default


def env_int(name: str, default: int, *, minimum: Optional[int] = None) -> int:
    """Integer knob; unparsable values give `default`, then `minimum` clamps."""
    raw = (os.environ.get(name) or "").strip()
    try:
        value = int(raw) if raw else int(default)
    except ValueError:
        value = int(default)
    if minimum is not None:
        value = max(int(minimum), value)
    return value


def env_str(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def load_dotenv_if_present(dotenv_path: Optional[str] = None) -> bool:
    """Load a .env file at most once per process.

    Path: the argument, else FILEPLEDGE_DOTENV_PATH, else ./.env. Values already
    in the environment are kept. True only when a file was read.
    """
    global _dotenv_done
    if _dotenv_done:
        return False
    _dotenv_done = True

    candidate = Path(dotenv_path or env_str("FILEPLEDGE_DOTENV_PATH", ".env")).expanduser()
    if not candidate.is_file():
        return False
    load_dotenv(dotenv_path=candidate, override=False)
    return True


__all__ = ["env_flag", "env_int", "env_str", "load_dotenv_if_present"]
