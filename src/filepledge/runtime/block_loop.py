# src/filepledge/runtime/block_loop.py
from __future__ import annotations

"""Background block clock.

The height is the engine's only clock: commitments become verifiable and
expire as it advances, so a node normally produces empty blocks too.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

from filepledge.env import env_flag, env_int
from filepledge.runtime.metrics import inc_counter, set_gauge

log = logging.getLogger("filepledge.block_loop")


@dataclass(frozen=True, slots=True)
class BlockLoopConfig:
    interval_ms: int = 10_000
    produce_empty_blocks: bool = True
    enabled: bool = True

    # Consecutive failures before the loop gives up and reports unhealthy.
    fail_fast_after: int = 10
    error_backoff_min_ms: int = 250
    error_backoff_max_ms: int = 10_000

    def backoff_s(self, failures: int) -> float:
        ms = self.error_backoff_min_ms * (2 ** min(10, max(0, failures - 1)))
        return min(self.error_backoff_max_ms, ms) / 1000.0


def block_loop_config_from_env() -> BlockLoopConfig:
    backoff_min = env_int("FILEPLEDGE_BLOCK_LOOP_ERROR_BACKOFF_MIN_MS", 250, minimum=50)
    return BlockLoopConfig(
        interval_ms=env_int("FILEPLEDGE_BLOCK_INTERVAL_MS", 10_000, minimum=250),
        produce_empty_blocks=env_flag("FILEPLEDGE_PRODUCE_EMPTY_BLOCKS", True),
        enabled=env_flag("FILEPLEDGE_BLOCK_LOOP_ENABLED", True),
        fail_fast_after=env_int("FILEPLEDGE_BLOCK_LOOP_FAIL_FAST_AFTER", 10, minimum=3),
        error_backoff_min_ms=backoff_min,
        error_backoff_max_ms=env_int("FILEPLEDGE_BLOCK_LOOP_ERROR_BACKOFF_MAX_MS", 10_000, minimum=backoff_min),
    )


class BlockProducerLoop:
    """Calls executor.produce_block every interval on a daemon thread.

    Failures back off exponentially; after fail_fast_after in a row the thread
    exits with `unhealthy` set, which /v1/status surfaces.
    """

    def __init__(self, *, executor: Any, cfg: Optional[BlockLoopConfig] = None) -> None:
        self._executor = executor
        self._cfg = cfg or block_loop_config_from_env()
        self._halt = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.consecutive_failures = 0
        self.last_error = ""
        self.unhealthy = False

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """False when disabled by config; starting twice is a no-op."""
        if not self._cfg.enabled:
            return False
        if self._thread is None:
            self._thread = threading.Thread(target=self._run, name="filepledge-block-loop", daemon=True)
            self._thread.start()
            inc_counter("block_loop_start_total", 1)
        return True

    def stop(self, timeout_s: float = 2.0) -> None:
        self._halt.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout_s)

    def tick(self) -> None:
        """One production step; exceptions propagate to the caller."""
        self._executor.produce_block(allow_empty=self._cfg.produce_empty_blocks)

    def _failed(self, err: Exception) -> bool:
        """Record a failure; True once the loop should give up."""
        self.consecutive_failures += 1
        self.last_error = f"{type(err).__name__}: {err}"
        inc_counter("block_loop_errors_total", 1)
        set_gauge("block_loop_consecutive_failures", self.consecutive_failures)
        log.warning("block production failed (%s in a row): %s", self.consecutive_failures, self.last_error)
        return self.consecutive_failures >= self._cfg.fail_fast_after

    def _run(self) -> None:
        wait_s = self._cfg.interval_ms / 1000.0
        while not self._halt.wait(wait_s):
            try:
                self.tick()
            except Exception as err:
                if self._failed(err):
                    self.unhealthy = True
                    set_gauge("block_loop_unhealthy", 1)
                    log.error("block loop stopped after %s consecutive failures", self.consecutive_failures)
                    return
                wait_s = self._cfg.backoff_s(self.consecutive_failures)
                continue
            if self.consecutive_failures:
                self.consecutive_failures = 0
                self.last_error = ""
                set_gauge("block_loop_consecutive_failures", 0)
            wait_s = self._cfg.interval_ms / 1000.0


__all__ = ["BlockLoopConfig", "BlockProducerLoop", "block_loop_config_from_env"]
