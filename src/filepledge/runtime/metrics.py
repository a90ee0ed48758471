# src/filepledge/runtime/metrics.py
from __future__ import annotations

"""In-process counters and gauges, exported as Prometheus text by /v1/metrics."""

import threading
import time
from collections import Counter
from typing import Dict

from filepledge.env import env_flag


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Counter[str] = Counter()
        self._gauges: Dict[str, int] = {}
        self.started_ms = int(time.time() * 1000)

    def inc(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] += int(value)

    def gauge(self, name: str, value: int) -> None:
        with self._lock:
            self._gauges[name] = int(value)

    def clear(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()

    def snapshot(self) -> dict:
        now = int(time.time() * 1000)
        with self._lock:
            return {
                "ts_ms": now,
                "uptime_ms": now - self.started_ms,
                "counters": dict(self._counters),
                "gauges": dict(self._gauges),
            }

    def render(self, prefix: str = "filepledge_") -> str:
        snap = self.snapshot()
        rows = [("uptime_ms", snap["uptime_ms"])]
        rows += sorted(snap["counters"].items()) + sorted(snap["gauges"].items())
        return "".join(f"{prefix}{name} {value}\n" for name, value in rows)


REGISTRY = MetricsRegistry()


def metrics_enabled() -> bool:
    return env_flag("FILEPLEDGE_METRICS_ENABLED")


def inc_counter(name: str, value: int = 1) -> None:
    REGISTRY.inc(name, value)


def set_gauge(name: str, value: int) -> None:
    REGISTRY.gauge(name, value)


def snapshot() -> dict:
    return REGISTRY.snapshot()


def reset() -> None:
    REGISTRY.clear()


def format_prometheus(prefix: str = "filepledge_") -> str:
    return REGISTRY.render(prefix)


__all__ = ["REGISTRY", "MetricsRegistry", "format_prometheus", "inc_counter", "metrics_enabled", "reset", "set_gauge", "snapshot"]
