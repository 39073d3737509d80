"""
Metrics collection and Prometheus-compatible exposition.

Tracks context manager activity: refetches, switches, forced refreshes and
cache invalidation failures.
"""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Any

PREFIX = "hearth_context_"

DESCRIPTIONS: dict[str, str] = {
    "refetch_total": "Membership list loads started",
    "refetch_failed_total": "Membership list loads that failed",
    "switch_total": "Accepted active-group switches",
    "switch_rejected_total": "Switches rejected for an unknown group",
    "force_refresh_total": "Forced refreshes of the active group",
    "invalidation_errors_total": "Cache invalidation handlers that raised",
    "memberships_loaded": "Memberships in the current snapshot",
    "refresh_counter": "Current refresh counter value",
}


class MetricsCollector:
    """Counters and gauges for one context manager, exportable as Prometheus text."""

    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._gauges: dict[str, float] = {}
        self._start_time = time.time()

    def inc(self, name: str, value: int = 1) -> None:
        self._counters[name] += value

    def set_gauge(self, name: str, value: float) -> None:
        self._gauges[name] = value

    def get(self, name: str) -> int | float:
        if name in self._gauges:
            return self._gauges[name]
        return self._counters.get(name, 0)

    def uptime(self) -> float:
        return time.time() - self._start_time

    def to_prometheus(self) -> str:
        """Export all metrics in Prometheus text format."""
        lines: list[str] = []
        series = [(n, v, "counter") for n, v in self._counters.items()]
        series += [(n, v, "gauge") for n, v in self._gauges.items()]
        series.append(("uptime_seconds", round(self.uptime(), 1), "gauge"))
        for name, value, kind in sorted(series):
            full = f"{PREFIX}{name}"
            if name in DESCRIPTIONS:
                lines.append(f"# HELP {full} {DESCRIPTIONS[name]}")
            lines.append(f"# TYPE {full} {kind}")
            lines.append(f"{full} {value}")
        return "\n".join(lines) + "\n"

    def to_dict(self) -> dict[str, Any]:
        return {
            "counters": dict(self._counters),
            "gauges": dict(self._gauges),
            "uptime_seconds": self.uptime(),
        }
