"""Injectable metrics sinks.

Components receive a sink instead of reaching for a module-level tracker,
so each app, worker or client owns its own numbers.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Protocol

MAX_SAMPLES = 1000


class MetricsSink(Protocol):
    """Minimal interface for counters and latency observations."""

    def increment(self, name: str, value: int = 1, **tags: str) -> None: ...

    def observe(self, name: str, value: float, **tags: str) -> None: ...


class NullMetricsSink:
    """Sink that drops everything."""

    def increment(self, name: str, value: int = 1, **tags: str) -> None:
        return None

    def observe(self, name: str, value: float, **tags: str) -> None:
        return None


@dataclass
class LatencyStats:
    """Track latency statistics for a metric."""

    latencies: list[float] = field(default_factory=list)

    def add(self, value: float) -> None:
        self.latencies.append(value)
        if len(self.latencies) > MAX_SAMPLES:
            self.latencies = self.latencies[-MAX_SAMPLES:]

    @property
    def count(self) -> int:
        return len(self.latencies)

    @property
    def p50(self) -> float:
        if not self.latencies:
            return 0.0
        s = sorted(self.latencies)
        return s[len(s) // 2]

    @property
    def p95(self) -> float:
        if not self.latencies:
            return 0.0
        s = sorted(self.latencies)
        return s[min(int(len(s) * 0.95), len(s) - 1)]

    @property
    def avg(self) -> float:
        return sum(self.latencies) / len(self.latencies) if self.latencies else 0.0

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "avg_ms": round(self.avg * 1000, 2),
            "p50_ms": round(self.p50 * 1000, 2),
            "p95_ms": round(self.p95 * 1000, 2),
        }


def _metric_key(name: str, tags: dict[str, str]) -> str:
    if not tags:
        return name
    suffix = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
    return f"{name}[{suffix}]"


class InMemoryMetricsSink:
    """Sink that keeps counters and bounded latency samples in memory."""

    def __init__(self) -> None:
        self.counters: dict[str, int] = defaultdict(int)
        self.latencies: dict[str, LatencyStats] = defaultdict(LatencyStats)

    def increment(self, name: str, value: int = 1, **tags: str) -> None:
        self.counters[_metric_key(name, tags)] += value

    def observe(self, name: str, value: float, **tags: str) -> None:
        self.latencies[_metric_key(name, tags)].add(value)

    def count(self, name: str, **tags: str) -> int:
        return self.counters.get(_metric_key(name, tags), 0)

    def snapshot(self) -> dict[str, dict]:
        return {
            "counters": dict(self.counters),
            "latencies": {key: stats.to_dict() for key, stats in self.latencies.items()},
        }

    def reset(self) -> None:
        self.counters.clear()
        self.latencies.clear()
