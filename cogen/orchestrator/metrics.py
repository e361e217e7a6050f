"""Orchestrator metrics for cogen.

Records per-cycle execution data during loop runs:
  {cycle, generation_seconds, validation_seconds, outcome, reason}

plus process-wide counters (requests, cache hits, collapsed waiters,
admission rejections, loop outcomes, rejection reasons). Loop runs execute
concurrently, so every run owns its own LoopRun and counters are updated
under a lock.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Optional

logger = logging.getLogger("cogen.orchestrator.metrics")


@dataclass
class CycleMetric:
    """One generate/validate cycle within a loop run."""
    cycle: int
    generation_seconds: float = 0.0
    validation_seconds: float = 0.0
    outcome: str = "pending"  # "accepted", "rejected", "generator-error", "sandbox-fault"
    reason: Optional[str] = None

    @property
    def duration_seconds(self) -> float:
        return self.generation_seconds + self.validation_seconds


@dataclass
class LoopRun:
    """Aggregated metrics for one loop execution on one fingerprint."""
    fingerprint: str
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: Optional[datetime] = None
    cycles: list[CycleMetric] = field(default_factory=list)
    outcome: str = "in_progress"  # "finalized", "exhausted", "aborted"

    @property
    def total_duration(self) -> float:
        return sum(c.duration_seconds for c in self.cycles)

    @property
    def cycle_count(self) -> int:
        return len(self.cycles)


class OrchestratorMetrics:
    """Collects and aggregates orchestrator counters and recent loop runs."""

    def __init__(self, history: int = 100):
        self._lock = threading.Lock()
        self._counters: Counter[str] = Counter()
        self._rejections: Counter[str] = Counter()
        self._runs: deque[LoopRun] = deque(maxlen=history)

    def incr(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] += amount

    def start_run(self, fingerprint: str) -> LoopRun:
        run = LoopRun(fingerprint=fingerprint)
        with self._lock:
            self._counters["loop_runs"] += 1
            self._runs.append(run)
        logger.debug("Loop run started for %s", fingerprint[:12])
        return run

    def record_cycle(self, run: LoopRun, metric: CycleMetric) -> None:
        run.cycles.append(metric)
        with self._lock:
            self._counters["cycles"] += 1
            if metric.outcome == "rejected" and metric.reason:
                self._rejections[metric.reason] += 1
            elif metric.outcome in ("generator-error", "sandbox-fault"):
                self._counters[metric.outcome.replace("-", "_")] += 1

    def complete_run(self, run: LoopRun, outcome: str) -> LoopRun:
        run.outcome = outcome
        run.completed_at = datetime.now(UTC)
        with self._lock:
            self._counters[f"loop_{outcome}"] += 1
        logger.info(
            "Loop run %s: outcome=%s cycles=%d duration=%.3fs",
            run.fingerprint[:12], outcome, run.cycle_count, run.total_duration,
        )
        return run

    def counter(self, name: str) -> int:
        with self._lock:
            return self._counters[name]

    def rejections(self) -> dict[str, int]:
        with self._lock:
            return dict(self._rejections)

    def recent_runs(self) -> list[LoopRun]:
        with self._lock:
            return list(self._runs)

    def snapshot(self) -> dict[str, Any]:
        """Point-in-time copy suitable for JSON output."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "rejections": dict(self._rejections),
                "recent_runs": len(self._runs),
            }
