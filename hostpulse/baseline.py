from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

# EWMA smoothing factor for per-process cpu baselines
ALPHA = 0.1


@dataclass
class ProcessBaseline:
    name: str
    avg_cpu: float
    last_observed: float


class BaselineTracker:
    """
    One exponentially-weighted cpu baseline per PID.

    observe() returns the baseline a reading should be judged against, which is
    the value *before* folding that reading in. None means "cold": the PID was
    unknown (or its baseline went stale) and has just been seeded with the raw
    reading, so there is nothing to compare against yet.

    Owned by the detection worker; not thread-safe.
    """

    def __init__(self, stale_after_s: float = 100.0):
        self.stale_after_s = stale_after_s
        self._baselines: Dict[int, ProcessBaseline] = {}

    def __len__(self) -> int:
        return len(self._baselines)

    def __contains__(self, pid: int) -> bool:
        return pid in self._baselines

    def get(self, pid: int) -> Optional[ProcessBaseline]:
        return self._baselines.get(pid)

    def observe(self, pid: int, name: str, current_cpu: float, now: float) -> Optional[float]:
        entry = self._baselines.get(pid)
        if entry is None or now - entry.last_observed > self.stale_after_s:
            self._baselines[pid] = ProcessBaseline(name=name, avg_cpu=current_cpu, last_observed=now)
            return None

        previous = entry.avg_cpu
        entry.avg_cpu = ALPHA * current_cpu + (1 - ALPHA) * previous
        entry.last_observed = now
        entry.name = name
        return previous

    def reconcile(self, live_pids: Iterable[int]) -> int:
        """Drop baselines for PIDs that are gone. Returns how many were evicted."""
        live = set(live_pids)
        dead = [pid for pid in self._baselines if pid not in live]
        for pid in dead:
            del self._baselines[pid]
        return len(dead)
