from __future__ import annotations
import time
from typing import Callable, List, Optional

import structlog

from .baseline import BaselineTracker
from .collectors import MetricProvider
from .errors import ProcessTransient
from .models import ProcessSpike
from .store import SpikeRegistry

logger = structlog.get_logger(component="detectors")


# ──────────────────────────────────────────────
# Fixed spike policy
# ──────────────────────────────────────────────
MIN_CPU_TIME_S     = 1.0    # processes with less total cpu time are ignored
MIN_BASELINE_PCT   = 1.0    # baselines at or below this are noise
SPIKE_FACTOR       = 2.5    # current must exceed baseline * factor
MIN_SPIKE_PCT      = 5.0    # absolute floor for a reportable spike

HIGH_MULTIPLIER    = 3.0
MEDIUM_MULTIPLIER  = 2.5


def is_spike(current: float, baseline: float) -> bool:
    return (
        baseline > MIN_BASELINE_PCT
        and current > baseline * SPIKE_FACTOR
        and current > MIN_SPIKE_PCT
    )


class SpikeDetector:
    """
    One detection cycle per run():
      enumerate → per-process cpu → baseline observe → classify
      → reconcile baselines → publish to the registry in one swap.

    Runs on a pool thread. The tracker is touched only from here, and the
    engine guarantees at most one run() at a time.
    """

    def __init__(self, provider: MetricProvider, registry: SpikeRegistry,
                 tracker: Optional[BaselineTracker] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.provider = provider
        self.registry = registry
        self.tracker  = tracker if tracker is not None else BaselineTracker()
        self._clock   = clock
        self._cpu_count = max(1, int(provider.logical_cpu_count() or 1))

    def run(self) -> List[ProcessSpike]:
        """
        Raises EnumerationFailure if the process list is unavailable; the
        registry and baselines are left untouched in that case.
        """
        now = self._clock()
        procs = self.provider.list_processes()

        spikes: List[ProcessSpike] = []
        for p in procs:
            if p.cpu_time_s <= MIN_CPU_TIME_S:
                continue
            try:
                current = self.provider.process_cpu_percent(p.pid, p.name) / self._cpu_count
            except ProcessTransient as e:
                logger.debug("process_skipped", pid=p.pid, name=p.name, reason=str(e))
                continue
            except Exception as e:
                logger.debug("process_query_failed", pid=p.pid, name=p.name, error=repr(e))
                continue

            baseline = self.tracker.observe(p.pid, p.name, current, now)
            if baseline is None:
                continue

            if is_spike(current, baseline):
                spikes.append(ProcessSpike(
                    name=p.name,
                    pid=p.pid,
                    current=current,
                    baseline=baseline,
                    multiplier=current / baseline,
                ))

        evicted = self.tracker.reconcile(p.pid for p in procs)
        self.registry.publish(spikes)

        logger.debug(
            "detection_cycle_done",
            processes=len(procs), tracked=len(self.tracker),
            evicted=evicted, spikes=len(spikes),
        )
        return spikes


# ──────────────────────────────────────────────
# Presentation helpers (consumer side)
# ──────────────────────────────────────────────
def rank_spikes(spikes: List[ProcessSpike], limit: int = 5) -> List[ProcessSpike]:
    return sorted(spikes, key=lambda s: s.multiplier, reverse=True)[:limit]


def severity_band(multiplier: float) -> str:
    if multiplier > HIGH_MULTIPLIER:
        return "high"
    if multiplier > MEDIUM_MULTIPLIER:
        return "medium"
    return "info"
