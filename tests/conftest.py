"""Shared fixtures: a QCoreApplication, a scriptable provider, and pool helpers.

Engine tests drive ``tick()`` by hand instead of running the Qt timer, then
call ``drain(pool)`` to wait for the detection worker and deliver the queued
completion signal back onto the test thread.
"""

from __future__ import annotations

import sys
from typing import Dict, List, Optional, Set, Tuple

import pytest
from PySide6 import QtCore

from hostpulse.collectors import MetricProvider
from hostpulse.errors import EnumerationFailure, ProcessTransient, ProviderUnavailable
from hostpulse.models import ProcessInfo
from hostpulse.store import SpikeRegistry


# ─────────────────────────────────────────────────────────────────────────────
# FakeProvider: scriptable MetricProvider
# ─────────────────────────────────────────────────────────────────────────────

class FakeProvider(MetricProvider):
    """MetricProvider whose every reading is a plain attribute.

    Args:
        cpu_count: Logical core count reported to the detector.

    Knobs:
        failing:          names of system metrics that raise ProviderUnavailable
                          ("cpu", "memory", "total", "disk", "network").
        enumeration_error: if set, list_processes() raises EnumerationFailure.
        transient:        PIDs whose cpu query raises ProcessTransient.
        broken:           PIDs whose cpu query raises RuntimeError.
    """

    def __init__(self, cpu_count: int = 1):
        self.cpu = 12.5
        self.available_mb = 6144.0
        self.total_mb = 8192.0
        self.disk: Tuple[float, float] = (1024.0 * 1024.0, 1024.0 * 1024.0)
        self.net: Tuple[float, float] = (1024.0, 512.0)
        self.cpu_count = cpu_count

        self.procs: List[ProcessInfo] = []
        self.proc_cpu: Dict[int, float] = {}
        self.failing: Set[str] = set()
        self.enumeration_error: Optional[str] = None
        self.transient: Set[int] = set()
        self.broken: Set[int] = set()
        self.cpu_queries: List[int] = []

    def add_process(self, pid: int, name: str, cpu: float, cpu_time_s: float = 10.0) -> None:
        self.procs = [p for p in self.procs if p.pid != pid]
        self.procs.append(ProcessInfo(pid=pid, name=name, cpu_time_s=cpu_time_s))
        self.proc_cpu[pid] = cpu

    def remove_process(self, pid: int) -> None:
        self.procs = [p for p in self.procs if p.pid != pid]
        self.proc_cpu.pop(pid, None)

    def _check(self, metric: str) -> None:
        if metric in self.failing:
            raise ProviderUnavailable(f"{metric}: scripted failure")

    def cpu_percent(self) -> float:
        self._check("cpu")
        return self.cpu

    def available_memory_mb(self) -> float:
        self._check("memory")
        return self.available_mb

    def total_memory_mb(self) -> float:
        self._check("total")
        return self.total_mb

    def disk_throughput(self) -> Tuple[float, float]:
        self._check("disk")
        return self.disk

    def network_throughput(self) -> Tuple[float, float]:
        self._check("network")
        return self.net

    def list_processes(self) -> List[ProcessInfo]:
        if self.enumeration_error:
            raise EnumerationFailure(self.enumeration_error)
        return list(self.procs)

    def process_cpu_percent(self, pid: int, name: str) -> float:
        self.cpu_queries.append(pid)
        if pid in self.transient:
            raise ProcessTransient(pid, "scripted exit")
        if pid in self.broken:
            raise RuntimeError("counter vanished")
        if pid not in self.proc_cpu:
            raise ProcessTransient(pid, "unknown")
        return self.proc_cpu[pid]

    def logical_cpu_count(self) -> int:
        return self.cpu_count


class CountingRegistry(SpikeRegistry):
    """SpikeRegistry that records how many times it was published to."""

    def __init__(self):
        super().__init__()
        self.publishes = 0

    def publish(self, spikes) -> None:
        super().publish(spikes)
        self.publishes += 1


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def qapp():
    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication(sys.argv[:1])
    yield app


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def pool(qapp):
    p = QtCore.QThreadPool()
    p.setMaxThreadCount(2)
    yield p
    p.waitForDone(5000)


def drain(pool: QtCore.QThreadPool) -> None:
    """Wait for pool workers, then deliver their queued signals."""
    assert pool.waitForDone(5000), "detection worker did not finish"
    QtCore.QCoreApplication.sendPostedEvents()
    QtCore.QCoreApplication.processEvents()
