from __future__ import annotations
import time
from typing import Dict, List, Set, Tuple

import psutil

from .errors import EnumerationFailure, ProcessTransient, ProviderUnavailable
from .models import ProcessInfo

_MB = 1024 * 1024


# ──────────────────────────────────────────────
# Provider interface
# ──────────────────────────────────────────────
class MetricProvider:
    """
    Raw metric source the engine and detector depend on.

    System readers raise ProviderUnavailable, per-process readers raise
    ProcessTransient, list_processes() raises EnumerationFailure.
    """

    def cpu_percent(self) -> float:
        raise NotImplementedError

    def available_memory_mb(self) -> float:
        raise NotImplementedError

    def total_memory_mb(self) -> float:
        raise NotImplementedError

    def disk_throughput(self) -> Tuple[float, float]:
        """(read bytes/s, write bytes/s)"""
        raise NotImplementedError

    def network_throughput(self) -> Tuple[float, float]:
        """(received bytes/s, sent bytes/s)"""
        raise NotImplementedError

    def list_processes(self) -> List[ProcessInfo]:
        raise NotImplementedError

    def process_cpu_percent(self, pid: int, name: str) -> float:
        """Raw per-process cpu %, up to 100 * logical cores."""
        raise NotImplementedError

    def logical_cpu_count(self) -> int:
        raise NotImplementedError


# ──────────────────────────────────────────────
# psutil implementation
# ──────────────────────────────────────────────
class _Rate:
    """Turns a pair of monotonically increasing byte counters into bytes/s."""

    def __init__(self, first: Tuple[int, int]):
        self._last = first
        self._last_ts = time.monotonic()

    def update(self, cur: Tuple[int, int]) -> Tuple[float, float]:
        t = time.monotonic()
        dt = max(0.001, t - self._last_ts)
        # counters can reset (device removed, wraparound); never go negative
        a = max(0, cur[0] - self._last[0]) / dt
        b = max(0, cur[1] - self._last[1]) / dt
        self._last = cur
        self._last_ts = t
        return float(a), float(b)


class PsutilProvider(MetricProvider):
    def __init__(self):
        self._cpu_count = psutil.cpu_count(logical=True) or 1
        self._procs: Dict[int, psutil.Process] = {}
        self._primed: Set[int] = set()

        # warmup: first cpu_percent(None) calls always return 0.0
        psutil.cpu_percent(interval=None)
        try:
            self.list_processes()
        except EnumerationFailure:
            pass

        self._disk = _Rate(self._disk_counters()) if self._has_disk() else None
        self._net  = _Rate(self._net_counters())

    # ── system ────────────────────────────────
    def cpu_percent(self) -> float:
        try:
            return float(psutil.cpu_percent(interval=None))
        except (psutil.Error, OSError) as e:
            raise ProviderUnavailable(f"cpu: {e}") from e

    def available_memory_mb(self) -> float:
        try:
            return psutil.virtual_memory().available / _MB
        except (psutil.Error, OSError) as e:
            raise ProviderUnavailable(f"memory: {e}") from e

    def total_memory_mb(self) -> float:
        try:
            return psutil.virtual_memory().total / _MB
        except (psutil.Error, OSError) as e:
            raise ProviderUnavailable(f"memory: {e}") from e

    def disk_throughput(self) -> Tuple[float, float]:
        if self._disk is None:
            raise ProviderUnavailable("disk: no counters on this platform")
        return self._disk.update(self._disk_counters())

    def network_throughput(self) -> Tuple[float, float]:
        return self._net.update(self._net_counters())

    def _has_disk(self) -> bool:
        try:
            return psutil.disk_io_counters() is not None
        except (psutil.Error, OSError):
            return False

    def _disk_counters(self) -> Tuple[int, int]:
        try:
            io = psutil.disk_io_counters()
        except (psutil.Error, OSError) as e:
            raise ProviderUnavailable(f"disk: {e}") from e
        if io is None:
            raise ProviderUnavailable("disk: no counters")
        return int(io.read_bytes), int(io.write_bytes)

    def _net_counters(self) -> Tuple[int, int]:
        try:
            io = psutil.net_io_counters()
        except (psutil.Error, OSError) as e:
            raise ProviderUnavailable(f"network: {e}") from e
        return int(io.bytes_recv), int(io.bytes_sent)

    # ── processes ─────────────────────────────
    def list_processes(self) -> List[ProcessInfo]:
        rows: List[ProcessInfo] = []
        procs: Dict[int, psutil.Process] = {}
        primed: Set[int] = set()
        try:
            # process_iter caches Process objects, so cpu_percent(None) keeps
            # measuring from the previous call between cycles. A Process we
            # have not held before (new pid, or a reused one) gets its
            # counter started here and is unreadable until the next pass.
            for p in psutil.process_iter(["pid", "name", "cpu_times"]):
                ct = p.info.get("cpu_times")
                cpu_time = float(ct.user + ct.system) if ct is not None else 0.0
                pid = int(p.info["pid"])
                if self._procs.get(pid) is not p:
                    try:
                        p.cpu_percent(None)
                    except psutil.Error:
                        pass   # the read below reports it
                    primed.add(pid)
                procs[pid] = p
                rows.append(ProcessInfo(pid=pid, name=p.info.get("name") or "", cpu_time_s=cpu_time))
        except (psutil.Error, OSError) as e:
            raise EnumerationFailure(str(e)) from e
        self._procs = procs
        self._primed = primed
        return rows

    def process_cpu_percent(self, pid: int, name: str) -> float:
        p = self._procs.get(pid)
        if p is None:
            raise ProcessTransient(pid, "not in last enumeration")
        if pid in self._primed:
            raise ProcessTransient(pid, "cpu counter just started")
        try:
            return float(p.cpu_percent(None))
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess) as e:
            raise ProcessTransient(pid, type(e).__name__) from e

    def logical_cpu_count(self) -> int:
        return self._cpu_count
