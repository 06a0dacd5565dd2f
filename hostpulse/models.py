from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

@dataclass(frozen=True)
class ProcessInfo:
    pid: int
    name: str
    cpu_time_s: float   # cumulative user+system seconds

@dataclass(frozen=True)
class ProcessSpike:
    name: str
    pid: int
    current: float      # normalized cpu % (100 = one full core)
    baseline: float     # baseline before this cycle's update
    multiplier: float

@dataclass(frozen=True)
class SystemReading:
    ts: int
    cpu_pct: Optional[float]
    ram_used_mb: Optional[float]
    ram_total_mb: float
    ram_pct: Optional[float]
    disk_mbps: Optional[float]
    net_kbps: Optional[float]
