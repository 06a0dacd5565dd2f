from __future__ import annotations
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import structlog

from .detectors import rank_spikes, severity_band
from .models import ProcessSpike, SystemReading

logger = structlog.get_logger(component="exporter")


def build_snapshot(reading: Optional[SystemReading], spikes: List[ProcessSpike],
                   top: int = 5, now: Optional[datetime] = None) -> dict:
    """Point-in-time view of the latest reading plus the top spikes, camelCase keys."""
    now = now or datetime.now(timezone.utc)
    return {
        "timestamp": now.isoformat(),
        "cpu": reading.cpu_pct if reading else None,
        "ramMb": reading.ram_used_mb if reading else None,
        "ramTotalMb": reading.ram_total_mb if reading else None,
        "diskMbps": reading.disk_mbps if reading else None,
        "networkKbps": reading.net_kbps if reading else None,
        "spikes": [
            {
                "name": s.name,
                "pid": s.pid,
                "current": s.current,
                "baseline": s.baseline,
                "multiplier": s.multiplier,
                "severity": severity_band(s.multiplier),
            }
            for s in rank_spikes(spikes, top)
        ],
    }


def export_snapshot(out_dir: str, reading: Optional[SystemReading],
                    spikes: List[ProcessSpike], top: int = 5) -> Path:
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    path = out / f"hostpulse_snapshot_{datetime.now():%Y%m%d_%H%M%S}.json"
    path.write_text(json.dumps(build_snapshot(reading, spikes, top), indent=2), encoding="utf-8")
    logger.info("snapshot_exported", path=str(path), spikes=min(len(spikes), top))
    return path
