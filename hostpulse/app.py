from __future__ import annotations
import signal
import sys
from typing import List, Optional

import structlog
from PySide6 import QtCore

from .collectors import PsutilProvider
from .config import AppConfig, DEFAULT_EXPORT_DIR, load_config
from .detectors import rank_spikes, severity_band
from .exporter import export_snapshot
from .logs import setup_logging
from .models import ProcessSpike, SystemReading
from .sampler import SamplingEngine

logger = structlog.get_logger(component="app")


def _fmt(value: Optional[float], spec: str) -> str:
    return "n/a" if value is None else format(value, spec)


def format_status(r: SystemReading) -> List[str]:
    return [
        f"CPU: {_fmt(r.cpu_pct, '.1f')}%",
        f"RAM: {_fmt(r.ram_used_mb, '.0f')}/{r.ram_total_mb:.0f} MB ({_fmt(r.ram_pct, '.1f')}%)",
        f"Disk I/O: {_fmt(r.disk_mbps, '.2f')} MB/s",
        f"Network: {_fmt(r.net_kbps, '.1f')} KB/s",
    ]


def format_spike(s: ProcessSpike) -> str:
    return f"{s.name} (PID {s.pid}) {s.current:.1f}% baseline {s.baseline:.1f}% ×{s.multiplier:.1f}"


class Controller(QtCore.QObject):
    """
    Headless consumer of the engine:
    - status line every N ticks
    - ranked spike list after each detection cycle that found any
    """
    def __init__(self, cfg: AppConfig, engine: SamplingEngine):
        super().__init__()
        self.cfg = cfg
        self.engine = engine
        self.engine.sampled.connect(self.on_sampled)
        self.engine.spikes_updated.connect(self.on_spikes)

    @QtCore.Slot(object)
    def on_sampled(self, reading: SystemReading):
        every = self.cfg.status_every_ticks
        if every <= 0 or self.engine.tick_count % every:
            return
        logger.info("status", text=" | ".join(format_status(reading)))

    @QtCore.Slot(list)
    def on_spikes(self, spikes: List[ProcessSpike]):
        for s in rank_spikes(spikes, self.cfg.top_spikes):
            logger.info("process_spike", severity=severity_band(s.multiplier), text=format_spike(s))

    def export(self):
        return export_snapshot(
            self.cfg.export_dir or DEFAULT_EXPORT_DIR,
            self.engine.latest_reading(),
            self.engine.latest_spikes(),
            self.cfg.top_spikes,
        )


def main():
    cfg = load_config()
    setup_logging(cfg)

    app = QtCore.QCoreApplication(sys.argv)
    engine = SamplingEngine(PsutilProvider(), cfg)
    controller = Controller(cfg, engine)

    # Python handlers only run when control returns to the interpreter;
    # the sampling timer guarantees that at least once per tick.
    signal.signal(signal.SIGINT, lambda *_: app.quit())

    engine.start()
    code = app.exec()

    # Cleanup
    engine.stop()
    if cfg.export_on_exit:
        try:
            controller.export()
        except OSError as e:
            logger.error("snapshot_export_failed", error=str(e))
    sys.exit(code)
