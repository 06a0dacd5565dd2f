from __future__ import annotations
import time
from typing import Callable, Dict, List, Optional

import structlog
from PySide6 import QtCore

from .baseline import BaselineTracker
from .collectors import MetricProvider
from .config import AppConfig
from .detectors import SpikeDetector
from .errors import EnumerationFailure, ProviderUnavailable
from .models import ProcessSpike, SystemReading
from .store import SpikeRegistry
from .window import RollingWindow

logger = structlog.get_logger(component="sampler")

_KB = 1024.0
_MB = 1024.0 * 1024.0

STREAMS = ("cpu", "ram", "disk", "net")


class _DetectionRunnable(QtCore.QRunnable):
    """Runs one detection cycle on a pool thread."""
    def __init__(self, engine: "SamplingEngine"):
        super().__init__()
        self._engine = engine
        self.setAutoDelete(True)

    def run(self):
        ok = False
        try:
            self._engine.detector.run()
            ok = True
        except EnumerationFailure as e:
            logger.warning("detection_aborted", reason=str(e))
        except Exception:
            logger.exception("detection_failed")
        finally:
            # queued back onto the engine's thread
            self._engine.detection_finished.emit(ok)


class SamplingEngine(QtCore.QObject):
    """
    Two cadences on one timer:
    - every tick: read the four system metrics into their RollingWindows
    - every Nth tick: launch one SpikeDetector cycle on the pool, unless one
      is still running, in which case the trigger is dropped

    Windows, the tick counter and the in-flight flag are only touched on the
    engine's own thread. The registry is the only state shared with the
    detection worker.
    """

    sampled             = QtCore.Signal(object)   # SystemReading
    spikes_updated      = QtCore.Signal(list)     # List[ProcessSpike], arrival order
    detection_finished  = QtCore.Signal(bool)     # internal: worker → engine thread

    def __init__(self, provider: MetricProvider, cfg: Optional[AppConfig] = None,
                 detector: Optional[SpikeDetector] = None,
                 registry: Optional[SpikeRegistry] = None,
                 pool: Optional[QtCore.QThreadPool] = None,
                 clock: Callable[[], float] = time.time,
                 parent: Optional[QtCore.QObject] = None):
        super().__init__(parent)
        self.cfg      = cfg or AppConfig()
        self.provider = provider
        self.registry = registry if registry is not None else SpikeRegistry()
        self.detector = detector if detector is not None else SpikeDetector(
            provider, self.registry, BaselineTracker(self.cfg.stale_after_s),
        )
        self._pool  = pool if pool is not None else QtCore.QThreadPool.globalInstance()
        self._clock = clock

        self.windows: Dict[str, RollingWindow] = {
            name: RollingWindow(self.cfg.history_size) for name in STREAMS
        }
        self._ram_total_mb = self._read("ram_total", provider.total_memory_mb) or 0.0
        self._latest: Optional[SystemReading] = None

        self._tick_count = 0
        self._detecting = False
        self.detections_started = 0
        self.detections_dropped = 0

        self.detection_finished.connect(self._on_detection_finished, QtCore.Qt.ConnectionType.QueuedConnection)

        self.timer = QtCore.QTimer(self)
        self.timer.setInterval(self.cfg.sample_interval_ms)
        self.timer.timeout.connect(self.tick)

    # ── lifecycle ─────────────────────────────
    def start(self):
        self.timer.start()
        logger.info(
            "engine_started",
            interval_ms=self.cfg.sample_interval_ms,
            detect_every=self.cfg.detect_every_ticks,
            history=self.cfg.history_size,
        )

    def stop(self):
        """Stop sampling. An in-flight detection cycle is abandoned, not awaited."""
        self.timer.stop()
        logger.info("engine_stopped", ticks=self._tick_count, in_flight=self._detecting)

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def detection_in_flight(self) -> bool:
        return self._detecting

    # ── sampling cadence ──────────────────────
    @QtCore.Slot()
    def tick(self):
        reading = self._sample()
        self._latest = reading

        self._tick_count += 1
        every = self.cfg.detect_every_ticks
        if every > 0 and self._tick_count % every == 0:
            self.trigger_detection()

        self.sampled.emit(reading)

    def _sample(self) -> SystemReading:
        cpu = self._read("cpu", self.provider.cpu_percent)

        ram_used = ram_pct = None
        available = self._read("memory", self.provider.available_memory_mb)
        if available is not None and self._ram_total_mb > 0:
            ram_used = self._ram_total_mb - available
            ram_pct = ram_used / self._ram_total_mb * 100.0

        disk = self._read("disk", self.provider.disk_throughput)
        disk_mbps = (disk[0] + disk[1]) / _MB if disk is not None else None

        net = self._read("network", self.provider.network_throughput)
        net_kbps = (net[0] + net[1]) / _KB if net is not None else None

        for name, value in zip(STREAMS, (cpu, ram_pct, disk_mbps, net_kbps)):
            if value is not None:
                self.windows[name].push(value)

        return SystemReading(
            ts=int(self._clock()),
            cpu_pct=cpu,
            ram_used_mb=ram_used,
            ram_total_mb=self._ram_total_mb,
            ram_pct=ram_pct,
            disk_mbps=disk_mbps,
            net_kbps=net_kbps,
        )

    @staticmethod
    def _read(metric: str, reader):
        try:
            return reader()
        except ProviderUnavailable as e:
            logger.debug("metric_unavailable", metric=metric, reason=str(e))
            return None

    # ── detection cadence ─────────────────────
    def trigger_detection(self) -> bool:
        """Launch a detection cycle unless one is already running."""
        if self._detecting:
            self.detections_dropped += 1
            logger.debug("detection_skipped_busy", tick=self._tick_count)
            return False
        self._detecting = True
        self.detections_started += 1
        self._pool.start(_DetectionRunnable(self))
        return True

    @QtCore.Slot(bool)
    def _on_detection_finished(self, ok: bool):
        self._detecting = False
        if ok:
            self.spikes_updated.emit(self.registry.snapshot())

    # ── consumer API ──────────────────────────
    def latest_system_samples(self) -> Dict[str, List[float]]:
        return {name: w.snapshot() for name, w in self.windows.items()}

    def latest_spikes(self) -> List[ProcessSpike]:
        return self.registry.snapshot()

    def latest_reading(self) -> Optional[SystemReading]:
        return self._latest
