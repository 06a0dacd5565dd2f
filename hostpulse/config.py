from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import json
import os

APP_DIR = Path(os.environ.get("HOSTPULSE_HOME") or Path.home() / ".hostpulse")
CFG_PATH = APP_DIR / "config.json"

# Snapshots land here unless export_dir is set.
DEFAULT_EXPORT_DIR = str(APP_DIR / "snapshots")

@dataclass
class AppConfig:
    sample_interval_ms: int = 1000
    history_size: int = 120

    # Spike detection cadence (thresholds are fixed in detectors.py)
    detect_every_ticks: int = 5
    top_spikes: int = 5

    # Console output
    status_every_ticks: int = 5     # 0 = disabled
    log_level: str = "info"
    log_format: str = "console"     # console|json

    # Snapshot export
    export_dir: str = ""            # "" → uses DEFAULT_EXPORT_DIR
    export_on_exit: bool = True

    @property
    def stale_after_s(self) -> float:
        """Wall time of 20 detection cycles; older baselines are re-seeded."""
        return 20 * self.detect_every_ticks * self.sample_interval_ms / 1000.0

def ensure_dirs(cfg_path: Path = CFG_PATH) -> None:
    cfg_path.parent.mkdir(parents=True, exist_ok=True)

def load_config(cfg_path: Path = CFG_PATH) -> AppConfig:
    ensure_dirs(cfg_path)
    if not cfg_path.exists():
        cfg = AppConfig()
        save_config(cfg, cfg_path)
        return cfg
    try:
        data = json.loads(cfg_path.read_text(encoding="utf-8"))
        known = {k: data[k] for k in data if k in AppConfig.__dataclass_fields__}
        return AppConfig(**known)
    except (OSError, ValueError, TypeError):
        cfg = AppConfig()
        save_config(cfg, cfg_path)
        return cfg

def save_config(cfg: AppConfig, cfg_path: Path = CFG_PATH) -> None:
    ensure_dirs(cfg_path)
    cfg_path.write_text(json.dumps(cfg.__dict__, indent=2), encoding="utf-8")
