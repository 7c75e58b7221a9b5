"""
Central configuration for RetroForge core.
Supports defaults, optional config file (YAML), and environment overrides.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from utils import env_float, env_int, env_str

# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------

DEFAULTS: dict[str, Any] = {
    "engine": {
        "smoothing_rate_real": 5.0,
        "smoothing_rate_simulated": 2.0,
        "sim_randomize_chance": 0.02,
        "info_refresh_sec": 2.0,
        "net_sample_sec": 1.0,
        "inventory_refresh_sec": 5.0,
        "sim_process_baseline": 120,
        "sim_uptime_offset_sec": 3600,
        "shutdown_timeout_sec": 5.0,
    },
    "anomaly": {
        "cpu_percent": 90.0,
        "cpu_sustain_sec": 3.0,
        "ram_percent": 95.0,
        "net_spike_factor": 10.0,
        "net_baseline_floor_kbps": 1.0,
        "net_baseline_tau_sec": 30.0,
    },
    "metrics": {
        "warmup_sec": 0.1,
        "disk_mounts_max": 8,
        "hardware_timeout_sec": 5,
    },
    "speedtest": {
        "base_url": "https://speed.cloudflare.com",
        "server_label": "speed.cloudflare.com",
        "target_bytes": 10_000_000,
        "chunk_bytes": 65536,
        "timeout_sec": 10.0,
        "upload_factor": 0.15,
        "user_agent": "RetroForge/1.0",
    },
    "stress": {
        "default_duration_sec": 30,
        "poll_interval_sec": 0.1,
        "worker_kind": "process",
    },
    "logring": {
        "capacity": 40,
    },
    "persistence": {
        "speedtest_path": "~/.retroforge/speedtest_results.jsonl",
    },
    "logging": {
        "level": "INFO",
        "file": None,
    },
}

# -----------------------------------------------------------------------------
# Config file loading (optional YAML)
# -----------------------------------------------------------------------------

_config_overrides: dict[str, Any] = {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config_file(path: str | Path | None = None) -> bool:
    """Load optional YAML config. Returns True if loaded."""
    if path is None:
        for p in (
            Path(os.getcwd()) / "config.yaml",
            Path(os.getcwd()) / "config.yml",
            Path(__file__).parent / "config.yaml",
            Path.home() / ".retroforge" / "config.yaml",
        ):
            if p.exists():
                path = p
                break
    if path is None:
        return False
    path = Path(path)
    if not path.exists():
        return False
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if isinstance(data, dict):
            global _config_overrides
            _config_overrides = _deep_merge(_config_overrides, data)
            _apply_env()
            return True
    except (OSError, yaml.YAMLError):
        pass
    return False


def reset_overrides() -> None:
    """Drop file and env overrides (tests)."""
    _config_overrides.clear()


def get(key_path: str, default: Any = None) -> Any:
    """Get config value by dot path, e.g. 'engine.info_refresh_sec'."""
    merged = _deep_merge(DEFAULTS, _config_overrides)
    keys = key_path.split(".")
    for k in keys:
        if isinstance(merged, dict) and k in merged:
            merged = merged[k]
        else:
            return default
    return merged


# -----------------------------------------------------------------------------
# Environment overrides (take precedence over file)
# -----------------------------------------------------------------------------

def _env_overrides() -> dict[str, Any]:
    return {
        "engine.smoothing_rate_real": env_float("RF_SMOOTHING_REAL", 0),
        "engine.smoothing_rate_simulated": env_float("RF_SMOOTHING_SIM", 0),
        "anomaly.cpu_percent": env_float("RF_ANOMALY_CPU", 0),
        "anomaly.ram_percent": env_float("RF_ANOMALY_RAM", 0),
        "speedtest.base_url": env_str("RF_SPEEDTEST_URL", ""),
        "speedtest.target_bytes": env_int("RF_SPEEDTEST_BYTES", 0),
        "stress.default_duration_sec": env_int("RF_STRESS_SEC", 0),
        "persistence.speedtest_path": env_str("RF_SPEEDTEST_PATH", ""),
        "logging.level": env_str("RF_LOG_LEVEL", ""),
    }


def _apply_env() -> None:
    e = _env_overrides()
    for path, value in e.items():
        if value == 0 or value is False or value == "":
            continue
        keys = path.split(".")
        d = _config_overrides
        for k in keys[:-1]:
            if k not in d:
                d[k] = {}
            if not isinstance(d[k], dict):
                break
            d = d[k]
        if isinstance(d, dict) and keys[-1]:
            d[keys[-1]] = value


# Apply env on import
_apply_env()


# -----------------------------------------------------------------------------
# Engine settings bundle
# -----------------------------------------------------------------------------

@dataclass
class EngineSettings:
    """Resolved values the engine and its collaborators read at construction."""

    smoothing_rate_real: float = 5.0
    smoothing_rate_simulated: float = 2.0
    sim_randomize_chance: float = 0.02
    info_refresh_sec: float = 2.0
    net_sample_sec: float = 1.0
    inventory_refresh_sec: float = 5.0
    sim_process_baseline: int = 120
    sim_uptime_offset_sec: int = 3600
    shutdown_timeout_sec: float = 5.0

    anomaly_cpu_percent: float = 90.0
    anomaly_cpu_sustain_sec: float = 3.0
    anomaly_ram_percent: float = 95.0
    anomaly_net_spike_factor: float = 10.0
    anomaly_net_baseline_floor_kbps: float = 1.0
    anomaly_net_baseline_tau_sec: float = 30.0

    warmup_sec: float = 0.1
    disk_mounts_max: int = 8
    hardware_timeout_sec: int = 5

    speedtest_base_url: str = "https://speed.cloudflare.com"
    speedtest_server_label: str = "speed.cloudflare.com"
    speedtest_target_bytes: int = 10_000_000
    speedtest_chunk_bytes: int = 65536
    speedtest_timeout_sec: float = 10.0
    speedtest_upload_factor: float = 0.15
    speedtest_user_agent: str = "RetroForge/1.0"

    stress_default_duration_sec: int = 30
    stress_poll_interval_sec: float = 0.1
    stress_worker_kind: str = "process"

    logring_capacity: int = 40
    speedtest_path: str = "~/.retroforge/speedtest_results.jsonl"


def settings_from_config() -> EngineSettings:
    """Build EngineSettings from DEFAULTS merged with file and env overrides."""
    return EngineSettings(
        smoothing_rate_real=float(get("engine.smoothing_rate_real", 5.0)),
        smoothing_rate_simulated=float(get("engine.smoothing_rate_simulated", 2.0)),
        sim_randomize_chance=float(get("engine.sim_randomize_chance", 0.02)),
        info_refresh_sec=float(get("engine.info_refresh_sec", 2.0)),
        net_sample_sec=float(get("engine.net_sample_sec", 1.0)),
        inventory_refresh_sec=float(get("engine.inventory_refresh_sec", 5.0)),
        sim_process_baseline=int(get("engine.sim_process_baseline", 120)),
        sim_uptime_offset_sec=int(get("engine.sim_uptime_offset_sec", 3600)),
        shutdown_timeout_sec=float(get("engine.shutdown_timeout_sec", 5.0)),
        anomaly_cpu_percent=float(get("anomaly.cpu_percent", 90.0)),
        anomaly_cpu_sustain_sec=float(get("anomaly.cpu_sustain_sec", 3.0)),
        anomaly_ram_percent=float(get("anomaly.ram_percent", 95.0)),
        anomaly_net_spike_factor=float(get("anomaly.net_spike_factor", 10.0)),
        anomaly_net_baseline_floor_kbps=float(get("anomaly.net_baseline_floor_kbps", 1.0)),
        anomaly_net_baseline_tau_sec=float(get("anomaly.net_baseline_tau_sec", 30.0)),
        warmup_sec=float(get("metrics.warmup_sec", 0.1)),
        disk_mounts_max=int(get("metrics.disk_mounts_max", 8)),
        hardware_timeout_sec=int(get("metrics.hardware_timeout_sec", 5)),
        speedtest_base_url=str(get("speedtest.base_url", "https://speed.cloudflare.com")),
        speedtest_server_label=str(get("speedtest.server_label", "speed.cloudflare.com")),
        speedtest_target_bytes=int(get("speedtest.target_bytes", 10_000_000)),
        speedtest_chunk_bytes=int(get("speedtest.chunk_bytes", 65536)),
        speedtest_timeout_sec=float(get("speedtest.timeout_sec", 10.0)),
        speedtest_upload_factor=float(get("speedtest.upload_factor", 0.15)),
        speedtest_user_agent=str(get("speedtest.user_agent", "RetroForge/1.0")),
        stress_default_duration_sec=int(get("stress.default_duration_sec", 30)),
        stress_poll_interval_sec=float(get("stress.poll_interval_sec", 0.1)),
        stress_worker_kind=str(get("stress.worker_kind", "process")),
        logring_capacity=int(get("logring.capacity", 40)),
        speedtest_path=str(get("persistence.speedtest_path", "~/.retroforge/speedtest_results.jsonl")),
    )


# -----------------------------------------------------------------------------
# Convenience constants (for quick access)
# -----------------------------------------------------------------------------

SMOOTHING_RATE_REAL = float(get("engine.smoothing_rate_real", 5.0))
SMOOTHING_RATE_SIMULATED = float(get("engine.smoothing_rate_simulated", 2.0))
NET_SAMPLE_SEC = float(get("engine.net_sample_sec", 1.0))

ANOMALY_CPU_PERCENT = float(get("anomaly.cpu_percent", 90.0))

LOG_RING_CAPACITY = int(get("logring.capacity", 40))
