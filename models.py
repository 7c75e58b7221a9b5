"""
Data models for RetroForge core: metric snapshots, smoothed state, anomaly state,
hardware identity, adapters and volumes, probe results, log entries.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DataSource(str, Enum):
    SIMULATED = "simulated"
    REAL = "real"


class LogSeverity(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    NOTICE = "notice"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def color_tag(self) -> str:
        return _SEVERITY_COLORS[self]


_SEVERITY_COLORS = {
    LogSeverity.DEBUG: "dim",
    LogSeverity.INFO: "green",
    LogSeverity.NOTICE: "cyan",
    LogSeverity.WARNING: "amber",
    LogSeverity.CRITICAL: "red",
}


class SpeedTestState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class StressTestState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"


@dataclass(frozen=True)
class MetricSnapshot:
    """One coherent host sample. Units: percent, KB/s, seconds."""
    cpu_percent: float = 0.0
    ram_percent: float = 0.0
    disk_percent: float = 0.0
    net_down_kbps: float = 0.0
    net_up_kbps: float = 0.0
    process_count: int = 0
    uptime_sec: float = 0.0
    hostname: str = ""
    timestamp: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "cpu_percent": self.cpu_percent,
            "ram_percent": self.ram_percent,
            "disk_percent": self.disk_percent,
            "net_down_kbps": self.net_down_kbps,
            "net_up_kbps": self.net_up_kbps,
            "process_count": self.process_count,
            "uptime_sec": self.uptime_sec,
            "hostname": self.hostname,
            "timestamp": self.timestamp,
        }


@dataclass
class SmoothedMetric:
    """Current display value chasing a target value."""
    current: float = 0.0
    target: float = 0.0

    def step(self, dt: float, rate: float) -> float:
        # Unclamped: large dt * rate overshoots past the target.
        self.current += (self.target - self.current) * dt * rate
        return self.current

    def reset(self, value: float) -> None:
        self.current = value
        self.target = value

    def to_dict(self) -> dict[str, float]:
        return {"current": self.current, "target": self.target}


@dataclass
class SmoothedState:
    cpu: SmoothedMetric = field(default_factory=lambda: SmoothedMetric(45.0, 45.0))
    ram: SmoothedMetric = field(default_factory=lambda: SmoothedMetric(60.0, 60.0))
    disk: SmoothedMetric = field(default_factory=lambda: SmoothedMetric(70.0, 70.0))
    net_down: SmoothedMetric = field(default_factory=lambda: SmoothedMetric(15.0, 15.0))
    net_up: SmoothedMetric = field(default_factory=lambda: SmoothedMetric(3.0, 3.0))
    using_real_data: bool = False

    def metrics(self) -> dict[str, SmoothedMetric]:
        return {
            "cpu": self.cpu,
            "ram": self.ram,
            "disk": self.disk,
            "net_down": self.net_down,
            "net_up": self.net_up,
        }

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {name: m.to_dict() for name, m in self.metrics().items()}
        out["using_real_data"] = self.using_real_data
        return out


NONE_DETECTED = "NONE DETECTED"


@dataclass
class AnomalyState:
    triggered: bool = False
    reason: str = NONE_DETECTED
    cpu_high_sec: float = 0.0
    net_baseline: float = -1.0  # < 0 means unseeded

    @property
    def baseline_seeded(self) -> bool:
        return self.net_baseline >= 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "triggered": self.triggered,
            "reason": self.reason,
            "cpu_high_sec": self.cpu_high_sec,
            "net_baseline": self.net_baseline,
        }


@dataclass(frozen=True)
class AnomalyTransition:
    """Edge event: emitted only when AnomalyState.triggered flips."""
    triggered: bool
    reason: str
    severity: LogSeverity


@dataclass(frozen=True)
class HardwareIdentity:
    cpu_name: str = ""
    gpu_name: str = ""
    gpu_driver_version: str = ""
    os_version: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "cpu_name": self.cpu_name,
            "gpu_name": self.gpu_name,
            "gpu_driver_version": self.gpu_driver_version,
            "os_version": self.os_version,
        }


@dataclass(frozen=True)
class AdapterInfo:
    """Single network adapter."""
    name: str
    ip_address: str = ""
    bytes_in: int = 0
    bytes_out: int = 0
    speed_mbps: int = 0
    connected: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "ip_address": self.ip_address,
            "bytes_in": self.bytes_in,
            "bytes_out": self.bytes_out,
            "speed_mbps": self.speed_mbps,
            "connected": self.connected,
        }


@dataclass(frozen=True)
class DiskInfo:
    """Single mounted volume usage."""
    mountpoint: str
    total_gb: float
    used_gb: float
    percent: float
    device: str = ""
    fstype: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "mountpoint": self.mountpoint,
            "total_gb": self.total_gb,
            "used_gb": self.used_gb,
            "percent": self.percent,
            "device": self.device,
            "fstype": self.fstype,
        }


@dataclass(frozen=True)
class SpeedTestResult:
    download_mbps: float
    upload_mbps: float
    ping_ms: float
    timestamp: str
    server: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "download_mbps": self.download_mbps,
            "upload_mbps": self.upload_mbps,
            "ping_ms": self.ping_ms,
            "timestamp": self.timestamp,
            "server": self.server,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpeedTestResult":
        return cls(
            download_mbps=float(data.get("download_mbps", 0.0)),
            upload_mbps=float(data.get("upload_mbps", 0.0)),
            ping_ms=float(data.get("ping_ms", 0.0)),
            timestamp=str(data.get("timestamp", "")),
            server=str(data.get("server", "")),
        )


@dataclass(frozen=True)
class StressTestRun:
    state: StressTestState = StressTestState.IDLE
    progress: float = 0.0
    duration_sec: float = 0.0
    workers: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "progress": self.progress,
            "duration_sec": self.duration_sec,
            "workers": self.workers,
        }


@dataclass(frozen=True)
class LogEntry:
    message: str
    created_at: float
    severity: LogSeverity = LogSeverity.INFO

    @property
    def color_tag(self) -> str:
        return self.severity.color_tag

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "created_at": self.created_at,
            "severity": self.severity.value,
            "color_tag": self.color_tag,
        }
