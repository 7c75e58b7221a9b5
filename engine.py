"""
Stats smoothing engine: the one owned state object the foreground loop ticks.

Each tick refreshes targets on their own cadences, steps every smoothed metric
toward its target, evaluates the anomaly detector on the smoothed values and
appends log entries for anything notable, including background probe completions.
"""
from __future__ import annotations

import copy
import random
import threading
import time
from pathlib import Path
from typing import Any, Callable

from anomaly import AnomalyDetector
from config import EngineSettings, settings_from_config
from logring import LogRing
from metrics import PlatformMetricsProvider
from models import (
    AdapterInfo,
    AnomalyState,
    DataSource,
    DiskInfo,
    HardwareIdentity,
    LogEntry,
    LogSeverity,
    SmoothedState,
    SpeedTestResult,
    SpeedTestState,
    StressTestRun,
    StressTestState,
)
from network_rate import NetworkRateSampler
from speedtest import SpeedTestWorker
from stress import StressTestCoordinator
from tasks import BackgroundTask
from utils import RetroForgeError, get_logger

logger = get_logger(__name__)


class StatsEngine:
    def __init__(
        self,
        provider: PlatformMetricsProvider | None = None,
        sampler: NetworkRateSampler | None = None,
        rng: random.Random | None = None,
        settings: EngineSettings | None = None,
        clock: Callable[[], float] | None = None,
        speedtest: SpeedTestWorker | None = None,
        stress: StressTestCoordinator | None = None,
    ) -> None:
        self.settings = settings or settings_from_config()
        s = self.settings
        self.provider = provider or PlatformMetricsProvider(
            warmup_sec=s.warmup_sec,
            disk_mounts_max=s.disk_mounts_max,
            hardware_timeout_sec=s.hardware_timeout_sec,
        )
        self.sampler = sampler or NetworkRateSampler(self.provider.network_counters)
        self._rng = rng or random.Random()
        self._clock = clock or time.monotonic
        self._speedtest = speedtest or SpeedTestWorker(s)
        self._stress = stress or StressTestCoordinator(s)
        self._detector = AnomalyDetector(s)
        self._log = LogRing(s.logring_capacity)

        self._state = SmoothedState()
        self._source = DataSource.SIMULATED
        self._started_at = self._clock()
        self._process_count = s.sim_process_baseline
        self._uptime_sec = s.sim_uptime_offset_sec
        self._hostname = self.provider.hostname()
        self._ram_used_mb = 0
        self._ram_total_mb = 0
        self._disk_used_gb = 0
        self._disk_total_gb = 0
        self._adapters: list[AdapterInfo] = []
        self._volumes: list[DiskInfo] = []

        # Cadence timers, advanced by tick dt.
        self._info_elapsed = 0.0
        self._net_elapsed = 0.0
        self._inventory_elapsed = 0.0
        self._info_due = True
        self._inventory_due = True

        self._hw_lock = threading.Lock()
        self._hardware: HardwareIdentity | None = None
        self._hardware_logged = False
        self._hw_task: BackgroundTask | None = None

        self._seen_speed_state = self._speedtest.state
        self._seen_stress_state = self._stress.state
        self._stress_cancelled = False
        self._started = False
        self._closed = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> "StatsEngine":
        """Prime the provider and sampler and fetch hardware identity in the background."""
        if self._started:
            return self
        self._started = True
        self.provider.open()
        self.sampler.prime()
        self._hw_task = BackgroundTask("hardware-identity", self._fetch_hardware).start()
        self._log.append("[SYSTEM] Dashboard ready", LogSeverity.NOTICE)
        return self

    def _fetch_hardware(self) -> None:
        identity = self.provider.hardware_identity()
        with self._hw_lock:
            self._hardware = identity

    def close(self) -> None:
        """Stop the stress test, wait for background work (bounded) and release the provider."""
        if self._closed:
            return
        self._closed = True
        timeout = self.settings.shutdown_timeout_sec
        self._stress.stop()
        if not self._stress.join(timeout):
            logger.warning("stress coordinator did not finish within %.1fs", timeout)
        if not self._speedtest.join(timeout):
            logger.warning("speed test still running at shutdown")
        if self._hw_task is not None and not self._hw_task.join(timeout):
            logger.warning("hardware identity fetch still running at shutdown")
        self.provider.close()
        self.sampler.reset()

    def __enter__(self) -> "StatsEngine":
        return self.start()

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    def tick(self, dt: float) -> None:
        """Advance one frame: targets, smoothing, anomaly evaluation, log emission."""
        dt = max(0.0, float(dt))
        real = self._source == DataSource.REAL

        self._refresh_targets(dt, real)

        rate = self.settings.smoothing_rate_real if real else self.settings.smoothing_rate_simulated
        for metric in self._state.metrics().values():
            metric.step(dt, rate)

        transition = self._detector.evaluate(
            dt,
            self._state.cpu.current,
            self._state.ram.current,
            self._state.net_down.current + self._state.net_up.current,
            real,
        )
        if transition is not None:
            if transition.triggered:
                self._log.append(f"[ANOMALY] {transition.reason}", transition.severity)
            else:
                self._log.append("[ANOMALY] Condition cleared", transition.severity)

        self._observe_background()

    def _refresh_targets(self, dt: float, real: bool) -> None:
        s = self.settings
        st = self._state
        if real:
            self._pull_fast_targets()
            self._info_elapsed += dt
            if self._info_due or self._info_elapsed >= s.info_refresh_sec:
                self._refresh_info()
        else:
            if self._rng.random() < s.sim_randomize_chance:
                st.cpu.target = float(self._rng.randint(20, 80))
                st.ram.target = float(self._rng.randint(40, 90))
                st.disk.target = float(self._rng.randint(60, 95))
            self._process_count = s.sim_process_baseline + self._rng.randint(-5, 5)
            self._uptime_sec = int(self._clock() - self._started_at) + s.sim_uptime_offset_sec

        # Network is always real, whatever the mode.
        self._net_elapsed += dt
        if self._net_elapsed >= s.net_sample_sec:
            self._net_elapsed = 0.0
            down, up = self.sampler.sample()
            st.net_down.target = down
            st.net_up.target = up

        self._inventory_elapsed += dt
        if self._inventory_due or self._inventory_elapsed >= s.inventory_refresh_sec:
            self._inventory_due = False
            self._inventory_elapsed = 0.0
            self._adapters = self.provider.adapters()
            self._volumes = self.provider.volumes()

    def _pull_fast_targets(self) -> None:
        st = self._state
        st.cpu.target = self.provider.cpu_percent()
        st.ram.target = self.provider.ram_percent()
        st.disk.target = self.provider.disk_percent()

    def _refresh_info(self) -> None:
        p = self.provider
        self._info_due = False
        self._info_elapsed = 0.0
        self._process_count = p.process_count()
        self._uptime_sec = p.uptime_seconds()
        self._ram_used_mb = p.ram_used_mb()
        self._ram_total_mb = p.ram_total_mb()
        self._disk_used_gb = p.disk_used_gb()
        self._disk_total_gb = p.disk_total_gb()
        self._hostname = p.hostname() or self._hostname

    def _observe_background(self) -> None:
        """Turn state changes published by background work into log entries (single writer)."""
        speed_state = self._speedtest.state
        if speed_state != self._seen_speed_state:
            self._seen_speed_state = speed_state
            if speed_state == SpeedTestState.DONE:
                r = self._speedtest.result
                if r is not None:
                    self._log.append(
                        f"[SPEEDTEST] Down {r.download_mbps:.1f} Mbps / Up {r.upload_mbps:.1f} Mbps"
                        f" / Ping {r.ping_ms:.0f} ms",
                        LogSeverity.NOTICE,
                    )
            elif speed_state == SpeedTestState.FAILED:
                self._log.append(
                    f"[SPEEDTEST] Test failed: {self._speedtest.error or 'unknown error'}",
                    LogSeverity.WARNING,
                )

        stress_state = self._stress.state
        if stress_state != self._seen_stress_state:
            self._seen_stress_state = stress_state
            if stress_state == StressTestState.DONE and not self._stress_cancelled:
                self._log.append("[STRESS] Test complete", LogSeverity.INFO)

        if not self._hardware_logged:
            hw = self.hardware_identity
            if hw is not None:
                self._hardware_logged = True
                self._log.append(f"[SYSTEM] Hardware: {hw.cpu_name or 'unknown CPU'}", LogSeverity.DEBUG)

    # -------------------------------------------------------------------------
    # Mutators
    # -------------------------------------------------------------------------

    def set_data_source(self, source: DataSource | str) -> bool:
        """Switch between simulated and real data. Current values are kept; only targets move."""
        try:
            source = DataSource(source)
        except ValueError:
            raise RetroForgeError(f"unknown data source: {source!r}") from None
        if source == self._source:
            return False
        self._source = source
        self._state.using_real_data = source == DataSource.REAL
        if source == DataSource.REAL:
            self._pull_fast_targets()
            self._info_due = True
            self._log.append("[MODE] Real-time monitoring ENABLED", LogSeverity.NOTICE)
        else:
            self._detector.reset()
            self._log.append("[MODE] Simulated data mode", LogSeverity.NOTICE)
        return True

    def append_log_entry(self, message: str, severity: LogSeverity = LogSeverity.INFO) -> LogEntry:
        return self._log.append(message, severity)

    def start_speed_test(self) -> bool:
        self._observe_background()
        started = self._speedtest.start()
        if started:
            self._seen_speed_state = SpeedTestState.RUNNING
            self._log.append("[SPEEDTEST] Test started", LogSeverity.INFO)
        return started

    def save_speed_test_result(self) -> Path | None:
        try:
            path = self._speedtest.save()
        except OSError as e:
            self._log.append(f"[SPEEDTEST] Save failed: {e}", LogSeverity.WARNING)
            return None
        if path is not None:
            self._log.append(f"[SPEEDTEST] Result saved to {path}", LogSeverity.NOTICE)
        return path

    def start_stress_test(self, duration_sec: float | None = None) -> bool:
        """Start a stress run. Requires real mode, otherwise the load would not be visible."""
        if duration_sec is None:
            duration_sec = self.settings.stress_default_duration_sec
        if self._source != DataSource.REAL:
            self._log.append("[STRESS] Enable real monitoring first", LogSeverity.WARNING)
            return False
        self._observe_background()
        started = self._stress.start(duration_sec)
        if started:
            self._stress_cancelled = False
            self._seen_stress_state = StressTestState.RUNNING
            self._log.append(f"[STRESS] CPU stress test started ({duration_sec:g}s)", LogSeverity.WARNING)
        elif self._stress.state != StressTestState.RUNNING:
            self._log.append("[STRESS] Could not launch workers", LogSeverity.WARNING)
        return started

    def stop_stress_test(self) -> bool:
        stopped = self._stress.stop()
        if stopped:
            self._stress_cancelled = True
            self._log.append("[STRESS] Test stopped", LogSeverity.WARNING)
        return stopped

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SmoothedState:
        return copy.deepcopy(self._state)

    @property
    def data_source(self) -> DataSource:
        return self._source

    @property
    def cpu(self) -> float:
        return self._state.cpu.current

    @property
    def ram(self) -> float:
        return self._state.ram.current

    @property
    def disk(self) -> float:
        return self._state.disk.current

    @property
    def net_down(self) -> float:
        return self._state.net_down.current

    @property
    def net_up(self) -> float:
        return self._state.net_up.current

    @property
    def process_count(self) -> int:
        return self._process_count

    @property
    def uptime_sec(self) -> int:
        return self._uptime_sec

    @property
    def hostname(self) -> str:
        return self._hostname

    @property
    def ram_used_mb(self) -> int:
        return self._ram_used_mb

    @property
    def ram_total_mb(self) -> int:
        return self._ram_total_mb

    @property
    def disk_used_gb(self) -> int:
        return self._disk_used_gb

    @property
    def disk_total_gb(self) -> int:
        return self._disk_total_gb

    @property
    def anomaly(self) -> AnomalyState:
        return copy.copy(self._detector.state)

    @property
    def hardware_identity(self) -> HardwareIdentity | None:
        with self._hw_lock:
            return self._hardware

    @property
    def hardware_available(self) -> bool:
        return self.hardware_identity is not None

    @property
    def adapters(self) -> list[AdapterInfo]:
        return list(self._adapters)

    @property
    def volumes(self) -> list[DiskInfo]:
        return list(self._volumes)

    @property
    def speed_test_state(self) -> SpeedTestState:
        return self._speedtest.state

    @property
    def speed_test_progress(self) -> float:
        return self._speedtest.progress

    @property
    def speed_test_result(self) -> SpeedTestResult | None:
        return self._speedtest.result

    @property
    def stress_state(self) -> StressTestState:
        return self._stress.state

    @property
    def stress_progress(self) -> float:
        return self._stress.progress

    @property
    def stress_run(self) -> StressTestRun:
        return self._stress.run

    def log_entries(self) -> list[LogEntry]:
        return self._log.entries()

    def to_dict(self) -> dict[str, Any]:
        hw = self.hardware_identity
        result = self.speed_test_result
        return {
            "data_source": self._source.value,
            "smoothed": self._state.to_dict(),
            "process_count": self._process_count,
            "uptime_sec": self._uptime_sec,
            "hostname": self._hostname,
            "ram_used_mb": self._ram_used_mb,
            "ram_total_mb": self._ram_total_mb,
            "disk_used_gb": self._disk_used_gb,
            "disk_total_gb": self._disk_total_gb,
            "anomaly": self._detector.state.to_dict(),
            "hardware": hw.to_dict() if hw is not None else None,
            "adapters": [a.to_dict() for a in self._adapters],
            "volumes": [v.to_dict() for v in self._volumes],
            "speed_test": {
                "state": self.speed_test_state.value,
                "progress": self.speed_test_progress,
                "result": result.to_dict() if result is not None else None,
            },
            "stress": self.stress_run.to_dict(),
            "log": [e.to_dict() for e in self._log.entries()],
        }
