"""
Anomaly detector: sustained CPU overload, critical memory pressure and network
spikes over a rolling baseline. Evaluated once per tick on the smoothed signal.
"""
from __future__ import annotations

from config import EngineSettings
from models import NONE_DETECTED, AnomalyState, AnomalyTransition, LogSeverity


class AnomalyDetector:
    """Edge-triggered state machine.

    evaluate() returns an AnomalyTransition only on the tick where `triggered`
    flips; while a condition is held the reason may change but nothing is emitted.
    Outside real mode the state is forced clean and the baseline unseeded.
    """

    def __init__(self, settings: EngineSettings | None = None) -> None:
        s = settings or EngineSettings()
        self.cpu_percent = s.anomaly_cpu_percent
        self.cpu_sustain_sec = s.anomaly_cpu_sustain_sec
        self.ram_percent = s.anomaly_ram_percent
        self.net_spike_factor = s.anomaly_net_spike_factor
        self.net_baseline_floor_kbps = s.anomaly_net_baseline_floor_kbps
        self.net_baseline_tau_sec = s.anomaly_net_baseline_tau_sec
        self.state = AnomalyState()

    @property
    def triggered(self) -> bool:
        return self.state.triggered

    @property
    def reason(self) -> str:
        return self.state.reason

    def reset(self) -> None:
        self.state = AnomalyState()

    def _update_baseline(self, dt: float, total: float) -> float | None:
        """Advance the EMA. Returns the pre-update baseline when it can back a spike test."""
        st = self.state
        if not st.baseline_seeded:
            st.net_baseline = total
            return None
        previous = st.net_baseline
        st.net_baseline += (total - previous) * dt / self.net_baseline_tau_sec
        return previous if previous > self.net_baseline_floor_kbps else None

    def evaluate(
        self,
        dt: float,
        cpu: float,
        ram: float,
        net_total_kbps: float,
        real: bool,
    ) -> AnomalyTransition | None:
        if not real:
            self.reset()
            return None

        st = self.state
        was_triggered = st.triggered

        if cpu > self.cpu_percent:
            st.cpu_high_sec += dt
        else:
            st.cpu_high_sec = 0.0

        baseline = self._update_baseline(dt, net_total_kbps)

        reason = NONE_DETECTED
        if st.cpu_high_sec >= self.cpu_sustain_sec:
            reason = f"CPU OVERLOAD {cpu:.0f}% SUSTAINED {st.cpu_high_sec:.0f}s"
        elif ram > self.ram_percent:
            reason = f"MEMORY CRITICAL {ram:.0f}%"
        elif baseline is not None and net_total_kbps > self.net_spike_factor * baseline:
            reason = f"NETWORK SPIKE {net_total_kbps:.0f} KB/s (BASELINE {baseline:.0f})"

        st.triggered = reason != NONE_DETECTED
        st.reason = reason

        if st.triggered and not was_triggered:
            return AnomalyTransition(triggered=True, reason=reason, severity=LogSeverity.CRITICAL)
        if was_triggered and not st.triggered:
            return AnomalyTransition(triggered=False, reason=reason, severity=LogSeverity.INFO)
        return None
