"""Tests for the platform metrics provider."""
from __future__ import annotations

import sys

import psutil
import pytest

# Allow importing from project root
sys.path.insert(0, str(__file__).rsplit("/", 2)[0])

from collectors.hardware_collector import GenericHardwareProbe
from metrics import PlatformMetricsProvider, collect
from models import HardwareIdentity, MetricSnapshot


class StaticProbe(GenericHardwareProbe):
    def identity(self) -> HardwareIdentity:
        return HardwareIdentity(cpu_name="Test CPU", gpu_name="Test GPU", gpu_driver_version="1.0", os_version="TestOS 1")


def test_provider_open_close_idempotent() -> None:
    p = PlatformMetricsProvider(warmup_sec=0.0)
    assert p.is_open is False
    with p as opened:
        assert opened is p
        assert p.is_open
    assert p.is_open is False
    p.close()
    p.close()


def test_provider_queries_in_range() -> None:
    with PlatformMetricsProvider(warmup_sec=0.0) as p:
        assert 0.0 <= p.cpu_percent() <= 100.0
        assert 0.0 <= p.ram_percent() <= 100.0
        assert p.ram_used_mb() <= p.ram_total_mb()
        assert 0.0 <= p.disk_percent() <= 100.0
        assert p.process_count() >= 0
        assert p.uptime_seconds() >= 0
        assert isinstance(p.hostname(), str)
        bytes_in, bytes_out = p.network_counters()
        assert bytes_in >= 0 and bytes_out >= 0


def test_provider_snapshot() -> None:
    with PlatformMetricsProvider(warmup_sec=0.0) as p:
        snap = p.snapshot(net_down_kbps=12.0, net_up_kbps=3.0)
    assert isinstance(snap, MetricSnapshot)
    assert snap.net_down_kbps == 12.0
    assert snap.net_up_kbps == 3.0
    assert snap.timestamp > 0


def test_provider_degrades_to_neutral(monkeypatch) -> None:
    def boom(*args, **kwargs):
        raise psutil.AccessDenied()

    for name in ("virtual_memory", "disk_usage", "net_io_counters", "pids"):
        monkeypatch.setattr(psutil, name, boom)
    p = PlatformMetricsProvider(warmup_sec=0.0)
    assert p.ram_percent() == 0.0
    assert p.ram_total_mb() == 0
    assert p.disk_total_gb() == 0
    assert p.process_count() == 0
    assert p.network_counters() == (0, 0)


def test_provider_hardware_identity_uses_probe() -> None:
    p = PlatformMetricsProvider(warmup_sec=0.0, probe=StaticProbe())
    assert p.hardware_identity().cpu_name == "Test CPU"


@pytest.mark.parametrize("full", [False, True])
def test_collect_dict(full: bool) -> None:
    d = collect(full=full)
    assert "cpu_percent" in d
    assert "ram_total_mb" in d
    assert ("hardware" in d) is full


def test_open_does_not_read_network_counters(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(psutil, "net_io_counters", lambda *a, **kw: calls.append(1) or {})
    with PlatformMetricsProvider(warmup_sec=0.0) as p:
        assert p.is_open
    assert calls == []
