"""Tests for collectors."""
from __future__ import annotations

import json
import socket
import subprocess
import sys
from collections import namedtuple
from pathlib import Path

import psutil

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import collectors.hardware_collector as hw_mod
from collectors.base import BaseCollector, CollectorResult
from collectors.hardware_collector import (
    DarwinHardwareProbe,
    GenericHardwareProbe,
    HardwareCollector,
    LinuxHardwareProbe,
    WindowsHardwareProbe,
    select_probe,
)
from collectors.network_collector import NetworkCollector, is_loopback
from collectors.psutil_collector import PsutilCollector
from models import HardwareIdentity

IO = namedtuple("IO", "bytes_sent bytes_recv")
Stats = namedtuple("Stats", "isup speed flags")
Addr = namedtuple("Addr", "family address")
Part = namedtuple("Part", "device mountpoint fstype")
Usage = namedtuple("Usage", "total used percent")


def _boom(*args, **kwargs):
    raise psutil.AccessDenied()


def test_collector_result_get() -> None:
    r = CollectorResult(success=True, data={"a": 1, "b": None})
    assert r.get("a") == 1
    assert r.get("b", 5) == 5
    failed = CollectorResult(success=False, error="x", data={"a": 1})
    assert failed.get("a", 0) == 0


def test_collect_safe_catches() -> None:
    class Broken(BaseCollector):
        name = "broken"

        def collect(self) -> CollectorResult:
            raise RuntimeError("boom")

    r = Broken().collect_safe()
    assert r.success is False
    assert r.error == "boom"


def test_psutil_collector_live() -> None:
    c = PsutilCollector(disk_mounts_max=3)
    c.prime(warmup_sec=0.0)
    r = c.collect_safe()
    assert r.success
    assert 0.0 <= r.data["cpu_percent"] <= 100.0
    assert r.data["ram_total_mb"] >= 0
    assert len(r.data["volumes"]) <= 3
    assert r.data["process_count"] >= 0


def test_psutil_collector_neutral_on_failure(monkeypatch) -> None:
    for name in ("cpu_percent", "virtual_memory", "disk_usage", "disk_partitions", "pids", "boot_time"):
        monkeypatch.setattr(psutil, name, _boom)
    c = PsutilCollector()
    assert c.cpu_percent() == 0.0
    assert c.memory() == (0.0, 0, 0)
    assert c.primary_disk() == (0.0, 0, 0)
    assert c.volumes() == []
    assert c.process_count() == 0
    assert c.uptime_seconds() == 0


def test_psutil_collector_volume_filter(monkeypatch) -> None:
    parts = [
        Part("/dev/sda1", "/", "ext4"),
        Part("tmpfs", "/run", "tmpfs"),
        Part("/dev/sda1", "/", "ext4"),
        Part("/dev/loop0", "/snap/core", "squashfs"),
        Part("/dev/sdb1", "/empty", "ext4"),
        Part("/dev/sdc1", "/data", "xfs"),
    ]
    usages = {
        "/": Usage(100 * 1024**3, 40 * 1024**3, 40.0),
        "/empty": Usage(0, 0, 0.0),
        "/data": Usage(200 * 1024**3, 50 * 1024**3, 25.0),
    }
    monkeypatch.setattr(psutil, "disk_partitions", lambda all=False: parts)
    monkeypatch.setattr(psutil, "disk_usage", lambda path: usages[path])
    vols = PsutilCollector(disk_mounts_max=8).volumes()
    assert [v.mountpoint for v in vols] == ["/", "/data"]
    assert vols[0].total_gb == 100.0
    assert vols[1].percent == 25.0
    assert len(PsutilCollector(disk_mounts_max=1).volumes()) == 1


def test_is_loopback() -> None:
    assert is_loopback("lo")
    assert is_loopback("lo0")
    assert is_loopback("Loopback Pseudo-Interface 1")
    assert is_loopback("eth9", Stats(True, 0, "up,loopback,running"))
    assert not is_loopback("eth0", Stats(True, 1000, "up,broadcast,running"))


def test_network_counters_skip_loopback_and_down(monkeypatch) -> None:
    per_nic = {
        "lo": IO(bytes_sent=500, bytes_recv=500),
        "eth0": IO(bytes_sent=100, bytes_recv=1000),
        "wlan0": IO(bytes_sent=7, bytes_recv=9),
        "eth1": IO(bytes_sent=1, bytes_recv=2),
    }
    stats = {
        "lo": Stats(True, 0, "up,loopback"),
        "eth0": Stats(True, 1000, "up"),
        "wlan0": Stats(False, 0, ""),
        "eth1": Stats(True, 100, "up"),
    }
    monkeypatch.setattr(psutil, "net_io_counters", lambda pernic=False: per_nic)
    monkeypatch.setattr(psutil, "net_if_stats", lambda: stats)
    assert NetworkCollector().counters() == (1002, 101)


def test_network_counters_failure(monkeypatch) -> None:
    monkeypatch.setattr(psutil, "net_io_counters", _boom)
    assert NetworkCollector().counters() == (0, 0)


def test_network_adapters(monkeypatch) -> None:
    addrs = {
        "lo": [Addr(socket.AF_INET, "127.0.0.1")],
        "eth0": [Addr(socket.AF_INET, "192.168.1.20")],
        "tun0": [Addr(socket.AF_INET6, "fe80::1")],
    }
    stats = {"lo": Stats(True, 0, "loopback"), "eth0": Stats(True, 1000, "up"), "tun0": Stats(True, 0, "up")}
    monkeypatch.setattr(psutil, "net_if_addrs", lambda: addrs)
    monkeypatch.setattr(psutil, "net_if_stats", lambda: stats)
    monkeypatch.setattr(psutil, "net_io_counters", lambda pernic=False: {"eth0": IO(10, 20)})
    adapters = NetworkCollector().adapters()
    assert len(adapters) == 1
    a = adapters[0]
    assert a.name == "eth0"
    assert a.ip_address == "192.168.1.20"
    assert a.speed_mbps == 1000
    assert a.connected is True
    assert (a.bytes_in, a.bytes_out) == (20, 10)


def test_select_probe() -> None:
    assert isinstance(select_probe("Linux"), LinuxHardwareProbe)
    assert isinstance(select_probe("Darwin"), DarwinHardwareProbe)
    assert isinstance(select_probe("Windows"), WindowsHardwareProbe)
    assert type(select_probe("Plan9")) is GenericHardwareProbe


def _fake_run(outputs: dict[str, str]):
    def run(cmd, timeout_sec):
        return outputs.get(cmd[0], "")
    return run


def test_linux_probe(tmp_path, monkeypatch) -> None:
    (tmp_path / "cpuinfo").write_text(
        "processor\t: 0\nmodel name\t: AMD Ryzen 7 5800X 8-Core Processor\n", encoding="utf-8"
    )
    (tmp_path / "os-release").write_text('NAME="Ubuntu"\nPRETTY_NAME="Ubuntu 22.04.4 LTS"\n', encoding="utf-8")
    monkeypatch.setattr(hw_mod, "_run", _fake_run({
        "lspci": "00:02.0 VGA compatible controller: Intel Corporation UHD Graphics 630\n",
        "glxinfo": "OpenGL version string: 4.6 (Compatibility Profile) Mesa 23.2.1\n",
    }))
    probe = LinuxHardwareProbe(proc_root=str(tmp_path), etc_root=str(tmp_path))
    ident = probe.identity()
    assert ident.cpu_name == "AMD Ryzen 7 5800X 8-Core Processor"
    assert ident.gpu_name == "Intel Corporation UHD Graphics 630"
    assert ident.gpu_driver_version == "23.2.1"
    assert ident.os_version == "Ubuntu 22.04.4 LTS"


def test_linux_probe_prefers_nvidia_smi(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(hw_mod, "_run", _fake_run({
        "nvidia-smi": "NVIDIA GeForce RTX 3080, 535.104.05\n",
        "lspci": "01:00.0 VGA compatible controller: NVIDIA Corporation GA102\n",
    }))
    name, driver = LinuxHardwareProbe(proc_root=str(tmp_path), etc_root=str(tmp_path)).gpu()
    assert name == "NVIDIA GeForce RTX 3080"
    assert driver == "535.104.05"


def test_darwin_probe(monkeypatch) -> None:
    displays = {"SPDisplaysDataType": [{"sppci_model": "Apple M2", "spdisplays_mtlgpufamilysupport": "spdisplays_metal3"}]}
    monkeypatch.setattr(hw_mod, "_run", _fake_run({
        "sysctl": "Apple M2\n",
        "system_profiler": json.dumps(displays),
        "sw_vers": "14.2.1\n",
    }))
    ident = DarwinHardwareProbe().identity()
    assert ident == HardwareIdentity(
        cpu_name="Apple M2", gpu_name="Apple M2", gpu_driver_version="Metal 3", os_version="14.2.1"
    )


def test_run_missing_tool() -> None:
    assert hw_mod._run(["definitely-not-a-real-tool-xyz"], 1) == ""


def test_run_timeout(monkeypatch) -> None:
    def slow(*args, **kwargs):
        raise subprocess.TimeoutExpired(cmd="lspci", timeout=1)
    monkeypatch.setattr(subprocess, "run", slow)
    assert hw_mod._run(["lspci"], 1) == ""


def test_hardware_collector_failure_gives_empty_identity() -> None:
    class Broken(GenericHardwareProbe):
        def identity(self) -> HardwareIdentity:
            raise RuntimeError("probe crashed")

    assert HardwareCollector(probe=Broken()).identity() == HardwareIdentity()
