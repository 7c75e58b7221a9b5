"""
Platform metrics provider: one capability contract over the collectors.
CPU, memory, disk, volumes, processes, uptime and host name via psutil; network
counters and adapters via NetworkCollector; hardware identity via platform probes.
Every query is best-effort: failures are logged at debug level and a neutral value
is returned.
"""
from __future__ import annotations

import sys
import time
from typing import Any

from collectors.hardware_collector import GenericHardwareProbe, HardwareCollector
from collectors.network_collector import NetworkCollector
from collectors.psutil_collector import PsutilCollector
from models import AdapterInfo, DiskInfo, HardwareIdentity, MetricSnapshot
from utils import format_bytes, format_percent, format_uptime, get_logger

logger = get_logger(__name__)


class PlatformMetricsProvider:
    """Host metrics for the running OS. Safe to query from the foreground thread;
    hardware_identity() may block and belongs on a background task."""

    def __init__(
        self,
        warmup_sec: float = 0.1,
        disk_mounts_max: int = 8,
        hardware_timeout_sec: int = 5,
        probe: GenericHardwareProbe | None = None,
    ) -> None:
        self.warmup_sec = warmup_sec
        self._psutil = PsutilCollector(disk_mounts_max=disk_mounts_max)
        self._network = NetworkCollector()
        self._hardware_timeout_sec = hardware_timeout_sec
        self._probe = probe
        self._hardware: HardwareCollector | None = None
        self._opened = False
        self._closed = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> "PlatformMetricsProvider":
        """Prime the CPU percentage baseline. Blocks for about warmup_sec.

        Network counters are cumulative; the rate baseline belongs to the sampler.
        """
        if self._opened and not self._closed:
            return self
        self._psutil.prime(self.warmup_sec)
        self._opened = True
        self._closed = False
        logger.debug("metrics provider opened")
        return self

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._hardware = None
        logger.debug("metrics provider closed")

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    def __enter__(self) -> "PlatformMetricsProvider":
        return self.open()

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def cpu_percent(self) -> float:
        return self._psutil.cpu_percent()

    def ram_percent(self) -> float:
        return self._psutil.memory()[0]

    def ram_used_mb(self) -> int:
        return self._psutil.memory()[1]

    def ram_total_mb(self) -> int:
        return self._psutil.memory()[2]

    def disk_percent(self) -> float:
        return self._psutil.primary_disk()[0]

    def disk_used_gb(self) -> int:
        return self._psutil.primary_disk()[1]

    def disk_total_gb(self) -> int:
        return self._psutil.primary_disk()[2]

    def volumes(self) -> list[DiskInfo]:
        return self._psutil.volumes()

    def process_count(self) -> int:
        return self._psutil.process_count()

    def uptime_seconds(self) -> int:
        return self._psutil.uptime_seconds()

    def hostname(self) -> str:
        return self._psutil.hostname()

    def logical_cores(self) -> int:
        return self._psutil.logical_cores()

    def adapters(self) -> list[AdapterInfo]:
        return self._network.adapters()

    def network_counters(self) -> tuple[int, int]:
        """Cumulative (bytes_in, bytes_out) across operational external adapters."""
        return self._network.counters()

    def hardware_identity(self) -> HardwareIdentity:
        """Slow: may shell out to lspci, system_profiler, nvidia-smi and friends."""
        if self._hardware is None:
            self._hardware = HardwareCollector(probe=self._probe, timeout_sec=self._hardware_timeout_sec)
        return self._hardware.identity()

    def snapshot(self, net_down_kbps: float = 0.0, net_up_kbps: float = 0.0) -> MetricSnapshot:
        return MetricSnapshot(
            cpu_percent=self.cpu_percent(),
            ram_percent=self.ram_percent(),
            disk_percent=self.disk_percent(),
            net_down_kbps=net_down_kbps,
            net_up_kbps=net_up_kbps,
            process_count=self.process_count(),
            uptime_sec=float(self.uptime_seconds()),
            hostname=self.hostname(),
            timestamp=time.time(),
        )


def collect(full: bool = False) -> dict[str, Any]:
    """One-shot collection as a plain dict (CLI --json)."""
    with PlatformMetricsProvider() as provider:
        out: dict[str, Any] = provider.snapshot().to_dict()
        out["ram_used_mb"] = provider.ram_used_mb()
        out["ram_total_mb"] = provider.ram_total_mb()
        out["disk_used_gb"] = provider.disk_used_gb()
        out["disk_total_gb"] = provider.disk_total_gb()
        if full:
            out["volumes"] = [v.to_dict() for v in provider.volumes()]
            out["adapters"] = [a.to_dict() for a in provider.adapters()]
            out["hardware"] = provider.hardware_identity().to_dict()
        return out


def main() -> None:
    """Print current metrics once using rich."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.table import Table

    try:
        data = collect(full=True)
    except Exception as e:
        print(f"collection failed: {e}", file=sys.stderr)
        sys.exit(1)

    console = Console()

    table = Table(title=f"Host Metrics ({data['hostname'] or 'unknown'})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("CPU usage", format_percent(data["cpu_percent"]))
    table.add_row(
        "Memory",
        f"{data['ram_used_mb']} / {data['ram_total_mb']} MB ({format_percent(data['ram_percent'])})",
    )
    table.add_row(
        "Disk",
        f"{data['disk_used_gb']} / {data['disk_total_gb']} GB ({format_percent(data['disk_percent'])})",
    )
    table.add_row("Processes", str(data["process_count"]))
    table.add_row("Uptime", format_uptime(data["uptime_sec"]))
    console.print(Panel(table, title="Overview"))

    hw = data["hardware"]
    if any(hw.values()):
        h_table = Table(title="Hardware")
        h_table.add_column("Item", style="cyan")
        h_table.add_column("Value", style="yellow")
        h_table.add_row("CPU", hw["cpu_name"] or "-")
        h_table.add_row("GPU", hw["gpu_name"] or "-")
        h_table.add_row("Driver", hw["gpu_driver_version"] or "-")
        h_table.add_row("OS", hw["os_version"] or "-")
        console.print(Panel(h_table))

    if data["volumes"]:
        v_table = Table(title="Volumes")
        v_table.add_column("Mount", style="cyan")
        v_table.add_column("Used / Total GB", style="yellow")
        v_table.add_column("%", style="yellow")
        for v in data["volumes"]:
            v_table.add_row(v["mountpoint"], f"{v['used_gb']:.1f} / {v['total_gb']:.1f}", format_percent(v["percent"]))
        console.print(Panel(v_table))

    if data["adapters"]:
        a_table = Table(title="Network adapters")
        a_table.add_column("Name", style="cyan")
        a_table.add_column("IPv4", style="yellow")
        a_table.add_column("Link", style="yellow")
        a_table.add_column("Rx / Tx", style="yellow")
        for a in data["adapters"]:
            link = f"{a['speed_mbps']} Mb/s" if a["connected"] else "down"
            rx_tx = f"{format_bytes(a['bytes_in'])} / {format_bytes(a['bytes_out'])}"
            a_table.add_row(a["name"], a["ip_address"], link, rx_tx)
        console.print(Panel(a_table))


if __name__ == "__main__":
    main()
