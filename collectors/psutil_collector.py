"""
Psutil-based collector: CPU, memory, primary disk, mounted volumes, process count,
uptime and host name. Every query is best-effort and returns a neutral value on failure.
"""
from __future__ import annotations

import os
import platform
import time
from typing import Any

import psutil

from collectors.base import BaseCollector, CollectorResult
from models import DiskInfo
from utils import get_logger

logger = get_logger(__name__)

_GB = 1024**3
_MB = 1024**2

# Pseudo / virtual filesystems that never represent a user-visible volume.
PSEUDO_FSTYPES = frozenset({
    "tmpfs", "devtmpfs", "sysfs", "proc", "cgroup", "cgroup2", "devpts",
    "securityfs", "pstore", "efivarfs", "bpf", "tracefs", "debugfs",
    "hugetlbfs", "mqueue", "fusectl", "configfs", "autofs", "squashfs",
    "overlay", "devfs", "map", "nsfs", "ramfs", "binfmt_misc",
})


def primary_volume_path() -> str:
    """Root of the system volume: '/' on POSIX, the system drive on Windows."""
    if platform.system() == "Windows":
        return os.environ.get("SystemDrive", "C:") + "\\"
    return "/"


class PsutilCollector(BaseCollector):
    name = "psutil"

    def __init__(self, disk_mounts_max: int = 8, root: str | None = None) -> None:
        self.disk_mounts_max = disk_mounts_max
        self.root = root or primary_volume_path()
        self._primed = False

    def prime(self, warmup_sec: float = 0.1) -> None:
        """Take the first CPU sample so the next cpu_percent() reports a real delta."""
        try:
            psutil.cpu_percent(interval=None)
            if warmup_sec > 0:
                time.sleep(warmup_sec)
            self._primed = True
        except (psutil.Error, OSError) as e:
            logger.debug("cpu prime failed: %s", e)

    @property
    def primed(self) -> bool:
        return self._primed

    # -------------------------------------------------------------------------
    # Individual queries
    # -------------------------------------------------------------------------

    def cpu_percent(self) -> float:
        try:
            return float(psutil.cpu_percent(interval=None))
        except (psutil.Error, OSError) as e:
            logger.debug("cpu_percent failed: %s", e)
            return 0.0

    def memory(self) -> tuple[float, int, int]:
        """(percent, used_mb, total_mb)."""
        try:
            vmem = psutil.virtual_memory()
            return float(vmem.percent), int(vmem.used // _MB), int(vmem.total // _MB)
        except (psutil.Error, OSError) as e:
            logger.debug("virtual_memory failed: %s", e)
            return 0.0, 0, 0

    def primary_disk(self) -> tuple[float, int, int]:
        """(percent, used_gb, total_gb) for the system volume."""
        try:
            usage = psutil.disk_usage(self.root)
            return float(usage.percent), int(usage.used // _GB), int(usage.total // _GB)
        except (psutil.Error, OSError) as e:
            logger.debug("disk_usage(%s) failed: %s", self.root, e)
            return 0.0, 0, 0

    def volumes(self) -> list[DiskInfo]:
        out: list[DiskInfo] = []
        try:
            partitions = psutil.disk_partitions(all=False)
        except (psutil.Error, OSError) as e:
            logger.debug("disk_partitions failed: %s", e)
            return out
        seen: set[str] = set()
        for part in partitions:
            if len(out) >= self.disk_mounts_max:
                break
            if part.fstype in PSEUDO_FSTYPES or part.mountpoint in seen:
                continue
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except (PermissionError, OSError):
                continue
            if usage.total <= 0:
                continue
            seen.add(part.mountpoint)
            out.append(DiskInfo(
                mountpoint=part.mountpoint,
                total_gb=usage.total / _GB,
                used_gb=usage.used / _GB,
                percent=float(usage.percent),
                device=part.device,
                fstype=part.fstype,
            ))
        return out

    def process_count(self) -> int:
        try:
            return len(psutil.pids())
        except (psutil.Error, OSError) as e:
            logger.debug("pids failed: %s", e)
            return 0

    def uptime_seconds(self) -> int:
        try:
            return max(0, int(time.time() - psutil.boot_time()))
        except (psutil.Error, OSError) as e:
            logger.debug("boot_time failed: %s", e)
            return 0

    def hostname(self) -> str:
        try:
            return platform.node()
        except OSError:
            return ""

    def logical_cores(self) -> int:
        try:
            return psutil.cpu_count(logical=True) or 0
        except (psutil.Error, OSError):
            return 0

    # -------------------------------------------------------------------------
    # Aggregate
    # -------------------------------------------------------------------------

    def collect(self) -> CollectorResult:
        data: dict[str, Any] = {"timestamp": time.time()}
        data["cpu_percent"] = self.cpu_percent()
        data["cpu_count"] = self.logical_cores()
        ram_pct, ram_used, ram_total = self.memory()
        data["ram_percent"] = ram_pct
        data["ram_used_mb"] = ram_used
        data["ram_total_mb"] = ram_total
        disk_pct, disk_used, disk_total = self.primary_disk()
        data["disk_percent"] = disk_pct
        data["disk_used_gb"] = disk_used
        data["disk_total_gb"] = disk_total
        data["volumes"] = [v.to_dict() for v in self.volumes()]
        data["process_count"] = self.process_count()
        data["uptime_sec"] = self.uptime_seconds()
        data["hostname"] = self.hostname()
        return CollectorResult(success=True, data=data)
