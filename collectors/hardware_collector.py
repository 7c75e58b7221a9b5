"""
Hardware identity collector: CPU name, GPU name and driver, OS version.
One probe per platform, chosen at startup; all shell out with a timeout and
degrade to empty strings.
"""
from __future__ import annotations

import json
import platform
import re
import subprocess
from pathlib import Path

from collectors.base import BaseCollector, CollectorResult
from models import HardwareIdentity
from utils import get_logger

logger = get_logger(__name__)


def _run(cmd: list[str], timeout_sec: int) -> str:
    """Full stdout of cmd, or '' if it is missing, fails or times out."""
    try:
        out = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout_sec,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError, PermissionError, OSError) as e:
        logger.debug("%s failed: %s", cmd[0], e)
        return ""
    if out.returncode != 0:
        return ""
    return out.stdout or ""


def _first_line(text: str) -> str:
    for line in text.splitlines():
        line = line.strip()
        if line:
            return line
    return ""


def _nvidia_smi(timeout_sec: int) -> tuple[str, str]:
    """(gpu_name, driver_version) from nvidia-smi, or ('', '')."""
    line = _first_line(_run(
        ["nvidia-smi", "--query-gpu=name,driver_version", "--format=csv,noheader"],
        timeout_sec,
    ))
    if not line:
        return "", ""
    parts = [p.strip() for p in line.split(",")]
    return parts[0], (parts[1] if len(parts) > 1 else "")


class GenericHardwareProbe:
    """Fallback probe using only the platform module."""

    system = "generic"

    def __init__(self, timeout_sec: int = 5) -> None:
        self.timeout_sec = timeout_sec

    def cpu_name(self) -> str:
        return platform.processor() or platform.machine()

    def gpu(self) -> tuple[str, str]:
        return _nvidia_smi(self.timeout_sec)

    def os_version(self) -> str:
        return platform.platform()

    def identity(self) -> HardwareIdentity:
        gpu_name, driver = self.gpu()
        return HardwareIdentity(
            cpu_name=self.cpu_name().strip(),
            gpu_name=gpu_name.strip(),
            gpu_driver_version=driver.strip(),
            os_version=self.os_version().strip(),
        )


class LinuxHardwareProbe(GenericHardwareProbe):
    system = "Linux"

    def __init__(self, timeout_sec: int = 5, proc_root: str = "/proc", etc_root: str = "/etc") -> None:
        super().__init__(timeout_sec)
        self.proc_root = Path(proc_root)
        self.etc_root = Path(etc_root)

    def cpu_name(self) -> str:
        try:
            text = (self.proc_root / "cpuinfo").read_text(encoding="utf-8", errors="replace")
        except OSError:
            return super().cpu_name()
        for line in text.splitlines():
            if line.startswith("model name") and ":" in line:
                return line.split(":", 1)[1].strip()
        return super().cpu_name()

    def gpu(self) -> tuple[str, str]:
        name, driver = _nvidia_smi(self.timeout_sec)
        if not name:
            for line in _run(["lspci"], self.timeout_sec).splitlines():
                if re.search(r"VGA|3D|Display", line, re.I):
                    name = line.split(": ", 1)[-1].strip()
                    break
        if not driver:
            for line in _run(["glxinfo"], self.timeout_sec).splitlines():
                if "OpenGL version" in line:
                    driver = line.split()[-1]
                    break
        return name, driver

    def os_version(self) -> str:
        try:
            text = (self.etc_root / "os-release").read_text(encoding="utf-8", errors="replace")
        except OSError:
            return platform.release()
        for line in text.splitlines():
            if line.startswith("PRETTY_NAME="):
                return line.split("=", 1)[1].strip().strip('"')
        return platform.release()


class DarwinHardwareProbe(GenericHardwareProbe):
    system = "Darwin"

    def cpu_name(self) -> str:
        name = _first_line(_run(["sysctl", "-n", "machdep.cpu.brand_string"], self.timeout_sec))
        return name or super().cpu_name()

    def gpu(self) -> tuple[str, str]:
        raw = _run(["system_profiler", "SPDisplaysDataType", "-json"], self.timeout_sec)
        if not raw:
            return "", ""
        try:
            displays = json.loads(raw).get("SPDisplaysDataType", [])
        except ValueError:
            return "", ""
        if not displays:
            return "", ""
        first = displays[0]
        name = first.get("sppci_model", "")
        metal = first.get("spdisplays_mtlgpufamilysupport", "") or first.get("spdisplays_metal", "")
        return name, metal.replace("spdisplays_", "").replace("metal", "Metal ").strip()

    def os_version(self) -> str:
        version = _first_line(_run(["sw_vers", "-productVersion"], self.timeout_sec))
        return version or platform.mac_ver()[0]


class WindowsHardwareProbe(GenericHardwareProbe):
    system = "Windows"

    def _cim(self, cls: str, prop: str) -> str:
        return _first_line(_run(
            ["powershell", "-NoProfile", "-Command",
             f"(Get-CimInstance {cls} | Select-Object -First 1).{prop}"],
            self.timeout_sec,
        ))

    def cpu_name(self) -> str:
        return self._cim("Win32_Processor", "Name") or super().cpu_name()

    def gpu(self) -> tuple[str, str]:
        name, driver = _nvidia_smi(self.timeout_sec)
        if name:
            return name, driver
        return self._cim("Win32_VideoController", "Name"), self._cim("Win32_VideoController", "DriverVersion")

    def os_version(self) -> str:
        return platform.version()


_PROBES: dict[str, type[GenericHardwareProbe]] = {
    "Linux": LinuxHardwareProbe,
    "Darwin": DarwinHardwareProbe,
    "Windows": WindowsHardwareProbe,
}


def select_probe(system: str | None = None, timeout_sec: int = 5) -> GenericHardwareProbe:
    """Probe for the running (or given) platform; generic fallback otherwise."""
    system = system or platform.system()
    return _PROBES.get(system, GenericHardwareProbe)(timeout_sec=timeout_sec)


class HardwareCollector(BaseCollector):
    name = "hardware"

    def __init__(self, probe: GenericHardwareProbe | None = None, timeout_sec: int = 5) -> None:
        self.probe = probe or select_probe(timeout_sec=timeout_sec)

    def identity(self) -> HardwareIdentity:
        result = self.collect_safe()
        return HardwareIdentity(
            cpu_name=result.get("cpu_name", ""),
            gpu_name=result.get("gpu_name", ""),
            gpu_driver_version=result.get("gpu_driver_version", ""),
            os_version=result.get("os_version", ""),
        )

    def collect(self) -> CollectorResult:
        return CollectorResult(success=True, data=self.probe.identity().to_dict())
