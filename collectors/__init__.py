"""
Collectors package: pluggable host metric sources behind PlatformMetricsProvider.
"""
from __future__ import annotations

from collectors.base import BaseCollector, CollectorResult
from collectors.psutil_collector import PsutilCollector
from collectors.network_collector import NetworkCollector
from collectors.hardware_collector import (
    DarwinHardwareProbe,
    GenericHardwareProbe,
    HardwareCollector,
    LinuxHardwareProbe,
    WindowsHardwareProbe,
    select_probe,
)

__all__ = [
    "BaseCollector",
    "CollectorResult",
    "PsutilCollector",
    "NetworkCollector",
    "HardwareCollector",
    "GenericHardwareProbe",
    "LinuxHardwareProbe",
    "DarwinHardwareProbe",
    "WindowsHardwareProbe",
    "select_probe",
]
