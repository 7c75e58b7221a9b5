"""
Network collector: aggregate byte counters and per-adapter details via psutil.
Loopback and non-operational adapters are left out of the aggregate.
"""
from __future__ import annotations

import socket
from typing import Any

import psutil

from collectors.base import BaseCollector, CollectorResult
from models import AdapterInfo
from utils import get_logger

logger = get_logger(__name__)

_LOOPBACK_NAMES = ("lo", "lo0")


def is_loopback(name: str, stats: Any = None) -> bool:
    if name in _LOOPBACK_NAMES or name.lower().startswith("loopback"):
        return True
    flags = getattr(stats, "flags", "") or ""
    return "loopback" in flags.split(",")


class NetworkCollector(BaseCollector):
    name = "network"

    def __init__(self, max_adapters: int = 50) -> None:
        self.max_adapters = max_adapters

    def _if_stats(self) -> dict[str, Any]:
        try:
            return psutil.net_if_stats()
        except (psutil.Error, OSError) as e:
            logger.debug("net_if_stats failed: %s", e)
            return {}

    def counters(self) -> tuple[int, int]:
        """Cumulative (bytes_in, bytes_out) over operational, non-loopback adapters."""
        try:
            per_nic = psutil.net_io_counters(pernic=True)
        except (psutil.Error, OSError) as e:
            logger.debug("net_io_counters failed: %s", e)
            return 0, 0
        if_stats = self._if_stats()
        bytes_in = 0
        bytes_out = 0
        for name, io in per_nic.items():
            stats = if_stats.get(name)
            if is_loopback(name, stats):
                continue
            if stats is not None and not stats.isup:
                continue
            bytes_in += io.bytes_recv
            bytes_out += io.bytes_sent
        return bytes_in, bytes_out

    def adapters(self) -> list[AdapterInfo]:
        """Adapters carrying an IPv4 address, loopback excluded."""
        try:
            addrs = psutil.net_if_addrs()
        except (psutil.Error, OSError) as e:
            logger.debug("net_if_addrs failed: %s", e)
            return []
        if_stats = self._if_stats()
        try:
            per_nic = psutil.net_io_counters(pernic=True)
        except (psutil.Error, OSError):
            per_nic = {}

        out: list[AdapterInfo] = []
        for name, entries in addrs.items():
            stats = if_stats.get(name)
            if is_loopback(name, stats):
                continue
            ipv4 = next((a.address for a in entries if a.family == socket.AF_INET), None)
            if ipv4 is None:
                continue
            io = per_nic.get(name)
            out.append(AdapterInfo(
                name=name,
                ip_address=ipv4,
                bytes_in=io.bytes_recv if io else 0,
                bytes_out=io.bytes_sent if io else 0,
                speed_mbps=int(getattr(stats, "speed", 0) or 0),
                connected=bool(getattr(stats, "isup", False)),
            ))
            if len(out) >= self.max_adapters:
                break
        return out

    def collect(self) -> CollectorResult:
        bytes_in, bytes_out = self.counters()
        return CollectorResult(success=True, data={
            "bytes_in": bytes_in,
            "bytes_out": bytes_out,
            "adapters": [a.to_dict() for a in self.adapters()],
        })
