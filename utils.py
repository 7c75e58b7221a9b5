"""
Shared utilities: logging, formatting of rates/uptime/bytes, env helpers, clamp.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class RetroForgeError(Exception):
    """Raised for invalid arguments to the core (never for monitoring failures)."""


def setup_logging(
    level: str | int = "INFO",
    log_file: str | Path | None = None,
    format_string: str = LOG_FORMAT,
    date_format: str = LOG_DATE_FORMAT,
) -> None:
    """Configure root logger and optional file handler."""
    log_level = getattr(logging, level.upper(), logging.INFO) if isinstance(level, str) else level
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
    logging.basicConfig(
        level=log_level,
        format=format_string,
        datefmt=date_format,
        handlers=handlers,
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


# -----------------------------------------------------------------------------
# Formatting
# -----------------------------------------------------------------------------

def format_bytes(n: int | float) -> str:
    """Human-readable bytes (e.g. 1.5 GB)."""
    if n < 0:
        return "0 B"
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(n) < 1024:
            return f"{n:.1f} {unit}"
        n /= 1024
    return f"{n:.1f} PB"


def format_rate_kbps(kbps: float) -> str:
    """Throughput given in KB/s, promoted to MB/s above 1024."""
    if kbps < 0:
        kbps = 0.0
    if kbps >= 1024:
        return f"{kbps / 1024:.1f} MB/s"
    return f"{kbps:.1f} KB/s"


def format_uptime(seconds: float) -> str:
    """Uptime as 'Nd HHh MMm' (e.g. 2d 05h 30m)."""
    s = max(0, int(seconds))
    days, s = divmod(s, 86400)
    hours, s = divmod(s, 3600)
    mins = s // 60
    return f"{days}d {hours:02d}h {mins:02d}m"


def format_percent(value: float, decimals: int = 1) -> str:
    return f"{value:.{decimals}f}%"


# -----------------------------------------------------------------------------
# Config / env helpers
# -----------------------------------------------------------------------------

def env_int(key: str, default: int = 0) -> int:
    try:
        return int(os.environ.get(key, default))
    except ValueError:
        return default


def env_float(key: str, default: float = 0.0) -> float:
    try:
        return float(os.environ.get(key, default))
    except ValueError:
        return default


def env_str(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
