"""
Persistence: append-only JSON-lines record of completed speed test results.
"""
from __future__ import annotations

import json
import threading
from pathlib import Path

from models import SpeedTestResult
from utils import get_logger

logger = get_logger(__name__)


class SpeedTestStore:
    """One JSON object per line. Appends never rewrite earlier results."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def append(self, result: SpeedTestResult) -> Path:
        """Write one result; raises OSError if the file cannot be written."""
        line = json.dumps(result.to_dict(), sort_keys=True)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        return self.path

    def load(self) -> list[SpeedTestResult]:
        with self._lock:
            if not self.path.exists():
                return []
            try:
                with open(self.path, encoding="utf-8") as f:
                    lines = f.readlines()
            except OSError as e:
                logger.warning("Failed to read speed test results: %s", e)
                return []
        out: list[SpeedTestResult] = []
        for lineno, line in enumerate(lines, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except ValueError:
                logger.debug("skipping malformed line %d in %s", lineno, self.path)
                continue
            if not isinstance(data, dict):
                continue
            try:
                out.append(SpeedTestResult.from_dict(data))
            except (TypeError, ValueError):
                logger.debug("skipping invalid record on line %d in %s", lineno, self.path)
        return out

    def clear(self) -> None:
        with self._lock:
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
