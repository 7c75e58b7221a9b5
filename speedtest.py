"""
Speed test worker: ping plus a streamed fixed-size download against a public
endpoint, run on a background task. Upload is approximated from download.
"""
from __future__ import annotations

import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable

import requests

from config import EngineSettings
from models import SpeedTestResult, SpeedTestState
from persistence import SpeedTestStore
from tasks import BackgroundTask
from utils import get_logger

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class SpeedTestWorker:
    """Single-flight speed test. State, progress and result are published under a lock;
    readers see either the previous or the next complete value."""

    def __init__(
        self,
        settings: EngineSettings | None = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
        store: SpeedTestStore | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self._session_factory = session_factory
        self.store = store or SpeedTestStore(self.settings.speedtest_path)
        self._lock = threading.Lock()
        self._state = SpeedTestState.IDLE
        self._progress = 0.0
        self._result: SpeedTestResult | None = None
        self._error: str | None = None
        self._last_saved: Path | None = None
        self._task: BackgroundTask | None = None

    # -------------------------------------------------------------------------
    # Published state
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SpeedTestState:
        with self._lock:
            return self._state

    @property
    def progress(self) -> float:
        with self._lock:
            return self._progress

    @property
    def result(self) -> SpeedTestResult | None:
        with self._lock:
            return self._result

    @property
    def error(self) -> str | None:
        with self._lock:
            return self._error

    @property
    def last_saved(self) -> Path | None:
        with self._lock:
            return self._last_saved

    def _publish(self, **fields: object) -> None:
        with self._lock:
            for name, value in fields.items():
                setattr(self, f"_{name}", value)

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    def start(self) -> bool:
        """Begin a run. Returns False (and does nothing) while one is already running."""
        with self._lock:
            if self._state == SpeedTestState.RUNNING:
                return False
            self._state = SpeedTestState.RUNNING
            self._progress = 0.0
            self._error = None
        try:
            self._task = BackgroundTask("speedtest", self._run).start()
        except RuntimeError as e:
            self._publish(state=SpeedTestState.FAILED, error=f"could not start: {e}")
            logger.warning("speed test could not start: %s", e)
            return False
        return True

    def join(self, timeout: float | None = None) -> bool:
        if self._task is None:
            return True
        return self._task.join(timeout)

    def save(self) -> Path | None:
        """Append the last completed result to the store. None when there is nothing to save."""
        with self._lock:
            result = self._result if self._state == SpeedTestState.DONE else None
        if result is None:
            return None
        path = self.store.append(result)
        self._publish(last_saved=path)
        logger.info("speed test result saved to %s", path)
        return path

    # -------------------------------------------------------------------------
    # Probe
    # -------------------------------------------------------------------------

    def _url(self, n_bytes: int) -> str:
        return f"{self.settings.speedtest_base_url.rstrip('/')}/__down?bytes={n_bytes}"

    def _ping(self, session: requests.Session) -> float:
        """Round trip of a zero-byte request in ms; 0.0 when it fails."""
        started = time.perf_counter()
        try:
            resp = session.head(self._url(0), timeout=self.settings.speedtest_timeout_sec)
            resp.close()
        except requests.RequestException as e:
            logger.warning("speed test ping failed: %s", e)
            return 0.0
        return (time.perf_counter() - started) * 1000.0

    def _download(self, session: requests.Session) -> tuple[int, float]:
        """Stream the payload, publishing progress. Returns (bytes_received, elapsed_sec)."""
        target = self.settings.speedtest_target_bytes
        received = 0
        started = time.perf_counter()
        with session.get(
            self._url(target),
            stream=True,
            timeout=self.settings.speedtest_timeout_sec,
        ) as resp:
            resp.raise_for_status()
            for chunk in resp.iter_content(chunk_size=self.settings.speedtest_chunk_bytes):
                if not chunk:
                    continue
                received += len(chunk)
                self._publish(progress=min(1.0, received / target) if target > 0 else 1.0)
        return received, time.perf_counter() - started

    def _run(self) -> None:
        try:
            self._probe()
        except Exception as e:
            self._publish(state=SpeedTestState.FAILED, error=str(e))
            raise

    def _probe(self) -> None:
        session = self._session_factory()
        session.headers.update({"User-Agent": self.settings.speedtest_user_agent})
        try:
            ping_ms = self._ping(session)
            try:
                received, elapsed = self._download(session)
            except requests.RequestException as e:
                logger.warning("speed test download failed: %s", e)
                self._publish(state=SpeedTestState.FAILED, error=str(e))
                return
        finally:
            session.close()

        if received <= 0 or elapsed <= 0:
            logger.warning("speed test received no data")
            self._publish(state=SpeedTestState.FAILED, error="no data received")
            return

        download_mbps = received * 8 / elapsed / 1e6
        result = SpeedTestResult(
            download_mbps=download_mbps,
            upload_mbps=download_mbps * self.settings.speedtest_upload_factor,
            ping_ms=ping_ms,
            timestamp=datetime.now().strftime(TIMESTAMP_FORMAT),
            server=self.settings.speedtest_server_label,
        )
        logger.info(
            "speed test done: %.1f Mbps down, %.1f Mbps up, %.0f ms",
            result.download_mbps, result.upload_mbps, result.ping_ms,
        )
        self._publish(result=result, progress=1.0, state=SpeedTestState.DONE)
