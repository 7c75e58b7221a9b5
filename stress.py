"""
CPU stress test: one busy worker per logical core for a bounded duration, with
a coordinator that publishes progress and supports early cancellation.
"""
from __future__ import annotations

import multiprocessing
import os
import threading
import time
from typing import Any

import psutil

from config import EngineSettings
from models import StressTestRun, StressTestState
from tasks import BackgroundTask
from utils import RetroForgeError, clamp, get_logger

logger = get_logger(__name__)

WORKER_KINDS = ("process", "thread")
_BATCH = 10000


def _burn(stop_event: Any, duration_sec: float) -> None:
    """Spin floating point arithmetic until stopped or duration elapses.

    Module level so it can be the target of a spawned process.
    """
    started = time.monotonic()
    x = 1.0
    while not stop_event.is_set():
        for _ in range(_BATCH):
            x = x * 1.0000001 + 0.0000001
            if x > 1e10:
                x = 1.0
        if time.monotonic() - started >= duration_sec:
            break


def detect_cores() -> int:
    """Logical core count: psutil, then os.cpu_count(), then 1."""
    try:
        n = psutil.cpu_count(logical=True)
    except (psutil.Error, OSError):
        n = None
    if not n:
        n = os.cpu_count()
    return n if n and n > 0 else 1


class StressTestCoordinator:
    """Idle -> Running -> Done. Running may be cancelled early, which still ends in Done.

    Workers are processes by default so they load every core in parallel; the
    "thread" kind exists for environments where spawning processes is unwanted.
    """

    def __init__(
        self,
        settings: EngineSettings | None = None,
        worker_kind: str | None = None,
        cpu_count: int | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        kind = worker_kind or self.settings.stress_worker_kind
        if kind not in WORKER_KINDS:
            raise RetroForgeError(f"unknown stress worker kind: {kind!r}")
        self.worker_kind = kind
        self._cpu_count = cpu_count
        self._lock = threading.Lock()
        self._state = StressTestState.IDLE
        self._progress = 0.0
        self._duration_sec = 0.0
        self._workers_n = 0
        self._run_id = 0
        self._stop_event: Any = None
        self._task: BackgroundTask | None = None

    # -------------------------------------------------------------------------
    # Published state
    # -------------------------------------------------------------------------

    @property
    def state(self) -> StressTestState:
        with self._lock:
            return self._state

    @property
    def progress(self) -> float:
        with self._lock:
            return self._progress

    @property
    def run(self) -> StressTestRun:
        with self._lock:
            return StressTestRun(
                state=self._state,
                progress=self._progress,
                duration_sec=self._duration_sec,
                workers=self._workers_n,
            )

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    def start(self, duration_sec: float | None = None) -> bool:
        """Launch a run. Returns False while one is already running (its duration is kept)
        or when the workers cannot be launched, in which case the state goes back to Idle.
        """
        if duration_sec is None:
            duration_sec = self.settings.stress_default_duration_sec
        if duration_sec <= 0:
            raise RetroForgeError(f"stress duration must be positive, got {duration_sec}")

        with self._lock:
            if self._state == StressTestState.RUNNING:
                return False
            cores = self._cpu_count if self._cpu_count and self._cpu_count > 0 else detect_cores()
            stop_event = multiprocessing.Event() if self.worker_kind == "process" else threading.Event()
            self._run_id += 1
            run_id = self._run_id
            self._stop_event = stop_event
            self._state = StressTestState.RUNNING
            self._progress = 0.0
            self._duration_sec = float(duration_sec)
            self._workers_n = cores

        workers: list[Any] = []
        try:
            for i in range(cores):
                workers.append(self._spawn(i, stop_event, float(duration_sec)))
            task = BackgroundTask(
                "stress-coordinator",
                lambda: self._coordinate(run_id, stop_event, workers, float(duration_sec)),
            ).start()
        except (RuntimeError, OSError) as e:
            stop_event.set()
            for w in workers:
                w.join()
            with self._lock:
                if self._run_id == run_id:
                    self._state = StressTestState.IDLE
                    self._progress = 0.0
                    self._workers_n = 0
            logger.warning("stress test could not start (%d of %d workers launched): %s", len(workers), cores, e)
            return False
        self._task = task
        logger.info("stress test started: %d %s workers for %ss", cores, self.worker_kind, duration_sec)
        return True

    def _spawn(self, index: int, stop_event: Any, duration_sec: float) -> Any:
        name = f"stress-worker-{index}"
        if self.worker_kind == "process":
            worker: Any = multiprocessing.Process(target=_burn, args=(stop_event, duration_sec), name=name, daemon=True)
        else:
            worker = threading.Thread(target=_burn, args=(stop_event, duration_sec), name=name, daemon=True)
        worker.start()
        return worker

    def _coordinate(self, run_id: int, stop_event: Any, workers: list[Any], duration_sec: float) -> None:
        started = time.monotonic()
        poll = self.settings.stress_poll_interval_sec
        try:
            while True:
                progress = clamp((time.monotonic() - started) / duration_sec, 0.0, 1.0)
                self._publish_progress(run_id, progress)
                if progress >= 1.0 or stop_event.is_set():
                    break
                stop_event.wait(poll)
        finally:
            stop_event.set()
            for w in workers:
                w.join()
            with self._lock:
                if self._run_id == run_id:
                    self._progress = 1.0
                    self._state = StressTestState.DONE
            logger.info("stress test finished after %.1fs", time.monotonic() - started)

    def _publish_progress(self, run_id: int, progress: float) -> None:
        with self._lock:
            if self._run_id == run_id and self._state == StressTestState.RUNNING:
                self._progress = progress

    def stop(self, wait: bool = False, timeout: float | None = None) -> bool:
        """Request cancellation. No-op (False) unless running."""
        with self._lock:
            if self._state != StressTestState.RUNNING:
                return False
            stop_event = self._stop_event
        stop_event.set()
        logger.info("stress test stop requested")
        if wait:
            self.join(timeout)
        return True

    def join(self, timeout: float | None = None) -> bool:
        if self._task is None:
            return True
        return self._task.join(timeout)
