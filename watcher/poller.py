"""
watcher/poller.py
Periodic scan driver with wake-from-sleep detection.

While the machine sleeps the monotonic clock stops but wall-clock time keeps
going, so a tick whose wall-clock gap exceeds its monotonic gap by more than
WAKE_THRESHOLD_SEC means the machine just woke. The poller then waits a few
seconds for the network and disks to settle and scans with trigger 'wake'.
"""

import logging
import threading
import time
from typing import Callable, Optional

from watcher.orchestrator import ScanOrchestrator

logger = logging.getLogger(__name__)

WAKE_THRESHOLD_SEC = 30.0
WAKE_SETTLE_SEC    = 5.0


class Poller:

    def __init__(
        self,
        orchestrator:  ScanOrchestrator,
        wall_clock:    Callable[[], float] = time.time,
        mono_clock:    Callable[[], float] = time.monotonic,
    ):
        self.orchestrator = orchestrator
        self.wall_clock   = wall_clock
        self.mono_clock   = mono_clock
        self._stop        = threading.Event()
        self._reset       = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def interval(self) -> float:
        return self.orchestrator.config.poll_interval

    def start(self, scan_now: bool = True) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target = self._run,
            args   = (scan_now,),
            name   = 'watcher-poller',
            daemon = True,
        )
        self._thread.start()
        logger.info(f"Poller started (interval: {int(self.interval)}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        self._reset.set()
        if self._thread:
            self._thread.join(timeout)

    def restart(self) -> None:
        """Re-read the interval after a config change; the next tick uses it."""
        logger.info(f"Restarting poll timer (interval: {int(self.interval)}s)")
        self._reset.set()

    def is_wake(self, wall_elapsed: float, mono_elapsed: float) -> bool:
        return wall_elapsed - mono_elapsed > WAKE_THRESHOLD_SEC

    def _run(self, scan_now: bool) -> None:
        if scan_now:
            self.orchestrator.scan('startup')

        while not self._stop.is_set():
            wall_before = self.wall_clock()
            mono_before = self.mono_clock()

            self._reset.wait(self.interval)
            if self._stop.is_set():
                break
            if self._reset.is_set():
                self._reset.clear()
                continue

            wall_elapsed = self.wall_clock() - wall_before
            mono_elapsed = self.mono_clock() - mono_before
            if self.is_wake(wall_elapsed, mono_elapsed):
                logger.info("Wake detected")
                if self._stop.wait(WAKE_SETTLE_SEC):
                    break
                self.orchestrator.scan('wake')
            else:
                self.orchestrator.scan('timer')
