"""
tests/test_poller.py
Timer loop and wake-from-sleep detection.
"""

import itertools
import threading
from unittest.mock import MagicMock, patch

from watcher.poller import WAKE_THRESHOLD_SEC, Poller


def _orchestrator(interval=0.01):
    orch = MagicMock()
    orch.config.poll_interval = interval
    return orch


def test_is_wake():
    poller = Poller(_orchestrator())
    assert poller.is_wake(wall_elapsed=3600, mono_elapsed=60)
    assert not poller.is_wake(wall_elapsed=61, mono_elapsed=60)
    assert not poller.is_wake(wall_elapsed=60 + WAKE_THRESHOLD_SEC, mono_elapsed=60)


def test_startup_scan_then_timer_ticks():
    orch   = _orchestrator()
    ticked = threading.Event()
    orch.scan.side_effect = lambda trigger: trigger == 'timer' and ticked.set()

    poller = Poller(orch)
    poller.start()
    assert ticked.wait(5)
    poller.stop(timeout=5)

    triggers = [c.args[0] for c in orch.scan.call_args_list]
    assert triggers[0] == 'startup'
    assert 'timer' in triggers
    assert 'wake' not in triggers


def test_wall_clock_jump_scans_as_wake():
    orch  = _orchestrator()
    woken = threading.Event()
    orch.scan.side_effect = lambda trigger: trigger == 'wake' and woken.set()

    wall = itertools.count(step=3600)       # an hour passes per reading
    mono = itertools.count(step=1)
    poller = Poller(orch, wall_clock=lambda: next(wall), mono_clock=lambda: next(mono))
    with patch("watcher.poller.WAKE_SETTLE_SEC", 0):
        poller.start(scan_now=False)
        assert woken.wait(5)
        poller.stop(timeout=5)

    assert orch.scan.call_args_list[0].args == ('wake',)


def test_stop_ends_thread():
    poller = Poller(_orchestrator(interval=60))
    poller.start(scan_now=False)
    poller.stop(timeout=5)
    assert not poller._thread.is_alive()
