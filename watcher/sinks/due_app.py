"""
watcher/sinks/due_app.py
Due (due.app) reminders through its x-callback URL scheme.

Fire-and-forget: `open -g` hands the URL to Due without bringing it to the
foreground. Success means the URL was delivered, not that Due saved it.
"""

import logging
import shutil
import subprocess
import urllib.parse
from datetime import datetime
from typing import Callable

from watcher.errors import SinkWriteError
from watcher.sinks.base import ReminderSink

logger = logging.getLogger(__name__)

DUE_ADD_URL = "due://x-callback-url/add"


def build_due_url(title: str, seconds_later: int) -> str:
    query = urllib.parse.urlencode(
        {'title': title, 'secslater': int(seconds_later)},
        quote_via=urllib.parse.quote,
    )
    return f"{DUE_ADD_URL}?{query}"


class DueReminderSink(ReminderSink):

    name = 'due'

    def __init__(
        self,
        clock:    Callable[[], datetime] = datetime.now,
        timeout:  float                  = 15.0,
    ):
        self.clock   = clock
        self.timeout = timeout

    def create_reminder(self, title: str, due: datetime, list_id: str = '') -> None:
        seconds = max(0, int((due - self.clock()).total_seconds()))
        url = build_due_url(title, seconds)

        if shutil.which('open') is None:
            raise SinkWriteError("`open` not found — the Due sink requires macOS")
        try:
            result = subprocess.run(
                ['open', '-g', url],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise SinkWriteError(f"Due URL open timed out after {self.timeout:.0f}s") from e
        except OSError as e:
            raise SinkWriteError(f"Due URL open failed: {e}") from e

        if result.returncode != 0:
            err = result.stderr.strip()
            if 'no application' in err.lower():
                raise SinkWriteError(f"Due app does not appear to be installed: {err}")
            raise SinkWriteError(f"Due URL open failed (rc={result.returncode}): {err}")
        logger.debug(f"Due reminder opened: \"{title}\" in {seconds // 60}m")
