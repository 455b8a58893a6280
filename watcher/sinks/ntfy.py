"""
watcher/sinks/ntfy.py
Push notification through an ntfy topic (https://ntfy.sh or self-hosted).
One POST per scan with the newline-joined list of actions taken.
"""

import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import List

from watcher.errors import SinkWriteError
from watcher.sinks.base import NotificationSink

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = 'iMessage Watcher'


class NtfyNotifier(NotificationSink):

    name = 'ntfy'

    def __init__(self, server: str = 'https://ntfy.sh', timeout_sec: float = 10):
        self.server      = server.rstrip('/')
        self.timeout_sec = timeout_sec

    def topic_url(self, topic: str) -> str:
        return f"{self.server}/{urllib.parse.quote(topic, safe='')}"

    def send(self, topic: str, lines: List[str]) -> None:
        if not topic:
            raise SinkWriteError("ntfy topic is not configured")
        req = urllib.request.Request(
            self.topic_url(topic),
            data    = '\n'.join(lines).encode('utf-8'),
            headers = {'Title': NOTIFICATION_TITLE},
            method  = 'POST',
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_sec) as resp:
                resp.read()
        except urllib.error.URLError as e:
            raise SinkWriteError(f"ntfy error: {e}") from e
        except OSError as e:
            raise SinkWriteError(f"ntfy connection error: {e}") from e
        logger.debug(f"ntfy: sent {len(lines)} line(s)")
