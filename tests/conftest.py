"""
tests/conftest.py
Shared fakes: an in-memory message store, recording sinks, and a
synthetic chat.db builder. No real messages — all content is invented.
"""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import List

import pytest

from watcher.config import WatcherConfig
from watcher.errors import SinkWriteError
from watcher.models.record import ExistingEvent, Message
from watcher.parsers.chat_db_reader import APPLE_EPOCH_OFFSET
from watcher.sinks.base import CalendarSink, NotificationSink, ReminderSink

CONTACT = "5551234567"


def make_msg(row_id: int, text: str = "hi", from_me: bool = False) -> Message:
    return Message(
        row_id     = row_id,
        text       = text,
        timestamp  = "2025-03-10 09:00:00",
        is_from_me = from_me,
    )


# ── FAKE STORE ───────────────────────────────────────────────

class FakeReader:
    """Mirrors ChatDbReader's query semantics over a list of Messages."""

    def __init__(self, messages=(), max_id=None):
        self.messages = list(messages)
        self.max_id   = max_id
        self.db_path  = Path("/fake/chat.db")
        self.error    = None      # raise this from every query when set

    def _check(self):
        if self.error is not None:
            raise self.error

    def fetch_messages(self, row_id_op, row_id, contact, include_own=True,
                       limit=None, descending=False) -> List[Message]:
        self._check()
        if row_id_op == '>':
            rows = [m for m in self.messages if m.row_id > row_id]
        else:
            rows = [m for m in self.messages if m.row_id < row_id]
        if not include_own:
            rows = [m for m in rows if not m.is_from_me]
        rows.sort(key=lambda m: m.row_id, reverse=descending)
        return rows[:limit] if limit is not None else rows

    def max_row_id(self):
        self._check()
        if self.max_id is not None:
            return self.max_id
        return max((m.row_id for m in self.messages), default=None)

    def recent_contact_row_ids(self, contact, limit=5):
        self._check()
        ids = sorted((m.row_id for m in self.messages if not m.is_from_me), reverse=True)
        return ids[:limit]

    def check_access(self):
        return self.error is None


# ── RECORDING SINKS ──────────────────────────────────────────

class FakeCalendar(CalendarSink):

    def __init__(self, calendars=("Home",), default=None, existing=(), fail=None):
        self.calendars = list(calendars)
        self.default   = default
        self.existing  = list(existing)
        self.fail      = fail
        self.created   = []

    def events_between(self, start, end):
        return [e for e in self.existing if start <= e.start < end]

    def writable_calendars(self):
        return list(self.calendars)

    def default_calendar(self):
        return self.default

    def create_event(self, title, start, end, all_day, calendar_id):
        if self.fail is not None:
            raise self.fail
        self.created.append({
            'title': title, 'start': start, 'end': end,
            'all_day': all_day, 'calendar_id': calendar_id,
        })
        self.existing.append(ExistingEvent(title=title, start=start))


class FakeReminders(ReminderSink):

    def __init__(self, fail=None):
        self.fail    = fail
        self.created = []

    def create_reminder(self, title, due, list_id=''):
        if self.fail is not None:
            raise self.fail
        self.created.append((title, due, list_id))


class FakeNotifier(NotificationSink):

    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, topic, lines):
        if self.fail:
            raise SinkWriteError("push down")
        self.sent.append((topic, list(lines)))


# ── FIXTURES ─────────────────────────────────────────────────

@pytest.fixture
def now():
    return datetime(2025, 3, 10, 9, 0, 0)      # a Monday


@pytest.fixture
def config(tmp_path):
    return WatcherConfig.from_dict({
        "contact_phone": CONTACT,
        "state_file":    str(tmp_path / "state"),
        "chat_db_path":  str(tmp_path / "chat.db"),
    })


def apple_date(dt: datetime) -> int:
    """Nanoseconds since 2001-01-01 UTC, as modern chat.db stores it."""
    return (int(dt.timestamp()) - APPLE_EPOCH_OFFSET) * 1_000_000_000


@pytest.fixture
def chat_db(tmp_path):
    """
    Build a minimal chat.db with the three tables the reader joins.
    Returns (path, add) where add(rowid, text, from_me=0, chat=..., assoc=0).
    """
    path = tmp_path / "chat.db"
    conn = sqlite3.connect(path)
    conn.executescript("""
        CREATE TABLE message (
            ROWID INTEGER PRIMARY KEY,
            text TEXT,
            date INTEGER,
            is_from_me INTEGER DEFAULT 0,
            associated_message_type INTEGER DEFAULT 0
        );
        CREATE TABLE chat (ROWID INTEGER PRIMARY KEY, chat_identifier TEXT);
        CREATE TABLE chat_message_join (chat_id INTEGER, message_id INTEGER);
        INSERT INTO chat VALUES (1, '+15551234567');
        INSERT INTO chat VALUES (2, '+15559999999');
    """)
    conn.commit()

    def add(rowid, text, from_me=0, chat=1, assoc=0, when=datetime(2025, 3, 10, 12, 0)):
        conn.execute(
            "INSERT INTO message VALUES (?, ?, ?, ?, ?)",
            (rowid, text, apple_date(when), from_me, assoc),
        )
        conn.execute("INSERT INTO chat_message_join VALUES (?, ?)", (chat, rowid))
        conn.commit()

    yield path, add
    conn.close()
