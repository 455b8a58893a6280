"""
watcher/sinks/base.py
Abstract sink interfaces. A sink materializes a classified item somewhere
outside the process: a calendar, a reminders app, a push topic.

Sinks raise SinkAccessDenied / SinkWriteError; the dispatcher catches them
per item and per sink, so one failing sink never blocks another.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from watcher.models.record import ExistingEvent


class CalendarSink(ABC):

    name = 'calendar'

    @abstractmethod
    def events_between(self, start: datetime, end: datetime) -> List[ExistingEvent]:
        """Existing entries whose start falls in [start, end), all calendars."""
        ...

    @abstractmethod
    def writable_calendars(self) -> List[str]:
        """Identifiers of calendars that accept new events."""
        ...

    def default_calendar(self) -> Optional[str]:
        """The system default for new events, if the backend exposes one."""
        return None

    @abstractmethod
    def create_event(
        self,
        title:        str,
        start:        datetime,
        end:          datetime,
        all_day:      bool,
        calendar_id:  str,
    ) -> None:
        ...


class ReminderSink(ABC):

    name = 'reminder'

    @abstractmethod
    def create_reminder(self, title: str, due: datetime, list_id: str = '') -> None:
        """
        Create one reminder due at `due`, alerting at that time where supported.
        list_id picks a list on backends that have lists; empty means default.
        """
        ...


class NotificationSink(ABC):

    name = 'notification'

    @abstractmethod
    def send(self, topic: str, lines: List[str]) -> None:
        ...

