"""
watcher/sinks — where classified items end up.
"""

from watcher.sinks.base import CalendarSink, NotificationSink, ReminderSink

__all__ = [
    "CalendarSink",
    "NotificationSink",
    "ReminderSink",
]
