"""
watcher/sinks/applescript.py
Calendar.app and Reminders.app sinks, driven through osascript.

Dates are built field by field (year/month/day/time) instead of from a
date string, so scripts do not depend on the user's locale settings.
"""

from __future__ import annotations

import logging
import subprocess
from datetime import datetime, timedelta
from typing import List

from watcher.errors import SinkAccessDenied, SinkWriteError
from watcher.models.record import ExistingEvent
from watcher.sinks.base import CalendarSink, ReminderSink

logger = logging.getLogger(__name__)

# osascript error raised when the user has not allowed automation of the app
_NOT_AUTHORIZED = ('-1743', 'not authorized', 'not allowed')


def run_script(script: str, timeout: float = 30.0) -> str:
    """Run an AppleScript via osascript. Returns stdout; raises SinkError."""
    try:
        result = subprocess.run(
            ["osascript", "-e", script],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise SinkWriteError(f"AppleScript timed out after {timeout:.1f}s") from e
    except FileNotFoundError as e:
        raise SinkWriteError("osascript not found — AppleScript sinks require macOS") from e
    except OSError as e:
        raise SinkWriteError(f"osascript could not be started: {e}") from e

    if result.returncode != 0:
        err = result.stderr.strip()
        if any(marker in err.lower() for marker in _NOT_AUTHORIZED):
            raise SinkAccessDenied(f"Automation access denied: {err}")
        raise SinkWriteError(f"AppleScript failed (rc={result.returncode}): {err}")
    return result.stdout.strip("\r\n")


def escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", " ")


def date_block(var: str, dt: datetime) -> str:
    """AppleScript lines that set `var` to `dt` (local time)."""
    seconds = dt.hour * 3600 + dt.minute * 60 + dt.second
    return (
        f"set {var} to current date\n"
        f"set day of {var} to 1\n"
        f"set year of {var} to {dt.year}\n"
        f"set month of {var} to {dt.month}\n"
        f"set day of {var} to {dt.day}\n"
        f"set time of {var} to {seconds}\n"
    )


# ── CALENDAR ─────────────────────────────────────────────────

class AppleCalendarSink(CalendarSink):
    """Calendar identifiers are calendar names, as Calendar.app scripts them."""

    name = 'calendar'

    def __init__(self, timeout: float = 60.0):
        self.timeout = timeout

    def events_between(self, start: datetime, end: datetime) -> List[ExistingEvent]:
        script = (
            date_block("rangeStart", start)
            + date_block("rangeEnd", end)
            + '''
            set outputLines to {}
            tell application "Calendar"
                repeat with cal in every calendar
                    repeat with evt in (every event of cal whose start date >= rangeStart and start date < rangeEnd)
                        set d to start date of evt
                        set end of outputLines to (summary of evt as text) & tab & (year of d as integer) & tab & (month of d as integer) & tab & (day of d) & tab & (time of d)
                    end repeat
                end repeat
            end tell
            set AppleScript's text item delimiters to linefeed
            return outputLines as text
            '''
        )
        raw = run_script(script, timeout=self.timeout)
        return parse_event_lines(raw)

    def writable_calendars(self) -> List[str]:
        script = '''
        tell application "Calendar"
            set calNames to name of every calendar whose writable is true
        end tell
        set AppleScript's text item delimiters to linefeed
        return calNames as text
        '''
        raw = run_script(script, timeout=self.timeout)
        return [line.strip() for line in raw.splitlines() if line.strip()]

    def create_event(
        self,
        title:        str,
        start:        datetime,
        end:          datetime,
        all_day:      bool,
        calendar_id:  str,
    ) -> None:
        script = (
            date_block("startDate", start)
            + date_block("endDate", end)
            + f'''
            tell application "Calendar"
                set targetCal to calendar "{escape(calendar_id)}"
                set newEvent to make new event at end of events of targetCal with properties {{summary:"{escape(title)}", start date:startDate, end date:endDate, allday event:{'true' if all_day else 'false'}}}
                return uid of newEvent as text
            end tell
            '''
        )
        uid = run_script(script, timeout=self.timeout)
        logger.debug(f"Calendar event created in '{calendar_id}' (uid={uid})")


def parse_event_lines(raw: str) -> List[ExistingEvent]:
    """Parse 'summary<TAB>year<TAB>month<TAB>day<TAB>seconds' lines."""
    events: List[ExistingEvent] = []
    for line in (raw or '').splitlines():
        parts = line.split('\t')
        if len(parts) != 5:
            continue
        title, year, month, day, seconds = parts
        try:
            start = datetime(int(year), int(month), int(day)) + timedelta(seconds=int(seconds))
        except ValueError:
            logger.debug(f"Unparseable calendar row skipped: {line[:80]!r}")
            continue
        events.append(ExistingEvent(title=title, start=start))
    return events


# ── REMINDERS ────────────────────────────────────────────────

class AppleRemindersSink(ReminderSink):

    name = 'apple_reminders'

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    def create_reminder(self, title: str, due: datetime, list_id: str = '') -> None:
        if list_id:
            target = f'set targetList to list "{escape(list_id)}"'
        else:
            target = 'set targetList to default list'
        script = (
            date_block("dueDate", due)
            + f'''
            tell application "Reminders"
                {target}
                set newRem to make new reminder at end of reminders of targetList with properties {{name:"{escape(title)}", due date:dueDate, remind me date:dueDate}}
                return id of newRem as text
            end tell
            '''
        )
        rid = run_script(script, timeout=self.timeout)
        logger.debug(f"Reminder created (id={rid})")
