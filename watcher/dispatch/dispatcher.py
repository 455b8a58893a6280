"""
watcher/dispatch/dispatcher.py
Routes validated items to the enabled sinks.

Events go to the calendar (with a same-day / same-title / 5-minute duplicate
check). Tasks fan out to every enabled reminder sink independently. Each
sink attempt stands alone: a failure is logged and reported for that sink
only, nothing is rolled back, and other sinks and items proceed.

Tasks are not deduplicated — if a batch is reprocessed after a partial
success, reminders are created again. Only calendar events are guarded.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence

from watcher.config import WatcherConfig
from watcher.errors import SinkError
from watcher.models.record import (
    ClassifiedItem,
    DispatchReport,
    ItemKind,
    OutcomeStatus,
    SinkOutcome,
)
from watcher.sinks.base import CalendarSink, NotificationSink, ReminderSink

logger = logging.getLogger(__name__)

DUPLICATE_WINDOW = timedelta(minutes=5)


class ActionDispatcher:

    def __init__(
        self,
        config:           WatcherConfig,
        calendar:         Optional[CalendarSink]     = None,
        due:              Optional[ReminderSink]     = None,
        apple_reminders:  Optional[ReminderSink]     = None,
        notifier:         Optional[NotificationSink] = None,
        clock:            Callable[[], datetime]     = datetime.now,
    ):
        self.config          = config
        self.calendar        = calendar
        self.due             = due
        self.apple_reminders = apple_reminders
        self.notifier        = notifier
        self.clock           = clock

    @classmethod
    def from_config(cls, config: WatcherConfig) -> "ActionDispatcher":
        """Wire the macOS sinks (Calendar, Due, Reminders) and ntfy."""
        from watcher.sinks.applescript import AppleCalendarSink, AppleRemindersSink
        from watcher.sinks.due_app import DueReminderSink
        from watcher.sinks.ntfy import NtfyNotifier

        return cls(
            config          = config,
            calendar        = AppleCalendarSink(),
            due             = DueReminderSink(),
            apple_reminders = AppleRemindersSink(),
            notifier        = NtfyNotifier(server=config.ntfy_server),
        )

    # ── DISPATCH ─────────────────────────────────────────────
    def dispatch(self, items: Sequence[ClassifiedItem], now: Optional[datetime] = None) -> DispatchReport:
        now    = now or self.clock()
        report = DispatchReport()

        for item in items:
            try:
                if item.kind == ItemKind.EVENT:
                    self._dispatch_event(item, report)
                elif item.kind == ItemKind.TASK:
                    self._dispatch_task(item, now, report)
                else:
                    logger.warning(f"Unknown item type '{item.kind}': {item.title}")
            except Exception as e:
                # one bad item never aborts the batch: the cursor must still advance
                logger.error(f"Dispatch failed for \"{item.title}\": {e}", exc_info=True)
                report.outcomes.append(SinkOutcome(item, 'dispatch', OutcomeStatus.FAILED, str(e)))

        if report.actions:
            report.notified = self._notify(report.actions)
        return report

    # ── EVENTS ───────────────────────────────────────────────
    def _dispatch_event(self, item: ClassifiedItem, report: DispatchReport) -> None:
        if not self.config.use_calendar or self.calendar is None:
            logger.debug(f"Skipping event (Calendar disabled): {item.title}")
            report.outcomes.append(SinkOutcome(item, 'calendar', OutcomeStatus.DISABLED))
            return

        try:
            if self.is_duplicate(item):
                logger.info(f"Skipping duplicate event: \"{item.title}\" on {item.start.isoformat()}")
                report.outcomes.append(SinkOutcome(item, 'calendar', OutcomeStatus.DUPLICATE))
                return

            calendar_id = self._choose_calendar()
            if calendar_id is None:
                msg = "No writable calendar found — set calendar_id in watcher_config.json"
                logger.error(msg)
                report.outcomes.append(SinkOutcome(item, 'calendar', OutcomeStatus.FAILED, msg))
                return

            self.calendar.create_event(
                title       = item.title,
                start       = item.start,
                end         = item.end or item.start + timedelta(hours=1),
                all_day     = item.all_day,
                calendar_id = calendar_id,
            )
        except SinkError as e:
            logger.error(f"Calendar save failed for \"{item.title}\": {e}")
            report.outcomes.append(SinkOutcome(item, 'calendar', OutcomeStatus.FAILED, str(e)))
            return
        except Exception as e:
            logger.error(f"Calendar save failed unexpectedly for \"{item.title}\": {e}", exc_info=True)
            report.outcomes.append(SinkOutcome(item, 'calendar', OutcomeStatus.FAILED, str(e)))
            return

        logger.info(f"Calendar saved: \"{item.title}\" {item.start.isoformat()} → {item.end.isoformat()}")
        report.outcomes.append(SinkOutcome(item, 'calendar', OutcomeStatus.CREATED, calendar_id))
        report.actions.append(f"Event: {item.title}")

    def is_duplicate(self, item: ClassifiedItem) -> bool:
        """Same local day, case-insensitive title, start within 5 minutes."""
        day_start = item.start.replace(hour=0, minute=0, second=0, microsecond=0)
        day_end   = day_start + timedelta(days=1)
        title     = item.title.lower()
        for existing in self.calendar.events_between(day_start, day_end):
            if (existing.title.lower() == title
                    and abs(existing.start - item.start) < DUPLICATE_WINDOW):
                return True
        return False

    def _choose_calendar(self) -> Optional[str]:
        """Configured calendar, else the system default, else any writable one."""
        writable = self.calendar.writable_calendars()
        configured = self.config.calendar_id
        if configured:
            if configured in writable:
                return configured
            logger.warning(f"Configured calendar '{configured}' not found or read-only")

        default = self.calendar.default_calendar()
        if default:
            return default

        if writable:
            logger.warning(
                f"No default calendar set — using \"{writable[0]}\". "
                "Set calendar_id in watcher_config.json to avoid this."
            )
            return writable[0]
        return None

    # ── TASKS ────────────────────────────────────────────────
    def _dispatch_task(self, item: ClassifiedItem, now: datetime, report: DispatchReport) -> None:
        minutes = item.due_minutes if item.due_minutes is not None else 30
        due     = now + timedelta(minutes=minutes)
        targets = [
            (self.config.use_due_reminders,   self.due,             'due',             'Due Reminder'),
            (self.config.use_apple_reminders, self.apple_reminders, 'apple_reminders', 'Apple Reminder'),
        ]

        handled   = False
        attempted = False
        for enabled, sink, sink_name, label in targets:
            if not enabled or sink is None:
                continue
            attempted = True
            try:
                sink.create_reminder(item.title, due, list_id=self.config.reminder_list_id)
            except SinkError as e:
                logger.error(f"{label} failed for \"{item.title}\": {e}")
                report.outcomes.append(SinkOutcome(item, sink_name, OutcomeStatus.FAILED, str(e)))
                continue
            except Exception as e:
                logger.error(f"{label} failed unexpectedly for \"{item.title}\": {e}", exc_info=True)
                report.outcomes.append(SinkOutcome(item, sink_name, OutcomeStatus.FAILED, str(e)))
                continue
            logger.info(f"{label} saved: \"{item.title}\" due in {minutes}m")
            report.outcomes.append(SinkOutcome(item, sink_name, OutcomeStatus.CREATED))
            report.actions.append(f"{label}: {item.title}")
            handled = True

        if not attempted:
            logger.debug(f"Skipping task (no reminder system enabled): {item.title}")
            report.outcomes.append(SinkOutcome(item, 'reminders', OutcomeStatus.DISABLED))
        elif not handled:
            logger.warning(f"Task not saved by any reminder system: {item.title}")

    # ── PUSH ─────────────────────────────────────────────────
    def _notify(self, actions: List[str]) -> bool:
        if not self.config.use_ntfy or self.notifier is None:
            return False
        if not self.config.ntfy_topic:
            logger.warning("ntfy enabled but ntfy_topic is empty — push skipped")
            return False
        try:
            self.notifier.send(self.config.ntfy_topic, actions)
        except SinkError as e:
            logger.error(f"Push notification failed: {e}")
            return False
        return True
