"""
tests/test_dispatcher.py
Routing, duplicate suppression, per-sink fan-out and isolation.
"""

from datetime import datetime, timedelta

from watcher.dispatch import ActionDispatcher
from watcher.errors import SinkAccessDenied, SinkWriteError
from watcher.models.record import ClassifiedItem, ExistingEvent, ItemKind, OutcomeStatus

from conftest import FakeCalendar, FakeNotifier, FakeReminders


def _event(title="Dinner", start=datetime(2025, 3, 14, 19, 0), all_day=False):
    return ClassifiedItem(kind=ItemKind.EVENT, title=title, start=start,
                          end=start + timedelta(hours=1), all_day=all_day)


def _task(title="Grab milk", due_minutes=30):
    return ClassifiedItem(kind=ItemKind.TASK, title=title, due_minutes=due_minutes)


def _dispatcher(config, **kw):
    sinks = {
        'calendar':        FakeCalendar(),
        'due':             FakeReminders(),
        'apple_reminders': FakeReminders(),
        'notifier':        FakeNotifier(),
    }
    sinks.update(kw.pop('sinks', {}))
    if kw:
        config = config.with_updates(**kw)
    return ActionDispatcher(config=config, **sinks), sinks


# ── EVENTS ───────────────────────────────────────────────────

def test_event_created_in_calendar(config, now):
    dispatcher, sinks = _dispatcher(config)
    report = dispatcher.dispatch([_event()], now=now)
    assert sinks['calendar'].created[0]['title'] == "Dinner"
    assert sinks['calendar'].created[0]['calendar_id'] == "Home"
    assert report.actions == ["Event: Dinner"]


def test_same_event_twice_creates_one_entry(config, now):
    dispatcher, sinks = _dispatcher(config)
    dispatcher.dispatch([_event()], now=now)
    report = dispatcher.dispatch([_event(title="DINNER", start=datetime(2025, 3, 14, 19, 3))], now=now)
    assert len(sinks['calendar'].created) == 1
    assert report.outcomes[0].status == OutcomeStatus.DUPLICATE
    assert report.actions == []


def test_duplicate_window_boundaries(config):
    existing = [ExistingEvent(title="Dinner", start=datetime(2025, 3, 14, 19, 0))]
    dispatcher, _ = _dispatcher(config, sinks={'calendar': FakeCalendar(existing=existing)})
    assert dispatcher.is_duplicate(_event(start=datetime(2025, 3, 14, 19, 4)))
    assert not dispatcher.is_duplicate(_event(start=datetime(2025, 3, 14, 19, 5)))
    assert not dispatcher.is_duplicate(_event(title="Lunch"))
    assert not dispatcher.is_duplicate(_event(start=datetime(2025, 3, 15, 19, 0)))


def test_calendar_disabled(config, now):
    dispatcher, sinks = _dispatcher(config, use_calendar=False)
    report = dispatcher.dispatch([_event()], now=now)
    assert sinks['calendar'].created == []
    assert report.outcomes[0].status == OutcomeStatus.DISABLED


def test_configured_calendar_preferred(config, now):
    dispatcher, sinks = _dispatcher(
        config, calendar_id="Family",
        sinks={'calendar': FakeCalendar(calendars=["Home", "Family"], default="Home")})
    dispatcher.dispatch([_event()], now=now)
    assert sinks['calendar'].created[0]['calendar_id'] == "Family"


def test_missing_configured_calendar_falls_back_to_default(config, now):
    dispatcher, sinks = _dispatcher(
        config, calendar_id="Gone",
        sinks={'calendar': FakeCalendar(calendars=["Home", "Work"], default="Work")})
    dispatcher.dispatch([_event()], now=now)
    assert sinks['calendar'].created[0]['calendar_id'] == "Work"


def test_no_default_falls_back_to_first_writable(config, now):
    dispatcher, sinks = _dispatcher(
        config, sinks={'calendar': FakeCalendar(calendars=["Work", "Home"])})
    dispatcher.dispatch([_event()], now=now)
    assert sinks['calendar'].created[0]['calendar_id'] == "Work"


def test_no_writable_calendar_fails_item(config, now):
    dispatcher, sinks = _dispatcher(config, sinks={'calendar': FakeCalendar(calendars=[])})
    report = dispatcher.dispatch([_event(), _task()], now=now)
    assert report.outcomes[0].status == OutcomeStatus.FAILED
    assert "calendar_id" in report.outcomes[0].detail


def test_calendar_access_denied_does_not_block_other_items(config, now):
    dispatcher, sinks = _dispatcher(
        config, use_due_reminders=True,
        sinks={'calendar': FakeCalendar(fail=SinkAccessDenied("-1743"))})
    report = dispatcher.dispatch([_event(), _task()], now=now)
    assert [o.status for o in report.outcomes] == [OutcomeStatus.FAILED, OutcomeStatus.CREATED]
    assert report.actions == ["Due Reminder: Grab milk"]


# ── TASKS ────────────────────────────────────────────────────

def test_task_fans_out_to_both_reminder_sinks(config, now):
    dispatcher, sinks = _dispatcher(
        config, use_due_reminders=True, use_apple_reminders=True, reminder_list_id="Errands")
    report = dispatcher.dispatch([_task(due_minutes=45)], now=now)
    due = now + timedelta(minutes=45)
    assert sinks['due'].created == [("Grab milk", due, "Errands")]
    assert sinks['apple_reminders'].created == [("Grab milk", due, "Errands")]
    assert report.actions == ["Due Reminder: Grab milk", "Apple Reminder: Grab milk"]


def test_one_reminder_sink_failing_does_not_block_the_other(config, now):
    dispatcher, sinks = _dispatcher(
        config, use_due_reminders=True, use_apple_reminders=True,
        sinks={'due': FakeReminders(fail=SinkWriteError("Due not installed"))})
    report = dispatcher.dispatch([_task()], now=now)
    assert sinks['apple_reminders'].created
    statuses = {o.sink: o.status for o in report.outcomes}
    assert statuses == {'due': OutcomeStatus.FAILED, 'apple_reminders': OutcomeStatus.CREATED}
    assert len(report.failures) == 1


def test_no_reminder_sink_enabled(config, now):
    dispatcher, sinks = _dispatcher(config)
    report = dispatcher.dispatch([_task()], now=now)
    assert sinks['due'].created == [] and sinks['apple_reminders'].created == []
    assert report.outcomes[0].sink == 'reminders'
    assert report.outcomes[0].status == OutcomeStatus.DISABLED


def test_tasks_are_not_deduplicated(config, now):
    dispatcher, sinks = _dispatcher(config, use_apple_reminders=True)
    dispatcher.dispatch([_task()], now=now)
    dispatcher.dispatch([_task()], now=now)
    assert len(sinks['apple_reminders'].created) == 2


# ── PUSH ─────────────────────────────────────────────────────

def test_push_sent_once_per_batch(config, now):
    dispatcher, sinks = _dispatcher(config, use_ntfy=True, ntfy_topic="fam",
                                    use_due_reminders=True)
    report = dispatcher.dispatch([_event(), _task()], now=now)
    assert sinks['notifier'].sent == [("fam", ["Event: Dinner", "Due Reminder: Grab milk"])]
    assert report.notified is True


def test_no_push_when_nothing_created(config, now):
    dispatcher, sinks = _dispatcher(config, use_ntfy=True, ntfy_topic="fam")
    dispatcher.dispatch([_task()], now=now)
    assert sinks['notifier'].sent == []


def test_push_failure_is_contained(config, now):
    dispatcher, _ = _dispatcher(config, use_ntfy=True, ntfy_topic="fam",
                                sinks={'notifier': FakeNotifier(fail=True)})
    report = dispatcher.dispatch([_event()], now=now)
    assert report.actions == ["Event: Dinner"]
    assert report.notified is False


# ── ITEM ISOLATION ───────────────────────────────────────────

def test_unrepresentable_due_time_fails_only_that_item(config, now):
    dispatcher, sinks = _dispatcher(config, use_apple_reminders=True)
    report = dispatcher.dispatch([_task("Someday", due_minutes=10 ** 10), _task()], now=now)
    assert sinks['apple_reminders'].created == [("Grab milk", now + timedelta(minutes=30), "")]
    assert report.outcomes[0].sink == 'dispatch'
    assert report.outcomes[0].status == OutcomeStatus.FAILED
    assert report.actions == ["Apple Reminder: Grab milk"]


def test_unexpected_sink_exception_is_contained(config, now):
    dispatcher, sinks = _dispatcher(
        config, use_due_reminders=True, use_apple_reminders=True,
        sinks={'due':      FakeReminders(fail=PermissionError("denied")),
               'calendar': FakeCalendar(fail=OSError("bad fd"))})
    report = dispatcher.dispatch([_event(), _task()], now=now)
    statuses = [(o.sink, o.status) for o in report.outcomes]
    assert statuses == [
        ('calendar',        OutcomeStatus.FAILED),
        ('due',             OutcomeStatus.FAILED),
        ('apple_reminders', OutcomeStatus.CREATED),
    ]
    assert sinks['apple_reminders'].created
