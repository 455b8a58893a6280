"""
watcher/errors.py
Failure taxonomy for the scan pipeline.

Store and classifier errors abort a scan without moving the cursor.
Sink errors fail one item on one sink only. Per-item validation problems
and duplicate skips are not exceptions — see ItemVerdict / OutcomeStatus.
"""


class WatcherError(Exception):
    """Base class for every error raised by the watcher pipeline."""


# ── MESSAGE STORE ────────────────────────────────────────────

class StoreUnavailable(WatcherError):
    """chat.db could not be opened or read (permission denied, missing, corrupt)."""


class QueryError(WatcherError):
    """Query could not be prepared or run (schema mismatch, bad predicate)."""


# ── CLASSIFIER ───────────────────────────────────────────────

class ClassifierError(WatcherError):
    """Whole-batch classification failure. The batch is retried next cycle."""


class ClassifierNetworkError(ClassifierError):
    """LLM endpoint unreachable, timed out, or returned an HTTP error."""


class ClassifierParseError(ClassifierError):
    """LLM reply (or its JSON envelope) could not be parsed."""


# ── SINKS ────────────────────────────────────────────────────

class SinkError(WatcherError):
    """A single sink failed for a single item."""


class SinkAccessDenied(SinkError):
    """The OS has not granted access to the sink's backing app."""


class SinkWriteError(SinkError):
    """The sink was reachable but saving the entry failed."""
