"""
watcher/orchestrator.py
Top-level driver: Reader → Transcript → Classifier → Dispatcher → Cursor.

States are Idle and Scanning. Timer ticks, manual requests and wake events
all funnel into scan(); a non-blocking lock is the busy flag, so a trigger
that arrives mid-scan is dropped, not queued. The cursor advances exactly
once per non-empty scan, after every item in the batch has been attempted.
A store or classifier failure leaves it untouched and the whole batch is
retried next cycle.

Presentation layers subscribe() to plain events; callbacks run on the
scanning thread and must marshal to their own UI thread.
"""

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from watcher.classifier.classifier import Classifier
from watcher.config import WatcherConfig
from watcher.context.transcript import TranscriptBuilder
from watcher.dispatch.dispatcher import ActionDispatcher
from watcher.errors import ClassifierError, QueryError, StoreUnavailable
from watcher.models.record import ActionRecord, ScanResult, ScanStatus
from watcher.parsers.chat_db_reader import ChatDbReader
from watcher.state.cursor_store import CursorStore

logger = logging.getLogger(__name__)

Listener = Callable[[str, Dict[str, Any]], None]

# Event names emitted to subscribers
SCAN_STARTED      = 'scan_started'
SCAN_FINISHED     = 'scan_finished'
SCAN_FAILED       = 'scan_failed'
ITEM_DISPATCHED   = 'item_dispatched'
STORE_UNAVAILABLE = 'store_unavailable'

DEFAULT_REPROCESS_COUNT = 5


class ScanOrchestrator:

    def __init__(
        self,
        config:      WatcherConfig,
        reader:      ChatDbReader,
        cursors:     CursorStore,
        classifier:  Classifier,
        dispatcher:  ActionDispatcher,
        clock:       Callable[[], datetime] = datetime.now,
    ):
        self.config      = config
        self.reader      = reader
        self.cursors     = cursors
        self.classifier  = classifier
        self.dispatcher  = dispatcher
        self.clock       = clock
        self.transcripts = TranscriptBuilder(reader, config.contact_phone, config.context_count)

        self.history: deque = deque(maxlen=config.history_size or 50)
        self.has_unseen_actions         = False
        self.last_scan_at: Optional[datetime]   = None
        self.last_result: Optional[ScanResult]  = None

        self._busy       = threading.Lock()
        self._cursor: Optional[int] = None
        self._listeners: List[Listener] = []
        self._store_alert_sent = False

    @classmethod
    def from_config(cls, config: WatcherConfig) -> "ScanOrchestrator":
        """Production wiring: chat.db, state file, Ollama, macOS sinks."""
        from watcher.llm.ollama_adapter import OllamaAdapter

        llm = OllamaAdapter(
            model       = config.ollama_model,
            host        = config.ollama_host,
            timeout_sec = config.llm_timeout_sec,
        )
        return cls(
            config     = config,
            reader     = ChatDbReader(config.chat_db),
            cursors    = CursorStore(config.state_path),
            classifier = Classifier(llm),
            dispatcher = ActionDispatcher.from_config(config),
        )

    # ── STATE ────────────────────────────────────────────────
    @property
    def is_scanning(self) -> bool:
        return self._busy.locked()

    @property
    def cursor(self) -> Optional[int]:
        return self._cursor

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _emit(self, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, payload or {})
            except Exception as e:
                logger.error(f"Listener failed on '{event}': {e}", exc_info=True)

    def update_config(self, config: WatcherConfig) -> None:
        """Inject changed settings. Store and state paths need a restart."""
        self.config                    = config
        self.dispatcher.config         = config
        self.transcripts.contact       = config.contact_phone
        self.transcripts.context_count = config.context_count
        if config.history_size and config.history_size != self.history.maxlen:
            self.history = deque(self.history, maxlen=config.history_size)
        if hasattr(self.classifier.llm, 'model'):
            self.classifier.llm.model = config.ollama_model
        logger.info("Configuration updated")

    # ── LIFECYCLE ────────────────────────────────────────────
    def start(self) -> None:
        """Load the cursor (baselining on first run) and probe store access."""
        if not self.reader.check_access():
            self._store_failed(StoreUnavailable(f"Cannot read {self.reader.db_path}"))
            return
        try:
            self._load_cursor()
        except (StoreUnavailable, QueryError) as e:
            self._store_failed(e)

    def _load_cursor(self) -> bool:
        """
        Make sure a cursor exists. Returns True if it had to be baselined now.
        Raises StoreUnavailable / QueryError from the baseline query.
        """
        if self._cursor is not None:
            return False
        stored = self.cursors.load()
        if stored is not None:
            self._cursor = stored
            return False
        self._cursor = self.cursors.baseline(self.reader)
        return True

    def _advance(self, row_id: int) -> None:
        self.cursors.save(row_id)
        self._cursor = row_id

    def _store_failed(self, error: Exception) -> None:
        logger.error(f"Message store unavailable: {error}")
        if not self._store_alert_sent:
            self._store_alert_sent = True
            self._emit(STORE_UNAVAILABLE, {'error': str(error), 'db_path': str(self.reader.db_path)})

    # ── SCAN ─────────────────────────────────────────────────
    def scan(self, trigger: str = 'manual') -> ScanResult:
        """
        Run one cycle on the calling thread. Returns immediately with status
        'busy' if a scan is already in flight, 'no_contact' if unconfigured.
        Never raises: unexpected errors are logged and reported as 'error'.
        """
        if not self.config.has_contact:
            logger.warning("No contact phone configured — skipping scan")
            return ScanResult(status=ScanStatus.NO_CONTACT, trigger=trigger)
        if not self._busy.acquire(blocking=False):
            logger.debug(f"Scan already in progress — dropping '{trigger}' trigger")
            return ScanResult(status=ScanStatus.BUSY, trigger=trigger)

        self._emit(SCAN_STARTED, {'trigger': trigger})
        try:
            result = self._run_scan(trigger)
        except Exception as e:
            logger.error(f"Scan failed unexpectedly: {e}", exc_info=True)
            result = ScanResult(
                status        = ScanStatus.ERROR,
                trigger       = trigger,
                cursor_before = self._cursor,
                cursor_after  = self._cursor,
                detail        = str(e),
            )
            self._emit(SCAN_FAILED, result.to_dict())
        finally:
            self.last_scan_at = self.clock()
            self._busy.release()

        self.last_result = result
        self._emit(SCAN_FINISHED, result.to_dict())
        return result

    def request_scan(self, trigger: str = 'manual') -> bool:
        """Run scan() on a worker thread. False if one is already running."""
        if self.is_scanning:
            logger.debug(f"Scan already in progress — dropping '{trigger}' request")
            return False
        threading.Thread(
            target = self.scan,
            args   = (trigger,),
            name   = f"watcher-scan-{trigger}",
            daemon = True,
        ).start()
        return True

    def _run_scan(self, trigger: str) -> ScanResult:
        contact = self.config.contact_phone
        before  = self._cursor
        try:
            if self._load_cursor():
                return ScanResult(status=ScanStatus.BASELINED, trigger=trigger,
                                  cursor_before=before, cursor_after=self._cursor)
            before = self._cursor

            new_messages = self.reader.fetch_messages(
                row_id_op   = '>',
                row_id      = before,
                contact     = contact,
                include_own = True,
            )
            if not new_messages:
                return ScanResult(status=ScanStatus.IDLE, trigger=trigger,
                                  cursor_before=before, cursor_after=before)

            logger.info(f"Processing {len(new_messages)} new message(s)")
            transcript = self.transcripts.build(new_messages)
        except (StoreUnavailable, QueryError) as e:
            self._store_failed(e)
            result = ScanResult(status=ScanStatus.STORE_UNAVAILABLE, trigger=trigger,
                                cursor_before=before, cursor_after=before, detail=str(e))
            self._emit(SCAN_FAILED, result.to_dict())
            return result

        now = self.clock()
        try:
            classification = self.classifier.classify(transcript, now=now)
        except ClassifierError as e:
            logger.warning(f"Classification failed — will retry next poll: {e}")
            result = ScanResult(status=ScanStatus.CLASSIFIER_FAILED, trigger=trigger,
                                new_messages=len(new_messages),
                                cursor_before=before, cursor_after=before, detail=str(e))
            self._emit(SCAN_FAILED, result.to_dict())
            return result

        # due times count from after inference, not from the prompt clock
        report = self.dispatcher.dispatch(classification.items, now=self.clock())
        for action in report.actions:
            self._record(action)

        self._advance(transcript.last_row_id)

        result = ScanResult(
            status        = ScanStatus.COMPLETED,
            trigger       = trigger,
            new_messages  = len(new_messages),
            items         = len(classification.items),
            rejected      = len(classification.rejected),
            actions       = list(report.actions),
            cursor_before = before,
            cursor_after  = self._cursor,
        )
        logger.info(
            f"Scan complete: {result.new_messages} message(s), {result.items} item(s), "
            f"{len(result.actions)} action(s), ROWID {before} → {self._cursor}"
        )
        return result

    # ── ACTION HISTORY ───────────────────────────────────────
    def _record(self, title: str) -> None:
        record = ActionRecord(title=title, timestamp=self.clock())
        self.history.append(record)
        self.has_unseen_actions = True
        self._emit(ITEM_DISPATCHED, {'title': title, 'timestamp': record.timestamp.isoformat()})

    def recent_actions(self, limit: Optional[int] = None) -> List[ActionRecord]:
        """Newest first."""
        actions = list(reversed(self.history))
        return actions[:limit] if limit is not None else actions

    def mark_seen(self) -> None:
        self.has_unseen_actions = False

    # ── REWIND ───────────────────────────────────────────────
    def rewind(self, count: int = DEFAULT_REPROCESS_COUNT) -> bool:
        """
        Move the cursor back to just before the last `count` contact
        messages and scan immediately. Only allowed while idle.
        Returns True if the cursor moved.
        """
        contact = self.config.contact_phone
        if not contact:
            logger.warning("No contact phone configured — nothing to reprocess")
            return False
        if not self._busy.acquire(blocking=False):
            logger.warning("Scan in progress — reprocess refused")
            return False

        rewound = False
        try:
            self._load_cursor()
            ids = self.reader.recent_contact_row_ids(contact, limit=count)
            target = min(ids) - 1 if ids else self._cursor
            if target < self._cursor:
                self._cursor = target
                self.cursors.save(self._cursor)
                logger.info(f"Rewound ROWID to {self._cursor} for reprocessing")
                rewound = True
            else:
                logger.warning("Nothing to reprocess")
        except (StoreUnavailable, QueryError) as e:
            self._store_failed(e)
        finally:
            self._busy.release()

        if rewound:
            self.scan('reprocess')
        return rewound

    def reset_baseline(self) -> Optional[int]:
        """Skip everything unprocessed: cursor = current max ROWID."""
        if not self._busy.acquire(blocking=False):
            logger.warning("Scan in progress — baseline refused")
            return None
        try:
            self._cursor = self.cursors.baseline(self.reader)
            return self._cursor
        except (StoreUnavailable, QueryError) as e:
            self._store_failed(e)
            return None
        finally:
            self._busy.release()

    # ── STATUS ───────────────────────────────────────────────
    def status(self) -> Dict[str, Any]:
        return {
            'state':              'scanning' if self.is_scanning else 'idle',
            'contact_phone':      self.config.contact_phone,
            'cursor':             self._cursor,
            'last_scan_at':       self.last_scan_at.isoformat() if self.last_scan_at else None,
            'last_result':        self.last_result.to_dict() if self.last_result else None,
            'has_unseen_actions': self.has_unseen_actions,
            'action_count':       len(self.history),
            'sinks': {
                'calendar':        self.config.use_calendar,
                'due_reminders':   self.config.use_due_reminders,
                'apple_reminders': self.config.use_apple_reminders,
                'ntfy':            self.config.use_ntfy,
            },
        }
