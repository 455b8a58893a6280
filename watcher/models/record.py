"""
watcher/models/record.py
Shared dataclass schema. Reader, classifier, dispatcher and orchestrator
all pass these types around. Do not add logic here — data only.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


class ItemKind:
    EVENT = 'event'
    TASK  = 'task'

    ALL = frozenset({EVENT, TASK})


@dataclass(frozen=True)
class Message:
    """One chat.db text row. row_id is the source of ordering truth."""
    row_id:      int
    text:        str
    timestamp:   str            # local wall clock, YYYY-MM-DD HH:MM:SS
    is_from_me:  bool


@dataclass(frozen=True)
class ClassifiedItem:
    """Validated classifier output. Event fields or task fields, by kind."""
    kind:         str           # ItemKind.EVENT / ItemKind.TASK
    title:        str
    start:        Optional[datetime] = None
    end:          Optional[datetime] = None
    all_day:      bool               = False
    due_minutes:  Optional[int]      = None


@dataclass
class ItemVerdict:
    """One entry of the validation pass: a valid item or a rejection reason."""
    raw:     Any
    item:    Optional[ClassifiedItem] = None
    reason:  str                      = ''

    @property
    def accepted(self) -> bool:
        return self.item is not None


@dataclass
class ClassificationResult:
    items:         List[ClassifiedItem] = field(default_factory=list)
    rejected:      List[ItemVerdict]    = field(default_factory=list)
    raw_response:  str                  = ''


@dataclass(frozen=True)
class ActionRecord:
    """Rolling history entry. Operator visibility only, not authoritative."""
    title:      str
    timestamp:  datetime


@dataclass(frozen=True)
class ExistingEvent:
    """Calendar entry as seen by the duplicate check."""
    title:  str
    start:  datetime


class OutcomeStatus:
    CREATED   = 'created'
    DUPLICATE = 'duplicate'
    FAILED    = 'failed'
    DISABLED  = 'disabled'


@dataclass
class SinkOutcome:
    item:    ClassifiedItem
    sink:    str                # calendar / due / apple_reminders / dispatch
    status:  str                # OutcomeStatus
    detail:  str = ''


@dataclass
class DispatchReport:
    outcomes:  List[SinkOutcome] = field(default_factory=list)
    actions:   List[str]         = field(default_factory=list)   # "Event: Dinner", ...
    notified:  bool              = False

    @property
    def failures(self) -> List[SinkOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.FAILED]


class ScanStatus:
    BUSY              = 'busy'
    NO_CONTACT        = 'no_contact'
    BASELINED         = 'baselined'
    IDLE              = 'idle'              # nothing new
    STORE_UNAVAILABLE = 'store_unavailable'
    CLASSIFIER_FAILED = 'classifier_failed'
    COMPLETED         = 'completed'
    ERROR             = 'error'


@dataclass
class ScanResult:
    status:         str
    trigger:        str                  = 'manual'
    new_messages:   int                  = 0
    items:          int                  = 0
    rejected:       int                  = 0
    actions:        List[str]            = field(default_factory=list)
    cursor_before:  Optional[int]        = None
    cursor_after:   Optional[int]        = None
    detail:         str                  = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status':        self.status,
            'trigger':       self.trigger,
            'new_messages':  self.new_messages,
            'items':         self.items,
            'rejected':      self.rejected,
            'actions':       list(self.actions),
            'cursor_before': self.cursor_before,
            'cursor_after':  self.cursor_after,
            'detail':        self.detail,
        }
