"""
watcher/classifier/item_parser.py
Parse-then-validate for untrusted LLM output.

parse_envelope() loosely decodes the reply into a list of raw dicts;
validate_items() then runs an explicit pass that turns each raw entry into
an ItemVerdict — a ClassifiedItem or a rejection reason. Field presence is
never trusted.
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Any, List, Optional

from watcher.errors import ClassifierParseError
from watcher.models.record import ClassifiedItem, ItemKind, ItemVerdict

logger = logging.getLogger(__name__)

DEFAULT_DUE_MINUTES  = 30
MAX_DUE_MINUTES      = 365 * 24 * 60
DEFAULT_EVENT_LENGTH = timedelta(hours=1)
MAX_START_DISTANCE   = timedelta(days=365)    # guards against a wrong inferred year


# ── ENVELOPE ─────────────────────────────────────────────────

def strip_code_fence(text: str) -> str:
    """Remove a Markdown ``` / ```json wrapper if the model added one."""
    clean = (text or '').strip()
    if clean.startswith('```'):
        newline = clean.find('\n')
        clean = clean[newline + 1:] if newline != -1 else clean[3:]
        fence = clean.rfind('```')
        if fence != -1:
            clean = clean[:fence]
        clean = clean.strip()
    return clean


def parse_envelope(text: str) -> List[Any]:
    """
    Decode {"items": [...]} and return the raw item list.
    Raises ClassifierParseError if the outer envelope is not usable.
    """
    clean = strip_code_fence(text)
    try:
        data = json.loads(clean)
    except json.JSONDecodeError as e:
        raise ClassifierParseError(
            f"Failed to decode LLM JSON: {e} — raw: {clean[:300]}"
        ) from e
    if not isinstance(data, dict):
        raise ClassifierParseError(f"LLM JSON is a {type(data).__name__}, expected an object")
    items = data.get('items')
    if not isinstance(items, list):
        raise ClassifierParseError('LLM JSON has no "items" list')
    return items


# ── FIELD HELPERS ────────────────────────────────────────────

def parse_local_datetime(value: Any) -> Optional[datetime]:
    """
    ISO-8601 without timezone, read as local time. A timezone suffix is
    tolerated and converted to local naive time. Bare dates mean midnight.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith('Z'):
        raw = raw[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _due_minutes(value: Any) -> int:
    if isinstance(value, bool):
        return DEFAULT_DUE_MINUTES
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and 0 <= value <= MAX_DUE_MINUTES:
        return value
    if value is not None:
        logger.warning(f"Invalid due_minutes {value!r} — using {DEFAULT_DUE_MINUTES}")
    return DEFAULT_DUE_MINUTES


# ── VALIDATION ───────────────────────────────────────────────

def validate_item(raw: Any, now: datetime) -> ItemVerdict:
    if not isinstance(raw, dict):
        return ItemVerdict(raw=raw, reason='item is not an object')

    title = raw.get('title')
    title = title.strip() if isinstance(title, str) else ''
    if not title:
        return ItemVerdict(raw=raw, reason='empty title')

    kind = str(raw.get('type') or '').strip().lower()
    if kind not in ItemKind.ALL:
        return ItemVerdict(raw=raw, reason=f"unknown item type {raw.get('type')!r}")

    if kind == ItemKind.TASK:
        return ItemVerdict(raw=raw, item=ClassifiedItem(
            kind        = ItemKind.TASK,
            title       = title,
            due_minutes = _due_minutes(raw.get('due_minutes')),
        ))

    start = parse_local_datetime(raw.get('start'))
    if start is None:
        return ItemVerdict(raw=raw, reason=f"unparseable start {raw.get('start')!r}")
    if abs(start - now) > MAX_START_DISTANCE:
        return ItemVerdict(raw=raw, reason=f"start {start.isoformat()} more than 365 days from now")

    end = parse_local_datetime(raw.get('end'))
    if end is None or end < start:
        end = start + DEFAULT_EVENT_LENGTH

    # A midnight start means no time was given
    all_day = bool(raw.get('all_day')) or (start.hour == 0 and start.minute == 0)

    return ItemVerdict(raw=raw, item=ClassifiedItem(
        kind    = ItemKind.EVENT,
        title   = title,
        start   = start,
        end     = end,
        all_day = all_day,
    ))


def validate_items(raw_items: List[Any], now: datetime) -> List[ItemVerdict]:
    """Validate every raw entry. Rejections are logged as warnings, never raised."""
    verdicts = []
    for raw in raw_items:
        verdict = validate_item(raw, now)
        if not verdict.accepted:
            title = raw.get('title') if isinstance(raw, dict) else None
            logger.warning(f"Skipping item {title!r}: {verdict.reason}")
        verdicts.append(verdict)
    return verdicts
