"""
watcher/state/cursor_store.py
Persists the watermark: the highest chat.db ROWID fully processed.

The file holds the id as plain text. Writes go to a temp file in the same
directory followed by os.replace(), so after a crash the file holds either
the old value or the new one — never a truncated write.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from watcher.parsers.chat_db_reader import ChatDbReader

logger = logging.getLogger(__name__)


class CursorStore:

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()

    def load(self) -> Optional[int]:
        """Return the stored row id, or None if never initialized."""
        try:
            raw = self.path.read_text(encoding='utf-8').strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Cursor file unreadable ({e}) — treating as uninitialized")
            return None
        try:
            value = int(raw)
        except ValueError:
            logger.warning(f"Cursor file holds {raw[:40]!r}, not an integer — treating as uninitialized")
            return None
        logger.info(f"Loaded state: ROWID {value}")
        return value

    def save(self, row_id: int) -> None:
        """Atomically replace the stored row id."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(str(int(row_id)))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.debug(f"Saved state: ROWID {row_id}")

    def baseline(self, reader: "ChatDbReader") -> int:
        """
        Start monitoring from now: commit the store's current max ROWID
        without processing any history. An empty store baselines at 0.
        Raises StoreUnavailable if the store cannot be read.
        """
        current = reader.max_row_id() or 0
        self.save(current)
        logger.info(f"Baseline set to ROWID {current}")
        return current
