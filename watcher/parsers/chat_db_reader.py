"""
watcher/parsers/chat_db_reader.py
Read-only access to the macOS Messages store (~/Library/Messages/chat.db).

Only plain text rows are returned: empty bodies and non-text subtypes
(reactions / tapbacks, associated_message_type != 0) are filtered in SQL.
Row ids are the ordering truth — callers page with "> cursor" for new
messages and "< first_new" (descending + limit) for context.

The store is opened with a read-only URI so the watcher can never write to
chat.db. Open failures raise StoreUnavailable so the caller can surface a
one-time permission prompt instead of silently stalling.
"""

import logging
import sqlite3
from pathlib import Path
from typing import List, Optional

from watcher.errors import QueryError, StoreUnavailable
from watcher.models.record import Message

logger = logging.getLogger(__name__)

# Apple's epoch starts at 2001-01-01
APPLE_EPOCH_OFFSET = 978307200

ROW_ID_OPERATORS = ('>', '<')

_BASE_SELECT = f"""
    SELECT m.ROWID,
           m.text,
           datetime(m.date / 1000000000 + {APPLE_EPOCH_OFFSET}, 'unixepoch', 'localtime'),
           m.is_from_me
    FROM message m
    JOIN chat_message_join cmj ON m.ROWID = cmj.message_id
    JOIN chat c ON cmj.chat_id = c.ROWID
    WHERE c.chat_identifier LIKE ?
      AND m.text IS NOT NULL AND length(m.text) > 0
      AND m.associated_message_type = 0
"""


class ChatDbReader:

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path).expanduser()

    # ── INTERNAL ─────────────────────────────────────────────
    def _connect(self) -> sqlite3.Connection:
        if not self.db_path.exists():
            raise StoreUnavailable(f"Message store not found: {self.db_path}")
        uri = f"{self.db_path.resolve().as_uri()}?mode=ro"
        try:
            return sqlite3.connect(uri, uri=True)
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot open {self.db_path}: {e}") from e

    def _query(self, sql: str, params: tuple) -> list:
        conn = self._connect()
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.OperationalError as e:
            # "unable to open" / "authorization denied" come back as OperationalError
            # on the first statement; anything else is a schema/SQL problem
            msg = str(e).lower()
            if 'unable to open' in msg or 'authorization' in msg or 'readonly' in msg:
                raise StoreUnavailable(f"Cannot read {self.db_path}: {e}") from e
            raise QueryError(f"Message store query failed: {e}") from e
        except sqlite3.DatabaseError as e:
            raise StoreUnavailable(f"Message store unreadable: {e}") from e
        finally:
            conn.close()

    @staticmethod
    def _contact_pattern(contact: str) -> str:
        return f"%{contact}"

    # ── QUERIES ──────────────────────────────────────────────
    def fetch_messages(
        self,
        row_id_op:    str,
        row_id:       int,
        contact:      str,
        include_own:  bool          = True,
        limit:        Optional[int] = None,
        descending:   bool          = False,
    ) -> List[Message]:
        """
        Fetch text messages for one contact on one side of a row id.

        row_id_op: '>' for new messages (use ascending order),
                   '<' for context (use descending with a limit, then reverse).
        include_own: include rows authored by the device owner ([me] lines).
        Raises StoreUnavailable / QueryError.
        """
        if row_id_op not in ROW_ID_OPERATORS:
            raise QueryError(f"Unsupported row id comparison: {row_id_op!r}")

        sql = _BASE_SELECT
        if not include_own:
            sql += "  AND m.is_from_me = 0\n"
        sql += f"  AND m.ROWID {row_id_op} ?\n"
        sql += f"ORDER BY m.ROWID {'DESC' if descending else 'ASC'}\n"
        params: tuple = (self._contact_pattern(contact), int(row_id))
        if limit is not None:
            sql += "LIMIT ?\n"
            params += (int(limit),)

        out: List[Message] = []
        for rid, text, date_str, from_me in self._query(sql, params):
            if not text or date_str is None:
                continue
            out.append(Message(
                row_id     = int(rid),
                text       = text,
                timestamp  = date_str,
                is_from_me = bool(from_me),
            ))
        return out

    def max_row_id(self) -> Optional[int]:
        """Highest ROWID in the whole message table, or None when empty."""
        rows = self._query("SELECT MAX(ROWID) FROM message", ())
        if not rows or rows[0][0] is None:
            return None
        return int(rows[0][0])

    def recent_contact_row_ids(self, contact: str, limit: int = 5) -> List[int]:
        """Row ids of the last `limit` text messages authored by the contact."""
        sql = _BASE_SELECT + "  AND m.is_from_me = 0\nORDER BY m.ROWID DESC\nLIMIT ?\n"
        rows = self._query(sql, (self._contact_pattern(contact), int(limit)))
        return [int(r[0]) for r in rows]

    def check_access(self) -> bool:
        """True if the store opens and the message table is readable."""
        try:
            self._query("SELECT COUNT(*) FROM message LIMIT 1", ())
        except (StoreUnavailable, QueryError) as e:
            logger.warning(f"Message store access: DENIED ({e})")
            return False
        logger.info("Message store access: OK")
        return True
