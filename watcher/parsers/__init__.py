"""
watcher/parsers — read-only access to the Messages chat.db store.
"""

from watcher.parsers.chat_db_reader import ChatDbReader

__all__ = ["ChatDbReader"]
