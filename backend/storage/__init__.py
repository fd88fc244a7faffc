"""
Client-side persistence package.
"""

from storage.kv_store import KeyValueStore, MemoryKeyValueStore, SQLiteKeyValueStore
from storage.sessions import SessionStore, derive_title, create_session, update_session, delete_session

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "SessionStore",
    "derive_title",
    "create_session",
    "update_session",
    "delete_session",
]
