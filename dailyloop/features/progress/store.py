"""
Progress record store.

In-memory implementation plus the selector that picks the SQL-backed store
when DATABASE_URL is configured and reachable. Both expose the same API:

- load(user_id) -> ProgressRecord | None
- save(record, expected_version) -> ProgressRecord
- delete(user_id) -> bool
- list_user_ids() -> list[str]
- clear()  (tests only)

`save` is a compare-and-swap on `version`: it raises ConcurrencyConflictError
when the stored version is not `expected_version` (None means "must not
exist yet"). Stores never hand out references to their internal state.
"""

import logging
import os
import threading
from typing import Dict, List, Optional

from dailyloop.core.errors import ConcurrencyConflictError
from dailyloop.models.progress import ProgressRecord

logger = logging.getLogger("dailyloop")


class InMemoryProgressStore:
    """Process-local store used in development and tests."""

    def __init__(self):
        self._records: Dict[str, ProgressRecord] = {}
        self._lock = threading.Lock()

    def load(self, user_id: str) -> Optional[ProgressRecord]:
        with self._lock:
            record = self._records.get(user_id)
            return record.copy() if record else None

    def save(self, record: ProgressRecord, expected_version: Optional[int]) -> ProgressRecord:
        with self._lock:
            current = self._records.get(record.user_id)
            current_version = current.version if current else None
            if current_version != expected_version:
                raise ConcurrencyConflictError(
                    f"progress record for {record.user_id} changed "
                    f"(expected version {expected_version}, found {current_version})"
                )
            stored = record.copy()
            stored.version = (expected_version or 0) + 1
            self._records[record.user_id] = stored
            return stored.copy()

    def delete(self, user_id: str) -> bool:
        with self._lock:
            return self._records.pop(user_id, None) is not None

    def list_user_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._records)

    def clear(self) -> None:
        """FOR TESTING ONLY."""
        with self._lock:
            self._records.clear()

    def ping(self) -> bool:
        return True


def get_progress_store():
    """
    Pick the store implementation.

    - SQL store if DATABASE_URL is configured and the database answers
    - In-memory otherwise
    """
    database_url = os.getenv("DATABASE_URL") or os.getenv("TEST_DATABASE_URL")
    if database_url:
        from dailyloop.core.database import check_connection, create_all_tables
        from dailyloop.features.progress.store_sql import SqlProgressStore

        if check_connection():
            create_all_tables()
            return SqlProgressStore()
        logger.warning("[progress_store] database unavailable, falling back to in-memory")

    return InMemoryProgressStore()


# Global store instance (lazy initialization)
_store_instance = None


def get_store():
    """Singleton store used by the engine and the sweep."""
    global _store_instance
    if _store_instance is None:
        _store_instance = get_progress_store()
    return _store_instance


def reset_store():
    """FOR TESTING ONLY - forces re-initialization on next get_store() call."""
    global _store_instance
    _store_instance = None
