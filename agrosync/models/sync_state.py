"""
Process-wide sync state.
"""
import threading
from dataclasses import dataclass, field
from typing import Optional

from ..utils.clock import EPOCH_ISO


@dataclass
class SyncState:
    """
    Last successful sync time and the last known connectivity flag.

    The timestamp is loaded once from persisted storage and written back only
    through ``record_success``; the online flag changes only on connectivity
    events.
    """
    META_KEY = "last_sync_timestamp"

    last_sync_timestamp: str = EPOCH_ISO
    online: bool = True
    _database: Optional[object] = field(default=None, repr=False, compare=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @classmethod
    def load(cls, database) -> 'SyncState':
        """Initialize from the database meta table, defaulting to the epoch."""
        stored = database.get_meta(cls.META_KEY)
        return cls(last_sync_timestamp=stored or EPOCH_ISO, _database=database)

    def record_success(self, timestamp: str) -> None:
        """Advance the last-sync timestamp after a fully successful batch."""
        with self._lock:
            if timestamp <= self.last_sync_timestamp:
                return
            self.last_sync_timestamp = timestamp
            if self._database is not None:
                self._database.set_meta(self.META_KEY, timestamp)

    def set_online(self, online: bool) -> None:
        with self._lock:
            self.online = online
