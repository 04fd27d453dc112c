from enum import Enum


class SyncStatus(str, Enum):
    """Per-record synchronization state."""
    PENDING_CREATE = "pending_create"
    PENDING_UPDATE = "pending_update"
    SYNCED = "synced"


PENDING_STATUSES = frozenset({SyncStatus.PENDING_CREATE, SyncStatus.PENDING_UPDATE})
