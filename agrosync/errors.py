"""
Exception hierarchy for the sync agent.
"""
from typing import Optional


class AgroSyncError(Exception):
    """Base exception for all agent errors."""
    pass


class StorageError(AgroSyncError):
    """A local write failed (disk full, I/O error). Fatal to the user action."""
    pass


class RecordNotFoundError(AgroSyncError):
    """The requested record does not exist in the local store."""

    def __init__(self, entity_type, record_id: str):
        super().__init__(f"{entity_type.value} record {record_id!r} not found")
        self.entity_type = entity_type
        self.record_id = record_id


class DuplicateRecordError(AgroSyncError):
    """The id is already live or was used by a deleted record."""
    pass


class SyncError(AgroSyncError):
    """Base exception for sync operations."""
    pass


class TransportError(SyncError):
    """The request never got a response (DNS, refused, timeout)."""
    pass


class ServerRejectedError(SyncError):
    """The endpoint answered with a non-2xx status or success: false."""

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body


class UnknownEntityError(ServerRejectedError):
    """The endpoint does not know the entity path segment (HTTP 404)."""
    pass


class MalformedResponseError(SyncError):
    """The endpoint answered 2xx with a body we cannot interpret."""
    pass
