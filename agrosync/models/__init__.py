"""Models package for the sync agent."""

from .entity_type import EntitySpec, EntityType, Reference, ENTITY_SPECS, SYNC_ORDER
from .sync_status import SyncStatus, PENDING_STATUSES
from .record import SyncableRecord, LOCAL_ONLY_FIELDS
from .audit_entry import AuditAction, AuditLogEntry
from .sync_state import SyncState

__all__ = [
    'EntitySpec', 'EntityType', 'Reference', 'ENTITY_SPECS', 'SYNC_ORDER',
    'SyncStatus', 'PENDING_STATUSES',
    'SyncableRecord', 'LOCAL_ONLY_FIELDS',
    'AuditAction', 'AuditLogEntry',
    'SyncState',
]
