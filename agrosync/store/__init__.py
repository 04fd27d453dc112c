"""
Local persistence.

- LocalDatabase: SQLite file shared by every local component
- EntityTable: list/get/insert/update/delete for one entity type
- LocalRecordStore: registry of one EntityTable per entity type
- AuditLog: append-only, size-bounded mutation ledger
"""

from .database import LocalDatabase
from .entity_table import EntityTable
from .record_store import LocalRecordStore
from .audit_log import AuditLog

__all__ = ['LocalDatabase', 'EntityTable', 'LocalRecordStore', 'AuditLog']
