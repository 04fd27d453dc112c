"""
Selection of the records a cycle has to upload.
"""

from datetime import datetime
from typing import List, Union

from ..models import PENDING_STATUSES, EntityType, SyncableRecord
from ..store import LocalRecordStore


class DeltaSelector:
    """
    Read-only queries over the record store.

    Results are materialized copies taken at call time, so writes that land
    afterwards are left for the next cycle rather than mixed into the batch.
    """

    def __init__(self, store: LocalRecordStore):
        self.store = store

    def select_pending(self, entity_type: EntityType) -> List[SyncableRecord]:
        """Records still awaiting server confirmation."""
        return self.store.table(entity_type).query_by_status(PENDING_STATUSES)

    def select_since(self, entity_type: EntityType, timestamp: Union[str, datetime]) -> List[SyncableRecord]:
        """Records modified locally after ``timestamp``, for report exports."""
        return self.store.table(entity_type).select_since(timestamp)
