from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .entity_type import EntityType
from .sync_status import PENDING_STATUSES, SyncStatus

# Fields that exist only on the device and are never transmitted.
LOCAL_ONLY_FIELDS = frozenset({"serverId", "syncStatus"})


@dataclass
class SyncableRecord:
    """
    One locally owned record of any entity type.

    ``data`` holds the domain fields (quantities, costs, dates, foreign keys).
    ``revision`` counts local writes; the uploader uses it to tell whether the
    content it sent is still the current content.
    """
    entity_type: EntityType
    id: str
    data: Dict[str, Any] = field(default_factory=dict)
    sync_status: SyncStatus = SyncStatus.PENDING_CREATE
    server_id: Optional[str] = None
    last_updated: Optional[int] = None
    last_modified: Optional[str] = None
    revision: int = 0

    @property
    def is_pending(self) -> bool:
        return self.sync_status in PENDING_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        """Full local shape, including the local-only fields."""
        result = dict(self.data)
        result.update({
            "id": self.id,
            "serverId": self.server_id,
            "syncStatus": self.sync_status.value,
            "lastUpdated": self.last_updated,
            "lastModified": self.last_modified,
        })
        return result
