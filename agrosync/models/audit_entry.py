from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class AuditLogEntry:
    """Immutable ledger entry describing one mutation."""
    id: str
    timestamp: str
    user_id: str
    action: AuditAction
    entity: str
    entity_id: str
    details: str
    previous_data: Optional[str] = None
    new_data: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "userId": self.user_id,
            "action": self.action.value,
            "entity": self.entity,
            "entityId": self.entity_id,
            "details": self.details,
            "previousData": self.previous_data,
            "newData": self.new_data,
        }
