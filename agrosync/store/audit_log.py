"""
Append-only audit ledger with ring-buffer retention.
"""

import json
import logging
from typing import Any, List, Optional

from ..models import AuditAction, AuditLogEntry, EntityType
from ..utils import generate_id, utc_now_iso
from .database import LocalDatabase

logger = logging.getLogger(__name__)


class AuditLog:
    """
    Ledger of create/update/delete mutations.

    Entries are never edited. When the count exceeds ``max_entries`` the
    oldest entries are dropped in the same transaction as the append.
    """

    MAX_ENTRIES = 1000

    def __init__(self, database: LocalDatabase, max_entries: int = MAX_ENTRIES):
        self.database = database
        self.max_entries = max_entries

    @staticmethod
    def _snapshot(value: Any) -> Optional[str]:
        if value is None:
            return None
        if hasattr(value, "to_dict"):
            value = value.to_dict()
        return json.dumps(value, default=str)

    def append(
        self,
        actor: str,
        action: AuditAction,
        entity_type: EntityType,
        entity_id: str,
        details: str = "",
        before: Any = None,
        after: Any = None
    ) -> AuditLogEntry:
        """
        Append one entry.

        When called inside an open store transaction the entry commits (or
        rolls back) together with the mutation it describes.

        Raises:
            StorageError: If the write fails
        """
        entry = AuditLogEntry(
            id=generate_id(),
            timestamp=utc_now_iso(),
            user_id=actor,
            action=AuditAction(action),
            entity=EntityType(entity_type).value,
            entity_id=entity_id,
            details=details,
            previous_data=self._snapshot(before),
            new_data=self._snapshot(after),
        )
        with self.database.transaction() as conn:
            conn.execute(
                """
                INSERT INTO audit_log
                    (id, timestamp, user_id, action, entity, entity_id, details, previous_data, new_data)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (entry.id, entry.timestamp, entry.user_id, entry.action.value, entry.entity,
                 entry.entity_id, entry.details, entry.previous_data, entry.new_data)
            )
            conn.execute(
                """
                DELETE FROM audit_log
                WHERE seq NOT IN (
                    SELECT seq FROM audit_log ORDER BY seq DESC LIMIT ?
                )
                """,
                (self.max_entries,)
            )
        logger.debug(f"Audit {entry.action.value} {entry.entity}/{entry.entity_id}")
        return entry

    def query_recent(self, n: int) -> List[AuditLogEntry]:
        """The last ``n`` entries, oldest first."""
        if n <= 0:
            return []
        with self.database.transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM (
                    SELECT * FROM audit_log ORDER BY seq DESC LIMIT ?
                ) ORDER BY seq ASC
                """,
                (n,)
            ).fetchall()
        return [
            AuditLogEntry(
                id=row['id'],
                timestamp=row['timestamp'],
                user_id=row['user_id'],
                action=AuditAction(row['action']),
                entity=row['entity'],
                entity_id=row['entity_id'],
                details=row['details'],
                previous_data=row['previous_data'],
                new_data=row['new_data'],
            )
            for row in rows
        ]

    def count(self) -> int:
        with self.database.transaction() as conn:
            return conn.execute("SELECT COUNT(*) AS count FROM audit_log").fetchone()['count']
