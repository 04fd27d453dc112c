"""
Per-entity access to the records table.
"""

import json
import logging
import sqlite3
from typing import Any, Dict, Iterable, List, Optional, Union
from datetime import datetime

from ..errors import DuplicateRecordError, RecordNotFoundError
from ..models import EntitySpec, SyncableRecord, SyncStatus, LOCAL_ONLY_FIELDS
from ..utils import epoch_millis, generate_id, to_iso, utc_now_iso
from .database import LocalDatabase

logger = logging.getLogger(__name__)

# Managed by the table itself; never taken from caller-supplied data.
_MANAGED_FIELDS = LOCAL_ONLY_FIELDS | {"id", "lastUpdated", "lastModified"}


class EntityTable:
    """
    Records of a single entity type.

    Every write runs as one read-modify-write inside a database transaction,
    so a domain edit and the uploader's confirmation can never interleave on
    the same record.
    """

    def __init__(self, database: LocalDatabase, spec: EntitySpec):
        self.database = database
        self.spec = spec
        self.entity_type = spec.entity_type

    @staticmethod
    def _row_to_record(row: sqlite3.Row, entity_type) -> SyncableRecord:
        return SyncableRecord(
            entity_type=entity_type,
            id=row['id'],
            data=json.loads(row['payload']),
            sync_status=SyncStatus(row['sync_status']),
            server_id=row['server_id'],
            last_updated=row['last_updated'],
            last_modified=row['last_modified'],
            revision=row['revision'],
        )

    @staticmethod
    def _clean(data: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in data.items() if k not in _MANAGED_FIELDS}

    def _fetch(self, conn: sqlite3.Connection, record_id: str) -> Optional[SyncableRecord]:
        row = conn.execute(
            "SELECT * FROM records WHERE entity = ? AND id = ?",
            (self.entity_type.value, record_id)
        ).fetchone()
        return self._row_to_record(row, self.entity_type) if row else None

    def _select(self, where: str = "", params: Iterable[Any] = ()) -> List[SyncableRecord]:
        sql = "SELECT * FROM records WHERE entity = ?"
        if where:
            sql += f" AND {where}"
        sql += " ORDER BY rowid ASC"
        with self.database.transaction() as conn:
            rows = conn.execute(sql, (self.entity_type.value, *params)).fetchall()
            return [self._row_to_record(row, self.entity_type) for row in rows]

    def list(self) -> List[SyncableRecord]:
        """All live records in insertion order."""
        return self._select()

    def get(self, record_id: str) -> Optional[SyncableRecord]:
        with self.database.transaction() as conn:
            return self._fetch(conn, record_id)

    def require(self, record_id: str) -> SyncableRecord:
        record = self.get(record_id)
        if record is None:
            raise RecordNotFoundError(self.entity_type, record_id)
        return record

    def insert(self, data: Dict[str, Any]) -> SyncableRecord:
        """
        Store a new record as ``pending_create``.

        Args:
            data: Domain fields. An ``id`` is generated when absent.

        Returns:
            The stored record

        Raises:
            DuplicateRecordError: If the id is live or belonged to a deleted record
        """
        record = SyncableRecord(
            entity_type=self.entity_type,
            id=str(data["id"]) if data.get("id") not in (None, "") else generate_id(),
            data=self._clean(data),
            sync_status=SyncStatus.PENDING_CREATE,
            last_updated=epoch_millis(),
            last_modified=utc_now_iso(),
            revision=1,
        )
        with self.database.transaction() as conn:
            used = conn.execute(
                """
                SELECT 1 FROM records WHERE entity = ? AND id = ?
                UNION ALL
                SELECT 1 FROM deleted_records WHERE entity = ? AND id = ?
                """,
                (self.entity_type.value, record.id, self.entity_type.value, record.id)
            ).fetchone()
            if used:
                raise DuplicateRecordError(
                    f"{self.entity_type.value} id {record.id!r} is already in use"
                )
            conn.execute(
                """
                INSERT INTO records
                    (entity, id, server_id, sync_status, last_updated, last_modified, revision, payload)
                VALUES (?, ?, NULL, ?, ?, ?, ?, ?)
                """,
                (self.entity_type.value, record.id, record.sync_status.value,
                 record.last_updated, record.last_modified, record.revision,
                 json.dumps(record.data))
            )
        return record

    def update(self, record_id: str, patch: Dict[str, Any]) -> SyncableRecord:
        """
        Merge ``patch`` into a record and flag it for upload.

        A record that was never confirmed by the server stays ``pending_create``.

        Raises:
            RecordNotFoundError: If the record does not exist
        """
        with self.database.transaction() as conn:
            current = self._fetch(conn, record_id)
            if current is None:
                raise RecordNotFoundError(self.entity_type, record_id)

            data = dict(current.data)
            data.update(self._clean(patch))
            status = (SyncStatus.PENDING_CREATE
                      if current.sync_status == SyncStatus.PENDING_CREATE
                      else SyncStatus.PENDING_UPDATE)
            updated = SyncableRecord(
                entity_type=self.entity_type,
                id=current.id,
                data=data,
                sync_status=status,
                server_id=current.server_id,
                last_updated=epoch_millis(),
                last_modified=utc_now_iso(),
                revision=current.revision + 1,
            )
            conn.execute(
                """
                UPDATE records
                SET payload = ?, sync_status = ?, last_updated = ?, last_modified = ?, revision = ?
                WHERE entity = ? AND id = ?
                """,
                (json.dumps(updated.data), updated.sync_status.value, updated.last_updated,
                 updated.last_modified, updated.revision, self.entity_type.value, record_id)
            )
        return updated

    def delete(self, record_id: str) -> SyncableRecord:
        """
        Remove a record locally. The id is kept in the deleted ledger so it
        is never reused. Deletions are not propagated to the server.

        Returns:
            The record as it was before deletion

        Raises:
            RecordNotFoundError: If the record does not exist
        """
        with self.database.transaction() as conn:
            current = self._fetch(conn, record_id)
            if current is None:
                raise RecordNotFoundError(self.entity_type, record_id)
            conn.execute(
                "DELETE FROM records WHERE entity = ? AND id = ?",
                (self.entity_type.value, record_id)
            )
            conn.execute(
                """
                INSERT INTO deleted_records (entity, id, server_id, deleted_at)
                VALUES (?, ?, ?, ?)
                """,
                (self.entity_type.value, record_id, current.server_id, utc_now_iso())
            )
        if current.server_id:
            logger.info(
                f"Deleted synced {self.entity_type.value} record {record_id} "
                f"(server id {current.server_id}); deletion stays local"
            )
        return current

    def query_by_status(self, statuses: Iterable[SyncStatus]) -> List[SyncableRecord]:
        values = [SyncStatus(s).value for s in statuses]
        if not values:
            return []
        placeholders = ", ".join("?" for _ in values)
        return self._select(f"sync_status IN ({placeholders})", values)

    def select_since(self, timestamp: Union[str, datetime]) -> List[SyncableRecord]:
        """Records whose last local modification is after ``timestamp``."""
        return self._select("last_modified > ?", (to_iso(timestamp),))

    def find_by_field(self, field: str, value: Any) -> List[SyncableRecord]:
        """Records whose payload ``field`` equals ``value``."""
        return self._select("json_extract(payload, ?) = ?", (f"$.{field}", value))

    def apply_confirmation(
        self,
        record_id: str,
        server_id: Optional[str],
        last_updated: Optional[int],
        uploaded_revision: int
    ) -> Optional[SyncableRecord]:
        """
        Record the server's confirmation of an uploaded record.

        The record becomes ``synced`` only if it was not edited after the
        upload snapshot was taken; otherwise it keeps (or gains) a pending
        status so the newer content goes out next cycle. An assigned server
        id is never replaced.

        Returns:
            The updated record, or None if it was deleted meanwhile
        """
        with self.database.transaction() as conn:
            current = self._fetch(conn, record_id)
            if current is None:
                logger.warning(
                    f"Confirmation for {self.entity_type.value} {record_id} ignored: record no longer exists"
                )
                return None

            kept_server_id = current.server_id or server_id
            if current.server_id and server_id and server_id != current.server_id:
                logger.warning(
                    f"Server returned id {server_id} for {self.entity_type.value} {record_id}, "
                    f"keeping previously assigned {current.server_id}"
                )

            if current.revision == uploaded_revision:
                status = SyncStatus.SYNCED
                reference_time = last_updated if last_updated is not None else current.last_updated
            else:
                # Edited while in flight: the server now holds an older version.
                status = SyncStatus.PENDING_UPDATE
                reference_time = current.last_updated

            conn.execute(
                """
                UPDATE records
                SET server_id = ?, sync_status = ?, last_updated = ?
                WHERE entity = ? AND id = ?
                """,
                (kept_server_id, status.value, reference_time, self.entity_type.value, record_id)
            )
            current.server_id = kept_server_id
            current.sync_status = status
            current.last_updated = reference_time
            return current

    def count(self, statuses: Optional[Iterable[SyncStatus]] = None) -> int:
        sql = "SELECT COUNT(*) AS count FROM records WHERE entity = ?"
        params: List[Any] = [self.entity_type.value]
        if statuses is not None:
            values = [SyncStatus(s).value for s in statuses]
            if not values:
                return 0
            sql += f" AND sync_status IN ({', '.join('?' for _ in values)})"
            params.extend(values)
        with self.database.transaction() as conn:
            return conn.execute(sql, params).fetchone()['count']
