"""
Payload builders for the reporting sink.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Tuple

from ..models import EntityType
from ..store import AuditLog, LocalDatabase, LocalRecordStore
from ..sync import DeltaSelector
from ..utils import EPOCH_ISO, to_iso, utc_now_iso
from .notifier import ReportNotifier

logger = logging.getLogger(__name__)

# Operational records included in the automatic delta export.
DELTA_ENTITIES = (EntityType.MOVEMENTS, EntityType.HARVESTS, EntityType.LABOR)


def _just_before(timestamp: str) -> str:
    """The millisecond before ``timestamp``; `> _just_before(t)` means `>= t`."""
    return to_iso(datetime.fromisoformat(timestamp.replace("Z", "+00:00")) - timedelta(milliseconds=1))


def _truncate(value: Any, limit: int) -> Any:
    if isinstance(value, str) and len(value) > limit:
        return value[:limit]
    return value


class ReportExporter:
    """
    Builds and sends delta and full-snapshot reports.

    The delta cursor (``last_export_timestamp``) is stored separately from
    the sync path's ``last_sync_timestamp`` and only advances after a send.
    """

    CURSOR_KEY = "last_export_timestamp"
    AUDIT_LIMIT = 200
    DETAIL_LIMIT = 1000

    def __init__(
        self,
        store: LocalRecordStore,
        audit_log: AuditLog,
        notifier: ReportNotifier,
        database: LocalDatabase,
        audit_limit: int = AUDIT_LIMIT,
        detail_limit: int = DETAIL_LIMIT
    ):
        self.store = store
        self.audit_log = audit_log
        self.notifier = notifier
        self.database = database
        self.selector = DeltaSelector(store)
        self.audit_limit = audit_limit
        self.detail_limit = detail_limit

    @property
    def last_export_timestamp(self) -> str:
        return self.database.get_meta(self.CURSOR_KEY) or EPOCH_ISO

    def audit_trail(self) -> List[Dict[str, Any]]:
        """Most recent audit entries with bounded per-entry size."""
        trail = []
        for entry in self.audit_log.query_recent(self.audit_limit):
            item = entry.to_dict()
            for key in ("details", "previousData", "newData"):
                item[key] = _truncate(item[key], self.detail_limit)
            trail.append(item)
        return trail

    def export_delta(self) -> Tuple[bool, str]:
        """
        Send records modified since the last successful export.

        Returns:
            (success, message). Nothing is sent when nothing changed.
        """
        if not self.notifier.configured:
            return False, "Report URL not configured."

        since = self.last_export_timestamp
        # Writes are blocked while the window is read. Records stamped with
        # `now` itself are left for the next export, which starts at `now`.
        with self.store.transaction():
            now = utc_now_iso()
            changes = {
                entity_type.value: [
                    r.to_dict() for r in self.selector.select_since(entity_type, since)
                    if r.last_modified < now
                ]
                for entity_type in DELTA_ENTITIES
            }
        if not any(changes.values()):
            logger.debug(f"No changes since {since}, delta export skipped")
            return True, "Nothing to export."

        payload = {"syncType": "AUTO_DELTA", "syncDate": now, **changes, "auditTrail": self.audit_trail()}
        if not self.notifier.notify(payload):
            return False, "Network error sending delta report."

        self.database.set_meta(self.CURSOR_KEY, _just_before(now))
        count = sum(len(v) for v in changes.values())
        logger.info(f"Delta report sent: {count} record(s) since {since}")
        return True, f"Sent {count} changed record(s)."

    def export_full(self) -> Tuple[bool, str]:
        """Send a snapshot of every entity type."""
        if not self.notifier.configured:
            return False, "Report URL not configured."
        payload = {
            "syncType": "MANUAL_FULL",
            "syncDate": utc_now_iso(),
            "data": self.store.snapshot(),
            "auditTrail": self.audit_trail(),
        }
        if self.notifier.notify(payload):
            return True, "Backup request sent to the cloud."
        return False, "Network error sending backup."
