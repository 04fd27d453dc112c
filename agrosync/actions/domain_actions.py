"""
Audited mutations of local records.

Every action writes its records and the matching audit entries in one
transaction: either both are stored or neither is.
"""

import logging
from typing import Any, Dict, List, Optional

from ..models import ENTITY_SPECS, AuditAction, EntityType, SyncableRecord
from ..store import AuditLog, LocalRecordStore
from ..utils import utc_now_iso

logger = logging.getLogger(__name__)

DETACHED_SUFFIX = " (Eliminado)"
DETACHED_REFS_FIELD = "detachedRefs"


class DomainActions:
    """
    Mutation entry points used by the UI layer.

    Raises whatever the store raises (``RecordNotFoundError``,
    ``DuplicateRecordError``, ``StorageError``); storage failures are never
    swallowed because the mutation may be lost.
    """

    DEFAULT_USER = "admin_local"

    def __init__(self, store: LocalRecordStore, audit_log: AuditLog, user_id: str = DEFAULT_USER):
        self.store = store
        self.audit_log = audit_log
        self.user_id = user_id

    def _label(self, record: SyncableRecord) -> str:
        name = record.data.get(ENTITY_SPECS[record.entity_type].display_field)
        return f"{name} ({record.id})" if name else record.id

    def create(self, entity_type: EntityType, data: Dict[str, Any], details: Optional[str] = None) -> SyncableRecord:
        table = self.store.table(entity_type)
        with self.store.transaction():
            record = table.insert(data)
            self.audit_log.append(
                self.user_id, AuditAction.CREATE, entity_type, record.id,
                details or f"Created {entity_type.value}: {self._label(record)}",
                before=None, after=record
            )
        return record

    def update(
        self,
        entity_type: EntityType,
        record_id: str,
        patch: Dict[str, Any],
        details: Optional[str] = None
    ) -> SyncableRecord:
        table = self.store.table(entity_type)
        with self.store.transaction():
            before = table.require(record_id)
            after = table.update(record_id, patch)
            self.audit_log.append(
                self.user_id, AuditAction.UPDATE, entity_type, record_id,
                details or f"Updated {entity_type.value}: {self._label(after)}",
                before=before, after=after
            )
        return after

    def delete(self, entity_type: EntityType, record_id: str, details: Optional[str] = None) -> SyncableRecord:
        """
        Delete a record and detach the records that reference it.

        Dependents are never deleted: they keep the id string, their display
        name gets the ``(Eliminado)`` suffix and the reference field is listed
        in ``detachedRefs``.

        Returns:
            The deleted record
        """
        table = self.store.table(entity_type)
        with self.store.transaction():
            before = table.delete(record_id)
            detached = self._detach_dependents(before)
            self.audit_log.append(
                self.user_id, AuditAction.DELETE, entity_type, record_id,
                details or f"Deleted {entity_type.value}: {self._label(before)}",
                before=before,
                after={"detachedDependents": detached} if detached else None
            )
        if detached:
            logger.info(f"Deleted {entity_type.value} {record_id}; detached {len(detached)} dependent record(s)")
        return before

    def _detach_dependents(self, deleted: SyncableRecord) -> List[Dict[str, str]]:
        fallback_name = deleted.data.get(ENTITY_SPECS[deleted.entity_type].display_field) or deleted.id
        detached = []
        for dependent_type in self.store.entity_types:
            table = self.store.table(dependent_type)
            for ref in table.spec.references_to(deleted.entity_type):
                for dependent in table.find_by_field(ref.field, deleted.id):
                    refs = list(dependent.data.get(DETACHED_REFS_FIELD) or [])
                    if ref.field in refs:
                        continue
                    refs.append(ref.field)
                    name = str(dependent.data.get(ref.name_field) or fallback_name)
                    if not name.endswith(DETACHED_SUFFIX):
                        name += DETACHED_SUFFIX
                    table.update(dependent.id, {DETACHED_REFS_FIELD: refs, ref.name_field: name})
                    detached.append({"entity": dependent_type.value, "id": dependent.id, "field": ref.field})
        return detached

    # Actions used by the farm screens.

    def save_new_item(
        self,
        item: Dict[str, Any],
        initial_quantity: float = 0,
        initial_unit: Optional[str] = None,
        movement_details: Optional[Dict[str, Any]] = None,
        warehouse_id: Optional[str] = None
    ) -> SyncableRecord:
        """
        Create an inventory item, plus an initial IN movement when stock is given.
        """
        price = item.get("lastPurchasePrice")
        with_stock = initial_quantity > 0 and price is not None and initial_unit is not None
        data = dict(item)
        data.update({
            "warehouseId": warehouse_id,
            "currentQuantity": initial_quantity if with_stock else 0,
            "averageCost": price if with_stock else 0,
        })
        with self.store.transaction():
            created = self.create(EntityType.INVENTORY, data, f"Created product: {item.get('name')}")
            if with_stock:
                details = movement_details or {}
                self.create(EntityType.MOVEMENTS, {
                    "warehouseId": warehouse_id,
                    "itemId": created.id,
                    "itemName": item.get("name"),
                    "type": "IN",
                    "quantity": initial_quantity,
                    "unit": initial_unit,
                    "calculatedCost": initial_quantity * price,
                    "date": utc_now_iso(),
                    "notes": "Initial stock entry.",
                    "invoiceNumber": details.get("invoiceNumber"),
                    "supplierId": details.get("supplierId"),
                    "paymentDueDate": details.get("paymentDueDate"),
                    "paymentStatus": "PAID",
                }, f"Initial stock for product: {item.get('name')}")
        return created

    def add_planned_labor(self, labor: Dict[str, Any], warehouse_id: Optional[str] = None) -> SyncableRecord:
        data = dict(labor, warehouseId=warehouse_id, completed=False)
        return self.create(
            EntityType.LABOR, data,
            f"Scheduled labor: {labor.get('activityName')} on {labor.get('costCenterName')}"
        )

    def update_cost_center(self, lot_id: str, patch: Dict[str, Any]) -> SyncableRecord:
        return self.update(EntityType.LOTS, lot_id, patch)

    def delete_cost_center(self, lot_id: str) -> SyncableRecord:
        return self.delete(EntityType.LOTS, lot_id)

    def delete_personnel(self, person_id: str) -> SyncableRecord:
        return self.delete(EntityType.PERSONNEL, person_id)

    def save_budget(self, budget: Dict[str, Any]) -> SyncableRecord:
        """Create or update a budget plan stored as a finance record."""
        data = dict(budget, kind="budget")
        budget_id = data.get("id")
        label = f"year {data.get('year')} lot {data.get('costCenterName') or data.get('costCenterId')}"
        if budget_id and self.store.table(EntityType.FINANCE).get(budget_id) is not None:
            return self.update(EntityType.FINANCE, budget_id, data, f"Updated budget: {label}")
        return self.create(EntityType.FINANCE, data, f"Created budget: {label}")
