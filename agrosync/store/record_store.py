"""
Registry of entity tables.
"""

from typing import Any, Dict, List, Mapping

from ..models import ENTITY_SPECS, PENDING_STATUSES, EntitySpec, EntityType
from .database import LocalDatabase
from .entity_table import EntityTable


class LocalRecordStore:
    """
    Owns every syncable record, one ``EntityTable`` per entity type.

    The set of tables is fixed at construction; asking for anything that is
    not a registered ``EntityType`` fails immediately.
    """

    def __init__(self, database: LocalDatabase, specs: Mapping[EntityType, EntitySpec] = ENTITY_SPECS):
        self.database = database
        self._tables: Dict[EntityType, EntityTable] = {
            EntityType(entity_type): EntityTable(database, spec)
            for entity_type, spec in specs.items()
        }

    @property
    def entity_types(self) -> List[EntityType]:
        return list(self._tables)

    def table(self, entity_type: EntityType) -> EntityTable:
        """
        Get the table for an entity type.

        Raises:
            TypeError: If ``entity_type`` is not an EntityType
            KeyError: If the entity type is not registered
        """
        if not isinstance(entity_type, EntityType):
            raise TypeError(f"Expected EntityType, got {entity_type!r}")
        return self._tables[entity_type]

    def transaction(self):
        return self.database.transaction()

    def pending_counts(self) -> Dict[EntityType, int]:
        return {
            entity_type: table.count(PENDING_STATUSES)
            for entity_type, table in self._tables.items()
        }

    def snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        """Every live record of every type, in the local shape."""
        return {
            entity_type.value: [record.to_dict() for record in table.list()]
            for entity_type, table in self._tables.items()
        }
