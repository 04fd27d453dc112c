"""
Closed set of syncable entity types and their static description.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


class EntityType(str, Enum):
    """Entity type tag. The value doubles as the endpoint path segment."""
    INVENTORY = "inventory"
    LOTS = "lots"
    PERSONNEL = "personnel"
    LABOR = "labor"
    FINANCE = "finance"
    SANITARY = "sanitary"
    MOVEMENTS = "movements"
    HARVESTS = "harvests"


@dataclass(frozen=True)
class Reference:
    """A foreign key held in a record payload."""
    field: str
    target: EntityType
    name_field: str


@dataclass(frozen=True)
class EntitySpec:
    """Static description of one entity type."""
    entity_type: EntityType
    display_field: str = "name"
    date_fields: Tuple[str, ...] = ()
    references: Tuple[Reference, ...] = ()

    @property
    def endpoint(self) -> str:
        return self.entity_type.value

    def references_to(self, target: EntityType) -> Tuple[Reference, ...]:
        return tuple(ref for ref in self.references if ref.target == target)


_LOT_REF = Reference("costCenterId", EntityType.LOTS, "costCenterName")

ENTITY_SPECS: Dict[EntityType, EntitySpec] = {
    EntityType.INVENTORY: EntitySpec(
        EntityType.INVENTORY,
        date_fields=("lastPurchaseDate", "expirationDate"),
    ),
    EntityType.LOTS: EntitySpec(
        EntityType.LOTS,
        date_fields=("plantingDate",),
    ),
    EntityType.PERSONNEL: EntitySpec(EntityType.PERSONNEL),
    EntityType.LABOR: EntitySpec(
        EntityType.LABOR,
        display_field="activityName",
        date_fields=("date",),
        references=(
            Reference("personnelId", EntityType.PERSONNEL, "personnelName"),
            _LOT_REF,
        ),
    ),
    EntityType.FINANCE: EntitySpec(
        EntityType.FINANCE,
        display_field="description",
        date_fields=("date",),
        references=(_LOT_REF,),
    ),
    EntityType.SANITARY: EntitySpec(
        EntityType.SANITARY,
        display_field="productName",
        date_fields=("date",),
        references=(_LOT_REF,),
    ),
    EntityType.MOVEMENTS: EntitySpec(
        EntityType.MOVEMENTS,
        display_field="itemName",
        date_fields=("date", "paymentDueDate"),
        references=(
            Reference("itemId", EntityType.INVENTORY, "itemName"),
            _LOT_REF,
        ),
    ),
    EntityType.HARVESTS: EntitySpec(
        EntityType.HARVESTS,
        display_field="cropName",
        date_fields=("date",),
        references=(_LOT_REF,),
    ),
}

# Parents before dependents so server-side foreign keys resolve.
SYNC_ORDER: Tuple[EntityType, ...] = (
    EntityType.INVENTORY,
    EntityType.LOTS,
    EntityType.PERSONNEL,
    EntityType.LABOR,
    EntityType.FINANCE,
    EntityType.SANITARY,
    EntityType.MOVEMENTS,
    EntityType.HARVESTS,
)

