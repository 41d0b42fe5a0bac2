"""ORM models for the inventory kernel."""

from inventory_kernel.models.inventory import InventoryRow
from inventory_kernel.models.inventory_transaction import InventoryTransaction
from inventory_kernel.models.reference import (
    ActionStatus,
    ActionType,
    Area,
    Category,
    Client,
    Crew,
    InventoryType,
    ItemType,
    Location,
    LocationType,
    Market,
    Provider,
    Sloc,
    Status,
    UnitOfMeasure,
)

__all__ = [
    "ActionStatus",
    "ActionType",
    "Area",
    "Category",
    "Client",
    "Crew",
    "InventoryRow",
    "InventoryTransaction",
    "InventoryType",
    "ItemType",
    "Location",
    "LocationType",
    "Market",
    "Provider",
    "Sloc",
    "Status",
    "UnitOfMeasure",
]
