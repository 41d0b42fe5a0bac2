"""Selectors for the inventory kernel (read side)."""

from inventory_kernel.selectors.inventory_selector import InventorySelector
from inventory_kernel.selectors.lookup_selector import LookupSelector
from inventory_kernel.selectors.transaction_selector import (
    TransactionInfo,
    TransactionSelector,
)

__all__ = [
    "InventorySelector",
    "LookupSelector",
    "TransactionInfo",
    "TransactionSelector",
]
