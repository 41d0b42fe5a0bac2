"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from inventory_kernel.domain.action_availability import (
    action_statuses_from_names,
    available_actions,
)
from inventory_kernel.domain.actions import (
    InventoryAction,
    LedgerAction,
    LedgerOperation,
    MutationDescriptor,
    TransactionType,
)
from inventory_kernel.domain.actor import ActorContext
from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.equivalence import (
    DuplicateGroup,
    MatchResult,
    find_equivalent,
    group_duplicates,
)
from inventory_kernel.domain.lookup import (
    ActionStatusInfo,
    ActionTypeInfo,
    AreaInfo,
    ClientInfo,
    CrewInfo,
    ItemTypeInfo,
    LocationInfo,
    LocationTypeInfo,
    LookupSnapshot,
    MarketInfo,
    NamedInfo,
    SlocInfo,
    StatusInfo,
    WellKnownNames,
)
from inventory_kernel.domain.policy import KernelPolicy
from inventory_kernel.domain.records import (
    EquivalenceSignature,
    InventoryCandidate,
    InventoryRecord,
)

__all__ = [
    "ActionStatusInfo",
    "ActionTypeInfo",
    "ActorContext",
    "AreaInfo",
    "ClientInfo",
    "Clock",
    "CrewInfo",
    "DeterministicClock",
    "DuplicateGroup",
    "EquivalenceSignature",
    "InventoryAction",
    "InventoryCandidate",
    "InventoryRecord",
    "ItemTypeInfo",
    "KernelPolicy",
    "LedgerAction",
    "LedgerOperation",
    "LocationInfo",
    "LocationTypeInfo",
    "LookupSnapshot",
    "MarketInfo",
    "MatchResult",
    "MutationDescriptor",
    "NamedInfo",
    "SlocInfo",
    "StatusInfo",
    "SystemClock",
    "TransactionType",
    "WellKnownNames",
    "action_statuses_from_names",
    "available_actions",
    "find_equivalent",
    "group_duplicates",
]
