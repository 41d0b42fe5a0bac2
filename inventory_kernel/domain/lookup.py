"""
Lookup snapshot: the read-only reference data every operation consults.

Responsibility:
    Immutable DTOs for the reference tables (statuses, locations, crews,
    areas, the client/market/sloc hierarchy, item catalogue, action
    catalogue) and a ``LookupSnapshot`` that bundles them with finders.

Architecture position:
    Kernel > Domain.  Built by ``selectors.lookup_selector`` (or directly by
    callers and tests) and passed explicitly into services.  The kernel never
    reads a process-global lookup cache.

Invariants enforced:
    - Snapshots are frozen; entity collections are tuples.
    - Well-known locations resolve by name first, then by fallback
      location_type_id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, TypeVar


@dataclass(frozen=True)
class ClientInfo:
    id: int
    name: str


@dataclass(frozen=True)
class MarketInfo:
    id: int
    name: str
    client_id: int | None = None


@dataclass(frozen=True)
class SlocInfo:
    id: int
    name: str
    market_id: int | None = None


@dataclass(frozen=True)
class CrewInfo:
    id: int
    name: str
    market_id: int | None = None


@dataclass(frozen=True)
class AreaInfo:
    id: int
    name: str
    sloc_id: int | None = None


@dataclass(frozen=True)
class LocationTypeInfo:
    id: int
    name: str


@dataclass(frozen=True)
class LocationInfo:
    id: int
    name: str
    location_type_id: int | None = None


@dataclass(frozen=True)
class StatusInfo:
    id: int
    name: str


@dataclass(frozen=True)
class NamedInfo:
    """Plain id/name row (category, unit of measure, provider, inventory type)."""

    id: int
    name: str


@dataclass(frozen=True)
class ItemTypeInfo:
    """Catalogue definition of an item type."""

    id: int
    name: str
    manufacturer: str | None = None
    part_number: str | None = None
    description: str | None = None
    units_per_package: int | None = None
    category_id: int | None = None
    unit_of_measure_id: int | None = None
    provider_id: int | None = None
    inventory_type_id: int | None = None
    low_quantity_threshold: int | None = None


@dataclass(frozen=True)
class ActionTypeInfo:
    """
    One entry of the action catalogue.

    ``allow_signature`` marks actions that can produce a signed receipt.
    """

    id: int
    name: str
    description: str | None = None
    style: str | None = None
    allow_signature: bool = False


@dataclass(frozen=True)
class ActionStatusInfo:
    """One status -> action adjacency row."""

    status_id: int
    action_id: int


@dataclass(frozen=True)
class WellKnownNames:
    """
    Names (and fallback type ids) of the statuses and locations the
    transition rules refer to.
    """

    status_received: str = "Received"
    status_available: str = "Available"
    status_issued: str = "Issued"
    status_installed: str = "Installed"
    status_rejected: str = "Rejected"
    location_sloc: str = "SLOC"
    location_with_crew: str = "With Crew"
    location_installed: str = "Installed"
    sloc_location_type_id: int | None = 1
    with_crew_location_type_id: int | None = 2
    installed_location_type_id: int | None = 3


T = TypeVar("T")


def _by_id(items: Iterable[T], entity_id: int | None) -> T | None:
    if entity_id is None:
        return None
    for item in items:
        if item.id == entity_id:  # type: ignore[attr-defined]
            return item
    return None


def _by_name(items: Iterable[T], name: str) -> T | None:
    for item in items:
        if item.name == name:  # type: ignore[attr-defined]
            return item
    return None


@dataclass(frozen=True)
class LookupSnapshot:
    """
    Immutable snapshot of reference data.

    Contract:
        Provides every lookup the kernel needs to validate preconditions and
        denormalize transaction records.  Passed into services instead of
        giving them a shared mutable cache.

    Guarantees:
        - Immutable (frozen dataclass, tuple collections).
        - Finders return None for unknown ids; they never raise.

    Non-goals:
        - Does NOT refresh itself; callers load a new snapshot.
    """

    statuses: tuple[StatusInfo, ...] = ()
    locations: tuple[LocationInfo, ...] = ()
    location_types: tuple[LocationTypeInfo, ...] = ()
    item_types: tuple[ItemTypeInfo, ...] = ()
    crews: tuple[CrewInfo, ...] = ()
    areas: tuple[AreaInfo, ...] = ()
    slocs: tuple[SlocInfo, ...] = ()
    markets: tuple[MarketInfo, ...] = ()
    clients: tuple[ClientInfo, ...] = ()
    categories: tuple[NamedInfo, ...] = ()
    units_of_measure: tuple[NamedInfo, ...] = ()
    providers: tuple[NamedInfo, ...] = ()
    inventory_types: tuple[NamedInfo, ...] = ()
    action_types: tuple[ActionTypeInfo, ...] = ()
    action_statuses: tuple[ActionStatusInfo, ...] = ()
    well_known: WellKnownNames = field(default_factory=WellKnownNames)

    def __post_init__(self) -> None:
        # Accept lists from callers but store tuples.
        for name in (
            "statuses",
            "locations",
            "location_types",
            "item_types",
            "crews",
            "areas",
            "slocs",
            "markets",
            "clients",
            "categories",
            "units_of_measure",
            "providers",
            "inventory_types",
            "action_types",
            "action_statuses",
        ):
            value = getattr(self, name)
            if not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))

    # -- id finders ---------------------------------------------------------

    def status(self, status_id: int | None) -> StatusInfo | None:
        return _by_id(self.statuses, status_id)

    def location(self, location_id: int | None) -> LocationInfo | None:
        return _by_id(self.locations, location_id)

    def location_type(self, location_type_id: int | None) -> LocationTypeInfo | None:
        return _by_id(self.location_types, location_type_id)

    def item_type(self, item_type_id: int | None) -> ItemTypeInfo | None:
        return _by_id(self.item_types, item_type_id)

    def crew(self, crew_id: int | None) -> CrewInfo | None:
        return _by_id(self.crews, crew_id)

    def area(self, area_id: int | None) -> AreaInfo | None:
        return _by_id(self.areas, area_id)

    def sloc(self, sloc_id: int | None) -> SlocInfo | None:
        return _by_id(self.slocs, sloc_id)

    def market(self, market_id: int | None) -> MarketInfo | None:
        return _by_id(self.markets, market_id)

    def client(self, client_id: int | None) -> ClientInfo | None:
        return _by_id(self.clients, client_id)

    def category(self, category_id: int | None) -> NamedInfo | None:
        return _by_id(self.categories, category_id)

    def unit_of_measure(self, uom_id: int | None) -> NamedInfo | None:
        return _by_id(self.units_of_measure, uom_id)

    def provider(self, provider_id: int | None) -> NamedInfo | None:
        return _by_id(self.providers, provider_id)

    def inventory_type(self, inventory_type_id: int | None) -> NamedInfo | None:
        return _by_id(self.inventory_types, inventory_type_id)

    # -- name finders -------------------------------------------------------

    def status_named(self, name: str) -> StatusInfo | None:
        return _by_name(self.statuses, name)

    def location_named(
        self, name: str, fallback_type_id: int | None = None
    ) -> LocationInfo | None:
        """Find a location by name, else the first with ``fallback_type_id``."""
        found = _by_name(self.locations, name)
        if found is not None or fallback_type_id is None:
            return found
        for location in self.locations:
            if location.location_type_id == fallback_type_id:
                return location
        return None

    # -- well-known entities ------------------------------------------------

    def sloc_location(self) -> LocationInfo | None:
        wk = self.well_known
        return self.location_named(wk.location_sloc, wk.sloc_location_type_id)

    def with_crew_location(self) -> LocationInfo | None:
        wk = self.well_known
        return self.location_named(wk.location_with_crew, wk.with_crew_location_type_id)

    def installed_location(self) -> LocationInfo | None:
        wk = self.well_known
        return self.location_named(wk.location_installed, wk.installed_location_type_id)

    # -- hierarchy ----------------------------------------------------------

    def hierarchy_for_sloc(
        self, sloc_id: int | None
    ) -> tuple[SlocInfo | None, MarketInfo | None, ClientInfo | None]:
        """Resolve sloc -> market -> client."""
        sloc = self.sloc(sloc_id)
        market = self.market(sloc.market_id) if sloc else None
        client = self.client(market.client_id) if market else None
        return sloc, market, client
