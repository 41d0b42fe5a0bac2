"""
Module: inventory_kernel.selectors.lookup_selector
Responsibility: Loads reference tables into an immutable LookupSnapshot.

The snapshot is built once per unit of work (or per UI refresh) and passed
explicitly to services; nothing in the kernel caches lookups globally.
"""

from typing import Iterable, Mapping

from sqlalchemy import select

from inventory_kernel.domain.action_availability import action_statuses_from_names
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
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models import reference as ref
from inventory_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.lookup")


class LookupSelector(BaseSelector[ref.Status]):
    """Reads every lookup table the kernel consults."""

    def _all(self, model):
        return list(self.session.scalars(select(model).order_by(model.id)))

    def load_snapshot(
        self,
        well_known: WellKnownNames | None = None,
        action_map: Mapping[str, Iterable[str]] | None = None,
    ) -> LookupSnapshot:
        """
        Build a snapshot from the current table contents.

        Args:
            well_known: Names of the statuses/locations the transition rules
                use (defaults to WellKnownNames()).
            action_map: Status name -> action names, used only when the
                ``action_statuses`` table is empty.
        """
        statuses = tuple(StatusInfo(id=r.id, name=r.name) for r in self._all(ref.Status))
        action_types = tuple(
            ActionTypeInfo(
                id=r.id,
                name=r.name,
                description=r.description,
                style=r.style,
                allow_signature=bool(r.allow_signature),
            )
            for r in self._all(ref.ActionType)
        )
        action_statuses = tuple(
            ActionStatusInfo(status_id=r.status_id, action_id=r.action_id)
            for r in self._all(ref.ActionStatus)
        )
        if not action_statuses and action_map:
            action_statuses = action_statuses_from_names(action_map, statuses, action_types)
            logger.info(
                "action_statuses_from_config",
                extra={"row_count": len(action_statuses)},
            )

        snapshot = LookupSnapshot(
            statuses=statuses,
            locations=[
                LocationInfo(id=r.id, name=r.name, location_type_id=r.location_type_id)
                for r in self._all(ref.Location)
            ],
            location_types=[
                LocationTypeInfo(id=r.id, name=r.name) for r in self._all(ref.LocationType)
            ],
            item_types=[
                ItemTypeInfo(
                    id=r.id,
                    name=r.name,
                    manufacturer=r.manufacturer,
                    part_number=r.part_number,
                    description=r.description,
                    units_per_package=r.units_per_package,
                    category_id=r.category_id,
                    unit_of_measure_id=r.unit_of_measure_id,
                    provider_id=r.provider_id,
                    inventory_type_id=r.inventory_type_id,
                    low_quantity_threshold=r.low_quantity_threshold,
                )
                for r in self._all(ref.ItemType)
            ],
            crews=[
                CrewInfo(id=r.id, name=r.name, market_id=r.market_id)
                for r in self._all(ref.Crew)
            ],
            areas=[AreaInfo(id=r.id, name=r.name, sloc_id=r.sloc_id) for r in self._all(ref.Area)],
            slocs=[SlocInfo(id=r.id, name=r.name, market_id=r.market_id) for r in self._all(ref.Sloc)],
            markets=[
                MarketInfo(id=r.id, name=r.name, client_id=r.client_id)
                for r in self._all(ref.Market)
            ],
            clients=[ClientInfo(id=r.id, name=r.name) for r in self._all(ref.Client)],
            categories=[NamedInfo(id=r.id, name=r.name) for r in self._all(ref.Category)],
            units_of_measure=[
                NamedInfo(id=r.id, name=r.name) for r in self._all(ref.UnitOfMeasure)
            ],
            providers=[NamedInfo(id=r.id, name=r.name) for r in self._all(ref.Provider)],
            inventory_types=[
                NamedInfo(id=r.id, name=r.name) for r in self._all(ref.InventoryType)
            ],
            action_types=action_types,
            action_statuses=action_statuses,
            well_known=well_known or WellKnownNames(),
        )
        logger.debug(
            "lookup_snapshot_loaded",
            extra={
                "statuses": len(snapshot.statuses),
                "locations": len(snapshot.locations),
                "item_types": len(snapshot.item_types),
                "action_statuses": len(snapshot.action_statuses),
            },
        )
        return snapshot
