"""
Action Availability Resolver.

Given a record's current status, returns the legal next actions from the
status -> action adjacency rows.  The adjacency is data (store rows or a
configured name map), never hard-coded here.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from inventory_kernel.domain.lookup import (
    ActionStatusInfo,
    ActionTypeInfo,
    StatusInfo,
)
from inventory_kernel.logging_config import get_logger

logger = get_logger("domain.action_availability")


def available_actions(
    status_id: int | None,
    action_statuses: Iterable[ActionStatusInfo],
    action_types: Iterable[ActionTypeInfo],
) -> tuple[ActionTypeInfo, ...]:
    """
    Legal actions for a record in ``status_id``.

    Results keep the order of ``action_types`` (the catalogue order), and
    adjacency rows pointing at unknown action ids are skipped.
    """
    if status_id is None:
        return ()
    allowed = {row.action_id for row in action_statuses if row.status_id == status_id}
    return tuple(action for action in action_types if action.id in allowed)


def action_statuses_from_names(
    action_map: Mapping[str, Iterable[str]],
    statuses: Iterable[StatusInfo],
    action_types: Iterable[ActionTypeInfo],
) -> tuple[ActionStatusInfo, ...]:
    """
    Build adjacency rows from a ``status name -> action names`` map.

    Names absent from the lookups are skipped with a warning so a partially
    seeded catalogue still yields the actions it can.
    """
    status_ids = {s.name: s.id for s in statuses}
    action_ids = {a.name: a.id for a in action_types}

    rows: list[ActionStatusInfo] = []
    for status_name, action_names in action_map.items():
        status_id = status_ids.get(status_name)
        if status_id is None:
            logger.warning("action_map_unknown_status", extra={"status_name": status_name})
            continue
        for action_name in action_names:
            action_id = action_ids.get(action_name)
            if action_id is None:
                logger.warning(
                    "action_map_unknown_action",
                    extra={"status_name": status_name, "action_name": action_name},
                )
                continue
            rows.append(ActionStatusInfo(status_id=status_id, action_id=action_id))
    return tuple(rows)
