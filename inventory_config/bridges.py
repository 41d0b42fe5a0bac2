"""
Config -> Kernel Bridges.

Functions that convert a KernelConfig into kernel inputs.  These live in
inventory_config (the producer) because the kernel must NEVER import
inventory_config.

Usage:
    from inventory_config.bridges import build_kernel_policy, build_well_known_names

    config = get_active_config()
    policy = build_kernel_policy(config)
    snapshot = LookupSelector(session).load_snapshot(
        build_well_known_names(config), config.action_map_dict()
    )
"""

from __future__ import annotations

from typing import Callable

import httpx

from inventory_config.schema import KernelConfig
from inventory_kernel.clients.edge_functions import EdgeFunctionClient
from inventory_kernel.domain.actions import InventoryAction
from inventory_kernel.domain.lookup import WellKnownNames
from inventory_kernel.domain.policy import KernelPolicy


def build_kernel_policy(config: KernelConfig) -> KernelPolicy:
    """Runtime knobs for the kernel services."""
    remote_actions = (
        frozenset(InventoryAction(name) for name in config.remote.actions)
        if config.remote.enabled
        else frozenset()
    )
    return KernelPolicy(
        strict_consolidation=config.consolidation.strict,
        require_transaction_record=config.audit.require_transaction_record,
        timezone_name=config.audit.timezone,
        max_conflict_retries=config.concurrency.max_conflict_retries,
        remote_actions=remote_actions,
    )


def build_well_known_names(config: KernelConfig) -> WellKnownNames:
    wk = config.well_known
    return WellKnownNames(
        status_received=wk.status_received,
        status_available=wk.status_available,
        status_issued=wk.status_issued,
        status_installed=wk.status_installed,
        status_rejected=wk.status_rejected,
        location_sloc=wk.location_sloc,
        location_with_crew=wk.location_with_crew,
        location_installed=wk.location_installed,
        sloc_location_type_id=wk.sloc_location_type_id,
        with_crew_location_type_id=wk.with_crew_location_type_id,
        installed_location_type_id=wk.installed_location_type_id,
    )


def build_edge_function_client(
    config: KernelConfig,
    token_provider: Callable[[], str | None],
    client: httpx.Client | None = None,
) -> EdgeFunctionClient | None:
    """The remote procedure client, or None when remote calls are disabled."""
    remote = config.remote
    if not remote.enabled:
        return None
    return EdgeFunctionClient(
        base_url=remote.base_url,
        token_provider=token_provider,
        timeout=remote.timeout_seconds,
        app_version=remote.app_version,
        client=client,
    )
