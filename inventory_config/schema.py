"""
Inventory configuration schema.

Frozen dataclasses the loader parses ``sets/*.yaml`` into.  ``KernelConfig``
is the runtime artifact returned by ``get_active_config()``; bridges turn it
into kernel inputs (KernelPolicy, WellKnownNames, EdgeFunctionClient).
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class WellKnownConfig:
    """Names of the statuses and locations the transition rules refer to."""

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


@dataclass(frozen=True)
class ConcurrencyConfig:
    max_conflict_retries: int = 3


@dataclass(frozen=True)
class ConsolidationConfig:
    strict: bool = False


@dataclass(frozen=True)
class AuditConfig:
    require_transaction_record: bool = False
    timezone: str = "UTC"


@dataclass(frozen=True)
class RemoteConfig:
    """Server-side function settings; ``actions`` are action display names."""

    enabled: bool = False
    base_url: str | None = None
    timeout_seconds: float = 10.0
    app_version: str = "7.6"
    actions: tuple[str, ...] = ()


@dataclass(frozen=True)
class KernelConfig:
    """The complete, validated configuration."""

    config_id: str
    version: int
    checksum: str
    well_known: WellKnownConfig = field(default_factory=WellKnownConfig)
    action_map: tuple[tuple[str, tuple[str, ...]], ...] = ()
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    consolidation: ConsolidationConfig = field(default_factory=ConsolidationConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)

    def action_map_dict(self) -> dict[str, tuple[str, ...]]:
        return dict(self.action_map)
