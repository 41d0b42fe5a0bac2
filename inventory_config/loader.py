"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen dataclasses
of ``inventory_config.schema``.  The single public entry point for runtime
config is ``inventory_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad values (unknown action names, retries < 1, non-mapping sections)
  -> ``ValueError`` with a descriptive message.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import (
    AuditConfig,
    ConcurrencyConfig,
    ConsolidationConfig,
    KernelConfig,
    RemoteConfig,
    WellKnownConfig,
)
from inventory_kernel.domain.actions import InventoryAction

_WELL_KNOWN_FIELDS = frozenset(WellKnownConfig.__dataclass_fields__)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{name}' must be a mapping, got {type(value).__name__}")
    return value


def parse_well_known(data: dict[str, Any]) -> WellKnownConfig:
    unknown = set(data) - _WELL_KNOWN_FIELDS
    if unknown:
        raise ValueError(f"Unknown well_known keys: {sorted(unknown)}")
    return WellKnownConfig(**data)


def parse_action_map(data: dict[str, Any]) -> tuple[tuple[str, tuple[str, ...]], ...]:
    """Status name -> action names, checked against the action vocabulary."""
    known = {action.value for action in InventoryAction}
    entries = []
    for status_name, action_names in data.items():
        names = tuple(action_names or ())
        unknown = [name for name in names if name not in known]
        if unknown:
            raise ValueError(f"action_map[{status_name!r}] has unknown actions: {unknown}")
        entries.append((str(status_name), names))
    return tuple(entries)


def parse_concurrency(data: dict[str, Any]) -> ConcurrencyConfig:
    retries = int(data.get("max_conflict_retries", 3))
    if retries < 1:
        raise ValueError("concurrency.max_conflict_retries must be >= 1")
    return ConcurrencyConfig(max_conflict_retries=retries)


def parse_consolidation(data: dict[str, Any]) -> ConsolidationConfig:
    return ConsolidationConfig(strict=bool(data.get("strict", False)))


def parse_audit(data: dict[str, Any]) -> AuditConfig:
    return AuditConfig(
        require_transaction_record=bool(data.get("require_transaction_record", False)),
        timezone=str(data.get("timezone", "UTC")),
    )


def parse_remote(data: dict[str, Any]) -> RemoteConfig:
    enabled = bool(data.get("enabled", False))
    base_url = data.get("base_url")
    if enabled and not base_url:
        raise ValueError("remote.base_url is required when remote.enabled is true")

    timeout = float(data.get("timeout_seconds", 10.0))
    if timeout <= 0:
        raise ValueError("remote.timeout_seconds must be positive")

    known = {action.value for action in InventoryAction}
    actions = tuple(data.get("actions") or ())
    unknown = [name for name in actions if name not in known]
    if unknown:
        raise ValueError(f"remote.actions has unknown actions: {unknown}")

    return RemoteConfig(
        enabled=enabled,
        base_url=base_url,
        timeout_seconds=timeout,
        app_version=str(data.get("app_version", "7.6")),
        actions=actions,
    )


def parse_config(data: dict[str, Any]) -> KernelConfig:
    """Parse a loaded YAML document into a KernelConfig."""
    return KernelConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        well_known=parse_well_known(_section(data, "well_known")),
        action_map=parse_action_map(_section(data, "action_map")),
        concurrency=parse_concurrency(_section(data, "concurrency")),
        consolidation=parse_consolidation(_section(data, "consolidation")),
        audit=parse_audit(_section(data, "audit")),
        remote=parse_remote(_section(data, "remote")),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
