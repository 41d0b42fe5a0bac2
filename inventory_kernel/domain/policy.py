"""
Kernel policy: the runtime knobs services read.

Built from configuration by ``inventory_config.bridges.build_kernel_policy``;
the kernel itself never reads configuration files.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from inventory_kernel.domain.actions import InventoryAction


@dataclass(frozen=True)
class KernelPolicy:
    """
    Behavioural settings for the kernel services.

    Attributes:
        strict_consolidation: Raise ConsolidationAmbiguityError when more than
            one existing record matches a signature, instead of merging into
            the lowest id.
        require_transaction_record: Fail the whole action when its
            transaction record cannot be written.
        timezone_name: Stamped on transaction records as ``created_timezone``.
        max_conflict_retries: Attempts for an action that hits an optimistic
            lock conflict.
        remote_actions: Actions the facade first tries through the remote
            procedure client (when one is configured).
    """

    strict_consolidation: bool = False
    require_transaction_record: bool = False
    timezone_name: str = "UTC"
    max_conflict_retries: int = 3
    remote_actions: frozenset[InventoryAction] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if self.max_conflict_retries < 1:
            raise ValueError("max_conflict_retries must be >= 1")
