"""
Field inventory kernel.

Bulk/serialized inventory consolidation and state-transition engine.

Layers:
    domain/     Pure value objects and rules (no I/O).
    db/         SQLAlchemy base, engine/session management, ORM listeners.
    models/     ORM tables (inventory, reference data, transaction log).
    selectors/  Read side.
    services/   Write side (ledger, transitions, recorder, integrity, facade).
    clients/    Remote procedure clients.

Callers normally construct an ``InventoryService`` with a session, a clock,
a ``LookupSnapshot`` and an ``ActorContext`` and invoke actions on it.
"""

__version__ = "0.1.0"
