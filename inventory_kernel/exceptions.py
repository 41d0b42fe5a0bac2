"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the kernel (UI layers, batch jobs, remote handlers) need to react
to failures precisely: "not enough stock" is shown to a user, an optimistic
lock conflict is retried, an audit write failure is alerted on. String
matching on messages is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        ledger.apply_delta(candidate, Decimal("20"), LedgerOperation.SUBTRACT)
    except NegativeQuantityError as e:
        show(f"Only {e.current_quantity} on hand")
        api_response(code=e.code, inventory_id=e.inventory_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from InventoryKernelError:

    InventoryKernelError (base)
    |
    +-- NotFoundError
    |   +-- InventoryNotFoundError
    |   +-- ReferenceNotFoundError
    |   +-- LocationTypeMissingError
    |   +-- StatusMissingError
    |
    +-- TransitionError
    |   +-- InvalidStatusTransitionError
    |   +-- NoCrewAssignedError
    |
    +-- InvalidFieldError
    |
    +-- QuantityError
    |   +-- NegativeQuantityError
    |   +-- InvalidQuantityError
    |   +-- NoStockError
    |   +-- OverAllocationError
    |
    +-- ConsolidationError
    |   +-- ConsolidationAmbiguityError
    |
    +-- StoreError
    |   +-- WriteError
    |       +-- DuplicateSignatureError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- AuditError
    |   +-- AuditWriteError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- RemoteProcedureError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | INVENTORY_NOT_FOUND         | Inventory id doesn't exist
                | REFERENCE_NOT_FOUND         | Crew/area/sloc/location id unknown
                | LOCATION_TYPE_MISSING       | Well-known location (SLOC, With Crew,
                |                             | Installed) absent from lookups
                | STATUS_MISSING              | Well-known status absent from lookups
----------------|-----------------------------|-----------------------------------------
Transition      | INVALID_STATUS_TRANSITION   | Action not legal from current status
                | NO_CREW_ASSIGNED            | Issue without a crew
----------------|-----------------------------|-----------------------------------------
Input           | INVALID_FIELD               | Patch, filter or candidate names unknown
                |                             | fields or omits required ones
----------------|-----------------------------|-----------------------------------------
Quantity        | NEGATIVE_QUANTITY           | Delta would drive quantity below zero
                | INVALID_QUANTITY            | Quantity value itself is invalid
                | NO_STOCK                    | Subtract from a signature with no record
                | OVER_ALLOCATION             | Allocations exceed available quantity
----------------|-----------------------------|-----------------------------------------
Consolidation   | CONSOLIDATION_AMBIGUITY     | >1 existing record matches a signature
                |                             | (strict mode only)
----------------|-----------------------------|-----------------------------------------
Store           | WRITE_ERROR                 | Underlying store rejected a write
                | DUPLICATE_SIGNATURE         | Bulk row with the same signature exists
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Record changed since it was read
Audit           | AUDIT_WRITE_FAILED          | Transaction record could not be written
                |                             | (strict audit mode only)
Immutability    | IMMUTABILITY_VIOLATION      | Modifying/deleting a transaction record
Remote          | REMOTE_PROCEDURE_FAILED     | Remote function failed or unreachable

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CATCH SPECIFIC EXCEPTIONS (not base classes):

    except NoStockError:
        prompt_receive_first()
    except QuantityError as e:
        log.error(f"Quantity rejected: {e.code}")

2. CATEGORY HANDLING:
   - InvalidFieldError / QuantityError / TransitionError -> user-facing validation message
   - ConcurrencyError -> auto-retry (the InventoryService does this)
   - ImmutabilityError -> log security alert
   - RemoteProcedureError -> fall back to the local algorithm

3. The InventoryService facade never lets these escape its public methods;
   it converts them into ActionResult(status=FAILED, error_code=e.code).

===============================================================================
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute
    for machine-readable error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Lookup / existence exceptions


class NotFoundError(InventoryKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: object):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class InventoryNotFoundError(NotFoundError):
    """Inventory record with given id was not found."""

    code: str = "INVENTORY_NOT_FOUND"

    def __init__(self, inventory_id: int):
        self.inventory_id = inventory_id
        super().__init__("Inventory", inventory_id)


class ReferenceNotFoundError(NotFoundError):
    """A referenced lookup entity (crew, area, sloc, location) is unknown."""

    code: str = "REFERENCE_NOT_FOUND"


class LocationTypeMissingError(NotFoundError):
    """
    A well-known location is absent from the lookup snapshot.

    Neither a location with the configured name nor one with the configured
    fallback location_type_id exists.
    """

    code: str = "LOCATION_TYPE_MISSING"

    def __init__(self, location_name: str, location_type_id: int | None = None):
        self.location_name = location_name
        self.location_type_id = location_type_id
        super().__init__("Location", location_name)


class StatusMissingError(NotFoundError):
    """A well-known status name is absent from the lookup snapshot."""

    code: str = "STATUS_MISSING"

    def __init__(self, status_name: str):
        self.status_name = status_name
        super().__init__("Status", status_name)


# Transition exceptions


class TransitionError(InventoryKernelError):
    """Base exception for illegal state transitions."""

    code: str = "TRANSITION_ERROR"


class InvalidStatusTransitionError(TransitionError):
    """The action requires a status the record is not currently in."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(
        self,
        inventory_id: int,
        action: str,
        current_status: str | None,
        required_status: str,
    ):
        self.inventory_id = inventory_id
        self.action = action
        self.current_status = current_status
        self.required_status = required_status
        super().__init__(
            f"Cannot {action} inventory {inventory_id}: status is "
            f"{current_status!r}, requires {required_status!r}"
        )


class NoCrewAssignedError(TransitionError):
    """Issue requested without a crew parameter or an existing crew."""

    code: str = "NO_CREW_ASSIGNED"

    def __init__(self, inventory_id: int):
        self.inventory_id = inventory_id
        super().__init__(f"No crew assigned to inventory {inventory_id}")


# Input exceptions


class InvalidFieldError(InventoryKernelError):
    """A patch, filter or candidate names fields the kernel does not accept."""

    code: str = "INVALID_FIELD"

    def __init__(self, field_names, reason: str):
        self.field_names = sorted(field_names)
        self.reason = reason
        super().__init__(f"{reason}: {self.field_names}")


# Quantity exceptions


class QuantityError(InventoryKernelError):
    """Base exception for quantity invariants."""

    code: str = "QUANTITY_ERROR"


class NegativeQuantityError(QuantityError):
    """The requested change would leave a negative quantity."""

    code: str = "NEGATIVE_QUANTITY"

    def __init__(self, inventory_id, current_quantity, delta):
        self.inventory_id = inventory_id
        self.current_quantity = current_quantity
        self.delta = delta
        super().__init__(
            f"Quantity cannot be negative: inventory {inventory_id} has "
            f"{current_quantity}, change {delta}"
        )


class InvalidQuantityError(QuantityError):
    """A quantity argument is itself invalid (negative, not a number)."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity, reason: str):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity}: {reason}")


class NoStockError(QuantityError):
    """Subtract requested against a signature with no record."""

    code: str = "NO_STOCK"

    def __init__(self, signature: str, delta):
        self.signature = signature
        self.delta = delta
        super().__init__(f"No stock to subtract {delta} from ({signature})")


class OverAllocationError(QuantityError):
    """Allocations sum to more than the record's quantity."""

    code: str = "OVER_ALLOCATION"

    def __init__(self, inventory_id: int, available, requested):
        self.inventory_id = inventory_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Cannot allocate {requested} from inventory {inventory_id}: "
            f"only {available} available"
        )


# Consolidation exceptions


class ConsolidationError(InventoryKernelError):
    """Base exception for consolidation problems."""

    code: str = "CONSOLIDATION_ERROR"


class ConsolidationAmbiguityError(ConsolidationError):
    """More than one existing bulk record shares the target signature."""

    code: str = "CONSOLIDATION_AMBIGUITY"

    def __init__(self, signature: str, matching_ids: list[int]):
        self.signature = signature
        self.matching_ids = matching_ids
        super().__init__(
            f"Multiple records match ({signature}): {matching_ids}"
        )


# Store exceptions


class StoreError(InventoryKernelError):
    """Base exception for persistence failures."""

    code: str = "STORE_ERROR"


class WriteError(StoreError):
    """The underlying store rejected a write."""

    code: str = "WRITE_ERROR"

    def __init__(self, operation: str, entity_type: str, detail: str):
        self.operation = operation
        self.entity_type = entity_type
        self.detail = detail
        super().__init__(f"{operation} {entity_type} failed: {detail}")


class DuplicateSignatureError(WriteError):
    """
    A bulk row with the same equivalence key already exists.

    Raised by the record store when the UNIQUE equivalence_key rejects a
    write; the ledger resolves it by merging instead of creating.
    """

    code: str = "DUPLICATE_SIGNATURE"

    def __init__(self, operation: str, signature: str):
        self.signature = signature
        super().__init__(operation, "Inventory", f"duplicate signature {signature}")


# Concurrency exceptions


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id, expected_version: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Audit exceptions


class AuditError(InventoryKernelError):
    """Base exception for audit trail errors."""

    code: str = "AUDIT_ERROR"


class AuditWriteError(AuditError):
    """A transaction record could not be written in strict audit mode."""

    code: str = "AUDIT_WRITE_FAILED"

    def __init__(self, transaction_type: str, inventory_id, detail: str):
        self.transaction_type = transaction_type
        self.inventory_id = inventory_id
        self.detail = detail
        super().__init__(
            f"Failed to record {transaction_type} for inventory "
            f"{inventory_id}: {detail}"
        )


# Immutability exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Remote procedure exceptions


class RemoteProcedureError(InventoryKernelError):
    """A remote function call failed, was rejected, or was unreachable."""

    code: str = "REMOTE_PROCEDURE_FAILED"

    def __init__(self, function_name: str, detail: str, status_code: int | None = None):
        self.function_name = function_name
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"Remote function {function_name} failed: {detail}")
