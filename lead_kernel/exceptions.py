"""
Typed exception hierarchy for the lead kernel.

Every error has a typed class (catch by type, not message), a ``code``
class attribute (machine-readable, API-safe) and structured attributes
carrying the data a caller needs to react.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LeadKernelError (base)
    |
    +-- AuthError
    |   +-- UnauthorizedError
    |   +-- ForbiddenError
    |
    +-- InvalidInputError
    |   +-- UnknownRecordError
    |
    +-- CreditError
    |   +-- InsufficientCreditsError
    |
    +-- EntitlementError
    |   +-- RecordLockedError
    |   +-- NoEntitledRecordsError
    |
    +-- BatchError
    |   +-- BatchNotFoundError
    |   +-- StagingRowNotFoundError
    |   +-- InvalidBatchStateError
    |
    +-- PersistenceFailureError
    |
    +-- ConcurrencyError
    |   +-- ConcurrencyConflictError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                   | When Raised
--------------|------------------------|-----------------------------------------
Auth          | UNAUTHORIZED           | Missing or unverifiable bearer token
              | FORBIDDEN              | Caller lacks the required role
--------------|------------------------|-----------------------------------------
Input         | INVALID_INPUT          | Malformed ids, amounts, modes, CSV
              | UNKNOWN_RECORD         | Record id names no existing lead
--------------|------------------------|-----------------------------------------
Credit        | INSUFFICIENT_CREDITS   | Balance below the unlock cost
--------------|------------------------|-----------------------------------------
Entitlement   | RECORD_LOCKED          | Claim cap reached for a candidate
              | NO_ENTITLED_RECORDS    | Nothing entitled among the request
--------------|------------------------|-----------------------------------------
Batch         | BATCH_NOT_FOUND        | Upload batch id doesn't exist
              | STAGING_ROW_NOT_FOUND  | Staging row id doesn't exist
              | INVALID_BATCH_STATE    | Illegal lifecycle transition
--------------|------------------------|-----------------------------------------
Persistence   | PERSISTENCE_FAILURE    | Unexpected storage failure
Concurrency   | CONCURRENCY_CONFLICT   | Transient conflict retries exhausted
Immutability  | IMMUTABILITY_VIOLATION | Update/delete of an append-only row
"""

from collections.abc import Iterable
from uuid import UUID


class LeadKernelError(Exception):
    """
    Base exception for all lead kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification. ``user_message`` is the short text safe to show
    to an end user.
    """

    code: str = "LEAD_KERNEL_ERROR"
    user_message: str = "Request failed"


def _id_list(ids: Iterable[UUID | str]) -> list[str]:
    return sorted(str(i) for i in ids)


# Authentication / authorization


class AuthError(LeadKernelError):
    """Base exception for identity and role errors."""

    code: str = "AUTH_ERROR"


class UnauthorizedError(AuthError):
    """No verified identity could be established for the caller."""

    code: str = "UNAUTHORIZED"
    user_message = "Unauthorized"

    def __init__(self, reason: str = "missing or invalid bearer token"):
        self.reason = reason
        super().__init__(f"Unauthorized: {reason}")


class ForbiddenError(AuthError):
    """Authenticated caller lacks the role required by the operation."""

    code: str = "FORBIDDEN"
    user_message = "Forbidden"

    def __init__(self, user_id: UUID | str, required_role: str, operation: str):
        self.user_id = str(user_id)
        self.required_role = required_role
        self.operation = operation
        super().__init__(
            f"User {user_id} requires role '{required_role}' for {operation}"
        )


# Input validation


class InvalidInputError(LeadKernelError):
    """Request input is malformed or out of range."""

    code: str = "INVALID_INPUT"
    user_message = "Invalid input"

    def __init__(self, reason: str, field: str | None = None):
        self.reason = reason
        self.field = field
        self.user_message = reason
        super().__init__(f"Invalid input: {reason}")


class UnknownRecordError(InvalidInputError):
    """One or more requested record ids do not name an existing lead."""

    code: str = "UNKNOWN_RECORD"

    def __init__(self, record_ids: Iterable[UUID | str]):
        self.record_ids = _id_list(record_ids)
        super().__init__(
            f"unknown record ids: {', '.join(self.record_ids)}",
            field="record_ids",
        )


# Credits


class CreditError(LeadKernelError):
    """Base exception for credit ledger errors."""

    code: str = "CREDIT_ERROR"


class InsufficientCreditsError(CreditError):
    """Caller's derived balance is below the cost of the unlock."""

    code: str = "INSUFFICIENT_CREDITS"
    user_message = "Not enough credits"

    def __init__(self, user_id: UUID | str, required: int, available: int):
        self.user_id = str(user_id)
        self.required = required
        self.available = available
        super().__init__(
            f"User {user_id} needs {required} credits, has {available}"
        )


# Entitlements


class EntitlementError(LeadKernelError):
    """Base exception for entitlement errors."""

    code: str = "ENTITLEMENT_ERROR"


class RecordLockedError(EntitlementError):
    """At least one candidate record has reached its claim cap."""

    code: str = "RECORD_LOCKED"
    user_message = "One or more records are locked"

    def __init__(self, record_ids: Iterable[UUID | str]):
        self.record_ids = _id_list(record_ids)
        super().__init__(f"Records locked: {', '.join(self.record_ids)}")


class NoEntitledRecordsError(EntitlementError):
    """None of the requested records is entitled to the caller."""

    code: str = "NO_ENTITLED_RECORDS"
    user_message = "No entitled records found"

    def __init__(self, user_id: UUID | str, dataset: str):
        self.user_id = str(user_id)
        self.dataset = dataset
        super().__init__(
            f"No entitled records found for user {user_id} in {dataset}"
        )


# Upload batches


class BatchError(LeadKernelError):
    """Base exception for upload batch errors."""

    code: str = "BATCH_ERROR"


class BatchNotFoundError(BatchError):
    code: str = "BATCH_NOT_FOUND"
    user_message = "Batch not found"

    def __init__(self, batch_id: UUID | str):
        self.batch_id = str(batch_id)
        super().__init__(f"Upload batch not found: {batch_id}")


class StagingRowNotFoundError(BatchError):
    code: str = "STAGING_ROW_NOT_FOUND"
    user_message = "Staging row not found"

    def __init__(self, row_id: UUID | str):
        self.row_id = str(row_id)
        super().__init__(f"Staging row not found: {row_id}")


class InvalidBatchStateError(BatchError):
    """Requested lifecycle action is not legal from the batch's status."""

    code: str = "INVALID_BATCH_STATE"
    user_message = "Batch is not in a valid state for this action"

    def __init__(
        self,
        batch_id: UUID | str,
        current_status: str,
        action: str,
        reason: str | None = None,
    ):
        self.batch_id = str(batch_id)
        self.current_status = current_status
        self.action = action
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Cannot {action} batch {batch_id} in status '{current_status}'{detail}"
        )


# Persistence


class PersistenceFailureError(LeadKernelError):
    """Unexpected storage failure. Details are logged, not exposed."""

    code: str = "PERSISTENCE_FAILURE"
    user_message = "Storage failure"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Persistence failure during {operation}")


# Concurrency


class ConcurrencyError(LeadKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrencyConflictError(ConcurrencyError):
    """Transient database conflicts outlasted every retry attempt."""

    code: str = "CONCURRENCY_CONFLICT"
    user_message = "Please retry"

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"{operation} aborted after {attempts} conflicting attempts"
        )


# Immutability


class ImmutabilityError(LeadKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Credit ledger entries and dataset access grants are append-only.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
