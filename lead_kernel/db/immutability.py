"""
ORM-level append-only enforcement.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners here reject any modification of rows that must
never change once written:

Entity                 | When Immutable            | Rule
-----------------------|---------------------------|------------------------------
CreditLedgerEntry      | ALWAYS (from creation)    | Balance is derived from them
DatasetAccess          | ALWAYS (from creation)    | Grants are permanent
LeadUploadStagingRow   | After merged_lead_id set  | Merged rows are history

Bulk Core statements bypass these listeners; nothing in the services issues
bulk UPDATE or DELETE against these tables.
"""

from sqlalchemy import event, inspect

from lead_kernel.exceptions import ImmutabilityViolationError
from lead_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_ledger_entry_update(mapper, connection, target):
    _block("CreditLedgerEntry", target, "UPDATE", "Ledger entries are append-only")


def _check_ledger_entry_delete(mapper, connection, target):
    _block("CreditLedgerEntry", target, "DELETE", "Ledger entries cannot be deleted")


def _check_access_update(mapper, connection, target):
    _block("DatasetAccess", target, "UPDATE", "Access grants are permanent")


def _check_access_delete(mapper, connection, target):
    _block("DatasetAccess", target, "DELETE", "Access grants cannot be revoked")


def _check_staging_row_update(mapper, connection, target):
    history = inspect(target).attrs.merged_lead_id.history
    previous = history.deleted[0] if history.deleted else None
    if previous is None and history.unchanged:
        previous = history.unchanged[0]
    if previous is not None:
        _block(
            "LeadUploadStagingRow",
            target,
            "UPDATE",
            "Staging rows are frozen once merged",
        )


_LISTENERS = (
    ("CreditLedgerEntry", "before_update", _check_ledger_entry_update),
    ("CreditLedgerEntry", "before_delete", _check_ledger_entry_delete),
    ("DatasetAccess", "before_update", _check_access_update),
    ("DatasetAccess", "before_delete", _check_access_delete),
    ("LeadUploadStagingRow", "before_update", _check_staging_row_update),
)


def _models() -> dict:
    from lead_ingestion.models.staging import LeadUploadStagingRow
    from lead_kernel.models.entitlement import DatasetAccess
    from lead_kernel.models.ledger import CreditLedgerEntry

    return {
        "CreditLedgerEntry": CreditLedgerEntry,
        "DatasetAccess": DatasetAccess,
        "LeadUploadStagingRow": LeadUploadStagingRow,
    }


def register_immutability_listeners() -> None:
    """
    Register all append-only event listeners.

    Safe to call more than once; already registered listeners are skipped.
    """
    models = _models()
    for model_name, event_name, listener_fn in _LISTENERS:
        target = models[model_name]
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove the listeners.

    WARNING: Only use this in tests that intentionally violate the rules.
    """
    models = _models()
    for model_name, event_name, listener_fn in _LISTENERS:
        target = models[model_name]
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
