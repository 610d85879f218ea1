"""
Upload batch state machine.

    uploaded --validate--> validated --validate--> validated
    validated --approve--> approved --merge--> merged --merge--> merged
    uploaded | validated --reject--> rejected

Re-merging a merged batch is an idempotent replay.  A batch left in
``approved`` resumes by merging again.  Everything else is illegal.
"""

from enum import StrEnum
from uuid import UUID

from lead_ingestion.domain.types import BatchStatus
from lead_kernel.exceptions import InvalidBatchStateError


class BatchAction(StrEnum):
    VALIDATE = "validate"
    APPROVE = "approve"
    MERGE = "merge"
    REJECT = "reject"
    EDIT = "edit"
    STAGE = "stage"


BATCH_TRANSITIONS: dict[BatchAction, dict[BatchStatus, BatchStatus]] = {
    BatchAction.VALIDATE: {
        BatchStatus.UPLOADED: BatchStatus.VALIDATED,
        BatchStatus.VALIDATED: BatchStatus.VALIDATED,
    },
    BatchAction.APPROVE: {
        BatchStatus.VALIDATED: BatchStatus.APPROVED,
    },
    BatchAction.MERGE: {
        BatchStatus.APPROVED: BatchStatus.MERGED,
        BatchStatus.MERGED: BatchStatus.MERGED,
    },
    BatchAction.REJECT: {
        BatchStatus.UPLOADED: BatchStatus.REJECTED,
        BatchStatus.VALIDATED: BatchStatus.REJECTED,
    },
    # Row-level actions that keep the status.
    BatchAction.EDIT: {
        BatchStatus.UPLOADED: BatchStatus.UPLOADED,
        BatchStatus.VALIDATED: BatchStatus.VALIDATED,
    },
    BatchAction.STAGE: {
        BatchStatus.UPLOADED: BatchStatus.UPLOADED,
    },
}

TERMINAL_STATUSES = frozenset({BatchStatus.MERGED, BatchStatus.REJECTED})


def can_apply(current: BatchStatus, action: BatchAction) -> bool:
    return current in BATCH_TRANSITIONS[action]


def next_status(
    batch_id: UUID,
    current: BatchStatus | str,
    action: BatchAction,
    reason: str | None = None,
) -> BatchStatus:
    """Target status of ``action`` from ``current``, or InvalidBatchStateError."""
    current = BatchStatus(current)
    target = BATCH_TRANSITIONS[action].get(current)
    if target is None:
        raise InvalidBatchStateError(batch_id, current.value, action.value, reason)
    return target


def is_terminal(status: BatchStatus | str) -> bool:
    return BatchStatus(status) in TERMINAL_STATUSES
