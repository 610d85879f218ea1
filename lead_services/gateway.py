"""
lead_services.gateway -- transport-agnostic RPC surface.

Responsibility:
    One method per operation.  Each call authenticates the bearer token,
    checks the operation's role, then runs the kernel/ingestion work in a
    single transaction obtained from the LeadStore handle.

Invariants:
    - A mutating call commits entirely or not at all.
    - Transient database conflicts are retried with a fresh transaction.
    - Unexpected storage errors surface as PersistenceFailureError; their
      details go to the log only.

Failure modes:
    Every LeadKernelError subclass propagates unchanged to the transport
    adapter, which maps ``code`` / ``user_message`` to its own response.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lead_config.bridges import build_claim_policy, engine_options
from lead_config.schema import LeadsConfiguration
from lead_ingestion.adapters.csv_export import to_csv
from lead_ingestion.domain.types import (
    MergeResult,
    StagingRow,
    StagingSummary,
    UploadBatch,
    ValidationSummary,
)
from lead_ingestion.services.import_service import ImportService
from lead_ingestion.services.merge_service import MergeService
from lead_kernel.db.engine import build_engine
from lead_kernel.db.store import LeadStore
from lead_kernel.domain.business_rules import BusinessMode
from lead_kernel.domain.clock import Clock, SystemClock
from lead_kernel.domain.dtos import (
    Dataset,
    LeadView,
    LedgerEntryView,
    LedgerReason,
    Role,
    UnlockResult,
    UserProfileView,
)
from lead_kernel.exceptions import (
    InvalidInputError,
    LeadKernelError,
    NoEntitledRecordsError,
    PersistenceFailureError,
)
from lead_kernel.logging_config import LogContext, get_logger
from lead_kernel.models.lead import LEAD_EXPORT_COLUMNS, Lead
from lead_kernel.selectors.entitlement_selector import EntitlementSelector, LeadCatalogSelector
from lead_kernel.selectors.ledger_selector import LedgerSelector
from lead_kernel.services.ledger_service import LedgerService
from lead_kernel.services.profile_service import ProfileService
from lead_kernel.services.unlock_service import UnlockService
from lead_services.authorization import AuthorizationMiddleware
from lead_services.identity import Identity, TokenVerifier

logger = get_logger("services.gateway")

T = TypeVar("T")

LEDGER_EXPORT_COLUMNS: tuple[str, ...] = ("id", "delta", "reason", "meta", "created_at")

_MAX_UNLOCK_BATCH = 500


def parse_uuid(value: Any, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        raise InvalidInputError(f"{field} must be a UUID", field=field) from None


def parse_uuid_list(values: Iterable[Any] | None, field: str) -> list[UUID]:
    if values is None or isinstance(values, (str, bytes)):
        raise InvalidInputError(f"{field} must be a list of UUIDs", field=field)
    parsed = list(dict.fromkeys(parse_uuid(v, field) for v in values))
    if not parsed:
        raise InvalidInputError(f"{field} must not be empty", field=field)
    if len(parsed) > _MAX_UNLOCK_BATCH:
        raise InvalidInputError(f"at most {_MAX_UNLOCK_BATCH} {field} per call", field=field)
    return parsed


class LeadsGateway:

    def __init__(
        self,
        store: LeadStore,
        verifier: TokenVerifier,
        config: LeadsConfiguration,
        clock: Clock | None = None,
    ):
        self._store = store
        self._auth = AuthorizationMiddleware(verifier)
        self._config = config
        self._policy = build_claim_policy(config)
        self._clock = clock or SystemClock()

    @classmethod
    def from_config(
        cls,
        config: LeadsConfiguration,
        verifier: TokenVerifier,
        clock: Clock | None = None,
    ) -> "LeadsGateway":
        engine = build_engine(config.database.url, **engine_options(config))
        return cls(LeadStore.from_engine(engine), verifier, config, clock)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _call(
        self,
        operation: str,
        token: str | None,
        work: Callable[[Session, Identity], T],
    ) -> T:
        with LogContext.bind(request_id=str(uuid4()), producer="gateway"):

            def unit(session: Session) -> T:
                identity = self._auth.authorize(session, token, operation)
                with LogContext.bind(actor_id=str(identity.user_id)):
                    return work(session, identity)

            try:
                return self._store.run(unit, operation)
            except LeadKernelError as exc:
                logger.info(
                    "operation_failed",
                    extra={"operation": operation, "error_code": exc.code},
                )
                raise
            except SQLAlchemyError as exc:
                logger.error(
                    "persistence_failure",
                    extra={"operation": operation},
                    exc_info=True,
                )
                raise PersistenceFailureError(operation) from exc

    def _imports(self, session: Session) -> ImportService:
        return ImportService(session, self._config.ingestion, self._clock)

    # ------------------------------------------------------------------
    # Credits and profiles
    # ------------------------------------------------------------------

    def grant_credits(
        self,
        token: str | None,
        amount: int,
        user_id: UUID | str | None = None,
        reason: str = LedgerReason.ADMIN_GRANT.value,
    ) -> LedgerEntryView:
        """Admin credit grant. ``user_id`` defaults to the caller."""
        target = parse_uuid(user_id, "user_id") if user_id is not None else None

        def work(session: Session, identity: Identity) -> LedgerEntryView:
            beneficiary = target or identity.user_id
            ProfileService(session, self._clock).ensure_profile(beneficiary)
            return LedgerService(session, self._clock).grant_credits(
                beneficiary, amount, actor_id=identity.user_id, reason=reason
            )

        return self._call("grant_credits", token, work)

    def get_balance(self, token: str | None) -> int:
        return self._call(
            "get_balance",
            token,
            lambda session, identity: LedgerSelector(session).balance(identity.user_id),
        )

    def get_ledger(self, token: str | None, limit: int | None = 100) -> list[LedgerEntryView]:
        return self._call(
            "get_ledger",
            token,
            lambda session, identity: LedgerSelector(session).history(identity.user_id, limit),
        )

    def get_profile(self, token: str | None) -> UserProfileView:
        return self._call(
            "get_profile",
            token,
            lambda session, identity: ProfileService(session).ensure_profile(identity.user_id).to_dto(),
        )

    def set_business_rule(self, token: str | None, business_rule: str) -> BusinessMode:
        mode = BusinessMode.parse(business_rule)

        def work(session: Session, identity: Identity) -> BusinessMode:
            return ProfileService(session, self._clock).set_business_rule(
                identity.user_id, mode
            ).business_rule

        return self._call("set_business_rule", token, work)

    def set_role(self, token: str | None, user_id: UUID | str, role: str) -> UserProfileView:
        target = parse_uuid(user_id, "user_id")
        try:
            parsed_role = Role(role)
        except ValueError:
            raise InvalidInputError("role must be 'user' or 'admin'", field="role") from None
        return self._call(
            "set_role",
            token,
            lambda session, identity: ProfileService(session, self._clock).set_role(target, parsed_role),
        )

    # ------------------------------------------------------------------
    # Entitlements
    # ------------------------------------------------------------------

    def unlock_records(
        self,
        token: str | None,
        record_ids: Iterable[UUID | str],
        dataset: str = Dataset.LEADS.value,
    ) -> UnlockResult:
        ids = parse_uuid_list(record_ids, "record_ids")

        def work(session: Session, identity: Identity) -> UnlockResult:
            service = UnlockService(session, self._clock, self._policy)
            return service.unlock(identity.user_id, ids, dataset)

        return self._call("unlock_records", token, work)

    def download_leads(self, token: str | None, record_ids: Iterable[UUID | str]) -> str:
        """Unlock (charging only new records) and export the entitled leads as CSV."""
        ids = parse_uuid_list(record_ids, "record_ids")

        def work(session: Session, identity: Identity) -> str:
            UnlockService(session, self._clock, self._policy).unlock(identity.user_id, ids)
            entitled = EntitlementSelector(session).entitled_ids(identity.user_id, Dataset.LEADS, ids)
            if not entitled:
                raise NoEntitledRecordsError(identity.user_id, Dataset.LEADS.value)
            leads = session.scalars(
                select(Lead).where(Lead.id.in_(entitled)).order_by(Lead.created_at, Lead.id)
            ).all()
            logger.info("leads_exported", extra={"rows": len(leads)})
            return to_csv(LEAD_EXPORT_COLUMNS, [lead.export_row() for lead in leads])

        return self._call("download_leads", token, work)

    def export_ledger(self, token: str | None) -> str:
        def work(session: Session, identity: Identity) -> str:
            entries = LedgerSelector(session).history(identity.user_id)
            return to_csv(
                LEDGER_EXPORT_COLUMNS,
                [
                    {
                        "id": entry.entry_id,
                        "delta": entry.delta,
                        "reason": entry.reason,
                        "meta": entry.meta,
                        "created_at": entry.created_at,
                    }
                    for entry in entries
                ],
            )

        return self._call("export_ledger", token, work)

    def list_leads(self, token: str | None, limit: int = 100, offset: int = 0) -> list[LeadView]:
        if limit < 1 or offset < 0:
            raise InvalidInputError("limit must be >= 1 and offset >= 0", field="limit")
        return self._call(
            "list_leads",
            token,
            lambda session, identity: LeadCatalogSelector(session, self._policy).list_leads(
                identity.user_id, limit, offset
            ),
        )

    # ------------------------------------------------------------------
    # Staging pipeline
    # ------------------------------------------------------------------

    def create_upload_batch(self, token: str | None, filename: str, total_rows: int) -> UUID:
        return self._call(
            "create_upload_batch",
            token,
            lambda session, identity: self._imports(session).create_upload_batch(
                filename, total_rows, identity.user_id
            ).batch_id,
        )

    def insert_staging_row(
        self,
        token: str | None,
        batch_id: UUID | str,
        fields: Mapping[str, Any],
    ) -> bool:
        bid = parse_uuid(batch_id, "batch_id")
        if not isinstance(fields, Mapping):
            raise InvalidInputError("fields must be an object", field="fields")
        return self._call(
            "insert_staging_row",
            token,
            lambda session, identity: self._imports(session).insert_staging_row(
                bid, fields, identity.user_id
            ),
        )

    def upload_csv(self, token: str | None, filename: str, content: str | bytes) -> StagingSummary:
        return self._call(
            "upload_csv",
            token,
            lambda session, identity: self._imports(session).stage_csv(
                filename, content, identity.user_id
            ),
        )

    def validate_batch(self, token: str | None, batch_id: UUID | str) -> ValidationSummary:
        bid = parse_uuid(batch_id, "batch_id")
        return self._call(
            "validate_batch",
            token,
            lambda session, identity: self._imports(session).validate_batch(bid, identity.user_id),
        )

    def merge_batch(self, token: str | None, batch_id: UUID | str) -> MergeResult:
        bid = parse_uuid(batch_id, "batch_id")
        return self._call(
            "merge_batch",
            token,
            lambda session, identity: MergeService(session, self._clock).merge_batch(
                bid, identity.user_id
            ),
        )

    def reject_batch(self, token: str | None, batch_id: UUID | str) -> UploadBatch:
        bid = parse_uuid(batch_id, "batch_id")
        return self._call(
            "reject_batch",
            token,
            lambda session, identity: self._imports(session).reject_batch(bid, identity.user_id),
        )

    def correct_staging_row(
        self,
        token: str | None,
        row_id: UUID | str,
        fields: Mapping[str, Any],
    ) -> StagingRow:
        rid = parse_uuid(row_id, "row_id")
        return self._call(
            "correct_staging_row",
            token,
            lambda session, identity: self._imports(session).correct_staging_row(
                rid, fields, identity.user_id
            ),
        )

    def list_batches(self, token: str | None, limit: int = 50) -> list[UploadBatch]:
        return self._call(
            "list_batches",
            token,
            lambda session, identity: self._imports(session).list_batches(limit),
        )

    def get_staging_rows(
        self,
        token: str | None,
        batch_id: UUID | str,
        only_invalid: bool = False,
    ) -> list[StagingRow]:
        bid = parse_uuid(batch_id, "batch_id")
        return self._call(
            "get_staging_rows",
            token,
            lambda session, identity: self._imports(session).get_staging_rows(bid, only_invalid),
        )
