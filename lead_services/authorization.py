"""
lead_services.authorization -- role enforcement at the gateway boundary.

Responsibility:
    Resolve a bearer token to an Identity (verified user id + profile role)
    and check the role an operation requires before dispatch.

Invariants:
    - The kernel stays actor-agnostic; it receives user ids, never tokens.
    - Admins may call every user operation.
    - Every gateway operation is listed in OPERATION_ROLES.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from lead_kernel.domain.dtos import Role
from lead_kernel.exceptions import ForbiddenError, UnauthorizedError
from lead_kernel.logging_config import get_logger
from lead_kernel.services.profile_service import ProfileService
from lead_services.identity import Identity, TokenVerifier, extract_bearer_token

logger = get_logger("services.authorization")

OPERATION_ROLES: dict[str, Role] = {
    # Credits and staging pipeline
    "grant_credits": Role.ADMIN,
    "create_upload_batch": Role.ADMIN,
    "insert_staging_row": Role.ADMIN,
    "upload_csv": Role.ADMIN,
    "validate_batch": Role.ADMIN,
    "merge_batch": Role.ADMIN,
    "reject_batch": Role.ADMIN,
    "correct_staging_row": Role.ADMIN,
    "list_batches": Role.ADMIN,
    "get_staging_rows": Role.ADMIN,
    "set_role": Role.ADMIN,
    # End users
    "unlock_records": Role.USER,
    "download_leads": Role.USER,
    "export_ledger": Role.USER,
    "get_balance": Role.USER,
    "get_ledger": Role.USER,
    "list_leads": Role.USER,
    "set_business_rule": Role.USER,
    "get_profile": Role.USER,
}


def required_role(operation: str) -> Role:
    try:
        return OPERATION_ROLES[operation]
    except KeyError:
        raise ValueError(f"No role requirement declared for {operation!r}") from None


def check_role(identity: Identity, operation: str) -> tuple[bool, str]:
    """(allowed, reason). reason is empty when allowed."""
    needed = required_role(operation)
    if needed is Role.USER or identity.is_admin:
        return (True, "")
    return (False, f"role '{needed.value}' required")


class AuthorizationMiddleware:

    def __init__(self, verifier: TokenVerifier):
        self._verifier = verifier

    def authenticate(self, session: Session, token: str | None) -> Identity:
        """
        Verify the token and load (or create) the caller's profile.

        ``token`` may be the raw token or a full ``Authorization`` header.
        """
        if token and token.lower().startswith("bearer "):
            token = extract_bearer_token(token)
        if not token:
            raise UnauthorizedError("missing bearer token")
        user_id = self._verifier.verify(token)
        if user_id is None:
            logger.info("token_rejected")
            raise UnauthorizedError("invalid bearer token")
        profile = ProfileService(session).ensure_profile(user_id)
        return Identity(user_id=user_id, role=Role(profile.role))

    def authorize(self, session: Session, token: str | None, operation: str) -> Identity:
        identity = self.authenticate(session, token)
        allowed, reason = check_role(identity, operation)
        if not allowed:
            logger.warning(
                "operation_forbidden",
                extra={"user_id": str(identity.user_id), "operation": operation, "reason": reason},
            )
            raise ForbiddenError(identity.user_id, required_role(operation).value, operation)
        return identity
