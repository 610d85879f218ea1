"""
lead_services.identity -- caller identity from a bearer token.

Authentication itself is external: a TokenVerifier turns an opaque bearer
token into a verified user id (or None).  Roles are not taken from the
token; they come from the caller's profile row (see authorization).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from uuid import UUID

from lead_kernel.domain.dtos import Role

_BEARER_PREFIX = "bearer "


@dataclass(frozen=True)
class Identity:
    user_id: UUID
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@runtime_checkable
class TokenVerifier(Protocol):

    def verify(self, token: str) -> UUID | None:
        """Verified user id for ``token``, or None when it is not valid."""
        ...


class StaticTokenVerifier:
    """Fixed token -> user id table, for local runs and tests."""

    def __init__(self, tokens: Mapping[str, UUID] | None = None):
        self._tokens: dict[str, UUID] = dict(tokens or {})

    def register(self, token: str, user_id: UUID) -> None:
        self._tokens[token] = user_id

    def verify(self, token: str) -> UUID | None:
        return self._tokens.get(token)


def extract_bearer_token(header: str | None) -> str | None:
    """``"Bearer abc"`` -> ``"abc"``; anything else -> None."""
    if not header:
        return None
    if not header[: len(_BEARER_PREFIX)].lower() == _BEARER_PREFIX:
        return None
    token = header[len(_BEARER_PREFIX):].strip()
    return token or None
