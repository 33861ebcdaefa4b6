"""Caller identity as supplied by the upstream identity provider."""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from eduflow.domain.common.errors import ForbiddenError


class Role(str, Enum):
    ADMIN = "admin"
    REVISOR = "revisor"
    DOCENTE = "docente"
    ESTUDIANTE = "estudiante"


class AccountStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    SUSPENDED = "suspended"
    REJECTED = "rejected"


REVIEWER_ROLES = {Role.ADMIN, Role.REVISOR}
AUTHOR_ROLES = {Role.ADMIN, Role.DOCENTE}


def parse_role(value) -> Role:
    """Unknown roles fail closed."""
    try:
        return Role(value)
    except ValueError:
        raise ForbiddenError(f"Unrecognized role '{value}'.")


@dataclass(frozen=True)
class Caller:
    id: str
    role: Role
    organization_id: Optional[str] = None
    account_status: AccountStatus = AccountStatus.ACTIVE

    def __post_init__(self):
        # Unknown roles fail closed at the boundary
        object.__setattr__(self, "role", parse_role(self.role))
        object.__setattr__(self, "account_status", AccountStatus(self.account_status))

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES

    @classmethod
    def from_claims(cls, claims: dict) -> "Caller":
        status = claims.get("account_status") or AccountStatus.ACTIVE.value
        return cls(
            id=str(claims["sub"]),
            role=claims.get("role"),
            organization_id=claims.get("organization_id") or None,
            account_status=status,
        )
