"""Verified actor identity handed over by the authentication layer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Role(StrEnum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    STAFF = "staff"
    CUSTOMER = "customer"


@dataclass(frozen=True)
class Actor:
    """Authenticated identity performing an operation.

    ``tenant_id`` is the actor's own restaurant; super admins usually
    have none.
    """

    id: int
    role: str
    tenant_id: int | None = None
    email: str | None = None

    def has_role(self, *roles: str) -> bool:
        return self.role in roles
