"""Read-only view of tenants used during resolution and enforcement."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class TenantRecord:
    id: int
    name: str
    allowed_origins: tuple[str, ...] = ()
    is_active: bool = True
    settings: dict[str, Any] = field(default_factory=dict)

    def allows_origin(self, origin: str) -> bool:
        """An empty allow-list means the tenant does not restrict origins."""
        return not self.allowed_origins or origin in self.allowed_origins


class TenantDirectory(Protocol):
    async def get(self, tenant_id: int) -> TenantRecord | None: ...

    async def any_tenant_id(self) -> int | None: ...
