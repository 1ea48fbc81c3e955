"""Append-only audit trail of tenant access and isolation violations.

``AuditLogger`` never raises into the operation it is auditing. Store
failures and write timeouts are reported on the diagnostics logger and
dropped; the operation's own outcome is unaffected.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from restaurant_tenancy.logging_config import DIAGNOSTICS_LOGGER

if TYPE_CHECKING:
    from restaurant_tenancy.auth.actor import Actor
    from restaurant_tenancy.tenancy.metrics import MetricsSink

logger = structlog.get_logger()
diagnostics = structlog.get_logger(DIAGNOSTICS_LOGGER)


class AuditAction(StrEnum):
    TENANT_ACCESS = "tenant_access"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"


class Severity(StrEnum):
    INFO = "info"
    SUSPICIOUS = "suspicious"


CROSS_TENANT_ACCESS = "cross_tenant_access"


@dataclass(frozen=True)
class AuditEntry:
    action: str
    severity: Severity = Severity.INFO
    actor_id: int | None = None
    tenant_id: int | None = None
    resource_type: str | None = None
    resource_id: str | None = None
    ip_address: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class AuditStore(Protocol):
    async def append(self, entry: AuditEntry) -> None: ...


class AuditLogger:
    def __init__(
        self,
        store: AuditStore,
        *,
        metrics: MetricsSink | None = None,
        timeout_seconds: float = 2.0,
    ) -> None:
        self._store = store
        self._metrics = metrics
        self._timeout = timeout_seconds

    async def record(
        self,
        *,
        action: str,
        actor: Actor | None = None,
        tenant_id: int | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        ip_address: str | None = None,
        details: dict[str, Any] | None = None,
        severity: Severity = Severity.INFO,
    ) -> None:
        entry = AuditEntry(
            action=action,
            severity=severity,
            actor_id=actor.id if actor is not None else None,
            tenant_id=tenant_id,
            resource_type=resource_type,
            resource_id=resource_id,
            ip_address=ip_address,
            details=dict(details or {}),
        )
        if severity == Severity.SUSPICIOUS:
            logger.warning(
                "suspicious_activity",
                audit_action=action,
                actor_id=entry.actor_id,
                audit_tenant_id=tenant_id,
                resource_id=resource_id,
                details=entry.details,
            )
        await self._write(entry)

    async def record_access(
        self,
        *,
        actor: Actor | None,
        tenant_id: int | None,
        operation: str,
        allowed: bool,
        ip_address: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        outcome = "allowed" if allowed else "denied"
        if self._metrics is not None:
            self._metrics.record_access(tenant_id, outcome)
        await self.record(
            action=AuditAction.TENANT_ACCESS,
            actor=actor,
            tenant_id=tenant_id,
            resource_type="operation",
            resource_id=operation,
            ip_address=ip_address,
            details={**(details or {}), "operation": operation, "outcome": outcome},
        )

    async def record_cross_tenant_attempt(
        self,
        *,
        actor: Actor | None,
        target_tenant_id: int | None,
        operation: str,
        ip_address: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record a denied attempt to act as ``target_tenant_id``.

        The record is filed under the actor's own tenant; the target goes
        into ``resource_id`` and the details.
        """
        actor_tenant_id = actor.tenant_id if actor is not None else None
        if self._metrics is not None:
            self._metrics.record_cross_tenant_attempt(actor_tenant_id)
        await self.record(
            action=AuditAction.SUSPICIOUS_ACTIVITY,
            actor=actor,
            tenant_id=actor_tenant_id,
            resource_type="restaurant",
            resource_id=str(target_tenant_id) if target_tenant_id is not None else None,
            ip_address=ip_address,
            severity=Severity.SUSPICIOUS,
            details={
                **(details or {}),
                "attempt_type": CROSS_TENANT_ACCESS,
                "user_restaurant_id": actor_tenant_id,
                "target_restaurant_id": target_tenant_id,
                "operation": operation,
            },
        )

    async def _write(self, entry: AuditEntry) -> None:
        try:
            await asyncio.wait_for(self._store.append(entry), timeout=self._timeout)
        except TimeoutError:
            diagnostics.error(
                "audit_write_timeout",
                audit_action=entry.action,
                timeout_seconds=self._timeout,
            )
        except Exception as exc:
            diagnostics.error(
                "audit_write_failed",
                audit_action=entry.action,
                error=str(exc),
                error_type=type(exc).__name__,
            )
