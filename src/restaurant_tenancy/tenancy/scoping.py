"""Automatic tenant scoping of persistence queries.

``ScopingEngine`` turns the active ``RequestContext`` plus the
``ScopablePathRegistry`` into a WHERE criterion meaning "this row belongs to
the bound tenant":

* ``Direct`` paths compare the tenant column.
* ``Indirect`` paths nest relationship ``has()`` / ``any()`` comparisons
  along the declared hops, which is equivalent to joining the chain and
  filtering the terminal column.

The same criterion is applied in two ways: explicitly through ``scope()``
(repositories pass their context down) and implicitly through a
``do_orm_execute`` listener that adds ``with_loader_criteria`` to every ORM
statement touching a tenant-owned entity, lazy and eager relationship loads
included.

A context that is missing, still resolving, or already cleared is a defect
in the caller; both paths raise ``TenantContextMissingError`` instead of
returning unscoped rows. ``execution_options(tenant_scope=False)`` is the
only way to opt a statement out.
"""

from __future__ import annotations

from typing import Any, TypeVar

from sqlalchemy import ColumnElement, event
from sqlalchemy.orm import ORMExecuteState, with_loader_criteria
from sqlalchemy.sql import util as sql_util
from sqlalchemy.sql.dml import UpdateBase
from sqlalchemy.sql.selectable import Select

from restaurant_tenancy.errors import (
    ScopingConfigurationError,
    TenantContextMissingError,
)
from restaurant_tenancy.tenancy.context import RequestContext, current_context
from restaurant_tenancy.tenancy.registry import ScopablePathRegistry

StatementT = TypeVar("StatementT", Select[Any], UpdateBase)

SKIP_OPTION = "tenant_scope"


def tenant_for_query(ctx: RequestContext | None) -> int | None:
    """Tenant a scoped query must be constrained to, or None for UNBOUND."""
    if ctx is None:
        raise TenantContextMissingError("Scoped query issued with no request context")
    if ctx.is_bound:
        return ctx.tenant_id
    if ctx.is_unbound:
        return None
    raise TenantContextMissingError(
        f"Scoped query issued while request context is {ctx.state.value}"
    )


class ScopingEngine:
    def __init__(self, registry: ScopablePathRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> ScopablePathRegistry:
        return self._registry

    def criterion(self, entity: type[Any], tenant_id: int) -> ColumnElement[bool]:
        """Build the ownership criterion for a concrete tenant id."""
        resolved = self._registry.resolve(entity)
        clause: ColumnElement[bool] = resolved.terminal_column == tenant_id
        for relationship in reversed(resolved.relationships):
            if relationship.property.uselist:
                clause = relationship.any(clause)
            else:
                clause = relationship.has(clause)
        return clause

    def constraint(
        self,
        entity: type[Any],
        ctx: RequestContext | None = None,
    ) -> ColumnElement[bool] | None:
        """Criterion for the active (or given) context; None means no filter."""
        if entity not in self._registry:
            raise ScopingConfigurationError(
                f"{getattr(entity, '__name__', entity)!s} is not tenant-scopable"
            )
        tenant_id = tenant_for_query(ctx if ctx is not None else current_context())
        if tenant_id is None:
            return None
        return self.criterion(entity, tenant_id)

    def scope(
        self,
        entity: type[Any],
        statement: StatementT,
        ctx: RequestContext | None = None,
    ) -> StatementT:
        """Constrain ``statement`` to the tenant bound in ``ctx``."""
        clause = self.constraint(entity, ctx)
        if clause is None:
            return statement
        return statement.where(clause)  # type: ignore[return-value]

    # -- automatic application -------------------------------------------

    def install(self, target: Any) -> None:
        """Attach the scoping listener to a Session class or sessionmaker."""
        if not event.contains(target, "do_orm_execute", self._on_do_orm_execute):
            event.listen(target, "do_orm_execute", self._on_do_orm_execute)

    def uninstall(self, target: Any) -> None:
        if event.contains(target, "do_orm_execute", self._on_do_orm_execute):
            event.remove(target, "do_orm_execute", self._on_do_orm_execute)

    def touched_entities(self, state: ORMExecuteState) -> set[type[Any]]:
        """Registered entities referenced anywhere in the statement."""
        touched = {
            mapper.class_
            for mapper in state.all_mappers
            if mapper.class_ in self._registry
        }
        for table in sql_util.find_tables(state.statement, include_crud=True):
            entity = self._registry.entity_for_table(table.name)
            if entity is not None:
                touched.add(entity)
        return touched

    def _on_do_orm_execute(self, state: ORMExecuteState) -> None:
        if not (state.is_select or state.is_update or state.is_delete):
            return
        # Relationship loads are not skipped: a parent that is not
        # tenant-owned carries no criteria for them to inherit.
        if state.is_column_load:
            return
        if not state.execution_options.get(SKIP_OPTION, True):
            return
        if not self.touched_entities(state):
            return

        tenant_id = tenant_for_query(current_context())
        if tenant_id is None:
            return

        state.statement = state.statement.options(
            *(
                with_loader_criteria(
                    entity,
                    self.criterion(entity, tenant_id),
                    include_aliases=True,
                )
                for entity in self._registry
            )
        )
