"""Static metadata describing how each tenant-owned entity reaches its tenant.

Every tenant-owned ORM class is registered once at startup with either

* ``Direct(column)``: the entity carries the tenant column itself, or
* ``Indirect(hops, column)``: the tenant column lives on the entity reached
  by following the named relationships in order.

``validate()`` checks the registry exhaustively against a manifest of
tenant-owned entities and resolves every hop chain against the ORM mappers,
so a gap or a typo fails at startup instead of leaking rows at runtime.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import InstrumentedAttribute, Mapper

from restaurant_tenancy.errors import ScopingConfigurationError

logger = structlog.get_logger()


@dataclass(frozen=True)
class Direct:
    column: str


@dataclass(frozen=True)
class Indirect:
    hops: tuple[str, ...]
    column: str

    def __post_init__(self) -> None:
        if isinstance(self.hops, str):
            object.__setattr__(self, "hops", (self.hops,))
        else:
            object.__setattr__(self, "hops", tuple(self.hops))
        if not self.hops:
            raise ValueError("Indirect path needs at least one relationship hop")


ScopablePath = Direct | Indirect


@dataclass(frozen=True)
class ResolvedPath:
    """A descriptor bound to concrete mapped attributes."""

    entity: type[Any]
    relationships: tuple[InstrumentedAttribute[Any], ...]
    terminal_entity: type[Any]
    terminal_column: InstrumentedAttribute[Any]


def _mapper_for(entity: type[Any]) -> Mapper[Any]:
    try:
        return sa_inspect(entity)
    except NoInspectionAvailable as exc:
        raise ScopingConfigurationError(
            f"{getattr(entity, '__name__', entity)!s} is not a mapped class"
        ) from exc


class ScopablePathRegistry:
    """Process-wide map of entity type -> scopable path descriptor."""

    def __init__(self, paths: Mapping[type[Any], ScopablePath] | None = None) -> None:
        self._paths: dict[type[Any], ScopablePath] = {}
        self._resolved: dict[type[Any], ResolvedPath] = {}
        for entity, path in (paths or {}).items():
            self.register(entity, path)

    def register(self, entity: type[Any], path: ScopablePath) -> None:
        if entity in self._paths:
            raise ScopingConfigurationError(
                f"{entity.__name__} already has a scopable path"
            )
        self._paths[entity] = path

    def get(self, entity: type[Any]) -> ScopablePath | None:
        return self._paths.get(entity)

    def __contains__(self, entity: object) -> bool:
        return entity in self._paths

    def __iter__(self) -> Iterator[type[Any]]:
        return iter(self._paths)

    def __len__(self) -> int:
        return len(self._paths)

    def entity_for_table(self, table_name: str) -> type[Any] | None:
        for entity in self._paths:
            table = getattr(entity, "__table__", None)
            if table is not None and table.name == table_name:
                return entity
        return None

    def resolve(self, entity: type[Any]) -> ResolvedPath:
        """Bind the entity's descriptor to mapped attributes (cached).

        Raises:
            ScopingConfigurationError: entity unregistered, a hop is not a
                relationship, or the terminal column does not exist.
        """
        cached = self._resolved.get(entity)
        if cached is not None:
            return cached

        path = self._paths.get(entity)
        if path is None:
            raise ScopingConfigurationError(
                f"{getattr(entity, '__name__', entity)!s} has no scopable path"
            )

        hops = path.hops if isinstance(path, Indirect) else ()
        current = entity
        relationships: list[InstrumentedAttribute[Any]] = []
        for hop in hops:
            mapper = _mapper_for(current)
            if hop not in mapper.relationships:
                raise ScopingConfigurationError(
                    f"{entity.__name__}: {current.__name__} has no relationship {hop!r}"
                )
            relationships.append(getattr(current, hop))
            current = mapper.relationships[hop].mapper.class_

        if path.column not in _mapper_for(current).column_attrs:
            raise ScopingConfigurationError(
                f"{entity.__name__}: {current.__name__} has no column {path.column!r}"
            )

        resolved = ResolvedPath(
            entity=entity,
            relationships=tuple(relationships),
            terminal_entity=current,
            terminal_column=getattr(current, path.column),
        )
        self._resolved[entity] = resolved
        return resolved

    def validate(self, manifest: Iterable[type[Any]]) -> None:
        """Fail unless every manifest entity is registered and resolvable."""
        expected = set(manifest)
        missing = sorted(e.__name__ for e in expected - set(self._paths))
        if missing:
            raise ScopingConfigurationError(
                "Tenant-owned entities without a scopable path: " + ", ".join(missing)
            )
        for entity in self._paths:
            self.resolve(entity)

    def scan_unregistered(
        self,
        mappers: Iterable[Mapper[Any]],
        *,
        tenant_column: str = "restaurant_id",
        tenant_relationship: str = "restaurant",
        ignore: Iterable[type[Any]] = (),
    ) -> list[type[Any]]:
        """Warn about mapped entities that look tenant-owned but are unscoped.

        Advisory only: an entity is "tenant-owned by convention" when it has
        the tenant column or a relationship to the tenant.
        """
        skipped = set(ignore)
        suspects: list[type[Any]] = []
        for mapper in mappers:
            entity = mapper.class_
            if entity in self._paths or entity in skipped:
                continue
            if (
                tenant_column in mapper.column_attrs
                or tenant_relationship in mapper.relationships
            ):
                suspects.append(entity)
                logger.warning(
                    "unscoped_tenant_entity",
                    entity=entity.__name__,
                    hint=f"register Direct({tenant_column!r}) or an Indirect path",
                )
        return suspects
