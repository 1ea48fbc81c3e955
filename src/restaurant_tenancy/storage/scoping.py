"""Scopable path registrations for every tenant-owned entity.

Adding a tenant-owned model means adding it to ``TENANT_OWNED_ENTITIES``
and registering its path here; ``validate_scoping()`` runs at startup and
refuses to boot when the two disagree.
"""

from __future__ import annotations

from typing import Any, TypeVar

from sqlalchemy.sql.dml import UpdateBase
from sqlalchemy.sql.selectable import Select

from restaurant_tenancy.storage.orm import (
    AuditLog,
    Base,
    Menu,
    MenuItem,
    Option,
    OptionGroup,
    Order,
    OrderPayment,
    Reservation,
    Restaurant,
    Seat,
    SeatAllocation,
    SeatSection,
    User,
)
from restaurant_tenancy.tenancy.registry import Direct, Indirect, ScopablePathRegistry
from restaurant_tenancy.tenancy.scoping import ScopingEngine

StatementT = TypeVar("StatementT", Select[Any], UpdateBase)

TENANT_COLUMN = "restaurant_id"

TENANT_OWNED_ENTITIES: frozenset[type[Any]] = frozenset(
    {
        User,
        Menu,
        MenuItem,
        OptionGroup,
        Option,
        Order,
        OrderPayment,
        Reservation,
        SeatSection,
        Seat,
        SeatAllocation,
        AuditLog,
    }
)

SCOPABLE_PATHS = ScopablePathRegistry(
    {
        User: Direct(TENANT_COLUMN),
        Menu: Direct(TENANT_COLUMN),
        MenuItem: Indirect(("menu",), TENANT_COLUMN),
        OptionGroup: Indirect(("menu_item", "menu"), TENANT_COLUMN),
        Option: Indirect(("option_group", "menu_item", "menu"), TENANT_COLUMN),
        Order: Direct(TENANT_COLUMN),
        OrderPayment: Indirect(("order",), TENANT_COLUMN),
        Reservation: Direct(TENANT_COLUMN),
        SeatSection: Direct(TENANT_COLUMN),
        Seat: Indirect(("seat_section",), TENANT_COLUMN),
        SeatAllocation: Indirect(("seat", "seat_section"), TENANT_COLUMN),
        AuditLog: Direct(TENANT_COLUMN),
    }
)

scoping_engine = ScopingEngine(SCOPABLE_PATHS)


def validate_scoping() -> list[type[Any]]:
    """Startup check: fail on gaps, warn on suspicious unregistered models.

    Returns:
        Mapped classes that look tenant-owned but are not registered.
    """
    SCOPABLE_PATHS.validate(TENANT_OWNED_ENTITIES)
    return SCOPABLE_PATHS.scan_unregistered(
        Base.registry.mappers,
        tenant_column=TENANT_COLUMN,
        ignore=(Restaurant,),
    )


def with_tenant_scope(entity: type[Any], statement: StatementT) -> StatementT:
    """Constrain a statement to the active request's tenant."""
    return scoping_engine.scope(entity, statement)
