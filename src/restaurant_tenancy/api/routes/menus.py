"""Public menu browsing endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_tenancy.api.deps import get_session, tenant_operation
from restaurant_tenancy.api.schemas import (
    MenuItemResponse,
    MenuResponse,
    OptionGroupResponse,
)
from restaurant_tenancy.storage.repositories import (
    MenuItemRepository,
    MenuRepository,
    OptionGroupRepository,
)
from restaurant_tenancy.tenancy.context import RequestContext
from restaurant_tenancy.tenancy.policy import OperationPolicy

router = APIRouter(tags=["menus"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]
MenusDep = Annotated[
    RequestContext, Depends(tenant_operation("menus.list", OperationPolicy.PUBLIC))
]
MenuItemsDep = Annotated[
    RequestContext, Depends(tenant_operation("menu_items.list", OperationPolicy.PUBLIC))
]
OptionGroupsDep = Annotated[
    RequestContext,
    Depends(tenant_operation("option_groups.list", OperationPolicy.PUBLIC)),
]


@router.get("/menus")
async def list_menus(ctx: MenusDep, session: SessionDep) -> list[MenuResponse]:
    menus = await MenuRepository(session, ctx).list_all(limit=100)
    return [MenuResponse.model_validate(m) for m in menus]


@router.get("/menus/{menu_id}/items")
async def list_menu_items(
    menu_id: int,
    ctx: MenuItemsDep,
    session: SessionDep,
) -> list[MenuItemResponse]:
    """Items of one menu of the resolved restaurant.

    Returns 404 for menus of other restaurants.
    """
    if await MenuRepository(session, ctx).get_by_id(menu_id) is None:
        raise HTTPException(status_code=404, detail="Menu not found")
    items = await MenuItemRepository(session, ctx).list_for_menu(menu_id)
    return [MenuItemResponse.model_validate(i) for i in items]


@router.get("/menu_items/{menu_item_id}/option_groups")
async def list_option_groups(
    menu_item_id: int,
    ctx: OptionGroupsDep,
    session: SessionDep,
) -> list[OptionGroupResponse]:
    if await MenuItemRepository(session, ctx).get_by_id(menu_item_id) is None:
        raise HTTPException(status_code=404, detail="Menu item not found")
    groups = await OptionGroupRepository(session, ctx).list_for_item(menu_item_id)
    return [OptionGroupResponse.model_validate(g) for g in groups]
