"""Restaurant (tenant) endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_tenancy.api.deps import get_session, tenant_operation
from restaurant_tenancy.api.schemas import RestaurantListResponse, RestaurantResponse
from restaurant_tenancy.storage.repositories import RestaurantRepository
from restaurant_tenancy.tenancy.context import RequestContext, current_tenant
from restaurant_tenancy.tenancy.policy import OperationPolicy

router = APIRouter(tags=["restaurants"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]
ListDep = Annotated[
    RequestContext,
    Depends(tenant_operation("restaurants.list", OperationPolicy.GLOBAL)),
]
ShowDep = Annotated[
    RequestContext,
    Depends(
        tenant_operation(
            "restaurants.show",
            OperationPolicy.PUBLIC,
            tenant_path_param="restaurant_id",
        )
    ),
]


@router.get("/restaurants")
async def list_restaurants(
    ctx: ListDep,
    session: SessionDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> RestaurantListResponse:
    """List restaurants.

    Privileged callers without a tenant see every restaurant; a caller
    bound to a tenant sees only that one.
    """
    repo = RestaurantRepository(session)
    own_id = current_tenant(ctx)
    if own_id is not None:
        own = await repo.get_by_id(own_id)
        restaurants = [own] if own is not None and offset == 0 else []
    else:
        restaurants = await repo.list_all(limit=limit, offset=offset)
    return RestaurantListResponse(
        items=[RestaurantResponse.model_validate(r) for r in restaurants],
        limit=limit,
        offset=offset,
    )


@router.get("/restaurants/{restaurant_id}")
async def get_restaurant(
    restaurant_id: int,
    ctx: ShowDep,
    session: SessionDep,
) -> RestaurantResponse:
    """Public restaurant profile."""
    # Non-privileged mismatches are denied by the guard.
    if ctx.tenant_id != restaurant_id:
        raise HTTPException(status_code=404, detail="Restaurant not found")
    restaurant = await RestaurantRepository(session).get_by_id(restaurant_id)
    if restaurant is None:
        raise HTTPException(status_code=404, detail="Restaurant not found")
    return RestaurantResponse.model_validate(restaurant)
