"""Order endpoints (tenant data, tenant required)."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_tenancy.api.deps import get_session, tenant_operation
from restaurant_tenancy.api.schemas import (
    OrderCreateRequest,
    OrderListResponse,
    OrderPaymentResponse,
    OrderResponse,
)
from restaurant_tenancy.storage.repositories import (
    OrderPaymentRepository,
    OrderRepository,
)
from restaurant_tenancy.tenancy.context import RequestContext

logger = structlog.get_logger()

router = APIRouter(tags=["orders"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]
ListDep = Annotated[RequestContext, Depends(tenant_operation("orders.list"))]
CreateDep = Annotated[RequestContext, Depends(tenant_operation("orders.create"))]
ShowDep = Annotated[RequestContext, Depends(tenant_operation("orders.show"))]
PaymentsDep = Annotated[RequestContext, Depends(tenant_operation("order_payments.list"))]


@router.get("/orders")
async def list_orders(
    ctx: ListDep,
    session: SessionDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> OrderListResponse:
    repo = OrderRepository(session, ctx)
    orders = await repo.list_all(limit=limit, offset=offset)
    total = await repo.count()
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/orders", status_code=201)
async def create_order(
    body: OrderCreateRequest,
    ctx: CreateDep,
    session: SessionDep,
) -> OrderResponse:
    """Create an order for the resolved restaurant."""
    user_id = ctx.actor.id if ctx.actor is not None else None
    order = await OrderRepository(session, ctx).create(
        user_id=user_id, total_cents=body.total_cents
    )
    await session.commit()
    logger.info("order_created", order_id=order.id)
    return OrderResponse.model_validate(order)


@router.get("/orders/{order_id}")
async def get_order(order_id: int, ctx: ShowDep, session: SessionDep) -> OrderResponse:
    order = await OrderRepository(session, ctx).get_by_id(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return OrderResponse.model_validate(order)


@router.get("/orders/{order_id}/payments")
async def list_order_payments(
    order_id: int,
    ctx: PaymentsDep,
    session: SessionDep,
) -> list[OrderPaymentResponse]:
    payments = await OrderPaymentRepository(session, ctx).list_for_order(order_id)
    return [OrderPaymentResponse.model_validate(p) for p in payments]
