"""Request/response schemas for the API layer."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# --- Restaurant ---


class RestaurantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    is_active: bool


class RestaurantListResponse(BaseModel):
    items: list[RestaurantResponse]
    limit: int
    offset: int


# --- Menus ---


class OptionGroupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    menu_item_id: int
    name: str


class MenuItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    menu_id: int
    name: str
    description: str | None
    price_cents: int


class MenuResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    name: str
    is_active: bool


# --- Orders ---


class OrderCreateRequest(BaseModel):
    """Request body for POST /orders."""

    total_cents: int = Field(..., ge=0)


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    user_id: int | None
    status: str
    total_cents: int


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    total: int
    limit: int
    offset: int


class OrderPaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    amount_cents: int
    payment_method: str
    status: str


# --- Audit ---


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: int | None
    restaurant_id: int | None
    action: str
    severity: str
    resource_type: str | None
    resource_id: str | None
    ip_address: str | None
    details: dict[str, Any]
    created_at: datetime


class AuditLogListResponse(BaseModel):
    """Paginated response for ``GET /admin/audit_logs``."""

    items: list[AuditLogResponse] = Field(description="Records, newest first.")
    total: int = Field(description="Total number of records matching the filters.")
    limit: int
    offset: int
