"""
Response schemas shared across routers.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class UserResponse(BaseModel):
    user_id: UUID
    email: str
    name: str
    role: str
    company_id: UUID | None
    email_verified: bool
    last_login: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class WarehouseResponse(BaseModel):
    warehouse_id: UUID
    company_id: UUID
    code: str
    name: str
    street: str
    city: str
    state: str
    pin: str
    country: str
    manager_id: UUID | None
    capacity: int
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class CategoryResponse(BaseModel):
    category_id: UUID
    name: str
    aging_concern: str
    description: str | None

    model_config = {"from_attributes": True}


class ProductResponse(BaseModel):
    product_id: UUID
    company_id: UUID
    category_id: UUID
    sku: str
    name: str
    description: str | None
    unit_price: float
    unit_type: str
    reorder_level: int
    barcode: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StockResponse(BaseModel):
    stock_id: UUID
    product_id: UUID
    warehouse_id: UUID
    batch_id: str
    quantity_received: int
    quantity_available: int
    quantity_damaged: int
    entry_date: datetime
    expiry_date: datetime | None
    age_in_days: int | None
    status: str
    entry_photos: list[str] | None
    notes: str | None

    model_config = {"from_attributes": True}


class MovementResponse(BaseModel):
    movement_id: UUID
    stock_id: UUID
    product_id: UUID
    movement_type: str
    quantity: int
    from_warehouse_id: UUID | None
    to_warehouse_id: UUID | None
    reason: str | None
    notes: str | None
    performed_by: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AlertResponse(BaseModel):
    alert_id: UUID
    company_id: UUID
    stock_id: UUID | None
    product_id: UUID | None
    warehouse_id: UUID | None
    alert_type: str
    severity: str
    title: str
    message: str
    recommendation: str | None
    alert_metadata: dict | None
    status: str
    acknowledged_by: UUID | None
    acknowledged_at: datetime | None
    resolved_by: UUID | None
    resolved_at: datetime | None
    resolution_notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationResponse(BaseModel):
    notification_id: UUID
    user_id: UUID | None
    notification_type: str
    priority: str
    title: str
    message: str
    link: str | None
    notification_metadata: dict | None
    status: str
    read_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class InvitationResponse(BaseModel):
    invitation_id: UUID
    email: str
    name: str
    role: str
    assigned_warehouses: list[str] | None
    status: str
    expires_at: datetime
    personal_message: str | None
    accepted_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
