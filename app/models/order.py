from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from sqlmodel import SQLModel, Field

from app.db.schema import OrderStatus


class OrderItemCreate(SQLModel):
    product_id: UUID
    quantity: int = Field(gt=0, description="Units of the product to order.")


class OrderCreate(SQLModel):
    """
    A consumer's cart for one supplier.
    Every product must belong to `supplier_id`.
    """
    supplier_id: UUID
    items: List[OrderItemCreate] = Field(min_length=1)


class OrderItemRead(SQLModel):
    id: UUID
    product_id: UUID
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class OrderRead(SQLModel):
    id: UUID
    consumer_id: UUID
    supplier_id: UUID
    status: OrderStatus
    subtotal: Decimal
    tax: Decimal
    shipping_fee: Decimal
    total: Decimal
    items: List[OrderItemRead] = []
    created_at: datetime
    updated_at: Optional[datetime] = None


class OrderPage(SQLModel):
    data: List[OrderRead]
    page: int
    page_size: int
    total: int
