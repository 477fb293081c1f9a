from typing import List, Optional
from decimal import Decimal
from uuid import UUID
from sqlmodel import SQLModel, Field


class ProductRead(SQLModel):
    id: UUID
    supplier_id: UUID
    name: str
    unit: str
    price: Decimal
    discount: Optional[Decimal] = None
    stock_level: int
    min_order_quantity: int


class ProductPatch(SQLModel):
    """
    One optional slot per attribute that may be bulk updated.
    Only slots present in the request are applied.
    """
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    discount: Optional[Decimal] = Field(default=None, max_digits=5, decimal_places=2)
    stock_level: Optional[int] = Field(
        default=None, ge=0, description="Absolute restock value, not a delta.")
    min_order_quantity: Optional[int] = Field(default=None, ge=1)


class ProductBulkUpdate(SQLModel):
    product_ids: List[UUID] = Field(min_length=1)
    patch: ProductPatch
