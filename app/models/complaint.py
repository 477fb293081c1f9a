from typing import List, Optional
from datetime import datetime
from uuid import UUID
from sqlmodel import SQLModel, Field

from app.db.schema import ComplaintPriority, ComplaintStatus


class ComplaintCreate(SQLModel):
    """Filed by supplier staff about a consumer conversation."""
    conversation_id: UUID
    consumer_id: UUID
    order_id: Optional[UUID] = None
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    priority: ComplaintPriority


class ComplaintResolve(SQLModel):
    # Length is checked by the service so the failure carries its own code
    resolution: str


class ComplaintRead(SQLModel):
    id: UUID
    conversation_id: UUID
    consumer_id: UUID
    supplier_id: UUID
    order_id: Optional[UUID] = None
    title: str
    description: str
    priority: ComplaintPriority
    status: ComplaintStatus
    escalated_by: Optional[UUID] = None
    escalated_at: Optional[datetime] = None
    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class ComplaintPage(SQLModel):
    data: List[ComplaintRead]
    page: int
    page_size: int
    total: int
