from typing import Optional
from uuid import UUID
from sqlmodel import SQLModel

from app.db.schema import UserRole, SUPPLIER_STAFF_ROLES


class TokenData(SQLModel):
    user_id: UUID
    role: UserRole
    supplier_id: Optional[UUID] = None


class Actor(TokenData):
    """The authenticated caller a request acts on behalf of."""

    @property
    def is_consumer(self) -> bool:
        return self.role == UserRole.CONSUMER

    @property
    def is_supplier_staff(self) -> bool:
        return self.role in SUPPLIER_STAFF_ROLES and self.supplier_id is not None
