from typing import Optional, List
from datetime import datetime, timezone
from decimal import Decimal
import uuid
from enum import Enum
from sqlalchemy import Enum as SAEnum
from sqlmodel import SQLModel, Field, Relationship, CheckConstraint, UniqueConstraint


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    """Organizational role of a user. Used for authorization and display only."""
    OWNER = "owner"
    MANAGER = "manager"
    SALES_REP = "sales_rep"
    CONSUMER = "consumer"


class SenderRole(str, Enum):
    """
    Storage vocabulary for message authors.
    Every supplier-side role (owner, manager, sales_rep) collapses to SALES_REP.
    """
    CONSUMER = "consumer"
    SALES_REP = "sales_rep"


class OrderStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"     # Terminal, supplier driven
    REJECTED = "rejected"     # Terminal, supplier driven
    CANCELLED = "cancelled"   # Terminal, consumer driven


class ComplaintPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ComplaintStatus(str, Enum):
    OPEN = "open"
    ESCALATED = "escalated"
    RESOLVED = "resolved"


SUPPLIER_STAFF_ROLES = (UserRole.OWNER, UserRole.MANAGER, UserRole.SALES_REP)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class TimestampMixin(SQLModel):
    """
    Standard audit timestamps. `updated_at` stays empty until the first
    modification of the record.
    """
    created_at: datetime = Field(
        default_factory=utc_now,
        description="UTC timestamp when this record was first persisted."
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        sa_column_kwargs={"onupdate": utc_now},
        description="UTC timestamp of the last modification."
    )


class Supplier(TimestampMixin, SQLModel, table=True):
    """A selling organization. Staff users and products belong to it."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, description="Example: 'Fresh Farms Ltd.'")

    staff: List["User"] = Relationship(back_populates="supplier")
    products: List["Product"] = Relationship(back_populates="supplier")


class User(TimestampMixin, SQLModel, table=True):
    """
    A human account. Consumers have no supplier; owners, managers and sales
    reps are affiliated with exactly one supplier.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: str = Field(unique=True, index=True)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: UserRole = Field(
        sa_type=SAEnum(UserRole, name="user_role",
                       values_callable=_enum_values),
        default=UserRole.CONSUMER
    )
    supplier_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="supplier.id", index=True)

    supplier: Optional[Supplier] = Relationship(back_populates="staff")

    @property
    def display_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name or self.company_name or self.email


class Product(TimestampMixin, SQLModel, table=True):
    """
    Catalog entry of a supplier. The core only reads pricing fields and
    changes `stock_level` through a conditional decrement.
    """
    __table_args__ = (
        CheckConstraint("stock_level >= 0", name="ck_product_stock_non_negative"),
        CheckConstraint("discount IS NULL OR (discount >= 0 AND discount <= 100)",
                        name="ck_product_discount_range"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    supplier_id: uuid.UUID = Field(foreign_key="supplier.id", index=True)
    name: str
    unit: str = Field(default="unit", description="Example: 'kg', 'box'")
    price: Decimal = Field(max_digits=12, decimal_places=2)
    discount: Optional[Decimal] = Field(
        default=None, max_digits=5, decimal_places=2,
        description="Percentage off the list price, 0-100.")
    stock_level: int = Field(default=0)
    min_order_quantity: int = Field(default=1)

    supplier: Supplier = Relationship(back_populates="products")


class Order(TimestampMixin, SQLModel, table=True):
    """
    A consumer's purchase from one supplier.
    Invariant: total == subtotal + tax + shipping_fee.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    consumer_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    supplier_id: uuid.UUID = Field(foreign_key="supplier.id", index=True)
    status: OrderStatus = Field(
        sa_type=SAEnum(OrderStatus, name="order_status",
                       values_callable=_enum_values),
        default=OrderStatus.PENDING,
        index=True
    )
    subtotal: Decimal = Field(max_digits=12, decimal_places=2)
    tax: Decimal = Field(max_digits=12, decimal_places=2)
    shipping_fee: Decimal = Field(max_digits=12, decimal_places=2)
    total: Decimal = Field(max_digits=12, decimal_places=2)

    items: List["OrderItem"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "OrderItem.created_at"
        }
    )


class OrderItem(SQLModel, table=True):
    """
    A line of an order. `unit_price` is a snapshot taken at order time and
    never follows later product price changes.
    """
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_item_quantity_positive"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    order_id: uuid.UUID = Field(foreign_key="order.id", index=True)
    product_id: uuid.UUID = Field(foreign_key="product.id")
    quantity: int
    unit_price: Decimal = Field(max_digits=12, decimal_places=2)
    subtotal: Decimal = Field(max_digits=12, decimal_places=2)
    created_at: datetime = Field(default_factory=utc_now)

    order: Order = Relationship(back_populates="items")


class Conversation(TimestampMixin, SQLModel, table=True):
    """
    The single chat thread between a consumer and a supplier's staff.
    Uniqueness of the pair is enforced here, not in application code.
    """
    __table_args__ = (
        UniqueConstraint("consumer_id", "supplier_id",
                         name="uq_conversation_pair"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    consumer_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    supplier_id: uuid.UUID = Field(foreign_key="supplier.id", index=True)
    last_message_at: Optional[datetime] = None
    unread_count: int = Field(default=0)


class Message(SQLModel, table=True):
    """
    A chat message. `sender_role` only ever holds the two storage values of
    SenderRole; the author's organizational role is not persisted.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    conversation_id: uuid.UUID = Field(
        foreign_key="conversation.id", index=True)
    sender_id: uuid.UUID = Field(foreign_key="user.id")
    sender_role: SenderRole = Field(
        sa_type=SAEnum(SenderRole, name="message_sender_role",
                       values_callable=_enum_values,
                       create_constraint=True)
    )
    content: str
    attachment_url: Optional[str] = None
    is_read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now, index=True)


class Complaint(TimestampMixin, SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    conversation_id: uuid.UUID = Field(foreign_key="conversation.id")
    consumer_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    supplier_id: uuid.UUID = Field(foreign_key="supplier.id", index=True)
    order_id: Optional[uuid.UUID] = Field(default=None, foreign_key="order.id")
    title: str
    description: str
    priority: ComplaintPriority = Field(
        sa_type=SAEnum(ComplaintPriority, name="complaint_priority",
                       values_callable=_enum_values)
    )
    status: ComplaintStatus = Field(
        sa_type=SAEnum(ComplaintStatus, name="complaint_status",
                       values_callable=_enum_values),
        default=ComplaintStatus.OPEN,
        index=True
    )
    escalated_by: Optional[uuid.UUID] = Field(
        default=None, foreign_key="user.id")
    escalated_at: Optional[datetime] = None
    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = None
