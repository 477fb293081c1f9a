import uuid
from contextlib import contextmanager
from typing import List, Optional, Tuple

from loguru import logger
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select, update, func, col

from app.core.exceptions import ConflictError, DomainError
from app.db.schema import (
    Order, OrderItem, OrderStatus, Product,
    Conversation, Message, Complaint, ComplaintStatus, User, utc_now
)


class PersistenceGateway:
    """
    Storage boundary of the ordering and chat core.

    Methods flush but never commit on their own; callers group related writes
    with `transaction()` so they become visible together or not at all.
    """

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def transaction(self):
        try:
            yield self.session
            self.session.commit()
        except DomainError:
            self.session.rollback()
            raise
        except Exception:
            self.session.rollback()
            logger.exception("Transaction rolled back")
            raise

    # ==========================================================================
    # PRODUCTS
    # ==========================================================================

    def get_product_by_id(self, product_id: uuid.UUID) -> Optional[Product]:
        return self.session.get(Product, product_id)

    def get_products_for_supplier(self, supplier_id: uuid.UUID, product_ids: List[uuid.UUID]) -> List[Product]:
        statement = (
            select(Product)
            .where(Product.supplier_id == supplier_id)
            .where(col(Product.id).in_(product_ids))
        )
        return list(self.session.exec(statement).all())

    def conditional_decrement_stock(self, product_id: uuid.UUID, quantity: int) -> bool:
        """
        Compare-and-decrement in a single statement.
        Returns False when the product is missing or has less than `quantity` left.
        """
        statement = (
            update(Product)
            .where(Product.id == product_id)
            .where(Product.stock_level >= quantity)
            .values(
                stock_level=Product.stock_level - quantity,
                updated_at=utc_now()
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.exec(statement)
        return result.rowcount == 1

    # ==========================================================================
    # ORDERS
    # ==========================================================================

    def create_order_transactional(self, order: Order, items: List[OrderItem]) -> Order:
        """Header and all lines are inserted in one transaction."""
        with self.transaction():
            order.items = items
            self.session.add(order)
            self.session.flush()

        self.session.refresh(order)
        return order

    def get_order(self, order_id: uuid.UUID) -> Optional[Order]:
        statement = (
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.items))
        )
        return self.session.exec(statement).first()

    def update_order_status(
        self,
        order_id: uuid.UUID,
        from_status: OrderStatus,
        to_status: OrderStatus
    ) -> bool:
        """
        Conditional transition. Only one of several concurrent callers
        expecting the same `from_status` can succeed.
        """
        statement = (
            update(Order)
            .where(Order.id == order_id)
            .where(Order.status == from_status)
            .values(status=to_status, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = self.session.exec(statement)
        return result.rowcount == 1

    def list_orders(
        self,
        *,
        consumer_id: Optional[uuid.UUID] = None,
        supplier_id: Optional[uuid.UUID] = None,
        statuses: Optional[List[OrderStatus]] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Order], int]:
        statement = select(Order)
        count_statement = select(func.count()).select_from(Order)

        filters = []
        if consumer_id:
            filters.append(Order.consumer_id == consumer_id)
        if supplier_id:
            filters.append(Order.supplier_id == supplier_id)
        if statuses:
            filters.append(col(Order.status).in_(statuses))

        for condition in filters:
            statement = statement.where(condition)
            count_statement = count_statement.where(condition)

        total = self.session.exec(count_statement).one()
        orders = self.session.exec(
            statement
            .options(selectinload(Order.items))
            .order_by(col(Order.created_at).desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
        return list(orders), total

    # ==========================================================================
    # CONVERSATIONS & MESSAGES
    # ==========================================================================

    def get_conversation(self, conversation_id: uuid.UUID) -> Optional[Conversation]:
        return self.session.get(Conversation, conversation_id)

    def find_conversation(self, consumer_id: uuid.UUID, supplier_id: uuid.UUID) -> Optional[Conversation]:
        statement = (
            select(Conversation)
            .where(Conversation.consumer_id == consumer_id)
            .where(Conversation.supplier_id == supplier_id)
        )
        return self.session.exec(statement).first()

    def get_or_create_conversation(self, consumer_id: uuid.UUID, supplier_id: uuid.UUID) -> Conversation:
        """
        Insert-or-ignore on the (consumer, supplier) unique constraint, then
        re-read. A concurrent first contact makes our insert a no-op and we
        return the winner's row.
        """
        existing = self.find_conversation(consumer_id, supplier_id)
        if existing:
            return existing

        values = {
            "id": uuid.uuid4(),
            "consumer_id": consumer_id,
            "supplier_id": supplier_id,
            "unread_count": 0,
            "created_at": utc_now(),
        }

        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            statement = postgresql.insert(Conversation).values(**values)
        elif dialect == "sqlite":
            statement = sqlite.insert(Conversation).values(**values)
        else:
            raise RuntimeError(
                f"Unsupported database dialect for conversations: {dialect}")

        self.session.exec(
            statement.on_conflict_do_nothing(
                index_elements=["consumer_id", "supplier_id"])
        )

        conversation = self.find_conversation(consumer_id, supplier_id)
        if conversation is None:
            # Winner rolled back between its insert and our re-read
            raise ConflictError("Conversation is being created concurrently, retry")
        if conversation.id != values["id"]:
            logger.debug(
                f"Conversation {consumer_id}/{supplier_id} created concurrently, reusing {conversation.id}")
        return conversation

    def list_conversations(
        self,
        *,
        consumer_id: Optional[uuid.UUID] = None,
        supplier_id: Optional[uuid.UUID] = None
    ) -> List[Conversation]:
        statement = select(Conversation)
        if consumer_id:
            statement = statement.where(Conversation.consumer_id == consumer_id)
        if supplier_id:
            statement = statement.where(Conversation.supplier_id == supplier_id)

        statement = statement.order_by(
            col(Conversation.last_message_at).desc().nulls_last(),
            col(Conversation.created_at).desc()
        )
        return list(self.session.exec(statement).all())

    def create_message(self, message: Message) -> Message:
        self.session.add(message)
        self.session.flush()
        return message

    def update_conversation_last_activity(self, conversation_id: uuid.UUID, increment_unread: bool = False) -> bool:
        now = utc_now()
        values = {"last_message_at": now, "updated_at": now}
        if increment_unread:
            values["unread_count"] = Conversation.unread_count + 1

        statement = (
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.session.exec(statement)
        return result.rowcount == 1

    def list_messages(self, conversation_id: uuid.UUID, page: int = 1, page_size: int = 50) -> List[Tuple[Message, Optional[User]]]:
        statement = (
            select(Message, User)
            .join(User, Message.sender_id == User.id, isouter=True)
            .where(Message.conversation_id == conversation_id)
            .order_by(col(Message.created_at).asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(self.session.exec(statement).all())

    def mark_messages_read(self, conversation_id: uuid.UUID, reader_id: uuid.UUID) -> int:
        """Marks messages written by anyone but the reader as read."""
        statement = (
            update(Message)
            .where(Message.conversation_id == conversation_id)
            .where(Message.sender_id != reader_id)
            .where(Message.is_read == False)  # noqa: E712
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        result = self.session.exec(statement)

        self.session.exec(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(unread_count=0)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        return self.session.get(User, user_id)

    # ==========================================================================
    # COMPLAINTS
    # ==========================================================================

    def create_complaint(self, complaint: Complaint) -> Complaint:
        self.session.add(complaint)
        self.session.flush()
        return complaint

    def get_complaint_by_id(self, complaint_id: uuid.UUID) -> Optional[Complaint]:
        return self.session.get(Complaint, complaint_id)

    def update_complaint(self, complaint: Complaint) -> Complaint:
        complaint.updated_at = utc_now()
        self.session.add(complaint)
        self.session.flush()
        return complaint

    def list_complaints(
        self,
        supplier_id: uuid.UUID,
        status: Optional[ComplaintStatus] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Complaint], int]:
        statement = select(Complaint).where(
            Complaint.supplier_id == supplier_id)
        count_statement = select(func.count()).select_from(Complaint).where(
            Complaint.supplier_id == supplier_id)

        if status:
            statement = statement.where(Complaint.status == status)
            count_statement = count_statement.where(Complaint.status == status)

        total = self.session.exec(count_statement).one()
        complaints = self.session.exec(
            statement
            .order_by(col(Complaint.created_at).desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
        return list(complaints), total
