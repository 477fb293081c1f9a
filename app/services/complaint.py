from typing import List, Optional, Tuple
from uuid import UUID

from loguru import logger
from sqlmodel import Session

from app.core.exceptions import (
    ComplaintNotFound, ConversationNotFound, InvalidTransitionError,
    ResolutionTooShort, UnauthorizedError, ValidationFailure
)
from app.db.gateway import PersistenceGateway
from app.db.schema import (
    Complaint, ComplaintStatus, Message, SenderRole, utc_now
)
from app.models.auth import Actor
from app.models.complaint import ComplaintCreate, ComplaintRead
from app.models.realtime import Envelope
from app.realtime.hub import Hub, hub as default_hub

ESCALATION_MESSAGE = "this problem escalated to manager"
MIN_RESOLUTION_LENGTH = 10


class ComplaintService:
    """
    Complaints raised by supplier staff about a consumer conversation.
    Lifecycle: open -> escalated -> resolved, or open -> resolved.
    """

    def __init__(self, session: Session, hub: Optional[Hub] = None):
        self.session = session
        self.gateway = PersistenceGateway(session)
        self.hub = hub or default_hub

    def create_complaint(self, actor: Actor, data: ComplaintCreate) -> Complaint:
        conversation = self.gateway.get_conversation(data.conversation_id)
        if not conversation:
            raise ConversationNotFound()

        if conversation.supplier_id != actor.supplier_id:
            raise UnauthorizedError("Conversation belongs to another supplier")

        if conversation.consumer_id != data.consumer_id:
            raise ValidationFailure(
                "Consumer does not match the conversation")

        if data.order_id is not None:
            order = self.gateway.get_order(data.order_id)
            if (
                not order
                or order.supplier_id != actor.supplier_id
                or order.consumer_id != data.consumer_id
            ):
                raise ValidationFailure(
                    "Order does not belong to this supplier and consumer")

        with self.gateway.transaction():
            complaint = self.gateway.create_complaint(Complaint(
                conversation_id=conversation.id,
                consumer_id=data.consumer_id,
                supplier_id=actor.supplier_id,
                order_id=data.order_id,
                title=data.title,
                description=data.description,
                priority=data.priority,
                status=ComplaintStatus.OPEN
            ))

        logger.info(
            f"Complaint {complaint.id} opened by {actor.user_id} for supplier {actor.supplier_id}")
        return complaint

    def list_complaints(
        self,
        supplier_id: UUID,
        status: Optional[ComplaintStatus] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Complaint], int]:
        return self.gateway.list_complaints(supplier_id, status, page, page_size)

    def get_complaint(self, actor: Actor, complaint_id: UUID) -> Complaint:
        complaint = self.gateway.get_complaint_by_id(complaint_id)
        if not complaint:
            raise ComplaintNotFound()
        if complaint.supplier_id != actor.supplier_id:
            raise UnauthorizedError("Complaint belongs to another supplier")
        return complaint

    # ==========================================================================
    # LIFECYCLE
    # ==========================================================================

    def escalate_complaint(self, actor: Actor, complaint_id: UUID) -> Complaint:
        """
        Marks the complaint escalated and posts a system note into its
        conversation. The status change, the note and the conversation's
        activity commit together.
        """
        complaint = self.get_complaint(actor, complaint_id)
        if complaint.status != ComplaintStatus.OPEN:
            raise InvalidTransitionError(
                f"Complaint is {complaint.status.value}, only open complaints can be escalated")

        with self.gateway.transaction():
            complaint.status = ComplaintStatus.ESCALATED
            complaint.escalated_by = actor.user_id
            complaint.escalated_at = utc_now()
            self.gateway.update_complaint(complaint)

            self.gateway.create_message(Message(
                conversation_id=complaint.conversation_id,
                sender_id=actor.user_id,
                sender_role=SenderRole.SALES_REP,
                content=ESCALATION_MESSAGE
            ))
            self.gateway.update_conversation_last_activity(
                complaint.conversation_id)

        logger.info(f"Complaint {complaint.id} escalated by {actor.user_id}")

        self.hub.send_to_supplier(complaint.supplier_id, Envelope(
            type="complaint_escalated",
            data=ComplaintRead.model_validate(complaint).model_dump(mode="json")
        ))
        return complaint

    def resolve_complaint(self, actor: Actor, complaint_id: UUID, resolution: str) -> Complaint:
        if len(resolution) < MIN_RESOLUTION_LENGTH:
            raise ResolutionTooShort(
                f"Resolution must be at least {MIN_RESOLUTION_LENGTH} characters")

        complaint = self.get_complaint(actor, complaint_id)
        if complaint.status == ComplaintStatus.RESOLVED:
            raise InvalidTransitionError("Complaint is already resolved")

        with self.gateway.transaction():
            complaint.status = ComplaintStatus.RESOLVED
            complaint.resolution = resolution
            complaint.resolved_at = utc_now()
            self.gateway.update_complaint(complaint)

        logger.info(f"Complaint {complaint.id} resolved by {actor.user_id}")
        return complaint
