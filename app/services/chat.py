from typing import List, Optional
from uuid import UUID

from loguru import logger
from sqlmodel import Session

from app.core.exceptions import (
    ConversationNotFound, UnauthorizedError, ValidationFailure
)
from app.db.gateway import PersistenceGateway
from app.db.schema import Conversation, Message, SenderRole, User, UserRole
from app.models.auth import Actor
from app.models.chat import MessageCreate, MessageRead, MarkReadResult
from app.models.realtime import Envelope
from app.realtime.hub import Hub, hub as default_hub
from app.utils.attachments import classify_attachment


def storage_role(role: UserRole) -> SenderRole:
    """Every supplier-side role is persisted as sales_rep."""
    if role == UserRole.CONSUMER:
        return SenderRole.CONSUMER
    return SenderRole.SALES_REP


def sender_name(sender: Optional[User], sender_id: UUID) -> str:
    if sender:
        return sender.display_name
    return f"User {str(sender_id)[:8]}"


def render_message(message: Message, sender: Optional[User], display_role: Optional[str] = None) -> MessageRead:
    return MessageRead(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        sender_name=sender_name(sender, message.sender_id),
        sender_role=display_role or message.sender_role.value,
        sender_avatar_url=sender.profile_image_url if sender else None,
        content=message.content,
        type=classify_attachment(message.attachment_url),
        attachment_url=message.attachment_url,
        is_read=message.is_read,
        timestamp=message.created_at
    )


class ChatService:
    def __init__(self, session: Session, hub: Optional[Hub] = None):
        self.session = session
        self.gateway = PersistenceGateway(session)
        self.hub = hub or default_hub

    # ==========================================================================
    # CONVERSATIONS
    # ==========================================================================

    def get_or_create_conversation(self, consumer_id: UUID, supplier_id: UUID) -> Conversation:
        with self.gateway.transaction():
            conversation = self.gateway.get_or_create_conversation(
                consumer_id, supplier_id)
        return conversation

    def list_conversations(self, actor: Actor) -> List[Conversation]:
        if actor.is_consumer:
            return self.gateway.list_conversations(consumer_id=actor.user_id)
        return self.gateway.list_conversations(supplier_id=actor.supplier_id)

    def get_conversation(self, actor: Actor, conversation_id: UUID) -> Conversation:
        conversation = self.gateway.get_conversation(conversation_id)
        if not conversation:
            raise ConversationNotFound()
        self.ensure_participant(actor, conversation)
        return conversation

    @staticmethod
    def ensure_participant(actor: Actor, conversation: Conversation) -> None:
        if actor.is_consumer:
            allowed = conversation.consumer_id == actor.user_id
        else:
            allowed = conversation.supplier_id == actor.supplier_id

        if not allowed:
            raise UnauthorizedError("You are not part of this conversation")

    def _resolve_conversation(
        self,
        actor: Actor,
        conversation_id: Optional[UUID],
        data: MessageCreate
    ) -> Conversation:
        """
        Uses the addressed conversation when it exists, otherwise the
        conversation between the sender and the counterpart named in the body.
        """
        conversation = None
        if conversation_id:
            conversation = self.gateway.get_conversation(conversation_id)

        if not conversation:
            if actor.is_consumer:
                if not data.supplier_id:
                    raise ValidationFailure(
                        "supplier_id is required to start a conversation")
                consumer_id, supplier_id = actor.user_id, data.supplier_id
            else:
                if not data.consumer_id:
                    raise ValidationFailure(
                        "consumer_id is required to start a conversation")
                consumer_id, supplier_id = data.consumer_id, actor.supplier_id

            conversation = self.gateway.get_or_create_conversation(
                consumer_id, supplier_id)

        self.ensure_participant(actor, conversation)
        return conversation

    # ==========================================================================
    # MESSAGES
    # ==========================================================================

    def send_message(self, actor: Actor, conversation_id: Optional[UUID], data: MessageCreate) -> MessageRead:
        """
        Persists a message and bumps the conversation's activity.
        The response carries the author's real role; storage keeps the
        collapsed one.
        """
        with self.gateway.transaction():
            conversation = self._resolve_conversation(
                actor, conversation_id, data)

            message = self.gateway.create_message(Message(
                conversation_id=conversation.id,
                sender_id=actor.user_id,
                sender_role=storage_role(actor.role),
                content=data.content,
                attachment_url=data.attachment_url
            ))
            self.gateway.update_conversation_last_activity(
                conversation.id, increment_unread=actor.is_consumer)

        sender = self.gateway.get_user(actor.user_id)
        response = render_message(message, sender, display_role=actor.role.value)

        logger.info(
            f"Message {message.id} sent to conversation {conversation.id} by {actor.role.value} {actor.user_id}")

        envelope = Envelope(type="new_message",
                            data=response.model_dump(mode="json"))
        if actor.is_consumer:
            self.hub.send_to_supplier(conversation.supplier_id, envelope)
        else:
            self.hub.send_to_consumer(conversation.consumer_id, envelope)

        return response

    def list_messages(
        self,
        actor: Actor,
        conversation_id: UUID,
        page: int = 1,
        page_size: int = 50
    ) -> List[MessageRead]:
        self.get_conversation(actor, conversation_id)

        rows = self.gateway.list_messages(conversation_id, page, page_size)
        return [render_message(message, sender) for message, sender in rows]

    def mark_as_read(self, actor: Actor, conversation_id: UUID) -> MarkReadResult:
        self.get_conversation(actor, conversation_id)

        with self.gateway.transaction():
            marked = self.gateway.mark_messages_read(
                conversation_id, actor.user_id)

        logger.debug(
            f"{marked} messages marked read in conversation {conversation_id}")
        return MarkReadResult(conversation_id=conversation_id, marked=marked)
