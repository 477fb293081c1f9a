import uuid
from typing import Callable, List
from fastapi import APIRouter, Depends, Query, status

from app.core.dependencies import (
    get_chat_service, require_consumer, require_supplier_staff
)
from app.models.auth import Actor
from app.models.chat import (
    ConversationRead, MarkReadResult, MessageCreate, MessagePage, MessageRead
)
from app.services.chat import ChatService


def build_router(require_actor: Callable[..., Actor]) -> APIRouter:
    """
    Consumers and supplier staff share the same conversation endpoints,
    mounted once per audience with that audience's role guard.
    """
    router = APIRouter()

    @router.get(
        "/conversations",
        response_model=List[ConversationRead],
        summary="List Conversations",
        description="Most recently active first."
    )
    def list_conversations(
        actor: Actor = Depends(require_actor),
        service: ChatService = Depends(get_chat_service)
    ):
        conversations = service.list_conversations(actor)
        return [ConversationRead.model_validate(c) for c in conversations]

    @router.get(
        "/conversations/{conversation_id}/messages",
        response_model=MessagePage,
        summary="List Messages",
        description="Oldest first."
    )
    def list_messages(
        conversation_id: uuid.UUID,
        page: int = Query(1, ge=1),
        page_size: int = Query(50, ge=1, le=200),
        actor: Actor = Depends(require_actor),
        service: ChatService = Depends(get_chat_service)
    ):
        messages = service.list_messages(
            actor, conversation_id, page, page_size)
        return MessagePage(data=messages, page=page, page_size=page_size)

    @router.post(
        "/conversations/{conversation_id}/messages",
        response_model=MessageRead,
        status_code=status.HTTP_201_CREATED,
        summary="Send Message",
        description="Starts the conversation with the counterpart named in the body when it does not exist yet."
    )
    def send_message(
        conversation_id: uuid.UUID,
        data: MessageCreate,
        actor: Actor = Depends(require_actor),
        service: ChatService = Depends(get_chat_service)
    ):
        return service.send_message(actor, conversation_id, data)

    @router.post(
        "/conversations/{conversation_id}/messages/read",
        response_model=MarkReadResult,
        summary="Mark Conversation Read"
    )
    def mark_as_read(
        conversation_id: uuid.UUID,
        actor: Actor = Depends(require_actor),
        service: ChatService = Depends(get_chat_service)
    ):
        return service.mark_as_read(actor, conversation_id)

    return router


consumer_router = build_router(require_consumer)
supplier_router = build_router(require_supplier_staff)
