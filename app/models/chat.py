from typing import List, Optional
from datetime import datetime
from enum import Enum
from uuid import UUID
from sqlmodel import SQLModel, Field



class MessageType(str, Enum):
    """Display type of a message, derived from its attachment."""
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    FILE = "file"


class ConversationRead(SQLModel):
    id: UUID
    consumer_id: UUID
    supplier_id: UUID
    last_message_at: Optional[datetime] = None
    unread_count: int
    created_at: datetime


class MessageCreate(SQLModel):
    """
    Payload for sending a message.

    When the conversation in the URL does not exist yet, consumers must name
    the `supplier_id` and supplier staff the `consumer_id` of the pair.
    """
    content: str = Field(min_length=1, max_length=5000)
    attachment_url: Optional[str] = Field(
        default=None,
        max_length=1024,
        description="Previously uploaded file, e.g. '/uploads/3f2a.jpg'."
    )
    supplier_id: Optional[UUID] = None
    consumer_id: Optional[UUID] = None


class MessageRead(SQLModel):
    """
    Outward view of a message.

    `sender_role` is the author's real role on the immediate response to a
    send; history reads only know the stored value (consumer or sales_rep).
    """
    id: UUID
    conversation_id: UUID
    sender_id: UUID
    sender_name: str
    sender_role: str
    sender_avatar_url: Optional[str] = None
    content: str
    type: MessageType
    attachment_url: Optional[str] = None
    is_read: bool
    timestamp: datetime


class MessagePage(SQLModel):
    data: List[MessageRead]
    page: int
    page_size: int


class MarkReadResult(SQLModel):
    conversation_id: UUID
    marked: int
