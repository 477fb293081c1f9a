from typing import Any
from sqlmodel import SQLModel, Field


class Envelope(SQLModel):
    """
    Live notification pushed over the WebSocket.
    Example: {"type": "order_created", "data": {...}}
    """
    type: str = Field(description="Event name, e.g. 'order_accepted'.")
    data: Any = Field(default=None, description="Event payload.")
