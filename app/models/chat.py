from datetime import datetime

from beanie import Document
from pydantic import Field

from app.core.clock import utcnow


class ChatThread(Document):
    """Client/freelancer conversation opened once an order is paid."""
    order_id: str
    participants: list[str] = Field(default_factory=list)
    last_message: str | None = None
    last_message_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "chats"
        indexes = [[("order_id", 1)]]


class ChatMessage(Document):
    thread_id: str
    order_id: str | None = None
    sender_id: str = "system"
    type: str = "text"  # text | order_notification
    content: str
    created_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "chat_messages"
        indexes = [[("thread_id", 1), ("created_at", 1)], [("order_id", 1), ("type", 1)]]
