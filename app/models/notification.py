from datetime import datetime

from beanie import Document
from pydantic import Field

from app.core.clock import utcnow


class Notification(Document):
    user_id: str
    type: str  # payment, order, refund
    title: str
    message: str
    order_id: str | None = None
    read: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "notifications"
        indexes = [[("user_id", 1), ("created_at", -1)]]
