from datetime import datetime
from typing import Any

from beanie import Document
from pydantic import Field

from app.core.clock import utcnow


class AuditLog(Document):
    event_type: str
    entity_type: str
    entity_id: str | None = None
    user_id: str | None = None  # None for system events
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "audit_logs"
        indexes = [
            [("entity_type", 1), ("entity_id", 1)],
            [("created_at", -1)],
        ]
