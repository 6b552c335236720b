from datetime import datetime
from typing import Literal

from beanie import Document
from pydantic import Field

from app.core.clock import utcnow

ACTIVE_REFUND_STATUSES = ("pending", "completed")


class Refund(Document):
    order_id: str
    merchant_ref: str | None = None
    provider_reference: str | None = None
    refund_amount: int
    original_amount: int
    reason: str
    refund_type: Literal["auto", "manual"] = "auto"
    requested_by: str = "system"
    status: Literal["pending", "completed", "failed"] = "pending"
    provider_action: str | None = None  # e.g. manual_processing_required
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "refunds"
        indexes = [
            [("order_id", 1), ("status", 1)],
            [("order_id", 1), ("created_at", -1)],
        ]
