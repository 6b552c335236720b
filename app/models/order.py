from datetime import datetime
from typing import Literal

from beanie import Document, Indexed
from pydantic import BaseModel, Field

from app.core.clock import utcnow

OrderStatus = Literal["payment", "pending", "confirmed", "in_progress", "completed", "cancelled"]
PaymentStatus = Literal["pending", "paid", "expired", "failed", "refunded"]
RefundState = Literal["none", "pending", "completed"]


class OrderTimeline(BaseModel):
    """Named lifecycle timestamps. Written field by field (`timeline.<name>`)."""
    created: datetime | None = None
    confirmed: datetime | None = None
    cancelled: datetime | None = None
    refund_initiated_at: datetime | None = None


class Order(Document):
    """One commission. Created by checkout with status=payment; never deleted."""
    merchant_ref: Indexed(str, unique=True)
    title: str = ""
    client_id: str | None = None
    freelancer_id: str | None = None
    status: OrderStatus = "payment"
    payment_status: PaymentStatus = "pending"
    price: int = 0  # smallest currency unit (IDR)
    total_amount: int | None = None

    payment_expired_at: datetime | None = None
    paid_at: datetime | None = None
    confirmation_deadline: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None

    provider_reference: str | None = None
    provider_status: str | None = None
    amount_received: int | None = None
    payment_method: str | None = None

    refund_status: RefundState = "none"
    refund_id: str | None = None
    refund_amount: int | None = None
    refund_initiated_at: datetime | None = None

    timeline: OrderTimeline = Field(default_factory=OrderTimeline)
    cleaned_up: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def amount(self) -> int:
        return self.total_amount or self.price or 0

    class Settings:
        name = "orders"
        indexes = [
            [("status", 1), ("payment_expired_at", 1)],
            [("status", 1), ("confirmation_deadline", 1)],
        ]
