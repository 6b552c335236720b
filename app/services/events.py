"""
Order domain events.

Transitions emit one of these after the order write succeeds; `publish` fans the
event out to the side-effect handlers (chats, notifications, audit). A handler
failure is logged and reported back, never raised, so the transition that
produced the event always stands.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Literal

from app.core.clock import utcnow
from app.core.logging import get_logger

log = get_logger(__name__)

CancelKind = Literal["payment_timeout", "confirmation_timeout", "payment_failed", "payment_refunded"]


@dataclass
class OrderEvent:
    order_id: str
    merchant_ref: str | None = None
    title: str = ""
    client_id: str | None = None
    freelancer_id: str | None = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass
class OrderPaid(OrderEvent):
    amount: int = 0
    confirmation_deadline: datetime | None = None


@dataclass
class OrderCancelled(OrderEvent):
    kind: CancelKind = "payment_failed"
    reason: str = ""
    refund_pending: bool = False


@dataclass
class RefundInitiated(OrderEvent):
    refund_id: str = ""
    amount: int = 0
    reason: str = ""


Handler = Callable[[OrderEvent], Awaitable[None]]


def _handlers_for(event: OrderEvent) -> list[Handler]:
    from app.services import chats, notifications

    handlers: list[Handler] = []
    if isinstance(event, OrderPaid):
        handlers += [chats.open_order_chat, notifications.on_order_paid]
    elif isinstance(event, OrderCancelled):
        handlers.append(notifications.on_order_cancelled)
    elif isinstance(event, RefundInitiated):
        handlers.append(notifications.on_refund_initiated)
    handlers.append(_record_audit)
    return handlers


async def _record_audit(event: OrderEvent) -> None:
    from app.core.audit import log_event

    metadata = {k: v for k, v in asdict(event).items() if k not in ("order_id", "event_id")}
    await log_event(event.name, "order", event.order_id, metadata=metadata)


async def publish(event: OrderEvent) -> list[str]:
    """Run every handler for `event`; return one message per failed handler."""
    errors: list[str] = []
    for handler in _handlers_for(event):
        try:
            await handler(event)
        except Exception as e:
            log.exception(
                "event_handler_failed",
                event_name=event.name,
                handler=handler.__name__,
                order_id=event.order_id,
            )
            errors.append(f"{event.name} {handler.__name__} failed for {event.order_id}: {e}")
    return errors
