"""
Order status state machine.

Pure decisions only: given an order and a trigger, work out the `$set` patch and
the event to publish. Callers own the conditional write.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from app.core.clock import from_unix
from app.core.exceptions import ConflictError
from app.models.order import Order
from app.services.events import OrderCancelled, OrderEvent, OrderPaid

PROVIDER_STATUS_MAP: dict[str, tuple[str, str]] = {
    "PAID": ("pending", "paid"),
    "EXPIRED": ("cancelled", "expired"),
    "FAILED": ("cancelled", "failed"),
    "REFUND": ("cancelled", "refunded"),
}

TERMINAL_STATUSES = ("cancelled",)

# Order statuses a provider status may move an order out of.
CALLBACK_SOURCES: dict[str, tuple[str, ...]] = {
    "PAID": ("payment",),
    "EXPIRED": ("payment",),
    "FAILED": ("payment",),
    "REFUND": ("payment", "pending", "confirmed", "in_progress"),
}

PAYMENT_TIMEOUT_REASON = "Payment timeout"
CONFIRMATION_TIMEOUT_REASON = "Freelancer confirmation timeout"


def map_provider_status(provider_status: str, current_status: str) -> tuple[str, str]:
    """Provider status -> (order status, payment status). Unknown statuses leave the order as is."""
    return PROVIDER_STATUS_MAP.get(provider_status.upper(), (current_status, "pending"))


@dataclass
class CallbackInput:
    reference: str
    status: str
    paid_at: int | None = None
    amount_received: int | None = None
    payment_method: str | None = None


@dataclass
class PlannedUpdate:
    fields: dict[str, Any]
    status: str
    payment_status: str
    event: OrderEvent | None = None


def is_replay(order: Order, callback: CallbackInput) -> bool:
    return (
        order.provider_reference == callback.reference
        and (order.provider_status or "").upper() == callback.status.upper()
    )


def event_base(order: Order) -> dict[str, Any]:
    return {
        "order_id": str(order.id),
        "merchant_ref": order.merchant_ref,
        "title": order.title,
        "client_id": order.client_id,
        "freelancer_id": order.freelancer_id,
    }


def plan_callback(
    order: Order,
    callback: CallbackInput,
    now: datetime,
    confirmation_window: timedelta,
) -> PlannedUpdate | None:
    """Work out what a provider callback does to `order`. None means a replay (no write)."""
    if is_replay(order, callback):
        return None

    provider_status = callback.status.upper()
    fields: dict[str, Any] = {
        "provider_reference": callback.reference,
        "provider_status": callback.status,
        "updated_at": now,
    }

    if order.status in TERMINAL_STATUSES:
        # Late callbacks are recorded; only a refund confirmation changes anything.
        if provider_status == "REFUND":
            fields["payment_status"] = "refunded"
            fields["refund_status"] = "completed"
            return PlannedUpdate(fields, order.status, "refunded")
        return PlannedUpdate(fields, order.status, order.payment_status)

    sources = CALLBACK_SOURCES.get(provider_status, ("payment",))
    if order.status not in sources:
        return PlannedUpdate(fields, order.status, order.payment_status)

    new_status, payment_status = map_provider_status(provider_status, order.status)
    fields["payment_status"] = payment_status

    if provider_status == "PAID":
        paid_at = from_unix(callback.paid_at) if callback.paid_at else now
        deadline = paid_at + confirmation_window
        fields.update(
            {
                "status": new_status,
                "paid_at": paid_at,
                "confirmation_deadline": deadline,
                "timeline.confirmed": now,
            }
        )
        if callback.amount_received is not None:
            fields["amount_received"] = callback.amount_received
        if callback.payment_method:
            fields["payment_method"] = callback.payment_method
        event = OrderPaid(**event_base(order), amount=order.amount, confirmation_deadline=deadline)
        return PlannedUpdate(fields, new_status, payment_status, event)

    if provider_status in PROVIDER_STATUS_MAP:
        refunded = provider_status == "REFUND"
        reason = "Payment refunded" if refunded else f"Payment {callback.status.lower()}"
        if refunded:
            fields["refund_status"] = "completed"
        fields.update(
            {
                "status": new_status,
                "cancelled_at": now,
                "cancellation_reason": reason,
                "timeline.cancelled": now,
            }
        )
        event = OrderCancelled(
            **event_base(order),
            kind="payment_refunded" if refunded else "payment_failed",
            reason=reason,
        )
        return PlannedUpdate(fields, new_status, payment_status, event)

    # UNPAID and other interim statuses
    return PlannedUpdate(fields, order.status, payment_status)


def payment_timeout_fields(now: datetime) -> dict[str, Any]:
    return {
        "status": "cancelled",
        "payment_status": "expired",
        "cancellation_reason": PAYMENT_TIMEOUT_REASON,
        "cancelled_at": now,
        "updated_at": now,
        "timeline.cancelled": now,
    }


def confirmation_timeout_fields(order: Order, now: datetime) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "status": "cancelled",
        "cancellation_reason": CONFIRMATION_TIMEOUT_REASON,
        "cancelled_at": now,
        "updated_at": now,
        "timeline.cancelled": now,
    }
    if needs_auto_refund(order):
        fields.update(
            {
                "refund_status": "pending",
                "refund_amount": refund_amount(order),
                "refund_initiated_at": now,
                "timeline.refund_initiated_at": now,
            }
        )
    return fields


def needs_auto_refund(order: Order) -> bool:
    return order.payment_status == "paid" and order.refund_id is None


def refund_amount(order: Order) -> int:
    """Full refund of what the client paid."""
    return order.amount


def awaiting_auto_refund(order: Order) -> bool:
    """Cancelled by the sweeper after payment, refund flagged but not yet created."""
    return order.status == "cancelled" and order.refund_status == "pending" and order.refund_id is None


def check_refund_eligibility(order: Order, refund_type: str, now: datetime, window_days: int) -> None:
    if order.status == "cancelled" and not (refund_type == "auto" and awaiting_auto_refund(order)):
        raise ConflictError("Order is already cancelled")
    if order.status == "completed":
        raise ConflictError("Cannot refund completed orders")
    if order.payment_status != "paid":
        raise ConflictError("No payment to refund")
    paid_on = order.paid_at or order.created_at
    if paid_on and now - paid_on > timedelta(days=window_days):
        raise ConflictError(f"Refund period has expired ({window_days} days)")
