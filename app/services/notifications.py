"""Notification records for order events. Fire-and-forget: callers never roll back on failure."""

from app.core.logging import get_logger
from app.models.notification import Notification
from app.services.events import OrderCancelled, OrderPaid, RefundInitiated

log = get_logger(__name__)


def format_idr(amount: int) -> str:
    """150000 -> 'Rp 150.000'"""
    return "Rp " + f"{amount:,}".replace(",", ".")


async def create_notification(
    user_id: str | None,
    type: str,
    title: str,
    message: str,
    order_id: str | None = None,
) -> Notification | None:
    if not user_id:
        log.info("notification_skipped", reason="no_user", type=type, order_id=order_id)
        return None
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        order_id=order_id,
    )
    await notification.insert()
    return notification


async def on_order_paid(event: OrderPaid) -> None:
    await create_notification(
        event.freelancer_id,
        "order",
        "New paid order",
        f'Order "{event.title}" has been paid. Please confirm it before the deadline.',
        event.order_id,
    )
    await create_notification(
        event.client_id,
        "payment",
        "Payment received",
        f'Payment of {format_idr(event.amount)} for "{event.title}" was received. '
        "Waiting for the freelancer to confirm.",
        event.order_id,
    )


async def on_order_cancelled(event: OrderCancelled) -> None:
    if event.kind == "payment_timeout":
        await create_notification(
            event.client_id,
            "payment",
            "Payment expired",
            f'The payment window for "{event.title}" has closed. The order was cancelled.',
            event.order_id,
        )
        return
    if event.kind == "confirmation_timeout":
        suffix = " Your refund will be processed." if event.refund_pending else ""
        await create_notification(
            event.client_id,
            "order",
            "Order cancelled",
            f'Order "{event.title}" was cancelled because the freelancer did not respond in time.{suffix}',
            event.order_id,
        )
        await create_notification(
            event.freelancer_id,
            "order",
            "Order expired",
            f'Order "{event.title}" was cancelled because it was not confirmed in time.',
            event.order_id,
        )
        return
    if event.kind == "payment_refunded":
        await create_notification(
            event.client_id,
            "refund",
            "Payment refunded",
            f'Your payment for "{event.title}" has been refunded and the order was cancelled.',
            event.order_id,
        )
        await create_notification(
            event.freelancer_id,
            "refund",
            "Order cancelled",
            f'Order "{event.title}" was cancelled because the client was refunded.',
            event.order_id,
        )
        return
    await create_notification(
        event.client_id,
        "payment",
        "Payment unsuccessful",
        f'Order "{event.title}" was cancelled: {event.reason}.',
        event.order_id,
    )


async def on_refund_initiated(event: RefundInitiated) -> None:
    await create_notification(
        event.client_id,
        "refund",
        "Refund in progress",
        f'A refund of {format_idr(event.amount)} for "{event.title}" is being processed. {event.reason}',
        event.order_id,
    )
    await create_notification(
        event.freelancer_id,
        "refund",
        "Order cancelled",
        f'Order "{event.title}" was cancelled and the client is being refunded. {event.reason}',
        event.order_id,
    )
