"""
Timeout sweep: cancel orders whose payment window or freelancer confirmation
deadline has lapsed.

Each order is cancelled with a conditional update that re-checks the sweep
predicate, so an order a webhook touched after it was read is left alone.
Failures are collected per order; one bad order never stops the batch.
"""

from dataclasses import dataclass, field
from datetime import datetime

from app.core.clock import utcnow
from app.core.config import Settings
from app.core.exceptions import AppError
from app.core.logging import get_logger
from app.models.order import Order
from app.services import events, refunds
from app.services.order_state import (
    CONFIRMATION_TIMEOUT_REASON,
    PAYMENT_TIMEOUT_REASON,
    confirmation_timeout_fields,
    event_base,
    needs_auto_refund,
    payment_timeout_fields,
)

log = get_logger(__name__)


@dataclass
class SweepResult:
    payment_timeouts: int = 0
    confirmation_timeouts: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return self.payment_timeouts + self.confirmation_timeouts

    def as_dict(self) -> dict:
        return {
            "processedCount": self.processed_count,
            "paymentTimeouts": self.payment_timeouts,
            "confirmationTimeouts": self.confirmation_timeouts,
            "errors": list(self.errors),
        }


async def run_timeout_sweep(settings: Settings, now: datetime | None = None) -> SweepResult:
    now = now or utcnow()
    result = SweepResult()
    log.info("sweep_started", now=now.isoformat(), batch_size=settings.sweep_batch_size)

    try:
        expired = await Order.find(
            Order.status == "payment",
            Order.payment_expired_at <= now,
        ).limit(settings.sweep_batch_size).to_list()
        log.info("sweep_payment_timeouts_found", count=len(expired))
        for order in expired:
            try:
                if await expire_unpaid_order(order, now, result.errors):
                    result.payment_timeouts += 1
            except Exception as e:
                log.exception("sweep_payment_timeout_failed", order_id=str(order.id))
                result.errors.append(f"Payment timeout error for {order.id}: {e}")
    except Exception as e:
        log.exception("sweep_payment_query_failed")
        result.errors.append(f"Payment timeout check error: {e}")

    try:
        unconfirmed = await Order.find(
            Order.status == "pending",
            Order.confirmation_deadline <= now,
        ).limit(settings.sweep_batch_size).to_list()
        log.info("sweep_confirmation_timeouts_found", count=len(unconfirmed))
        for order in unconfirmed:
            try:
                if await cancel_unconfirmed_order(order, now, settings, result.errors):
                    result.confirmation_timeouts += 1
            except Exception as e:
                log.exception("sweep_confirmation_timeout_failed", order_id=str(order.id))
                result.errors.append(f"Confirmation timeout error for {order.id}: {e}")
    except Exception as e:
        log.exception("sweep_confirmation_query_failed")
        result.errors.append(f"Confirmation timeout check error: {e}")

    log.info(
        "sweep_completed",
        processed=result.processed_count,
        payment_timeouts=result.payment_timeouts,
        confirmation_timeouts=result.confirmation_timeouts,
        errors=len(result.errors),
    )
    return result


async def expire_unpaid_order(order: Order, now: datetime, errors: list[str]) -> bool:
    """Cancel an order still awaiting payment past its expiry. False if it moved on meanwhile."""
    update = await Order.find_one(
        {"_id": order.id, "status": "payment", "payment_expired_at": {"$lte": now}}
    ).update({"$set": payment_timeout_fields(now)})
    if update.matched_count != 1:
        log.info("sweep_order_skipped", order_id=str(order.id), reason="state_changed")
        return False
    log.info("payment_timeout_processed", order_id=str(order.id))
    event = events.OrderCancelled(**event_base(order), kind="payment_timeout", reason=PAYMENT_TIMEOUT_REASON)
    errors.extend(await events.publish(event))
    return True


async def cancel_unconfirmed_order(order: Order, now: datetime, settings: Settings, errors: list[str]) -> bool:
    """Cancel a paid order the freelancer never confirmed, then start its automatic refund."""
    refund_due = needs_auto_refund(order)
    update = await Order.find_one(
        {"_id": order.id, "status": "pending", "confirmation_deadline": {"$lte": now}}
    ).update({"$set": confirmation_timeout_fields(order, now)})
    if update.matched_count != 1:
        log.info("sweep_order_skipped", order_id=str(order.id), reason="state_changed")
        return False
    log.info("confirmation_timeout_processed", order_id=str(order.id), refund_due=refund_due)
    event = events.OrderCancelled(
        **event_base(order),
        kind="confirmation_timeout",
        reason=CONFIRMATION_TIMEOUT_REASON,
        refund_pending=refund_due,
    )
    errors.extend(await events.publish(event))
    if refund_due:
        try:
            await refunds.initiate_refund(
                str(order.id),
                CONFIRMATION_TIMEOUT_REASON,
                refund_type="auto",
                requested_by="system",
                settings=settings,
                now=now,
            )
        except AppError as e:
            log.warning("auto_refund_failed", order_id=str(order.id), error=e.message)
            errors.append(f"Refund error for {order.id}: {e.message}")
        except Exception as e:
            log.exception("auto_refund_failed", order_id=str(order.id))
            errors.append(f"Refund error for {order.id}: {e}")
    return True
