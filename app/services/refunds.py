"""Refund initiation and lookup. One active (pending/completed) refund per order."""

from datetime import datetime

from beanie.operators import In
from bson import ObjectId

from app.core.clock import utcnow
from app.core.config import Settings
from app.core.exceptions import BadRequestError, ConflictError, NotFoundError, ProviderError
from app.core.logging import get_logger
from app.models.order import Order
from app.models.refund import ACTIVE_REFUND_STATUSES, Refund
from app.services import events, tripay
from app.services.order_state import check_refund_eligibility, event_base, refund_amount

log = get_logger(__name__)

DEFAULT_REASON = "Automatic refund due to timeout"


async def get_order(order_id: str) -> Order:
    if not ObjectId.is_valid(order_id):
        raise NotFoundError("Order not found")
    order = await Order.get(ObjectId(order_id))
    if not order:
        raise NotFoundError("Order not found")
    return order


async def find_active_refund(order_id: str) -> Refund | None:
    return await Refund.find_one(
        Refund.order_id == order_id,
        In(Refund.status, list(ACTIVE_REFUND_STATUSES)),
    )


async def initiate_refund(
    order_id: str,
    reason: str | None,
    refund_type: str,
    requested_by: str | None,
    settings: Settings,
    now: datetime | None = None,
) -> Refund:
    """
    Validate eligibility, record the refund and hand it to the gateway.
    Raises ConflictError when ineligible or already refunded, ProviderError when the
    gateway step fails (the refund is kept with status=failed).
    """
    now = now or utcnow()
    order = await get_order(order_id)
    check_refund_eligibility(order, refund_type, now, settings.refund_window_days)
    if await find_active_refund(order_id):
        raise ConflictError("Refund already processed for this order")

    amount = refund_amount(order)
    reason = reason or DEFAULT_REASON
    refund = Refund(
        order_id=order_id,
        merchant_ref=order.merchant_ref,
        provider_reference=order.provider_reference,
        refund_amount=amount,
        original_amount=order.amount,
        reason=reason,
        refund_type=refund_type,
        requested_by=requested_by or "system",
        created_at=now,
        updated_at=now,
    )
    await refund.insert()
    refund_id = str(refund.id)
    log.info("refund_created", order_id=order_id, refund_id=refund_id, amount=amount, refund_type=refund_type)

    try:
        outcome = await tripay.request_refund(order, refund)
    except ProviderError as e:
        refund.status = "failed"
        refund.error_message = e.message
        refund.updated_at = utcnow()
        await refund.save()
        log.warning("refund_provider_failed", order_id=order_id, refund_id=refund_id, error=e.message)
        raise
    refund.provider_action = outcome.method
    refund.updated_at = utcnow()
    await refund.save()

    update = await Order.find_one({"_id": order.id, "refund_id": None}).update(
        {
            "$set": {
                "refund_status": "pending",
                "refund_id": refund_id,
                "refund_amount": amount,
                "refund_initiated_at": now,
                "timeline.refund_initiated_at": now,
                "updated_at": now,
            }
        }
    )
    if update.matched_count != 1:
        # Another request attached its refund to the order first.
        refund.status = "failed"
        refund.error_message = "Superseded by a concurrent refund"
        refund.updated_at = utcnow()
        await refund.save()
        log.warning("refund_superseded", order_id=order_id, refund_id=refund_id)
        raise ConflictError("Refund already processed for this order")
    await events.publish(events.RefundInitiated(**event_base(order), refund_id=refund_id, amount=amount, reason=reason))
    return refund


async def get_latest_refund(order_id: str | None = None, refund_id: str | None = None) -> Refund:
    if not order_id and not refund_id:
        raise BadRequestError("Order ID or Refund ID is required")
    if refund_id:
        refund = await Refund.get(ObjectId(refund_id)) if ObjectId.is_valid(refund_id) else None
        if not refund:
            raise NotFoundError("Refund not found")
        return refund
    refunds = await Refund.find(Refund.order_id == order_id).sort(-Refund.created_at).limit(1).to_list()
    if not refunds:
        raise NotFoundError("No refund found for this order")
    return refunds[0]
