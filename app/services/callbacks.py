"""Tripay payment callbacks: verify HMAC, apply the status to the order once."""

from datetime import datetime, timedelta

from pydantic import BaseModel, Field, ValidationError
from pymongo.errors import DuplicateKeyError

from app.core.clock import utcnow
from app.core.config import Settings
from app.core.exceptions import BadRequestError, ConfigurationError, ConflictError, NotFoundError, UnauthorizedError
from app.core.logging import get_logger
from app.core.security import verify_callback_signature
from app.models.order import Order, OrderTimeline
from app.services import events
from app.services.order_state import CallbackInput, PlannedUpdate, plan_callback

log = get_logger(__name__)

MAX_APPLY_ATTEMPTS = 3
# 9999-12-31T23:59:59Z, the last instant datetime can represent.
MAX_UNIX_SECONDS = 253402300799


class TripayCallback(BaseModel):
    reference: str = Field(min_length=1)
    merchant_ref: str = Field(min_length=1)
    status: str = Field(min_length=1)
    paid_at: int | None = Field(default=None, ge=0, le=MAX_UNIX_SECONDS)  # unix seconds
    amount_received: int | None = None
    payment_method: str | None = None

    def to_input(self) -> CallbackInput:
        return CallbackInput(
            reference=self.reference,
            status=self.status,
            paid_at=self.paid_at,
            amount_received=self.amount_received,
            payment_method=self.payment_method,
        )


def parse_callback(body: bytes) -> TripayCallback:
    try:
        return TripayCallback.model_validate_json(body)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) or "body" for err in e.errors()})
        raise BadRequestError(
            "Invalid callback payload",
            details={"fields": fields},
        ) from e


async def handle_callback(
    body: bytes,
    signature: str | None,
    event: str | None,
    settings: Settings,
    now: datetime | None = None,
) -> dict:
    """Verify and apply one callback. Returns the order's resulting state."""
    if not settings.tripay_private_key:
        raise ConfigurationError("Callback signing key not configured")
    if not signature or not verify_callback_signature(body, signature, settings.tripay_private_key):
        log.warning("callback_rejected", reason="bad_signature")
        raise UnauthorizedError("Invalid callback signature")
    if event != settings.tripay_callback_event:
        raise BadRequestError(f"Unsupported callback event: {event}")

    callback = parse_callback(body)
    now = now or utcnow()
    log.info(
        "callback_received",
        merchant_ref=callback.merchant_ref,
        status=callback.status,
        reference=callback.reference,
    )

    order = await Order.find_one(Order.merchant_ref == callback.merchant_ref)
    if not order:
        if settings.missing_order_policy != "create_stub":
            log.warning("callback_order_missing", merchant_ref=callback.merchant_ref)
            raise NotFoundError("Order not found")
        order = await _create_stub_order(callback.merchant_ref, now)

    window = timedelta(minutes=settings.confirmation_window_minutes)
    order, applied = await _apply(order, callback.to_input(), now, window)
    return {
        "orderId": str(order.id),
        "merchantRef": order.merchant_ref,
        "status": order.status,
        "paymentStatus": order.payment_status,
        "processedAt": now.isoformat(),
        "applied": applied,
    }


async def _create_stub_order(merchant_ref: str, now: datetime) -> Order:
    stub = Order(
        merchant_ref=merchant_ref,
        timeline=OrderTimeline(created=now),
        created_at=now,
        updated_at=now,
    )
    try:
        await stub.insert()
    except DuplicateKeyError:
        # A concurrent delivery created it first.
        existing = await Order.find_one(Order.merchant_ref == merchant_ref)
        if existing:
            return existing
        raise
    log.warning("callback_stub_order_created", merchant_ref=merchant_ref, order_id=str(stub.id))
    return stub


async def _apply(
    order: Order,
    callback: CallbackInput,
    now: datetime,
    window: timedelta,
) -> tuple[Order, bool]:
    """Compare-and-set the planned update; re-plan against fresh state when another writer won."""
    for _ in range(MAX_APPLY_ATTEMPTS):
        plan = plan_callback(order, callback, now, window)
        if plan is None:
            log.info("callback_replay_ignored", order_id=str(order.id), reference=callback.reference)
            return order, False
        if await _compare_and_set(order, plan):
            log.info(
                "callback_applied",
                order_id=str(order.id),
                old_status=order.status,
                new_status=plan.status,
                payment_status=plan.payment_status,
            )
            if plan.event is not None:
                await events.publish(plan.event)
            return await Order.get(order.id), True
        order = await Order.get(order.id)
        if order is None:
            raise NotFoundError("Order not found")
    raise ConflictError("Order was modified concurrently, retry the callback")


async def _compare_and_set(order: Order, plan: PlannedUpdate) -> bool:
    result = await Order.find_one(
        {
            "_id": order.id,
            "status": order.status,
            "provider_status": order.provider_status,
            "provider_reference": order.provider_reference,
        }
    ).update({"$set": plan.fields})
    return result.matched_count == 1
