"""Tripay gateway adapter for refunds.

Tripay exposes no refund endpoint, so every refund ends in
`manual_processing_required`: an operator settles it from the Tripay dashboard
or by bank transfer and then marks the refund completed.
"""

from dataclasses import dataclass

from app.core.logging import get_logger
from app.models.order import Order
from app.models.refund import Refund

log = get_logger(__name__)

MANUAL_PROCESSING_REQUIRED = "manual_processing_required"


@dataclass
class ProviderRefund:
    method: str
    merchant_ref: str | None
    provider_reference: str | None
    refund_amount: int
    note: str = ""


async def request_refund(order: Order, refund: Refund) -> ProviderRefund:
    log.info(
        "provider_refund_requested",
        order_id=str(order.id),
        refund_id=str(refund.id),
        provider_reference=order.provider_reference,
        amount=refund.refund_amount,
    )
    return ProviderRefund(
        method=MANUAL_PROCESSING_REQUIRED,
        merchant_ref=order.merchant_ref,
        provider_reference=order.provider_reference,
        refund_amount=refund.refund_amount,
        note="Refund must be settled manually through the Tripay dashboard or bank transfer",
    )
