from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from app.core.config import Settings, get_settings
from app.models.refund import Refund
from app.services import refunds as refunds_service

router = APIRouter()


class RefundRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(alias="orderId", min_length=1)
    reason: str | None = None
    refund_type: Literal["auto", "manual"] = Field(default="auto", alias="refundType")
    requested_by: str | None = Field(default=None, alias="requestedBy")


def _refund_out(refund: Refund) -> dict:
    return {
        "id": str(refund.id),
        "orderId": refund.order_id,
        "merchantRef": refund.merchant_ref,
        "refundAmount": refund.refund_amount,
        "originalAmount": refund.original_amount,
        "reason": refund.reason,
        "refundType": refund.refund_type,
        "requestedBy": refund.requested_by,
        "status": refund.status,
        "providerAction": refund.provider_action,
        "errorMessage": refund.error_message,
        "createdAt": refund.created_at.isoformat(),
        "updatedAt": refund.updated_at.isoformat(),
    }


@router.post("")
async def create_refund(body: RefundRequest, settings: Settings = Depends(get_settings)):
    """Start a full refund for a paid order."""
    refund = await refunds_service.initiate_refund(
        body.order_id,
        body.reason,
        body.refund_type,
        body.requested_by,
        settings,
    )
    return {
        "success": True,
        "refundId": str(refund.id),
        "refundAmount": refund.refund_amount,
        "refundStatus": refund.status,
        "providerAction": refund.provider_action,
    }


@router.get("")
async def get_refund(
    order_id: str | None = Query(None, alias="orderId"),
    refund_id: str | None = Query(None, alias="refundId"),
):
    """Latest refund for an order, or one refund by id."""
    refund = await refunds_service.get_latest_refund(order_id=order_id, refund_id=refund_id)
    return {"success": True, "refund": _refund_out(refund)}
