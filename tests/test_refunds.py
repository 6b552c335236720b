"""Refund endpoint and service."""

from datetime import timedelta

import pytest

from app.core.clock import utcnow
from app.models.notification import Notification
from app.models.order import Order
from app.models.refund import Refund

pytestmark = pytest.mark.asyncio

REFUND_URL = "/v1/refunds"


async def paid_order(make_order, **overrides):
    now = utcnow()
    data = {
        "status": "pending",
        "payment_status": "paid",
        "paid_at": now - timedelta(hours=1),
        "confirmation_deadline": now + timedelta(hours=2),
        "provider_reference": "T123",
        "provider_status": "PAID",
    }
    data.update(overrides)
    return await make_order(**data)


async def test_manual_refund_of_paid_order(client, make_order):
    order = await paid_order(make_order, total_amount=250000)

    r = await client.post(
        REFUND_URL,
        json={"orderId": str(order.id), "reason": "Client request", "refundType": "manual", "requestedBy": "admin-1"},
    )

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["refundAmount"] == 250000
    assert body["refundStatus"] == "pending"
    assert body["providerAction"] == "manual_processing_required"
    refund = await Refund.get(body["refundId"])
    assert refund.original_amount == 250000
    assert refund.requested_by == "admin-1"
    assert refund.provider_reference == "T123"
    stored = await Order.get(order.id)
    assert stored.refund_status == "pending"
    assert stored.refund_id == body["refundId"]
    assert stored.timeline.refund_initiated_at is not None
    assert await Notification.find(Notification.type == "refund").count() == 2


async def test_refund_of_cancelled_order_is_rejected(client, make_order):
    order = await paid_order(make_order, status="cancelled")

    r = await client.post(REFUND_URL, json={"orderId": str(order.id), "refundType": "manual"})

    assert r.status_code == 400
    assert r.json()["error"] == {"message": "Order is already cancelled", "code": "CONFLICT", "details": {}}
    assert await Refund.find_all().count() == 0


async def test_second_refund_is_rejected(client, make_order):
    order = await paid_order(make_order)

    first = await client.post(REFUND_URL, json={"orderId": str(order.id), "refundType": "manual"})
    second = await client.post(REFUND_URL, json={"orderId": str(order.id), "refundType": "manual"})

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["error"]["message"] == "Refund already processed for this order"
    assert await Refund.find(Refund.order_id == str(order.id)).count() == 1


async def test_unpaid_order_cannot_be_refunded(client, make_order):
    order = await make_order()

    r = await client.post(REFUND_URL, json={"orderId": str(order.id)})

    assert r.status_code == 400
    assert r.json()["error"]["message"] == "No payment to refund"


async def test_refund_window_is_enforced(client, make_order):
    order = await paid_order(make_order, paid_at=utcnow() - timedelta(days=31))

    r = await client.post(REFUND_URL, json={"orderId": str(order.id)})

    assert r.status_code == 400
    assert "Refund period has expired" in r.json()["error"]["message"]


async def test_unknown_order_returns_404(client, db):
    missing = await client.post(REFUND_URL, json={"orderId": "65a000000000000000000000"})
    garbage = await client.post(REFUND_URL, json={"orderId": "not-an-id"})

    assert missing.status_code == 404
    assert garbage.status_code == 404


async def test_missing_order_id_is_a_validation_error(client, db):
    r = await client.post(REFUND_URL, json={"reason": "x"})

    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_provider_failure_marks_refund_failed(client, make_order, monkeypatch):
    from app.core.exceptions import ProviderError
    from app.services import tripay

    async def refuse(order, refund):
        raise ProviderError("gateway unavailable")

    monkeypatch.setattr(tripay, "request_refund", refuse)
    order = await paid_order(make_order)

    r = await client.post(REFUND_URL, json={"orderId": str(order.id)})

    assert r.status_code == 502
    refund = await Refund.find_one(Refund.order_id == str(order.id))
    assert refund.status == "failed"
    assert refund.error_message == "gateway unavailable"
    assert (await Order.get(order.id)).refund_id is None


async def test_get_refund_by_order_and_by_id(client, make_order):
    order = await paid_order(make_order)
    created = await client.post(REFUND_URL, json={"orderId": str(order.id), "reason": "Changed mind"})
    refund_id = created.json()["refundId"]

    by_order = await client.get(REFUND_URL, params={"orderId": str(order.id)})
    by_id = await client.get(REFUND_URL, params={"refundId": refund_id})

    assert by_order.status_code == 200
    assert by_order.json()["refund"]["id"] == refund_id
    assert by_order.json()["refund"]["reason"] == "Changed mind"
    assert by_id.json()["refund"]["orderId"] == str(order.id)


async def test_get_refund_errors(client, make_order):
    order = await paid_order(make_order)

    neither = await client.get(REFUND_URL)
    none_yet = await client.get(REFUND_URL, params={"orderId": str(order.id)})
    bad_id = await client.get(REFUND_URL, params={"refundId": "nope"})

    assert neither.status_code == 400
    assert none_yet.status_code == 404
    assert bad_id.status_code == 404


async def test_refund_losing_race_is_superseded(db, make_order, settings, monkeypatch):
    from app.core.exceptions import ConflictError
    from app.services import refunds

    order = await paid_order(make_order)
    first = await refunds.initiate_refund(str(order.id), "Client request", "manual", "admin-1", settings)

    # a second request that passed the active-refund check before the first one wrote
    async def nothing_active(order_id):
        return None

    monkeypatch.setattr(refunds, "find_active_refund", nothing_active)
    with pytest.raises(ConflictError):
        await refunds.initiate_refund(str(order.id), "Client request", "manual", "admin-2", settings)

    stored = await Order.get(order.id)
    assert stored.refund_id == str(first.id)
    records = {r.requested_by: r for r in await Refund.find(Refund.order_id == str(order.id)).to_list()}
    assert set(records) == {"admin-1", "admin-2"}
    assert records["admin-1"].status == "pending"
    assert records["admin-2"].status == "failed"
    assert records["admin-2"].error_message == "Superseded by a concurrent refund"
    assert await Notification.find(Notification.type == "refund").count() == 2
