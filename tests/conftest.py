import json
import os
from datetime import timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

TEST_PRIVATE_KEY = "test-tripay-private-key"
TEST_CRON_SECRET = "test-cron-secret"

os.environ["MONGODB_DB_NAME"] = "skillnusa_test"
os.environ["TRIPAY_PRIVATE_KEY"] = TEST_PRIVATE_KEY
os.environ["CRON_SECRET"] = TEST_CRON_SECRET
os.environ["CONFIRMATION_WINDOW_MINUTES"] = "180"
os.environ["MISSING_ORDER_POLICY"] = "reject"


@pytest.fixture
def settings():
    from app.core.config import get_settings
    return get_settings()


@pytest_asyncio.fixture
async def db(settings) -> AsyncGenerator:
    """Fresh in-memory Mongo per test with beanie bound to it."""
    from app.db.init import init_db
    mongo = AsyncMongoMockClient()
    await init_db(mongo, settings)
    yield mongo[settings.mongodb_db_name]


@pytest_asyncio.fixture
async def client(db) -> AsyncGenerator[AsyncClient, None]:
    from app.main import app
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def make_order(db):
    """Insert an order; keyword arguments override the defaults."""
    from app.core.clock import utcnow
    from app.models.order import Order, OrderTimeline

    counter = {"n": 0}

    async def _make(**overrides) -> Order:
        counter["n"] += 1
        now = utcnow()
        data = {
            "merchant_ref": f"SKILLNUSA-{1000 + counter['n']}",
            "title": "Logo design",
            "client_id": "client-1",
            "freelancer_id": "freelancer-1",
            "status": "payment",
            "payment_status": "pending",
            "price": 150000,
            "total_amount": 150000,
            "payment_expired_at": now + timedelta(minutes=30),
            "timeline": OrderTimeline(created=now),
            "created_at": now,
            "updated_at": now,
        }
        data.update(overrides)
        order = Order(**data)
        await order.insert()
        return order

    return _make


@pytest.fixture
def callback_request():
    """Build (body, headers) for a Tripay callback signed with the test key."""
    from app.core.security import sign_callback

    def _build(payload: dict, key: str = TEST_PRIVATE_KEY, event: str = "payment_status") -> tuple[bytes, dict]:
        body = json.dumps(payload).encode()
        headers = {
            "Content-Type": "application/json",
            "X-Callback-Signature": sign_callback(body, key),
            "X-Callback-Event": event,
        }
        return body, headers

    return _build
