import pytest

pytestmark = pytest.mark.asyncio


async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
    assert r.headers.get("X-Request-ID")


async def test_timeout_checker_status_is_public(client):
    r = await client.get("/v1/cron/timeout-checker")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert body["confirmationWindowMinutes"] == 180
