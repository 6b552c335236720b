"""ARQ job definitions."""

import uuid
from typing import Any

from arq.connections import RedisSettings

from app.core.config import get_settings
from app.core.logging import bind_job, configure_logging, get_logger

log = get_logger(__name__)


async def _run_with_dlq(
    job_name: str,
    job_id: str | None,
    args: list[Any],
    kwargs: dict[str, Any],
    coro,
) -> Any:
    """Run coroutine; on exception persist to FailedJob then re-raise."""
    try:
        return await coro
    except Exception as e:
        from app.models.failed_job import FailedJob
        fid = job_id or str(uuid.uuid4())
        await FailedJob(
            job_name=job_name,
            job_id=fid,
            args=args,
            kwargs=kwargs,
            reason=str(e)[:2000],
        ).insert()
        log.exception("job_failed", job=job_name, job_id=fid, reason=str(e))
        raise


async def startup(ctx: dict) -> None:
    from app.db.init import create_client, init_db
    settings = get_settings()
    configure_logging(debug=settings.debug)
    ctx["mongo_client"] = create_client(settings)
    await init_db(ctx["mongo_client"], settings)


async def shutdown(ctx: dict) -> None:
    client = ctx.get("mongo_client")
    if client is not None:
        client.close()


def get_redis_settings() -> RedisSettings:
    from urllib.parse import urlparse
    s = get_settings()
    u = urlparse(s.redis_url)
    return RedisSettings(
        host=u.hostname or "localhost",
        port=u.port or 6379,
        password=u.password,
        database=int(u.path.lstrip("/")) if u.path.lstrip("/") else 0,
    )


async def check_order_timeouts(ctx: dict[str, Any]) -> dict:
    """Cron job: payment and confirmation timeout sweep."""
    job_id = ctx.get("job_id") if isinstance(ctx.get("job_id"), str) else None
    bind_job("check_order_timeouts", job_id)
    from app.worker.cron import run_check_order_timeouts
    return await _run_with_dlq("check_order_timeouts", job_id, [], {}, run_check_order_timeouts())
