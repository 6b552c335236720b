"""Cron: cancel orders whose payment or confirmation window has lapsed."""

from app.core.config import get_settings
from app.core.logging import get_logger
from app.services.timeouts import run_timeout_sweep

log = get_logger(__name__)


async def run_check_order_timeouts() -> dict:
    """One sweep tick. Same batch logic as POST /v1/cron/timeout-checker."""
    result = await run_timeout_sweep(get_settings())
    summary = result.as_dict()
    if result.errors:
        log.warning("sweep_errors", count=len(result.errors), errors=result.errors[:10])
    return summary
