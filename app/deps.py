"""Shared FastAPI dependencies."""

from fastapi import Depends, Header

from app.core.config import Settings, get_settings
from app.core.exceptions import ConfigurationError, UnauthorizedError
from app.core.logging import get_logger
from app.core.security import bearer_token, secret_matches

log = get_logger(__name__)


async def require_cron_secret(
    x_cron_secret: str | None = Header(None, alias="X-Cron-Secret"),
    authorization: str | None = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Dependency: scheduler must present CRON_SECRET as X-Cron-Secret or a bearer token."""
    if not settings.cron_secret:
        log.error("cron_secret_not_configured")
        raise ConfigurationError()
    provided = x_cron_secret or bearer_token(authorization)
    if not secret_matches(provided, settings.cron_secret):
        raise UnauthorizedError("Unauthorized")
