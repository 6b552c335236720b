from fastapi import APIRouter, Depends

from app.core.clock import utcnow
from app.core.config import Settings, get_settings
from app.deps import require_cron_secret
from app.services import timeouts as timeouts_service

router = APIRouter()


@router.post("/timeout-checker", dependencies=[Depends(require_cron_secret)])
async def run_timeout_checker(settings: Settings = Depends(get_settings)):
    """Cancel lapsed payment and confirmation windows (one bounded batch each)."""
    now = utcnow()
    result = await timeouts_service.run_timeout_sweep(settings, now=now)
    summary = result.as_dict()
    return {
        "success": True,
        "message": "Timeout check completed",
        "processedCount": summary.pop("processedCount"),
        "results": summary,
        "timestamp": now.isoformat(),
    }


@router.get("/timeout-checker")
async def timeout_checker_status(settings: Settings = Depends(get_settings)):
    return {
        "service": "Timeout Checker",
        "status": "healthy",
        "batchSize": settings.sweep_batch_size,
        "confirmationWindowMinutes": settings.confirmation_window_minutes,
        "timestamp": utcnow().isoformat(),
    }
