from fastapi import APIRouter, Depends, Header, Request

from app.core.config import Settings, get_settings
from app.services import callbacks as callbacks_service

router = APIRouter()


@router.post("/callback")
async def tripay_callback(
    request: Request,
    x_callback_signature: str | None = Header(None, alias="X-Callback-Signature"),
    x_callback_event: str | None = Header(None, alias="X-Callback-Event"),
    settings: Settings = Depends(get_settings),
):
    """Tripay payment callback. The signature covers the raw body, so it is read unparsed."""
    body = await request.body()
    data = await callbacks_service.handle_callback(body, x_callback_signature, x_callback_event, settings)
    return {"success": True, "data": data}
