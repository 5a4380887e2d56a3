from typing import Any

from fastapi import APIRouter, HTTPException, Request, status

from ..config import get_settings
from ..telegram.bot import handle_updates

router = APIRouter()


def verify_secret(secret: str) -> None:
    settings = get_settings()
    if not settings.telegram_webhook_secret or secret != settings.telegram_webhook_secret:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)


@router.post("/webhook/{secret}", status_code=status.HTTP_204_NO_CONTENT)
async def telegram_webhook(secret: str, request: Request) -> None:
    verify_secret(secret)
    payload: Any = await request.json()
    if not isinstance(payload, (dict, list)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Expected an update object or list")
    await handle_updates(payload)
