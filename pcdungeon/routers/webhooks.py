import logging
from typing import Any, Dict

from fastapi import APIRouter, Body

from pcdungeon import telegram

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/telegram-webhook")
def telegram_webhook(update: Dict[str, Any] = Body(...)):
    logger.info("Telegram update %s", update.get("update_id"))
    result = telegram.handle_update(update)
    # Telegram retries anything that is not a 200
    return {"ok": True, **result}
