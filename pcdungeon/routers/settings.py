from typing import Optional

from fastapi import APIRouter, Depends

from pcdungeon import settings_store
from pcdungeon.database import db
from pcdungeon.errors import NotFoundError
from pcdungeon.responses import success
from pcdungeon.schemas import SettingCategory, SettingIn, SettingsBulkUpdate
from pcdungeon.security import require_roles

router = APIRouter(prefix="/api/settings", tags=["settings"])

require_admin = require_roles("admin")


@router.get("")
def list_settings(category: Optional[SettingCategory] = None):
    filt = {"category": category} if category else {}
    items = list(db["settings"].find(filt).sort([("category", 1), ("key", 1)]))
    return success(items, results=len(items))


@router.get("/{key}")
def get_setting(key: str):
    setting = db["settings"].find_one({"key": key})
    if setting is None:
        raise NotFoundError("Setting not found")
    return success(setting)


@router.put("/{key}")
async def update_setting(key: str, payload: SettingIn, user: dict = Depends(require_admin)):
    return success(settings_store.upsert(key, payload.model_dump()), "Setting saved")


@router.post("/bulk")
async def update_settings(payload: SettingsBulkUpdate, user: dict = Depends(require_admin)):
    saved = [settings_store.upsert(s.key, s.model_dump()) for s in payload.settings]
    return success(saved, "Settings saved", results=len(saved))
