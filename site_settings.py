from typing import Any, Dict, Optional

from pymongo import ReturnDocument

from database import collection, now
from errors import ValidationError
from schemas import CURRENCIES

# The singleton always lives under this id; the upsert makes concurrent first reads converge on one document.
SETTINGS_ID = "global"


def get_settings() -> Dict[str, Any]:
    return collection("settings").find_one_and_update(
        {"_id": SETTINGS_ID},
        {"$setOnInsert": {"currency": "SYP", "updated_at": now()}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def update_settings(currency: Optional[str]) -> Dict[str, Any]:
    if currency and currency not in CURRENCIES:
        raise ValidationError("Invalid currency")
    settings = get_settings()
    if not currency:
        return settings
    return collection("settings").find_one_and_update(
        {"_id": SETTINGS_ID},
        {"$set": {"currency": currency, "updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
